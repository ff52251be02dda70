import os
from pathlib import Path
from typing import List, Optional
from pydantic import BaseModel, Field, field_validator
import yaml

OPENROUTER_FREE_MODELS = [
    "alibaba/tongyi-deepresearch-30b-a3b:free",
    "meta-llama/llama-3.3-8b-instruct:free",
    "nvidia/nemotron-nano-9b-v2:free",
    "meta-llama/llama-4-maverick:free",
    "meta-llama/llama-3.2-3b-instruct:free",
    "tngtech/deepseek-r1t2-chimera:free",
    "z-ai/glm-4.5-air:free",
    "tngtech/deepseek-r1t-chimera:free",
    "deepseek/deepseek-chat-v3-0324:free",
]

class ProviderConfig(BaseModel):
    """One named endpoint of the primary (credential, model) matrix."""
    name: str = Field(default="openrouter")
    base_url: Optional[str] = Field(default="https://openrouter.ai/api/v1")
    api_keys: List[str] = Field(default_factory=list)
    api_key_envs: List[str] = Field(
        default_factory=lambda: ["OPENROUTER_KEY1", "OPENROUTER_KEY2", "OPENROUTER_KEY3"]
    )
    models: List[str] = Field(default_factory=lambda: list(OPENROUTER_FREE_MODELS), min_length=1)

    def credentials(self) -> List[str]:
        """Literal keys first, then keys read from the environment; blanks are skipped."""
        keys = [k for k in self.api_keys if k]
        for env_name in self.api_key_envs:
            value = os.environ.get(env_name, "")
            if value:
                keys.append(value)
        return keys

class SecondaryProviderConfig(BaseModel):
    name: str = Field(default="openai")
    base_url: Optional[str] = Field(default=None)
    api_key: Optional[str] = Field(default=None)
    api_key_env: str = Field(default="OPENAI_API_KEY")
    model: str = Field(default="gpt-4o-mini")

    def credential(self) -> Optional[str]:
        return self.api_key or os.environ.get(self.api_key_env) or None

class EngineConfig(BaseModel):
    max_iterations: int = Field(default=100, gt=0)
    substantial_length: int = Field(default=500, gt=0)
    words_per_page: int = Field(default=250, gt=0)
    default_task_words: int = Field(default=250, gt=0)
    preview_chars: int = Field(default=300, gt=0)

class StreamConfig(BaseModel):
    heartbeat_interval: float = Field(default=7.0, gt=0)
    chunk_size: int = Field(default=50, gt=0)
    chunk_delay: float = Field(default=0.01, ge=0)

class Config(BaseModel):
    providers: List[ProviderConfig] = Field(default_factory=lambda: [ProviderConfig()])
    secondary: SecondaryProviderConfig = Field(default_factory=SecondaryProviderConfig)
    engine: EngineConfig = Field(default_factory=EngineConfig)
    stream: StreamConfig = Field(default_factory=StreamConfig)
    request_timeout: Optional[float] = Field(default=120.0, gt=0)
    log_level: str = Field(default="INFO")
    log_file: Optional[str] = Field(default=None)

    @field_validator("log_level")
    @classmethod
    def _upper_level(cls, value: str) -> str:
        return value.upper()

    @classmethod
    def from_yaml(cls, path: Path) -> "Config":
        with open(path, "r") as f:
            data = yaml.safe_load(f) or {}
        return cls(**data)

    def to_yaml(self, path: Path):
        with open(path, "w") as f:
            yaml.dump(self.model_dump(), f, default_flow_style=False, sort_keys=False)
