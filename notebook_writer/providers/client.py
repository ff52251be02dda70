"""Single remote chat-completion call against an OpenAI-compatible endpoint."""

import time
from typing import Iterator, Optional

from loguru import logger
from openai import OpenAI

Messages = list[dict[str, str]]


class ProviderError(Exception):
    """A provider call failed or produced no usable content."""

    def __init__(self, provider: str, model: str, reason: str):
        super().__init__(f"{provider}/{model}: {reason}")
        self.provider = provider
        self.model = model
        self.reason = reason


class ProviderClient:
    """Adapter around one credential on one endpoint.

    The model is chosen per call so a single client serves every model in
    a provider's preference list. SDK-level retries are disabled; retrying
    is the fallback generator's job.
    """

    def __init__(
        self,
        name: str,
        api_key: str,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        self.name = name
        kwargs = {"api_key": api_key, "max_retries": 0}
        if base_url:
            kwargs["base_url"] = base_url
        if timeout is not None:
            kwargs["timeout"] = timeout
        self.client = OpenAI(**kwargs)

    def complete(
        self,
        messages: Messages,
        model: str,
        temperature: float = 0.7,
        max_tokens: int = 2000,
    ) -> str:
        """Buffered completion. Raises ProviderError on failure or empty output."""
        start = time.time()
        try:
            response = self.client.chat.completions.create(
                model=model,
                messages=messages,
                temperature=temperature,
                max_tokens=max_tokens,
            )
            content = response.choices[0].message.content or ""
        except Exception as exc:
            raise ProviderError(self.name, model, str(exc)) from exc

        if not content.strip():
            raise ProviderError(self.name, model, "empty completion")

        logger.debug(f"{self.name}/{model} answered {len(content)} chars in {time.time() - start:.2f}s")
        return content

    def complete_stream(
        self,
        messages: Messages,
        model: str,
        temperature: float = 0.7,
        max_tokens: int = 2000,
    ) -> Iterator[str]:
        """Incremental completion yielding text deltas as they arrive."""
        try:
            stream = self.client.chat.completions.create(
                model=model,
                messages=messages,
                temperature=temperature,
                max_tokens=max_tokens,
                stream=True,
            )
            for chunk in stream:
                if not chunk.choices:
                    continue
                delta = chunk.choices[0].delta.content
                if delta:
                    yield delta
        except Exception as exc:
            raise ProviderError(self.name, model, str(exc)) from exc
