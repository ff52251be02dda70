"""Request and result shapes at the caller boundary."""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .plan import Action, Plan
from .state import ContinuationState, dump_state


class Section(BaseModel):
    id: str
    title: str
    content: str = ""


class GenerationRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    instruction: str
    sections: List[Section] = Field(default_factory=list)
    continuation_state: Optional[dict] = Field(default=None, alias="aiMemory")
    correlation_id: str = Field(default="", alias="correlationId")
    iteration_count: int = Field(default=0, ge=0, alias="iterationCount")

    @field_validator("sections")
    @classmethod
    def _unique_ids(cls, sections: List[Section]) -> List[Section]:
        ids = [s.id for s in sections]
        duplicates = sorted({i for i in ids if ids.count(i) > 1})
        if duplicates:
            raise ValueError(f"Duplicate section ids: {', '.join(duplicates)}")
        return sections

    @property
    def section_titles(self) -> list[str]:
        return [s.title for s in self.sections]


class ResultPhase(str, Enum):
    PLAN = "plan"
    EXECUTE = "execute"
    REVIEW = "review"
    POSTPROCESS = "postprocess"
    COMPLETE = "complete"


class Confidence(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


@dataclass
class GenerationResult:
    phase: ResultPhase
    state: ContinuationState
    message: str = ""
    actions: list[Action] = field(default_factory=list)
    confidence: Confidence = Confidence.HIGH
    progress_message: Optional[str] = None
    suggested_title: Optional[str] = None
    is_complete: bool = False
    should_continue: bool = False
    plan: Optional[Plan] = None

    @property
    def continuation_state(self) -> dict:
        """The opaque blob the caller stores and hands back on the next call."""
        return dump_state(self.state)

    def to_dict(self) -> dict:
        return {
            "phase": self.phase.value,
            "actions": [a.to_dict() for a in self.actions],
            "message": self.message,
            "progressMessage": self.progress_message,
            "aiMemory": self.continuation_state,
            "confidence": self.confidence.value,
            "suggestedTitle": self.suggested_title,
            "isComplete": self.is_complete,
            "shouldContinue": self.should_continue,
            "plan": self.plan.to_dict() if self.plan is not None else None,
        }
