"""Continuation state: one dataclass per phase, serialised to an opaque blob at the edge."""

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import ClassVar, Optional, Union

from loguru import logger

from .plan import Plan


class Phase(str, Enum):
    PLANNING = "planning"
    AWAITING_ANSWERS = "awaiting_answers"
    EXECUTE = "execute"
    REVIEW = "review"
    POSTPROCESS = "postprocess"
    COMPLETE = "complete"


class UnknownPhaseError(ValueError):
    """The blob names a phase this engine does not know."""

    def __init__(self, phase, plan: Optional[Plan] = None, iterations: int = 0):
        super().__init__(f"Unknown phase: {phase!r}")
        self.phase = phase
        self.plan = plan
        self.iterations = iterations


@dataclass
class PlanningState:
    iterations: int = 0
    phase: ClassVar[Phase] = Phase.PLANNING


@dataclass
class AwaitingAnswersState:
    plan: Plan
    all_questions: list[str] = field(default_factory=list)
    question_index: int = 0
    answers: list[str] = field(default_factory=list)
    iterations: int = 0
    phase: ClassVar[Phase] = Phase.AWAITING_ANSWERS

    @property
    def current_question(self) -> str:
        return self.all_questions[self.question_index]


@dataclass
class ExecuteState:
    plan: Plan
    iterations: int = 0
    phase: ClassVar[Phase] = Phase.EXECUTE


@dataclass
class ReviewState:
    plan: Plan
    iterations: int = 0
    phase: ClassVar[Phase] = Phase.REVIEW


@dataclass
class PostprocessState:
    plan: Plan
    iterations: int = 0
    phase: ClassVar[Phase] = Phase.POSTPROCESS


@dataclass
class CompleteState:
    plan: Optional[Plan] = None
    iterations: int = 0
    phase: ClassVar[Phase] = Phase.COMPLETE


ContinuationState = Union[
    PlanningState,
    AwaitingAnswersState,
    ExecuteState,
    ReviewState,
    PostprocessState,
    CompleteState,
]

_PLAN_STATES = {
    Phase.EXECUTE: ExecuteState,
    Phase.REVIEW: ReviewState,
    Phase.POSTPROCESS: PostprocessState,
}


def state_plan(state: ContinuationState) -> Optional[Plan]:
    return getattr(state, "plan", None)


def with_iterations(state: ContinuationState, iterations: int) -> ContinuationState:
    return replace(state, iterations=iterations)


def dump_state(state: ContinuationState) -> dict:
    blob = {"currentPhase": state.phase.value, "iterations": state.iterations}
    plan = state_plan(state)
    if plan is not None:
        blob["plan"] = plan.to_dict()
    if isinstance(state, AwaitingAnswersState):
        blob["allQuestions"] = list(state.all_questions)
        blob["questionIndex"] = state.question_index
        blob["answers"] = list(state.answers)
    return blob


def _int(value, default: int = 0) -> int:
    try:
        return max(int(value), 0)
    except (TypeError, ValueError):
        return default


def load_state(blob: Optional[dict]) -> ContinuationState:
    """Rebuild a typed state from a caller-supplied blob.

    An absent blob or phase means planning. A phase that needs a plan but
    carries none falls back to planning. Raises UnknownPhaseError for
    phases outside :class:`Phase`.
    """
    if not blob:
        return PlanningState()
    if not isinstance(blob, dict):
        raise UnknownPhaseError(type(blob).__name__)

    iterations = _int(blob.get("iterations"))
    raw_plan = blob.get("plan")
    plan = Plan.from_dict(raw_plan) if isinstance(raw_plan, dict) else None
    raw_phase = blob.get("currentPhase") or Phase.PLANNING.value

    try:
        phase = Phase(raw_phase)
    except ValueError:
        raise UnknownPhaseError(raw_phase, plan=plan, iterations=iterations) from None

    if phase is Phase.PLANNING:
        return PlanningState(iterations=iterations)
    if phase is Phase.COMPLETE:
        return CompleteState(plan=plan, iterations=iterations)
    if plan is None:
        logger.warning(f"Continuation state in phase {phase.value!r} has no plan, restarting planning")
        return PlanningState(iterations=iterations)
    if phase is Phase.AWAITING_ANSWERS:
        questions = [str(q) for q in (blob.get("allQuestions") or plan.questions) if q]
        answers = [str(a) for a in (blob.get("answers") or [])]
        if not questions:
            logger.warning("Awaiting answers without questions, continuing to execution")
            return ExecuteState(plan=plan.ensure_tasks(), iterations=iterations)
        index = min(_int(blob.get("questionIndex")), len(questions) - 1)
        return AwaitingAnswersState(
            plan=plan,
            all_questions=questions,
            question_index=index,
            answers=answers,
            iterations=iterations,
        )
    return _PLAN_STATES[phase](plan=plan, iterations=iterations)
