from .plan import (
    Action,
    Plan,
    PlanVariables,
    ReviewVerdict,
    Task,
    normalize_section_names,
)
from .state import (
    AwaitingAnswersState,
    CompleteState,
    ContinuationState,
    ExecuteState,
    Phase,
    PlanningState,
    PostprocessState,
    ReviewState,
    UnknownPhaseError,
    dump_state,
    load_state,
)
from .request import (
    Confidence,
    GenerationRequest,
    GenerationResult,
    ResultPhase,
    Section,
)

__all__ = [
    "Action",
    "Plan",
    "PlanVariables",
    "ReviewVerdict",
    "Task",
    "normalize_section_names",
    "AwaitingAnswersState",
    "CompleteState",
    "ContinuationState",
    "ExecuteState",
    "Phase",
    "PlanningState",
    "PostprocessState",
    "ReviewState",
    "UnknownPhaseError",
    "dump_state",
    "load_state",
    "Confidence",
    "GenerationRequest",
    "GenerationResult",
    "ResultPhase",
    "Section",
]
