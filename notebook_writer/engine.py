"""Phase state machine that plans, writes, reviews and polishes a notebook.

Each call to :meth:`PhaseEngine.advance` runs one logical step. Steps that
hand over to the next phase without needing the caller (execute -> review
once every task is done, review -> postprocess once the document is judged
complete) are chained in a loop that the iteration guard bounds.
"""

from dataclasses import dataclass, replace
from typing import Iterator, Optional, Protocol, Sequence, Union

from loguru import logger

from .config import Config, EngineConfig, StreamConfig
from .models.plan import Action, Plan, ReviewVerdict
from .models.request import Confidence, GenerationRequest, GenerationResult, ResultPhase, Section
from .models.state import (
    AwaitingAnswersState,
    CompleteState,
    ContinuationState,
    ExecuteState,
    Phase,
    PlanningState,
    PostprocessState,
    ReviewState,
    UnknownPhaseError,
    load_state,
    state_plan,
    with_iterations,
)
from .prompts import (
    execution_messages,
    planning_messages,
    postprocess_messages,
    refinement_messages,
    review_messages,
)
from .providers.fallback import Completion, FallbackGenerator
from .recovery import recover
from .utils.text import parse_page_count

DEFAULT_QUESTIONS = [
    "What format would you like? (e.g., research paper, blog post, guide, essay)",
    "How long should this be? (e.g., number of pages, sections, or word count)",
    "Which specific aspect of the topic should I focus on?",
    "Who is the target audience?",
]

# (temperature, max_tokens) per provider call
PLANNING_BUDGET = (0.5, 1500)
REFINEMENT_BUDGET = (0.3, 1500)
EXECUTION_BUDGET = (0.7, 3000)
REVIEW_BUDGET = (0.5, 1500)
POSTPROCESS_BUDGET = (0.7, 3000)

_QUALITY_CONFIDENCE = {
    "excellent": Confidence.HIGH,
    "good": Confidence.MEDIUM,
}


class TextGenerator(Protocol):
    def generate(self, messages: list[dict[str, str]], temperature: float, max_tokens: int) -> Completion: ...


@dataclass
class _Transition:
    """Continue immediately with ``state`` inside the same call."""
    state: ContinuationState


StepOutcome = Union[GenerationResult, _Transition]


def _parse_actions(payload: dict) -> list[Action]:
    raw_actions = payload.get("actions")
    if not isinstance(raw_actions, list):
        return []
    actions = []
    for raw in raw_actions:
        action = Action.from_dict(raw)
        if action is None:
            logger.warning(f"Dropping malformed action from model response: {str(raw)[:200]}")
            continue
        actions.append(action)
    return actions


def _improvement_summary(verdict: ReviewVerdict) -> str:
    if not verdict.improvements:
        return "Needs improvement"
    return "Needs improvement: " + "; ".join(verdict.improvements)


class PhaseEngine:
    """Turns (instruction, sections, continuation state) into edits plus the next state.

    The engine performs no storage I/O. Provider failures that survive the
    fallback generator propagate as AllProvidersFailedError; everything else
    is recovered locally.
    """

    def __init__(self, generator: TextGenerator, config: Optional[EngineConfig] = None):
        self.generator = generator
        self.config = config or EngineConfig()
        self._handlers = {
            Phase.PLANNING: self._plan,
            Phase.AWAITING_ANSWERS: self._collect_answer,
            Phase.EXECUTE: self._execute,
            Phase.REVIEW: self._review,
            Phase.POSTPROCESS: self._postprocess,
            Phase.COMPLETE: self._complete,
        }

    @classmethod
    def from_config(cls, config: Config) -> "PhaseEngine":
        return cls(FallbackGenerator.from_config(config), config.engine)

    def advance(self, request: GenerationRequest) -> GenerationResult:
        tag = f"[{request.correlation_id}] " if request.correlation_id else ""
        try:
            state = load_state(request.continuation_state)
        except UnknownPhaseError as exc:
            iterations = max(request.iteration_count, exc.iterations)
            if iterations >= self.config.max_iterations:
                logger.warning(f"{tag}Reached maximum iteration limit ({self.config.max_iterations}), stopping.")
                return self._iteration_limit(CompleteState(plan=exc.plan), iterations)
            return self._reset_unknown_phase(exc, tag)

        state, repaired = self._restore_tasks(state, tag)
        iterations = max(request.iteration_count, state.iterations)
        while True:
            if iterations >= self.config.max_iterations:
                logger.warning(f"{tag}Reached maximum iteration limit ({self.config.max_iterations}), stopping.")
                return self._iteration_limit(state, iterations)

            iterations += 1
            state = with_iterations(state, iterations)
            logger.info(f"{tag}Phase {state.phase.value} (iteration {iterations})")
            outcome = self._handlers[state.phase](request, state)

            if isinstance(outcome, _Transition):
                state = outcome.state
                continue
            outcome.state = with_iterations(outcome.state, iterations)
            if repaired:
                outcome.confidence = Confidence.LOW
            return outcome

    def advance_streaming(self, request: GenerationRequest, stream_config: Optional[StreamConfig] = None) -> Iterator:
        from .streaming import StreamAdapter

        return StreamAdapter(self, stream_config).run(request)

    def _call(self, messages: list[dict[str, str]], budget: tuple[float, int]) -> str:
        temperature, max_tokens = budget
        completion = self.generator.generate(messages, temperature=temperature, max_tokens=max_tokens)
        logger.debug(f"Completion from {completion.provider_id}/{completion.model_id} ({len(completion.content)} chars)")
        return completion.content

    # -- phases ---------------------------------------------------------------

    def _plan(self, request: GenerationRequest, state: PlanningState) -> StepOutcome:
        raw = self._call(planning_messages(request.instruction, request.section_titles), PLANNING_BUDGET)
        payload = recover(raw, Plan.fallback(request.instruction).to_dict())
        plan = Plan.from_payload(payload, request.instruction, request.section_titles)

        if plan.needs_clarification:
            if not plan.questions:
                plan.questions = list(DEFAULT_QUESTIONS)
            logger.info(f"Planner has {len(plan.questions)} question(s), pausing for user input")
            return GenerationResult(
                phase=ResultPhase.PLAN,
                state=AwaitingAnswersState(plan=plan, all_questions=list(plan.questions)),
                message=plan.questions[0],
                progress_message=f"Question 1 of {len(plan.questions)}",
                confidence=Confidence.HIGH,
                suggested_title=plan.suggested_title,
                plan=plan,
                should_continue=False,
            )

        plan.ensure_tasks()
        logger.info(f"Plan ready: {len(plan.required_sections)} required section(s), {len(plan.tasks)} task(s)")
        return GenerationResult(
            phase=ResultPhase.PLAN,
            state=ExecuteState(plan=plan),
            message="Document plan created",
            confidence=Confidence.HIGH,
            suggested_title=plan.suggested_title,
            plan=plan,
            should_continue=True,
        )

    def _collect_answer(self, request: GenerationRequest, state: AwaitingAnswersState) -> StepOutcome:
        answers = state.answers + [request.instruction]
        next_index = state.question_index + 1
        total = len(state.all_questions)

        if next_index < total:
            return GenerationResult(
                phase=ResultPhase.PLAN,
                state=replace(state, question_index=next_index, answers=answers),
                message=state.all_questions[next_index],
                progress_message=f"Question {next_index + 1} of {total}",
                confidence=Confidence.HIGH,
                suggested_title=state.plan.suggested_title,
                plan=state.plan,
                should_continue=False,
            )

        old_plan = state.plan
        original = old_plan.variables.original_instruction or old_plan.overall_goal
        raw = self._call(refinement_messages(old_plan, state.all_questions, answers), REFINEMENT_BUDGET)

        fallback = Plan.fallback(original)
        fallback.variables = replace(old_plan.variables, has_questions=False)
        payload = recover(raw, fallback.to_dict())
        plan = Plan.from_payload(payload, original, request.section_titles)
        if not isinstance(payload.get("variables"), dict):
            plan.variables = replace(old_plan.variables)
        plan.variables.has_questions = False
        plan.variables.original_instruction = original
        plan.questions = []
        plan.ensure_tasks()

        logger.info(f"Plan refined from {total} answer(s): {len(plan.tasks)} task(s)")
        return GenerationResult(
            phase=ResultPhase.PLAN,
            state=ExecuteState(plan=plan),
            message="Got it! Continuing with document generation...",
            confidence=Confidence.HIGH,
            suggested_title=plan.suggested_title,
            plan=plan,
            should_continue=True,
        )

    def _execute(self, request: GenerationRequest, state: ExecuteState) -> StepOutcome:
        plan = state.plan
        task_index = next((i for i, t in enumerate(plan.tasks) if not t.done), None)
        if task_index is None:
            logger.info("All tasks done, moving to review")
            return _Transition(ReviewState(plan=plan))

        task = plan.tasks[task_index]
        total_required = len(plan.required_sections) or len(plan.tasks)
        word_budget = self._word_budget(plan)
        temperature, max_tokens = EXECUTION_BUDGET
        messages = execution_messages(
            plan,
            request.sections,
            task,
            substantial_count=self._count_substantial(request.sections),
            total_required=total_required,
            word_budget=word_budget,
        )
        raw = self._call(messages, (temperature, max(max_tokens, word_budget * 2)))
        payload = recover(raw, {"actions": [], "message": "Model response was not valid JSON, no changes applied"})
        actions = _parse_actions(payload)

        tasks = [replace(t, done=True) if i == task_index else t for i, t in enumerate(plan.tasks)]
        new_plan = replace(plan, tasks=tasks)
        completed = len(plan.tasks) - len(plan.pending_tasks)
        next_state = ReviewState(plan=new_plan) if all(t.done for t in tasks) else ExecuteState(plan=new_plan)

        return GenerationResult(
            phase=ResultPhase.EXECUTE,
            state=next_state,
            message=str(payload.get("message") or "Executed task"),
            actions=actions,
            progress_message=f"Writing {task.section}... ({completed + 1}/{len(tasks)} completed)",
            confidence=Confidence.HIGH if actions else Confidence.LOW,
            suggested_title=plan.suggested_title,
            plan=new_plan,
            should_continue=next_state.phase is not Phase.COMPLETE,
        )

    def _review(self, request: GenerationRequest, state: ReviewState) -> StepOutcome:
        plan = state.plan
        raw = self._call(
            review_messages(request.instruction, plan, request.sections, self.config.preview_chars),
            REVIEW_BUDGET,
        )
        payload = recover(raw, {
            "quality": "good",
            "isComplete": True,
            "nextTasks": [],
            "message": "Review unavailable, treating the document as complete",
        })
        verdict = ReviewVerdict.from_payload(payload, request.section_titles)
        confidence = _QUALITY_CONFIDENCE.get(verdict.quality, Confidence.LOW)

        if self._all_substantial(request.sections):
            if not verdict.is_complete or verdict.next_tasks:
                logger.info("Every section meets the length threshold, overriding review verdict")
            verdict.is_complete = True
            verdict.next_tasks = []
            confidence = Confidence.HIGH

        if not verdict.is_complete and verdict.next_tasks:
            logger.info(f"Review found improvements needed, adding {len(verdict.next_tasks)} task(s)")
            for improvement in verdict.improvements:
                logger.debug(f"Suggested improvement: {improvement}")
            new_plan = replace(plan, tasks=plan.tasks + verdict.next_tasks)
            return GenerationResult(
                phase=ResultPhase.REVIEW,
                state=ExecuteState(plan=new_plan),
                message=verdict.message or _improvement_summary(verdict),
                confidence=confidence,
                suggested_title=plan.suggested_title,
                plan=new_plan,
                should_continue=True,
            )

        logger.info("Review complete, moving to post-processing")
        return _Transition(PostprocessState(plan=plan))

    def _postprocess(self, request: GenerationRequest, state: PostprocessState) -> StepOutcome:
        raw = self._call(postprocess_messages(request.sections), POSTPROCESS_BUDGET)
        payload = recover(raw, {"actions": [], "patternsFound": [], "message": "No changes needed"})
        actions = _parse_actions(payload)
        logger.info(f"Post-processing produced {len(actions)} edit(s)")
        return GenerationResult(
            phase=ResultPhase.POSTPROCESS,
            state=CompleteState(plan=state.plan),
            message=str(payload.get("message") or "Document complete"),
            actions=actions,
            confidence=Confidence.HIGH,
            suggested_title=state.plan.suggested_title,
            plan=state.plan,
            is_complete=True,
            should_continue=False,
        )

    def _complete(self, request: GenerationRequest, state: CompleteState) -> StepOutcome:
        return GenerationResult(
            phase=ResultPhase.COMPLETE,
            state=state,
            message="Document complete",
            confidence=Confidence.HIGH,
            suggested_title=state.plan.suggested_title if state.plan else None,
            plan=state.plan,
            is_complete=True,
            should_continue=False,
        )

    # -- guards ---------------------------------------------------------------

    def _iteration_limit(self, state: ContinuationState, iterations: int) -> GenerationResult:
        plan = state_plan(state)
        return GenerationResult(
            phase=ResultPhase.REVIEW,
            state=CompleteState(plan=plan, iterations=iterations),
            message="Document generation complete (reached iteration limit)",
            confidence=Confidence.MEDIUM,
            suggested_title=plan.suggested_title if plan else None,
            plan=plan,
            is_complete=True,
            should_continue=False,
        )

    def _restore_tasks(self, state: ContinuationState, tag: str = "") -> tuple[ContinuationState, bool]:
        """Past planning a plan must carry tasks; rebuild them and resume execution if it has none."""
        if state.phase not in (Phase.EXECUTE, Phase.REVIEW, Phase.POSTPROCESS) or state.plan.tasks:
            return state, False
        logger.warning(f"{tag}Plan in phase {state.phase.value!r} has no tasks, rebuilding them from required sections")
        plan = replace(state.plan, tasks=[]).ensure_tasks()
        return ExecuteState(plan=plan, iterations=state.iterations), True

    def _reset_unknown_phase(self, exc: UnknownPhaseError, tag: str = "") -> GenerationResult:
        if exc.plan is not None:
            plan = exc.plan.ensure_tasks()
            logger.warning(f"{tag}Unknown phase {exc.phase!r}, resetting to execute")
            return GenerationResult(
                phase=ResultPhase.EXECUTE,
                state=ExecuteState(plan=plan, iterations=exc.iterations),
                message=f"Recovered from unrecognized phase {exc.phase!r}, resuming execution",
                confidence=Confidence.LOW,
                suggested_title=plan.suggested_title,
                plan=plan,
                should_continue=True,
            )
        logger.warning(f"{tag}Unknown phase {exc.phase!r} without a plan, restarting planning")
        return GenerationResult(
            phase=ResultPhase.PLAN,
            state=PlanningState(iterations=exc.iterations),
            message=f"Recovered from unrecognized phase {exc.phase!r}, restarting planning",
            confidence=Confidence.LOW,
            should_continue=True,
        )

    # -- length accounting ----------------------------------------------------

    def _count_substantial(self, sections: Sequence[Section]) -> int:
        return sum(1 for s in sections if len(s.content) >= self.config.substantial_length)

    def _all_substantial(self, sections: Sequence[Section]) -> bool:
        return bool(sections) and self._count_substantial(sections) == len(sections)

    def _word_budget(self, plan: Plan) -> int:
        """Words to ask for in one task.

        "N pages" targets assume ``words_per_page`` and are split evenly
        across the required sections; anything else gets the default.
        """
        pages = parse_page_count(plan.variables.target_length)
        if pages is None:
            return self.config.default_task_words
        sections = len(plan.required_sections) or len(plan.tasks) or 1
        return max(int(round(pages * self.config.words_per_page / sections)), 1)
