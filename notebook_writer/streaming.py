"""Wrap one engine step as an ordered event stream with heartbeats.

The step runs on a worker thread while the caller's thread waits on its
future with a timeout; every timeout becomes a heartbeat. Transports with
idle timeouts (SSE behind serverless proxies) stay alive for as long as the
step takes.
"""

import json
import time
from concurrent.futures import ThreadPoolExecutor, wait
from dataclasses import dataclass
from typing import Callable, ClassVar, Iterable, Iterator, Optional

from loguru import logger

from .config import StreamConfig
from .models.plan import Action
from .models.request import GenerationRequest, GenerationResult
from .models.state import Phase, UnknownPhaseError, load_state
from .utils.text import chunk_text

PHASE_MESSAGES = {
    Phase.PLANNING: "Planning document structure...",
    Phase.AWAITING_ANSWERS: "Updating the plan with your answers...",
    Phase.EXECUTE: "Writing the next section...",
    Phase.REVIEW: "Reviewing the document...",
    Phase.POSTPROCESS: "Polishing the final text...",
    Phase.COMPLETE: "Document already complete",
}


class StreamEvent:
    type: ClassVar[str] = ""

    def payload(self) -> dict:
        return {}

    def to_dict(self) -> dict:
        return {"type": self.type, **self.payload()}

    def to_sse(self) -> str:
        return f"data: {json.dumps(self.to_dict())}\n\n"


@dataclass
class PhaseUpdateEvent(StreamEvent):
    phase: str
    message: str
    type: ClassVar[str] = "phase_update"

    def payload(self) -> dict:
        return {"phase": self.phase, "message": self.message}


@dataclass
class ProgressEvent(StreamEvent):
    message: str
    elapsed: float = 0.0
    type: ClassVar[str] = "progress"

    def payload(self) -> dict:
        return {"message": self.message, "elapsed": self.elapsed}


@dataclass
class ActionEvent(StreamEvent):
    action: Action
    type: ClassVar[str] = "action"

    def payload(self) -> dict:
        return {"action": self.action.to_dict()}


@dataclass
class ContentChunkEvent(StreamEvent):
    content: str
    section_id: str = ""
    type: ClassVar[str] = "content_chunk"

    def payload(self) -> dict:
        return {"content": self.content, "sectionId": self.section_id}


@dataclass
class CompleteEvent(StreamEvent):
    result: GenerationResult
    type: ClassVar[str] = "complete"

    def payload(self) -> dict:
        return {"result": self.result.to_dict()}


@dataclass
class ErrorEvent(StreamEvent):
    error: str
    type: ClassVar[str] = "error"

    def payload(self) -> dict:
        return {"error": self.error}


def incoming_phase(request: GenerationRequest) -> Phase:
    try:
        return load_state(request.continuation_state).phase
    except UnknownPhaseError:
        return Phase.EXECUTE


class StreamAdapter:
    """Runs ``engine.advance`` in the background and narrates it.

    Event order: one phase_update, zero or more progress heartbeats, then
    either (action, content_chunk*)* followed by complete, or a single error.
    There is no cancellation: if the consumer stops iterating, the
    background step still runs to completion.
    """

    def __init__(self, engine, config: Optional[StreamConfig] = None, sleep: Callable[[float], None] = time.sleep):
        self.engine = engine
        self.config = config or StreamConfig()
        self._sleep = sleep

    def run(self, request: GenerationRequest) -> Iterator[StreamEvent]:
        phase = incoming_phase(request)
        yield PhaseUpdateEvent(phase=phase.value, message=PHASE_MESSAGES[phase])

        started = time.monotonic()
        executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="phase-step")
        try:
            future = executor.submit(self.engine.advance, request)
            while True:
                done, _ = wait([future], timeout=self.config.heartbeat_interval)
                if done:
                    break
                elapsed = round(time.monotonic() - started, 1)
                yield ProgressEvent(message=f"Still working ({phase.value}, {elapsed:.0f}s)...", elapsed=elapsed)

            error = future.exception()
            if error is not None:
                logger.error(f"Streaming step failed: {error}")
                yield ErrorEvent(error=str(error) or error.__class__.__name__)
                return
            result = future.result()
        finally:
            executor.shutdown(wait=False)

        for action in result.actions:
            yield ActionEvent(action=action)
            for chunk in chunk_text(action.content, self.config.chunk_size):
                yield ContentChunkEvent(content=chunk, section_id=action.section_id)
                if self.config.chunk_delay:
                    self._sleep(self.config.chunk_delay)

        yield CompleteEvent(result=result)


def sse_frames(events: Iterable[StreamEvent], close: bool = True) -> Iterator[str]:
    """Render events as Server-Sent Events frames, optionally closing the stream."""
    for event in events:
        yield event.to_sse()
    if close:
        yield 'data: {"type": "close"}\n\n'
