"""Tests for the streaming adapter and SSE rendering."""

import json
import time
from unittest.mock import Mock

import pytest

from notebook_writer.config import ProviderConfig, SecondaryProviderConfig, StreamConfig
from notebook_writer.engine import PhaseEngine
from notebook_writer.models import Action, CompleteState, GenerationRequest, GenerationResult, ResultPhase
from notebook_writer.providers.client import ProviderError
from notebook_writer.providers.fallback import AllProvidersFailedError, FallbackGenerator
from notebook_writer.streaming import (
    ActionEvent,
    CompleteEvent,
    ContentChunkEvent,
    ErrorEvent,
    PhaseUpdateEvent,
    ProgressEvent,
    StreamAdapter,
    incoming_phase,
    sse_frames,
)

FAST = StreamConfig(heartbeat_interval=5.0, chunk_size=4, chunk_delay=0)


def _request(memory=None):
    return GenerationRequest(instruction="go on", continuation_state=memory)


def _result(*actions):
    return GenerationResult(
        phase=ResultPhase.POSTPROCESS,
        state=CompleteState(),
        actions=list(actions),
        message="done",
        is_complete=True,
    )


def _types(events):
    return [e.type for e in events]


def test_event_order_for_successful_step():
    engine = Mock()
    engine.advance.return_value = _result(
        Action(type="update", section_id="s1", content="abcdefghij"),
        Action(type="create", section_id="Outro", content="xyz"),
    )

    events = list(StreamAdapter(engine, FAST).run(_request()))

    assert _types(events) == [
        "phase_update",
        "action", "content_chunk", "content_chunk", "content_chunk",
        "action", "content_chunk",
        "complete",
    ]
    chunks = [e for e in events if isinstance(e, ContentChunkEvent)]
    assert "".join(c.content for c in chunks[:3]) == "abcdefghij"
    assert {c.section_id for c in chunks[:3]} == {"s1"}
    assert events[-1].result is engine.advance.return_value


def test_phase_update_reflects_incoming_phase(plan_blob):
    engine = Mock()
    engine.advance.return_value = _result()

    events = list(StreamAdapter(engine, FAST).run(_request({"currentPhase": "review", "plan": plan_blob})))

    assert isinstance(events[0], PhaseUpdateEvent)
    assert events[0].phase == "review"


def test_incoming_phase_defaults():
    assert incoming_phase(_request()).value == "planning"
    assert incoming_phase(_request({"currentPhase": "nonsense"})).value == "execute"


def test_heartbeats_while_step_runs():
    engine = Mock()

    def slow_advance(request):
        time.sleep(0.3)
        return _result()

    engine.advance.side_effect = slow_advance
    config = StreamConfig(heartbeat_interval=0.02, chunk_size=10, chunk_delay=0)

    events = list(StreamAdapter(engine, config).run(_request()))

    progress = [e for e in events if isinstance(e, ProgressEvent)]
    assert len(progress) >= 2
    assert _types(events)[0] == "phase_update"
    assert _types(events)[-1] == "complete"
    assert all(e.elapsed >= 0 for e in progress)


def test_fast_step_has_no_heartbeat():
    engine = Mock()
    engine.advance.return_value = _result()

    events = list(StreamAdapter(engine, FAST).run(_request()))

    assert not any(isinstance(e, ProgressEvent) for e in events)


def test_error_event_ends_stream():
    engine = Mock()
    engine.advance.side_effect = AllProvidersFailedError("all providers failed")

    events = list(StreamAdapter(engine, FAST).run(_request()))

    assert _types(events) == ["phase_update", "error"]
    assert events[-1].error == "all providers failed"


def test_chunk_pacing_uses_sleep():
    engine = Mock()
    engine.advance.return_value = _result(Action(type="update", section_id="s1", content="a" * 10))
    sleep = Mock()
    config = StreamConfig(heartbeat_interval=5.0, chunk_size=5, chunk_delay=0.25)

    list(StreamAdapter(engine, config, sleep=sleep).run(_request()))

    assert sleep.call_count == 2
    sleep.assert_called_with(0.25)


def test_all_providers_down_streams_single_error(plan_blob):
    def failing_client(name, api_key, base_url=None, timeout=None):
        client = Mock()
        client.complete.side_effect = ProviderError(name, "any", "503 unavailable")
        return client

    generator = FallbackGenerator(
        [ProviderConfig(name="primary", api_keys=["k1", "k2"], api_key_envs=[], models=["m1", "m2"])],
        SecondaryProviderConfig(name="backup", api_key="sk-backup"),
        client_factory=failing_client,
    )
    engine = PhaseEngine(generator)
    request = _request({"currentPhase": "execute", "plan": plan_blob})

    with pytest.raises(AllProvidersFailedError):
        engine.advance(request)

    events = list(engine.advance_streaming(request, FAST))
    assert len([e for e in events if isinstance(e, ErrorEvent)]) == 1
    assert not any(isinstance(e, CompleteEvent) for e in events)
    assert isinstance(events[-1], ErrorEvent)


def test_sse_frames_render_json_and_close():
    engine = Mock()
    engine.advance.return_value = _result(Action(type="create", section_id="Intro", content="hi"))

    frames = list(sse_frames(StreamAdapter(engine, FAST).run(_request())))

    assert all(f.startswith("data: ") and f.endswith("\n\n") for f in frames)
    payloads = [json.loads(f[len("data: "):]) for f in frames]
    assert [p["type"] for p in payloads] == ["phase_update", "action", "content_chunk", "complete", "close"]
    assert payloads[1]["action"] == {"type": "create", "sectionId": "Intro", "content": "hi"}
    assert payloads[3]["result"]["isComplete"] is True


def test_sse_frames_without_close():
    frames = list(sse_frames([ErrorEvent(error="boom")], close=False))

    assert frames == ['data: {"type": "error", "error": "boom"}\n\n']


def test_action_event_payload():
    event = ActionEvent(action=Action(type="update", section_id="s1", content="c"))

    assert event.to_dict() == {"type": "action", "action": {"type": "update", "sectionId": "s1", "content": "c"}}
