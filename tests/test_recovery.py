"""Tests for notebook_writer.recovery."""

import json

from notebook_writer.recovery import recover

PAYLOAD = {"actions": [{"type": "create", "sectionId": "Intro", "content": "Hello"}], "message": "done"}


def test_plain_json():
    assert recover(json.dumps(PAYLOAD), {}) == PAYLOAD


def test_json_with_surrounding_whitespace():
    assert recover("\n\n  " + json.dumps(PAYLOAD) + "  \n", {}) == PAYLOAD


def test_fenced_json_block():
    raw = f"```json\n{json.dumps(PAYLOAD, indent=2)}\n```"
    assert recover(raw, {}) == PAYLOAD


def test_fenced_block_without_language_tag():
    raw = f"```\n{json.dumps(PAYLOAD)}\n```"
    assert recover(raw, {}) == PAYLOAD


def test_fenced_block_wrapped_in_prose():
    raw = (
        "Sure! Here is the plan you asked for:\n\n"
        f"```json\n{json.dumps(PAYLOAD)}\n```\n\n"
        "Let me know if you need anything else."
    )
    assert recover(raw, {}) == PAYLOAD


def test_fenced_and_plain_recover_identically():
    plain = recover(json.dumps(PAYLOAD), {"fallback": True})
    fenced = recover(f"```json\n{json.dumps(PAYLOAD)}\n```", {"fallback": True})
    assert plain == fenced


def test_second_fenced_block_used_when_first_is_invalid():
    raw = "```\nnot json\n```\nthen\n```json\n{\"ok\": 1}\n```"
    assert recover(raw, {}) == {"ok": 1}


def test_prose_only_returns_fallback_unchanged():
    fallback = {"actions": [], "message": "fallback"}
    assert recover("I could not complete this request.", fallback) is fallback


def test_broken_json_returns_fallback():
    fallback = {"quality": "good"}
    assert recover('{"quality": "excellent", ', fallback) is fallback


def test_shape_mismatch_returns_fallback():
    fallback = {"actions": []}
    assert recover("[1, 2, 3]", fallback) is fallback
    assert recover('{"a": 1}', []) == []


def test_empty_and_none_input():
    fallback = {"x": 1}
    assert recover("", fallback) is fallback
    assert recover(None, fallback) is fallback


def test_fenced_payload_containing_code_fence():
    payload = {"actions": [{"type": "update", "sectionId": "s1", "content": "Run:\n```bash\nmake\n```\nthen test."}]}
    raw = f"```json\n{json.dumps(payload, indent=2)}\n```"
    assert recover(raw, {}) == payload


def test_outermost_object_in_prose():
    raw = 'Here is the result: {"quality": "good", "isComplete": true} Hope that helps!'
    assert recover(raw, {}) == {"quality": "good", "isComplete": True}


def test_outermost_span_respects_fallback_shape():
    fallback = {"actions": []}
    assert recover("Items: [1, 2] done", fallback) is fallback
    assert recover("Items: [1, 2] done", []) == [1, 2]
