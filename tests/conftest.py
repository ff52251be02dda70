"""Shared fixtures: scripted generators and sample sections."""

import json
import pytest
from unittest.mock import Mock

from notebook_writer.config import EngineConfig
from notebook_writer.engine import PhaseEngine
from notebook_writer.providers.fallback import Completion


def _completion(response):
    if isinstance(response, BaseException):
        return response
    if not isinstance(response, str):
        response = json.dumps(response)
    return Completion(content=response, model_id="test-model", provider_id="test")


@pytest.fixture
def scripted_generator():
    """Factory for a generator that answers with the given responses in order.

    Dicts are serialised to JSON, strings are returned verbatim and
    exceptions are raised.
    """
    def factory(*responses):
        generator = Mock()
        generator.generate.side_effect = [_completion(r) for r in responses]
        return generator
    return factory


@pytest.fixture
def make_engine(scripted_generator):
    def factory(*responses, **config):
        generator = scripted_generator(*responses)
        return PhaseEngine(generator, EngineConfig(**config)), generator
    return factory


@pytest.fixture
def lighthouse_plan():
    return {
        "variables": {
            "topic": "lighthouses",
            "targetLength": "2 pages",
            "documentType": "guide",
            "hasQuestions": False,
        },
        "suggestedTitle": "A Guide to Lighthouses",
        "requiredSections": ["History of Lighthouses", "How a Lighthouse Works"],
        "tasks": [],
    }


@pytest.fixture
def plan_blob():
    """A continuation-state plan with the first of three tasks already done."""
    return {
        "variables": {"topic": "bridges", "targetLength": "3 pages", "originalInstruction": "write about bridges"},
        "questions": [],
        "suggestedTitle": "Bridges",
        "requiredSections": ["Materials", "Design Loads", "Case Studies"],
        "tasks": [
            {"action": "create", "section": "Materials", "description": "Write Materials", "done": True},
            {"action": "create", "section": "Design Loads", "description": "Write Design Loads", "done": False},
            {"action": "create", "section": "Case Studies", "description": "Write Case Studies", "done": False},
        ],
        "overallGoal": "write about bridges",
    }
