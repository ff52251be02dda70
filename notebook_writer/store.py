"""JSON notebook file: the caller-side section store the CLI drives the engine with."""

import json
import os
import uuid
from pathlib import Path
from typing import Iterable, Optional

from loguru import logger

from .models.plan import Action
from .models.request import GenerationRequest, GenerationResult, Section


class NotebookFile:
    """Title, ordered sections and the engine's continuation blob, kept in one file."""

    def __init__(self, path: Path, title: str = "", sections: Optional[list[dict]] = None,
                 ai_memory: Optional[dict] = None):
        self.path = Path(path)
        self.title = title
        self.sections = sections or []
        self.ai_memory = ai_memory

    @classmethod
    def load(cls, path: Path) -> "NotebookFile":
        """Open an existing notebook, or start an empty one if the file is missing."""
        path = Path(path)
        if not path.exists():
            return cls(path)
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
        return cls(
            path,
            title=data.get("title", ""),
            sections=data.get("sections", []),
            ai_memory=data.get("aiMemory"),
        )

    def save(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_name(self.path.name + ".tmp")
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(self.to_dict(), f, ensure_ascii=False, indent=2)
        os.replace(tmp_path, self.path)

    def to_dict(self) -> dict:
        return {"title": self.title, "sections": self.sections, "aiMemory": self.ai_memory}

    def build_request(self, instruction: str, correlation_id: str = "") -> GenerationRequest:
        return GenerationRequest(
            instruction=instruction,
            sections=[Section(**s) for s in self.sections],
            continuation_state=self.ai_memory,
            correlation_id=correlation_id or self.path.stem,
        )

    def _find(self, key: str, field: str) -> Optional[dict]:
        return next((s for s in self.sections if s[field] == key), None)

    def apply_actions(self, actions: Iterable[Action]) -> int:
        """Apply engine edits; returns how many sections changed.

        Updates address sections by id, creates by title. A create naming an
        existing title updates that section; an update naming an unknown id
        creates a section titled by it.
        """
        changed = 0
        for action in actions:
            target = self._find(action.section_id, "id") or self._find(action.section_id, "title")
            if target is None:
                if action.type == "update":
                    logger.warning(f"Update for unknown section {action.section_id!r}, creating it")
                target = {"id": uuid.uuid4().hex, "title": action.section_id, "content": ""}
                self.sections.append(target)
            target["content"] = action.content
            changed += 1
        return changed

    def apply_result(self, result: GenerationResult) -> int:
        changed = self.apply_actions(result.actions)
        self.ai_memory = result.continuation_state
        if result.suggested_title and not self.title:
            self.title = result.suggested_title
        return changed
