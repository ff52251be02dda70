"""Plan, task and edit models plus their wire (camelCase) conversions."""

import re
from dataclasses import dataclass, field
from typing import Iterable, Optional

_GENERIC_SECTION_RE = re.compile(
    r'^(section|part|chapter|content|untitled)(\s*#?\s*\d+)?$', re.IGNORECASE
)

TASK_ACTIONS = ("create", "update")


def _text(value) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, (list, tuple)):
        value = ", ".join(str(v) for v in value)
    value = str(value).strip()
    return value or None


def _text_list(value) -> list[str]:
    if not value:
        return []
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, (list, tuple)):
        return []
    return [str(v).strip() for v in value if v is not None and str(v).strip()]


def _items(value) -> list:
    """Entries of a wire list; anything that is not a list counts as empty."""
    return list(value) if isinstance(value, (list, tuple)) else []


def _truthy(value) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("true", "yes", "1")
    return bool(value)


def normalize_section_names(names: Iterable) -> list[str]:
    """Strip, drop generic placeholders and de-duplicate, keeping order."""
    seen = set()
    result = []
    for name in _text_list(names):
        if _GENERIC_SECTION_RE.match(name):
            continue
        key = name.casefold()
        if key in seen:
            continue
        seen.add(key)
        result.append(name)
    return result


@dataclass
class Task:
    action: str = "create"
    section: str = ""
    description: str = ""
    done: bool = False

    @classmethod
    def from_dict(cls, data, existing_titles: Iterable[str] = ()) -> Optional["Task"]:
        """Build a task from a wire/provider dict; None when it names no section."""
        if not isinstance(data, dict):
            return None
        section = _text(data.get("section"))
        if not section:
            return None
        action = str(data.get("action", "")).strip().lower()
        if action not in TASK_ACTIONS:
            titles = {t.casefold() for t in existing_titles}
            action = "update" if section.casefold() in titles else "create"
        return cls(
            action=action,
            section=section,
            description=_text(data.get("description")) or "",
            done=_truthy(data.get("done", False)),
        )

    def to_dict(self) -> dict:
        return {
            "action": self.action,
            "section": self.section,
            "description": self.description,
            "done": self.done,
        }


@dataclass
class Action:
    """One edit for the caller: update an existing section id or create by title."""
    type: str = "update"
    section_id: str = ""
    content: str = ""

    @classmethod
    def from_dict(cls, data) -> Optional["Action"]:
        if not isinstance(data, dict):
            return None
        kind = str(data.get("type", "")).strip().lower()
        section_id = _text(data.get("sectionId") or data.get("section_id"))
        content = data.get("content")
        if kind not in TASK_ACTIONS or not section_id or not isinstance(content, str):
            return None
        return cls(type=kind, section_id=section_id, content=content)

    def to_dict(self) -> dict:
        return {"type": self.type, "sectionId": self.section_id, "content": self.content}


@dataclass
class PlanVariables:
    topic: Optional[str] = None
    target_length: Optional[str] = None
    document_type: Optional[str] = None
    target_audience: Optional[str] = None
    tone: Optional[str] = None
    original_instruction: Optional[str] = None
    focus_areas: list[str] = field(default_factory=list)
    criteria: Optional[str] = None
    has_questions: bool = False

    @classmethod
    def from_dict(cls, data) -> "PlanVariables":
        if not isinstance(data, dict):
            data = {}
        return cls(
            topic=_text(data.get("topic")),
            target_length=_text(data.get("targetLength")),
            document_type=_text(data.get("documentType")),
            target_audience=_text(data.get("targetAudience") or data.get("audience")),
            tone=_text(data.get("tone")),
            original_instruction=_text(data.get("originalInstruction")),
            focus_areas=_text_list(data.get("focusAreas")),
            criteria=_text(data.get("criteria")),
            has_questions=_truthy(data.get("hasQuestions", False)),
        )

    def to_dict(self) -> dict:
        return {
            "topic": self.topic,
            "targetLength": self.target_length,
            "documentType": self.document_type,
            "targetAudience": self.target_audience,
            "tone": self.tone,
            "originalInstruction": self.original_instruction,
            "focusAreas": list(self.focus_areas),
            "criteria": self.criteria,
            "hasQuestions": self.has_questions,
        }

    def describe(self) -> str:
        """Bullet list used as document context in prompts."""
        lines = [
            f"- Topic: {self.topic or 'Not specified'}",
            f"- Target Length: {self.target_length or 'comprehensive'}",
            f"- Document Type: {self.document_type or 'document'}",
            f"- Audience: {self.target_audience or 'general readers'}",
            f"- Tone: {self.tone or 'academic'}",
            f"- Focus Areas: {', '.join(self.focus_areas) or 'general coverage'}",
        ]
        if self.criteria:
            lines.append(f"- Special Criteria: {self.criteria}")
        return "\n".join(lines)


@dataclass
class Plan:
    variables: PlanVariables = field(default_factory=PlanVariables)
    questions: list[str] = field(default_factory=list)
    suggested_title: str = "Untitled Document"
    required_sections: list[str] = field(default_factory=list)
    tasks: list[Task] = field(default_factory=list)
    overall_goal: str = ""

    @property
    def needs_clarification(self) -> bool:
        return self.variables.has_questions

    @classmethod
    def fallback(cls, instruction: str) -> "Plan":
        """Single catch-all task used when the planner's answer is unusable."""
        return cls(
            variables=PlanVariables(original_instruction=instruction),
            suggested_title="Untitled Document",
            tasks=[Task(action="create", section="Content", description=instruction)],
            overall_goal=instruction,
        )

    @classmethod
    def from_payload(cls, data: dict, instruction: str, existing_titles: Iterable[str] = ()) -> "Plan":
        """Normalise a planner response.

        ``hasQuestions`` may sit in ``variables`` or at the top level.
        """
        existing_titles = list(existing_titles)
        variables = PlanVariables.from_dict(data.get("variables"))
        if _truthy(data.get("hasQuestions", False)):
            variables.has_questions = True
        if not variables.original_instruction:
            variables.original_instruction = instruction
        tasks = [
            t for t in (Task.from_dict(raw, existing_titles) for raw in _items(data.get("tasks")))
            if t is not None
        ]
        return cls(
            variables=variables,
            questions=_text_list(data.get("questions")),
            suggested_title=_text(data.get("suggestedTitle")) or "Untitled Document",
            required_sections=normalize_section_names(data.get("requiredSections")),
            tasks=tasks,
            overall_goal=_text(data.get("overallGoal")) or instruction,
        )

    @classmethod
    def from_dict(cls, data) -> "Plan":
        """Inverse of :meth:`to_dict`; preserves section and task order as stored."""
        if not isinstance(data, dict):
            data = {}
        return cls(
            variables=PlanVariables.from_dict(data.get("variables")),
            questions=_text_list(data.get("questions")),
            suggested_title=_text(data.get("suggestedTitle")) or "Untitled Document",
            required_sections=_text_list(data.get("requiredSections")),
            tasks=[t for t in (Task.from_dict(raw) for raw in _items(data.get("tasks"))) if t is not None],
            overall_goal=_text(data.get("overallGoal")) or "",
        )

    def to_dict(self) -> dict:
        return {
            "variables": self.variables.to_dict(),
            "questions": list(self.questions),
            "suggestedTitle": self.suggested_title,
            "requiredSections": list(self.required_sections),
            "tasks": [t.to_dict() for t in self.tasks],
            "overallGoal": self.overall_goal,
        }

    def ensure_tasks(self) -> "Plan":
        """Synthesize tasks from the required sections when the planner gave none."""
        if self.tasks:
            return self
        if self.required_sections:
            self.tasks = [
                Task(action="create", section=name, description=f"Write the {name} section")
                for name in self.required_sections
            ]
        else:
            instruction = self.variables.original_instruction or self.overall_goal
            self.tasks = [Task(action="create", section="Content", description=instruction)]
        return self

    @property
    def pending_tasks(self) -> list[Task]:
        return [t for t in self.tasks if not t.done]


@dataclass
class ReviewVerdict:
    quality: str = "good"
    is_complete: bool = True
    message: str = ""
    next_tasks: list[Task] = field(default_factory=list)
    improvements: list[str] = field(default_factory=list)

    @classmethod
    def from_payload(cls, data: dict, existing_titles: Iterable[str] = ()) -> "ReviewVerdict":
        existing_titles = list(existing_titles)
        next_tasks = []
        for raw in _items(data.get("nextTasks")):
            task = Task.from_dict(raw, existing_titles)
            if task is not None:
                task.done = False
                next_tasks.append(task)
        return cls(
            quality=str(data.get("quality") or "good").strip().lower(),
            is_complete=_truthy(data.get("isComplete", True)),
            message=_text(data.get("message")) or "",
            next_tasks=next_tasks,
            improvements=_text_list(data.get("improvements")),
        )
