"""Prompt builders for every phase of notebook generation."""

import json
from typing import Sequence

from .models.plan import Plan, Task
from .models.request import Section
from .utils.text import truncate_text

JSON_ONLY = (
    "You MUST respond with ONLY valid JSON, no markdown, no explanations, "
    "no code blocks. Just pure JSON."
)

SYSTEM_PLANNER = f"You are a document planning expert. {JSON_ONLY}"

SYSTEM_REFINER = (
    "You are a document planning expert. Update the plan based on the user's answers. "
    f"{JSON_ONLY}"
)

SYSTEM_WRITER = (
    "You are a technical writing assistant. Be detailed, comprehensive, and precise. "
    f"Write LONG, thorough content. {JSON_ONLY}"
)

SYSTEM_REVIEWER = (
    "You are a STRICT, critical reviewer. Set HIGH standards. Only approve truly "
    f"excellent work. {JSON_ONLY}"
)

SYSTEM_POSTPROCESSOR = (
    "You are a post-processing editor that makes generated content read as naturally "
    f"as a careful human author would write it. {JSON_ONLY}"
)

PLAN_SCHEMA = """{
  "variables": {
    "topic": "main subject from instruction",
    "targetLength": "ONLY if clearly specified (e.g. '5 pages'), otherwise null",
    "documentType": "ONLY if specified, otherwise null",
    "tone": "ONLY if specified, otherwise null",
    "focusAreas": ["ONLY specific topics mentioned, empty array if vague"],
    "targetAudience": "ONLY if specified, otherwise null",
    "criteria": "special instructions if any, otherwise null",
    "hasQuestions": true
  },
  "questions": ["one question per missing detail"],
  "suggestedTitle": "title based on topic",
  "requiredSections": ["Descriptive Section Name", "..."],
  "tasks": [
    {"action": "create", "section": "Descriptive Section Name", "description": "what to write", "done": false}
  ],
  "overallGoal": "create comprehensive document on [topic]"
}"""

NATURALNESS_PATTERNS = """Patterns to smooth out:
1. Uniform sentence length and repeated rhythm
2. Identical phrases reused across sections
3. Stiff formal transitions ("Furthermore", "Moreover") used back to back
4. Generic, detached examples where a specific detail would fit
5. Stacked adjectives and piled-up hedges
6. Stock openers such as "In today's fast-paced world"
7. Dense, ornate vocabulary where a plain word reads better"""


def _messages(system: str, user: str) -> list[dict[str, str]]:
    return [
        {"role": "system", "content": system},
        {"role": "user", "content": user},
    ]


def _sections_block(sections: Sequence[Section]) -> str:
    if not sections:
        return "(no sections yet)"
    return "\n\n".join(
        f"## {s.title} (id: {s.id})\n{s.content or '(empty)'}" for s in sections
    )


def planning_messages(instruction: str, section_titles: Sequence[str]) -> list[dict[str, str]]:
    prompt = (
        "You are an AI document architect. Analyze the user's instruction and decide whether "
        "you have ALL the information needed to create a comprehensive document.\n\n"
        f"INSTRUCTION: {instruction}\n\n"
        f"CURRENT SECTIONS: {', '.join(section_titles) or 'None'}\n\n"
        "Check the instruction for:\n"
        "1. FORMAT: is the document type specified?\n"
        "2. LENGTH: is the target length clear (pages, word count)?\n"
        "3. SCOPE: is the specific focus clear?\n"
        "4. AUDIENCE: is the target audience specified?\n"
        "5. TONE: is the writing style specified?\n\n"
        "If any of these is unclear, set hasQuestions to true and list specific questions. "
        "Otherwise set hasQuestions to false and fill requiredSections and tasks.\n\n"
        "requiredSections must be distinct, DESCRIPTIVE names that say what the section covers. "
        "Never use generic placeholders such as \"Section 1\", \"Part 2\" or \"Content\".\n\n"
        f"Return JSON in this exact format:\n{PLAN_SCHEMA}\n\n"
        "IMPORTANT: Return ONLY the JSON object, nothing else."
    )
    return _messages(SYSTEM_PLANNER, prompt)


def refinement_messages(plan: Plan, questions: Sequence[str], answers: Sequence[str]) -> list[dict[str, str]]:
    transcript = "\n".join(
        f"Q{i}: {q}\nA{i}: {a}" for i, (q, a) in enumerate(zip(questions, answers), start=1)
    )
    prompt = (
        f"ORIGINAL INSTRUCTION: {plan.variables.original_instruction or plan.overall_goal}\n\n"
        f"The user was asked clarifying questions and answered:\n{transcript}\n\n"
        f"CURRENT PLAN VARIABLES:\n{json.dumps(plan.variables.to_dict(), indent=2)}\n\n"
        "Update the variables with the user's answers, set hasQuestions to false, and produce "
        "the full plan with descriptive requiredSections and one task per section.\n\n"
        f"Return the plan in this JSON format:\n{PLAN_SCHEMA}"
    )
    return _messages(SYSTEM_REFINER, prompt)


def execution_messages(
    plan: Plan,
    sections: Sequence[Section],
    task: Task,
    substantial_count: int,
    total_required: int,
    word_budget: int,
) -> list[dict[str, str]]:
    prompt = (
        "You are executing a document creation plan. Write COMPREHENSIVE, DETAILED and "
        "SUBSTANTIAL content.\n\n"
        f"DOCUMENT CONTEXT:\n{plan.variables.describe()}\n\n"
        f"OVERALL GOAL: {plan.overall_goal}\n\n"
        f"PROGRESS: {substantial_count} of {total_required} required sections already have "
        "substantial content.\n\n"
        f"CURRENT SECTIONS:\n{_sections_block(sections)}\n\n"
        f"NEXT TASK: {task.action} \"{task.section}\" - {task.description}\n\n"
        "GUIDELINES:\n"
        f"- Write about {word_budget} words for this task\n"
        f"- Use a {plan.variables.tone or 'academic'} tone throughout\n"
        "- Include specific details, examples and explanations\n"
        "- To change an existing section use type \"update\" with its id as sectionId; "
        "to add one use type \"create\" with the new title as sectionId\n\n"
        "Respond with JSON:\n"
        "{\n"
        "  \"actions\": [\n"
        "    {\"type\": \"update\" | \"create\", \"sectionId\": \"section-id-or-new-title\", "
        "\"content\": \"full section content\"}\n"
        "  ],\n"
        "  \"message\": \"what you did\"\n"
        "}\n\n"
        "CRITICAL: Return ONLY the JSON object with your actions, nothing else."
    )
    return _messages(SYSTEM_WRITER, prompt)


def review_messages(
    instruction: str,
    plan: Plan,
    sections: Sequence[Section],
    preview_chars: int,
) -> list[dict[str, str]]:
    preview = "\n\n".join(
        f"## {s.title} ({len(s.content)} chars)\n{truncate_text(s.content, preview_chars) or '(empty)'}"
        for s in sections
    ) or "(no sections yet)"
    prompt = (
        f"You are a CRITICAL and THOROUGH reviewer of a {plan.variables.document_type or 'document'}.\n\n"
        f"INSTRUCTION: {plan.variables.original_instruction or instruction}\n\n"
        f"DOCUMENT CONTEXT:\n{plan.variables.describe()}\n\n"
        f"REQUIRED SECTIONS: {', '.join(plan.required_sections) or 'not fixed'}\n\n"
        f"SECTION PREVIEWS:\n{preview}\n\n"
        "REVIEW CRITERIA:\n"
        "- Is every required section present and substantial?\n"
        "- Are any sections empty or thin?\n"
        "- Is the document complete according to the plan?\n\n"
        "Respond with JSON:\n"
        "{\n"
        "  \"quality\": \"excellent\" | \"good\" | \"needs_improvement\",\n"
        "  \"improvements\": [\"specific improvement\"],\n"
        "  \"nextTasks\": [{\"action\": \"update\" | \"create\", \"section\": \"section name\", "
        "\"description\": \"specific work needed\", \"done\": false}],\n"
        "  \"isComplete\": true | false,\n"
        "  \"message\": \"honest review summary\"\n"
        "}"
    )
    return _messages(SYSTEM_REVIEWER, prompt)


def postprocess_messages(sections: Sequence[Section]) -> list[dict[str, str]]:
    prompt = (
        "Review all sections and make subtle, non-substantive edits so the text reads "
        "naturally. Do not change facts, structure or meaning.\n\n"
        f"CURRENT SECTIONS:\n{_sections_block(sections)}\n\n"
        f"{NATURALNESS_PATTERNS}\n\n"
        "Where a section needs it: vary sentence length, use natural transitions and plain "
        "vocabulary. Leave sections that already read well untouched.\n\n"
        "Respond with JSON:\n"
        "{\n"
        "  \"actions\": [{\"type\": \"update\", \"sectionId\": \"section-id\", \"content\": \"improved content\"}],\n"
        "  \"patternsFound\": [\"patterns detected\"],\n"
        "  \"message\": \"summary of changes made\"\n"
        "}"
    )
    return _messages(SYSTEM_POSTPROCESSOR, prompt)
