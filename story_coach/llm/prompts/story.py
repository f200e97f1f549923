"""
Story composition prompts.

The reply must carry exactly the framework's section keys; the generator
treats anything else as a malformed response.
"""

from typing import Any, Dict, Optional

from story_coach.core.exceptions import LLMResponseParseError
from story_coach.domain.models.archetype import Archetype
from story_coach.domain.models.coaching import ExtractedContext
from story_coach.domain.models.entry import NarrativeEntry
from story_coach.domain.models.story import FRAMEWORK_SECTIONS, Framework
from story_coach.llm.prompts.common import parse_json_object

ARCHETYPE_GUIDANCE: Dict[Archetype, str] = {
    Archetype.FIREFIGHTER: "This is a CRISIS RESPONSE story. Emphasize urgency and quick thinking.",
    Archetype.ARCHITECT: "This is a SYSTEM DESIGN story. Emphasize vision, trade-offs, and lasting impact.",
    Archetype.DIPLOMAT: "This is a STAKEHOLDER ALIGNMENT story. Emphasize influence and consensus building.",
    Archetype.MULTIPLIER: "This is a FORCE MULTIPLICATION story. Emphasize leverage and compound impact.",
    Archetype.DETECTIVE: "This is an INVESTIGATION story. Emphasize the root-cause discovery.",
    Archetype.PIONEER: "This is a FIRST MOVER story. Emphasize exploring unknown territory.",
    Archetype.TURNAROUND: "This is a RECOVERY story. Emphasize the before/after transformation.",
    Archetype.PREVENTER: "This is a RISK PREVENTION story. Emphasize what didn't happen because of you.",
}

STORY_SYSTEM_PROMPT = """You turn first-person work journal entries into career stories.

Rules:
- Open with a one-sentence hook that names a concrete detail: a time, a number, a person, or what was at stake.
- Use only facts present in the entry or the coaching notes. Never invent names or numbers.
- Evidence may cite only the activity ids listed in the prompt, or quote the entry.
- Respond with JSON only."""


def get_story_user_prompt(
    entry: NarrativeEntry,
    framework: Framework,
    archetype: Optional[Archetype] = None,
    context: Optional[ExtractedContext] = None,
) -> str:
    keys = FRAMEWORK_SECTIONS[framework]
    sections_shape = ",\n    ".join(
        f'"{k}": {{"summary": "...", "evidence": [{{"activityId": "...", "description": "..."}}]}}'
        for k in keys
    )

    prompt = f"""## Framework
{framework.value}: {", ".join(keys)}

## Journal Entry
Title: {entry.title}
Description: {entry.description or "(none)"}
Content:
{entry.full_content or "(none)"}

Activity ids: {", ".join(entry.all_activity_ids()) or "(none)"}"""

    if archetype is not None:
        prompt += f"\n\n## Story Type\n{ARCHETYPE_GUIDANCE[archetype]}"

    if context is not None and not context.is_empty():
        notes = "\n".join(
            f"- {name}: {', '.join(value) if isinstance(value, list) else value}"
            for name, value in context.model_dump().items()
            if value
        )
        prompt += (
            "\n\n## Coaching Notes\nPlace each of these specifics in the section it "
            f"belongs to:\n{notes}"
        )

    prompt += f"""

Respond with JSON only:
{{
  "title": "...",
  "hook": "...",
  "sections": {{
    {sections_shape}
  }},
  "reasoning": "one sentence on why this framing fits"
}}"""
    return prompt


def parse_story_response(response_text: str) -> Dict[str, Any]:
    """Return the raw story payload.

    Raises:
        LLMResponseParseError: If the reply has no JSON or no sections object
    """
    data = parse_json_object(response_text)
    if not isinstance(data.get("sections"), dict):
        raise LLMResponseParseError("Story response has no sections object")
    return data
