"""
Archetype classification prompts.

The classifier returns a primary archetype and up to a few alternatives;
the detector sanitises whatever comes back before building a detection.
"""

from typing import Any, Dict, List

from story_coach.core.exceptions import LLMResponseParseError
from story_coach.domain.models.archetype import Archetype
from story_coach.domain.models.entry import NarrativeEntry
from story_coach.llm.prompts.common import parse_json_object

ARCHETYPE_DESCRIPTIONS: Dict[Archetype, str] = {
    Archetype.FIREFIGHTER: "Crisis response. Urgency, a moment something broke, quick thinking under pressure.",
    Archetype.ARCHITECT: "System design. Vision, trade-offs, something built to last.",
    Archetype.DIPLOMAT: "Stakeholder alignment. Conflicting goals, influence, consensus building.",
    Archetype.MULTIPLIER: "Force multiplication. A tool, framework or training that others adopted.",
    Archetype.DETECTIVE: "Investigation. A mystery nobody could explain, traced to a root cause.",
    Archetype.PIONEER: "First mover. Unknown territory, no docs, a trail left for others.",
    Archetype.TURNAROUND: "Recovery. Inherited a mess, before/after transformation.",
    Archetype.PREVENTER: "Risk prevention. Spotted a risk early; the story is what did not happen.",
}


def get_archetype_system_prompt() -> str:
    """System prompt listing the eight archetypes and the reply format."""
    lines = "\n".join(
        f"- {archetype.value}: {description}"
        for archetype, description in ARCHETYPE_DESCRIPTIONS.items()
    )
    return f"""You classify first-person work stories into narrative archetypes.

Archetypes:
{lines}

Respond with JSON only:
{{
  "primary": {{"archetype": "<one of the archetypes>", "confidence": 0.0-1.0, "reasoning": "one sentence"}},
  "alternatives": [
    {{"archetype": "<archetype>", "confidence": 0.0-1.0, "reasoning": "one sentence on how it differs from the primary"}}
  ]
}}

Give at most two alternatives, each with lower confidence than the primary."""


def get_archetype_user_prompt(entry: NarrativeEntry) -> str:
    body = entry.full_content or entry.description or ""
    phases = "\n".join(f"- {p.name}: {p.summary}" for p in entry.phases)
    prompt = f"""Title: {entry.title}
Description: {entry.description or "(none)"}

Content:
{body or "(none)"}"""
    if phases:
        prompt += f"\n\nPhases:\n{phases}"
    if entry.skills:
        prompt += f"\n\nSkills: {', '.join(entry.skills)}"
    return prompt


def parse_archetype_response(response_text: str) -> List[Dict[str, Any]]:
    """Return the raw candidates, primary first.

    Shape checking is shallow: values are left for the detector to clamp
    and filter.

    Raises:
        LLMResponseParseError: If the reply has no usable JSON or no primary
    """
    data = parse_json_object(response_text)
    primary = data.get("primary")
    if isinstance(primary, str):
        primary = {"archetype": primary, "confidence": data.get("confidence")}
    if not isinstance(primary, dict):
        raise LLMResponseParseError("Archetype response has no primary")

    candidates = [primary]
    alternatives = data.get("alternatives") or []
    if isinstance(alternatives, list):
        candidates.extend(a for a in alternatives if isinstance(a, dict))
    return candidates
