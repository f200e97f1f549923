"""
Context extraction prompts.

Used by auto-extract coaching: the LLM infers answers to the first few
question-bank questions straight from the entry, with no user present.
"""

from typing import Any, Dict, List, Sequence

from story_coach.domain.models.archetype import Archetype
from story_coach.domain.models.entry import NarrativeEntry
from story_coach.llm.prompts.common import optional_text, parse_json_object

# Reply keys (camelCase, as the model tends to write them) -> ExtractedContext fields
RESPONSE_FIELDS = {
    "realStory": "real_story",
    "obstacle": "obstacle",
    "keyDecision": "key_decision",
    "counterfactual": "counterfactual",
    "metric": "metric",
    "evidence": "evidence",
    "impactType": "impact_type",
    "learning": "learning",
}


def get_extraction_system_prompt() -> str:
    return (
        "You are extracting rich story details from a journal entry. "
        "Extract specific details present (names, numbers, dates, metrics) and "
        "infer what likely happened from context clues. Never invent numbers "
        "that are not in the entry."
    )


def get_extraction_user_prompt(
    entry: NarrativeEntry, archetype: Archetype, questions: Sequence[str]
) -> str:
    """Build the user prompt.

    Args:
        entry: Source narrative
        archetype: Detected or chosen archetype
        questions: Coach questions the extraction should answer
    """
    question_list = "\n- ".join(questions)
    return f"""Entry Title: {entry.title}
Entry Content: {entry.full_content or entry.description or ""}

Story Type: {archetype.value.upper()}

Based on this entry, infer answers to these Story Coach questions:
- {question_list}

Respond with JSON only:
{{
  "realStory": "The core narrative in 1-2 sentences",
  "obstacle": "The main challenge or problem faced",
  "keyDecision": "The critical decision or action taken",
  "counterfactual": "What would have happened without intervention",
  "metric": "Quantified impact (number, percentage, time)",
  "namedPeople": ["Names of people mentioned"],
  "learning": "Key takeaway or lesson"
}}

Only include fields where you have reasonable confidence. Use null for uncertain fields."""


def parse_extraction_response(response_text: str) -> Dict[str, Any]:
    """Map an extraction reply onto ExtractedContext field names.

    Null and placeholder values are dropped. Snake_case keys are accepted too.

    Raises:
        LLMResponseParseError: If the reply has no usable JSON
    """
    data = parse_json_object(response_text)
    fields: Dict[str, Any] = {}

    for key, field_name in RESPONSE_FIELDS.items():
        value = optional_text(data.get(key, data.get(field_name)))
        if isinstance(value, str):
            fields[field_name] = value

    people = data.get("namedPeople", data.get("named_people")) or []
    names: List[str] = []
    if isinstance(people, list):
        names = [p.strip() for p in people if isinstance(p, str) and p.strip()]
    if names:
        fields["named_people"] = names

    return fields
