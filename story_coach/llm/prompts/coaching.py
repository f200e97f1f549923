"""
Coaching persona prompts.

After each interview answer the coach replies with a short acknowledgment
and, when the answer was vague, one probing follow-up.
"""

from dataclasses import dataclass
from typing import Optional, Sequence

from story_coach.domain.models.archetype import Archetype
from story_coach.domain.models.coaching import CoachExchange
from story_coach.llm.prompts.common import optional_text, parse_json_object

COACH_PERSONA = """You are a Story Coach - part journalist, part mentor. You're interviewing someone about a career achievement to extract the compelling story beneath the surface.

Your style:
- Direct but warm
- Curious, not judgmental
- You dig for specifics: names, numbers, moments
- One short response at a time

Never use:
- Corporate jargon
- Phrases like "That's great!" or "Awesome!"
- Long responses (2 sentences max)

Your job is to pull out what they KNOW but didn't WRITE."""

FALLBACK_ACKNOWLEDGMENT = "Got it. Let me note that down."


@dataclass
class CoachReply:
    acknowledgment: str
    follow_up: Optional[str] = None


def get_coach_user_prompt(
    question: str,
    answer: str,
    archetype: Archetype,
    previous: Sequence[CoachExchange],
) -> str:
    history = "\n\n".join(
        f"Q: {e.question}\nA: {e.answer}" for e in previous if not e.skipped
    )
    return f"""Story Type: {archetype.value.upper()}

Previous conversation:
{history or "(Just started)"}

You just asked: "{question}"

They answered: "{answer}"

Respond with JSON only:
{{
  "acknowledgment": "Brief acknowledgment (1 sentence, showing you heard the specific detail)",
  "followUp": "Optional probing question if their answer was vague (null if it was specific enough)"
}}"""


def parse_coach_response(response_text: str) -> CoachReply:
    """
    Raises:
        LLMResponseParseError: If the reply has no usable JSON
    """
    data = parse_json_object(response_text)
    acknowledgment = optional_text(data.get("acknowledgment"))
    follow_up = optional_text(data.get("followUp", data.get("follow_up")))
    return CoachReply(
        acknowledgment=acknowledgment if isinstance(acknowledgment, str) else FALLBACK_ACKNOWLEDGMENT,
        follow_up=follow_up if isinstance(follow_up, str) else None,
    )
