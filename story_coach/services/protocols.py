"""
Service protocol definitions (interfaces).

Structural interfaces for the pluggable backends around a coaching session.
Any object with the matching async method can be passed in, which is how
tests swap in scripted answers and mocked backends.
"""

from typing import Optional, Protocol, Sequence

from story_coach.domain.models.archetype import Archetype
from story_coach.domain.models.coaching import CoachExchange, CoachPrompt, ExtractedContext
from story_coach.domain.models.entry import NarrativeEntry
from story_coach.llm.prompts.coaching import CoachReply


class IContextExtractor(Protocol):
    """
    Protocol for auto-extract backends.

    Fills an ExtractedContext from the entry alone, with no user involved.
    """

    async def extract(self, entry: NarrativeEntry, archetype: Archetype) -> ExtractedContext:
        ...


class ICoachResponder(Protocol):
    """
    Protocol for coaching responders.

    Reacts to one interview answer with a short acknowledgment and, when the
    answer was vague, one follow-up question.
    """

    async def respond(
        self,
        question: str,
        answer: str,
        archetype: Archetype,
        previous: Sequence[CoachExchange],
    ) -> CoachReply:
        """
        Args:
            question: Wording the user was shown
            answer: Their answer, stripped
            archetype: Story archetype steering the persona
            previous: Exchanges recorded so far

        Returns:
            CoachReply; implementations fall back to a stock acknowledgment
            rather than raise
        """
        ...


class IAnswerSource(Protocol):
    """
    Protocol for interview answer sources (terminal, scripted, ...).
    """

    async def ask(self, prompt: CoachPrompt, acknowledgment: Optional[str] = None) -> str:
        """
        Present a prompt and return the raw answer.

        Args:
            prompt: Question to present
            acknowledgment: Coach reaction to the previous answer, if any
        """
        ...
