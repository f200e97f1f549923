"""
Auto-extract backend for coaching sessions.

Pipeline:
1. Ask the extraction LLM to answer the archetype's first four questions
   straight from the entry
2. Parse and validate into an ExtractedContext
3. On any backend failure, or an empty result, fall back to the heuristic
   extractor

Graceful degradation: never returns an empty context.
"""

from typing import Optional

import structlog
from pydantic import ValidationError as PydanticValidationError

from story_coach.core.exceptions import ExtractionError, LLMError
from story_coach.domain.models.archetype import Archetype
from story_coach.domain.models.coaching import ExtractedContext
from story_coach.domain.models.entry import NarrativeEntry
from story_coach.llm.client import LLMClient
from story_coach.llm.prompts.extraction import (
    get_extraction_system_prompt,
    get_extraction_user_prompt,
    parse_extraction_response,
)
from story_coach.services.heuristic_extractor import HeuristicContextExtractor
from story_coach.services.question_bank import get_all_questions

log = structlog.get_logger(__name__)

EXTRACTION_QUESTION_COUNT = 4


class ContextExtractionService:
    """
    Service for extracting narrative context from an entry without a user.

    Uses the extraction LLM when one is supplied, the heuristic extractor
    otherwise or whenever the LLM path fails.
    """

    def __init__(
        self,
        llm_client: Optional[LLMClient] = None,
        heuristic: Optional[HeuristicContextExtractor] = None,
    ):
        """
        Args:
            llm_client: Extraction LLM client; None runs heuristics only
            heuristic: Fallback extractor (shared default if None)
        """
        self.llm = llm_client
        self.heuristic = heuristic or HeuristicContextExtractor()

    async def extract(self, entry: NarrativeEntry, archetype: Archetype) -> ExtractedContext:
        """Extract context, degrading to heuristics on backend failure."""
        if self.llm is None:
            return self.heuristic.extract(entry, archetype)

        try:
            context = await self.extract_with_llm(entry, archetype)
        except ExtractionError as e:
            log.warning(
                "context_extraction_fallback",
                entry_id=entry.id,
                archetype=archetype.value,
                error=e.message,
            )
            return self.heuristic.extract(entry, archetype)

        if context.is_empty():
            log.info("context_extraction_empty", entry_id=entry.id)
            return self.heuristic.extract(entry, archetype)

        return context

    async def extract_with_llm(
        self, entry: NarrativeEntry, archetype: Archetype
    ) -> ExtractedContext:
        """
        LLM-only extraction.

        Raises:
            ExtractionError: If the call fails or the reply cannot be used
        """
        if self.llm is None:
            raise ExtractionError("No extraction backend configured")

        questions = [
            q.question for q in get_all_questions(archetype)[:EXTRACTION_QUESTION_COUNT]
        ]
        try:
            response = await self.llm.complete(
                prompt=get_extraction_user_prompt(entry, archetype, questions),
                system=get_extraction_system_prompt(),
            )
            fields = parse_extraction_response(response.content)
            context = ExtractedContext(**fields)
        except LLMError as e:
            raise ExtractionError(f"Extraction backend failed: {e.message}") from e
        except PydanticValidationError as e:
            raise ExtractionError(f"Extraction reply did not validate: {e}") from e

        log.info(
            "context_extracted",
            entry_id=entry.id,
            archetype=archetype.value,
            fields=context.filled_fields(),
            latency_ms=round(response.latency_ms, 2),
        )
        return context
