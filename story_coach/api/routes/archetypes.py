"""
Archetype API routes.

Endpoints for archetype detection and the per-archetype question bank.
"""

from fastapi import APIRouter
import structlog

from story_coach.api.dependencies import StoryCoachDep
from story_coach.api.schemas import QuestionListResponse
from story_coach.domain.models.archetype import Archetype, ArchetypeDetection
from story_coach.domain.models.entry import NarrativeEntry
from story_coach.services.question_bank import get_all_questions

log = structlog.get_logger(__name__)

router = APIRouter(prefix="/archetypes", tags=["archetypes"])


@router.post("/detect", response_model=ArchetypeDetection)
async def detect_archetype(entry: NarrativeEntry, service: StoryCoachDep) -> ArchetypeDetection:
    """Classify an entry. Always answers, falling back to heuristics."""
    return await service.detect(entry)


@router.get("/{archetype}/questions", response_model=QuestionListResponse)
async def list_questions(archetype: Archetype) -> QuestionListResponse:
    """The six interview questions for an archetype, in order."""
    return QuestionListResponse(archetype=archetype, questions=list(get_all_questions(archetype)))
