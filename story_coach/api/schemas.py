"""
API request/response schemas.

Pydantic models for API validation and serialization. Domain records are
returned as-is; these wrap requests and the few responses that need more.
"""

from typing import List, Optional

from pydantic import BaseModel, Field

from story_coach.domain.models.archetype import Archetype
from story_coach.domain.models.coaching import (
    CoachMode,
    CoachPrompt,
    CoachQuestion,
    CoachSession,
    CoachTurn,
)
from story_coach.domain.models.entry import NarrativeEntry
from story_coach.domain.models.evaluation import BatchItem
from story_coach.domain.models.story import Framework, GeneratedStory


# ============ ARCHETYPE SCHEMAS ============


class QuestionListResponse(BaseModel):
    archetype: Archetype
    questions: List[CoachQuestion]


# ============ COACHING SCHEMAS ============


class StartSessionRequest(BaseModel):
    """Request to start a coaching session in any mode."""

    entry: NarrativeEntry
    archetype: Optional[Archetype] = Field(
        default=None, description="Detected from the entry when omitted"
    )
    mode: CoachMode = CoachMode.INTERACTIVE


class StartSessionResponse(BaseModel):
    """
    Started session.

    Interactive sessions carry the first prompt; non-interactive sessions
    carry the question list instead; auto-extract sessions are already
    complete.
    """

    turn: CoachTurn
    questions: List[CoachQuestion] = Field(default_factory=list)


class AnswerRequest(BaseModel):
    """One stateless interview step: the client sends the whole session back."""

    session: CoachSession
    prompt: CoachPrompt
    answer: str = Field(default="", max_length=5000)


# ============ STORY SCHEMAS ============


class GenerateRequest(BaseModel):
    entry: NarrativeEntry
    framework: Optional[Framework] = None
    archetype: Optional[Archetype] = None
    session: Optional[CoachSession] = None


class EntryRequest(BaseModel):
    entry: NarrativeEntry
    framework: Optional[Framework] = None


class EvaluateRequest(BaseModel):
    story: GeneratedStory


class BatchRequest(BaseModel):
    entries: List[NarrativeEntry] = Field(..., min_length=1, max_length=100)
    framework: Optional[Framework] = None


class BatchResponse(BaseModel):
    items: List[BatchItem]
    failed: int = 0
