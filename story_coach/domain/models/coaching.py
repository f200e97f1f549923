"""Coaching session domain models.

This module defines the interview state machine records.

Core Models:
    - CoachQuestion: One immutable question-bank prompt
    - CoachExchange: One recorded question/answer pair (append-only)
    - ExtractedContext: Structured narrative facts accumulated from answers
    - CoachSession: One interview instance
    - CoachPrompt / CoachTurn: Emissions of the pure transition function
    - QuestionSheet: Non-interactive output, the questions with no answers

Session Lifecycle:
    1. Started in dig phase, status in_progress (interactive mode)
    2. Each answer returns a new session copy with one more exchange
    3. Phase advances dig -> impact -> growth -> complete, never backwards
    4. Status: in_progress -> completed; non-interactive sessions are skipped
"""

from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from story_coach.domain.models.archetype import Archetype


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class CoachPhase(str, Enum):
    """Interview phase. Only advances in declaration order."""

    DIG = "dig"
    IMPACT = "impact"
    GROWTH = "growth"
    COMPLETE = "complete"


# Phases that carry bank questions, in interview order
QUESTION_PHASES = (CoachPhase.DIG, CoachPhase.IMPACT, CoachPhase.GROWTH)

PHASE_ORDER = {phase: index for index, phase in enumerate(CoachPhase)}


class CoachMode(str, Enum):
    """Session driver."""

    NON_INTERACTIVE = "non_interactive"
    AUTO_EXTRACT = "auto_extract"
    INTERACTIVE = "interactive"


class SessionStatus(str, Enum):
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    SKIPPED = "skipped"


class CoachQuestion(BaseModel):
    """One interview prompt from the question bank."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(description="Bank id, e.g. 'ff-dig-1'")
    phase: CoachPhase
    question: str
    hint: Optional[str] = None

    @field_validator("phase")
    @classmethod
    def phase_has_questions(cls, v: CoachPhase) -> CoachPhase:
        if v == CoachPhase.COMPLETE:
            raise ValueError("questions cannot belong to the complete phase")
        return v


class CoachExchange(BaseModel):
    """One question/answer pair inside a session.

    Skipped questions and non-answers are recorded with skipped=True and an
    empty or verbatim answer; they never touch the extracted context.
    """

    question_id: str
    question: str
    answer: str = ""
    phase: CoachPhase
    timestamp: datetime = Field(default_factory=utc_now)
    skipped: bool = False
    is_follow_up: bool = False


class ExtractedContext(BaseModel):
    """Structured narrative facts pulled out of an interview or an entry.

    Every field is optional. Accumulation rules live in
    story_coach.services.context_accumulator.
    """

    real_story: Optional[str] = None
    obstacle: Optional[str] = None
    key_decision: Optional[str] = None
    named_people: List[str] = Field(default_factory=list)
    counterfactual: Optional[str] = None
    metric: Optional[str] = None
    evidence: Optional[str] = None
    impact_type: Optional[str] = None
    learning: Optional[str] = None

    def filled_fields(self) -> List[str]:
        """Names of the fields that carry a value, in declaration order."""
        return [name for name, value in self.model_dump().items() if value]

    def is_empty(self) -> bool:
        return not self.filled_fields()


class CoachSession(BaseModel):
    """One interview instance, owned by a single driver for its lifetime.

    Attributes:
        - questions_asked: Every recorded exchange, follow-ups and skips included
        - bank_position: Question-bank slots consumed so far; this, not
          questions_asked, positions the next bank question
        - consecutive_non_answers: Running count reset by any real answer
        - flags: Human-readable notes raised during the interview
          (e.g. a phase abandoned after repeated non-answers)
    """

    id: str
    entry_id: str
    archetype: Archetype
    mode: CoachMode = CoachMode.INTERACTIVE
    exchanges: List[CoachExchange] = Field(default_factory=list)
    extracted_context: ExtractedContext = Field(default_factory=ExtractedContext)
    current_phase: CoachPhase = CoachPhase.DIG
    questions_asked: int = Field(default=0, ge=0)
    bank_position: int = Field(default=0, ge=0)
    consecutive_non_answers: int = Field(default=0, ge=0)
    flags: List[str] = Field(default_factory=list)
    status: SessionStatus = SessionStatus.IN_PROGRESS
    started_at: datetime = Field(default_factory=utc_now)
    completed_at: Optional[datetime] = None

    @property
    def is_finished(self) -> bool:
        return self.status != SessionStatus.IN_PROGRESS


class CoachPrompt(BaseModel):
    """A question the engine wants answered next.

    For a follow-up, ``question`` is still the bank question it follows up on and
    ``text`` carries the follow-up wording.
    """

    question: CoachQuestion
    text: str
    is_follow_up: bool = False
    position: int = Field(ge=1, description="1-based bank slot, for progress display")

    @property
    def question_id(self) -> str:
        if self.is_follow_up:
            return f"{self.question.id}-followup"
        return self.question.id

    @property
    def phase(self) -> CoachPhase:
        return self.question.phase


class QuestionSheet(BaseModel):
    """A skipped session and the bank questions it would have asked, in order."""

    session: CoachSession
    questions: List[CoachQuestion]


class CoachTurn(BaseModel):
    """Result of one state transition: the new session and what to ask next."""

    session: CoachSession
    prompt: Optional[CoachPrompt] = None
    acknowledgment: Optional[str] = None

    @property
    def done(self) -> bool:
        return self.prompt is None
