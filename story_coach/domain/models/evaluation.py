"""Evaluation, comparison and pipeline result models."""

from datetime import datetime, timezone
from typing import List, Optional

from pydantic import BaseModel, Field

from story_coach.domain.models.archetype import Archetype, ArchetypeDetection
from story_coach.domain.models.coaching import CoachSession
from story_coach.domain.models.story import Framework, GeneratedStory


class EvaluationBreakdown(BaseModel):
    """Per-dimension rubric scores, each in [0, 10]."""

    specificity: float = Field(ge=0.0, le=10.0)
    compelling_hook: float = Field(ge=0.0, le=10.0)
    evidence_quality: float = Field(ge=0.0, le=10.0)
    archetype_fit: float = Field(ge=0.0, le=10.0)
    actionable_impact: float = Field(ge=0.0, le=10.0)


class StoryEvaluation(BaseModel):
    """Scoring result. No timestamp, so equal stories give equal evaluations."""

    story_id: str
    score: float = Field(ge=0.0, le=10.0)
    breakdown: EvaluationBreakdown
    suggestions: List[str] = Field(default_factory=list)
    coach_comment: str


class StoryVariant(BaseModel):
    story: GeneratedStory
    evaluation: StoryEvaluation


class CoachedStoryVariant(StoryVariant):
    session: CoachSession


class Improvement(BaseModel):
    """Coaching value.

    percent_improvement is None when the basic score is zero.
    """

    score_delta: float
    percent_improvement: Optional[float] = None
    key_differences: List[str] = Field(default_factory=list)


class ComparisonResult(BaseModel):
    entry_id: str
    archetype: Archetype
    framework: Framework
    basic: StoryVariant
    enhanced: CoachedStoryVariant
    improvement: Improvement
    compared_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class PipelineResult(BaseModel):
    """Output of one unattended detect -> coach -> generate -> evaluate run."""

    entry_id: str
    detection: ArchetypeDetection
    session: CoachSession
    story: GeneratedStory
    evaluation: StoryEvaluation


class CoachedStoryResult(BaseModel):
    """Output of coach -> generate -> evaluate for one entry."""

    entry_id: str
    session: CoachSession
    story: GeneratedStory
    evaluation: StoryEvaluation


class BatchItem(BaseModel):
    """One entry's outcome inside a batch run: a result or an error message."""

    entry_id: str
    result: Optional[PipelineResult] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.result is not None
