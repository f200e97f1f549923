"""Domain models package."""

from .entry import EntryPhase, NarrativeEntry
from .archetype import (
    ARCHETYPE_ORDER,
    Archetype,
    ArchetypeCandidate,
    ArchetypeDetection,
    ArchetypeSignals,
)
from .coaching import (
    CoachExchange,
    CoachMode,
    CoachPhase,
    CoachPrompt,
    CoachQuestion,
    CoachSession,
    CoachTurn,
    ExtractedContext,
    QuestionSheet,
    SessionStatus,
)
from .story import FRAMEWORK_SECTIONS, EvidenceRef, Framework, GeneratedStory, StorySection
from .evaluation import (
    BatchItem,
    CoachedStoryResult,
    CoachedStoryVariant,
    ComparisonResult,
    EvaluationBreakdown,
    Improvement,
    PipelineResult,
    StoryEvaluation,
    StoryVariant,
)

__all__ = [
    "EntryPhase",
    "NarrativeEntry",
    "ARCHETYPE_ORDER",
    "Archetype",
    "ArchetypeCandidate",
    "ArchetypeDetection",
    "ArchetypeSignals",
    "CoachExchange",
    "CoachMode",
    "CoachPhase",
    "CoachPrompt",
    "CoachQuestion",
    "CoachSession",
    "CoachTurn",
    "ExtractedContext",
    "QuestionSheet",
    "SessionStatus",
    "FRAMEWORK_SECTIONS",
    "EvidenceRef",
    "Framework",
    "GeneratedStory",
    "StorySection",
    "BatchItem",
    "CoachedStoryResult",
    "CoachedStoryVariant",
    "ComparisonResult",
    "EvaluationBreakdown",
    "Improvement",
    "PipelineResult",
    "StoryEvaluation",
    "StoryVariant",
]
