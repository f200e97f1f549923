"""
Coaching value comparison.

For one entry: detect the archetype, build a basic story with no session,
auto-extract a session, build the coached story, score both, and report
what coaching changed.
"""

from typing import List, Optional

import structlog

from story_coach.core.config import GenerationSettings, coach_config
from story_coach.domain.models.entry import NarrativeEntry
from story_coach.domain.models.evaluation import (
    CoachedStoryVariant,
    ComparisonResult,
    Improvement,
    StoryEvaluation,
    StoryVariant,
)
from story_coach.domain.models.story import Framework, GeneratedStory
from story_coach.services.archetype_detector import ArchetypeDetector
from story_coach.services.coaching_engine import CoachingEngine
from story_coach.services.story_evaluator import StoryEvaluator
from story_coach.services.story_generator import StoryGenerator

log = structlog.get_logger(__name__)

DIMENSION_LABELS = {
    "specificity": "Specificity",
    "compelling_hook": "Compelling hook",
    "evidence_quality": "Evidence quality",
    "archetype_fit": "Archetype fit",
    "actionable_impact": "Actionable impact",
}


def compute_improvement(
    basic: StoryEvaluation,
    enhanced: StoryEvaluation,
    basic_story: GeneratedStory,
    enhanced_story: GeneratedStory,
) -> Improvement:
    """Score delta, relative gain and the dimensions coaching lifted.

    score_delta is the exact difference of the two scores; only the
    percentage is rounded. percent_improvement is None when the basic score
    is zero.
    """
    delta = enhanced.score - basic.score
    percent: Optional[float] = None
    if basic.score != 0:
        percent = round(delta / basic.score * 100, 1)

    differences: List[str] = []
    before = basic.breakdown.model_dump()
    after = enhanced.breakdown.model_dump()
    for name, label in DIMENSION_LABELS.items():
        if after[name] > before[name]:
            differences.append(f"{label}: {before[name]:g} -> {after[name]:g}")
    if basic_story.hook != enhanced_story.hook:
        differences.append(f'Hook: "{basic_story.hook}" -> "{enhanced_story.hook}"')

    return Improvement(score_delta=delta, percent_improvement=percent, key_differences=differences)


class ComparisonService:
    """Basic vs coached story comparison for a single entry."""

    def __init__(
        self,
        detector: Optional[ArchetypeDetector] = None,
        engine: Optional[CoachingEngine] = None,
        generator: Optional[StoryGenerator] = None,
        evaluator: Optional[StoryEvaluator] = None,
        generation: Optional[GenerationSettings] = None,
    ):
        self.detector = detector or ArchetypeDetector()
        self.engine = engine or CoachingEngine()
        self.generator = generator or StoryGenerator()
        self.evaluator = evaluator or StoryEvaluator()
        self.settings = generation or coach_config.generation

    async def compare(
        self, entry: NarrativeEntry, framework: Optional[Framework] = None
    ) -> ComparisonResult:
        """
        Raises:
            GenerationUnavailableError: If the generation backend fails
        """
        framework = Framework(framework or self.settings.comparison_framework)
        detection = await self.detector.detect(entry)
        archetype = detection.primary.archetype

        basic_story = await self.generator.generate(entry, framework)
        basic_eval = self.evaluator.evaluate(basic_story)

        session = await self.engine.auto_extract(entry, archetype)
        enhanced_story = await self.generator.generate(entry, framework, archetype, session)
        enhanced_eval = self.evaluator.evaluate(enhanced_story)

        improvement = compute_improvement(basic_eval, enhanced_eval, basic_story, enhanced_story)

        log.info(
            "stories_compared",
            entry_id=entry.id,
            archetype=archetype.value,
            framework=framework.value,
            basic_score=basic_eval.score,
            enhanced_score=enhanced_eval.score,
            score_delta=improvement.score_delta,
        )

        return ComparisonResult(
            entry_id=entry.id,
            archetype=archetype,
            framework=framework,
            basic=StoryVariant(story=basic_story, evaluation=basic_eval),
            enhanced=CoachedStoryVariant(
                story=enhanced_story, evaluation=enhanced_eval, session=session
            ),
            improvement=improvement,
        )
