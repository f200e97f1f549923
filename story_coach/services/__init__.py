from story_coach.services.archetype_detector import ArchetypeDetector
from story_coach.services.coaching_engine import CoachingEngine
from story_coach.services.comparison_service import ComparisonService
from story_coach.services.export_service import ExportService
from story_coach.services.pipeline_service import StoryCoachService
from story_coach.services.story_evaluator import StoryEvaluator
from story_coach.services.story_generator import StoryGenerator

__all__ = [
    "ArchetypeDetector",
    "CoachingEngine",
    "ComparisonService",
    "ExportService",
    "StoryCoachService",
    "StoryEvaluator",
    "StoryGenerator",
]
