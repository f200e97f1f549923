"""
Story coach facade.

One object exposing every operation the CLI and the API need:

    detect(entry)                           -> ArchetypeDetection
    questions(entry, archetype?)            -> QuestionSheet
    coach(entry, archetype?, mode)          -> CoachSession
    coach_generate(entry, framework?, mode) -> CoachedStoryResult
    generate(entry, framework, archetype?, session?) -> GeneratedStory
    evaluate(story)                         -> StoryEvaluation
    compare(entry)                          -> ComparisonResult
    pipeline(entry)                         -> PipelineResult
    run_batch(entries)                      -> [BatchItem]

``from_settings`` wires the LLM backends when they are enabled and
configured, and the heuristic/template backends otherwise.
"""

import asyncio
from typing import List, Optional, Sequence

import structlog

from story_coach.core.config import CoachConfig, coach_config
from story_coach.core.exceptions import StoryCoachError
from story_coach.domain.models.archetype import Archetype, ArchetypeDetection
from story_coach.domain.models.coaching import CoachMode, CoachSession, QuestionSheet
from story_coach.domain.models.entry import NarrativeEntry
from story_coach.domain.models.evaluation import (
    BatchItem,
    CoachedStoryResult,
    ComparisonResult,
    PipelineResult,
    StoryEvaluation,
)
from story_coach.domain.models.story import Framework, GeneratedStory
from story_coach.llm.client import get_optional_llm_client
from story_coach.services.answer_sources import TerminalAnswerSource
from story_coach.services.archetype_detector import ArchetypeDetector
from story_coach.services.coaching_engine import CoachingEngine, LLMCoachResponder
from story_coach.services.comparison_service import ComparisonService
from story_coach.services.context_extraction_service import ContextExtractionService
from story_coach.services.protocols import IAnswerSource
from story_coach.services.story_evaluator import StoryEvaluator
from story_coach.services.story_generator import StoryGenerator

log = structlog.get_logger(__name__)


class StoryCoachService:
    """Detect, coach, generate, evaluate, compare and batch-run entries."""

    def __init__(
        self,
        detector: Optional[ArchetypeDetector] = None,
        engine: Optional[CoachingEngine] = None,
        generator: Optional[StoryGenerator] = None,
        evaluator: Optional[StoryEvaluator] = None,
        config: Optional[CoachConfig] = None,
    ):
        self.config = config or coach_config
        self.detector = detector or ArchetypeDetector(detection=self.config.detection)
        self.engine = engine or CoachingEngine(interview=self.config.interview)
        self.generator = generator or StoryGenerator(generation=self.config.generation)
        self.evaluator = evaluator or StoryEvaluator()
        self.comparison = ComparisonService(
            detector=self.detector,
            engine=self.engine,
            generator=self.generator,
            evaluator=self.evaluator,
            generation=self.config.generation,
        )

    @classmethod
    def from_settings(cls, config: Optional[CoachConfig] = None) -> "StoryCoachService":
        """Build with LLM backends where enabled, heuristics elsewhere."""
        config = config or coach_config
        classification = get_optional_llm_client("classification")
        extraction = get_optional_llm_client("extraction")
        generation = get_optional_llm_client("generation")

        log.info(
            "story_coach_service_created",
            classification_llm=classification is not None,
            extraction_llm=extraction is not None,
            generation_llm=generation is not None,
        )
        return cls(
            detector=ArchetypeDetector(llm_client=classification, detection=config.detection),
            engine=CoachingEngine(
                interview=config.interview,
                extractor=ContextExtractionService(llm_client=extraction),
                responder=LLMCoachResponder(extraction) if extraction else None,
            ),
            generator=StoryGenerator(llm_client=generation, generation=config.generation),
            config=config,
        )

    # =========================================================================
    # Operations
    # =========================================================================

    async def detect(self, entry: NarrativeEntry) -> ArchetypeDetection:
        return await self.detector.detect(entry)

    async def questions(
        self, entry: NarrativeEntry, archetype: Optional[Archetype] = None
    ) -> QuestionSheet:
        """Non-interactive coaching: the bank questions and a skipped session."""
        if archetype is None:
            archetype = (await self.detect(entry)).primary.archetype
        session, questions = self.engine.non_interactive(entry, archetype)
        return QuestionSheet(session=session, questions=list(questions))

    async def coach(
        self,
        entry: NarrativeEntry,
        archetype: Optional[Archetype] = None,
        mode: CoachMode = CoachMode.INTERACTIVE,
        answer_source: Optional[IAnswerSource] = None,
    ) -> CoachSession:
        """
        Run a coaching session in ``mode``.

        The archetype is detected when not given. Interactive mode reads
        from the terminal unless an answer source is supplied.
        """
        if archetype is None:
            archetype = (await self.detect(entry)).primary.archetype
        mode = CoachMode(mode)

        if mode == CoachMode.NON_INTERACTIVE:
            return (await self.questions(entry, archetype)).session
        if mode == CoachMode.AUTO_EXTRACT:
            return await self.engine.auto_extract(entry, archetype)

        if answer_source is None:
            terminal = TerminalAnswerSource(max_questions=self.config.interview.max_questions)
            terminal.banner(entry.title, allow_skip=self.config.interview.allow_skip)
            answer_source = terminal
        return await self.engine.interview(entry, archetype, answer_source)

    async def coach_generate(
        self,
        entry: NarrativeEntry,
        framework: Optional[Framework] = None,
        archetype: Optional[Archetype] = None,
        mode: CoachMode = CoachMode.INTERACTIVE,
        answer_source: Optional[IAnswerSource] = None,
    ) -> CoachedStoryResult:
        """Coach, then generate and evaluate a story from the session."""
        session = await self.coach(entry, archetype, mode, answer_source)
        story = await self.generate(entry, framework, session=session)
        evaluation = self.evaluate(story)

        log.info(
            "coached_story_complete",
            entry_id=entry.id,
            session_id=session.id,
            mode=session.mode.value,
            score=evaluation.score,
        )
        return CoachedStoryResult(
            entry_id=entry.id, session=session, story=story, evaluation=evaluation
        )

    async def generate(
        self,
        entry: NarrativeEntry,
        framework: Optional[Framework] = None,
        archetype: Optional[Archetype] = None,
        session: Optional[CoachSession] = None,
    ) -> GeneratedStory:
        return await self.generator.generate(entry, framework, archetype, session)

    def evaluate(self, story: GeneratedStory) -> StoryEvaluation:
        return self.evaluator.evaluate(story)

    async def compare(
        self, entry: NarrativeEntry, framework: Optional[Framework] = None
    ) -> ComparisonResult:
        return await self.comparison.compare(entry, framework)

    async def pipeline(
        self, entry: NarrativeEntry, framework: Optional[Framework] = None
    ) -> PipelineResult:
        """Unattended run: detect -> auto-extract -> generate -> evaluate."""
        detection = await self.detect(entry)
        session = await self.engine.auto_extract(entry, detection.primary.archetype)
        story = await self.generate(entry, framework, session=session)
        evaluation = self.evaluate(story)

        log.info(
            "pipeline_complete",
            entry_id=entry.id,
            archetype=detection.primary.archetype.value,
            framework=story.framework.value,
            score=evaluation.score,
        )
        return PipelineResult(
            entry_id=entry.id,
            detection=detection,
            session=session,
            story=story,
            evaluation=evaluation,
        )

    async def run_batch(
        self,
        entries: Sequence[NarrativeEntry],
        framework: Optional[Framework] = None,
        max_concurrency: Optional[int] = None,
    ) -> List[BatchItem]:
        """
        Run the pipeline over independent entries concurrently.

        At most ``max_concurrency`` pipelines are in flight. Results come
        back in input order; an entry whose pipeline raises a StoryCoachError
        yields an item carrying the error instead of failing the batch.
        """
        semaphore = asyncio.Semaphore(max_concurrency or self.config.batch.max_concurrency)

        async def run_one(entry: NarrativeEntry) -> BatchItem:
            async with semaphore:
                with structlog.contextvars.bound_contextvars(entry_id=entry.id):
                    try:
                        result = await self.pipeline(entry, framework)
                    except StoryCoachError as e:
                        log.error("batch_entry_failed", error=e.message)
                        return BatchItem(entry_id=entry.id, error=e.message)
                    return BatchItem(entry_id=entry.id, result=result)

        items = await asyncio.gather(*(run_one(entry) for entry in entries))

        log.info(
            "batch_complete",
            entries=len(items),
            failed=sum(1 for item in items if not item.ok),
        )
        return list(items)
