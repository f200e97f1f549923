"""Tests for the StoryCoachService facade: coaching modes, pipeline and batch runs."""

import asyncio

import pytest

from story_coach.core.exceptions import GenerationUnavailableError
from story_coach.domain.models.archetype import Archetype
from story_coach.domain.models.coaching import CoachMode, SessionStatus
from story_coach.domain.models.entry import NarrativeEntry
from story_coach.domain.models.story import Framework
from story_coach.llm import client as llm_client_module
from story_coach.services.answer_sources import ScriptedAnswerSource
from story_coach.services.archetype_detector import ArchetypeDetector
from story_coach.services.pipeline_service import StoryCoachService
from story_coach.services.story_generator import StoryGenerator


class FlakyGenerator(StoryGenerator):
    """Fails for one entry id."""

    def __init__(self, failing_id: str):
        super().__init__()
        self.failing_id = failing_id

    async def generate(self, entry, framework=None, archetype=None, session=None):
        if entry.id == self.failing_id:
            raise GenerationUnavailableError("Generation backend failed: down")
        return await super().generate(entry, framework, archetype, session)


class CountingDetector(ArchetypeDetector):
    """Tracks how many detections overlap."""

    def __init__(self):
        super().__init__()
        self.active = 0
        self.peak = 0

    async def detect(self, entry):
        self.active += 1
        self.peak = max(self.peak, self.active)
        await asyncio.sleep(0.01)
        self.active -= 1
        return await super().detect(entry)


@pytest.fixture
def service():
    return StoryCoachService()


class TestCoach:
    @pytest.mark.asyncio
    async def test_non_interactive(self, service, firefighter_entry):
        session = await service.coach(firefighter_entry, mode=CoachMode.NON_INTERACTIVE)

        assert session.status == SessionStatus.SKIPPED
        assert session.archetype == Archetype.FIREFIGHTER

    @pytest.mark.asyncio
    async def test_questions_returned_with_skipped_session(self, service, firefighter_entry):
        sheet = await service.questions(firefighter_entry)

        assert sheet.session.status == SessionStatus.SKIPPED
        assert [q.id for q in sheet.questions][:2] == ["ff-dig-1", "ff-dig-2"]
        assert len(sheet.questions) == 6
        assert sheet.questions[0].question == "What was the moment you realized something was wrong?"

    @pytest.mark.asyncio
    async def test_auto_extract_with_given_archetype(self, service, firefighter_entry):
        session = await service.coach(
            firefighter_entry, Archetype.DETECTIVE, mode=CoachMode.AUTO_EXTRACT
        )

        assert session.archetype == Archetype.DETECTIVE
        assert session.status == SessionStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_interactive_with_answer_source(
        self, service, firefighter_entry, scripted_answers
    ):
        source = ScriptedAnswerSource(scripted_answers)

        session = await service.coach(firefighter_entry, answer_source=source)

        assert session.status == SessionStatus.COMPLETED
        assert session.mode == CoachMode.INTERACTIVE
        assert session.questions_asked == 6


class TestCoachGenerate:
    @pytest.mark.asyncio
    async def test_interactive_answers_reach_the_story(
        self, service, firefighter_entry, scripted_answers
    ):
        source = ScriptedAnswerSource(scripted_answers)

        result = await service.coach_generate(
            firefighter_entry, Framework.CAR, Archetype.FIREFIGHTER, answer_source=source
        )

        assert result.session.mode == CoachMode.INTERACTIVE
        assert result.session.questions_asked == 6
        assert result.story.session_id == result.session.id
        assert result.story.with_coaching is True
        assert list(result.story.sections) == ["challenge", "action", "result"]
        assert result.evaluation.story_id == result.story.id

    @pytest.mark.asyncio
    async def test_auto_extract_detects_archetype(self, service, architect_entry):
        result = await service.coach_generate(architect_entry, mode=CoachMode.AUTO_EXTRACT)

        assert result.entry_id == "entry-arch"
        assert result.session.archetype == Archetype.ARCHITECT
        assert result.session.status == SessionStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_skipped_session_generates_basic_story(self, service, firefighter_entry):
        result = await service.coach_generate(
            firefighter_entry, mode=CoachMode.NON_INTERACTIVE
        )

        assert result.session.status == SessionStatus.SKIPPED
        assert result.story.with_coaching is False


class TestPipeline:
    @pytest.mark.asyncio
    async def test_pipeline_runs_every_stage(self, service, firefighter_entry):
        result = await service.pipeline(firefighter_entry)

        assert result.entry_id == "entry-ff"
        assert result.detection.primary.archetype == Archetype.FIREFIGHTER
        assert result.session.mode == CoachMode.AUTO_EXTRACT
        assert result.story.session_id == result.session.id
        assert result.story.with_coaching is True
        assert result.evaluation.story_id == result.story.id

    @pytest.mark.asyncio
    async def test_pipeline_on_empty_entry(self, service, empty_entry):
        result = await service.pipeline(empty_entry)

        assert result.detection.primary.archetype == Archetype.ARCHITECT
        assert result.story.with_coaching is True


class TestRunBatch:
    @pytest.mark.asyncio
    async def test_results_in_input_order(
        self, service, firefighter_entry, architect_entry, vague_entry
    ):
        items = await service.run_batch([vague_entry, firefighter_entry, architect_entry])

        assert [i.entry_id for i in items] == ["entry-vague", "entry-ff", "entry-arch"]
        assert all(i.ok for i in items)
        assert items[1].result.detection.primary.archetype == Archetype.FIREFIGHTER

    @pytest.mark.asyncio
    async def test_failure_isolated_to_its_entry(
        self, firefighter_entry, architect_entry, vague_entry
    ):
        service = StoryCoachService(generator=FlakyGenerator("entry-vague"))

        items = await service.run_batch([firefighter_entry, vague_entry, architect_entry])

        assert [i.ok for i in items] == [True, False, True]
        assert items[1].error == "Generation backend failed: down"
        assert items[1].result is None

    @pytest.mark.asyncio
    async def test_concurrency_bounded(self):
        detector = CountingDetector()
        service = StoryCoachService(detector=detector)
        entries = [NarrativeEntry(id=f"e{i}", description="Fixed a bug.") for i in range(6)]

        items = await service.run_batch(entries, max_concurrency=2)

        assert len(items) == 6
        assert detector.peak <= 2

    @pytest.mark.asyncio
    async def test_empty_batch(self, service):
        assert await service.run_batch([]) == []


def test_from_settings_without_llm(monkeypatch):
    monkeypatch.setattr(llm_client_module.settings, "llm_enabled", False)

    service = StoryCoachService.from_settings()

    assert service.detector.llm is None
    assert service.engine.responder is None
    assert service.generator.llm_composer is None
