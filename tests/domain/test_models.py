"""Tests for domain model invariants."""

import pytest
from pydantic import ValidationError

from story_coach.core.exceptions import StoryContractError
from story_coach.domain.models.archetype import (
    Archetype,
    ArchetypeCandidate,
    ArchetypeDetection,
)
from story_coach.domain.models.coaching import (
    CoachPhase,
    CoachPrompt,
    CoachQuestion,
    ExtractedContext,
)
from story_coach.domain.models.entry import EntryPhase, NarrativeEntry
from story_coach.domain.models.story import (
    FRAMEWORK_SECTIONS,
    EvidenceRef,
    Framework,
    GeneratedStory,
    StorySection,
)


def candidate(archetype: Archetype, confidence: float) -> ArchetypeCandidate:
    return ArchetypeCandidate(archetype=archetype, confidence=confidence)


def story_with(framework: Framework, keys) -> GeneratedStory:
    return GeneratedStory(
        id="s-1",
        entry_id="e-1",
        title="t",
        hook="h",
        framework=framework,
        sections={k: StorySection(summary=k) for k in keys},
    )


class TestNarrativeEntry:
    """Tests for NarrativeEntry."""

    def test_accepts_camel_case(self):
        entry = NarrativeEntry.model_validate(
            {
                "id": "e-1",
                "fullContent": "Long text",
                "activityIds": ["a-1"],
                "phases": [{"name": "Build", "activityIds": ["a-2", "a-1"]}],
            }
        )

        assert entry.full_content == "Long text"
        assert entry.all_activity_ids() == ["a-1", "a-2"]

    def test_frozen(self):
        entry = NarrativeEntry(id="e-1", title="x")

        with pytest.raises(ValidationError):
            entry.title = "y"

    def test_text_prefers_full_content(self):
        assert NarrativeEntry(id="e", title="T", description="D", full_content=" F ").text == "F"
        assert NarrativeEntry(id="e", title="T", description="D").text == "D"
        assert NarrativeEntry(id="e", title="T").text == "T"
        assert NarrativeEntry(id="e").text == ""

    def test_combined_text_skips_blanks(self):
        entry = NarrativeEntry(
            id="e",
            title="Title",
            description="  ",
            phases=[EntryPhase(name="P", summary="Phase summary")],
        )

        assert entry.combined_text == "Title Phase summary"


class TestArchetypeDetection:
    """Tests for ranking invariants."""

    def test_valid_ranking(self):
        detection = ArchetypeDetection(
            primary=candidate(Archetype.FIREFIGHTER, 0.75),
            alternatives=[
                candidate(Archetype.TURNAROUND, 0.45),
                candidate(Archetype.DETECTIVE, 0.45),
            ],
        )

        assert detection.source == "heuristic"

    def test_alternative_above_primary_rejected(self):
        with pytest.raises(ValidationError, match="sorted below"):
            ArchetypeDetection(
                primary=candidate(Archetype.FIREFIGHTER, 0.4),
                alternatives=[candidate(Archetype.ARCHITECT, 0.6)],
            )

    def test_duplicate_rejected(self):
        with pytest.raises(ValidationError, match="duplicate"):
            ArchetypeDetection(
                primary=candidate(Archetype.PIONEER, 0.6),
                alternatives=[candidate(Archetype.PIONEER, 0.3)],
            )

    def test_confidence_bounds(self):
        with pytest.raises(ValidationError):
            candidate(Archetype.DIPLOMAT, 1.2)


class TestCoachingModels:
    def test_question_cannot_be_in_complete_phase(self):
        with pytest.raises(ValidationError, match="complete phase"):
            CoachQuestion(id="x", phase=CoachPhase.COMPLETE, question="?")

    def test_follow_up_prompt_id(self):
        question = CoachQuestion(id="ff-dig-1", phase=CoachPhase.DIG, question="What broke?")

        prompt = CoachPrompt(question=question, text="Who noticed?", is_follow_up=True, position=1)

        assert prompt.question_id == "ff-dig-1-followup"
        assert prompt.phase == CoachPhase.DIG

    def test_context_filled_fields(self):
        context = ExtractedContext(metric="60%", named_people=["Ana from ops"])

        assert context.filled_fields() == ["named_people", "metric"]
        assert not context.is_empty()
        assert ExtractedContext().is_empty()


class TestEvidenceRef:
    def test_needs_id_or_description(self):
        with pytest.raises(ValidationError, match="activity_id or a description"):
            EvidenceRef()

    def test_either_is_enough(self):
        assert EvidenceRef(activity_id="pr-1").description is None
        assert EvidenceRef(description='Entry: "quote"').activity_id is None


class TestGeneratedStory:
    """Tests for the section contract."""

    @pytest.mark.parametrize("framework", list(Framework))
    def test_exact_keys_pass(self, framework):
        story_with(framework, FRAMEWORK_SECTIONS[framework]).check_sections()

    def test_missing_section(self):
        story = story_with(Framework.STAR, ["situation", "action", "result"])

        with pytest.raises(StoryContractError, match=r"missing sections \['task'\]"):
            story.check_sections()

    def test_extra_section(self):
        story = story_with(Framework.CAR, ["challenge", "action", "result", "learning"])

        with pytest.raises(StoryContractError, match=r"unexpected sections \['learning'\]"):
            story.check_sections()

    def test_out_of_order(self):
        story = story_with(Framework.SAR, ["action", "situation", "result"])

        with pytest.raises(StoryContractError, match="out of order"):
            story.check_sections()

    def test_all_text_and_evidence_count(self):
        story = GeneratedStory(
            id="s",
            entry_id="e",
            title="Title",
            hook="Hook.",
            framework=Framework.CAR,
            sections={
                "challenge": StorySection(summary="C", evidence=[EvidenceRef(activity_id="a")]),
                "action": StorySection(summary="A"),
                "result": StorySection(
                    summary="R",
                    evidence=[EvidenceRef(activity_id="b"), EvidenceRef(description="d")],
                ),
            },
        )

        assert story.all_text() == "Title Hook. C A R"
        assert story.evidence_count() == 3
