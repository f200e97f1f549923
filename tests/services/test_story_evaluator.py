"""Tests for the rule-based story evaluator."""

from typing import Dict, List, Optional

import pytest

from story_coach.core.exceptions import StoryContractError
from story_coach.domain.models.archetype import Archetype
from story_coach.domain.models.evaluation import EvaluationBreakdown
from story_coach.domain.models.story import EvidenceRef, Framework, GeneratedStory, StorySection
from story_coach.services.story_evaluator import (
    SCORE_BANDS,
    SCORE_CAP,
    StoryEvaluator,
    build_coach_comment,
    build_suggestions,
    overall_score,
    score_breakdown,
    score_map,
)
from story_coach.services.story_generator import StoryGenerator


def make_story(
    hook: str = "Some work got done.",
    sections: Optional[Dict[str, str]] = None,
    archetype: Optional[Archetype] = None,
    evidence: int = 0,
    framework: Framework = Framework.STAR,
) -> GeneratedStory:
    sections = sections or {"situation": "Done.", "task": "Done.", "action": "Done.", "result": "Done."}
    refs: List[EvidenceRef] = [EvidenceRef(activity_id=f"pr-{i}") for i in range(evidence)]
    built = {key: StorySection(summary=text) for key, text in sections.items()}
    if refs:
        first = next(iter(built))
        built[first] = StorySection(summary=built[first].summary, evidence=refs)
    return GeneratedStory(
        id="story-1",
        entry_id="entry-1",
        title="Work",
        hook=hook,
        framework=framework,
        archetype=archetype,
        sections=built,
    )


@pytest.fixture
def evaluator():
    return StoryEvaluator()


class TestPlainStory:
    def test_breakdown(self):
        breakdown = score_breakdown(make_story())

        assert breakdown.specificity == 5.0
        assert breakdown.compelling_hook == 5.0
        assert breakdown.evidence_quality == 3.0
        assert breakdown.archetype_fit == 5.0
        assert breakdown.actionable_impact == 5.0

    def test_weighted_score(self, evaluator):
        evaluation = evaluator.evaluate(make_story())
        assert evaluation.score == pytest.approx(4.6)
        assert evaluation.story_id == "story-1"

    def test_suggestions_ordered_by_weighted_deficit(self, evaluator):
        evaluation = evaluator.evaluate(make_story())

        assert len(evaluation.suggestions) == 5
        assert evaluation.suggestions[0].startswith("Add the counterfactual")
        assert evaluation.suggestions[2].startswith("Add specific numbers")
        assert evaluation.suggestions[4].startswith("Start with the moment")

    def test_comment_has_band_and_weakest_nudge(self, evaluator):
        evaluation = evaluator.evaluate(make_story())

        assert evaluation.coach_comment.startswith("This is a summary, not a story.")
        assert evaluation.coach_comment.endswith(
            "Biggest gap: proof. Show me what would have happened otherwise."
        )


class TestDimensionRules:
    @pytest.mark.parametrize(
        "hook,expected",
        [
            ("At 2am I discovered the leak.", 8.0),
            ("When the deploy broke, checkout stopped.", 6.5),
            ("In my role as lead I fixed it.", 3.0),
            ("I was responsible for checkout.", 3.5),
            ("The project went well.", 4.0),
        ],
    )
    def test_hook(self, hook, expected):
        assert score_breakdown(make_story(hook=hook)).compelling_hook == expected

    def test_empty_hook_scores_first_section(self):
        story = make_story(
            hook="",
            sections={"situation": "At 3am pages fired.", "task": "t", "action": "a", "result": "r"},
        )
        assert score_breakdown(story).compelling_hook == 7.0

    def test_specificity_rewards_numbers_and_names(self):
        story = make_story(hook="Priya from payments and I cut 30% of failures for 12 customers.")
        assert score_breakdown(story).specificity == 8.0

    def test_specificity_penalises_vague_words(self):
        story = make_story(hook="We made significant progress across multiple areas.")
        assert score_breakdown(story).specificity == 3.5

    @pytest.mark.parametrize("count,expected", [(0, 3.0), (3, 6.0), (5, 7.0)])
    def test_evidence_count(self, count, expected):
        assert score_breakdown(make_story(evidence=count)).evidence_quality == expected

    def test_counterfactual_and_lasting_impact(self):
        story = make_story(hook="It would have failed. It is still running today.", evidence=1)
        assert score_breakdown(story).evidence_quality == 6.5

    def test_archetype_fit_uses_arc_markers(self):
        story = make_story(
            hook="At 3am the incident started.",
            sections={"situation": "s", "task": "t", "action": "a", "result": "Data loss prevented."},
            archetype=Archetype.FIREFIGHTER,
        )
        assert score_breakdown(story).archetype_fit == 8.0

    def test_archetype_fit_neutral_without_archetype(self):
        story = make_story(hook="At 3am the incident started.")
        assert score_breakdown(story).archetype_fit == 5.0

    def test_impact(self):
        story = make_story(hook="Reduced p99 by 40ms, from 200ms to 160ms, with no downtime.")
        assert score_breakdown(story).actionable_impact == 8.5

    def test_scores_clamped(self):
        story = make_story(hook="In my role, various several significant multiple things.")
        breakdown = score_breakdown(story)
        assert 1.0 <= breakdown.compelling_hook <= 10.0
        assert 1.0 <= breakdown.specificity <= 10.0


class TestScoring:
    def test_overall_capped(self):
        perfect = EvaluationBreakdown(
            specificity=10,
            compelling_hook=10,
            evidence_quality=10,
            archetype_fit=10,
            actionable_impact=10,
        )
        assert overall_score(perfect) == SCORE_CAP

    def test_top_band_comment_has_no_nudge(self):
        breakdown = EvaluationBreakdown(
            specificity=9,
            compelling_hook=8,
            evidence_quality=8,
            archetype_fit=7,
            actionable_impact=8,
        )
        assert build_coach_comment(8.2, breakdown) == SCORE_BANDS[0][1]

    def test_no_suggestions_when_all_dimensions_pass(self):
        breakdown = EvaluationBreakdown(
            specificity=6,
            compelling_hook=6,
            evidence_quality=6,
            archetype_fit=6,
            actionable_impact=6,
        )
        assert build_suggestions(breakdown) == []

    def test_score_map_in_rubric_order(self, evaluator):
        scores = score_map(evaluator.evaluate(make_story()))
        assert list(scores) == [
            "specificity",
            "compelling_hook",
            "evidence_quality",
            "archetype_fit",
            "actionable_impact",
        ]


class TestStoryEvaluator:
    def test_deterministic(self, evaluator):
        story = make_story(hook="At 2am checkout failed for 300 customers.", evidence=2)
        assert evaluator.evaluate(story) == evaluator.evaluate(story)

    def test_rejects_broken_section_contract(self, evaluator):
        story = make_story(sections={"situation": "s", "action": "a", "result": "r"})

        with pytest.raises(StoryContractError, match="missing sections \\['task'\\]"):
            evaluator.evaluate(story)

    @pytest.mark.asyncio
    async def test_generated_story_in_range(self, evaluator, firefighter_entry):
        story = await StoryGenerator().generate(firefighter_entry, Framework.STARL)

        evaluation = evaluator.evaluate(story)

        assert 0.0 <= evaluation.score <= SCORE_CAP
        assert len(evaluation.suggestions) <= 5
        assert evaluation.coach_comment
