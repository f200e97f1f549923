"""Tests for keyword/regex context extraction."""

import pytest

from story_coach.domain.models.entry import NarrativeEntry
from story_coach.services.heuristic_extractor import (
    CUSTOMER_COUNTERFACTUAL,
    DEFAULT_CONTEXT,
    REVENUE_COUNTERFACTUAL,
    HeuristicContextExtractor,
)


@pytest.fixture
def extractor():
    return HeuristicContextExtractor()


def entry(text: str, description: str = None) -> NarrativeEntry:
    return NarrativeEntry(id="e", title="t", description=description, full_content=text)


class TestFirefighterEntry:
    def test_time_anchored_sentence_becomes_obstacle(self, extractor, firefighter_entry):
        context = extractor.extract(firefighter_entry)
        assert "2am" in context.obstacle
        assert "production issue" in context.obstacle

    def test_percentage_clause_becomes_metric(self, extractor, firefighter_entry):
        context = extractor.extract(firefighter_entry)
        assert context.metric == "cutting error rates by 60%"

    def test_customer_mention_sets_counterfactual(self, extractor, firefighter_entry):
        context = extractor.extract(firefighter_entry)
        assert context.counterfactual == CUSTOMER_COUNTERFACTUAL
        assert context.impact_type == "customer_impact"
        assert "customers" in context.evidence

    def test_description_becomes_real_story(self, extractor, firefighter_entry):
        context = extractor.extract(firefighter_entry)
        assert context.real_story == firefighter_entry.description


class TestPrecedence:
    def test_time_of_day_wins_over_generic_problem(self, extractor):
        context = extractor.extract(
            entry("We had a bug in billing. The deploy broke at midnight.")
        )
        assert context.obstacle == "The deploy broke at midnight."

    def test_problem_sentence_used_without_time(self, extractor):
        context = extractor.extract(entry("Shipping was slow. There was an outage in billing."))
        assert context.obstacle == "There was an outage in billing."

    def test_revenue_wins_over_customer(self, extractor):
        context = extractor.extract(
            entry("Customers could not log in. We were losing revenue every hour.")
        )
        assert context.counterfactual == REVENUE_COUNTERFACTUAL
        assert context.impact_type == "revenue_risk"
        assert context.evidence == "We were losing revenue every hour."

    def test_dollar_amount_counts_as_revenue(self, extractor):
        context = extractor.extract(entry("The fix protected $40,000 of orders."))
        assert context.impact_type == "revenue_risk"

    def test_percentage_wins_over_duration(self, extractor):
        context = extractor.extract(
            entry("Builds dropped to 5 minutes. Flaky tests fell by 30%.")
        )
        assert context.metric == "Flaky tests fell by 30%"

    def test_duration_used_without_percentage(self, extractor):
        context = extractor.extract(entry("Builds dropped to 5 minutes."))
        assert context.metric == "Builds dropped to 5 minutes"


class TestFallbacks:
    def test_nothing_matched_returns_default(self, extractor, vague_entry):
        context = extractor.extract(vague_entry)
        assert context == DEFAULT_CONTEXT
        assert context is not DEFAULT_CONTEXT

    def test_empty_entry_returns_default(self, extractor, empty_entry):
        assert extractor.extract(empty_entry) == DEFAULT_CONTEXT

    def test_never_empty(self, extractor, vague_entry, empty_entry, firefighter_entry):
        for e in (vague_entry, empty_entry, firefighter_entry):
            assert not extractor.extract(e).is_empty()

    def test_named_people_collected(self, extractor):
        context = extractor.extract(entry("Priya from payments found the bug."))
        assert context.named_people == ["Priya from payments"]
