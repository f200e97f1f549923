"""Keyword/regex context extraction.

One extractor serves both the auto-extract fallback (when the extraction
backend is unavailable) and the comparison harness. It scans the entry body
(full content, else description, else title) and always returns a non-empty
context: when nothing matches, a fixed default context is used.

Precedence:
    obstacle        a time-anchored sentence (2am, midnight, weekend...) wins
                    over a generic problem/bug/issue sentence
    counterfactual  revenue/money/cost wins over customer/user
    metric          a percentage wins over a duration
"""

import re
from typing import List, Optional

import structlog

from story_coach.domain.models.archetype import Archetype
from story_coach.domain.models.coaching import ExtractedContext
from story_coach.domain.models.entry import NarrativeEntry
from story_coach.services.context_accumulator import extract_named_people

log = structlog.get_logger(__name__)

PROBLEM_PATTERN = re.compile(r"\b(?:problem|bug|issue|outage|incident|failure|broke|broken)s?\b", re.I)
TIME_OF_DAY_PATTERN = re.compile(
    r"\b(?:\d{1,2}(?::\d{2})?\s?(?:am|pm)|midnight|night|overnight|weekend|saturday|sunday)\b",
    re.I,
)
CUSTOMER_PATTERN = re.compile(r"\b(?:customers?|users?|clients?)\b", re.I)
REVENUE_PATTERN = re.compile(r"(?:\b(?:revenue|money|costs?|sales)\b|\$\d[\d,]*)", re.I)
PERCENT_PATTERN = re.compile(r"\d+(?:\.\d+)?\s?%")
DURATION_PATTERN = re.compile(r"\b\d+\s*(?:minutes?|hours?|days?|weeks?|months?)\b", re.I)

SENTENCE_SPLIT = re.compile(r"(?<=[.!?])\s+")
CLAUSE_SPLIT = re.compile(r"[,;]\s*")

CUSTOMER_COUNTERFACTUAL = "Customers would have been hit directly"
REVENUE_COUNTERFACTUAL = "Could have resulted in lost revenue"

DEFAULT_CONTEXT = ExtractedContext(
    obstacle="Faced a challenging technical problem with tight deadline",
    counterfactual="Would have missed an important milestone",
    metric="Delivered on time with high quality",
)


def _sentences(text: str) -> List[str]:
    return [s.strip() for s in SENTENCE_SPLIT.split(text) if s.strip()]


def _first_sentence(sentences: List[str], pattern: re.Pattern) -> Optional[str]:
    return next((s for s in sentences if pattern.search(s)), None)


def _clause_with(sentence: str, pattern: re.Pattern) -> str:
    """The comma/semicolon clause that contains the match, without end punctuation."""
    for clause in CLAUSE_SPLIT.split(sentence):
        if pattern.search(clause):
            return clause.strip().rstrip(".!?")
    return sentence.rstrip(".!?")


class HeuristicContextExtractor:
    """Deterministic ExtractedContext from entry text alone."""

    def extract(
        self, entry: NarrativeEntry, archetype: Optional[Archetype] = None
    ) -> ExtractedContext:
        text = entry.text
        sentences = _sentences(text)
        fields = {}

        time_sentence = _first_sentence(sentences, TIME_OF_DAY_PATTERN)
        problem_sentence = _first_sentence(sentences, PROBLEM_PATTERN)
        if time_sentence:
            fields["obstacle"] = time_sentence
        elif problem_sentence:
            fields["obstacle"] = problem_sentence

        revenue_sentence = _first_sentence(sentences, REVENUE_PATTERN)
        customer_sentence = _first_sentence(sentences, CUSTOMER_PATTERN)
        if revenue_sentence:
            fields["counterfactual"] = REVENUE_COUNTERFACTUAL
            fields["impact_type"] = "revenue_risk"
            fields["evidence"] = revenue_sentence
        elif customer_sentence:
            fields["counterfactual"] = CUSTOMER_COUNTERFACTUAL
            fields["impact_type"] = "customer_impact"
            fields["evidence"] = customer_sentence

        percent_sentence = _first_sentence(sentences, PERCENT_PATTERN)
        duration_sentence = _first_sentence(sentences, DURATION_PATTERN)
        if percent_sentence:
            fields["metric"] = _clause_with(percent_sentence, PERCENT_PATTERN)
        elif duration_sentence:
            fields["metric"] = _clause_with(duration_sentence, DURATION_PATTERN)

        names = extract_named_people(text)
        if names:
            fields["named_people"] = names

        if not fields:
            log.info(
                "heuristic_extraction_defaulted",
                entry_id=entry.id,
                archetype=archetype.value if archetype else None,
            )
            return DEFAULT_CONTEXT.model_copy(deep=True)

        if entry.description:
            fields["real_story"] = entry.description.strip()

        context = ExtractedContext(**fields)
        log.debug(
            "heuristic_extraction_complete",
            entry_id=entry.id,
            fields=context.filled_fields(),
        )
        return context
