"""
Rule-based story evaluation.

Scores a GeneratedStory on five dimensions, each starting at 5 and moved by
pattern rules, clamped to [1, 10]:

    specificity        numbers, money, durations, counts, named people;
                       vague words cost points
    compelling_hook    time-stamped or narrative openings; stock openings
                       ("In my role...") cost points
    evidence_quality   evidence count, counterfactuals, lasting impact
    archetype_fit      the archetype's own arc markers
    actionable_impact  reduction/improvement/savings and before/after figures

The evaluator is pure: no clock, no I/O, so equal stories give equal
evaluations.
"""

import re
from types import MappingProxyType
from typing import Callable, Dict, List, Mapping, Tuple

import structlog

from story_coach.domain.models.archetype import Archetype
from story_coach.domain.models.evaluation import EvaluationBreakdown, StoryEvaluation
from story_coach.domain.models.story import GeneratedStory

log = structlog.get_logger(__name__)

WEIGHTS: Mapping[str, float] = MappingProxyType(
    {
        "specificity": 0.25,
        "compelling_hook": 0.20,
        "evidence_quality": 0.20,
        "archetype_fit": 0.15,
        "actionable_impact": 0.20,
    }
)

SCORE_CAP = 9.5
SUGGESTION_THRESHOLD = 6.0
MAX_SUGGESTIONS = 5

SUGGESTIONS: Mapping[str, Tuple[str, ...]] = MappingProxyType(
    {
        "specificity": (
            "Add specific numbers: percentages, dollar amounts, time saved, people affected.",
            "Name the people involved: 'Sarah from platform' not 'the team'.",
        ),
        "compelling_hook": (
            "Start with the moment of crisis or discovery, not background.",
            "Try opening with: 'At 2am...' or 'Two weeks before launch...'",
        ),
        "evidence_quality": (
            "Add the counterfactual: What would have happened if you hadn't acted?",
            "Include lasting impact: Is it still in use today?",
        ),
        "archetype_fit": (
            "Lean into the story type. If it's a crisis story, emphasize the urgency.",
        ),
        "actionable_impact": (
            "Add before/after metrics: 'from X to Y' shows clear improvement.",
            "Quantify the outcome: '50% reduction' is stronger than 'significant improvement'.",
        ),
    }
)

# (minimum score, comment), highest band first
SCORE_BANDS: Tuple[Tuple[float, str], ...] = (
    (8.0, "THAT'S a story. I'd remember this in an interview. The specifics sell it."),
    (7.0, "This has a hook. The numbers are there. A few more specific details and it's excellent."),
    (6.0, "Good structure. I can see what happened. Now make me care - where's the drama?"),
    (5.0, "I can see what happened. But I don't feel why it matters. Where's the moment that almost went wrong?"),
    (4.0, "This is a summary, not a story. What's the one thing you want me to remember?"),
    (0.0, "We need to start over. What REALLY happened? Not the press release version."),
)

WEAKEST_NUDGES: Mapping[str, str] = MappingProxyType(
    {
        "specificity": "Biggest gap: specifics. Give me names and numbers.",
        "compelling_hook": "Biggest gap: the opening. Drop me into the moment.",
        "evidence_quality": "Biggest gap: proof. Show me what would have happened otherwise.",
        "archetype_fit": "Biggest gap: the arc. Tell it like the story it is.",
        "actionable_impact": "Biggest gap: the outcome. Put a before and after on it.",
    }
)


def _has(text: str, *words: str) -> bool:
    return any(w in text for w in words)


def _firefighter(text: str) -> float:
    bonus = 0.0
    if re.search(r"\d+\s*(?:am|pm|AM|PM)", text):
        bonus += 1
    if _has(text, "incident", "emergency"):
        bonus += 1
    if _has(text, "prevented", "averted"):
        bonus += 1
    return bonus


def _architect(text: str) -> float:
    return float(_has(text, "designed", "architected")) + float(_has(text, "still", "foundation"))


def _diplomat(text: str) -> float:
    return float(_has(text, "stakeholder", "alignment")) + float(_has(text, "consensus", "buy-in"))


def _multiplier(text: str) -> float:
    return float(bool(re.search(r"\d+ teams", text))) + float(_has(text, "adopted", "trained"))


def _detective(text: str) -> float:
    return float(_has(text, "root cause", "traced")) + float(_has(text, "investigat", "discovered", "clue"))


def _pioneer(text: str) -> float:
    return float(_has(text, "first", "no documentation", "no playbook")) + float(
        _has(text, "prototype", "pilot", "experiment")
    )


def _turnaround(text: str) -> float:
    return float(_has(text, "inherited", "turned around", "recovered")) + float(
        bool(re.search(r"from \S*\d\S* to \S*\d", text))
    )


def _preventer(text: str) -> float:
    return float(_has(text, "noticed", "risk", "spotted")) + float(
        _has(text, "prevented", "before it", "avoided")
    )


ARCHETYPE_FIT_RULES: Mapping[Archetype, Callable[[str], float]] = MappingProxyType(
    {
        Archetype.FIREFIGHTER: _firefighter,
        Archetype.ARCHITECT: _architect,
        Archetype.DIPLOMAT: _diplomat,
        Archetype.MULTIPLIER: _multiplier,
        Archetype.DETECTIVE: _detective,
        Archetype.PIONEER: _pioneer,
        Archetype.TURNAROUND: _turnaround,
        Archetype.PREVENTER: _preventer,
    }
)


def _clamp(value: float) -> float:
    return min(10.0, max(1.0, value))


def score_breakdown(story: GeneratedStory) -> EvaluationBreakdown:
    """Apply the rubric rules to a story's title, hook and section summaries."""
    text = story.all_text()

    specificity = 5.0
    if re.search(r"\d+%", text):
        specificity += 1
    if re.search(r"\$[\d,]+", text):
        specificity += 1
    if re.search(r"\d+ (?:hours|days|weeks|months)", text):
        specificity += 0.5
    if re.search(r"\d+ (?:teams|people|users|customers)", text):
        specificity += 1
    if re.search(r"[A-Z][a-z]+ from", text):
        specificity += 1
    if _has(text, "various", "significant"):
        specificity -= 1
    if _has(text, "several", "multiple"):
        specificity -= 0.5

    hook_score = 5.0
    first_summary = next(iter(story.sections.values())).summary if story.sections else ""
    hook = story.hook or first_summary
    if re.match(r"At \d", hook):
        hook_score += 2
    if re.match(r"(?:When|Two weeks|The moment|On)", hook):
        hook_score += 1.5
    if re.match(r"In my role", hook, re.I):
        hook_score -= 2
    if re.match(r"I was responsible", hook, re.I):
        hook_score -= 1.5
    if re.match(r"The project", hook, re.I):
        hook_score -= 1
    if _has(hook, "discovered", "realized"):
        hook_score += 1

    evidence = 5.0
    evidence_count = story.evidence_count()
    if evidence_count >= 3:
        evidence += 1
    if evidence_count >= 5:
        evidence += 1
    if evidence_count == 0:
        evidence -= 2
    if _has(text, "would have", "prevented"):
        evidence += 1
    if "still" in text and "today" in text:
        evidence += 0.5

    fit = 5.0
    if story.archetype is not None:
        fit += ARCHETYPE_FIT_RULES[story.archetype](text)

    impact = 5.0
    if re.search(r"reduced.*by \d+", text, re.I):
        impact += 1.5
    if re.search(r"improved.*by \d+", text, re.I):
        impact += 1.5
    if re.search(r"saved.*\d+", text, re.I):
        impact += 1
    if re.search(r"from.*to", text, re.I):
        impact += 1
    if _has(text, "zero incidents", "no downtime"):
        impact += 1

    return EvaluationBreakdown(
        specificity=_clamp(specificity),
        compelling_hook=_clamp(hook_score),
        evidence_quality=_clamp(evidence),
        archetype_fit=_clamp(fit),
        actionable_impact=_clamp(impact),
    )


def overall_score(breakdown: EvaluationBreakdown) -> float:
    """Weighted sum, one decimal, capped at 9.5."""
    values = breakdown.model_dump()
    weighted = sum(values[name] * weight for name, weight in WEIGHTS.items())
    return min(SCORE_CAP, round(weighted * 10) / 10)


def _weighted_deficits(breakdown: EvaluationBreakdown) -> List[Tuple[str, float]]:
    """Dimensions by weighted distance from a perfect 10, largest first.

    Ties keep rubric order.
    """
    values = breakdown.model_dump()
    deficits = [(name, (10.0 - values[name]) * weight) for name, weight in WEIGHTS.items()]
    return sorted(deficits, key=lambda item: -item[1])


def build_suggestions(breakdown: EvaluationBreakdown) -> List[str]:
    values = breakdown.model_dump()
    suggestions: List[str] = []
    for name, _ in _weighted_deficits(breakdown):
        if values[name] < SUGGESTION_THRESHOLD:
            suggestions.extend(SUGGESTIONS[name])
    return suggestions[:MAX_SUGGESTIONS]


def build_coach_comment(score: float, breakdown: EvaluationBreakdown) -> str:
    band = next(comment for minimum, comment in SCORE_BANDS if score >= minimum)
    if score >= SCORE_BANDS[0][0]:
        return band
    weakest = _weighted_deficits(breakdown)[0][0]
    return f"{band} {WEAKEST_NUDGES[weakest]}"


class StoryEvaluator:
    """Scores stories against the rubric."""

    def evaluate(self, story: GeneratedStory) -> StoryEvaluation:
        """
        Raises:
            StoryContractError: If the story's sections break its framework
        """
        story.check_sections()

        breakdown = score_breakdown(story)
        score = overall_score(breakdown)
        evaluation = StoryEvaluation(
            story_id=story.id,
            score=score,
            breakdown=breakdown,
            suggestions=build_suggestions(breakdown),
            coach_comment=build_coach_comment(score, breakdown),
        )

        log.info(
            "story_evaluated",
            story_id=story.id,
            score=score,
            suggestions=len(evaluation.suggestions),
        )
        return evaluation


def score_map(evaluation: StoryEvaluation) -> Dict[str, float]:
    """Breakdown as a plain dict, in rubric order."""
    values = evaluation.breakdown.model_dump()
    return {name: values[name] for name in WEIGHTS}
