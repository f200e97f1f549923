"""Deterministic context accumulation for interactive coaching.

Each answer updates exactly the ExtractedContext fields its question id
names; nothing else is touched. Rules, by substring of the question id:

    dig-1 / dig-2   obstacle when unset, otherwise appended to real_story
    dig-3           key_decision (overwrite)
    impact-1        counterfactual (overwrite)
    impact-2        metric (overwrite)
    growth          appended to learning

Independently, every "Name from/on/in team" mention in the answer is
appended to named_people. Duplicates are kept.

Follow-up ids (``ff-dig-1-followup``) contain the base id, so follow-up
answers accumulate under the same rule as the question they follow up on.
"""

import re
from typing import Dict, List, Optional

from story_coach.domain.models.coaching import CoachQuestion, ExtractedContext

NAME_PATTERN = re.compile(r"[A-Z][a-z]+ (?:from|on|in) [a-z]+")


def _append(existing: Optional[str], answer: str) -> str:
    if not existing:
        return answer
    return f"{existing} {answer}"


def extract_named_people(answer: str) -> List[str]:
    """Every "Sarah from platform" style mention, in order of appearance."""
    return NAME_PATTERN.findall(answer)


def update_context(
    context: ExtractedContext, question: CoachQuestion, answer: str
) -> ExtractedContext:
    """Return a new context with ``answer`` folded in under ``question``'s rule.

    The input context is never modified.
    """
    answer = answer.strip()
    qid = question.id
    updates: Dict[str, object] = {}

    if not answer:
        return context.model_copy(deep=True)

    if "dig-1" in qid or "dig-2" in qid:
        if not context.obstacle:
            updates["obstacle"] = answer
        else:
            updates["real_story"] = _append(context.real_story, answer)
    elif "dig-3" in qid:
        updates["key_decision"] = answer
    elif "impact-1" in qid:
        updates["counterfactual"] = answer
    elif "impact-2" in qid:
        updates["metric"] = answer
    elif "growth" in qid:
        updates["learning"] = _append(context.learning, answer)

    names = extract_named_people(answer)
    if names:
        updates["named_people"] = [*context.named_people, *names]

    return context.model_copy(update=updates, deep=True)
