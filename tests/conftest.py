"""
Shared test fixtures.

Entries cover the main archetype shapes; LLM clients are AsyncMocks whose
``complete`` returns canned LLMResponse objects.
"""

import json
from typing import Any, List, Union
from unittest.mock import AsyncMock

import pytest

from story_coach.core.config import InterviewSettings
from story_coach.domain.models.entry import EntryPhase, NarrativeEntry
from story_coach.llm.client import LLMClient, LLMResponse


FIREFIGHTER_TEXT = (
    "At 2am I was woken by a production issue: checkout requests were failing "
    "for customers. I rolled back the bad deploy and patched the connection "
    "pool, cutting error rates by 60%."
)


def llm_reply(content: Union[str, dict]) -> LLMResponse:
    """LLMResponse carrying ``content`` (dicts are JSON-encoded)."""
    if not isinstance(content, str):
        content = json.dumps(content)
    return LLMResponse(content=content, model="test-model", latency_ms=12.0)


def make_llm(*replies: Any) -> AsyncMock:
    """Mock LLMClient returning ``replies`` in order (exceptions are raised)."""
    client = AsyncMock(spec=LLMClient)
    client.complete.side_effect = [
        r if isinstance(r, BaseException) else llm_reply(r) for r in replies
    ]
    return client


@pytest.fixture
def firefighter_entry() -> NarrativeEntry:
    """Crisis story: time of day, production issue, rollback and a 60% metric."""
    return NarrativeEntry(
        id="entry-ff",
        title="Checkout connection pool fix",
        description="Fixed failing checkout requests in production.",
        full_content=FIREFIGHTER_TEXT,
        category="engineering",
        phases=[
            EntryPhase(
                name="Mitigation",
                summary="Rolled back the deploy and restored checkout",
                activity_ids=["pr-101"],
            )
        ],
        skills=["incident response"],
        activity_ids=["pr-101", "ticket-55"],
    )


@pytest.fixture
def architect_entry() -> NarrativeEntry:
    return NarrativeEntry(
        id="entry-arch",
        title="Event bus migration",
        description=(
            "I designed the new event bus architecture and led the migration "
            "from polling to streaming, a foundation three teams now build on."
        ),
        activity_ids=["doc-7"],
    )


@pytest.fixture
def vague_entry() -> NarrativeEntry:
    """No archetype cues and nothing the heuristics can pick up."""
    return NarrativeEntry(id="entry-vague", title="Quarterly work", description="Did some stuff this quarter.")


@pytest.fixture
def empty_entry() -> NarrativeEntry:
    return NarrativeEntry(id="entry-empty")


@pytest.fixture
def interview_settings() -> InterviewSettings:
    """Defaults: six questions, follow-ups on, two non-answers per phase."""
    return InterviewSettings()


@pytest.fixture
def scripted_answers() -> List[str]:
    """Six real answers for a firefighter interview, in bank order."""
    return [
        "The checkout API was dropping 40% of requests at 2am.",
        "Rollbacks were blocked because the migration had already run.",
        "I decided to patch the connection pool instead of waiting for Sarah from platform.",
        "We would have lost the whole overnight sales window.",
        "Error rates fell by 60% within 20 minutes.",
        "Always rehearse rollbacks before a schema change.",
    ]


@pytest.fixture
def mock_llm():
    """Factory fixture: ``mock_llm(reply, ...)`` builds a scripted LLM client."""
    return make_llm
