"""Narrative entry models.

A NarrativeEntry is the read-only work record handed to the pipeline by the
journal subsystem. The pipeline never mutates it: the model is frozen, and
every stage receives the same instance for the whole run.

The journal API speaks camelCase (``fullContent``, ``activityIds``); both
spellings are accepted on input, and records are emitted in snake_case.
"""

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class EntryPhase(BaseModel):
    """One phase of the work the entry describes (e.g. "Investigation").

    Phases carry the activity ids that back them, so generated sections can
    cite the activities they actually draw on.
    """

    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    name: str
    summary: str = ""
    activity_ids: List[str] = Field(default_factory=list)


class NarrativeEntry(BaseModel):
    """Read-only first-person work narrative.

    Attributes:
        id: Journal entry identifier
        title: Entry headline
        description: Short summary written by the author
        full_content: Long-form narrative, if any
        category: Journal category (free text)
        phases: Ordered phases of the work
        skills: Skills tagged on the entry
        activity_ids: Source activities (PRs, tickets, docs) linked to the entry
    """

    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    id: str
    title: str = ""
    description: Optional[str] = None
    full_content: Optional[str] = None
    category: Optional[str] = None
    phases: List[EntryPhase] = Field(default_factory=list)
    skills: List[str] = Field(default_factory=list)
    activity_ids: List[str] = Field(default_factory=list)

    @property
    def text(self) -> str:
        """Best available narrative body: full content, description, then title."""
        return (self.full_content or self.description or self.title or "").strip()

    @property
    def combined_text(self) -> str:
        """Title, description, content and phase summaries joined for scanning."""
        parts = [self.title, self.description or "", self.full_content or ""]
        parts.extend(p.summary for p in self.phases)
        return " ".join(p.strip() for p in parts if p and p.strip())

    def all_activity_ids(self) -> List[str]:
        """Entry-level and phase-level activity ids, de-duplicated in order."""
        seen: List[str] = []
        for activity_id in [*self.activity_ids, *(a for p in self.phases for a in p.activity_ids)]:
            if activity_id not in seen:
                seen.append(activity_id)
        return seen
