"""Generated story models and the closed set of narrative frameworks."""

from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Optional, Tuple

from pydantic import BaseModel, Field, model_validator

from story_coach.core.exceptions import StoryContractError
from story_coach.domain.models.archetype import Archetype


class Framework(str, Enum):
    """Narrative framework: a fixed, ordered set of section keys."""

    STAR = "STAR"
    STARL = "STARL"
    CAR = "CAR"
    PAR = "PAR"
    SAR = "SAR"
    SOAR = "SOAR"
    SHARE = "SHARE"
    CARL = "CARL"


FRAMEWORK_SECTIONS: Dict[Framework, Tuple[str, ...]] = {
    Framework.STAR: ("situation", "task", "action", "result"),
    Framework.STARL: ("situation", "task", "action", "result", "learning"),
    Framework.CAR: ("challenge", "action", "result"),
    Framework.PAR: ("problem", "action", "result"),
    Framework.SAR: ("situation", "action", "result"),
    Framework.SOAR: ("situation", "obstacles", "actions", "results"),
    Framework.SHARE: ("situation", "hindrances", "actions", "results", "evaluation"),
    Framework.CARL: ("context", "action", "result", "learning"),
}


class EvidenceRef(BaseModel):
    """Source material backing a section: an activity id and/or a description."""

    activity_id: Optional[str] = None
    description: Optional[str] = None

    @model_validator(mode="after")
    def check_not_empty(self) -> "EvidenceRef":
        if not self.activity_id and not self.description:
            raise ValueError("evidence needs an activity_id or a description")
        return self


class StorySection(BaseModel):
    summary: str
    evidence: List[EvidenceRef] = Field(default_factory=list)


class GeneratedStory(BaseModel):
    """A framework-shaped narrative built from one entry.

    Section keys are not checked at construction so that a malformed story
    loaded from storage can still be inspected; ``check_sections`` is the
    contract gate used by the evaluator and the generator.
    """

    id: str
    entry_id: str
    session_id: Optional[str] = None
    title: str
    hook: str
    framework: Framework
    archetype: Optional[Archetype] = None
    sections: Dict[str, StorySection]
    reasoning: str = ""
    with_coaching: bool = False
    generated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    def check_sections(self) -> None:
        """Raise StoryContractError unless keys equal the framework's set, in order."""
        expected = FRAMEWORK_SECTIONS[self.framework]
        actual = tuple(self.sections.keys())
        if actual == expected:
            return
        missing = [k for k in expected if k not in self.sections]
        extra = [k for k in actual if k not in expected]
        if missing or extra:
            raise StoryContractError(
                f"{self.framework.value} story {self.id} has missing sections "
                f"{missing} and unexpected sections {extra}"
            )
        raise StoryContractError(
            f"{self.framework.value} story {self.id} sections out of order: {list(actual)}"
        )

    def all_text(self) -> str:
        """Title, hook and section summaries joined, in section order."""
        return " ".join([self.title, self.hook, *(s.summary for s in self.sections.values())])

    def evidence_count(self) -> int:
        return sum(len(s.evidence) for s in self.sections.values())
