"""Archetype classification models.

Eight fixed narrative arcs describe how a work story is told:

    firefighter  crisis response          architect   system design
    diplomat     stakeholder alignment    multiplier  force multiplication
    detective    root-cause investigation pioneer     unknown territory
    turnaround   recovery                 preventer   risk prevention

ArchetypeDetection carries the primary classification plus ranked
alternatives. Its validator enforces the ordering invariants so a malformed
detection can never be constructed, whichever backend produced it.
"""

from enum import Enum
from typing import List

from pydantic import BaseModel, Field, model_validator


class Archetype(str, Enum):
    """Narrative arc of a work story."""

    FIREFIGHTER = "firefighter"
    ARCHITECT = "architect"
    DIPLOMAT = "diplomat"
    MULTIPLIER = "multiplier"
    DETECTIVE = "detective"
    PIONEER = "pioneer"
    TURNAROUND = "turnaround"
    PREVENTER = "preventer"


# Fixed order, also the final tie-break for equal scores
ARCHETYPE_ORDER = tuple(Archetype)


class ArchetypeSignals(BaseModel):
    """Boolean cues detected in the narrative, one per archetype.

    Computed fresh per detection call and never persisted.
    """

    has_crisis: bool = False
    has_architecture: bool = False
    has_stakeholder_conflict: bool = False
    has_multiplication: bool = False
    has_mystery: bool = False
    has_pioneering: bool = False
    has_turnaround: bool = False
    has_prevention: bool = False

    def active(self) -> List[str]:
        """Names of the signals that fired."""
        return [name for name, value in self.model_dump().items() if value]


# Signal field for each archetype
SIGNAL_FIELDS = {
    Archetype.FIREFIGHTER: "has_crisis",
    Archetype.ARCHITECT: "has_architecture",
    Archetype.DIPLOMAT: "has_stakeholder_conflict",
    Archetype.MULTIPLIER: "has_multiplication",
    Archetype.DETECTIVE: "has_mystery",
    Archetype.PIONEER: "has_pioneering",
    Archetype.TURNAROUND: "has_turnaround",
    Archetype.PREVENTER: "has_prevention",
}


class ArchetypeCandidate(BaseModel):
    """One archetype with its confidence and a one-sentence justification."""

    archetype: Archetype
    confidence: float = Field(ge=0.0, le=1.0)
    reasoning: str = ""


class ArchetypeDetection(BaseModel):
    """Classification result for one narrative entry.

    Invariants:
        - primary.confidence >= every alternative confidence
        - alternatives never contain the primary archetype, nor duplicates
        - alternatives sorted by descending confidence
    """

    primary: ArchetypeCandidate
    alternatives: List[ArchetypeCandidate] = Field(default_factory=list)
    signals: ArchetypeSignals = Field(default_factory=ArchetypeSignals)
    source: str = Field(default="heuristic", description="'llm' or 'heuristic'")

    @model_validator(mode="after")
    def check_ranking(self) -> "ArchetypeDetection":
        seen = {self.primary.archetype}
        previous = self.primary.confidence
        for alt in self.alternatives:
            if alt.archetype in seen:
                raise ValueError(f"duplicate archetype in detection: {alt.archetype.value}")
            if alt.confidence > previous:
                raise ValueError("alternatives must be sorted below the primary")
            seen.add(alt.archetype)
            previous = alt.confidence
        return self
