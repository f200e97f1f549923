"""Archetype detection for narrative entries.

Classifies an entry into one of eight narrative archetypes. The
classification LLM is preferred when configured; lexical cue scoring is the
fallback and the only path when LLM backends are disabled.

Heuristic scoring:
    - each archetype has a list of cue patterns; hits = distinct cues found
    - confidence = min(max_confidence, base_confidence + confidence_step * hits)
    - primary = highest confidence, ties broken by hits then fixed order
    - alternatives = next archetypes with any hit and confidence at least
      min_alternative_confidence, capped at max_alternatives
    - no cues at all -> default archetype at default confidence

detect() never raises: backend errors and malformed replies degrade to the
heuristic path.
"""

import re
from typing import Dict, List, Optional, Tuple

import structlog
from pydantic import ValidationError as PydanticValidationError

from story_coach.core.config import DetectionSettings, coach_config
from story_coach.core.exceptions import StoryCoachError
from story_coach.domain.models.archetype import (
    ARCHETYPE_ORDER,
    SIGNAL_FIELDS,
    Archetype,
    ArchetypeCandidate,
    ArchetypeDetection,
    ArchetypeSignals,
)
from story_coach.domain.models.entry import NarrativeEntry
from story_coach.llm.client import LLMClient
from story_coach.llm.prompts.archetype import (
    get_archetype_system_prompt,
    get_archetype_user_prompt,
    parse_archetype_response,
)

log = structlog.get_logger(__name__)

ARCHETYPE_LABELS = {
    Archetype.FIREFIGHTER: "crisis response",
    Archetype.ARCHITECT: "system design",
    Archetype.DIPLOMAT: "stakeholder alignment",
    Archetype.MULTIPLIER: "force multiplication",
    Archetype.DETECTIVE: "root-cause investigation",
    Archetype.PIONEER: "unknown territory",
    Archetype.TURNAROUND: "recovery",
    Archetype.PREVENTER: "risk prevention",
}

# Cue name -> pattern, per archetype. Patterns run on lowercased text.
_CUES: Dict[Archetype, Dict[str, str]] = {
    Archetype.FIREFIGHTER: {
        "time of day": r"\b\d{1,2}(?::\d{2})?\s?(?:am|pm)\b|\bmidnight\b|\bin the middle of the night\b",
        "production issue": r"\bproduction (?:issue|incident|outage|bug)",
        "outage": r"\boutages?\b|\bdowntime\b|\bwent down\b",
        "incident": r"\bincidents?\b|\bsev ?[01]\b|\bp0\b",
        "paged": r"\bpaged\b|\bon-?call\b|\bpagerduty\b",
        "emergency": r"\bemergenc(?:y|ies)\b|\burgent\b|\bcrisis\b",
        "hotfix": r"\bhotfix(?:es)?\b|\brollback\b|\brolled back\b",
    },
    Archetype.ARCHITECT: {
        "architecture": r"\barchitect(?:ure|ed|ing)?\b|\bre-?architect",
        "design": r"\bdesign(?:ed)?\b|\bsystem design\b",
        "scalability": r"\bscal(?:able|ability|ed)\b",
        "platform": r"\bplatform\b|\bmicroservices?\b|\binfrastructure\b",
        "migration": r"\bmigrat(?:ed|ion|ing)\b",
        "trade-off": r"\btrade-?offs?\b",
        "foundation": r"\bfoundation(?:al)?\b",
    },
    Archetype.DIPLOMAT: {
        "stakeholders": r"\bstakeholders?\b",
        "alignment": r"\balign(?:ed|ment)?\b",
        "consensus": r"\bconsensus\b|\bbuy-?in\b",
        "negotiation": r"\bnegotiat(?:e|ed|ion|ing)\b|\bmediat(?:e|ed|ion)\b",
        "conflict": r"\bconflict(?:s|ing)?\b|\bdisagree(?:d|ment)?\b",
        "cross-team": r"\bcross-?(?:team|functional)\b",
    },
    Archetype.MULTIPLIER: {
        "mentoring": r"\bmentor(?:ed|ing|s)?\b|\bcoached\b",
        "training": r"\btrain(?:ed|ing)\b|\bworkshops?\b",
        "onboarding": r"\bonboard(?:ed|ing)?\b",
        "adoption": r"\badopt(?:ed|ion)\b",
        "reusable": r"\breusable\b|\btemplates?\b|\bshared library\b",
        "many teams": r"\b\d+\s+(?:teams|engineers|developers)\b|\bacross teams\b",
    },
    Archetype.DETECTIVE: {
        "root cause": r"\broot[- ]cause\b",
        "investigation": r"\binvestigat(?:e|ed|ion|ing)\b",
        "debugging": r"\bdebug(?:ged|ging)?\b|\btraced\b",
        "intermittent": r"\bintermittent(?:ly)?\b|\bflaky\b|\bsporadic\b",
        "mystery": r"\bmyster(?:y|ious)\b|\bno one could\b|\bnobody could\b",
        "repro": r"\brepro(?:duce|duced)?\b",
        "leak or race": r"\bmemory leak\b|\brace condition\b|\bdeadlock\b",
    },
    Archetype.PIONEER: {
        "first": r"\bfirst (?:time|ever|to|team)\b",
        "new technology": r"\bnew (?:technology|tech|framework|language|stack)\b",
        "prototype": r"\bprototyp(?:e|ed|ing)\b|\bproof of concept\b|\bpoc\b",
        "pilot": r"\bpilot(?:ed)?\b|\bexperiment(?:ed|s)?\b",
        "no documentation": r"\bno (?:documentation|docs|playbook)\b|\bundocumented\b",
        "greenfield": r"\bgreenfield\b|\buncharted\b|\bunknown territory\b",
    },
    Archetype.TURNAROUND: {
        "inherited": r"\binherit(?:ed)?\b",
        "turnaround": r"\bturn(?:ed)? (?:it )?around\b|\bturnaround\b",
        "tech debt": r"\b(?:tech|technical) debt\b|\blegacy\b",
        "recovery": r"\brecover(?:ed|y)?\b|\brescued?\b",
        "morale": r"\bmorale\b",
        "behind": r"\bbehind schedule\b|\bstruggling\b|\bfailing\b",
    },
    Archetype.PREVENTER: {
        "prevention": r"\bprevent(?:ed|ing|ion)?\b|\baverted\b",
        "risk": r"\brisks?\b",
        "vulnerability": r"\bvulnerab(?:le|ility|ilities)\b|\bsecurity\b",
        "proactive": r"\bproactive(?:ly)?\b|\bbefore it\b|\bcaught (?:it )?early\b",
        "audit": r"\baudit(?:ed|ing)?\b|\bcompliance\b",
    },
}

CUE_PATTERNS: Dict[Archetype, Tuple[Tuple[str, re.Pattern], ...]] = {
    archetype: tuple((name, re.compile(pattern)) for name, pattern in cues.items())
    for archetype, cues in _CUES.items()
}


def match_cues(text: str) -> Dict[Archetype, List[str]]:
    """Names of the cues found in ``text``, per archetype."""
    lowered = text.lower()
    return {
        archetype: [name for name, pattern in CUE_PATTERNS[archetype] if pattern.search(lowered)]
        for archetype in ARCHETYPE_ORDER
    }


def compute_signals(hits: Dict[Archetype, List[str]]) -> ArchetypeSignals:
    return ArchetypeSignals(
        **{SIGNAL_FIELDS[archetype]: bool(cues) for archetype, cues in hits.items()}
    )


class ArchetypeDetector:
    """Classifies entries into narrative archetypes.

    Args:
        llm_client: Classification LLM; None runs heuristics only
        detection: Scoring parameters (coach_config.detection if None)
    """

    def __init__(
        self,
        llm_client: Optional[LLMClient] = None,
        detection: Optional[DetectionSettings] = None,
    ):
        self.llm = llm_client
        self.settings = detection or coach_config.detection

    async def detect(self, entry: NarrativeEntry) -> ArchetypeDetection:
        """Classify ``entry``. Never raises."""
        hits = match_cues(entry.combined_text)
        signals = compute_signals(hits)

        if self.llm is not None and entry.combined_text:
            try:
                detection = await self._detect_with_llm(entry, signals)
            except (StoryCoachError, PydanticValidationError) as e:
                log.warning(
                    "archetype_llm_fallback",
                    entry_id=entry.id,
                    error=str(e),
                )
            else:
                if detection is not None:
                    self._log_detection(entry, detection)
                    return detection

        detection = self._score(hits, signals)
        self._log_detection(entry, detection)
        return detection

    def detect_heuristic(self, entry: NarrativeEntry) -> ArchetypeDetection:
        """Cue-count scoring only."""
        hits = match_cues(entry.combined_text)
        return self._score(hits, compute_signals(hits))

    def _confidence(self, hit_count: int) -> float:
        s = self.settings
        return round(min(s.max_confidence, s.base_confidence + s.confidence_step * hit_count), 4)

    def _score(
        self, hits: Dict[Archetype, List[str]], signals: ArchetypeSignals
    ) -> ArchetypeDetection:
        ranked = sorted(
            (
                (self._confidence(len(cues)), len(cues), -ARCHETYPE_ORDER.index(a), a)
                for a, cues in hits.items()
                if cues
            ),
            reverse=True,
        )

        if not ranked:
            default = Archetype(self.settings.default_archetype)
            return ArchetypeDetection(
                primary=ArchetypeCandidate(
                    archetype=default,
                    confidence=self.settings.default_confidence,
                    reasoning=(
                        f"No archetype cues found; defaulting to {default.value} "
                        "with minimal confidence."
                    ),
                ),
                signals=signals,
                source="heuristic",
            )

        primary_conf, _, _, primary = ranked[0]
        primary_candidate = ArchetypeCandidate(
            archetype=primary,
            confidence=primary_conf,
            reasoning=(
                f"Reads as a {ARCHETYPE_LABELS[primary]} story: "
                f"{', '.join(hits[primary])}."
            ),
        )

        alternatives = [
            ArchetypeCandidate(
                archetype=archetype,
                confidence=confidence,
                reasoning=self._alternative_reasoning(archetype, primary, hits),
            )
            for confidence, _, _, archetype in ranked[1:]
            if confidence >= self.settings.min_alternative_confidence
        ][: self.settings.max_alternatives]

        return ArchetypeDetection(
            primary=primary_candidate,
            alternatives=alternatives,
            signals=signals,
            source="heuristic",
        )

    @staticmethod
    def _alternative_reasoning(
        archetype: Archetype, primary: Archetype, hits: Dict[Archetype, List[str]]
    ) -> str:
        return (
            f"Also has {ARCHETYPE_LABELS[archetype]} cues ({', '.join(hits[archetype])}), "
            f"but fewer than the {ARCHETYPE_LABELS[primary]} arc."
        )

    async def _detect_with_llm(
        self, entry: NarrativeEntry, signals: ArchetypeSignals
    ) -> Optional[ArchetypeDetection]:
        response = await self.llm.complete(
            prompt=get_archetype_user_prompt(entry),
            system=get_archetype_system_prompt(),
        )
        raw = parse_archetype_response(response.content)
        candidates = self._sanitise(raw)
        if not candidates:
            log.warning("archetype_llm_no_valid_candidates", entry_id=entry.id)
            return None

        primary, alternatives = candidates[0], candidates[1:]
        top_alternative = max((a.confidence for a in alternatives), default=0.0)
        if primary.confidence < top_alternative:
            primary = primary.model_copy(update={"confidence": top_alternative})

        alternatives = sorted(alternatives, key=lambda a: a.confidence, reverse=True)
        alternatives = [
            a for a in alternatives if a.confidence >= self.settings.min_alternative_confidence
        ][: self.settings.max_alternatives]

        return ArchetypeDetection(
            primary=primary, alternatives=alternatives, signals=signals, source="llm"
        )

    @staticmethod
    def _sanitise(raw: List[dict]) -> List[ArchetypeCandidate]:
        """Drop unknown archetypes and duplicates; clamp confidences to [0, 1]."""
        seen = set()
        candidates = []
        for item in raw:
            try:
                archetype = Archetype(str(item.get("archetype", "")).strip().lower())
            except ValueError:
                continue
            if archetype in seen:
                continue
            try:
                confidence = float(item.get("confidence", 0.0))
            except (TypeError, ValueError):
                confidence = 0.0
            if confidence != confidence:  # NaN
                confidence = 0.0
            seen.add(archetype)
            candidates.append(
                ArchetypeCandidate(
                    archetype=archetype,
                    confidence=min(1.0, max(0.0, confidence)),
                    reasoning=str(item.get("reasoning") or "").strip(),
                )
            )
        return candidates

    @staticmethod
    def _log_detection(entry: NarrativeEntry, detection: ArchetypeDetection) -> None:
        log.info(
            "archetype_detected",
            entry_id=entry.id,
            archetype=detection.primary.archetype.value,
            confidence=detection.primary.confidence,
            alternatives=[a.archetype.value for a in detection.alternatives],
            source=detection.source,
        )
