"""
Story generation service.

Turns a narrative entry into a framework-shaped story. Two modes:

- Basic: sections built straight from the entry text with generic
  per-section guidance
- Enhanced: an archetype plus a coaching session's extracted context; every
  context field is placed in the section its archetype template maps it to

Two backends:

- TemplateStoryComposer: deterministic, offline, the default
- LLMStoryComposer: the generation LLM; failures and malformed replies raise
  GenerationUnavailableError, never a partially built story

Evidence only ever cites this entry's activity ids or quotes of the entry
text.
"""

import re
import uuid
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

import structlog

from story_coach.core.config import GenerationSettings, coach_config
from story_coach.core.exceptions import GenerationUnavailableError, LLMError
from story_coach.domain.models.archetype import Archetype
from story_coach.domain.models.coaching import CoachSession, ExtractedContext
from story_coach.domain.models.entry import NarrativeEntry
from story_coach.domain.models.story import (
    FRAMEWORK_SECTIONS,
    EvidenceRef,
    Framework,
    GeneratedStory,
    StorySection,
)
from story_coach.llm.client import LLMClient
from story_coach.llm.prompts.story import (
    STORY_SYSTEM_PROMPT,
    get_story_user_prompt,
    parse_story_response,
)
from story_coach.services.context_accumulator import NAME_PATTERN
from story_coach.services.story_templates import (
    ARCHETYPE_TEMPLATES,
    SECTION_GUIDANCE,
    SectionRole,
    section_for,
)

log = structlog.get_logger(__name__)

SENTENCE_SPLIT = re.compile(r"(?<=[.!?])\s+")
TIME_PATTERN = re.compile(r"\b\d{1,2}(?::\d{2})?\s?(?:am|pm)\b|\bmidnight\b", re.I)
DIGIT_PATTERN = re.compile(r"\d")

LEARNING_PATTERN = re.compile(r"\b(?:learn(?:ed|t)|lesson|takeaway|next time|in hindsight)\b", re.I)
RESULT_PATTERN = re.compile(
    r"\d|\b(?:reduc|improv|sav|cut|increas|decreas|launch|ship|result|deliver)\w*", re.I
)
OBSTACLE_PATTERN = re.compile(
    r"\b(?:problem|bug|issue|outage|incident|failing|broke|broken|blocker|risk)s?\b", re.I
)
TASK_PATTERN = re.compile(r"\b(?:needed to|had to|asked to|tasked|goal|responsible for)\b", re.I)

BASIC_HOOK = 'Here is what really happened on "{title}".'

QUOTE_CHARS = 140


def _truncate(text: str, limit: int) -> str:
    if len(text) <= limit:
        return text
    cut = text[:limit].rsplit(" ", 1)[0].rstrip(",;:")
    return f"{cut}..."


def _as_sentence(text: str) -> str:
    text = text.strip()
    if not text:
        return text
    text = text[0].upper() + text[1:]
    return text if text[-1] in ".!?" else f"{text}."


def _sentences(text: str) -> List[str]:
    return [s.strip() for s in SENTENCE_SPLIT.split(text or "") if s.strip()]


def _quote(text: str) -> EvidenceRef:
    return EvidenceRef(description=f'Entry: "{_truncate(text.strip(), QUOTE_CHARS)}"')


def hook_stake(entry: NarrativeEntry) -> str:
    """What a fallback hook quotes: the first skill, else the category, else the title.

    Titles often name a role ("Senior Engineer") rather than the work, so
    they come last.
    """
    for value in (*entry.skills, entry.category, entry.title):
        if value and value.strip():
            return value.strip()
    return "this work"


def has_concrete_detail(hook: str, stake: str = "") -> bool:
    """True when the hook names a time, a number, a person, or the quoted stake."""
    if TIME_PATTERN.search(hook) or DIGIT_PATTERN.search(hook) or NAME_PATTERN.search(hook):
        return True
    return bool(stake) and f'"{stake}"' in hook


@dataclass
class _Piece:
    role: SectionRole
    text: str
    evidence: List[EvidenceRef] = field(default_factory=list)
    source: str = "entry"


@dataclass
class ComposedStory:
    """Backend output before ids and timestamps are attached."""

    title: str
    hook: str
    sections: Dict[str, StorySection]
    reasoning: str


# =============================================================================
# Template backend
# =============================================================================


class TemplateStoryComposer:
    """Deterministic story composition from entry text and extracted context."""

    def __init__(self, generation: Optional[GenerationSettings] = None):
        self.settings = generation or coach_config.generation

    def compose(
        self,
        entry: NarrativeEntry,
        framework: Framework,
        archetype: Optional[Archetype] = None,
        context: Optional[ExtractedContext] = None,
    ) -> ComposedStory:
        enhanced = archetype is not None and context is not None and not context.is_empty()

        pieces: List[_Piece] = []
        placements: List[Tuple[str, str]] = []
        if enhanced:
            context_pieces = self._context_pieces(entry, archetype, context)
            pieces.extend(context_pieces)
            placements = [(p.source, section_for(framework, p.role)) for p in context_pieces]
        pieces.extend(self._entry_pieces(entry, skip=[p.text for p in pieces]))

        sections = self._assemble(entry, framework, pieces)

        if enhanced:
            template = ARCHETYPE_TEMPLATES[archetype]
            placed = ", ".join(f"{name} -> {section}" for name, section in placements)
            reasoning = f"{template.guidance} Coaching details placed: {placed}."
        else:
            reasoning = (
                f"{framework.value} story built from the entry text with generic "
                "section guidance."
            )

        return ComposedStory(
            title=entry.title or "Career Story",
            hook=self.build_hook(entry, archetype if enhanced else None, context if enhanced else None),
            sections=sections,
            reasoning=reasoning,
        )

    # -------------------------------------------------------------------------

    def _context_pieces(
        self, entry: NarrativeEntry, archetype: Archetype, context: ExtractedContext
    ) -> List[_Piece]:
        template = ARCHETYPE_TEMPLATES[archetype]
        entry_text = entry.combined_text.lower()
        pieces = []

        for name, value in context.model_dump().items():
            role = template.field_roles.get(name)
            if role is None or not value:
                continue

            if name == "named_people":
                people = list(dict.fromkeys(value))
                text = f"Worked it through with {', '.join(people)}."
            elif name == "metric":
                text = _as_sentence(f"Result: {value}")
            else:
                text = _as_sentence(value)

            # Interview answers are not source material; only entry quotes are cited
            evidence = []
            if isinstance(value, str) and value.strip().lower() in entry_text:
                evidence = [_quote(value)]
            pieces.append(_Piece(role=role, text=text, evidence=evidence, source=name))

        return pieces

    def _entry_pieces(self, entry: NarrativeEntry, skip: List[str]) -> List[_Piece]:
        skip_lower = " ".join(skip).lower()
        sentences = _sentences(entry.text)
        pieces = []

        setup = (entry.description or "").strip() or (sentences[0] if sentences else entry.title)
        if setup and setup.lower().rstrip(".") not in skip_lower:
            pieces.append(_Piece(SectionRole.SETUP, _as_sentence(setup), [_quote(setup)]))

        for sentence in sentences:
            if sentence == setup or sentence.lower().rstrip(".") in skip_lower:
                continue
            pieces.append(_Piece(self._classify(sentence), sentence, [_quote(sentence)]))

        for phase in entry.phases:
            if not phase.summary:
                continue
            evidence = [EvidenceRef(activity_id=a) for a in phase.activity_ids]
            pieces.append(
                _Piece(
                    SectionRole.ACTION,
                    _as_sentence(f"{phase.name}: {phase.summary}"),
                    evidence or [_quote(phase.summary)],
                )
            )
        return pieces

    @staticmethod
    def _classify(sentence: str) -> SectionRole:
        if LEARNING_PATTERN.search(sentence):
            return SectionRole.LEARNING
        if TASK_PATTERN.search(sentence):
            return SectionRole.TASK
        if OBSTACLE_PATTERN.search(sentence):
            return SectionRole.OBSTACLE
        if RESULT_PATTERN.search(sentence):
            return SectionRole.RESULT
        return SectionRole.ACTION

    def _assemble(
        self, entry: NarrativeEntry, framework: Framework, pieces: List[_Piece]
    ) -> Dict[str, StorySection]:
        keys = FRAMEWORK_SECTIONS[framework]
        texts: Dict[str, List[str]] = {k: [] for k in keys}
        evidence: Dict[str, List[EvidenceRef]] = {k: [] for k in keys}

        for piece in pieces:
            key = section_for(framework, piece.role)
            texts[key].append(piece.text)
            evidence[key].extend(piece.evidence)

        # Entry-level activities back the work and its outcome
        activity_refs = [EvidenceRef(activity_id=a) for a in entry.activity_ids]
        for role in (SectionRole.ACTION, SectionRole.RESULT):
            key = section_for(framework, role)
            evidence[key].extend(r for r in activity_refs if r not in evidence[key])

        sections = {}
        fallback_source = (entry.description or entry.title or "").strip()
        for key in keys:
            if texts[key]:
                summary = " ".join(texts[key])
            else:
                summary = f"{SECTION_GUIDANCE[key]}: {fallback_source or 'details pending'}"
                if fallback_source:
                    evidence[key].append(_quote(fallback_source))
            sections[key] = StorySection(
                summary=_truncate(summary, self.settings.max_summary_chars),
                evidence=evidence[key],
            )
        return sections

    def build_hook(
        self,
        entry: NarrativeEntry,
        archetype: Optional[Archetype] = None,
        context: Optional[ExtractedContext] = None,
    ) -> str:
        """One sentence carrying a concrete detail.

        Looks for a time of day, then a number, then a named person, in the
        context first and the entry text second. Falls back to the archetype's
        default hook (or a basic one) quoting ``hook_stake(entry)``.
        """
        stake = hook_stake(entry)
        candidates: List[str] = []
        if context is not None:
            for value in (context.obstacle, context.real_story, context.metric, context.counterfactual):
                if value:
                    candidates.extend(_sentences(value))
        candidates.extend(_sentences(entry.text))

        for pattern in (TIME_PATTERN, DIGIT_PATTERN):
            match = next((c for c in candidates if pattern.search(c)), None)
            if match:
                return _truncate(_as_sentence(match), self.settings.max_hook_chars)

        names = list(context.named_people) if context is not None else []
        names += NAME_PATTERN.findall(entry.text)
        if names:
            return _truncate(
                f'It started with {names[0]} and "{stake}".', self.settings.max_hook_chars
            )

        template = BASIC_HOOK if archetype is None else ARCHETYPE_TEMPLATES[archetype].default_hook
        return template.format(title=stake)


# =============================================================================
# LLM backend
# =============================================================================


class LLMStoryComposer:
    """Story composition via the generation LLM.

    Args:
        llm_client: Generation LLM client
        templates: Used only to repair a hook with no concrete detail
    """

    def __init__(self, llm_client: LLMClient, templates: Optional[TemplateStoryComposer] = None):
        self.llm = llm_client
        self.templates = templates or TemplateStoryComposer()

    async def compose(
        self,
        entry: NarrativeEntry,
        framework: Framework,
        archetype: Optional[Archetype] = None,
        context: Optional[ExtractedContext] = None,
    ) -> ComposedStory:
        """
        Raises:
            GenerationUnavailableError: On backend failure or a reply without
                exactly the framework's sections
        """
        try:
            response = await self.llm.complete(
                prompt=get_story_user_prompt(entry, framework, archetype, context),
                system=STORY_SYSTEM_PROMPT,
            )
            data = parse_story_response(response.content)
        except LLMError as e:
            raise GenerationUnavailableError(f"Generation backend failed: {e.message}") from e

        expected = FRAMEWORK_SECTIONS[framework]
        raw_sections = data["sections"]
        if set(raw_sections) != set(expected):
            raise GenerationUnavailableError(
                f"Generation backend returned sections {sorted(raw_sections)}, "
                f"expected {list(expected)}"
            )

        allowed_ids = set(entry.all_activity_ids())
        sections = {}
        for key in expected:
            raw = raw_sections[key]
            summary = raw.get("summary") if isinstance(raw, dict) else raw
            if not isinstance(summary, str) or not summary.strip():
                raise GenerationUnavailableError(f"Generation backend left section '{key}' empty")
            evidence = raw.get("evidence", []) if isinstance(raw, dict) else []
            sections[key] = StorySection(
                summary=summary.strip(),
                evidence=self._filter_evidence(evidence, allowed_ids),
            )

        title = str(data.get("title") or entry.title or "Career Story").strip()
        hook = str(data.get("hook") or "").strip()
        if not has_concrete_detail(hook, hook_stake(entry)):
            log.info("story_hook_replaced", entry_id=entry.id, hook=hook[:80])
            hook = self.templates.build_hook(entry, archetype, context)

        return ComposedStory(
            title=title,
            hook=hook,
            sections=sections,
            reasoning=str(data.get("reasoning") or "").strip(),
        )

    @staticmethod
    def _filter_evidence(raw_evidence, allowed_ids) -> List[EvidenceRef]:
        """Keep refs that cite this entry's activities or carry only a description.

        A ref whose activityId is foreign or not a string is dropped whole,
        description included.
        """
        refs = []
        if not isinstance(raw_evidence, list):
            return refs
        for item in raw_evidence:
            if not isinstance(item, dict):
                continue
            activity_id = item.get("activityId", item.get("activity_id"))
            description = item.get("description")
            if activity_id is not None:
                if not isinstance(activity_id, str) or activity_id not in allowed_ids:
                    continue
            if not isinstance(description, str) or not description.strip():
                description = None
            if activity_id or description:
                refs.append(EvidenceRef(activity_id=activity_id, description=description))
        return refs


# =============================================================================
# Service
# =============================================================================


class StoryGenerator:
    """
    Service for generating framework-shaped stories.

    Uses the LLM composer when a generation client is supplied, the
    deterministic template composer otherwise.
    """

    def __init__(
        self,
        llm_client: Optional[LLMClient] = None,
        generation: Optional[GenerationSettings] = None,
    ):
        self.settings = generation or coach_config.generation
        self.templates = TemplateStoryComposer(self.settings)
        self.llm_composer = LLMStoryComposer(llm_client, self.templates) if llm_client else None

    async def generate(
        self,
        entry: NarrativeEntry,
        framework: Optional[Framework] = None,
        archetype: Optional[Archetype] = None,
        session: Optional[CoachSession] = None,
    ) -> GeneratedStory:
        """
        Generate a story for ``entry``.

        Enhanced mode needs an archetype (taken from the session when not
        given) and a session with a non-empty extracted context.

        Raises:
            GenerationUnavailableError: If the LLM backend fails
            StoryContractError: If the composed story breaks its framework's
                section contract
        """
        framework = Framework(framework or self.settings.default_framework)
        if archetype is None and session is not None:
            archetype = session.archetype
        context = session.extracted_context if session is not None else None
        with_coaching = archetype is not None and context is not None and not context.is_empty()

        if self.llm_composer is not None:
            composed = await self.llm_composer.compose(
                entry, framework, archetype, context if with_coaching else None
            )
        else:
            composed = self.templates.compose(entry, framework, archetype, context)

        story = GeneratedStory(
            id=str(uuid.uuid4()),
            entry_id=entry.id,
            session_id=session.id if session is not None else None,
            title=composed.title,
            hook=composed.hook,
            framework=framework,
            archetype=archetype,
            sections=composed.sections,
            reasoning=composed.reasoning,
            with_coaching=with_coaching,
        )
        story.check_sections()

        log.info(
            "story_generated",
            story_id=story.id,
            entry_id=entry.id,
            framework=framework.value,
            archetype=archetype.value if archetype else None,
            with_coaching=with_coaching,
            backend="llm" if self.llm_composer is not None else "template",
            evidence_count=story.evidence_count(),
        )
        return story
