"""Archetype story templates and framework section roles.

Two static tables drive template composition:

    ARCHETYPE_TEMPLATES   Archetype -> default hook, guidance, and which
                          section role each ExtractedContext field feeds
    ROLE_HOMES            role -> the framework section that carries it,
                          resolved per framework from a preference list

Both are checked when the module is imported: every archetype needs a
template, every mapped field must exist on ExtractedContext, and every role
must land in a section of every framework.
"""

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Dict, Mapping, Tuple

from story_coach.core.exceptions import ConfigurationError
from story_coach.domain.models.archetype import Archetype
from story_coach.domain.models.coaching import ExtractedContext
from story_coach.domain.models.story import FRAMEWORK_SECTIONS, Framework


class SectionRole(str, Enum):
    """Narrative job a piece of content does inside a story."""

    SETUP = "setup"
    STAKES = "stakes"
    TASK = "task"
    OBSTACLE = "obstacle"
    ACTION = "action"
    RESULT = "result"
    LEARNING = "learning"


# Preferred section keys per role; the first key present in a framework wins
_ROLE_PREFERENCES: Dict[SectionRole, Tuple[str, ...]] = {
    SectionRole.SETUP: ("situation", "context", "challenge", "problem"),
    SectionRole.STAKES: ("situation", "context", "challenge", "problem"),
    SectionRole.TASK: ("task", "challenge", "problem", "action", "actions"),
    SectionRole.OBSTACLE: ("obstacles", "hindrances", "challenge", "problem", "situation", "context"),
    SectionRole.ACTION: ("action", "actions"),
    SectionRole.RESULT: ("result", "results"),
    SectionRole.LEARNING: ("learning", "evaluation", "result", "results"),
}

# Generic guidance for basic mode, used when the entry gives a section nothing
SECTION_GUIDANCE: Mapping[str, str] = MappingProxyType(
    {
        "situation": "The situation",
        "context": "The context",
        "challenge": "The challenge",
        "problem": "The problem",
        "task": "What I had to deliver",
        "obstacles": "What stood in the way",
        "hindrances": "What held the work back",
        "action": "What I did",
        "actions": "What I did",
        "result": "The outcome",
        "results": "The outcome",
        "learning": "What I took away",
        "evaluation": "Looking back",
    }
)


@dataclass(frozen=True)
class ArchetypeTemplate:
    """How one archetype tells its story."""

    default_hook: str  # formatted with {title}
    guidance: str
    field_roles: Mapping[str, SectionRole] = field(default_factory=dict)


_COMMON_ROLES = {
    "named_people": SectionRole.ACTION,
    "learning": SectionRole.LEARNING,
    "evidence": SectionRole.STAKES,
}


def _template(default_hook: str, guidance: str, **roles: SectionRole) -> ArchetypeTemplate:
    return ArchetypeTemplate(
        default_hook=default_hook,
        guidance=guidance,
        field_roles=MappingProxyType({**_COMMON_ROLES, **roles}),
    )


ARCHETYPE_TEMPLATES: Mapping[Archetype, ArchetypeTemplate] = MappingProxyType(
    {
        Archetype.FIREFIGHTER: _template(
            'When the alert came in on "{title}", everything changed.',
            "Crisis response: open on the moment it broke, keep the urgency, end on what was saved.",
            obstacle=SectionRole.SETUP,
            counterfactual=SectionRole.STAKES,
            real_story=SectionRole.OBSTACLE,
            key_decision=SectionRole.ACTION,
            metric=SectionRole.RESULT,
        ),
        Archetype.ARCHITECT: _template(
            'I saw what "{title}" needed, and I built it to last.',
            "System design: show the vision, the trade-off, and what still stands on it.",
            real_story=SectionRole.SETUP,
            obstacle=SectionRole.OBSTACLE,
            key_decision=SectionRole.ACTION,
            counterfactual=SectionRole.RESULT,
            metric=SectionRole.RESULT,
        ),
        Archetype.DIPLOMAT: _template(
            'Two teams, opposing views, one path forward on "{title}".',
            "Stakeholder alignment: name the sides, what each feared, and the insight that unlocked it.",
            obstacle=SectionRole.SETUP,
            real_story=SectionRole.OBSTACLE,
            key_decision=SectionRole.ACTION,
            counterfactual=SectionRole.RESULT,
            metric=SectionRole.RESULT,
        ),
        Archetype.MULTIPLIER: _template(
            'What started as my fix for "{title}" became everyone\'s solution.',
            "Force multiplication: quantify the pain, then the spread and the compound effect.",
            obstacle=SectionRole.SETUP,
            real_story=SectionRole.ACTION,
            key_decision=SectionRole.ACTION,
            counterfactual=SectionRole.RESULT,
            metric=SectionRole.RESULT,
        ),
        Archetype.DETECTIVE: _template(
            'No one could explain what was going wrong in "{title}" until I traced it back.',
            "Investigation: the mystery, the dead ends, the clue, the root cause.",
            obstacle=SectionRole.SETUP,
            metric=SectionRole.STAKES,
            real_story=SectionRole.OBSTACLE,
            key_decision=SectionRole.ACTION,
            counterfactual=SectionRole.RESULT,
        ),
        Archetype.PIONEER: _template(
            'No documentation and no playbook, just "{title}" and a problem that needed solving.',
            "First mover: what made it unknown, what failed, and the trail left behind.",
            obstacle=SectionRole.SETUP,
            real_story=SectionRole.OBSTACLE,
            key_decision=SectionRole.ACTION,
            counterfactual=SectionRole.RESULT,
            metric=SectionRole.RESULT,
        ),
        Archetype.TURNAROUND: _template(
            'I inherited "{title}" as a mess, and this is how I turned it around.',
            "Recovery: before numbers, the real problem, the first move, after numbers.",
            obstacle=SectionRole.SETUP,
            real_story=SectionRole.OBSTACLE,
            key_decision=SectionRole.ACTION,
            counterfactual=SectionRole.RESULT,
            metric=SectionRole.RESULT,
        ),
        Archetype.PREVENTER: _template(
            'I noticed a risk in "{title}" that others missed, and it saved us.',
            "Risk prevention: what you noticed, how you proved it, and the disaster that did not happen.",
            obstacle=SectionRole.SETUP,
            counterfactual=SectionRole.STAKES,
            real_story=SectionRole.OBSTACLE,
            key_decision=SectionRole.ACTION,
            metric=SectionRole.RESULT,
        ),
    }
)


def _resolve_homes(framework: Framework) -> Dict[SectionRole, str]:
    keys = FRAMEWORK_SECTIONS[framework]
    homes = {}
    for role, preferences in _ROLE_PREFERENCES.items():
        home = next((k for k in preferences if k in keys), None)
        if home is None:
            raise ConfigurationError(
                f"Role '{role.value}' has no section in framework {framework.value}"
            )
        homes[role] = home
    return homes


ROLE_HOMES: Mapping[Framework, Mapping[SectionRole, str]] = MappingProxyType(
    {framework: MappingProxyType(_resolve_homes(framework)) for framework in Framework}
)


def validate_templates(templates: Mapping[Archetype, ArchetypeTemplate]) -> None:
    """
    Raises:
        ConfigurationError: If an archetype lacks a template, a template maps
            an unknown context field, or a default hook cannot take the title
    """
    missing = [a.value for a in Archetype if a not in templates]
    if missing:
        raise ConfigurationError(f"Story templates missing archetypes: {missing}")

    context_fields = set(ExtractedContext.model_fields)
    for archetype, template in templates.items():
        unknown = set(template.field_roles) - context_fields
        if unknown:
            raise ConfigurationError(
                f"Template for '{archetype.value}' maps unknown fields {sorted(unknown)}"
            )
        if "{title}" not in template.default_hook:
            raise ConfigurationError(
                f"Default hook for '{archetype.value}' must reference the entry title"
            )

    missing_sections = [k for k in {k for keys in FRAMEWORK_SECTIONS.values() for k in keys}
                        if k not in SECTION_GUIDANCE]
    if missing_sections:
        raise ConfigurationError(f"No section guidance for {sorted(missing_sections)}")


validate_templates(ARCHETYPE_TEMPLATES)


def section_for(framework: Framework, role: SectionRole) -> str:
    return ROLE_HOMES[framework][role]
