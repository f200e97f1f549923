"""Archetype question bank for coaching interviews.

Every archetype owns exactly six questions in fixed order: three dig, two
impact, one growth. The table is immutable and checked when this module is
imported, so an incomplete bank fails at startup rather than mid-interview.

Question ids follow ``<prefix>-<phase>-<n>``; the context accumulator keys
its rules off the ``dig-1`` / ``impact-2`` / ``growth`` parts of the id.
"""

from types import MappingProxyType
from typing import Dict, Mapping, Optional, Tuple

from story_coach.core.exceptions import ConfigurationError
from story_coach.domain.models.archetype import Archetype
from story_coach.domain.models.coaching import CoachPhase, CoachQuestion, QUESTION_PHASES

QUESTIONS_PER_PHASE = {CoachPhase.DIG: 3, CoachPhase.IMPACT: 2, CoachPhase.GROWTH: 1}

ID_PREFIXES = {
    Archetype.FIREFIGHTER: "ff",
    Archetype.ARCHITECT: "ar",
    Archetype.DIPLOMAT: "di",
    Archetype.MULTIPLIER: "mu",
    Archetype.DETECTIVE: "de",
    Archetype.PIONEER: "pi",
    Archetype.TURNAROUND: "tu",
    Archetype.PREVENTER: "pr",
}

# (question, hint) per archetype, in interview order
_RAW_QUESTIONS: Dict[Archetype, Tuple[Tuple[str, str], ...]] = {
    Archetype.FIREFIGHTER: (
        ("What was the moment you realized something was wrong?",
         "Think about where you were, what time it was, what you saw."),
        ("Who did you call first? What did you say to them?",
         "Give me their name and role."),
        ("What was the hardest part of fixing this?",
         "What dead ends did you hit? What almost didn't work?"),
        ("What would have happened if you hadn't caught this?",
         "Be specific - customers affected, money lost, reputation damage?"),
        ("What's the number that proves you succeeded?",
         "Time saved? Incidents prevented? Money saved? Users protected?"),
        ("What changed because of this? New process? Runbook? Alert?",
         "Is it still in use today?"),
    ),
    Archetype.ARCHITECT: (
        ("What did you see that others didn't?",
         "Why was NOW the right time to act?"),
        ("What was the hardest trade-off you had to make?",
         "What did you give up? What did you get in return?"),
        ("Who pushed back on your design? How did you handle it?",
         "Give me a name and what their concern was."),
        ("Who uses this today? How many teams or people?",
         "Is it still the foundation?"),
        ("What became possible because of your architecture?",
         "What couldn't they do before that they can do now?"),
        ("What would you design differently if you started today?",
         "What did you learn from building this?"),
    ),
    Archetype.DIPLOMAT: (
        ("Who wanted what? Walk me through the conflict.",
         "Name the people or teams and what they were fighting for."),
        ("What was really at stake for each side?",
         "Not their stated position - their actual fear or need."),
        ("What did you learn by listening that others had missed?",
         "The insight that unlocked the solution."),
        ("What became possible after you got alignment?",
         "What was blocked before that could move forward?"),
        ("How long did the alignment last? Is it still holding?",
         "Did it create lasting change or temporary peace?"),
        ("What did you learn about influence that you didn't know before?",
         "How do you approach similar situations now?"),
    ),
    Archetype.MULTIPLIER: (
        ("What were people struggling with before you stepped in?",
         "Quantify the pain - time wasted, errors made, frustration level."),
        ("What did you create that made things better?",
         "Framework? Template? Training? Tool?"),
        ("How did it spread? Did you have to push it, or did people pull it?",
         "Who were the early adopters? Name them."),
        ("How many people or teams use it now?",
         "Is it still in use? Has it grown?"),
        ("What's the compound impact? Each person saves X, times how many?",
         "Help me understand the multiplication."),
        ("What did you learn about creating things that get adopted?",
         "What makes something stick vs get ignored?"),
    ),
    Archetype.DETECTIVE: (
        ("What was the mystery? What couldn't anyone explain?",
         "What made it hard to solve? Intermittent? No repro?"),
        ("Walk me through your investigation. What did you try first?",
         "Include the dead ends - they show rigor."),
        ("What was the breakthrough moment? What led you to the answer?",
         "The clue that cracked it."),
        ("What was the actual root cause? How surprising was it?",
         "Was it what people expected, or something else entirely?"),
        ("How many people were affected before you solved it?",
         "Users, customers, engineers - who was suffering?"),
        ("What debugging skill did you develop from this?",
         "How do you approach similar mysteries now?"),
    ),
    Archetype.PIONEER: (
        ("What made this genuinely unknown territory?",
         "No docs? New tech? Nobody had done it before?"),
        ("What did you try that didn't work?",
         "Pioneers fail a lot before succeeding."),
        ("How did you learn without documentation or guidance?",
         "Reverse engineering? Experimentation? Asking strangers?"),
        ("What trail did you leave for others?",
         "Documentation? Guide? Template? Training?"),
        ("Who has followed your trail? How many?",
         "Did your exploration help others?"),
        ("What surprised you most about the new territory?",
         "What do you know now that you couldn't have guessed?"),
    ),
    Archetype.TURNAROUND: (
        ("How bad was it when you arrived? Give me the numbers.",
         "Incidents per week? Days behind? Test coverage? Morale?"),
        ("What did you identify as the real problem?",
         "Not the symptoms - the root cause of the mess."),
        ("What was your first move? What did you prioritize?",
         "You couldn't fix everything - what came first?"),
        ("What are the numbers now? Give me before and after.",
         "Same metrics you mentioned before - what changed?"),
        ("How long did the turnaround take?",
         "When did you know it was working?"),
        ("What did you learn about turning things around?",
         "What would you do faster next time?"),
    ),
    Archetype.PREVENTER: (
        ("What did you notice that others didn't?",
         "What pattern or risk caught your attention?"),
        ("How did you know it was a real risk, not paranoia?",
         "What evidence did you gather?"),
        ("How did you raise the alarm? Who did you convince?",
         "Was there resistance? How did you overcome it?"),
        ("What would have happened if you hadn't caught this?",
         "Paint the picture of the disaster that didn't happen."),
        ("What changed because of your warning?",
         "New process? Fix deployed? Policy changed?"),
        ("What makes you good at seeing risks others miss?",
         "Is it experience? Paranoia? Process? Intuition?"),
    ),
}


def _build_questions(archetype: Archetype) -> Tuple[CoachQuestion, ...]:
    """Attach ids and phases to the raw (question, hint) pairs."""
    raw = _RAW_QUESTIONS.get(archetype, ())
    phases = [phase for phase in QUESTION_PHASES for _ in range(QUESTIONS_PER_PHASE[phase])]
    if len(raw) != len(phases):
        raise ConfigurationError(
            f"Question bank for '{archetype.value}' has {len(raw)} questions, "
            f"expected {len(phases)}"
        )

    questions = []
    counters = {phase: 0 for phase in QUESTION_PHASES}
    for (text, hint), phase in zip(raw, phases):
        counters[phase] += 1
        questions.append(
            CoachQuestion(
                id=f"{ID_PREFIXES[archetype]}-{phase.value}-{counters[phase]}",
                phase=phase,
                question=text,
                hint=hint,
            )
        )
    return tuple(questions)


def validate_bank(bank: Mapping[Archetype, Tuple[CoachQuestion, ...]]) -> None:
    """Check the bank covers every archetype with the 3/2/1 phase layout.

    Raises:
        ConfigurationError: On any missing archetype, wrong count, phase
            ordering problem or duplicate id
    """
    missing = [a.value for a in Archetype if a not in bank]
    if missing:
        raise ConfigurationError(f"Question bank missing archetypes: {missing}")

    seen_ids = set()
    for archetype, questions in bank.items():
        expected = [p for p in QUESTION_PHASES for _ in range(QUESTIONS_PER_PHASE[p])]
        actual = [q.phase for q in questions]
        if actual != expected:
            raise ConfigurationError(
                f"Question bank for '{archetype.value}' has phases "
                f"{[p.value for p in actual]}, expected 3 dig, 2 impact, 1 growth"
            )
        for q in questions:
            if q.id in seen_ids:
                raise ConfigurationError(f"Duplicate question id '{q.id}'")
            seen_ids.add(q.id)


QUESTION_BANK: Mapping[Archetype, Tuple[CoachQuestion, ...]] = MappingProxyType(
    {archetype: _build_questions(archetype) for archetype in Archetype}
)
validate_bank(QUESTION_BANK)


def get_all_questions(archetype: Archetype) -> Tuple[CoachQuestion, ...]:
    """All six questions for an archetype, in interview order."""
    return QUESTION_BANK[Archetype(archetype)]


def get_next_question(
    archetype: Archetype, current_phase: CoachPhase, questions_asked: int
) -> Optional[CoachQuestion]:
    """Pick the next bank question from (archetype, phase, slots consumed).

    The offset into the current phase is ``questions_asked`` minus the index
    of the phase's first question. In range returns that question; past the
    end moves to the first question of the next phase; past the end of
    growth (or in the complete phase) returns None.

    Pure: the result depends on the three arguments only.
    """
    current_phase = CoachPhase(current_phase)
    if current_phase == CoachPhase.COMPLETE:
        return None

    questions = get_all_questions(archetype)
    phase_questions = [q for q in questions if q.phase == current_phase]
    phase_start = next(i for i, q in enumerate(questions) if q.phase == current_phase)

    # A count behind the phase start (phase jumped ahead) means nothing in
    # this phase has been asked yet
    offset = max(questions_asked - phase_start, 0)
    if offset < len(phase_questions):
        return phase_questions[offset]

    phase_index = QUESTION_PHASES.index(current_phase)
    if phase_index < len(QUESTION_PHASES) - 1:
        next_phase = QUESTION_PHASES[phase_index + 1]
        return next(q for q in questions if q.phase == next_phase)

    return None


def phase_start_index(archetype: Archetype, phase: CoachPhase) -> int:
    """Bank index of the first question in ``phase`` (6 for complete)."""
    questions = get_all_questions(archetype)
    for index, question in enumerate(questions):
        if question.phase == phase:
            return index
    return len(questions)
