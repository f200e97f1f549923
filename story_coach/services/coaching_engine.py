"""
Coaching session engine.

Three ways to run a session for an (entry, archetype):

1. Non-interactive: hand back the six bank questions, session skipped
2. Auto-extract: fill the context from the entry alone, session completed
3. Interactive: a question/answer loop

The interactive loop is a pure transition function,
``advance_session(session, prompt, answer, follow_up) -> CoachTurn``. It
never mutates its input and performs no I/O; the only async part is
``submit_answer``, which asks the coaching responder for an acknowledgment
and an optional follow-up before making the transition. Drivers (terminal,
scripted, HTTP) just loop on it.

Interview rules:
- The next bank question is picked from (archetype, phase, bank_position)
- Follow-ups count towards questions_asked and max_questions but never
  consume a bank slot; at most one per bank question
- Empty answers and stock non-answers ("not sure") are recorded as skipped
  and leave the context alone
- Too many non-answers in a row flags the phase and jumps to the next one
- "done" / "quit" ends the session without recording an exchange
"""

import uuid
from enum import Enum
from typing import Optional, Sequence, Tuple

import structlog

from story_coach.core.config import InterviewSettings, coach_config
from story_coach.core.exceptions import LLMError, SessionCompletedError, SessionError
from story_coach.domain.models.archetype import Archetype
from story_coach.domain.models.coaching import (
    PHASE_ORDER,
    QUESTION_PHASES,
    CoachExchange,
    CoachMode,
    CoachPhase,
    CoachPrompt,
    CoachQuestion,
    CoachSession,
    CoachTurn,
    SessionStatus,
    utc_now,
)
from story_coach.domain.models.entry import NarrativeEntry
from story_coach.llm.client import LLMClient
from story_coach.llm.prompts.coaching import (
    COACH_PERSONA,
    FALLBACK_ACKNOWLEDGMENT,
    CoachReply,
    get_coach_user_prompt,
    parse_coach_response,
)
from story_coach.services.context_accumulator import update_context
from story_coach.services.context_extraction_service import ContextExtractionService
from story_coach.services.protocols import IAnswerSource, ICoachResponder, IContextExtractor
from story_coach.services.question_bank import (
    get_all_questions,
    get_next_question,
    phase_start_index,
)

log = structlog.get_logger(__name__)

SKIP_ACKNOWLEDGMENT = "No problem. Moving on."
EXIT_ACKNOWLEDGMENT = "Alright, we have enough to work with. Let's see what we can build."


class AnswerKind(str, Enum):
    ANSWER = "answer"
    NON_ANSWER = "non_answer"
    EXIT = "exit"


class LLMCoachResponder:
    """Coaching responder backed by the extraction LLM.

    Never raises: any backend failure gives the stock acknowledgment and no
    follow-up.
    """

    def __init__(self, llm_client: LLMClient):
        self.llm = llm_client

    async def respond(
        self,
        question: str,
        answer: str,
        archetype: Archetype,
        previous: Sequence[CoachExchange],
    ) -> CoachReply:
        try:
            response = await self.llm.complete(
                prompt=get_coach_user_prompt(question, answer, archetype, previous),
                system=COACH_PERSONA,
            )
            return parse_coach_response(response.content)
        except LLMError as e:
            log.warning("coach_responder_fallback", error=e.message)
            return CoachReply(acknowledgment=FALLBACK_ACKNOWLEDGMENT)


class CoachingEngine:
    """
    Runs coaching sessions.

    Holds no session state: every call takes a session and returns a new one.
    """

    def __init__(
        self,
        interview: Optional[InterviewSettings] = None,
        extractor: Optional[IContextExtractor] = None,
        responder: Optional[ICoachResponder] = None,
    ):
        """
        Args:
            interview: Interview limits (coach_config.interview if None)
            extractor: Auto-extract backend (heuristic-only service if None)
            responder: Coaching responder; None means no acknowledgments
                beyond the stock skip/exit lines and no follow-ups
        """
        self.settings = interview or coach_config.interview
        self.extractor = extractor or ContextExtractionService()
        self.responder = responder

    # =========================================================================
    # Non-interactive and auto-extract
    # =========================================================================

    def non_interactive(
        self, entry: NarrativeEntry, archetype: Archetype
    ) -> Tuple[CoachSession, Tuple[CoachQuestion, ...]]:
        """The bank questions for the archetype, with a skipped session."""
        session = CoachSession(
            id=str(uuid.uuid4()),
            entry_id=entry.id,
            archetype=archetype,
            mode=CoachMode.NON_INTERACTIVE,
            status=SessionStatus.SKIPPED,
        )
        log.info("coach_session_skipped", session_id=session.id, entry_id=entry.id)
        return session, get_all_questions(archetype)

    async def auto_extract(self, entry: NarrativeEntry, archetype: Archetype) -> CoachSession:
        """A completed session whose context comes from the entry alone."""
        context = await self.extractor.extract(entry, archetype)
        now = utc_now()
        session = CoachSession(
            id=str(uuid.uuid4()),
            entry_id=entry.id,
            archetype=archetype,
            mode=CoachMode.AUTO_EXTRACT,
            extracted_context=context,
            current_phase=CoachPhase.COMPLETE,
            status=SessionStatus.COMPLETED,
            started_at=now,
            completed_at=now,
        )
        log.info(
            "coach_session_extracted",
            session_id=session.id,
            entry_id=entry.id,
            archetype=archetype.value,
            fields=context.filled_fields(),
        )
        return session

    # =========================================================================
    # Interactive
    # =========================================================================

    def start_session(self, entry: NarrativeEntry, archetype: Archetype) -> CoachTurn:
        """A fresh interactive session and its first question."""
        session = CoachSession(
            id=str(uuid.uuid4()),
            entry_id=entry.id,
            archetype=archetype,
            mode=CoachMode.INTERACTIVE,
        )
        log.info(
            "coach_session_started",
            session_id=session.id,
            entry_id=entry.id,
            archetype=archetype.value,
        )
        return CoachTurn(session=session, prompt=self.next_prompt(session))

    def next_prompt(self, session: CoachSession) -> Optional[CoachPrompt]:
        """The next bank question as a prompt, or None when the bank is spent."""
        question = get_next_question(
            session.archetype, session.current_phase, session.bank_position
        )
        if question is None:
            return None
        return CoachPrompt(
            question=question,
            text=question.question,
            position=self._bank_index(session.archetype, question) + 1,
        )

    def classify_answer(self, answer: str) -> AnswerKind:
        normalised = answer.strip().lower()
        if normalised in self.settings.exit_commands:
            return AnswerKind.EXIT
        if not normalised or normalised.strip(".!? ") in self.settings.non_answer_phrases:
            return AnswerKind.NON_ANSWER
        return AnswerKind.ANSWER

    def advance_session(
        self,
        session: CoachSession,
        prompt: CoachPrompt,
        answer: str,
        follow_up: Optional[str] = None,
    ) -> CoachTurn:
        """
        Apply one answer and decide what comes next.

        Args:
            session: Current session (left untouched)
            prompt: The prompt being answered
            answer: Raw user answer
            follow_up: Follow-up to ask next, if the responder produced one

        Returns:
            CoachTurn with the new session and the next prompt (None when
            the session is complete)

        Raises:
            SessionCompletedError: If the session is already finished
            SessionError: If the prompt is not the one the session expects
        """
        if session.is_finished:
            raise SessionCompletedError(f"Session {session.id} is already {session.status.value}")
        self._check_prompt(session, prompt)

        kind = self.classify_answer(answer)
        if kind == AnswerKind.EXIT:
            log.info("coach_session_exited", session_id=session.id)
            return CoachTurn(session=self._complete(session), acknowledgment=EXIT_ACKNOWLEDGMENT)

        raw = answer.strip()
        if kind == AnswerKind.NON_ANSWER and not raw and not self.settings.allow_skip:
            return CoachTurn(session=session, prompt=prompt)

        is_non_answer = kind == AnswerKind.NON_ANSWER
        exchange = CoachExchange(
            question_id=prompt.question_id,
            question=prompt.text,
            answer=raw,
            phase=prompt.phase,
            skipped=is_non_answer,
            is_follow_up=prompt.is_follow_up,
        )

        bank_position = session.bank_position
        if not prompt.is_follow_up:
            bank_position = self._bank_index(session.archetype, prompt.question) + 1

        updates = {
            "exchanges": [*session.exchanges, exchange],
            "questions_asked": session.questions_asked + 1,
            "bank_position": bank_position,
            "current_phase": prompt.phase,
        }

        jumped = False
        if is_non_answer:
            streak = session.consecutive_non_answers + 1
            updates["consecutive_non_answers"] = streak
            if streak >= self.settings.max_consecutive_non_answers:
                jumped = True
                next_phase = self._phase_after(prompt.phase)
                updates["flags"] = [
                    *session.flags,
                    f"{prompt.phase.value} phase skipped after {streak} non-answers in a row",
                ]
                updates["consecutive_non_answers"] = 0
                updates["current_phase"] = next_phase
                updates["bank_position"] = phase_start_index(session.archetype, next_phase)
        else:
            updates["consecutive_non_answers"] = 0
            updates["extracted_context"] = update_context(
                session.extracted_context, prompt.question, raw
            )

        new_session = session.model_copy(update=updates, deep=True)
        acknowledgment = SKIP_ACKNOWLEDGMENT if is_non_answer else None

        if new_session.questions_asked >= self.settings.max_questions:
            return self._finish(new_session, acknowledgment)
        if new_session.current_phase == CoachPhase.COMPLETE:
            return self._finish(new_session, acknowledgment)

        if (
            follow_up
            and not is_non_answer
            and not jumped
            and not prompt.is_follow_up
            and self.settings.dynamic_follow_ups
        ):
            next_prompt = CoachPrompt(
                question=prompt.question,
                text=follow_up.strip(),
                is_follow_up=True,
                position=prompt.position,
            )
        else:
            next_prompt = self.next_prompt(new_session)
            if next_prompt is None:
                return self._finish(new_session, acknowledgment)
            new_session = new_session.model_copy(update={"current_phase": next_prompt.phase})

        log.debug(
            "coach_turn_advanced",
            session_id=new_session.id,
            questions_asked=new_session.questions_asked,
            phase=new_session.current_phase.value,
            skipped=is_non_answer,
            next_question=next_prompt.question_id,
        )
        return CoachTurn(session=new_session, prompt=next_prompt, acknowledgment=acknowledgment)

    async def submit_answer(
        self, session: CoachSession, prompt: CoachPrompt, answer: str
    ) -> CoachTurn:
        """Get the coach's reaction to a real answer, then advance."""
        reply = None
        if self.responder is not None and self.classify_answer(answer) == AnswerKind.ANSWER:
            reply = await self.responder.respond(
                prompt.text, answer.strip(), session.archetype, session.exchanges
            )

        turn = self.advance_session(
            session, prompt, answer, follow_up=reply.follow_up if reply else None
        )
        if reply is not None and turn.acknowledgment is None:
            turn = turn.model_copy(update={"acknowledgment": reply.acknowledgment})
        return turn

    async def interview(
        self, entry: NarrativeEntry, archetype: Archetype, source: IAnswerSource
    ) -> CoachSession:
        """Drive an interactive session to completion from an answer source."""
        turn = self.start_session(entry, archetype)
        while not turn.done:
            answer = await source.ask(turn.prompt, turn.acknowledgment)
            turn = await self.submit_answer(turn.session, turn.prompt, answer)
        return turn.session

    # =========================================================================
    # Helpers
    # =========================================================================

    def _check_prompt(self, session: CoachSession, prompt: CoachPrompt) -> None:
        if prompt.is_follow_up:
            last = session.exchanges[-1] if session.exchanges else None
            if last is None or last.is_follow_up or last.question_id != prompt.question.id:
                raise SessionError(
                    f"Follow-up for '{prompt.question.id}' does not follow its question"
                )
            return

        expected = self.next_prompt(session)
        if expected is None or expected.question.id != prompt.question.id:
            raise SessionError(
                f"Session {session.id} expects "
                f"'{expected.question.id if expected else None}', got '{prompt.question.id}'"
            )

    @staticmethod
    def _bank_index(archetype: Archetype, question: CoachQuestion) -> int:
        for index, candidate in enumerate(get_all_questions(archetype)):
            if candidate.id == question.id:
                return index
        raise SessionError(f"Question '{question.id}' is not in the {archetype.value} bank")

    @staticmethod
    def _phase_after(phase: CoachPhase) -> CoachPhase:
        index = PHASE_ORDER[phase]
        if index + 1 < len(QUESTION_PHASES):
            return QUESTION_PHASES[index + 1]
        return CoachPhase.COMPLETE

    def _complete(self, session: CoachSession) -> CoachSession:
        return session.model_copy(
            update={
                "current_phase": CoachPhase.COMPLETE,
                "status": SessionStatus.COMPLETED,
                "completed_at": utc_now(),
            },
            deep=True,
        )

    def _finish(self, session: CoachSession, acknowledgment: Optional[str]) -> CoachTurn:
        completed = self._complete(session)
        log.info(
            "coach_session_completed",
            session_id=completed.id,
            questions_asked=completed.questions_asked,
            fields=completed.extracted_context.filled_fields(),
            flags=len(completed.flags),
        )
        return CoachTurn(session=completed, acknowledgment=acknowledgment)
