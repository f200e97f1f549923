"""
Tests for CoachingEngine.

Covers the three session modes and the interactive transition rules:
skips, non-answer phase jumps, exit commands, follow-ups and the question
cap.
"""

from typing import List, Optional

import pytest

from story_coach.core.config import InterviewSettings
from story_coach.core.exceptions import LLMError, SessionCompletedError, SessionError
from story_coach.domain.models.archetype import Archetype
from story_coach.domain.models.coaching import CoachMode, CoachPhase, SessionStatus
from story_coach.llm.prompts.coaching import FALLBACK_ACKNOWLEDGMENT, CoachReply
from story_coach.services.answer_sources import ScriptedAnswerSource
from story_coach.services.coaching_engine import (
    EXIT_ACKNOWLEDGMENT,
    SKIP_ACKNOWLEDGMENT,
    AnswerKind,
    CoachingEngine,
    LLMCoachResponder,
)


class FakeResponder:
    """Acknowledges every answer; hands out the queued follow-ups in order."""

    def __init__(self, follow_ups: Optional[List[Optional[str]]] = None):
        self.follow_ups = list(follow_ups or [])
        self.answers: List[str] = []

    async def respond(self, question, answer, archetype, previous):
        self.answers.append(answer)
        follow_up = self.follow_ups.pop(0) if self.follow_ups else None
        return CoachReply(acknowledgment=f"Noted: {answer[:12]}", follow_up=follow_up)


@pytest.fixture
def engine(interview_settings):
    return CoachingEngine(interview=interview_settings)


@pytest.fixture
def turn(engine, firefighter_entry):
    return engine.start_session(firefighter_entry, Archetype.FIREFIGHTER)


class TestStartSession:
    def test_first_prompt_is_first_dig_question(self, turn):
        assert turn.prompt.question_id == "ff-dig-1"
        assert turn.prompt.position == 1
        assert turn.session.status == SessionStatus.IN_PROGRESS
        assert turn.session.current_phase == CoachPhase.DIG
        assert turn.session.mode == CoachMode.INTERACTIVE

    def test_sessions_get_unique_ids(self, engine, firefighter_entry):
        first = engine.start_session(firefighter_entry, Archetype.FIREFIGHTER)
        second = engine.start_session(firefighter_entry, Archetype.FIREFIGHTER)
        assert first.session.id != second.session.id


class TestClassifyAnswer:
    @pytest.mark.parametrize(
        "answer,kind",
        [
            ("The pool was exhausted", AnswerKind.ANSWER),
            ("", AnswerKind.NON_ANSWER),
            ("   ", AnswerKind.NON_ANSWER),
            ("Not sure.", AnswerKind.NON_ANSWER),
            ("IDK", AnswerKind.NON_ANSWER),
            ("done", AnswerKind.EXIT),
            (" Quit ", AnswerKind.EXIT),
        ],
    )
    def test_classification(self, engine, answer, kind):
        assert engine.classify_answer(answer) == kind


class TestFullInterview:
    @pytest.mark.asyncio
    async def test_six_answers_complete_the_session(
        self, engine, firefighter_entry, scripted_answers
    ):
        source = ScriptedAnswerSource(scripted_answers)

        session = await engine.interview(firefighter_entry, Archetype.FIREFIGHTER, source)

        assert session.status == SessionStatus.COMPLETED
        assert session.current_phase == CoachPhase.COMPLETE
        assert session.questions_asked == 6
        assert session.bank_position == 6
        assert session.completed_at is not None
        assert [p.question_id for p in source.asked] == [
            "ff-dig-1",
            "ff-dig-2",
            "ff-dig-3",
            "ff-impact-1",
            "ff-impact-2",
            "ff-growth-1",
        ]

    @pytest.mark.asyncio
    async def test_answers_accumulate_into_context(
        self, engine, firefighter_entry, scripted_answers
    ):
        source = ScriptedAnswerSource(scripted_answers)

        session = await engine.interview(firefighter_entry, Archetype.FIREFIGHTER, source)
        context = session.extracted_context

        assert context.obstacle == scripted_answers[0]
        assert context.real_story == scripted_answers[1]
        assert context.key_decision == scripted_answers[2]
        assert context.counterfactual == scripted_answers[3]
        assert context.metric == scripted_answers[4]
        assert context.learning == scripted_answers[5]
        assert context.named_people == ["Sarah from platform"]

    @pytest.mark.asyncio
    async def test_phase_never_moves_backwards(self, engine, firefighter_entry, scripted_answers):
        turn = engine.start_session(firefighter_entry, Archetype.FIREFIGHTER)
        phases = [turn.session.current_phase]
        for answer in scripted_answers:
            turn = await engine.submit_answer(turn.session, turn.prompt, answer)
            phases.append(turn.session.current_phase)

        order = list(CoachPhase)
        assert [order.index(p) for p in phases] == sorted(order.index(p) for p in phases)


class TestSkipsAndNonAnswers:
    def test_empty_answer_is_recorded_as_skip(self, engine, turn):
        result = engine.advance_session(turn.session, turn.prompt, "")

        exchange = result.session.exchanges[-1]
        assert exchange.skipped is True
        assert exchange.answer == ""
        assert result.acknowledgment == SKIP_ACKNOWLEDGMENT
        assert result.prompt.question_id == "ff-dig-2"
        assert result.session.extracted_context.is_empty()
        assert result.session.consecutive_non_answers == 1

    def test_two_non_answers_jump_to_next_phase(self, engine, turn):
        first = engine.advance_session(turn.session, turn.prompt, "not sure")
        second = engine.advance_session(first.session, first.prompt, "no idea")

        assert second.session.flags == ["dig phase skipped after 2 non-answers in a row"]
        assert second.session.current_phase == CoachPhase.IMPACT
        assert second.session.bank_position == 3
        assert second.session.consecutive_non_answers == 0
        assert second.prompt.question_id == "ff-impact-1"

    def test_real_answer_resets_streak(self, engine, turn):
        first = engine.advance_session(turn.session, turn.prompt, "")
        second = engine.advance_session(first.session, first.prompt, "The pool was exhausted")
        third = engine.advance_session(second.session, second.prompt, "")

        assert third.session.consecutive_non_answers == 1
        assert third.session.flags == []
        assert third.prompt.question_id == "ff-impact-1"

    @pytest.mark.asyncio
    async def test_jump_from_growth_completes_session(self, firefighter_entry, scripted_answers):
        engine = CoachingEngine(
            interview=InterviewSettings(max_questions=10, max_consecutive_non_answers=1)
        )
        source = ScriptedAnswerSource([*scripted_answers[:5], "idk", "never asked"])

        session = await engine.interview(firefighter_entry, Archetype.FIREFIGHTER, source)

        assert session.status == SessionStatus.COMPLETED
        assert session.flags == ["growth phase skipped after 1 non-answers in a row"]
        assert session.extracted_context.learning is None
        assert len(source.asked) == 6

    def test_skip_disallowed_reasks_same_prompt(self, firefighter_entry):
        engine = CoachingEngine(interview=InterviewSettings(allow_skip=False))
        turn = engine.start_session(firefighter_entry, Archetype.FIREFIGHTER)

        result = engine.advance_session(turn.session, turn.prompt, "  ")

        assert result.prompt == turn.prompt
        assert result.session.questions_asked == 0
        assert result.session.exchanges == []


class TestExit:
    def test_exit_completes_without_exchange(self, engine, turn):
        result = engine.advance_session(turn.session, turn.prompt, "done")

        assert result.done
        assert result.acknowledgment == EXIT_ACKNOWLEDGMENT
        assert result.session.status == SessionStatus.COMPLETED
        assert result.session.exchanges == []
        assert result.session.questions_asked == 0

    @pytest.mark.asyncio
    async def test_exhausted_script_exits(self, engine, firefighter_entry, scripted_answers):
        source = ScriptedAnswerSource(scripted_answers[:2])

        session = await engine.interview(firefighter_entry, Archetype.FIREFIGHTER, source)

        assert session.status == SessionStatus.COMPLETED
        assert session.questions_asked == 2


class TestFollowUps:
    @pytest.mark.asyncio
    async def test_follow_up_targets_same_question(self, firefighter_entry, turn):
        responder = FakeResponder(["Who exactly was affected?"])
        engine = CoachingEngine(interview=InterviewSettings(), responder=responder)

        result = await engine.submit_answer(turn.session, turn.prompt, "Checkout broke")

        assert result.prompt.is_follow_up is True
        assert result.prompt.text == "Who exactly was affected?"
        assert result.prompt.question_id == "ff-dig-1-followup"
        assert result.prompt.position == 1
        assert result.acknowledgment == "Noted: Checkout bro"

    @pytest.mark.asyncio
    async def test_follow_up_counts_but_keeps_bank_slot(self, turn):
        responder = FakeResponder(["Who exactly was affected?", "Anyone else?"])
        engine = CoachingEngine(interview=InterviewSettings(), responder=responder)

        first = await engine.submit_answer(turn.session, turn.prompt, "Checkout broke")
        second = await engine.submit_answer(first.session, first.prompt, "Every EU customer")

        assert second.session.questions_asked == 2
        assert second.session.bank_position == 1
        assert second.session.exchanges[-1].is_follow_up is True
        assert second.session.exchanges[-1].question_id == "ff-dig-1-followup"
        # One follow-up per bank question
        assert second.prompt.question_id == "ff-dig-2"
        assert second.session.extracted_context.real_story == "Every EU customer"

    @pytest.mark.asyncio
    async def test_follow_ups_count_towards_question_cap(
        self, firefighter_entry, scripted_answers
    ):
        responder = FakeResponder(["Say more?"] * 10)
        engine = CoachingEngine(interview=InterviewSettings(), responder=responder)
        source = ScriptedAnswerSource(scripted_answers)

        session = await engine.interview(firefighter_entry, Archetype.FIREFIGHTER, source)

        assert session.status == SessionStatus.COMPLETED
        assert session.questions_asked == 6
        assert session.bank_position == 3
        assert [e.is_follow_up for e in session.exchanges] == [False, True] * 3

    @pytest.mark.asyncio
    async def test_no_responder_call_for_non_answers(self, turn):
        responder = FakeResponder(["Say more?"])
        engine = CoachingEngine(interview=InterviewSettings(), responder=responder)

        result = await engine.submit_answer(turn.session, turn.prompt, "not sure")

        assert responder.answers == []
        assert result.prompt.is_follow_up is False
        assert result.acknowledgment == SKIP_ACKNOWLEDGMENT

    def test_follow_up_ignored_when_disabled(self, firefighter_entry):
        engine = CoachingEngine(interview=InterviewSettings(dynamic_follow_ups=False))
        turn = engine.start_session(firefighter_entry, Archetype.FIREFIGHTER)

        result = engine.advance_session(turn.session, turn.prompt, "x", follow_up="Say more?")

        assert result.prompt.question_id == "ff-dig-2"


class TestTransitionErrors:
    def test_finished_session_rejected(self, engine, turn):
        finished = engine.advance_session(turn.session, turn.prompt, "quit")

        with pytest.raises(SessionCompletedError):
            engine.advance_session(finished.session, turn.prompt, "more")

    def test_unexpected_prompt_rejected(self, engine, turn):
        answered = engine.advance_session(turn.session, turn.prompt, "Checkout broke")

        with pytest.raises(SessionError, match="expects 'ff-dig-2'"):
            engine.advance_session(answered.session, turn.prompt, "again")

    def test_orphan_follow_up_rejected(self, engine, turn):
        orphan = turn.prompt.model_copy(update={"is_follow_up": True, "text": "?"})

        with pytest.raises(SessionError):
            engine.advance_session(turn.session, orphan, "answer")

    def test_input_session_untouched(self, engine, turn):
        before = turn.session.model_dump()

        engine.advance_session(turn.session, turn.prompt, "Checkout broke at 2am")

        assert turn.session.model_dump() == before


class TestOtherModes:
    def test_non_interactive_returns_bank_questions(self, engine, firefighter_entry):
        session, questions = engine.non_interactive(firefighter_entry, Archetype.DETECTIVE)

        assert session.status == SessionStatus.SKIPPED
        assert session.mode == CoachMode.NON_INTERACTIVE
        assert session.exchanges == []
        assert [q.id for q in questions][0] == "de-dig-1"
        assert len(questions) == 6

    @pytest.mark.asyncio
    async def test_auto_extract_completes_without_questions(self, engine, firefighter_entry):
        session = await engine.auto_extract(firefighter_entry, Archetype.FIREFIGHTER)

        assert session.status == SessionStatus.COMPLETED
        assert session.mode == CoachMode.AUTO_EXTRACT
        assert session.current_phase == CoachPhase.COMPLETE
        assert session.questions_asked == 0
        assert session.extracted_context.metric == "cutting error rates by 60%"


class TestLLMCoachResponder:
    @pytest.mark.asyncio
    async def test_parses_reply(self, mock_llm):
        llm = mock_llm({"acknowledgment": "2am is rough.", "followUp": "Who paged you?"})

        reply = await LLMCoachResponder(llm).respond("Q?", "At 2am", Archetype.FIREFIGHTER, [])

        assert reply.acknowledgment == "2am is rough."
        assert reply.follow_up == "Who paged you?"

    @pytest.mark.asyncio
    async def test_backend_failure_gives_stock_reply(self, mock_llm):
        llm = mock_llm(LLMError("down"))

        reply = await LLMCoachResponder(llm).respond("Q?", "A", Archetype.FIREFIGHTER, [])

        assert reply.acknowledgment == FALLBACK_ACKNOWLEDGMENT
        assert reply.follow_up is None
