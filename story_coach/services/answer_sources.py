"""Answer sources for driving interactive coaching sessions."""

import asyncio
from typing import Callable, Iterable, List, Optional

import structlog

from story_coach.domain.models.coaching import CoachPrompt

log = structlog.get_logger(__name__)


class ScriptedAnswerSource:
    """Replays canned answers in order; answers "done" once they run out.

    Used by tests and simulations. ``asked`` records every prompt shown.
    """

    def __init__(self, answers: Iterable[str], exhausted_answer: str = "done"):
        self._answers: List[str] = list(answers)
        self._exhausted_answer = exhausted_answer
        self.asked: List[CoachPrompt] = []
        self.acknowledgments: List[str] = []

    async def ask(self, prompt: CoachPrompt, acknowledgment: Optional[str] = None) -> str:
        self.asked.append(prompt)
        if acknowledgment:
            self.acknowledgments.append(acknowledgment)
        if not self._answers:
            return self._exhausted_answer
        return self._answers.pop(0)


class TerminalAnswerSource:
    """Reads answers from stdin.

    Args:
        max_questions: Shown in the progress marker
        input_fn / output_fn: Injectable for tests (default input/print)
    """

    def __init__(
        self,
        max_questions: int = 6,
        input_fn: Callable[[str], str] = input,
        output_fn: Callable[[str], None] = print,
    ):
        self.max_questions = max_questions
        self._input = input_fn
        self._output = output_fn

    def banner(self, title: str, allow_skip: bool = True) -> None:
        self._output("=" * 60)
        self._output(" STORY COACH")
        self._output("=" * 60)
        self._output(f'"{title}" - I see what you wrote.')
        self._output("Now let's find the story beneath it.")
        if allow_skip:
            self._output('(Press Enter to skip a question. Type "done" to finish early.)')

    async def ask(self, prompt: CoachPrompt, acknowledgment: Optional[str] = None) -> str:
        if acknowledgment:
            self._output(f'\nCoach: "{acknowledgment}"')
        if not prompt.is_follow_up:
            self._output(f"\n[{prompt.phase.value.upper()} {prompt.position}/{self.max_questions}]")
        self._output(f'\nCoach: "{prompt.text}"')
        if not prompt.is_follow_up and prompt.question.hint:
            self._output(f"       ({prompt.question.hint})")

        try:
            return await asyncio.to_thread(self._input, "\nYou: ")
        except EOFError:
            log.info("terminal_input_closed")
            return "done"
