"""
Coaching API routes.

The server keeps no session state: clients send the session back with every
answer and receive the next session and prompt.
"""

from fastapi import APIRouter, status
import structlog

from story_coach.api.dependencies import StoryCoachDep
from story_coach.api.schemas import AnswerRequest, StartSessionRequest, StartSessionResponse
from story_coach.domain.models.coaching import CoachMode, CoachTurn

log = structlog.get_logger(__name__)

router = APIRouter(prefix="/coaching", tags=["coaching"])


@router.post(
    "/sessions",
    response_model=StartSessionResponse,
    status_code=status.HTTP_201_CREATED,
)
async def start_session(request: StartSessionRequest, service: StoryCoachDep) -> StartSessionResponse:
    """Start a session in any mode."""
    archetype = request.archetype
    if archetype is None:
        archetype = (await service.detect(request.entry)).primary.archetype

    engine = service.engine
    if request.mode == CoachMode.NON_INTERACTIVE:
        sheet = await service.questions(request.entry, archetype)
        return StartSessionResponse(turn=CoachTurn(session=sheet.session), questions=sheet.questions)

    if request.mode == CoachMode.AUTO_EXTRACT:
        session = await engine.auto_extract(request.entry, archetype)
        return StartSessionResponse(turn=CoachTurn(session=session))

    return StartSessionResponse(turn=engine.start_session(request.entry, archetype))


@router.post("/sessions/answer", response_model=CoachTurn)
async def answer_question(request: AnswerRequest, service: StoryCoachDep) -> CoachTurn:
    """Apply one answer and return the next session state and prompt."""
    turn = await service.engine.submit_answer(request.session, request.prompt, request.answer)
    log.debug(
        "coach_answer_received",
        session_id=turn.session.id,
        done=turn.done,
    )
    return turn
