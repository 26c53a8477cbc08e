# app/routers/calls.py
# 음성 면접 통화 시작/조회/종료 + Vapi 서버 webhook
import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Body, Depends, Header, HTTPException
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from app.config import settings
from app.db.base import SessionLocal
from app.deps import get_db, get_current_user, get_channel_factory, get_feedback_service
from app.models.user import User
from app.schemas.feedback import FeedbackCreateResponse, TranscriptMessage
from app.schemas.interview import CallStartRequest, CallStateResponse
from app.services import call_registry
from app.services.call_agent import GENERATE, CallSession
from app.services.errors import InvalidCallTransitionError, PersistenceError
from app.services.feedback_service import FeedbackService
from app.services.interview_service import InterviewService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/calls", tags=["calls"])
webhook_router = APIRouter(prefix="/api/vapi", tags=["vapi"])


# --- 공통 ---

def _state(call_id: str, session: CallSession) -> CallStateResponse:
    return CallStateResponse(
        call_id=call_id,
        type=session.call_type,
        status=session.status.value,
        is_speaking=session.is_speaking,
        messages=session.messages,
        latest_message=session.latest_message,
        interview_id=session.interview_id,
        feedback_id=session.feedback_id,
        redirect_to=session.redirect_to,
        web_call_url=getattr(session.channel, "web_call_url", None),
    )


def _get_call_or_404(call_id: str, user: User) -> CallSession:
    session = call_registry.get(call_id)
    if session is None or session.user_id != user.id:
        raise HTTPException(status_code=404, detail={"message": "call_not_found"})
    return session


def _get_finished(call_id: str, user: User) -> Optional[CallStateResponse]:
    finished = call_registry.get_finished(call_id)
    if finished is None or finished[0] != user.id:
        return None
    return finished[1]


def _retire_if_finished(call_id: Optional[str], session: CallSession) -> None:
    if call_id and session.finished:
        call_registry.retire(call_id, session.user_id, _state(call_id, session))
        logger.info("[CALL] retired call_id=%s live=%d", call_id, call_registry.live_count())


def _feedback_handler(feedback_service: FeedbackService):
    # 채점 + 저장은 동기 코드라 스레드풀에서 실행, 요청과 별도의 짧은 DB 세션 사용
    async def handle(
        interview_id: str,
        user_id: str,
        transcript: List[TranscriptMessage],
    ) -> FeedbackCreateResponse:
        def _run() -> FeedbackCreateResponse:
            with SessionLocal() as db:
                return feedback_service.create_feedback(db, interview_id, user_id, transcript)

        return await run_in_threadpool(_run)

    return handle


# --- POST: 통화 시작 ---

@router.post("", response_model=CallStateResponse, response_model_exclude_none=True)
async def start_call(
    body: CallStartRequest,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    channel_factory=Depends(get_channel_factory),
    feedback_service: FeedbackService = Depends(get_feedback_service),
):
    questions = None
    if body.type == GENERATE:
        if not settings.vapi_workflow_id:
            raise HTTPException(status_code=503, detail={"message": "vapi_workflow_not_configured"})
    else:
        try:
            interview = InterviewService.get_interview_by_id(db, body.interview_id)
        except PersistenceError as e:
            raise HTTPException(status_code=500, detail={"message": "database_error", "detail": str(e)})
        if interview is None:
            raise HTTPException(status_code=404, detail={"message": "interview_not_found"})
        questions = list(interview.questions or [])

    session = CallSession(
        channel_factory(),
        call_type=body.type,
        user_name=user.name,
        user_id=user.id,
        interview_id=body.interview_id,
        questions=questions,
        feedback_handler=_feedback_handler(feedback_service),
    )
    call_id = call_registry.new_call_id()
    call_registry.register(call_id, session)

    await session.start()
    call_registry.bind_remote(getattr(session.channel, "call_id", None), call_id)

    logger.info(
        "[CALL][POST] started call_id=%s type=%s status=%s",
        call_id,
        body.type,
        session.status.value,
    )
    return _state(call_id, session)


# --- GET: 통화 상태 ---

@router.get("/{call_id}", response_model=CallStateResponse, response_model_exclude_none=True)
async def get_call(call_id: str, user: User = Depends(get_current_user)):
    finished = _get_finished(call_id, user)
    if finished is not None:
        return finished
    return _state(call_id, _get_call_or_404(call_id, user))


# --- POST: 통화 종료 (피드백 생성까지 기다림) ---

@router.post("/{call_id}/stop", response_model=CallStateResponse, response_model_exclude_none=True)
async def stop_call(call_id: str, user: User = Depends(get_current_user)):
    if _get_finished(call_id, user) is not None:
        raise HTTPException(status_code=409, detail={"message": "invalid_transition", "detail": "call already finished"})

    session = _get_call_or_404(call_id, user)
    try:
        await session.stop()
    except InvalidCallTransitionError as e:
        raise HTTPException(status_code=409, detail={"message": "invalid_transition", "detail": e.message})
    state = _state(call_id, session)
    _retire_if_finished(call_id, session)
    return state


# --- POST: Vapi server webhook ---

@webhook_router.post("/webhook")
async def vapi_webhook(
    payload: Dict[str, Any] = Body(...),
    x_vapi_secret: str | None = Header(None),
):
    if settings.vapi_webhook_secret and x_vapi_secret != settings.vapi_webhook_secret:
        raise HTTPException(status_code=401, detail="unauthorized")

    message = payload.get("message") or {}
    remote_id = (message.get("call") or {}).get("id")
    session = call_registry.get(remote_id) if remote_id else None

    if session is None:
        logger.warning(
            "[VAPI_WEBHOOK] unknown call remote_id=%s type=%s",
            remote_id,
            message.get("type"),
        )
        return {"ok": False}

    await session.channel.handle_server_message(message)
    _retire_if_finished(call_registry.resolve(remote_id), session)
    return {"ok": True}
