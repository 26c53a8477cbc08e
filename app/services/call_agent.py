# app/services/call_agent.py
"""
음성 면접 통화 상태 관리

INACTIVE -> CONNECTING -> ACTIVE -> FINISHED

- start(): CONNECTING 으로 바꾸고 채널에 통화 시작 요청, 채널의 call-start 이벤트에서 ACTIVE
- message 이벤트 중 transcript/final 만 transcript 에 순서대로 누적
- stop() 또는 채널의 call-end 에서 FINISHED, 종료 처리는 통화당 1회만
  - generate 모드: 피드백 없이 "/" 로
  - 그 외: transcript 가 있으면 피드백 생성 1회
- 채널 error 는 로그만 남기고 상태는 바꾸지 않음 (재연결/재시도 없음)
"""
import logging
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional

from app.config import settings
from app.schemas.feedback import FeedbackCreateResponse, TranscriptMessage
from app.services import vapi_client
from app.services.errors import ChannelError, InvalidCallTransitionError
from app.services.interviewer import INTERVIEWER

logger = logging.getLogger(__name__)


class CallStatus(str, Enum):
    INACTIVE = "INACTIVE"
    CONNECTING = "CONNECTING"
    ACTIVE = "ACTIVE"
    FINISHED = "FINISHED"


GENERATE = "generate"
HOME_PATH = "/"
TRANSCRIPT_ROLES = ("user", "system", "assistant")

FeedbackHandler = Callable[[str, str, List[TranscriptMessage]], Awaitable[FeedbackCreateResponse]]


def format_questions(questions: Optional[List[str]]) -> str:
    if not questions:
        return ""
    return "\n".join(f"- {q}" for q in questions)


class ChannelSubscription:
    """
    채널 리스너 등록 핸들
    acquire() 에서 전부 등록하고 release() 에서 전부 해제한다. release 는 여러 번 불러도 안전.
    """

    def __init__(self, channel, handlers: Dict[str, Callable[..., Any]]):
        self.channel = channel
        self.handlers = handlers
        self.active = False

    def acquire(self) -> "ChannelSubscription":
        if not self.active:
            for event, handler in self.handlers.items():
                self.channel.on(event, handler)
            self.active = True
        return self

    def release(self) -> None:
        if not self.active:
            return
        for event, handler in self.handlers.items():
            self.channel.off(event, handler)
        self.active = False

    def __enter__(self):
        return self.acquire()

    def __exit__(self, exc_type, exc, tb):
        self.release()
        return False


class CallSession:
    """통화 1건의 상태. 이 객체를 가진 쪽만 상태를 바꾼다."""

    def __init__(
        self,
        channel,
        *,
        call_type: str,
        user_name: str,
        user_id: str,
        interview_id: Optional[str] = None,
        questions: Optional[List[str]] = None,
        workflow_id: Optional[str] = None,
        feedback_handler: Optional[FeedbackHandler] = None,
    ):
        self.channel = channel
        self.call_type = call_type
        self.user_name = user_name
        self.user_id = user_id
        self.interview_id = interview_id
        self.questions = questions or []
        self.workflow_id = workflow_id or settings.vapi_workflow_id
        self.feedback_handler = feedback_handler

        self.status = CallStatus.INACTIVE
        self.is_speaking = False
        self.messages: List[TranscriptMessage] = []
        self.feedback_id: Optional[str] = None
        self.redirect_to: Optional[str] = None

        self._finish_started = False
        self._finish_done = False
        self._subscription: Optional[ChannelSubscription] = None

    # ---------- 상태 조회 ----------

    @property
    def is_generate(self) -> bool:
        return self.call_type == GENERATE

    @property
    def latest_message(self) -> Optional[str]:
        return self.messages[-1].content if self.messages else None

    @property
    def finished(self) -> bool:
        """FINISHED 이고 종료 처리(피드백 포함)까지 끝났는지"""
        return self._finish_done

    @property
    def subscribed(self) -> bool:
        return self._subscription is not None and self._subscription.active

    # ---------- 통화 시작/종료 ----------

    async def start(self) -> None:
        if self.status not in (CallStatus.INACTIVE, CallStatus.FINISHED):
            raise InvalidCallTransitionError(f"cannot start from {self.status.value}")

        # 새 통화: 이전 통화 상태 초기화
        self.messages = []
        self.is_speaking = False
        self.feedback_id = None
        self.redirect_to = None
        self._finish_started = False
        self._finish_done = False

        self.status = CallStatus.CONNECTING
        self._subscription = ChannelSubscription(
            self.channel,
            {
                vapi_client.CALL_START: self._on_call_start,
                vapi_client.CALL_END: self._on_call_end,
                vapi_client.MESSAGE: self._on_message,
                vapi_client.SPEECH_START: self._on_speech_start,
                vapi_client.SPEECH_END: self._on_speech_end,
                vapi_client.ERROR: self._on_error,
            },
        ).acquire()

        logger.info(
            "[CALL] CONNECTING type=%s user_id=%s interview_id=%s",
            self.call_type,
            self.user_id,
            self.interview_id,
        )

        try:
            if self.is_generate:
                await self.channel.start(
                    self.workflow_id,
                    {
                        "variableValues": {
                            "username": self.user_name,
                            "userid": self.user_id,
                        }
                    },
                )
            else:
                await self.channel.start(
                    INTERVIEWER,
                    {
                        "variableValues": {
                            "questions": format_questions(self.questions),
                        }
                    },
                )
        except ChannelError as e:
            # 상태는 CONNECTING 유지. stop() 또는 call-end 로만 종료
            logger.error("[CALL] channel_start_failed user_id=%s error=%s", self.user_id, e)
        except BaseException:
            self._subscription.release()
            raise

    async def stop(self) -> None:
        if self.status == CallStatus.FINISHED:
            raise InvalidCallTransitionError("call already finished")

        logger.info("[CALL] stop requested from=%s user_id=%s", self.status.value, self.user_id)
        self.status = CallStatus.FINISHED
        try:
            await self.channel.stop()
        except ChannelError as e:
            logger.error("[CALL] channel_stop_failed user_id=%s error=%s", self.user_id, e)
        await self._finish()

    # ---------- 채널 이벤트 ----------

    def _on_call_start(self) -> None:
        if self.status != CallStatus.CONNECTING:
            logger.info("[CALL] call-start ignored status=%s", self.status.value)
            return
        self.status = CallStatus.ACTIVE
        logger.info("[CALL] ACTIVE user_id=%s", self.user_id)

    async def _on_call_end(self) -> None:
        if self._finish_started:
            return
        self.status = CallStatus.FINISHED
        await self._finish()

    def _on_message(self, message: Dict[str, Any]) -> None:
        if self.status == CallStatus.FINISHED:
            return
        if message.get("type") != "transcript" or message.get("transcriptType") != "final":
            return
        if message.get("role") not in TRANSCRIPT_ROLES:
            logger.warning("[CALL] transcript with unknown role=%s skipped", message.get("role"))
            return
        self.messages.append(
            TranscriptMessage(role=message["role"], content=message.get("transcript") or "")
        )

    def _on_speech_start(self) -> None:
        self.is_speaking = True

    def _on_speech_end(self) -> None:
        self.is_speaking = False

    def _on_error(self, error: Exception) -> None:
        logger.error("[CALL] Error user_id=%s error=%r", self.user_id, error)

    # ---------- 종료 처리 ----------

    async def _finish(self) -> None:
        if self._finish_started:
            return
        self._finish_started = True
        logger.info(
            "[CALL] FINISHED type=%s user_id=%s messages=%d",
            self.call_type,
            self.user_id,
            len(self.messages),
        )

        try:
            if self.is_generate:
                self.redirect_to = HOME_PATH
                return

            if not self.messages or self.feedback_handler is None or not self.interview_id:
                logger.info("[CALL] feedback skipped user_id=%s", self.user_id)
                self.redirect_to = HOME_PATH
                return

            try:
                result = await self.feedback_handler(
                    self.interview_id,
                    self.user_id,
                    list(self.messages),
                )
            except Exception:
                logger.exception("[CALL] feedback handler failed interview_id=%s", self.interview_id)
                result = FeedbackCreateResponse(success=False)

            if result.success and result.feedback_id:
                self.feedback_id = result.feedback_id
                self.redirect_to = f"/interview/{self.interview_id}/feedback"
            else:
                logger.warning("[CALL] Error saving feedback interview_id=%s", self.interview_id)
                self.redirect_to = HOME_PATH
        finally:
            if self._subscription is not None:
                self._subscription.release()
            self._finish_done = True
