# app/services/vapi_client.py
"""
Vapi 음성 채널 클라이언트
- REST API 로 웹 통화 생성 / 종료 (httpx)
- Vapi 서버 webhook 메시지를 SDK 이벤트(call-start, message, ...)로 변환해 리스너에 전달
"""
import inspect
import logging
from collections import defaultdict
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union

import httpx

from app.config import settings
from app.services.errors import ChannelError

logger = logging.getLogger(__name__)

CALL_START = "call-start"
CALL_END = "call-end"
MESSAGE = "message"
SPEECH_START = "speech-start"
SPEECH_END = "speech-end"
ERROR = "error"

EVENTS = (CALL_START, CALL_END, MESSAGE, SPEECH_START, SPEECH_END, ERROR)

Listener = Callable[..., Union[None, Awaitable[None]]]

VAPI_TIMEOUT = 15.0


class VapiChannel:
    """통화 1건에 대응하는 Vapi 채널"""

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.api_key = api_key or settings.vapi_api_key
        self.base_url = (base_url or settings.vapi_base_url).rstrip("/")
        self._http_client = http_client
        self._listeners: Dict[str, List[Listener]] = defaultdict(list)

        self.call_id: Optional[str] = None
        self.control_url: Optional[str] = None
        self.web_call_url: Optional[str] = None

    # ---------- 리스너 ----------

    def on(self, event: str, listener: Listener) -> None:
        self._listeners[event].append(listener)

    def off(self, event: str, listener: Listener) -> None:
        try:
            self._listeners[event].remove(listener)
        except ValueError:
            pass

    def listener_count(self, event: Optional[str] = None) -> int:
        if event is not None:
            return len(self._listeners[event])
        return sum(len(v) for v in self._listeners.values())

    async def emit(self, event: str, *args: Any) -> None:
        # 등록 순서대로 호출, 코루틴이면 await
        for listener in list(self._listeners[event]):
            result = listener(*args)
            if inspect.isawaitable(result):
                await result

    # ---------- REST ----------

    async def _request(self, method: str, url: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        headers = {"Authorization": f"Bearer {self.api_key}"}
        try:
            if self._http_client is not None:
                res = await self._http_client.request(method, url, json=payload, headers=headers)
            else:
                async with httpx.AsyncClient(timeout=VAPI_TIMEOUT) as client:
                    res = await client.request(method, url, json=payload, headers=headers)
            res.raise_for_status()
        except httpx.HTTPError as e:
            raise ChannelError(f"vapi request failed: {e}") from e

        if not res.content:
            return {}
        try:
            return res.json()
        except ValueError as e:
            raise ChannelError(f"vapi returned non-JSON body status={res.status_code}") from e

    async def start(self, assistant: Union[str, Dict[str, Any]], overrides: Dict[str, Any]) -> Dict[str, Any]:
        """
        웹 통화 생성

        Args:
            assistant: 워크플로 ID(str) 또는 assistant 설정(dict)
            overrides: {"variableValues": {...}}
        """
        if isinstance(assistant, str):
            body = {"workflowId": assistant, "workflowOverrides": overrides}
        else:
            body = {"assistant": assistant, "assistantOverrides": overrides}

        call = await self._request("POST", f"{self.base_url}/call/web", body)

        self.call_id = call.get("id")
        self.web_call_url = call.get("webCallUrl")
        self.control_url = (call.get("monitor") or {}).get("controlUrl")
        logger.info("[VAPI] call_created call_id=%s", self.call_id)
        return call

    async def stop(self) -> None:
        """통화 종료 요청. 통화가 아직 생성되지 않았으면 아무것도 하지 않음"""
        if not self.control_url:
            logger.info("[VAPI] stop_skipped call_id=%s (no control url)", self.call_id)
            return
        await self._request("POST", self.control_url, {"type": "end-call"})
        logger.info("[VAPI] end_call_requested call_id=%s", self.call_id)

    # ---------- webhook ----------

    async def handle_server_message(self, message: Dict[str, Any]) -> None:
        """
        Vapi server message -> 채널 이벤트

        status-update(in-progress/ended), transcript, speech-update(started/stopped),
        end-of-call-report, hang/error 만 처리하고 나머지는 무시한다.
        """
        msg_type = message.get("type") or ""

        if msg_type == "status-update":
            status = message.get("status")
            if status == "in-progress":
                await self.emit(CALL_START)
            elif status == "ended":
                await self.emit(CALL_END)

        elif msg_type.startswith("transcript"):
            await self.emit(
                MESSAGE,
                {
                    "type": "transcript",
                    "role": message.get("role"),
                    "transcriptType": message.get("transcriptType"),
                    "transcript": message.get("transcript") or "",
                },
            )

        elif msg_type == "speech-update":
            status = message.get("status")
            if status == "started":
                await self.emit(SPEECH_START)
            elif status == "stopped":
                await self.emit(SPEECH_END)

        elif msg_type == "end-of-call-report":
            await self.emit(CALL_END)

        elif msg_type in ("hang", "error"):
            await self.emit(ERROR, ChannelError(message.get("error") or msg_type))

        else:
            logger.debug("[VAPI] ignored message type=%s call_id=%s", msg_type, self.call_id)
