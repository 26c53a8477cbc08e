# 진행 중인 통화(CallSession)를 보관하는 in-memory 레지스트리
# 키: 서버가 발급한 call_id, Vapi 쪽 call id 는 별칭으로 연결
# 종료된 통화는 세션(채널/리스너)을 내려놓고 마지막 상태만 최근 MAX_FINISHED 건 보관
import uuid
from collections import OrderedDict
from typing import Dict, Optional, Tuple

from app.schemas.interview import CallStateResponse
from app.services.call_agent import CallSession

MAX_FINISHED = 500

_calls: Dict[str, CallSession] = {}
_aliases: Dict[str, str] = {}     # vapi call id -> call_id
_finished: "OrderedDict[str, Tuple[str, CallStateResponse]]" = OrderedDict()  # call_id -> (user_id, 마지막 상태)


def new_call_id() -> str:
    return f"call_{uuid.uuid4().hex[:12]}"

def register(call_id: str, session: CallSession) -> None:
    _calls[call_id] = session

def bind_remote(remote_id: Optional[str], call_id: str) -> None:
    if remote_id:
        _aliases[remote_id] = call_id

def resolve(call_id: str) -> Optional[str]:
    if call_id in _calls:
        return call_id
    return _aliases.get(call_id)

def get(call_id: str) -> Optional[CallSession]:
    key = resolve(call_id)
    return _calls.get(key) if key else None

def discard(call_id: str) -> None:
    _calls.pop(call_id, None)
    for remote_id in [k for k, v in _aliases.items() if v == call_id]:
        _aliases.pop(remote_id, None)

def retire(call_id: str, user_id: str, state: CallStateResponse) -> None:
    """종료 처리까지 끝난 통화를 live 목록에서 빼고 마지막 상태만 남김"""
    discard(call_id)
    _finished[call_id] = (user_id, state)
    _finished.move_to_end(call_id)
    while len(_finished) > MAX_FINISHED:
        _finished.popitem(last=False)

def get_finished(call_id: str) -> Optional[Tuple[str, CallStateResponse]]:
    return _finished.get(call_id)

def live_count() -> int:
    return len(_calls)

def clear() -> None:
    _calls.clear()
    _aliases.clear()
    _finished.clear()
