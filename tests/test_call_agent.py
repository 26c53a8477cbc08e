import asyncio

import httpx
import pytest

from app.schemas.feedback import FeedbackCreateResponse
from app.services.call_agent import CallSession, CallStatus, format_questions
from app.services.errors import ChannelError, InvalidCallTransitionError
from app.services.interviewer import INTERVIEWER

from app.services.vapi_client import VapiChannel

from fakes import RecordingChannel


class FeedbackRecorder:
    def __init__(self, result=None, error=None):
        self.result = result or FeedbackCreateResponse(success=True, feedback_id="fb-1")
        self.error = error
        self.calls = []

    async def __call__(self, interview_id, user_id, transcript):
        self.calls.append((interview_id, user_id, list(transcript)))
        if self.error is not None:
            raise self.error
        return self.result


def _session(channel=None, call_type="interview", handler=None, questions=None):
    return CallSession(
        channel or RecordingChannel(),
        call_type=call_type,
        user_name="Jamie",
        user_id="u1",
        interview_id=None if call_type == "generate" else "iv-1",
        questions=questions if questions is not None else ["Tell me about yourself", "Why Python?"],
        workflow_id="wf_test",
        feedback_handler=handler,
    )


def _transcript(role, text, kind="final"):
    return {"type": "transcript", "role": role, "transcriptType": kind, "transcript": text}


def test_format_questions():
    assert format_questions(["A?", "B?"]) == "- A?\n- B?"
    assert format_questions([]) == ""
    assert format_questions(None) == ""


def test_interview_start_uses_interviewer_and_question_list():
    channel = RecordingChannel()
    session = _session(channel)

    asyncio.run(session.start())

    assert session.status == CallStatus.CONNECTING
    assistant, overrides = channel.started[0]
    assert assistant is INTERVIEWER
    assert overrides == {"variableValues": {"questions": "- Tell me about yourself\n- Why Python?"}}


def test_generate_start_uses_workflow_and_user_variables():
    channel = RecordingChannel()
    session = _session(channel, call_type="generate")

    asyncio.run(session.start())

    assert channel.started == [
        ("wf_test", {"variableValues": {"username": "Jamie", "userid": "u1"}}),
    ]


def test_call_start_event_moves_to_active():
    channel = RecordingChannel()
    session = _session(channel)

    async def scenario():
        await session.start()
        await channel.emit("call-start")

    asyncio.run(scenario())
    assert session.status == CallStatus.ACTIVE


def test_only_final_transcripts_are_kept_in_order():
    channel = RecordingChannel()
    session = _session(channel)

    async def scenario():
        await session.start()
        await channel.emit("call-start")
        await channel.emit("message", _transcript("assistant", "Tell me about", kind="partial"))
        await channel.emit("message", _transcript("assistant", "Tell me about yourself"))
        await channel.emit("message", {"type": "function-call", "role": "assistant"})
        await channel.emit("message", _transcript("user", "I build", kind="partial"))
        await channel.emit("message", _transcript("user", "I build backend systems"))
        await channel.emit("message", _transcript("user", "I build backend systems"))

    asyncio.run(scenario())

    assert [(m.role, m.content) for m in session.messages] == [
        ("assistant", "Tell me about yourself"),
        ("user", "I build backend systems"),
        ("user", "I build backend systems"),
    ]
    assert session.latest_message == "I build backend systems"


def test_speech_events_toggle_speaking_flag():
    channel = RecordingChannel()
    session = _session(channel)

    async def scenario():
        await session.start()
        await channel.emit("speech-start")
        assert session.is_speaking is True
        await channel.emit("speech-end")

    asyncio.run(scenario())
    assert session.is_speaking is False


def test_channel_error_is_logged_without_transition():
    channel = RecordingChannel()
    session = _session(channel)

    async def scenario():
        await session.start()
        await channel.emit("call-start")
        await channel.emit("error", ChannelError("ice failed"))

    asyncio.run(scenario())
    assert session.status == CallStatus.ACTIVE


def test_call_end_runs_feedback_exactly_once():
    channel = RecordingChannel()
    handler = FeedbackRecorder()
    session = _session(channel, handler=handler)

    async def scenario():
        await session.start()
        await channel.emit("call-start")
        await channel.emit("message", _transcript("assistant", "Tell me about yourself"))
        await channel.emit("message", _transcript("user", "I build backend systems"))
        await channel.emit("call-end")
        await channel.emit("call-end")

    asyncio.run(scenario())

    assert session.status == CallStatus.FINISHED
    assert len(handler.calls) == 1
    interview_id, user_id, transcript = handler.calls[0]
    assert (interview_id, user_id) == ("iv-1", "u1")
    assert [m.content for m in transcript] == ["Tell me about yourself", "I build backend systems"]
    assert session.feedback_id == "fb-1"
    assert session.redirect_to == "/interview/iv-1/feedback"


def test_stop_then_channel_call_end_does_not_rerun_feedback():
    channel = RecordingChannel(end_on_stop=True)
    handler = FeedbackRecorder()
    session = _session(channel, handler=handler)

    async def scenario():
        await session.start()
        await channel.emit("call-start")
        await channel.emit("message", _transcript("user", "Hello"))
        await session.stop()
        await channel.emit("call-end")

    asyncio.run(scenario())

    assert channel.stop_calls == 1
    assert len(handler.calls) == 1


def test_generate_mode_never_produces_feedback():
    channel = RecordingChannel()
    handler = FeedbackRecorder()
    session = _session(channel, call_type="generate", handler=handler)

    async def scenario():
        await session.start()
        await channel.emit("call-start")
        await channel.emit("message", _transcript("user", "I want a backend interview"))
        await channel.emit("call-end")

    asyncio.run(scenario())

    assert handler.calls == []
    assert session.redirect_to == "/"


def test_stop_while_connecting_skips_active():
    channel = RecordingChannel()
    handler = FeedbackRecorder()
    session = _session(channel, handler=handler)
    seen = []

    async def scenario():
        await session.start()
        seen.append(session.status)
        await session.stop()
        seen.append(session.status)
        # 늦게 도착한 call-start 는 무시
        await channel.emit("call-start")
        seen.append(session.status)

    asyncio.run(scenario())

    assert seen == [CallStatus.CONNECTING, CallStatus.FINISHED, CallStatus.FINISHED]
    assert CallStatus.ACTIVE not in seen
    assert channel.stop_calls == 1
    # transcript 가 비어 있으면 피드백 생성 안 함
    assert handler.calls == []
    assert session.redirect_to == "/"


def test_stop_after_finished_is_rejected():
    channel = RecordingChannel()
    session = _session(channel)

    async def scenario():
        await session.start()
        await channel.emit("call-end")
        with pytest.raises(InvalidCallTransitionError):
            await session.stop()

    asyncio.run(scenario())


def test_start_only_from_inactive_or_finished():
    channel = RecordingChannel()
    session = _session(channel, handler=FeedbackRecorder())

    async def scenario():
        await session.start()
        with pytest.raises(InvalidCallTransitionError):
            await session.start()
        await channel.emit("call-start")
        with pytest.raises(InvalidCallTransitionError):
            await session.start()
        await session.stop()
        # FINISHED 에서는 새 통화 시작 가능
        await session.start()

    asyncio.run(scenario())

    assert session.status == CallStatus.CONNECTING
    assert session.messages == []
    assert len(channel.started) == 2


def test_subscription_released_when_call_finishes():
    channel = RecordingChannel()
    session = _session(channel, handler=FeedbackRecorder())

    async def scenario():
        await session.start()
        assert session.subscribed
        assert channel.listener_count() == 6
        await channel.emit("call-end")

    asyncio.run(scenario())

    assert not session.subscribed
    assert channel.listener_count() == 0


def test_subscription_released_when_feedback_handler_fails():
    channel = RecordingChannel()
    handler = FeedbackRecorder(error=RuntimeError("boom"))
    session = _session(channel, handler=handler)

    async def scenario():
        await session.start()
        await channel.emit("message", _transcript("user", "Hello"))
        await channel.emit("call-end")

    asyncio.run(scenario())

    assert channel.listener_count() == 0
    assert session.redirect_to == "/"
    assert session.feedback_id is None


def test_failed_feedback_redirects_home():
    channel = RecordingChannel()
    handler = FeedbackRecorder(result=FeedbackCreateResponse(success=False))
    session = _session(channel, handler=handler)

    async def scenario():
        await session.start()
        await channel.emit("message", _transcript("user", "Hello"))
        await channel.emit("call-end")

    asyncio.run(scenario())

    assert len(handler.calls) == 1
    assert session.redirect_to == "/"


def test_channel_start_failure_keeps_connecting():
    channel = RecordingChannel(fail_start=True)
    session = _session(channel)

    asyncio.run(session.start())

    assert session.status == CallStatus.CONNECTING
    assert session.subscribed


def test_messages_after_finish_are_ignored():
    channel = RecordingChannel()
    session = _session(channel, handler=FeedbackRecorder())

    async def scenario():
        await session.start()
        await channel.emit("message", _transcript("user", "Hello"))
        await session.stop()
        await channel.emit("message", _transcript("user", "late"))

    asyncio.run(scenario())

    assert [m.content for m in session.messages] == ["Hello"]


def test_non_json_vapi_reply_is_a_channel_failure():
    handler = FeedbackRecorder()

    async def scenario():
        transport = httpx.MockTransport(lambda request: httpx.Response(201, text="OK"))
        async with httpx.AsyncClient(transport=transport) as http:
            channel = VapiChannel(api_key="k", base_url="https://api.vapi.test", http_client=http)
            session = _session(channel, handler=handler)

            await session.start()
            assert session.status == CallStatus.CONNECTING

            await channel.emit("message", _transcript("user", "Hello"))
            channel.control_url = "https://control.vapi.test/call-1"
            await session.stop()
            return session, channel

    session, channel = asyncio.run(scenario())

    assert session.status == CallStatus.FINISHED
    assert session.finished
    assert len(handler.calls) == 1
    assert session.redirect_to == "/interview/iv-1/feedback"
    assert channel.listener_count() == 0


def test_null_transcript_text_is_kept_as_empty_string():
    channel = RecordingChannel()
    session = _session(channel)

    async def scenario():
        await session.start()
        await channel.emit("message", _transcript("user", None))

    asyncio.run(scenario())

    assert [m.content for m in session.messages] == [""]
