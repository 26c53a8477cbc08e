import json
from types import SimpleNamespace

import httpx
from openai import APIConnectionError

from app.models.feedback import Feedback
from app.schemas.feedback import FEEDBACK_CATEGORIES, TranscriptMessage
from app.services.feedback_service import FeedbackService

from fakes import VALID_FEEDBACK, FakeOpenAI

TRANSCRIPT = [
    TranscriptMessage(role="assistant", content="Tell me about yourself"),
    TranscriptMessage(role="user", content="I build backend systems"),
]


def _with(**changes):
    payload = json.loads(json.dumps(VALID_FEEDBACK))
    payload.update(changes)
    return json.dumps(payload)


def test_format_transcript():
    assert FeedbackService.format_transcript(TRANSCRIPT) == (
        "- assistant: Tell me about yourself\n- user: I build backend systems\n"
    )


def test_prompt_names_all_five_categories():
    prompt = FeedbackService.build_prompt("- user: hi\n")
    for name in FEEDBACK_CATEGORIES:
        assert f"**{name}**" in prompt
        assert f'"{name}": <number 0-100>' in prompt
    assert "- user: hi" in prompt


def test_create_feedback_scores_and_persists(db):
    client = FakeOpenAI()
    service = FeedbackService(client=client, model="test-model")

    result = service.create_feedback(db, "iv-1", "u1", TRANSCRIPT)

    assert result.success is True
    feedback = db.get(Feedback, result.feedback_id)
    assert feedback.interview_id == "iv-1"
    assert feedback.user_id == "u1"
    assert set(feedback.category_scores) == set(FEEDBACK_CATEGORIES)
    assert all(0 <= v <= 100 for v in feedback.category_scores.values())
    assert 0 <= feedback.total_score <= 100
    assert feedback.strengths and feedback.areas_for_improvement and feedback.final_assessment

    call = client.calls[0]
    assert call["model"] == "test-model"
    assert call["response_format"] == {"type": "json_object"}
    assert "- user: I build backend systems" in call["messages"][1]["content"]


def test_missing_category_is_rejected_without_write(db):
    scores = dict(VALID_FEEDBACK["categoryScores"])
    scores.pop("Cultural Fit")
    service = FeedbackService(client=FakeOpenAI(content=_with(categoryScores=scores)))

    result = service.create_feedback(db, "iv-1", "u1", TRANSCRIPT)

    assert result.success is False
    assert result.feedback_id is None
    assert db.query(Feedback).count() == 0


def test_extra_category_is_rejected(db):
    scores = dict(VALID_FEEDBACK["categoryScores"], Leadership=90)
    service = FeedbackService(client=FakeOpenAI(content=_with(categoryScores=scores)))

    assert service.create_feedback(db, "iv-1", "u1", TRANSCRIPT).success is False


def test_out_of_range_scores_are_rejected(db):
    scores = dict(VALID_FEEDBACK["categoryScores"], **{"Problem Solving": 140})
    assert FeedbackService(client=FakeOpenAI(content=_with(categoryScores=scores))).create_feedback(
        db, "iv-1", "u1", TRANSCRIPT
    ).success is False
    assert FeedbackService(client=FakeOpenAI(content=_with(totalScore=-1))).create_feedback(
        db, "iv-1", "u1", TRANSCRIPT
    ).success is False


def test_non_json_output_is_rejected(db):
    service = FeedbackService(client=FakeOpenAI(content="Great candidate!"))

    assert service.create_feedback(db, "iv-1", "u1", TRANSCRIPT).success is False


def test_provider_failure_returns_unsuccessful(db):
    error = APIConnectionError(request=httpx.Request("POST", "https://api.openai.com/v1/chat/completions"))
    service = FeedbackService(client=FakeOpenAI(error=error))

    assert service.create_feedback(db, "iv-1", "u1", TRANSCRIPT).success is False
    assert db.query(Feedback).count() == 0


def test_empty_transcript_skips_model_call(db):
    client = FakeOpenAI()

    result = FeedbackService(client=client).create_feedback(db, "iv-1", "u1", [])

    assert result.success is False
    assert client.calls == []


def test_no_idempotence_two_calls_two_records(db):
    service = FeedbackService(client=FakeOpenAI())

    first = service.create_feedback(db, "iv-1", "u1", TRANSCRIPT)
    second = service.create_feedback(db, "iv-1", "u1", TRANSCRIPT)

    assert first.feedback_id != second.feedback_id
    assert db.query(Feedback).count() == 2


def test_empty_strengths_or_improvements_are_rejected(db):
    for changes in ({"strengths": []}, {"areasForImprovement": []}):
        service = FeedbackService(client=FakeOpenAI(content=_with(**changes)))

        assert service.create_feedback(db, "iv-1", "u1", TRANSCRIPT).success is False

    assert db.query(Feedback).count() == 0


def test_unexpected_model_reply_returns_unsuccessful(db):
    client = FakeOpenAI()
    client.chat.completions.create = lambda **kwargs: SimpleNamespace(choices=[])

    result = FeedbackService(client=client).create_feedback(db, "iv-1", "u1", TRANSCRIPT)

    assert result.success is False
    assert db.query(Feedback).count() == 0
