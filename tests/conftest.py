import os
from datetime import datetime, timedelta, timezone

# app.config 가 import 되기 전에 테스트용 환경 변수 설정
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["APP_ENV"] = "test"
os.environ["SUPABASE_URL"] = "https://example.supabase.co"
os.environ["SUPABASE_ANON_KEY"] = "test-anon-key"
os.environ["SUPABASE_JWT_SECRET"] = "test-supabase-jwt-secret"
os.environ["SESSION_SECRET"] = "test-session-secret"
os.environ["OPENAI_API_KEY"] = "sk-test"
os.environ["VAPI_API_KEY"] = "test-vapi-key"
os.environ["VAPI_WORKFLOW_ID"] = "wf_test"
os.environ.pop("VAPI_WEBHOOK_SECRET", None)

import pytest
from fastapi.testclient import TestClient

from app.db.base import Base, SessionLocal, engine, init_db
from app.deps import get_channel_factory, get_feedback_service, get_identity_provider
from app.main import app
from app.models.interviews import Interview
from app.models.user import User
from app.services import call_registry, session_service
from app.services.feedback_service import FeedbackService

from fakes import FakeIdentityProvider, FakeOpenAI, RecordingChannel, make_access_token


@pytest.fixture(autouse=True)
def tables():
    init_db()
    call_registry.clear()
    try:
        yield
    finally:
        Base.metadata.drop_all(bind=engine)
        call_registry.clear()


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def make_user(db):
    def _make(user_id="u1", name="Jamie Doe", email=None):
        user = User(id=user_id, name=name, email=email or f"{user_id}@example.com")
        db.add(user)
        db.commit()
        return user
    return _make


@pytest.fixture
def make_interview(db):
    base = datetime(2025, 1, 1, tzinfo=timezone.utc)

    def _make(interview_id, user_id, finalized=True, minutes=0, questions=None, role="Backend Engineer"):
        interview = Interview(
            id=interview_id,
            user_id=user_id,
            role=role,
            level="Junior",
            type="Technical",
            techstack=["python", "fastapi"],
            questions=questions if questions is not None else ["Tell me about yourself", "Why this role?"],
            finalized=finalized,
            created_at=base + timedelta(minutes=minutes),
        )
        db.add(interview)
        db.commit()
        return interview
    return _make


@pytest.fixture
def identity():
    return FakeIdentityProvider()


@pytest.fixture
def openai_client():
    return FakeOpenAI()


@pytest.fixture
def channels():
    return []


@pytest.fixture
def client(identity, openai_client, channels):
    def channel_factory():
        channel = RecordingChannel(call_id=f"vapi-call-{len(channels) + 1}")
        channels.append(channel)
        return channel

    feedback_service = FeedbackService(client=openai_client, model="test-model")
    app.dependency_overrides[get_identity_provider] = lambda: identity
    app.dependency_overrides[get_feedback_service] = lambda: feedback_service
    app.dependency_overrides[get_channel_factory] = lambda: channel_factory
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def login(client):
    # 세션 쿠키를 직접 발급해서 클라이언트에 심는다
    def _login(user):
        credential = session_service.establish_session(make_access_token(user.id, user.email))
        client.cookies.set(session_service.SESSION_COOKIE_NAME, credential)
        return client
    return _login
