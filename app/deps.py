# app/deps.py
from fastapi import Cookie, Depends, HTTPException
from sqlalchemy.orm import Session

from app.db.base import SessionLocal
from app.models.user import User
from app.services import session_service
from app.services.feedback_service import FeedbackService
from app.services.supabase_auth import SupabaseIdentityProvider
from app.services.vapi_client import VapiChannel

# ----------------------------
# DB 세션
# ----------------------------
def get_db():
    db = SessionLocal()
    try:
        yield db
        db.commit()  # commit 포함
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()

# ----------------------------
# 현재 사용자 (세션 쿠키)
# ----------------------------
def get_optional_user(
    session: str | None = Cookie(None),
    db: Session = Depends(get_db),
) -> User | None:
    return session_service.current_user(db, session)


def get_current_user(user: User | None = Depends(get_optional_user)) -> User:
    if user is None:
        raise HTTPException(status_code=401, detail="unauthorized")
    return user

# ----------------------------
# 외부 서비스 (테스트에서 dependency_overrides 로 교체)
# ----------------------------
_identity_provider = SupabaseIdentityProvider()
_feedback_service = FeedbackService()


def get_identity_provider() -> SupabaseIdentityProvider:
    return _identity_provider


def get_feedback_service() -> FeedbackService:
    return _feedback_service


def get_channel_factory():
    # 통화마다 새 채널
    return VapiChannel
