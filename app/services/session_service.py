# app/services/session_service.py
# 세션 쿠키 발급/검증
# - 짧은 수명의 Supabase access token 을 검증한 뒤 7일짜리 세션 토큰(JWT)을 발급
# - 세션 토큰은 HTTP-only 쿠키로만 전달되고 서버에 저장하지 않는다 (폐기 목록 없음)
import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Response
from fastapi.responses import RedirectResponse
from jose import jwt, JWTError
from sqlalchemy.orm import Session

from app.config import settings
from app.models.user import User
from app.services import user_service
from app.services.errors import PersistenceError, SessionCreationError
from app.services.supabase_auth import verify_access_token

logger = logging.getLogger(__name__)

ONE_WEEK = 60 * 60 * 24 * 7  # 초
SESSION_COOKIE_NAME = "session"
SESSION_TOKEN_TYPE = "session"
SIGN_IN_PATH = "/sign-in"
_ALGORITHM = "HS256"


def establish_session(id_token: str, now: Optional[datetime] = None) -> str:
    """
    access token -> 세션 토큰 교환

    Raises:
        SessionCreationError: 토큰이 잘못되었거나 만료됨
    """
    try:
        claims = verify_access_token(id_token)
    except ValueError as e:
        logger.warning("[SESSION] token_rejected reason=%s", e)
        raise SessionCreationError() from e

    now = now or datetime.now(timezone.utc)
    payload = {
        "sub": claims["user_id"],
        "email": claims.get("email"),
        "type": SESSION_TOKEN_TYPE,
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(seconds=ONE_WEEK)).timestamp()),
    }
    return jwt.encode(payload, settings.session_secret, algorithm=_ALGORITHM)


def verify_session(credential: str) -> dict:
    # 서명 + 만료만 확인
    try:
        claims = jwt.decode(credential, settings.session_secret, algorithms=[_ALGORITHM])
    except JWTError as e:
        raise ValueError("invalid session") from e

    if claims.get("type") != SESSION_TOKEN_TYPE or not claims.get("sub"):
        raise ValueError("invalid session")
    return claims


def current_user(db: Session, credential: Optional[str]) -> Optional[User]:
    """쿠키가 없거나, 검증 실패하거나, 프로필이 없으면 None"""
    if not credential:
        return None

    try:
        claims = verify_session(credential)
    except ValueError as e:
        logger.info("[SESSION] verify_failed reason=%s", e)
        return None

    try:
        return user_service.get_user(db, claims["sub"])
    except PersistenceError:
        logger.exception("[SESSION] profile_lookup_failed user_id=%s", claims["sub"])
        return None


def is_authenticated(db: Session, credential: Optional[str]) -> bool:
    return current_user(db, credential) is not None


def set_session_cookie(response: Response, credential: str) -> None:
    response.set_cookie(
        key=SESSION_COOKIE_NAME,
        value=credential,
        max_age=ONE_WEEK,
        httponly=True,                     # JS 에서 접근 불가
        secure=settings.is_production,     # 운영에서만 secure
        path="/",
        samesite="lax",
    )


def end_session() -> RedirectResponse:
    """쿠키 삭제 후 로그인 페이지로 리다이렉트"""
    response = RedirectResponse(url=SIGN_IN_PATH, status_code=303)
    response.delete_cookie(
        key=SESSION_COOKIE_NAME,
        path="/",
        httponly=True,
        secure=settings.is_production,
        samesite="lax",
    )
    return response
