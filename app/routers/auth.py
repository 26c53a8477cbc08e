# app/routers/auth.py
import logging

from fastapi import APIRouter, Depends, Response
from sqlalchemy.orm import Session

from app.deps import get_db, get_current_user, get_optional_user, get_identity_provider
from app.models.user import User
from app.schemas.auth import (
    AuthResult,
    AuthStatusResponse,
    SessionRequest,
    SignInRequest,
    SignUpRequest,
    UserResponse,
)
from app.services import session_service, user_service
from app.services.errors import (
    DuplicateAccountError,
    InvalidCredentialsError,
    SessionCreationError,
)
from app.services.supabase_auth import SupabaseIdentityProvider

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])

SIGN_UP_OK = "Account created successfully. Please sign in."
SIGN_UP_FAILED = "Failed to create an account"
EMAIL_IN_USE = "This email is already in use."
USER_EXISTS = "User already exists. Please sign in instead."
SIGN_IN_OK = "Signed in successfully."
SIGN_IN_FAILED = "Failed to log into an account."
USER_NOT_FOUND = "User does not exist. Create an account instead."


# ---------- Helpers ----------
def _open_session(response: Response, id_token: str) -> AuthResult:
    credential = session_service.establish_session(id_token)
    session_service.set_session_cookie(response, credential)
    return AuthResult(success=True, message=SIGN_IN_OK)


# ---------- Endpoints ----------
@router.post("/sign-up", response_model=AuthResult, response_model_exclude_none=True)
def sign_up(
    body: SignUpRequest,
    db: Session = Depends(get_db),
    identity: SupabaseIdentityProvider = Depends(get_identity_provider),
):
    """
    회원가입
    - 이메일 / uid 가 이미 있으면 프로필을 쓰지 않고 success=false
    - 성공 시 users 테이블에 {name, email} 저장 (id = Supabase uid)
    """
    try:
        if user_service.get_user_by_email(db, body.email) is not None:
            return AuthResult(success=False, message=EMAIL_IN_USE)

        uid = identity.create_account(body.email, body.password, body.name)

        if user_service.get_user(db, uid) is not None:
            return AuthResult(success=False, message=USER_EXISTS)

        user_service.create_user(db, uid, body.name, body.email)

    except DuplicateAccountError as e:
        logger.info("[AUTH] duplicate_account email=%s", body.email)
        return AuthResult(success=False, message=e.message)
    except Exception:
        logger.exception("[AUTH] Error creating a user email=%s", body.email)
        return AuthResult(success=False, message=SIGN_UP_FAILED)

    return AuthResult(success=True, message=SIGN_UP_OK)


@router.post("/sign-in", response_model=AuthResult, response_model_exclude_none=True)
def sign_in(
    body: SignInRequest,
    response: Response,
    db: Session = Depends(get_db),
    identity: SupabaseIdentityProvider = Depends(get_identity_provider),
):
    """이메일/비밀번호 로그인 후 세션 쿠키 발급"""
    try:
        if user_service.get_user_by_email(db, body.email) is None:
            return AuthResult(success=False, message=USER_NOT_FOUND)

        token = identity.authenticate(body.email, body.password)
        return _open_session(response, token)

    except InvalidCredentialsError as e:
        return AuthResult(success=False, message=e.message)
    except Exception:
        logger.exception("[AUTH] sign_in failed email=%s", body.email)
        return AuthResult(success=False, message=SIGN_IN_FAILED)


@router.post("/session", response_model=AuthResult, response_model_exclude_none=True)
def create_session(
    body: SessionRequest,
    response: Response,
    db: Session = Depends(get_db),
):
    """
    클라이언트가 Supabase 에서 직접 로그인한 경우
    access token(idToken)을 세션 쿠키로 교환
    """
    try:
        if user_service.get_user_by_email(db, body.email) is None:
            return AuthResult(success=False, message=USER_NOT_FOUND)

        return _open_session(response, body.id_token)

    except SessionCreationError:
        return AuthResult(success=False, message=SIGN_IN_FAILED)
    except Exception:
        logger.exception("[AUTH] session exchange failed email=%s", body.email)
        return AuthResult(success=False, message=SIGN_IN_FAILED)


@router.post("/sign-out")
def sign_out():
    """세션 쿠키 삭제 후 /sign-in 으로 303"""
    return session_service.end_session()


@router.get("/me", response_model=UserResponse)
def me(user: User = Depends(get_current_user)):
    return user


@router.get("/status", response_model=AuthStatusResponse)
def status(user: User | None = Depends(get_optional_user)):
    return AuthStatusResponse(authenticated=user is not None)
