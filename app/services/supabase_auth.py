# app/services/supabase_auth.py
import logging
from typing import Dict, Optional

from jose import jwt, JWTError
from supabase import create_client, Client, AuthApiError

from app.config import settings
from app.services.errors import DuplicateAccountError, InvalidCredentialsError

logger = logging.getLogger(__name__)

SUPABASE_JWT_SECRET = settings.supabase_jwt_secret
SUPABASE_ISSUER = settings.supabase_issuer
SUPABASE_JWT_AUDIENCE = settings.supabase_jwt_audience

if not SUPABASE_JWT_SECRET:
    raise RuntimeError("SUPABASE_JWT_SECRET 환경변수가 설정되어 있지 않습니다.")

# Supabase 가 중복 계정일 때 돌려주는 에러 코드
_DUPLICATE_CODES = {"user_already_exists", "email_exists"}


def verify_access_token(token: str) -> Dict[str, str | None]:
    """
    - Supabase access token(HS256)을 JWT secret 으로 검증하고
    - 기본적인 클레임(sub, email)을 반환한다.
    - 만료/서명 오류는 ValueError 로 올린다.
    """
    token = (token or "").strip()
    if not token:
        raise ValueError("missing token")

    try:
        # issuer 는 None일 수도 있어서 옵션으로만 넣어줌
        decode_kwargs = {
            "key": SUPABASE_JWT_SECRET,
            "algorithms": ["HS256"],  # Supabase access token 의 alg
        }
        if SUPABASE_JWT_AUDIENCE:
            decode_kwargs["audience"] = SUPABASE_JWT_AUDIENCE  # "authenticated"
        if SUPABASE_ISSUER:
            decode_kwargs["issuer"] = SUPABASE_ISSUER          # "https://.../auth/v1"

        claims = jwt.decode(token, **decode_kwargs)

    except JWTError as e:
        raise ValueError("invalid token") from e

    user_id = claims.get("sub")
    if not user_id:
        raise ValueError("invalid token: missing sub")

    return {
        "user_id": user_id,
        "email": claims.get("email"),
    }


class SupabaseIdentityProvider:
    """Supabase Auth 계정 생성 / 로그인 어댑터"""

    def __init__(self, client: Optional[Client] = None):
        self._client = client

    @property
    def client(self) -> Client:
        # 요청 시점에 한 번만 초기화
        if self._client is None:
            self._client = create_client(settings.supabase_url, settings.supabase_anon_key)
        return self._client

    def create_account(self, email: str, password: str, name: str) -> str:
        """
        계정 생성 후 제공자가 발급한 user id 반환

        Raises:
            DuplicateAccountError: 이미 가입된 이메일
        """
        try:
            res = self.client.auth.sign_up(
                {
                    "email": email,
                    "password": password,
                    "options": {"data": {"name": name}},
                }
            )
        except AuthApiError as e:
            if getattr(e, "code", None) in _DUPLICATE_CODES:
                raise DuplicateAccountError("This email is already in use.") from e
            raise

        user = res.user
        # 이메일 확인이 켜져 있으면 중복 가입 시 identities 가 빈 리스트로 옴
        if user is None or user.identities == []:
            raise DuplicateAccountError("This email is already in use.")

        logger.info("[AUTH] account_created user_id=%s", user.id)
        return str(user.id)

    def authenticate(self, email: str, password: str) -> str:
        """
        이메일/비밀번호 로그인 후 access token 반환

        Raises:
            InvalidCredentialsError: 잘못된 이메일 또는 비밀번호
        """
        try:
            res = self.client.auth.sign_in_with_password(
                {"email": email, "password": password}
            )
        except AuthApiError as e:
            logger.warning("[AUTH] sign_in_rejected email=%s code=%s", email, getattr(e, "code", None))
            raise InvalidCredentialsError() from e

        if res.session is None or not res.session.access_token:
            raise InvalidCredentialsError()

        return res.session.access_token
