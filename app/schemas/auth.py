from typing import Optional

from pydantic import EmailStr, Field

from app.schemas.common import CamelModel

# -- Request --

# 회원가입 - 요청
class SignUpRequest(CamelModel):
    name: str = Field(..., min_length=3, description="이름")
    email: EmailStr
    password: str = Field(..., min_length=3)

# 로그인 - 요청 (이메일/비밀번호)
class SignInRequest(CamelModel):
    email: EmailStr
    password: str = Field(..., min_length=3)

# 로그인 - 요청 (클라이언트가 Supabase 에서 직접 받은 access token)
class SessionRequest(CamelModel):
    email: EmailStr
    id_token: str = Field(..., min_length=1)


# -- Response --

class AuthResult(CamelModel):
    success: bool
    message: Optional[str] = None

class UserResponse(CamelModel):
    id: str
    name: str
    email: str

class AuthStatusResponse(CamelModel):
    authenticated: bool
