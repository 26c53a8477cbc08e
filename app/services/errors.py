# app/services/errors.py
# 서비스 계층 예외 정의
# 라우터 경계에서 {success: false, message} 또는 HTTPException 으로 변환된다.


class PrepwiseError(Exception):
    """서비스 계층 공통 예외"""

    message = "unexpected_error"

    def __init__(self, message: str | None = None):
        super().__init__(message or self.message)
        if message:
            self.message = message


class DuplicateAccountError(PrepwiseError):
    message = "User already exists. Please sign in instead."


class InvalidCredentialsError(PrepwiseError):
    message = "Invalid email or password."


class SessionCreationError(PrepwiseError):
    message = "Failed to create a session."


class ChannelError(PrepwiseError):
    message = "Voice channel error."


class InvalidCallTransitionError(PrepwiseError):
    message = "Invalid call state transition."


class SchemaValidationError(PrepwiseError):
    message = "Model output does not match the feedback schema."


class PersistenceError(PrepwiseError):
    message = "Database operation failed."
