from datetime import datetime
from typing import List, Literal, Optional

from pydantic import Field, model_validator

from app.schemas.common import CamelModel
from app.schemas.feedback import TranscriptMessage

# -- Response --

# 면접 응답
class InterviewResponse(CamelModel):
    id: str
    user_id: str
    role: str
    level: Optional[str] = None
    type: Optional[str] = None
    techstack: List[str] = Field(default_factory=list)
    questions: List[str] = Field(default_factory=list)
    cover_image: Optional[str] = None
    finalized: bool
    created_at: datetime


# -- Call --

# 통화 시작 - 요청
class CallStartRequest(CamelModel):
    type: Literal["generate", "interview"] = "interview"
    interview_id: Optional[str] = None

    @model_validator(mode="after")
    def require_interview_id(self):
        if self.type != "generate" and not self.interview_id:
            raise ValueError("interviewId 는 면접 통화에 필수입니다.")
        return self


# 통화 상태 - 응답
class CallStateResponse(CamelModel):
    call_id: str
    type: str
    status: Literal["INACTIVE", "CONNECTING", "ACTIVE", "FINISHED"]
    is_speaking: bool
    messages: List[TranscriptMessage]
    latest_message: Optional[str] = None
    interview_id: Optional[str] = None
    feedback_id: Optional[str] = None
    redirect_to: Optional[str] = None
    web_call_url: Optional[str] = None
