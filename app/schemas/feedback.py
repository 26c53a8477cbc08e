from datetime import datetime
from typing import Dict, List, Literal, Optional

from pydantic import Field, field_validator

from app.schemas.common import CamelModel

# 채점 카테고리 (프롬프트와 글자 하나까지 일치해야 함)
FEEDBACK_CATEGORIES = (
    "Communication Skills",
    "Technical Knowledge",
    "Problem Solving",
    "Cultural Fit",
    "Confidence and Clarity",
)


# -- Transcript --

class TranscriptMessage(CamelModel):
    role: Literal["user", "system", "assistant"]
    content: str


# -- Model output --

class FeedbackPayload(CamelModel):
    """LLM 이 돌려줘야 하는 피드백 JSON 구조"""

    total_score: float = Field(..., ge=0, le=100)
    category_scores: Dict[str, float]
    strengths: List[str] = Field(..., min_length=1)
    areas_for_improvement: List[str] = Field(..., min_length=1)
    final_assessment: str = Field(..., min_length=1)

    @field_validator("category_scores")
    @classmethod
    def validate_categories(cls, v: Dict[str, float]) -> Dict[str, float]:
        if set(v) != set(FEEDBACK_CATEGORIES):
            raise ValueError(f"categoryScores 는 정확히 {list(FEEDBACK_CATEGORIES)} 여야 합니다.")
        for name, score in v.items():
            if not 0 <= score <= 100:
                raise ValueError(f"{name} 점수는 0~100 사이여야 합니다.")
        return v


# -- Request --

class FeedbackCreateRequest(CamelModel):
    interview_id: str = Field(..., min_length=1)
    transcript: List[TranscriptMessage]


# -- Response --

class FeedbackCreateResponse(CamelModel):
    success: bool
    feedback_id: Optional[str] = None


class FeedbackResponse(CamelModel):
    id: str
    interview_id: str
    user_id: str
    total_score: float
    category_scores: Dict[str, float]
    strengths: List[str]
    areas_for_improvement: List[str]
    final_assessment: str
    created_at: datetime
