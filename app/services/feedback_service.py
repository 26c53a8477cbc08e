# app/services/feedback_service.py
"""
면접 대화(transcript) 채점 Service (OpenAI API)
- transcript 를 "- role: content" 줄로 변환
- 고정된 5개 카테고리 루브릭으로 채점 요청
- 응답 JSON 을 스키마로 검증 후 feedback 테이블에 1건 저장
"""
import logging
from typing import List, Optional, Sequence

from openai import OpenAI, OpenAIError
from pydantic import ValidationError
from sqlalchemy.orm import Session

from app.config import settings
from app.schemas.feedback import (
    FEEDBACK_CATEGORIES,
    FeedbackCreateResponse,
    FeedbackPayload,
    TranscriptMessage,
)
from app.services.errors import PrepwiseError, SchemaValidationError
from app.services.interview_service import InterviewService

logger = logging.getLogger(__name__)


SYSTEM_PROMPT = (
    "You are a professional interviewer analyzing a mock interview. "
    "Your task is to evaluate the candidate based on structured categories"
)

RUBRIC_PROMPT = """
You are an AI interviewer analyzing a mock interview. Your task is to evaluate the candidate based on structured categories. Be thorough and detailed in your analysis. Don't be lenient with the candidate. If there are mistakes or areas for improvement, point them out.
Transcript:
{transcript}

Please score the candidate from 0 to 100 in the following areas. Do not add categories other than the ones provided:
- **Communication Skills**: Clarity, articulation, structured responses.
- **Technical Knowledge**: Understanding of key concepts for the role.
- **Problem Solving**: Ability to analyze problems and propose solutions.
- **Cultural Fit**: Alignment with company values and job role.
- **Confidence and Clarity**: Confidence in responses, engagement, and clarity.

Respond with a JSON object only, using exactly this structure:
{{
  "totalScore": <number 0-100>,
  "categoryScores": {{{category_keys}}},
  "strengths": [<string>, ...],
  "areasForImprovement": [<string>, ...],
  "finalAssessment": <string>
}}
"""


class FeedbackService:
    """transcript 채점 + 피드백 저장"""

    def __init__(self, client: Optional[OpenAI] = None, model: Optional[str] = None):
        self._client = client
        self.model = model or settings.openai_model

    @property
    def client(self) -> OpenAI:
        if self._client is None:
            self._client = OpenAI(api_key=settings.openai_api_key)
        return self._client

    @staticmethod
    def format_transcript(transcript: Sequence[TranscriptMessage]) -> str:
        return "".join(f"- {m.role}: {m.content}\n" for m in transcript)

    @staticmethod
    def build_prompt(formatted_transcript: str) -> str:
        category_keys = ", ".join(f'"{name}": <number 0-100>' for name in FEEDBACK_CATEGORIES)
        return RUBRIC_PROMPT.format(
            transcript=formatted_transcript,
            category_keys=category_keys,
        )

    def score_transcript(self, transcript: Sequence[TranscriptMessage]) -> FeedbackPayload:
        """
        LLM 채점. 스키마가 맞지 않으면 재시도 없이 실패

        Raises:
            SchemaValidationError: 응답이 피드백 스키마와 다름
            OpenAIError: 네트워크/제공자 오류
        """
        completion = self.client.chat.completions.create(
            model=self.model,
            response_format={"type": "json_object"},
            temperature=0.2,
            messages=[
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": self.build_prompt(self.format_transcript(transcript))},
            ],
        )

        content = completion.choices[0].message.content or ""
        try:
            return FeedbackPayload.model_validate_json(content)
        except ValidationError as e:
            raise SchemaValidationError(str(e)) from e

    def create_feedback(
        self,
        db: Session,
        interview_id: str,
        user_id: str,
        transcript: List[TranscriptMessage],
    ) -> FeedbackCreateResponse:
        """
        Returns:
            성공: {success: True, feedbackId}
            실패: {success: False} (실패 원인은 구분하지 않음)
        """
        if not transcript:
            logger.warning(
                "[FEEDBACK] empty_transcript interview_id=%s user_id=%s",
                interview_id,
                user_id,
            )
            return FeedbackCreateResponse(success=False)

        logger.info(
            "[FEEDBACK] START interview_id=%s user_id=%s messages=%d",
            interview_id,
            user_id,
            len(transcript),
        )

        try:
            payload = self.score_transcript(transcript)
            feedback = InterviewService.create_feedback(
                db,
                interview_id=interview_id,
                user_id=user_id,
                total_score=payload.total_score,
                category_scores=payload.category_scores,
                strengths=payload.strengths,
                areas_for_improvement=payload.areas_for_improvement,
                final_assessment=payload.final_assessment,
            )
        except (PrepwiseError, OpenAIError):
            logger.exception(
                "[FEEDBACK] Error saving feedback interview_id=%s user_id=%s",
                interview_id,
                user_id,
            )
            return FeedbackCreateResponse(success=False)
        except Exception:
            logger.exception(
                "[FEEDBACK] Unexpected error interview_id=%s user_id=%s",
                interview_id,
                user_id,
            )
            return FeedbackCreateResponse(success=False)

        logger.info(
            "[FEEDBACK] DONE feedback_id=%s total_score=%s",
            feedback.id,
            feedback.total_score,
        )
        return FeedbackCreateResponse(success=True, feedback_id=feedback.id)
