"""
면접/피드백 조회 및 저장 로직
- 내 면접 목록 / 다른 사용자의 공개(finalized) 면접 목록
- 면접 단건 조회
- 피드백 저장 및 조회
"""
import logging
from typing import Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.models.interviews import Interview
from app.models.feedback import Feedback
from app.services.errors import PersistenceError

logger = logging.getLogger(__name__)

DEFAULT_LATEST_LIMIT = 20


class InterviewService:
    """면접/피드백 저장소"""

    @staticmethod
    def get_interviews_by_user_id(db: Session, user_id: str) -> List[Interview]:
        """사용자 본인의 면접 목록 (최신순)"""
        try:
            return (
                db.query(Interview)
                .filter(Interview.user_id == user_id)
                .order_by(Interview.created_at.desc())
                .all()
            )
        except SQLAlchemyError as e:
            logger.exception("[INTERVIEW] list_by_user failed user_id=%s", user_id)
            raise PersistenceError(str(e)) from e

    @staticmethod
    def get_latest_interviews(
        db: Session,
        user_id: str,
        limit: int = DEFAULT_LATEST_LIMIT,
    ) -> List[Interview]:
        """
        다른 사용자가 만든 finalized 면접 목록 (최신순, limit 개)

        finalized / 본인 제외 조건은 서로 독립적인 필터이며
        조회 이후 finalized 된 면접은 다음 조회부터 보인다.
        """
        try:
            return (
                db.query(Interview)
                .filter(Interview.finalized.is_(True))
                .filter(Interview.user_id != user_id)
                .order_by(Interview.created_at.desc())
                .limit(limit)
                .all()
            )
        except SQLAlchemyError as e:
            logger.exception("[INTERVIEW] list_latest failed user_id=%s", user_id)
            raise PersistenceError(str(e)) from e

    @staticmethod
    def get_interview_by_id(db: Session, interview_id: str) -> Optional[Interview]:
        try:
            return db.get(Interview, interview_id)
        except SQLAlchemyError as e:
            logger.exception("[INTERVIEW] get failed interview_id=%s", interview_id)
            raise PersistenceError(str(e)) from e

    @staticmethod
    def create_feedback(
        db: Session,
        interview_id: str,
        user_id: str,
        total_score: float,
        category_scores: Dict[str, float],
        strengths: List[str],
        areas_for_improvement: List[str],
        final_assessment: str,
    ) -> Feedback:
        """
        피드백 1건 저장. 중복 여부는 검사하지 않는다.

        Raises:
            PersistenceError: 저장 실패
        """
        feedback = Feedback(
            interview_id=interview_id,
            user_id=user_id,
            total_score=total_score,
            category_scores=category_scores,
            strengths=strengths,
            areas_for_improvement=areas_for_improvement,
            final_assessment=final_assessment,
        )
        try:
            db.add(feedback)
            db.commit()
            db.refresh(feedback)
        except SQLAlchemyError as e:
            db.rollback()
            logger.exception(
                "[FEEDBACK] save failed interview_id=%s user_id=%s",
                interview_id,
                user_id,
            )
            raise PersistenceError(str(e)) from e

        return feedback

    @staticmethod
    def get_feedback_by_interview_id(
        db: Session,
        interview_id: str,
        user_id: str,
    ) -> Optional[Feedback]:
        """(interview_id, user_id) 에 해당하는 첫 번째 피드백"""
        try:
            return (
                db.query(Feedback)
                .filter(
                    Feedback.interview_id == interview_id,
                    Feedback.user_id == user_id,
                )
                .order_by(Feedback.created_at.asc())
                .first()
            )
        except SQLAlchemyError as e:
            logger.exception(
                "[FEEDBACK] get failed interview_id=%s user_id=%s",
                interview_id,
                user_id,
            )
            raise PersistenceError(str(e)) from e
