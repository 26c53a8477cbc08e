import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.deps import get_db, get_current_user, get_feedback_service
from app.models.user import User
from app.schemas.feedback import FeedbackCreateRequest, FeedbackCreateResponse
from app.services.feedback_service import FeedbackService

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/feedback",
    tags=["feedback"],
)


@router.post("", response_model=FeedbackCreateResponse, response_model_exclude_none=True)
def create_feedback(
    body: FeedbackCreateRequest,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    feedback_service: FeedbackService = Depends(get_feedback_service),
):
    """
    transcript 채점 후 피드백 저장
    - 실패 원인과 관계없이 {success: false}
    """
    logger.info(
        "[FEEDBACK][POST] interview_id=%s user_id=%s",
        body.interview_id,
        user.id,
    )
    return feedback_service.create_feedback(
        db,
        interview_id=body.interview_id,
        user_id=user.id,
        transcript=body.transcript,
    )
