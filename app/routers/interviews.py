# app/routers/interviews.py
import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from app.deps import get_db, get_current_user
from app.models.user import User
from app.schemas.feedback import FeedbackResponse
from app.schemas.interview import InterviewResponse
from app.services.errors import PersistenceError
from app.services.interview_service import DEFAULT_LATEST_LIMIT, InterviewService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/interviews", tags=["interviews"])


def _db_error(e: PersistenceError) -> HTTPException:
    return HTTPException(
        status_code=500,
        detail={"message": "database_error", "detail": str(e)},
    )


# ---- 내 면접 목록 ----

@router.get("/mine", response_model=List[InterviewResponse])
def list_my_interviews(
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    try:
        return InterviewService.get_interviews_by_user_id(db, user.id)
    except PersistenceError as e:
        raise _db_error(e)


# ---- 다른 사용자의 finalized 면접 ----

@router.get("/latest", response_model=List[InterviewResponse])
def list_latest_interviews(
    limit: int = Query(DEFAULT_LATEST_LIMIT, ge=1, le=100),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    try:
        return InterviewService.get_latest_interviews(db, user.id, limit=limit)
    except PersistenceError as e:
        raise _db_error(e)


# ---- 면접 단건 ----

@router.get("/{interview_id}", response_model=InterviewResponse)
def get_interview(
    interview_id: str,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    try:
        interview = InterviewService.get_interview_by_id(db, interview_id)
    except PersistenceError as e:
        raise _db_error(e)

    if interview is None:
        raise HTTPException(status_code=404, detail={"message": "interview_not_found"})
    return interview


# ---- 면접 피드백 (본인 것) ----

@router.get("/{interview_id}/feedback", response_model=FeedbackResponse)
def get_interview_feedback(
    interview_id: str,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    try:
        feedback = InterviewService.get_feedback_by_interview_id(db, interview_id, user.id)
    except PersistenceError as e:
        raise _db_error(e)

    if feedback is None:
        raise HTTPException(status_code=404, detail={"message": "feedback_not_found"})
    return feedback
