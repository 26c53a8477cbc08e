from sqlalchemy import Column, String, Float, Text, DateTime, JSON, Index
from app.db.base import Base
from app.models.interviews import _new_id, _utcnow

class Feedback(Base):
    __tablename__ = "feedback"

    id = Column(String(64), primary_key=True, default=_new_id)

    # (interview_id, user_id) 유니크 제약 없음. 조회 시 첫 번째 행을 사용
    interview_id = Column(String(64), nullable=False)
    user_id = Column(String(64), nullable=False)

    total_score = Column(Float, nullable=False)
    category_scores = Column(JSON, nullable=False)        # {"Communication Skills": 80, ...}

    strengths = Column(JSON, nullable=False, default=list)
    areas_for_improvement = Column(JSON, nullable=False, default=list)
    final_assessment = Column(Text, nullable=False)

    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

    __table_args__ = (
        Index("ix_feedback_interview_id_user_id", "interview_id", "user_id"),
    )
