# app/models/interviews.py
import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    Column,
    String,
    Boolean,
    DateTime,
    JSON,
    Index,
)
from app.db.base import Base


def _new_id() -> str:
    return uuid.uuid4().hex


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Interview(Base):
    # 면접 레코드는 외부 생성 플로우(Vapi 워크플로)가 만든다. 여기서는 읽기만 함.
    __tablename__ = "interviews"

    id = Column(String(64), primary_key=True, default=_new_id)
    user_id = Column(String(64), nullable=False, index=True)

    role = Column(String(100), nullable=False)
    level = Column(String(50), nullable=True)
    type = Column(String(50), nullable=True)          # Technical | Behavioral | Mixed
    techstack = Column(JSON, nullable=False, default=list)
    questions = Column(JSON, nullable=False, default=list)  # 질문 문자열 리스트
    cover_image = Column(String(255), nullable=True)

    finalized = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

    __table_args__ = (
        Index("ix_interviews_finalized_created_at", "finalized", "created_at"),
    )
