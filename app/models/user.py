# app/models/user.py
# users 테이블(SQLAlchemy) 스키마 정의
# id 는 인증 제공자(Supabase)가 발급한 subject 를 그대로 사용
from sqlalchemy import Column, String, DateTime, func
from app.db.base import Base

class User(Base):
    __tablename__ = "users"

    id = Column(String(64), primary_key=True)  # = auth.users.id
    name = Column(String(100), nullable=False)
    email = Column(String(255), unique=True, index=True, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
