# app/services/user_service.py
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.models.user import User
from app.services.errors import PersistenceError


# --users table--

# 유저 조회 (ID로)
def get_user(db: Session, user_id: str) -> Optional[User]:
    try:
        return db.get(User, user_id)
    except SQLAlchemyError as e:
        raise PersistenceError(str(e)) from e

# 유저 조회 (이메일로)
def get_user_by_email(db: Session, email: str) -> Optional[User]:
    try:
        return db.query(User).filter(User.email == email).first()
    except SQLAlchemyError as e:
        raise PersistenceError(str(e)) from e

# 유저 프로필 저장
def create_user(db: Session, user_id: str, name: str, email: str) -> User:
    user = User(id=user_id, name=name, email=email)
    try:
        db.add(user)
        db.commit()
        db.refresh(user)
    except SQLAlchemyError as e:
        db.rollback()
        raise PersistenceError(str(e)) from e
    return user
