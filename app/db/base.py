"""
공용 DB 베이스/세션 팩토리.
SessionLocal, engine, Base 정의는 app.db.session 한 곳에서 관리한다.
"""
from app.db.session import engine, SessionLocal, Base


def init_db() -> None:
    # 모델 모듈을 import 해야 Base.metadata 에 테이블이 등록됨
    from app.models import user, interviews, feedback  # noqa: F401

    Base.metadata.create_all(bind=engine)


__all__ = ["engine", "SessionLocal", "Base", "init_db"]
