# app/db/session.py
# SQLAlchemy 기본 세팅. DB URL은 .env의 DATABASE_URL을 사용.

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base
from sqlalchemy.pool import StaticPool

from app.config import settings  # Settings() 인스턴스

# 운영: Supabase Postgres (예: postgresql+psycopg2://...), 로컬/테스트: sqlite
DATABASE_URL = settings.database_url

if not DATABASE_URL:
    raise RuntimeError("DATABASE_URL 환경변수가 설정되어 있지 않습니다.")


def _engine_kwargs(url: str) -> dict:
    if url.startswith("sqlite"):
        # sqlite 메모리 DB는 커넥션 하나를 공유해야 테이블이 유지됨
        kwargs = {"connect_args": {"check_same_thread": False}}
        if url in ("sqlite://", "sqlite:///:memory:"):
            kwargs["poolclass"] = StaticPool
        return kwargs
    return {
        "pool_pre_ping": True,  # 끊어진 커넥션 자동 감지
        "pool_size": 30,        # Supabase Session mode 풀 크기에 맞춤
        "max_overflow": 0,      # 풀 크기 초과 연결 금지
        "pool_timeout": 30,     # 풀 고갈 시 대기 시간(초) 후 Timeout
    }


engine = create_engine(DATABASE_URL, **_engine_kwargs(DATABASE_URL))

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()
