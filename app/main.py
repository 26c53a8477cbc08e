# app/main.py

# ------------------------
# 환경 변수 로드
# ------------------------
from dotenv import load_dotenv
load_dotenv()

import logging
from contextlib import asynccontextmanager

# ------------------------
# FastAPI, CORS 미들웨어 import
# ------------------------
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.config import settings
from app.db.base import init_db
from app.db.session import DATABASE_URL

# ------------------------
# 라우터 import
# ------------------------
from app.routers import auth as auth_router
from app.routers import interviews as interviews_router
from app.routers import feedback as feedback_router
from app.routers import calls as calls_router

# ------------------------
# 0) 로깅 설정 (모듈별 logger = logging.getLogger(__name__))
# ------------------------
logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    if settings.is_production and not settings.vapi_webhook_secret:
        logger.warning("[STARTUP] VAPI_WEBHOOK_SECRET is not set, /api/vapi/webhook accepts unauthenticated requests")
    # 로컬 sqlite 에서는 테이블 자동 생성 (운영 Postgres 는 마이그레이션으로 관리)
    if DATABASE_URL.startswith("sqlite"):
        init_db()
    yield


# ------------------------
# 1) FastAPI 앱 생성
# ------------------------
app = FastAPI(title="PrepWise Interview API", lifespan=lifespan)

# ------------------------
# 2) CORS 미들웨어 추가
#    - 세션 쿠키를 쓰므로 credentials 허용 + origin 명시
# ------------------------
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ------------------------
# 3) 라우터 등록
# ------------------------
app.include_router(auth_router.router)
app.include_router(interviews_router.router)
app.include_router(feedback_router.router)
app.include_router(calls_router.router)
app.include_router(calls_router.webhook_router)

# ------------------------
# 4) Root 엔드포인트 (health check)
# ------------------------
@app.get("/")
def root():
    return {"ok": True}
