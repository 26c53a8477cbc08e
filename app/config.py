# app/config.py


from dotenv import load_dotenv
from pathlib import Path
from pydantic_settings import BaseSettings, SettingsConfigDict

load_dotenv()  # .env 파일 먼저 읽기

BASE_DIR = Path(__file__).resolve().parent.parent  # 프로젝트 루트

class Settings(BaseSettings):
    # 환경 구분 (production 일 때만 secure 쿠키)
    app_env: str = "local"
    log_level: str = "INFO"

    # DB 필수 설정
    database_url: str                        # DATABASE_URL

    # Supabase Auth
    supabase_url: str                        # SUPABASE_URL
    supabase_anon_key: str                   # SUPABASE_ANON_KEY
    supabase_jwt_secret: str                 # SUPABASE_JWT_SECRET
    supabase_jwt_audience: str = "authenticated"  # SUPABASE_JWT_AUDIENCE
    supabase_issuer: str | None = None       # SUPABASE_ISSUER

    # 세션 쿠키 서명용 시크릿
    session_secret: str                      # SESSION_SECRET

    # OpenAI (피드백 채점)
    openai_api_key: str | None = None
    openai_model: str = "gpt-4o-mini"

    # Vapi (음성 면접)
    vapi_api_key: str | None = None
    vapi_base_url: str = "https://api.vapi.ai"
    vapi_workflow_id: str | None = None      # generate 모드에서 사용하는 워크플로 ID
    vapi_webhook_secret: str | None = None   # x-vapi-secret 헤더 검증용

    # 쿠키 인증이라 origin 을 명시해야 함
    cors_origins: list[str] = ["http://localhost:3000"]

    model_config = SettingsConfigDict(
        env_file=str(BASE_DIR / ".env"),  # 루트 .env 절대경로
        env_file_encoding="utf-8",
        extra="ignore",                   # 필요 없는 env 무시
    )

    @property
    def is_production(self) -> bool:
        return self.app_env == "production"

settings = Settings()
