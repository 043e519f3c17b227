from typing import List, Optional
from pydantic import PostgresDsn, computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    PROJECT_NAME: str = "Innovation Portal Review Service"
    VERSION: str = "0.1.0"
    API_STR: str = "/api"

    # CORS
    BACKEND_CORS_ORIGINS: List[str] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]

    # Database
    POSTGRES_SERVER: str = "localhost"
    POSTGRES_USER: str = "postgres"
    POSTGRES_PASSWORD: str = "postgres"
    POSTGRES_DB: str = "innovation_portal"
    POSTGRES_PORT: int = 5432
    # Full URL override, e.g. "sqlite+aiosqlite:///./portal.db"
    DATABASE_URL: Optional[str] = None

    # Auth
    SECRET_KEY: str = "change-me-in-production" # openssl rand -hex 32
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24 # 1 day

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = False

    # Review workflow
    REVIEW_WORKFLOW_MIN_STAGES: int = 3
    REVIEW_WORKFLOW_MAX_STAGES: int = 7
    REVIEW_STAGE_NAME_MAX_LENGTH: int = 80

    @computed_field
    @property
    def SQLALCHEMY_DATABASE_URI(self) -> str:
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return str(PostgresDsn.build(
            scheme="postgresql+asyncpg",
            username=self.POSTGRES_USER,
            password=self.POSTGRES_PASSWORD,
            host=self.POSTGRES_SERVER,
            port=self.POSTGRES_PORT,
            path=self.POSTGRES_DB,
        ))

    model_config = SettingsConfigDict(case_sensitive=True, env_file=".env")

settings = Settings()
