from functools import lru_cache
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Base
    APP_ENV: str = "dev"  # dev | staging | prod | test
    APP_NAME: str = "Exam-Sarthi API"
    APP_VERSION: str = "0.1.0"

    # CORS
    CORS_ORIGINS: str = "http://localhost:3000,http://localhost:5173"

    # Security
    API_KEY: str = "change_me"

    # Database
    DATABASE_URL: str = "sqlite:///./exam_sarthi.db"

    # Storage
    STORAGE_BACKEND: str = "local"  # local | s3
    STORAGE_PATH: str = "./storage"
    S3_BUCKET: str = ""
    S3_PREFIX: str = "uploads/"
    MAX_UPLOAD_MB: int = 25

    # AWS / LLM
    AWS_REGION: str = "us-east-1"
    LLM_PROVIDER: str = "bedrock"  # bedrock | openai | local
    LLM_FALLBACK_LOCAL: bool = True
    LLM_MAX_TOKENS: int = 1024
    BEDROCK_MODEL_ID: str = "anthropic.claude-3-haiku-20240307-v1:0"
    BEDROCK_KB_ID: str = ""
    BEDROCK_DATA_SOURCE_ID: str = ""
    OPENAI_API_KEY: str = ""
    OPENAI_MODEL: str = "gpt-4o-mini"

    # Crash-course defaults
    SCHEDULE_DAYS: int = 3
    SCHEDULE_MINUTES_PER_DAY: int = 360
    SCHEDULE_MIN_TOPIC_MINUTES: int = 30
    SCHEDULE_SLOT_MINUTES: int = 15
    SCHEDULE_MAX_TOPIC_SHARE: float = 0.4

    # Logging
    LOG_LEVEL: str = "INFO"

    class Config:
        env_file = ".env"
        case_sensitive = True

    @property
    def bedrock_model_arn(self) -> str:
        if self.BEDROCK_MODEL_ID.startswith("arn:"):
            return self.BEDROCK_MODEL_ID
        return f"arn:aws:bedrock:{self.AWS_REGION}::foundation-model/{self.BEDROCK_MODEL_ID}"


@lru_cache
def get_settings() -> Settings:
    return Settings()
