from fastapi import Depends

from app.core.config import Settings, get_settings
from app.services.knowledge_base import KnowledgeBase
from app.services.llm import LLMService
from app.services.storage import StorageService, S3StorageService


def get_settings_dep() -> Settings:
    return get_settings()


def build_storage(settings: Settings) -> StorageService:
    if settings.STORAGE_BACKEND.lower() == "s3":
        return S3StorageService(
            bucket=settings.S3_BUCKET,
            prefix=settings.S3_PREFIX,
            region=settings.AWS_REGION,
            max_upload_mb=settings.MAX_UPLOAD_MB,
        )
    return StorageService(base_path=settings.STORAGE_PATH, max_upload_mb=settings.MAX_UPLOAD_MB)


def get_storage_service(settings: Settings = Depends(get_settings_dep)) -> StorageService:
    """
    Fournit le service de stockage en dépendance (DI).
    """
    return build_storage(settings)


def get_llm_service(settings: Settings = Depends(get_settings_dep)) -> LLMService:
    return LLMService.from_settings(settings)


def get_knowledge_base(settings: Settings = Depends(get_settings_dep)) -> KnowledgeBase:
    return KnowledgeBase.from_settings(settings)
