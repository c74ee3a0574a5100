from datetime import datetime
from enum import Enum
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field


class UploadStatus(str, Enum):
    pending = "pending"
    processing = "processing"
    completed = "completed"
    failed = "failed"


class UploadInfo(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str = Field(..., description="Identifiant unique (uuid)")
    filename: str = Field(..., description="Nom du fichier avec extension")
    size_bytes: int = Field(..., ge=0, description="Taille en octets")
    page_count: int = Field(..., ge=0, description="Nombre de pages détectées")
    status: UploadStatus
    error_message: str = ""
    kb_synced: bool = False
    created_at: Optional[datetime] = None


class UploadListResponse(BaseModel):
    uploads: List[UploadInfo]


class DeleteResponse(BaseModel):
    ok: bool = True
    id: Optional[str] = None
