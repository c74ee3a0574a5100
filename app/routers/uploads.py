from fastapi import APIRouter, BackgroundTasks, Depends, File, UploadFile, status
from sqlalchemy.orm import Session

from app.core.deps import get_knowledge_base, get_llm_service, get_storage_service
from app.core.security import get_api_key
from app.db.database import get_db
from app.models.topics import TopicListResponse, TopicOut
from app.models.uploads import DeleteResponse, UploadInfo, UploadListResponse
from app.services.knowledge_base import KnowledgeBase
from app.services.llm import LLMService
from app.services.storage import StorageService
from app.services.uploads import UploadService, process_upload_task

router = APIRouter(tags=["uploads"])


def get_upload_service(
    db: Session = Depends(get_db),
    storage: StorageService = Depends(get_storage_service),
    llm: LLMService = Depends(get_llm_service),
    kb: KnowledgeBase = Depends(get_knowledge_base),
) -> UploadService:
    return UploadService(db, storage, llm, kb)


@router.post("/upload", response_model=UploadInfo, status_code=status.HTTP_201_CREATED)
def upload_pdf(
    background: BackgroundTasks,
    file: UploadFile = File(...),
    service: UploadService = Depends(get_upload_service),
    _: str = Depends(get_api_key),  # protège l'upload par API key
):
    upload = service.create(file)
    # extraction + sujets + synchro KB après la réponse (statut à suivre via GET /uploads/{id})
    background.add_task(process_upload_task, upload.id)
    return UploadInfo.model_validate(upload)


@router.get("/uploads", response_model=UploadListResponse)
def list_uploads(service: UploadService = Depends(get_upload_service)):
    return UploadListResponse(uploads=[UploadInfo.model_validate(u) for u in service.list()])


@router.get("/uploads/{upload_id}", response_model=UploadInfo)
def get_upload(upload_id: str, service: UploadService = Depends(get_upload_service)):
    return UploadInfo.model_validate(service.get(upload_id))


@router.get("/uploads/{upload_id}/topics", response_model=TopicListResponse)
def upload_topics(upload_id: str, service: UploadService = Depends(get_upload_service)):
    return TopicListResponse(topics=[TopicOut.model_validate(t) for t in service.topics(upload_id)])


@router.post("/uploads/{upload_id}/reprocess", response_model=UploadInfo, status_code=status.HTTP_202_ACCEPTED)
def reprocess_upload(
    upload_id: str,
    background: BackgroundTasks,
    service: UploadService = Depends(get_upload_service),
    _: str = Depends(get_api_key),
):
    upload = service.request_reprocess(upload_id)
    background.add_task(process_upload_task, upload.id)
    return UploadInfo.model_validate(upload)


@router.delete("/uploads/{upload_id}", response_model=DeleteResponse)
def delete_upload(
    upload_id: str,
    service: UploadService = Depends(get_upload_service),
    _: str = Depends(get_api_key),
):
    service.delete(upload_id)
    return DeleteResponse(ok=True, id=upload_id)
