import logging
from typing import List

from fastapi import HTTPException, UploadFile
from sqlalchemy import delete, select, update
from sqlalchemy.orm import Session
from starlette.status import HTTP_404_NOT_FOUND

from app.core.config import get_settings
from app.core.deps import build_storage
from app.core.errors import BedrockServiceError, ExamSarthiError, InvalidTransitionError, PDFProcessingError
from app.db import database
from app.db.models import Flashcard, Schedule, Topic, Upload, UploadChunk
from app.models.uploads import UploadStatus
from app.services.knowledge_base import KnowledgeBase
from app.services.llm import LLMService
from app.services.storage import S3StorageService, StorageService
from app.services.topics import extract_topics
from app.services.weightage import normalize
from app.utils.pdf_extract import count_pages, extract_pages_text

logger = logging.getLogger(__name__)

UNEXPECTED_ERROR = "Unexpected error while processing the PDF"

ALLOWED_TRANSITIONS = {
    UploadStatus.pending: {UploadStatus.processing},
    UploadStatus.processing: {UploadStatus.completed, UploadStatus.failed},
    UploadStatus.completed: {UploadStatus.processing},
    UploadStatus.failed: {UploadStatus.processing},
}


def transition(upload: Upload, new_status: UploadStatus) -> None:
    current = UploadStatus(upload.status)
    if new_status not in ALLOWED_TRANSITIONS[current]:
        raise InvalidTransitionError(
            f"Upload {upload.id} cannot go from {current.value} to {new_status.value}"
        )
    logger.info("Upload %s: %s -> %s", upload.id, current.value, new_status.value)
    upload.status = new_status.value


class UploadService:
    """
    Cycle de vie d'un PDF : stockage, extraction du texte page par page,
    extraction des sujets pondérés, synchro de la Knowledge Base.
    """

    def __init__(self, db: Session, storage: StorageService, llm: LLMService, kb: KnowledgeBase):
        self.db = db
        self.storage = storage
        self.llm = llm
        self.kb = kb

    # ---------- lecture ----------

    def get(self, upload_id: str) -> Upload:
        upload = self.db.get(Upload, upload_id)
        if upload is None:
            raise HTTPException(status_code=HTTP_404_NOT_FOUND, detail="Upload not found")
        return upload

    def list(self) -> List[Upload]:
        return list(self.db.execute(select(Upload).order_by(Upload.created_at.desc())).scalars())

    def topics(self, upload_id: str) -> List[Topic]:
        self.get(upload_id)
        return list(
            self.db.execute(
                select(Topic).where(Topic.upload_id == upload_id).order_by(Topic.priority.desc(), Topic.name)
            ).scalars()
        )

    # ---------- écriture ----------

    def create(self, file: UploadFile) -> Upload:
        contents = self.storage.read_upload(file)
        key = self.storage.put(self.storage.new_key(), contents)

        upload = Upload(
            filename=file.filename,
            storage_key=key,
            size_bytes=len(contents),
            page_count=count_pages(contents),
            status=UploadStatus.pending.value,
        )
        self.db.add(upload)
        self.db.commit()
        self.db.refresh(upload)
        logger.info("Upload %s stored (%s, %d bytes)", upload.id, upload.filename, upload.size_bytes)
        return upload

    def request_reprocess(self, upload_id: str) -> Upload:
        upload = self.get(upload_id)
        transition(upload, UploadStatus.processing)
        upload.error_message = ""
        self.db.commit()
        return upload

    def delete(self, upload_id: str) -> None:
        upload = self.get(upload_id)
        self.storage.delete(upload.storage_key)
        self.db.execute(update(Schedule).where(Schedule.upload_id == upload_id).values(upload_id=None))
        self.db.execute(update(Flashcard).where(Flashcard.upload_id == upload_id).values(upload_id=None))
        self.db.delete(upload)
        self.db.commit()

    # ---------- traitement ----------

    def process(self, upload_id: str) -> Upload:
        upload = self.get(upload_id)
        if upload.status != UploadStatus.processing.value:
            transition(upload, UploadStatus.processing)
            self.db.commit()

        try:
            self._extract(upload)
            transition(upload, UploadStatus.completed)
            upload.error_message = ""
            self.db.commit()
        except ExamSarthiError as e:
            self.db.rollback()
            upload = self.get(upload_id)
            transition(upload, UploadStatus.failed)
            upload.error_message = e.detail
            self.db.commit()
            logger.warning("Upload %s failed: %s", upload_id, e.detail)
        except Exception:
            # aucun upload ne doit rester bloqué en processing
            logger.exception("Upload %s: unexpected error during processing", upload_id)
            self.db.rollback()
            upload = self.get(upload_id)
            transition(upload, UploadStatus.failed)
            upload.error_message = UNEXPECTED_ERROR
            self.db.commit()

        self.db.refresh(upload)
        return upload

    def _extract(self, upload: Upload) -> None:
        data = self.storage.get(upload.storage_key)
        pages = extract_pages_text(data)
        if not any(p.strip() for p in pages):
            raise PDFProcessingError("No extractable text found in PDF")

        self.db.execute(delete(UploadChunk).where(UploadChunk.upload_id == upload.id))
        self.db.execute(delete(Topic).where(Topic.upload_id == upload.id))
        upload.page_count = len(pages)
        for i, text in enumerate(pages, start=1):
            if text.strip():
                self.db.add(UploadChunk(upload_id=upload.id, page=i, text=text))

        weighted = normalize(extract_topics("\n".join(pages), self.llm))
        for t in weighted:
            self.db.add(
                Topic(
                    upload_id=upload.id,
                    name=t.name,
                    frequency=t.frequency,
                    marks=t.marks,
                    recency=t.recency,
                    priority=t.priority,
                )
            )
        logger.info("Upload %s: %d pages, %d topics", upload.id, len(pages), len(weighted))

        # la KB indexe le bucket S3, inutile avec le stockage local
        if isinstance(self.storage, S3StorageService) and self.kb.can_sync:
            try:
                self.kb.start_sync()
                upload.kb_synced = True
            except BedrockServiceError as e:
                logger.warning("Upload %s: knowledge base sync failed (%s)", upload.id, e.detail)


def process_upload_task(upload_id: str) -> None:
    """
    Tâche de fond (BackgroundTasks) : session et services propres, la session
    de la requête étant fermée à ce stade.
    """
    settings = get_settings()
    db = database.SessionLocal()
    try:
        service = UploadService(
            db,
            build_storage(settings),
            LLMService.from_settings(settings),
            KnowledgeBase.from_settings(settings),
        )
        service.process(upload_id)
    finally:
        db.close()
