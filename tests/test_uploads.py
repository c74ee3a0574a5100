import io

import pytest
from botocore.exceptions import ClientError
from fastapi import UploadFile
from sqlalchemy import func, select

from app.core.errors import InvalidTransitionError
from app.db.models import Topic, Upload, UploadChunk
from app.models.uploads import UploadStatus
from app.services.knowledge_base import KnowledgeBase
from app.services.llm import LLMService
from app.services.storage import S3StorageService, StorageService
from app.services.uploads import UNEXPECTED_ERROR, UploadService, transition

API_KEY_HEADER = {"x-api-key": "change_me"}


def test_list_initially_empty(test_client):
    r = test_client.get("/uploads")
    assert r.status_code == 200
    assert r.json() == {"uploads": []}


def test_upload_is_processed_in_background(test_client, syllabus_pdf):
    files = {"file": ("physics.pdf", io.BytesIO(syllabus_pdf), "application/pdf")}
    r = test_client.post("/upload", files=files, headers=API_KEY_HEADER)
    assert r.status_code == 201, r.text
    up = r.json()
    assert up["filename"] == "physics.pdf"
    assert up["status"] == "pending"
    assert up["page_count"] == 3

    # la tâche de fond a tourné avant le retour du TestClient
    r = test_client.get(f"/uploads/{up['id']}")
    assert r.status_code == 200
    data = r.json()
    assert data["status"] == "completed", data
    assert data["error_message"] == ""
    assert data["kb_synced"] is False

    r = test_client.get("/uploads")
    assert [u["id"] for u in r.json()["uploads"]] == [up["id"]]


def test_extracted_topics_are_weighted(test_client, uploaded):
    r = test_client.get(f"/uploads/{uploaded['id']}/topics")
    assert r.status_code == 200, r.text
    topics = r.json()["topics"]

    assert [t["name"] for t in topics] == ["Thermodynamics", "Optics"]
    thermo = topics[0]
    assert thermo["marks"] == 15
    assert thermo["frequency"] == 2
    assert thermo["priority"] == 100.0
    assert topics[1]["priority"] < thermo["priority"]


def test_pdf_without_text_fails(test_client, pdf_factory):
    files = {"file": ("scan.pdf", pdf_factory([[]]), "application/pdf")}
    r = test_client.post("/upload", files=files, headers=API_KEY_HEADER)
    assert r.status_code == 201, r.text

    data = test_client.get(f"/uploads/{r.json()['id']}").json()
    assert data["status"] == "failed"
    assert "No extractable text" in data["error_message"]


def test_upload_requires_api_key(test_client, syllabus_pdf):
    files = {"file": ("physics.pdf", syllabus_pdf, "application/pdf")}
    r = test_client.post("/upload", files=files)
    assert r.status_code == 401


def test_upload_rejects_non_pdf(test_client):
    files = {"file": ("notes.txt", b"hello", "text/plain")}
    r = test_client.post("/upload", files=files, headers=API_KEY_HEADER)
    assert r.status_code == 415


def test_upload_rejects_large_files(test_client):
    big = b"%PDF-1.4\n" + b"0" * (2 * 1024 * 1024 + 1)
    files = {"file": ("big.pdf", big, "application/pdf")}
    r = test_client.post("/upload", files=files, headers=API_KEY_HEADER)
    assert r.status_code == 413


def test_reprocess_completed_upload(test_client, uploaded):
    r = test_client.post(f"/uploads/{uploaded['id']}/reprocess", headers=API_KEY_HEADER)
    assert r.status_code == 202, r.text
    assert r.json()["status"] == "processing"

    data = test_client.get(f"/uploads/{uploaded['id']}").json()
    assert data["status"] == "completed"
    topics = test_client.get(f"/uploads/{uploaded['id']}/topics").json()["topics"]
    assert len(topics) == 2


def test_delete_upload(test_client, uploaded):
    r = test_client.delete(f"/uploads/{uploaded['id']}", headers=API_KEY_HEADER)
    assert r.status_code == 200
    assert r.json() == {"ok": True, "id": uploaded["id"]}

    assert test_client.get(f"/uploads/{uploaded['id']}").status_code == 404
    assert test_client.delete(f"/uploads/{uploaded['id']}", headers=API_KEY_HEADER).status_code == 404


def test_unknown_upload(test_client):
    assert test_client.get("/uploads/nope").status_code == 404
    assert test_client.get("/uploads/nope/topics").status_code == 404
    assert test_client.post("/uploads/nope/reprocess", headers=API_KEY_HEADER).status_code == 404


@pytest.mark.parametrize("current,target", [
    (UploadStatus.pending, UploadStatus.failed),
    (UploadStatus.pending, UploadStatus.completed),
    (UploadStatus.completed, UploadStatus.failed),
    (UploadStatus.processing, UploadStatus.pending),
    (UploadStatus.failed, UploadStatus.completed),
])
def test_invalid_transitions(current, target):
    upload = Upload(id="u1", filename="a.pdf", storage_key="a.pdf", size_bytes=1, status=current.value)
    with pytest.raises(InvalidTransitionError):
        transition(upload, target)
    assert upload.status == current.value


def test_valid_transitions():
    upload = Upload(id="u1", filename="a.pdf", storage_key="a.pdf", size_bytes=1, status="pending")
    for target in (UploadStatus.processing, UploadStatus.failed, UploadStatus.processing, UploadStatus.completed):
        transition(upload, target)
    assert upload.status == "completed"


class FakeConverseClient:
    def __init__(self, text):
        self.text = text

    def converse(self, **kwargs):
        return {"output": {"message": {"content": [{"text": self.text}]}}}


class FakeAgent:
    def __init__(self, error=None):
        self.error = error
        self.calls = []

    def start_ingestion_job(self, **kwargs):
        self.calls.append(kwargs)
        if self.error:
            raise self.error
        return {"ingestionJob": {"ingestionJobId": "job-1"}}


class BrokenStorage(StorageService):
    def get(self, key):
        raise RuntimeError("disk on fire")


def _store(service, pdf):
    return service.create(UploadFile(file=io.BytesIO(pdf), filename="physics.pdf"))


def _count(db, model, upload_id):
    return db.execute(select(func.count()).select_from(model).where(model.upload_id == upload_id)).scalar_one()


def test_model_topics_of_wrong_shape_fall_back_to_headings(db_session, syllabus_pdf, tmp_path):
    llm = LLMService("bedrock", client=FakeConverseClient('{"topics": 5}'), fallback_local=False)
    service = UploadService(db_session, StorageService(base_path=str(tmp_path / "files")), llm, KnowledgeBase())

    upload = service.process(_store(service, syllabus_pdf).id)

    assert upload.status == "completed"
    assert {t.name for t in service.topics(upload.id)} == {"Thermodynamics", "Optics"}


def test_unexpected_error_marks_upload_failed(db_session, syllabus_pdf, tmp_path):
    storage = BrokenStorage(base_path=str(tmp_path / "files"))
    service = UploadService(db_session, storage, LLMService("local"), KnowledgeBase())

    upload = service.process(_store(service, syllabus_pdf).id)

    assert upload.status == "failed"
    assert upload.error_message == UNEXPECTED_ERROR
    # un upload en échec peut toujours être relancé
    assert service.request_reprocess(upload.id).status == "processing"


def test_s3_upload_starts_knowledge_base_sync(db_session, syllabus_pdf, fake_s3):
    agent = FakeAgent()
    kb = KnowledgeBase(kb_id="KB123", data_source_id="DS1", runtime_client=object(), agent_client=agent)
    service = UploadService(db_session, S3StorageService(bucket="exam-sarthi", client=fake_s3), LLMService("local"), kb)

    upload = service.process(_store(service, syllabus_pdf).id)

    assert upload.status == "completed"
    assert upload.kb_synced is True
    assert agent.calls == [{"knowledgeBaseId": "KB123", "dataSourceId": "DS1"}]


def test_failed_knowledge_base_sync_keeps_upload_completed(db_session, syllabus_pdf, fake_s3):
    error = ClientError({"Error": {"Code": "ConflictException", "Message": "busy"}}, "StartIngestionJob")
    kb = KnowledgeBase(kb_id="KB123", data_source_id="DS1", runtime_client=object(), agent_client=FakeAgent(error))
    service = UploadService(db_session, S3StorageService(bucket="exam-sarthi", client=fake_s3), LLMService("local"), kb)

    upload = service.process(_store(service, syllabus_pdf).id)

    assert upload.status == "completed"
    assert upload.kb_synced is False


def test_local_storage_never_syncs_knowledge_base(db_session, syllabus_pdf, tmp_path):
    agent = FakeAgent()
    kb = KnowledgeBase(kb_id="KB123", data_source_id="DS1", runtime_client=object(), agent_client=agent)
    service = UploadService(db_session, StorageService(base_path=str(tmp_path / "files")), LLMService("local"), kb)

    upload = service.process(_store(service, syllabus_pdf).id)

    assert upload.status == "completed"
    assert upload.kb_synced is False
    assert agent.calls == []


def test_delete_upload_removes_its_rows_and_detaches_references(test_client, uploaded, db_session):
    upload_id = uploaded["id"]
    card = test_client.post(
        "/flashcards",
        json={"topic": "Optics", "question": "q", "answer": "a", "upload_id": upload_id},
    ).json()
    schedule = test_client.post("/generate-schedule", json={"upload_id": upload_id}).json()
    assert _count(db_session, UploadChunk, upload_id) == 3
    assert _count(db_session, Topic, upload_id) == 2

    r = test_client.delete(f"/uploads/{upload_id}", headers=API_KEY_HEADER)
    assert r.status_code == 200

    assert _count(db_session, UploadChunk, upload_id) == 0
    assert _count(db_session, Topic, upload_id) == 0
    assert test_client.get(f"/schedules/{schedule['id']}").json()["upload_id"] is None
    [kept] = test_client.get("/flashcards").json()["items"]
    assert kept["id"] == card["id"]
    assert kept["upload_id"] is None
