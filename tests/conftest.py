import io
import os
import tempfile

import pytest
from botocore.exceptions import ClientError
from fastapi.testclient import TestClient

# avant tout import de app.main (qui crée l'app au chargement du module)
_BOOT_DIR = tempfile.mkdtemp(prefix="exam_sarthi_")
os.environ.setdefault("DATABASE_URL", f"sqlite:///{_BOOT_DIR}/boot.db")
os.environ.setdefault("STORAGE_PATH", os.path.join(_BOOT_DIR, "storage"))
os.environ.setdefault("LLM_PROVIDER", "local")

from app.core.config import get_settings  # noqa: E402
from app.db import database  # noqa: E402
from app.main import create_app  # noqa: E402

API_KEY_HEADER = {"x-api-key": "change_me"}


def make_pdf(pages):
    """
    Construit un PDF texte minimal mais valide (police Helvetica, une ligne par entrée).
    pages : liste de pages, chaque page = liste de lignes.
    """
    page_ids = [4 + 2 * i for i in range(len(pages))]
    objs = {
        1: "<< /Type /Catalog /Pages 2 0 R >>",
        2: f"<< /Type /Pages /Kids [{' '.join(f'{p} 0 R' for p in page_ids)}] /Count {len(pages)} >>",
        3: "<< /Type /Font /Subtype /Type1 /BaseFont /Helvetica >>",
    }
    for pid, lines in zip(page_ids, pages):
        ops = ["BT", "/F1 12 Tf", "14 TL", "72 720 Td"]
        for line in lines:
            escaped = line.replace("\\", "\\\\").replace("(", "\\(").replace(")", "\\)")
            ops.append(f"({escaped}) Tj T*")
        ops.append("ET")
        stream = "\n".join(ops)
        objs[pid] = (
            "<< /Type /Page /Parent 2 0 R /MediaBox [0 0 612 792] "
            f"/Resources << /Font << /F1 3 0 R >> >> /Contents {pid + 1} 0 R >>"
        )
        objs[pid + 1] = f"<< /Length {len(stream.encode('latin-1'))} >>\nstream\n{stream}\nendstream"

    out = b"%PDF-1.4\n"
    offsets = {}
    for oid in sorted(objs):
        offsets[oid] = len(out)
        out += f"{oid} 0 obj\n{objs[oid]}\nendobj\n".encode("latin-1")

    xref_pos = len(out)
    size = max(objs) + 1
    out += f"xref\n0 {size}\n".encode()
    out += b"0000000000 65535 f \n"
    for oid in range(1, size):
        out += f"{offsets[oid]:010d} 00000 n \n".encode()
    out += f"trailer\n<< /Size {size} /Root 1 0 R >>\nstartxref\n{xref_pos}\n%%EOF\n".encode()
    return out


SYLLABUS_PAGES = [
    ["Unit 1: Thermodynamics (15 marks)"],
    ["Unit 2: Optics (10 marks)"],
    ["Thermodynamics questions appear every year. Thermodynamics is the study of heat and work."],
]


@pytest.fixture
def pdf_factory():
    return make_pdf


@pytest.fixture
def syllabus_pdf():
    return make_pdf(SYLLABUS_PAGES)


@pytest.fixture
def test_client(tmp_path, monkeypatch):
    """
    Crée un TestClient avec un STORAGE_PATH et une base SQLite temporaires (isolés),
    sans modèle distant (LLM_PROVIDER=local).
    """
    monkeypatch.setenv("APP_ENV", "test")
    monkeypatch.setenv("APP_NAME", "Exam-Sarthi API (tests)")
    monkeypatch.setenv("STORAGE_PATH", str(tmp_path / "storage"))
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path / 'test.db'}")
    monkeypatch.setenv("MAX_UPLOAD_MB", "2")  # limite faible pour tests
    monkeypatch.setenv("CORS_ORIGINS", "http://localhost")
    monkeypatch.setenv("API_KEY", "change_me")
    monkeypatch.setenv("STORAGE_BACKEND", "local")
    monkeypatch.setenv("LLM_PROVIDER", "local")
    monkeypatch.setenv("BEDROCK_KB_ID", "")

    # IMPORTANT: vider le cache des settings pour prendre en compte les env
    get_settings.cache_clear()

    app = create_app()
    with TestClient(app) as client:
        yield client

    get_settings.cache_clear()


@pytest.fixture
def uploaded(test_client, syllabus_pdf):
    """Upload traité (statut completed) du syllabus de test."""
    files = {"file": ("physics.pdf", syllabus_pdf, "application/pdf")}
    r = test_client.post("/upload", files=files, headers=API_KEY_HEADER)
    assert r.status_code == 201, r.text
    return r.json()


class FakeS3:
    """Client S3 en mémoire (put_object / get_object / delete_object)."""

    def __init__(self):
        self.objects = {}

    def put_object(self, Bucket, Key, Body, ContentType):
        self.objects[(Bucket, Key)] = Body

    def get_object(self, Bucket, Key):
        if (Bucket, Key) not in self.objects:
            raise ClientError({"Error": {"Code": "NoSuchKey", "Message": "missing"}}, "GetObject")
        return {"Body": io.BytesIO(self.objects[(Bucket, Key)])}

    def delete_object(self, Bucket, Key):
        self.objects.pop((Bucket, Key), None)


@pytest.fixture
def fake_s3():
    return FakeS3()


@pytest.fixture
def db_session(test_client):
    """Session sur la base temporaire du test_client (pour piloter les services directement)."""
    db = database.SessionLocal()
    try:
        yield db
    finally:
        db.close()
