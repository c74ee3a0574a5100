import logging
import shutil
import uuid
from pathlib import Path

import boto3
from botocore.exceptions import BotoCoreError, ClientError
from fastapi import UploadFile, HTTPException
from starlette.status import HTTP_400_BAD_REQUEST, HTTP_413_REQUEST_ENTITY_TOO_LARGE, HTTP_415_UNSUPPORTED_MEDIA_TYPE

from app.core.errors import StorageError

logger = logging.getLogger(__name__)


class StorageService:
    """
    Service de gestion des fichiers stockés localement.
    Même interface que S3StorageService : put / get / delete par clé.
    """

    def __init__(self, base_path: str = "./storage", max_upload_mb: int = 25):
        self.base_path = Path(base_path)
        self.max_upload_bytes = max_upload_mb * 1024 * 1024
        self.base_path.mkdir(parents=True, exist_ok=True)

    # ---------- validation (commune aux backends) ----------

    def read_upload(self, file: UploadFile) -> bytes:
        """
        Valide un PDF uploadé et renvoie son contenu.
        """
        if not (file.filename or "").lower().endswith(".pdf"):
            raise HTTPException(
                status_code=HTTP_415_UNSUPPORTED_MEDIA_TYPE,
                detail="Only PDF files are accepted",
            )

        contents = file.file.read()
        if not contents:
            raise HTTPException(status_code=HTTP_400_BAD_REQUEST, detail="Empty file")
        if len(contents) > self.max_upload_bytes:
            raise HTTPException(
                status_code=HTTP_413_REQUEST_ENTITY_TOO_LARGE,
                detail=f"File too large (max {self.max_upload_bytes // (1024*1024)} MB)",
            )
        return contents

    @staticmethod
    def new_key() -> str:
        return f"{uuid.uuid4()}.pdf"

    # ---------- backend ----------

    def put(self, key: str, data: bytes) -> str:
        dest = self.base_path / key
        try:
            dest.parent.mkdir(parents=True, exist_ok=True)
            with open(dest, "wb") as f:
                f.write(data)
        except OSError as e:
            raise StorageError(f"Could not write {key}: {e}") from e
        return key

    def get(self, key: str) -> bytes:
        path = self.base_path / key
        if not path.exists():
            raise StorageError(f"Stored file not found: {key}")
        return path.read_bytes()

    def delete(self, key: str) -> bool:
        path = self.base_path / key
        if not path.exists():
            return False
        path.unlink()
        return True

    def clear_all(self):
        """
        Supprime tous les fichiers du dossier (utile pour les tests).
        """
        shutil.rmtree(self.base_path)
        self.base_path.mkdir(parents=True, exist_ok=True)


class S3StorageService(StorageService):
    """
    Stockage des PDF dans un bucket S3 (source de données de la Knowledge Base Bedrock).
    """

    def __init__(self, bucket: str, prefix: str = "uploads/", region: str = "us-east-1",
                 max_upload_mb: int = 25, client=None):
        if not bucket:
            raise StorageError("S3_BUCKET is not configured")
        self.bucket = bucket
        self.prefix = prefix
        self.max_upload_bytes = max_upload_mb * 1024 * 1024
        self._s3 = client or boto3.client("s3", region_name=region)

    def _object_key(self, key: str) -> str:
        return f"{self.prefix}{key}"

    def put(self, key: str, data: bytes) -> str:
        try:
            self._s3.put_object(
                Bucket=self.bucket,
                Key=self._object_key(key),
                Body=data,
                ContentType="application/pdf",
            )
        except (BotoCoreError, ClientError) as e:
            raise StorageError(f"S3 upload failed: {e}") from e
        return key

    def get(self, key: str) -> bytes:
        try:
            obj = self._s3.get_object(Bucket=self.bucket, Key=self._object_key(key))
            return obj["Body"].read()
        except (BotoCoreError, ClientError) as e:
            raise StorageError(f"S3 download failed: {e}") from e

    def delete(self, key: str) -> bool:
        try:
            self._s3.delete_object(Bucket=self.bucket, Key=self._object_key(key))
        except (BotoCoreError, ClientError) as e:
            logger.warning("S3 delete failed for %s: %s", key, e)
            return False
        return True

    def clear_all(self):
        raise StorageError("clear_all is not supported on S3")
