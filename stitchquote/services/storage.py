# stitchquote/services/storage.py
import logging
from abc import ABC, abstractmethod
from pathlib import Path

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from stitchquote.config import Settings

logger = logging.getLogger(__name__)


class StorageError(RuntimeError):
    pass


def _check_key(key: str) -> str:
    """Basic path checks against traversal/abuse."""
    key = (key or "").strip()
    if not key:
        raise StorageError("empty_key")
    if key.startswith("/") or key.endswith("/"):
        raise StorageError("bad_slashes")
    if ".." in key.split("/"):
        raise StorageError("path_traversal")
    return key


# =========================
# Abstract Storage
# =========================
class Storage(ABC):
    """Blob storage for uploaded photos and rendered previews."""

    @abstractmethod
    def put(self, key: str, data: bytes, content_type: str) -> str:
        """Store bytes under `key` and return a durable public URL."""

    @abstractmethod
    def public_url(self, key: str) -> str:
        pass


# =========================
# Local Storage
# =========================
class LocalStorage(Storage):
    """Files on disk, served back by the /files route."""

    def __init__(self, base_path: str = "data", public_base_url: str = ""):
        self.base_path = Path(base_path)
        self.base_path.mkdir(parents=True, exist_ok=True)
        self.public_base_url = public_base_url.rstrip("/")

    def path_for(self, key: str) -> Path:
        return self.base_path / _check_key(key)

    def put(self, key: str, data: bytes, content_type: str) -> str:
        file_path = self.path_for(key)
        try:
            file_path.parent.mkdir(parents=True, exist_ok=True)
            with open(file_path, "wb") as f:
                f.write(data)
        except OSError as e:
            logger.error("local write failed for %s: %s", file_path, e)
            raise StorageError(f"local_write_failed: {e}") from e
        logger.info("stored %s (%s, %d bytes)", key, content_type, len(data))
        return self.public_url(key)

    def public_url(self, key: str) -> str:
        return f"{self.public_base_url}/files/{_check_key(key)}"


# =========================
# S3 Storage
# =========================
class S3Storage(Storage):
    def __init__(self, bucket: str, region: str = "us-east-1", client=None):
        self.bucket = bucket
        self.region = region
        self.s3_client = client or boto3.client("s3", region_name=region)

    def put(self, key: str, data: bytes, content_type: str) -> str:
        s3_key = _check_key(key)
        try:
            self.s3_client.put_object(
                Bucket=self.bucket,
                Key=s3_key,
                Body=data,
                ContentType=content_type or "application/octet-stream",
            )
        except (BotoCoreError, ClientError) as e:
            logger.error("S3 upload failed for %s: %s", s3_key, e)
            raise StorageError(f"s3_upload_failed: {e}") from e
        logger.info("uploaded to S3: %s", s3_key)
        return self.public_url(s3_key)

    def public_url(self, key: str) -> str:
        return f"https://{self.bucket}.s3.{self.region}.amazonaws.com/{_check_key(key)}"


# =========================
# Factory
# =========================
def get_storage(settings: Settings) -> Storage:
    backend = (settings.STORAGE_BACKEND or "local").lower()

    if backend == "s3":
        if not settings.S3_BUCKET:
            raise ValueError("S3_BUCKET is required for S3 storage")
        return S3Storage(bucket=settings.S3_BUCKET, region=settings.S3_REGION)

    if backend == "local":
        return LocalStorage(
            base_path=settings.LOCAL_STORAGE_PATH,
            public_base_url=settings.PUBLIC_BASE_URL,
        )

    raise ValueError(f"Unknown storage backend: {backend}")
