from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import boto3
from botocore.config import Config
from botocore.exceptions import ClientError

from appconfig.config import settings

logger = logging.getLogger(__name__)

IMMUTABLE_CACHE_CONTROL = "public, max-age=31536000, immutable"


class MediaStorageConfigurationError(RuntimeError):
    pass


class MediaObjectNotFoundError(LookupError):
    pass


def _build_key(prefix: str, *, sha256: str, ext: str) -> str:
    """
    Content-addressed keys: <prefix>/branding/<sha[:2]>/<sha>.<ext>
    """
    ext_clean = ext.lstrip(".") if ext else "bin"
    parts = [p for p in [prefix, "branding"] if p]
    parts.append(sha256[:2])
    return "/".join(parts + [f"{sha256}.{ext_clean}"])


class MediaStorage:
    """Thin wrapper around S3-compatible storage for branding uploads."""

    backend = "s3"

    def __init__(self) -> None:
        if not settings.MEDIA_STORAGE_BUCKET:
            raise MediaStorageConfigurationError("MEDIA_STORAGE_BUCKET is required")
        if not settings.MEDIA_STORAGE_ACCESS_KEY or not settings.MEDIA_STORAGE_SECRET_KEY:
            raise MediaStorageConfigurationError(
                "MEDIA_STORAGE_ACCESS_KEY and MEDIA_STORAGE_SECRET_KEY are required"
            )

        addressing_style = "path" if settings.MEDIA_STORAGE_FORCE_PATH_STYLE else "auto"
        self.bucket = settings.MEDIA_STORAGE_BUCKET
        self.prefix = (settings.MEDIA_STORAGE_PREFIX or "").strip("/")

        session = boto3.session.Session()
        self.client = session.client(
            "s3",
            endpoint_url=settings.MEDIA_STORAGE_ENDPOINT,
            aws_access_key_id=settings.MEDIA_STORAGE_ACCESS_KEY,
            aws_secret_access_key=settings.MEDIA_STORAGE_SECRET_KEY,
            region_name=settings.MEDIA_STORAGE_REGION or "us-east-1",
            use_ssl=bool(settings.MEDIA_STORAGE_USE_SSL),
            config=Config(
                s3={"addressing_style": addressing_style},
                signature_version="s3v4",
            ),
        )

    def build_key(self, *, sha256: str, ext: str) -> str:
        return _build_key(self.prefix, sha256=sha256, ext=ext)

    def object_exists(self, *, key: str) -> bool:
        try:
            self.client.head_object(Bucket=self.bucket, Key=key)
            return True
        except ClientError as exc:  # noqa: PERF203
            code = exc.response.get("Error", {}).get("Code") if hasattr(exc, "response") else None
            if code in ("404", "NoSuchKey", "NotFound"):
                return False
            raise

    def upload_bytes(
        self,
        *,
        key: str,
        data: bytes,
        content_type: Optional[str],
        cache_control: Optional[str] = None,
    ) -> None:
        kwargs = {
            "Bucket": self.bucket,
            "Key": key,
            "Body": data,
        }
        if content_type:
            kwargs["ContentType"] = content_type
        if cache_control:
            kwargs["CacheControl"] = cache_control
        self.client.put_object(**kwargs)

    def download_bytes(self, *, key: str) -> tuple[bytes, Optional[str]]:
        try:
            obj = self.client.get_object(Bucket=self.bucket, Key=key)
        except ClientError as exc:
            code = exc.response.get("Error", {}).get("Code")
            if code in ("404", "NoSuchKey", "NotFound"):
                raise MediaObjectNotFoundError(key) from exc
            raise
        body = obj.get("Body")
        data = body.read() if body else b""
        return data, obj.get("ContentType")


class LocalMediaStorage:
    """Filesystem-backed storage used when no bucket is configured."""

    backend = "local"

    def __init__(self, root: Optional[str] = None) -> None:
        self.root = Path(root or settings.MEDIA_STORAGE_LOCAL_DIR)
        self.prefix = (settings.MEDIA_STORAGE_PREFIX or "").strip("/")

    def build_key(self, *, sha256: str, ext: str) -> str:
        return _build_key(self.prefix, sha256=sha256, ext=ext)

    def _path(self, key: str) -> Path:
        path = (self.root / key).resolve()
        if self.root.resolve() not in path.parents:
            raise MediaObjectNotFoundError(key)
        return path

    def object_exists(self, *, key: str) -> bool:
        return self._path(key).is_file()

    def upload_bytes(
        self,
        *,
        key: str,
        data: bytes,
        content_type: Optional[str],
        cache_control: Optional[str] = None,
    ) -> None:
        path = self._path(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)

    def download_bytes(self, *, key: str) -> tuple[bytes, Optional[str]]:
        path = self._path(key)
        if not path.is_file():
            raise MediaObjectNotFoundError(key)
        return path.read_bytes(), None


def get_media_storage(backend: Optional[str] = None) -> MediaStorage | LocalMediaStorage:
    """
    Resolve the storage backend.

    Objects remember which backend wrote them, so reads pass ``backend`` explicitly.
    """
    if backend == "local" or (backend is None and not settings.MEDIA_STORAGE_BUCKET):
        return LocalMediaStorage()
    return MediaStorage()
