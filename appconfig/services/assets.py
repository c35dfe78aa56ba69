from __future__ import annotations

import hashlib
import io
import logging
import mimetypes
import os
from typing import Optional

from PIL import Image
from sqlalchemy.orm import Session

from appconfig.db.enums import AssetKindEnum
from appconfig.db.models import StoredAsset
from appconfig.services.media_storage import IMMUTABLE_CACHE_CONTROL, get_media_storage

logger = logging.getLogger(__name__)

BRANDING_ALLOWED_MIME_TYPES = {
    "image/png",
    "image/jpeg",
    "image/jpg",
    "image/webp",
    "image/svg+xml",
    "image/gif",
}


def asset_proxy_url(asset_id: str) -> str:
    return f"/api/v1/storage/proxy/{asset_id}"


def _extension_for(content_type: str, filename: Optional[str]) -> str:
    ext: Optional[str] = None
    if content_type == "image/svg+xml":
        ext = ".svg"
    elif content_type:
        ext = mimetypes.guess_extension(content_type)
    if not ext and filename:
        ext = os.path.splitext(filename)[1] or None
    if not ext:
        raise ValueError("Unable to determine file extension for upload.")
    return ext.lstrip(".")


def create_branding_upload_asset(
    *,
    session: Session,
    org_id: str,
    application_id: str,
    content_bytes: bytes,
    filename: Optional[str],
    content_type: str,
    kind: AssetKindEnum,
    user_id: Optional[str] = None,
) -> StoredAsset:
    if not content_bytes:
        raise ValueError("Uploaded file is empty.")

    ext = _extension_for(content_type, filename)

    # Nothing reaches storage until the bytes decode as an image.
    width: Optional[int] = None
    height: Optional[int] = None
    if content_type != "image/svg+xml":
        try:
            with Image.open(io.BytesIO(content_bytes)) as img:
                img.verify()
                width, height = img.size
        except Exception as exc:
            raise ValueError("Invalid image file.") from exc

    sha256 = hashlib.sha256(content_bytes).hexdigest()
    storage = get_media_storage()
    key = storage.build_key(sha256=sha256, ext=ext)
    if not storage.object_exists(key=key):
        storage.upload_bytes(
            key=key,
            data=content_bytes,
            content_type=content_type,
            cache_control=IMMUTABLE_CACHE_CONTROL,
        )

    asset = StoredAsset(
        org_id=org_id,
        application_id=application_id,
        kind=kind,
        storage_backend=storage.backend,
        storage_key=key,
        content_type=content_type,
        size_bytes=len(content_bytes),
        width=width,
        height=height,
        filename=filename,
        sha256=sha256,
        created_by=user_id,
    )
    session.add(asset)
    session.commit()
    session.refresh(asset)
    logger.info(
        "Stored branding asset",
        extra={"asset_id": asset.id, "application_id": application_id, "kind": kind.value, "backend": storage.backend},
    )
    return asset


def read_asset_bytes(asset: StoredAsset) -> bytes:
    storage = get_media_storage(asset.storage_backend)
    data, _content_type = storage.download_bytes(key=asset.storage_key)
    return data
