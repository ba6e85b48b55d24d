"""Object storage for gallery files: local disk or Google Cloud Storage.

- If GCS_BUCKET is set, objects live in that bucket and URLs point to
  storage.googleapis.com (the bucket must allow public reads).
- Otherwise objects are written under STORAGE_DIR/objects and served by the
  API's /storage static mount.

Object paths are always relative ("<uid>/<uuid>-<name>").
"""

from __future__ import annotations

import io
import re
import uuid
from pathlib import Path
from typing import Optional

from vitrine.core import config
from vitrine.core.paths import OBJECTS_DIR

# Lazy GCS initialization to avoid import errors when running locally
_gcs_client = None
_bucket = None


def _get_bucket():
    global _gcs_client, _bucket
    if _bucket is None and config.GCS_BUCKET:
        from google.cloud import storage

        _gcs_client = storage.Client()
        _bucket = _gcs_client.bucket(config.GCS_BUCKET)
    return _bucket


def get_storage_mode() -> str:
    return "gcs" if config.GCS_BUCKET else "local"


def build_object_path(uid: str, name: str) -> str:
    safe = re.sub(r"\s+", "_", (name or "arquivo").strip()) or "arquivo"
    safe = safe.replace("/", "_").replace("\\", "_")
    return f"{uid}/{uuid.uuid4()}-{safe}"


def _local_path(path: str) -> Path:
    p = (OBJECTS_DIR / path).resolve()
    if OBJECTS_DIR.resolve() not in p.parents:
        raise ValueError(f"Invalid object path: {path}")
    return p


def save_object(path: str, data: bytes, content_type: str = "image/png") -> str:
    if get_storage_mode() == "gcs":
        blob = _get_bucket().blob(path)
        blob.upload_from_file(io.BytesIO(data), content_type=content_type, rewind=True)
    else:
        p = _local_path(path)
        p.parent.mkdir(parents=True, exist_ok=True)
        p.write_bytes(data)
    return path


def read_object(path: str) -> bytes:
    if get_storage_mode() == "gcs":
        return _get_bucket().blob(path).download_as_bytes()
    return _local_path(path).read_bytes()


def object_exists(path: Optional[str]) -> bool:
    if not path:
        return False
    if get_storage_mode() == "gcs":
        return bool(_get_bucket().blob(path).exists())
    try:
        p = _local_path(path)
    except ValueError:
        return False
    return p.is_file() and p.stat().st_size > 0


def delete_object(path: Optional[str]) -> None:
    if not path:
        return
    if get_storage_mode() == "gcs":
        blob = _get_bucket().blob(path)
        if blob.exists():
            blob.delete()
        return
    p = _local_path(path)
    if p.exists():
        p.unlink()


def public_url(path: Optional[str]) -> Optional[str]:
    if not path:
        return None
    if get_storage_mode() == "gcs":
        return f"https://storage.googleapis.com/{config.GCS_BUCKET}/{path}"
    return f"{config.PUBLIC_BASE_URL}/storage/objects/{path}"
