from __future__ import annotations

from typing import Any, Optional

from fastapi import Depends, HTTPException, UploadFile

from vitrine.ai.genai_client import GenerationClient
from vitrine.batch.orchestrator import BatchRunner
from vitrine.core.config import MAX_UPLOAD_BYTES, RATE_LIMIT_RPM
from vitrine.security.auth import CurrentUser, get_current_user
from vitrine.security.rate_limiter import SimpleRateLimiter

limiter = SimpleRateLimiter()


def rate_limit(user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
    limiter.check(str(user.uid), RATE_LIMIT_RPM)
    return user


def get_genai_provider() -> Any:
    """None = GenerationClient builds a google-genai client from GEMINI_API_KEY (tests override this)."""
    return None


def get_generation_client(provider: Any = Depends(get_genai_provider)) -> GenerationClient:
    return GenerationClient(provider)


def get_batch_runner(provider: Any = Depends(get_genai_provider)) -> BatchRunner:
    return BatchRunner(provider)


def read_upload_or_413(upload: UploadFile, max_bytes: int = MAX_UPLOAD_BYTES, *, field: str = "file") -> bytes:
    if not (upload.content_type or "").startswith("image/"):
        raise HTTPException(
            status_code=415,
            detail={"error_code": "INVALID_FILE_TYPE", "message": f"{field} deve ser uma imagem"},
        )

    data = upload.file.read(max_bytes + 1)
    if len(data) > max_bytes:
        raise HTTPException(
            status_code=413,
            detail={
                "error_code": "FILE_TOO_LARGE",
                "message": f"Arquivo excede o tamanho máximo de {max_bytes} bytes",
            },
        )
    if not data:
        raise HTTPException(
            status_code=400,
            detail={"error_code": "EMPTY_FILE", "message": "Arquivo enviado está vazio"},
        )
    return data


def optional_upload(upload: Optional[UploadFile], *, field: str) -> Optional[tuple]:
    """(filename, bytes, content_type) or None when the field was not sent."""
    if upload is None or not upload.filename:
        return None
    data = read_upload_or_413(upload, field=field)
    return upload.filename, data, upload.content_type or "image/png"
