from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional

from fastapi import Request
from fastapi.responses import JSONResponse


@dataclass
class AppError(Exception):
    error_code: str
    message: str
    details: Optional[Dict[str, Any]] = None
    http_status: int = 400

    def __str__(self) -> str:
        return self.message

    def to_dict(self) -> Dict[str, Any]:
        payload = {"error_code": self.error_code, "message": self.message}
        if self.details is not None:
            payload["details"] = self.details
        return payload


class NotFoundError(AppError):
    def __init__(self, message: str, *, error_code: str = "NOT_FOUND", details: Optional[Dict[str, Any]] = None):
        super().__init__(error_code=error_code, message=message, details=details, http_status=404)


class GenerationError(AppError):
    """Falha do provedor de IA (bloqueio, resposta sem imagem, JSON inválido)."""

    def __init__(self, message: str, *, error_code: str = "GENERATION_FAILED", details: Optional[Dict[str, Any]] = None):
        super().__init__(error_code=error_code, message=message, details=details, http_status=502)


QUOTA_MESSAGE = (
    "Você excedeu sua cota de uso atual. Por favor, verifique seu plano e detalhes de faturamento. "
    "Pode ser necessário aguardar a redefinição do seu limite."
)


class QuotaExceededError(GenerationError):
    def __init__(self, message: str = QUOTA_MESSAGE):
        super().__init__(message, error_code="QUOTA_EXCEEDED")
        self.http_status = 429


async def app_error_handler(_request: Request, exc: AppError) -> JSONResponse:
    return JSONResponse(status_code=exc.http_status, content={"detail": exc.to_dict()})
