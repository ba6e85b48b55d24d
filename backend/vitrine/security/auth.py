from __future__ import annotations

from dataclasses import dataclass
from typing import Optional
from uuid import UUID

from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from vitrine.infra.db.crud import get_active_token, touch_access_token
from vitrine.infra.db.database import get_db

bearer_scheme = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class CurrentUser:
    uid: UUID
    email: str
    role: str

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: Session = Depends(get_db),
) -> CurrentUser:
    if credentials is None or not credentials.credentials:
        raise HTTPException(
            status_code=401,
            detail={"error_code": "TOKEN_MISSING", "message": "Não autorizado: Token não fornecido."},
        )

    row = get_active_token(db, credentials.credentials)
    if row is None or row.user is None or row.user.disabled:
        raise HTTPException(
            status_code=403,
            detail={"error_code": "TOKEN_INVALID", "message": "Não autorizado: Token inválido ou expirado."},
        )

    touch_access_token(db, row)
    return CurrentUser(uid=row.user.id, email=row.user.email, role=row.user.role or "user")


def require_admin(user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
    if not user.is_admin:
        raise HTTPException(
            status_code=403,
            detail={"error_code": "ADMIN_REQUIRED", "message": "Acesso negado: Requer permissão de administrador."},
        )
    return user
