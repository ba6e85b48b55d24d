from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from vitrine.api.schemas import CreateUserBody, SignupBody
from vitrine.core.config import TOKEN_TTL_HOURS
from vitrine.infra.db.crud import count_admins, create_access_token, create_user, get_user, get_user_by_email, list_users
from vitrine.infra.db.database import get_db
from vitrine.infra.db.models import User
from vitrine.security.auth import CurrentUser, get_current_user, require_admin

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["users"])


def _user_dict(u: User) -> dict:
    return {
        "uid": str(u.id),
        "email": u.email,
        "displayName": u.display_name,
        "role": u.role or "user",
        "disabled": bool(u.disabled),
        "lastSignInTime": u.last_sign_in_at.isoformat() if u.last_sign_in_at else None,
    }


def _email_in_use() -> HTTPException:
    return HTTPException(status_code=409, detail={"error_code": "EMAIL_IN_USE", "message": "Este email já está em uso."})


@router.post("/signup", status_code=201)
def signup(body: SignupBody, db: Session = Depends(get_db)):
    """Cria o primeiro administrador; depois disso novos usuários vêm de POST /api/users."""
    email = (body.email or "").strip().lower()
    username = (body.username or "").strip()
    if not email or not username:
        raise HTTPException(
            status_code=400,
            detail={"error_code": "FIELDS_REQUIRED", "message": "Email e username são obrigatórios."},
        )
    if count_admins(db) > 0:
        raise HTTPException(
            status_code=409,
            detail={"error_code": "ADMIN_EXISTS", "message": "Já existe um administrador cadastrado."},
        )
    if get_user_by_email(db, email) is not None:
        raise _email_in_use()

    user = create_user(db, email=email, display_name=username, role="admin")
    token = create_access_token(db, user_id=user.id, ttl_hours=TOKEN_TTL_HOURS)
    logger.info("admin user created: %s", user.email)
    return {"user": _user_dict(user), "token": token.token}


@router.post("/users", status_code=201)
def create_user_route(
    body: CreateUserBody,
    admin: CurrentUser = Depends(require_admin),
    db: Session = Depends(get_db),
):
    email = (body.email or "").strip().lower()
    username = (body.username or "").strip()
    if not email or not username or not body.role:
        raise HTTPException(
            status_code=400,
            detail={"error_code": "FIELDS_REQUIRED", "message": "Email, username e role são obrigatórios."},
        )
    if get_user_by_email(db, email) is not None:
        raise _email_in_use()

    user = create_user(db, email=email, display_name=username, role=body.role)
    token = create_access_token(db, user_id=user.id, ttl_hours=TOKEN_TTL_HOURS)
    logger.info("admin %s created user %s with role %s", admin.email, email, body.role)
    return {"uid": str(user.id), "email": user.email, "role": user.role, "token": token.token}


@router.get("/users")
def list_users_route(
    _admin: CurrentUser = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return [_user_dict(u) for u in list_users(db)]


@router.get("/me")
def me(user: CurrentUser = Depends(get_current_user), db: Session = Depends(get_db)):
    row = get_user(db, user.uid)
    if row is None:
        raise HTTPException(status_code=404, detail={"error_code": "USER_NOT_FOUND", "message": "Usuário não encontrado."})
    return _user_dict(row)
