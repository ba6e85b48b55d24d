from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile
from sqlalchemy.orm import Session

from vitrine.ai.genai_client import GenerationClient
from vitrine.api.deps import get_generation_client, rate_limit, read_upload_or_413
from vitrine.api.schemas import (
    CorrectionBody,
    CropBody,
    DifferencesBody,
    EditorModelBody,
    ResizeBody,
    RetouchBody,
    SessionFromGalleryBody,
)
from vitrine.editor.service import EditorService, ModelOptions, RetouchRequest, session_to_dict
from vitrine.infra.db.database import get_db
from vitrine.security.auth import CurrentUser, get_current_user

router = APIRouter(prefix="/api/editor/sessions", tags=["editor"])


def _service(db: Session, user: CurrentUser, client: Optional[GenerationClient] = None) -> EditorService:
    return EditorService(db, user.uid, client or GenerationClient())


@router.post("", status_code=201)
def create_session(
    image: UploadFile = File(...),
    projectId: Optional[str] = Form(None),
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    data = read_upload_or_413(image, field="image")
    row = _service(db, user).create_session(
        data, image.filename or "imagem.png", image.content_type or "image/png", project_id=projectId
    )
    return session_to_dict(row)


@router.post("/from-gallery", status_code=201)
def create_session_from_gallery(
    body: SessionFromGalleryBody,
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return session_to_dict(_service(db, user).create_session_from_gallery(body.item_id))


@router.get("/{session_id}")
def get_session(
    session_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return session_to_dict(_service(db, user).get(session_id))


@router.post("/{session_id}/retouch")
def retouch(
    session_id: str,
    body: RetouchBody,
    user: CurrentUser = Depends(rate_limit),
    client: GenerationClient = Depends(get_generation_client),
    db: Session = Depends(get_db),
):
    req = RetouchRequest(
        prompt=body.prompt,
        gestures=[{"points": g.points, "mode": g.mode} for g in body.gestures],
        display_size=(body.display_width, body.display_height),
        brush_size=body.brush_size,
    )
    return session_to_dict(_service(db, user, client).retouch(session_id, req))


@router.post("/{session_id}/crop")
def crop(
    session_id: str,
    body: CropBody,
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    rect = (body.x, body.y, body.width, body.height)
    row = _service(db, user).crop(session_id, rect, (body.display_width, body.display_height))
    return session_to_dict(row)


@router.post("/{session_id}/resize")
def resize(
    session_id: str,
    body: ResizeBody,
    user: CurrentUser = Depends(rate_limit),
    client: GenerationClient = Depends(get_generation_client),
    db: Session = Depends(get_db),
):
    return session_to_dict(_service(db, user, client).resize(session_id, body.width, body.height))


@router.post("/{session_id}/pose")
def pose(
    session_id: str,
    user: CurrentUser = Depends(rate_limit),
    client: GenerationClient = Depends(get_generation_client),
    db: Session = Depends(get_db),
):
    return session_to_dict(_service(db, user, client).pose(session_id))


@router.post("/{session_id}/model")
def model(
    session_id: str,
    body: EditorModelBody,
    user: CurrentUser = Depends(rate_limit),
    client: GenerationClient = Depends(get_generation_client),
    db: Session = Depends(get_db),
):
    opts = ModelOptions(**body.model_dump())
    return session_to_dict(_service(db, user, client).model(session_id, opts))


@router.post("/{session_id}/differences")
def differences(
    session_id: str,
    body: DifferencesBody,
    user: CurrentUser = Depends(rate_limit),
    client: GenerationClient = Depends(get_generation_client),
    db: Session = Depends(get_db),
):
    return _service(db, user, client).differences(session_id, body.original_description)


@router.post("/{session_id}/correction")
def correction(
    session_id: str,
    body: CorrectionBody,
    user: CurrentUser = Depends(rate_limit),
    client: GenerationClient = Depends(get_generation_client),
    db: Session = Depends(get_db),
):
    return session_to_dict(_service(db, user, client).correction(session_id, body.plan))


@router.post("/{session_id}/undo")
def undo(
    session_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return session_to_dict(_service(db, user).undo(session_id))


@router.post("/{session_id}/redo")
def redo(
    session_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return session_to_dict(_service(db, user).redo(session_id))


@router.post("/{session_id}/reset")
def reset(
    session_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return session_to_dict(_service(db, user).reset(session_id))
