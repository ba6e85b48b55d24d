from __future__ import annotations

import json
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Response, UploadFile
from sqlalchemy.orm import Session

from vitrine.api.deps import optional_upload, read_upload_or_413
from vitrine.api.schemas import FolderBody, ItemIdsBody, MoveBody, RenameBody
from vitrine.gallery.service import GalleryService, item_to_dict
from vitrine.infra.db.crud import as_uuid
from vitrine.infra.db.database import get_db
from vitrine.security.auth import CurrentUser, get_current_user

router = APIRouter(prefix="/api/gallery", tags=["gallery"])


@router.get("")
def list_gallery(
    parentId: Optional[str] = None,
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return [item_to_dict(i) for i in GalleryService(db, user.uid).list_items(parentId)]


@router.post("/folder", status_code=201)
def create_folder(
    body: FolderBody,
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return item_to_dict(GalleryService(db, user.uid).create_folder(body.name, body.parent_id))


@router.post("/upload", status_code=201)
def upload_file(
    image: UploadFile = File(...),
    originalImage: Optional[UploadFile] = File(None),
    name: Optional[str] = Form(None),
    parentId: Optional[str] = Form(None),
    metadata: Optional[str] = Form(None),
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    data = read_upload_or_413(image, field="image")
    original = optional_upload(originalImage, field="originalImage")

    meta = None
    if metadata:
        try:
            meta = json.loads(metadata)
        except ValueError:
            raise HTTPException(
                status_code=400,
                detail={"error_code": "INVALID_METADATA", "message": "metadata deve ser um JSON válido."},
            )

    item = GalleryService(db, user.uid).save_file(
        data,
        (name or image.filename or "imagem.png").strip(),
        content_type=image.content_type or "image/png",
        parent_id=parentId,
        metadata=meta,
        original=original[1] if original else None,
        original_name=original[0] if original else None,
        original_content_type=original[2] if original else "image/png",
    )
    return item_to_dict(item)


@router.get("/path")
def folder_path(
    folderId: Optional[str] = None,
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return GalleryService(db, user.uid).folder_path(folderId)


@router.get("/all-files")
def all_files(
    userId: Optional[str] = None,
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    target = user.uid
    if userId and user.is_admin:
        target = as_uuid(userId) or user.uid
    return [item_to_dict(i) for i in GalleryService(db, user.uid).all_files(target)]


@router.post("/trash-folder")
def trash_folder(
    response: Response,
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    trash, created = GalleryService(db, user.uid).ensure_trash()
    response.status_code = 201 if created else 200
    return item_to_dict(trash)


@router.put("/item/{item_id}/rename")
def rename_item(
    item_id: str,
    body: RenameBody,
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return item_to_dict(GalleryService(db, user.uid).rename(item_id, body.new_name))


@router.put("/move")
def move_items(
    body: MoveBody,
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    moved = GalleryService(db, user.uid).move(body.item_ids, body.destination_folder_id)
    return {"moved": moved}


@router.delete("/items")
def delete_items(
    body: ItemIdsBody,
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return GalleryService(db, user.uid).delete_items(body.item_ids)


@router.post("/restore")
def restore_items(
    body: ItemIdsBody,
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    restored = GalleryService(db, user.uid).restore(body.item_ids)
    return {"restored": restored}
