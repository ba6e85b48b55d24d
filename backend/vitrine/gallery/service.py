"""Gallery: per-user folder/file tree with a soft-delete trash folder."""

from __future__ import annotations

import logging
import os
from typing import Any, Dict, Iterable, List, Optional, Tuple
from uuid import UUID

from sqlalchemy.orm import Session

from vitrine.core.errors import AppError, NotFoundError
from vitrine.infra import storage
from vitrine.infra.db.crud import (
    create_gallery_item,
    delete_gallery_rows,
    find_folder_by_name,
    get_gallery_item,
    get_owned_item,
    list_children,
    list_user_files,
)
from vitrine.infra.db.models import ROOT_ID, GalleryItem

logger = logging.getLogger(__name__)

TRASH_NAME = "Lixeira"
MAX_TREE_DEPTH = 64


def item_to_dict(item: GalleryItem) -> Dict[str, Any]:
    return {
        "id": str(item.id),
        "uid": str(item.uid),
        "name": item.name,
        "type": item.type,
        "parentId": item.parent_id,
        "url": item.url,
        "storagePath": item.storage_path,
        "originalUrl": item.original_url,
        "metadata": item.item_metadata,
        "originalParentId": item.original_parent_id,
        "createdAt": item.created_at.isoformat() if item.created_at else None,
    }


class GalleryService:
    def __init__(self, db: Session, uid: UUID) -> None:
        self.db = db
        self.uid = uid

    # ---- leitura ----
    def list_items(self, parent_id: Optional[str] = None) -> List[GalleryItem]:
        parent_id = parent_id or ROOT_ID
        folders = list_children(self.db, self.uid, parent_id, item_type="folder")
        files = list_children(self.db, self.uid, parent_id, item_type="file")

        alive: List[GalleryItem] = []
        orphans: List[GalleryItem] = []
        for f in files:
            if storage.object_exists(f.storage_path):
                alive.append(f)
            else:
                orphans.append(f)

        if orphans:
            logger.warning("removing %d gallery entries without stored object", len(orphans))
            delete_gallery_rows(self.db, orphans)

        return folders + alive

    def folder_path(self, folder_id: Optional[str]) -> List[Dict[str, str]]:
        if not folder_id:
            raise AppError("FOLDER_ID_REQUIRED", "folderId é obrigatório.")

        path: List[Dict[str, str]] = []
        current = folder_id
        for _ in range(MAX_TREE_DEPTH):
            if not current or current == ROOT_ID:
                break
            item = get_owned_item(self.db, self.uid, current)
            if item is None:
                break
            if item.type != "folder":
                raise AppError("NOT_A_FOLDER", "folderId inválido: não é uma pasta.")
            path.insert(0, {"id": str(item.id), "name": item.name})
            current = item.parent_id

        return [{"id": ROOT_ID, "name": "Home"}] + path

    def all_files(self, uid: Optional[UUID] = None) -> List[GalleryItem]:
        return list_user_files(self.db, uid or self.uid)

    def read_file(self, item_id: str) -> Tuple[GalleryItem, bytes]:
        item = self._owned_or_404(item_id)
        if item.type != "file" or not item.storage_path:
            raise AppError("NOT_A_FILE", "O item selecionado não é um arquivo.")
        return item, storage.read_object(item.storage_path)

    # ---- escrita ----
    def create_folder(self, name: Optional[str], parent_id: Optional[str] = None) -> GalleryItem:
        name = (name or "").strip()
        if not name:
            raise AppError("NAME_REQUIRED", "O nome da pasta é obrigatório.")
        parent_id = self._valid_parent(parent_id)
        return create_gallery_item(self.db, uid=self.uid, name=name, item_type="folder", parent_id=parent_id)

    def find_or_create_folder(self, name: str, parent_id: str = ROOT_ID) -> Tuple[GalleryItem, bool]:
        existing = find_folder_by_name(self.db, self.uid, name, parent_id)
        if existing is not None:
            return existing, False
        return create_gallery_item(self.db, uid=self.uid, name=name, item_type="folder", parent_id=parent_id), True

    def ensure_trash(self) -> Tuple[GalleryItem, bool]:
        return self.find_or_create_folder(TRASH_NAME, ROOT_ID)

    def save_file(
        self,
        data: bytes,
        name: str,
        *,
        content_type: str = "image/png",
        parent_id: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
        original: Optional[bytes] = None,
        original_name: Optional[str] = None,
        original_content_type: str = "image/png",
    ) -> GalleryItem:
        parent_id = self._valid_parent(parent_id)

        path = storage.build_object_path(str(self.uid), name)
        storage.save_object(path, data, content_type)

        original_path = None
        if original:
            original_path = storage.build_object_path(str(self.uid), original_name or f"original-{name}")
            storage.save_object(original_path, original, original_content_type)

        return create_gallery_item(
            self.db,
            uid=self.uid,
            name=name,
            item_type="file",
            parent_id=parent_id,
            url=storage.public_url(path),
            storage_path=path,
            original_url=storage.public_url(original_path),
            original_storage_path=original_path,
            metadata=metadata,
        )

    def rename(self, item_id: str, new_name: Optional[str]) -> GalleryItem:
        new_name = (new_name or "").strip()
        if not new_name:
            raise AppError("NAME_REQUIRED", "newName é obrigatório.")
        item = self._owned_or_404(item_id)

        if item.type == "file":
            ext = os.path.splitext(item.name)[1]
            if ext and not new_name.lower().endswith(ext.lower()):
                new_name = f"{new_name}{ext}"

        item.name = new_name
        self.db.commit()
        return item

    def move(self, item_ids: Optional[List[str]], destination_id: Optional[str]) -> int:
        if not item_ids or not destination_id:
            raise AppError("MOVE_ARGS_REQUIRED", "itemIds e destinationFolderId são obrigatórios.")
        destination_id = self._valid_parent(destination_id)
        ancestors = set(self._ancestor_ids(destination_id))

        moved = 0
        for item in self._owned_items(item_ids):
            if item.type == "folder" and str(item.id) in ancestors:
                raise AppError("INVALID_MOVE", "Não é possível mover uma pasta para dentro dela mesma.")
            item.parent_id = destination_id
            moved += 1
        self.db.commit()
        return moved

    def delete_items(self, item_ids: Any) -> Dict[str, int]:
        """
        Fora da Lixeira: move para a Lixeira (guarda a pasta de origem).
        Dentro da Lixeira: exclui de vez, com as subpastas e os arquivos salvos.
        """
        if not isinstance(item_ids, list):
            raise AppError("ITEM_IDS_REQUIRED", "itemIds deve ser um array.")

        trash, _ = self.ensure_trash()
        trash_id = str(trash.id)
        trashed = 0
        deleted = 0

        for item in self._owned_items(item_ids):
            if str(item.id) == trash_id:
                continue
            if trash_id in self._ancestor_ids(item.parent_id):
                deleted += self._purge(item)
            else:
                item.original_parent_id = item.parent_id
                item.parent_id = trash_id
                trashed += 1

        self.db.commit()
        return {"trashed": trashed, "deleted": deleted}

    def restore(self, item_ids: Optional[List[str]]) -> int:
        if not item_ids:
            raise AppError("ITEM_IDS_REQUIRED", "itemIds é obrigatório.")
        trash = find_folder_by_name(self.db, self.uid, TRASH_NAME, ROOT_ID)
        if trash is None:
            return 0
        trash_id = str(trash.id)

        restored = 0
        for item in self._owned_items(item_ids):
            if item.parent_id != trash_id:
                continue
            target = item.original_parent_id or ROOT_ID
            if target != ROOT_ID:
                parent = get_owned_item(self.db, self.uid, target)
                if parent is None or parent.type != "folder" or trash_id in self._ancestor_ids(target):
                    target = ROOT_ID
            item.parent_id = target
            item.original_parent_id = None
            restored += 1
        self.db.commit()
        return restored

    # ---- helpers ----
    def _owned_or_404(self, item_id: str) -> GalleryItem:
        item = get_owned_item(self.db, self.uid, item_id)
        if item is None:
            raise NotFoundError("Item não encontrado ou sem permissão.")
        return item

    def _owned_items(self, item_ids: Iterable[Any]) -> List[GalleryItem]:
        out = []
        for iid in item_ids:
            item = get_owned_item(self.db, self.uid, str(iid))
            if item is not None:
                out.append(item)
        return out

    def _valid_parent(self, parent_id: Optional[str]) -> str:
        if not parent_id or parent_id == ROOT_ID:
            return ROOT_ID
        parent = get_owned_item(self.db, self.uid, parent_id)
        if parent is None or parent.type != "folder":
            raise NotFoundError("Pasta de destino não encontrada.", error_code="FOLDER_NOT_FOUND")
        return str(parent.id)

    def _ancestor_ids(self, folder_id: Optional[str]) -> List[str]:
        """folder_id and its ancestors, nearest first (root excluded)."""
        out: List[str] = []
        current = folder_id
        for _ in range(MAX_TREE_DEPTH):
            if not current or current == ROOT_ID:
                break
            out.append(current)
            item = get_gallery_item(self.db, current)
            if item is None:
                break
            current = item.parent_id
        return out

    def _purge(self, item: GalleryItem) -> int:
        count = 0
        if item.type == "folder":
            for child in list_children(self.db, self.uid, str(item.id)):
                count += self._purge(child)
        storage.delete_object(item.storage_path)
        storage.delete_object(item.original_storage_path)
        self.db.delete(item)
        self.db.flush()
        return count + 1
