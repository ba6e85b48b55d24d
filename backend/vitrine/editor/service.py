"""
Single-image editor. A session keeps its own copies of every version (history);
each operation also saves the new version to the gallery root.
"""

from __future__ import annotations

import logging
import os
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple
from uuid import UUID

from sqlalchemy.orm import Session

from vitrine.ai.age_training import AgeTrainer
from vitrine.ai.genai_client import GenerationClient, ImageInput, ModelImageRequest, describe_as_text
from vitrine.ai.image_utils import crop_region, image_size, parse_data_url, resize_and_pad, standardize_to_png
from vitrine.core.errors import AppError, NotFoundError
from vitrine.editor.canvas import Stroke, classify_gesture, mask_has_paint, render_mask, scale_crop, to_natural
from vitrine.editor.history import EditHistory
from vitrine.gallery.service import GalleryService
from vitrine.infra import storage
from vitrine.infra.db.crud import create_editor_session, get_editor_session
from vitrine.infra.db.models import ROOT_ID, EditorSession
from vitrine.ledger.costs import CostRecorder
from vitrine.ledger.timing import record_completion

logger = logging.getLogger(__name__)

DEFAULT_WIDTH = 2000
DEFAULT_HEIGHT = 2000


@dataclass
class ModelOptions:
    gender: str = "female"
    age: str = "30 anos"
    scene_prompt: str = ""
    model_notes: str = ""
    negative_prompt: str = ""
    width: int = DEFAULT_WIDTH
    height: int = DEFAULT_HEIGHT
    reference_model_id: Optional[str] = None
    reference_scene_id: Optional[str] = None
    fit_reference_id: Optional[str] = None
    reference_bottom_id: Optional[str] = None
    reference_bottom_description: Optional[Dict[str, Any]] = None


@dataclass
class RetouchRequest:
    prompt: str
    gestures: List[Dict[str, Any]] = field(default_factory=list)
    display_size: Tuple[int, int] = (0, 0)
    brush_size: Optional[int] = None


def session_to_dict(row: EditorSession) -> Dict[str, Any]:
    history = EditHistory(row.history, row.history_index)
    return {
        "id": str(row.id),
        "imageName": row.image_name,
        "projectId": row.project_id,
        "history": [e.get("url") for e in history.entries],
        "historyIndex": history.index,
        "currentUrl": (history.current or {}).get("url"),
        "originalUrl": (history.original or {}).get("url"),
        "canUndo": history.can_undo,
        "canRedo": history.can_redo,
    }


class EditorService:
    def __init__(self, db: Session, uid: UUID, client: GenerationClient) -> None:
        self.db = db
        self.uid = uid
        self.client = client
        self.gallery = GalleryService(db, uid)

    # ---- sessões ----
    def create_session(self, data: bytes, name: str, content_type: str, project_id: Optional[str] = None) -> EditorSession:
        entry = self._store_version(data, name, content_type)
        return create_editor_session(
            self.db, uid=self.uid, image_name=name, first_entry=entry, project_id=project_id or ROOT_ID
        )

    def create_session_from_gallery(self, item_id: str) -> EditorSession:
        item, data = self.gallery.read_file(item_id)
        return self.create_session(data, item.name, storage_content_type(item.name), project_id=item.parent_id)

    def get(self, session_id: str) -> EditorSession:
        row = get_editor_session(self.db, session_id)
        if row is None or row.uid != self.uid:
            raise NotFoundError("Sessão de edição não encontrada.", error_code="SESSION_NOT_FOUND")
        return row

    # ---- operações ----
    def retouch(self, session_id: str, req: RetouchRequest) -> EditorSession:
        row = self.get(session_id)
        prompt = (req.prompt or "").strip()
        if not prompt:
            raise AppError("PROMPT_REQUIRED", "Descreva a edição desejada.")

        current = self._current(row)
        natural = image_size(current.data)

        strokes: List[Stroke] = []
        hotspot = None
        for g in req.gestures or []:
            gesture = classify_gesture(g.get("points") or [])
            if gesture.kind == "stroke":
                strokes.append(Stroke(gesture.points, g.get("mode") or "brush"))
                hotspot = None
            else:
                # o último gesto vence: um clique descarta a máscara pintada até aqui
                strokes.clear()
                hotspot = to_natural(gesture.start, req.display_size, natural)

        mask = None
        if strokes:
            mask_png = render_mask(strokes, req.display_size, req.brush_size, output_size=natural)
            if mask_has_paint(mask_png):
                mask = ImageInput(mask_png, "image/png", "mask.png")

        if mask is None and hotspot is None:
            raise AppError("EDIT_SELECTION_REQUIRED", "Clique na imagem ou pinte uma máscara para indicar a área.")

        started = time.monotonic()
        result = self._client(row).generate_edited_image(current, prompt, hotspot=hotspot, mask=mask)
        self._commit(row, parse_data_url(result)[0])
        record_completion(self.db, user_id=self.uid, width=None, height=None, duration_ms=_elapsed(started))
        return row

    def crop(self, session_id: str, rect: Sequence[float], display_size: Tuple[int, int]) -> EditorSession:
        row = self.get(session_id)
        current = self._current(row)
        x, y, w, h = scale_crop(rect, display_size, image_size(current.data))
        try:
            data = crop_region(current.data, x, y, w, h)
        except ValueError as e:
            raise AppError("INVALID_CROP", str(e)) from e
        self._commit(row, data)
        return row

    def resize(self, session_id: str, width: int, height: int) -> EditorSession:
        row = self.get(session_id)
        _require_dims(width, height)
        started = time.monotonic()
        expanded = self._client(row).expand_image(self._current(row), width, height)
        data = resize_and_pad(parse_data_url(expanded)[0], width, height, mode="crop")
        self._commit(row, data)
        record_completion(self.db, user_id=self.uid, width=width, height=height, duration_ms=_elapsed(started))
        return row

    def pose(self, session_id: str) -> EditorSession:
        row = self.get(session_id)
        result = self._client(row).generate_pose_variation(self._current(row))
        self._commit(row, parse_data_url(result)[0])
        return row

    def model(self, session_id: str, opts: ModelOptions) -> EditorSession:
        row = self.get(session_id)
        client = self._client(row)
        started = time.monotonic()

        characteristics = AgeTrainer(self.db, client).characteristics_for(opts.age)
        current = self._current(row)
        enhanced = ImageInput.from_data_url(client.enhance_and_upscale(current), row.image_name)

        generated = client.generate_model_image(
            ModelImageRequest(
                clothing_images=[enhanced],
                age=opts.age,
                gender=opts.gender,
                image_name=row.image_name,
                scene_prompt=opts.scene_prompt,
                trained_characteristics=characteristics,
                model_notes=opts.model_notes,
                negative_prompt=opts.negative_prompt,
                reference_model=self._reference(opts.reference_model_id),
                reference_scene=self._reference(opts.reference_scene_id),
                fit_reference=self._reference(opts.fit_reference_id),
                reference_bottom=self._reference(opts.reference_bottom_id),
                reference_bottom_description=describe_as_text(opts.reference_bottom_description),
            )
        )
        data = parse_data_url(generated)[0]

        width, height = int(opts.width or 0), int(opts.height or 0)
        if width > 0 and height > 0:
            expanded = client.expand_image(ImageInput(data, "image/png", row.image_name), width, height)
            data = resize_and_pad(parse_data_url(expanded)[0], width, height, mode="crop")

        self._commit(row, data)
        record_completion(self.db, user_id=self.uid, width=width, height=height, duration_ms=_elapsed(started))
        return row

    def differences(self, session_id: str, original_description: str = "") -> Dict[str, Any]:
        row = self.get(session_id)
        return self._client(row).find_clothing_differences(
            self._original(row), self._current(row), original_description
        )

    def correction(self, session_id: str, plan: str) -> EditorSession:
        row = self.get(session_id)
        if not (plan or "").strip():
            raise AppError("PLAN_REQUIRED", "O plano de correção é obrigatório.")
        result = self._client(row).apply_clothing_correction(self._original(row), self._current(row), plan)
        self._commit(row, parse_data_url(result)[0])
        return row

    def undo(self, session_id: str) -> EditorSession:
        return self._move(session_id, "undo")

    def redo(self, session_id: str) -> EditorSession:
        return self._move(session_id, "redo")

    def reset(self, session_id: str) -> EditorSession:
        return self._move(session_id, "reset")

    # ---- internos ----
    def _client(self, row: EditorSession) -> GenerationClient:
        return self.client.with_costs(CostRecorder(self.db, self.uid, row.project_id))

    def _history(self, row: EditorSession) -> EditHistory:
        return EditHistory(row.history, row.history_index)

    def _save_history(self, row: EditorSession, history: EditHistory) -> None:
        row.history = list(history.entries)
        row.history_index = history.index
        self.db.commit()

    def _move(self, session_id: str, action: str) -> EditorSession:
        row = self.get(session_id)
        history = self._history(row)
        getattr(history, action)()
        self._save_history(row, history)
        return row

    def _load(self, entry: Optional[Dict[str, Any]], name: str) -> ImageInput:
        if not entry:
            raise AppError("EMPTY_HISTORY", "A sessão não possui imagem.")
        return ImageInput.from_bytes(storage.read_object(entry["storage_path"]), name)

    def _current(self, row: EditorSession) -> ImageInput:
        return self._load(self._history(row).current, row.image_name)

    def _original(self, row: EditorSession) -> ImageInput:
        return self._load(self._history(row).original, row.image_name)

    def _reference(self, item_id: Optional[str]) -> Optional[ImageInput]:
        if not item_id:
            return None
        item, data = self.gallery.read_file(item_id)
        return ImageInput.from_bytes(data, item.name)

    def _store_version(self, data: bytes, name: str, content_type: str = "image/png") -> Dict[str, Any]:
        path = storage.build_object_path(f"{self.uid}/editor", name)
        storage.save_object(path, data, content_type)
        return {"storage_path": path, "url": storage.public_url(path)}

    def _commit(self, row: EditorSession, data: bytes) -> None:
        png = standardize_to_png(data)
        file_name = f"{os.path.splitext(row.image_name)[0]}.png"

        entry = self._store_version(png, file_name)
        original = self._history(row).original
        saved = self.gallery.save_file(
            png,
            file_name,
            parent_id=ROOT_ID,
            original=storage.read_object(original["storage_path"]) if original else None,
            original_name=row.image_name,
            original_content_type=storage_content_type(row.image_name),
        )
        entry["gallery_item_id"] = str(saved.id)

        history = self._history(row)
        history.add(entry)
        self._save_history(row, history)
        logger.info("editor session %s: version %d saved", row.id, history.index)


def storage_content_type(name: str) -> str:
    ext = os.path.splitext(name or "")[1].lower()
    return {
        ".jpg": "image/jpeg",
        ".jpeg": "image/jpeg",
        ".webp": "image/webp",
        ".gif": "image/gif",
    }.get(ext, "image/png")


def _require_dims(width: int, height: int) -> None:
    if int(width or 0) <= 0 or int(height or 0) <= 0:
        raise AppError("INVALID_DIMENSIONS", "Largura e altura devem ser maiores que zero.")


def _elapsed(started: float) -> float:
    return (time.monotonic() - started) * 1000
