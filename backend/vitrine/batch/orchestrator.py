"""Batch pipeline: one product (SKU) per item, processed with bounded concurrency.

State lives in the database so the API, the inline runner and RQ workers all see
the same progress and cancellation flags. Every worker thread uses its own
session.
"""

from __future__ import annotations

import logging
import re
import time
import traceback
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Dict, List, Optional, Tuple

from sqlalchemy.orm import Session

from vitrine.ai.age_training import AgeTrainer
from vitrine.ai.genai_client import GenerationClient, ImageInput, ModelImageRequest
from vitrine.ai.image_utils import parse_data_url, resize_and_pad, standardize_to_png, to_data_url
from vitrine.batch.settings import GlobalSettings, ResolvedItemSettings, resolve_item_settings
from vitrine.core.config import BATCH_CONCURRENCY
from vitrine.core.errors import AppError
from vitrine.core.logging import job_log
from vitrine.gallery.service import GalleryService
from vitrine.infra import storage
from vitrine.infra.db.crud import (
    claim_item,
    get_batch_item,
    get_batch_job,
    list_batch_items,
    mark_item_done,
    mark_item_error,
    reset_item_to_queued,
    set_item_progress,
    utcnow,
)
from vitrine.infra.db.database import SessionLocal
from vitrine.infra.db.models import ROOT_ID, BatchItem, BatchJob
from vitrine.ledger.costs import CostRecorder
from vitrine.ledger.timing import estimate_ms, format_duration, parallel_estimate_ms, record_completion

logger = logging.getLogger(__name__)

MANUAL_VIEWS = {
    "front": "Crop Frente",
    "back": "Crop Costas",
    "total_look": "Total Look",
}
NO_VIEWS_SELECTED = (
    "Nenhuma vista de geração foi selecionada para itens de arrastar e soltar. "
    "Marque ao menos uma opção em 'Saída e Estilo'."
)


class ItemCancelled(Exception):
    pass


def load_settings(job: BatchJob) -> GlobalSettings:
    return GlobalSettings.model_validate(job.settings or {})


def result_file_name(base_name: str, view: str, index: int) -> str:
    view_part = re.sub(r"\s+", "_", view.strip())
    return f"{base_name}-{view_part}-{index}.png"


# -----------------------------------------------------------------------------
# Job state (called from the API with the request session)
# -----------------------------------------------------------------------------
def prepare_run(db: Session, job: BatchJob) -> Tuple[int, int]:
    """
    Clears the cancel flag, re-queues failed items and stores the per-item estimate.
    Returns (queued items, total estimate in ms); with nothing to run the job is left untouched.
    """
    settings = load_settings(job)
    items = list_batch_items(db, job.id)
    queued = len([i for i in items if i.status in ("queued", "error")])
    if queued == 0:
        return 0, 0

    job.cancel_requested = False
    for item in items:
        if item.status == "error":
            item.status = "queued"
            item.error = None
            item.progress_percentage = 0
            item.progress_status = None
        item.cancel_requested = False

    per_item = estimate_ms(db, user_id=job.uid, width=settings.target_width, height=settings.target_height)
    job.estimate_ms = per_item
    job.status = "running"
    job.started_at = utcnow()
    job.completed_at = None
    db.commit()

    total = parallel_estimate_ms(per_item, queued, BATCH_CONCURRENCY)
    job_log(str(job.id), f"run prepared: {queued} items", extra={"estimate_ms": int(total)})
    return queued, int(total)


def cancel_job(db: Session, job: BatchJob) -> int:
    job.cancel_requested = True
    count = 0
    for item in list_batch_items(db, job.id, status="processing"):
        item.status = "queued"
        item.progress_percentage = 0
        item.progress_status = None
        count += 1
    db.commit()
    job_log(str(job.id), "cancel requested", extra={"requeued": count})
    return count


def cancel_item(db: Session, item: BatchItem) -> None:
    item.cancel_requested = True
    item.status = "queued"
    item.progress_percentage = 0
    item.progress_status = None
    db.commit()
    job_log(str(item.job_id), f"item cancel requested: {item.sku}")


def prepare_single_item(db: Session, item: BatchItem) -> None:
    item.cancel_requested = False
    # um cancelamento de lote já encerrado não pode bloquear a execução avulsa
    if item.job.status != "running":
        item.job.cancel_requested = False
    if item.status in ("done", "error"):
        reset_item_to_queued(db, item, clear_results=True)
    else:
        db.commit()


def job_eta(job: BatchJob, items: List[BatchItem]) -> Optional[str]:
    if job.status != "running":
        return None
    remaining = len([i for i in items if i.status in ("queued", "processing")])
    if remaining <= 0:
        return "Finalizando..."
    durations = [i.duration_ms for i in items if i.status == "done" and i.duration_ms]
    avg = sum(durations) / len(durations) if durations else float(job.estimate_ms or 0)
    text = format_duration(parallel_estimate_ms(avg, remaining, BATCH_CONCURRENCY))
    return f"Tempo estimado: {text}" if text else None


# -----------------------------------------------------------------------------
# Runner
# -----------------------------------------------------------------------------
class BatchRunner:
    def __init__(
        self,
        provider: Any = None,
        *,
        session_factory: Callable[[], Session] = SessionLocal,
        concurrency: int = BATCH_CONCURRENCY,
    ) -> None:
        self.provider = provider
        self.session_factory = session_factory
        self.concurrency = max(1, int(concurrency))

    def process_queue(self, job_id: str) -> None:
        db = self.session_factory()
        try:
            job = get_batch_job(db, job_id)
            if job is None:
                return
            item_ids = [str(i.id) for i in list_batch_items(db, job.id, status="queued")]
            job_log(job_id, f"run started: {len(item_ids)} items, concurrency {self.concurrency}")

            if item_ids:
                with ThreadPoolExecutor(max_workers=min(self.concurrency, len(item_ids))) as pool:
                    list(pool.map(self.process_item, item_ids))

            db.expire_all()
            job = get_batch_job(db, job_id)
            if job is None:
                return
            job.status = "cancelled" if job.cancel_requested else "done"
            job.completed_at = utcnow()
            db.commit()
            job_log(job_id, f"run finished: {job.status}")
        finally:
            db.close()

    def process_item(self, item_id: str) -> bool:
        db = self.session_factory()
        item = None
        started = time.monotonic()
        try:
            item = get_batch_item(db, item_id)
            if item is None:
                return False
            job = item.job
            job_id = str(job.id)

            if not claim_item(db, item):
                job_log(job_id, f"item skipped, not queued ({item.status}): {item.sku}")
                return False

            if self._cancelled(db, item):
                self._settle_cancelled(db, item)
                return False

            job_log(job_id, f"item started: {item.sku}")

            settings = load_settings(job)
            resolved = resolve_item_settings(
                settings,
                metadata=item.item_metadata,
                gender_override=item.model_gender,
                age_override=item.model_age,
                ai_description=item.ai_description,
                clothing_notes=item.clothing_notes,
            )

            gallery = GalleryService(db, job.uid)
            parent_id = ROOT_ID
            if resolved.brand:
                folder, _ = gallery.find_or_create_folder(resolved.brand, ROOT_ID)
                parent_id = str(folder.id)

            client = GenerationClient(self.provider, CostRecorder(db, job.uid, parent_id))
            results = self._generate(db, item, settings, resolved, client, gallery)

            if self._cancelled(db, item):
                self._settle_cancelled(db, item)
                job_log(job_id, f"item cancelled, results discarded: {item.sku}")
                return False

            saved_ids = self._store_results(item, resolved, results, gallery, parent_id)
            duration = (time.monotonic() - started) * 1000
            record_completion(db, user_id=job.uid, width=resolved.width, height=resolved.height, duration_ms=duration)
            mark_item_done(db, item, result_item_ids=saved_ids, parent_id=parent_id, duration_ms=int(duration))
            job_log(job_id, f"item done: {item.sku}", extra={"results": len(saved_ids), "ms": int(duration)})
            return True

        except ItemCancelled:
            if item is not None:
                self._settle_cancelled(db, item)
            return False

        except Exception as e:
            db.rollback()
            if item is None:
                logger.exception("batch item %s failed before loading", item_id)
                return False
            job_id = str(item.job_id)
            if self._cancelled(db, item):
                self._settle_cancelled(db, item)
                return False

            message = e.message if isinstance(e, AppError) else f"{type(e).__name__}: {e}"
            mark_item_error(db, item, message)
            job_log(job_id, f"ERROR {item.sku}: {message}")
            job_log(job_id, traceback.format_exc())
            return False

        finally:
            db.close()

    # ---- etapas ----
    def _generate(
        self,
        db: Session,
        item: BatchItem,
        settings: GlobalSettings,
        resolved: ResolvedItemSettings,
        client: GenerationClient,
        gallery: GalleryService,
    ) -> List[Tuple[str, str]]:
        self._progress(db, item, "Verificando treinamento de IA...", 1)
        characteristics = AgeTrainer(db, client).characteristics_for(resolved.age)

        self._progress(db, item, "Aprimorando imagens...", 2)
        sources = self._source_images(item)
        enhanced: List[Tuple[Dict[str, Any], ImageInput]] = []
        for entry, image in sources:
            data_url = client.enhance_and_upscale(image)
            enhanced.append((entry, ImageInput.from_data_url(data_url, image.name)))

        if item.is_manual:
            plan = [
                (MANUAL_VIEWS[entry.get("view")], [image])
                for entry, image in enhanced
                if entry.get("view") in MANUAL_VIEWS
            ]
        else:
            if not settings.selected_views:
                raise AppError("NO_VIEWS_SELECTED", NO_VIEWS_SELECTED)
            all_images = [image for _, image in enhanced]
            plan = [(view, all_images) for view in settings.selected_views]

        static_reference = self._gallery_image(gallery, resolved.reference_model_id)
        scene = self._gallery_image(gallery, settings.reference_scene_id)
        fit = self._gallery_image(gallery, settings.fit_reference_id)
        bottom = self._gallery_image(gallery, resolved.reference_bottom_id)

        results: List[Tuple[str, str]] = []
        dynamic_reference: Optional[ImageInput] = None
        total = len(plan)
        for i, (view, images) in enumerate(plan):
            if item.is_manual:
                message = f"Gerando vista manual: {view}"
            else:
                message = f"Gerando vista: {view} ({i + 1}/{total})"
            self._progress(db, item, message, int(20 + (i / total) * 60))

            data_url = client.generate_model_image(
                ModelImageRequest(
                    clothing_images=images,
                    age=resolved.age,
                    gender=resolved.gender,
                    image_name=item.base_name,
                    scene_prompt=resolved.scene_prompt,
                    trained_characteristics=characteristics,
                    clothing_description=resolved.clothing_description,
                    model_notes=resolved.model_notes,
                    negative_prompt=resolved.negative_prompt,
                    photo_framing=view,
                    reference_model=dynamic_reference or static_reference,
                    reference_scene=scene,
                    fit_reference=fit,
                    reference_bottom=bottom,
                    reference_bottom_description=resolved.reference_bottom_description,
                )
            )
            results.append((view, data_url))
            if dynamic_reference is None:
                # o primeiro resultado fixa o rosto/corpo das próximas vistas
                dynamic_reference = ImageInput.from_data_url(data_url, item.base_name)

        self._progress(db, item, "Finalizando e redimensionando...", 85)
        if resolved.width > 0 and resolved.height > 0:
            results = [
                (view, self._fit_result(client, item, view, data_url, resolved.width, resolved.height))
                for view, data_url in results
            ]
        return results

    def _fit_result(self, client: GenerationClient, item: BatchItem, view: str, data_url: str, w: int, h: int) -> str:
        image = ImageInput.from_data_url(data_url, item.base_name)
        if "total look" in view.lower():
            expanded = ImageInput.from_data_url(client.expand_image(image, w, h), item.base_name)
            data = resize_and_pad(expanded.data, w, h, mode="crop")
        else:
            data = resize_and_pad(image.data, w, h, mode="crop")
        return to_data_url(data)

    def _store_results(
        self,
        item: BatchItem,
        resolved: ResolvedItemSettings,
        results: List[Tuple[str, str]],
        gallery: GalleryService,
        parent_id: str,
    ) -> List[str]:
        first = (item.files or [None])[0]
        original = storage.read_object(first["storage_path"]) if first else None
        metadata = dict(item.item_metadata or {})
        if resolved.brand:
            metadata["marca"] = resolved.brand

        saved: List[str] = []
        for i, (view, data_url) in enumerate(results):
            data, _ = parse_data_url(data_url)
            row = gallery.save_file(
                standardize_to_png(data),
                result_file_name(item.base_name, view, i),
                parent_id=parent_id,
                metadata=metadata or None,
                original=original,
                original_name=first["name"] if first else None,
                original_content_type=(first or {}).get("mime_type") or "image/png",
            )
            saved.append(str(row.id))
        return saved

    # ---- helpers ----
    def _source_images(self, item: BatchItem) -> List[Tuple[Dict[str, Any], ImageInput]]:
        out = []
        for entry in item.files or []:
            data = storage.read_object(entry["storage_path"])
            out.append((entry, ImageInput.from_bytes(data, entry.get("name") or item.base_name, entry.get("mime_type"))))
        if not out:
            raise AppError("NO_FILES", "O item não possui imagens.")
        return out

    @staticmethod
    def _gallery_image(gallery: GalleryService, item_id: Optional[str]) -> Optional[ImageInput]:
        if not item_id:
            return None
        row, data = gallery.read_file(item_id)
        return ImageInput.from_bytes(data, row.name)

    def _progress(self, db: Session, item: BatchItem, message: str, percentage: int) -> None:
        if self._cancelled(db, item):
            raise ItemCancelled()
        set_item_progress(db, item, message, percentage)

    @staticmethod
    def _cancelled(db: Session, item: BatchItem) -> bool:
        db.refresh(item)
        db.refresh(item.job)
        return bool(item.cancel_requested or item.job.cancel_requested)

    @staticmethod
    def _settle_cancelled(db: Session, item: BatchItem) -> None:
        item.cancel_requested = False
        reset_item_to_queued(db, item)
