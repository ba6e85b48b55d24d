from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Sequence, Tuple

from sqlalchemy.orm import Session

from vitrine.ai.genai_client import GenerationClient, ImageInput
from vitrine.batch.orchestrator import job_eta
from vitrine.batch.sku import group_files, normalize_sku
from vitrine.batch.spreadsheet import build_metadata_map, merge_spreadsheet_notes
from vitrine.core.errors import AppError, GenerationError
from vitrine.infra import storage
from vitrine.infra.db.crud import add_batch_item, list_batch_items
from vitrine.infra.db.models import BatchItem, BatchJob

logger = logging.getLogger(__name__)

# (nome do arquivo, bytes, content-type)
UploadedFile = Tuple[str, bytes, str]

DESCRIBE_FAILED = {"Erro": "Falha na análise."}


def _store_file(job: BatchJob, name: str, data: bytes, content_type: str, view: Optional[str] = None) -> Dict[str, Any]:
    path = storage.build_object_path(f"{job.uid}/batch/{job.id}", name)
    storage.save_object(path, data, content_type)
    entry = {"name": name, "storage_path": path, "mime_type": content_type}
    if view:
        entry["view"] = view
    return entry


def add_uploaded_files(db: Session, job: BatchJob, files: Sequence[UploadedFile]) -> List[BatchItem]:
    """Every upload creates new items, one per SKU group."""
    sheet = job.spreadsheet or {}
    created: List[BatchItem] = []
    for group in group_files((f[0], f) for f in files):
        entries = [_store_file(job, name, data, ctype) for name, data, ctype in group.files]
        row = sheet.get(group.sku)
        created.append(
            add_batch_item(
                db,
                job_id=job.id,
                commit=False,
                sku=group.sku,
                base_name=group.base_name,
                files=entries,
                is_manual=False,
                item_metadata=row,
                excel_match=row is not None,
                clothing_notes=merge_spreadsheet_notes(None, row) or None,
            )
        )
    db.commit()
    return created


def add_manual_item(
    db: Session,
    job: BatchJob,
    base_name: str,
    *,
    front: Optional[UploadedFile] = None,
    back: Optional[UploadedFile] = None,
    total_look: Optional[UploadedFile] = None,
) -> BatchItem:
    base_name = (base_name or "").strip()
    if not base_name:
        raise AppError("BASE_NAME_REQUIRED", "Informe o nome base (SKU) do produto.")
    slots = [("front", front), ("back", back), ("total_look", total_look)]
    if not any(f for _, f in slots):
        raise AppError("FILE_REQUIRED", "Envie ao menos uma imagem (frente, costas ou total look).")

    entries = [_store_file(job, f[0], f[1], f[2], view=view) for view, f in slots if f]
    sku = normalize_sku(base_name)
    row = (job.spreadsheet or {}).get(sku)
    return add_batch_item(
        db,
        job_id=job.id,
        sku=sku,
        base_name=sku,
        files=entries,
        is_manual=True,
        item_metadata=row,
        excel_match=row is not None,
        clothing_notes=merge_spreadsheet_notes(None, row) or None,
    )


def apply_spreadsheet(db: Session, job: BatchJob, rows: List[List[Any]]) -> int:
    """Re-applies sheet rows to every item; returns how many items matched a row."""
    sheet = build_metadata_map(rows)
    matched = 0
    for item in list_batch_items(db, job.id):
        row = sheet.get(item.sku)
        if row is not None:
            item.item_metadata = row
            matched += 1
        item.excel_match = row is not None
        item.clothing_notes = merge_spreadsheet_notes(item.clothing_notes, row) or None
    job.spreadsheet = sheet
    job.spreadsheet_loaded = True
    db.commit()
    return matched


def describe_items(db: Session, items: Sequence[BatchItem], client: GenerationClient) -> int:
    """Stores a structured clothing description on each item; failures become an 'Erro' entry."""
    described = 0
    for item in items:
        if not item.files:
            continue
        first = item.files[0]
        try:
            image = ImageInput.from_bytes(storage.read_object(first["storage_path"]), item.base_name, first.get("mime_type"))
            item.ai_description = client.describe_clothing(image)
            described += 1
        except GenerationError as e:
            logger.warning("describe failed for %s: %s", item.sku, e.message)
            item.ai_description = dict(DESCRIBE_FAILED)
        db.commit()
    return described


def remove_item(db: Session, item: BatchItem) -> None:
    if item.status == "processing":
        raise AppError("ITEM_PROCESSING", "Não é possível remover um item em processamento.", http_status=409)
    for entry in item.files or []:
        storage.delete_object(entry.get("storage_path"))
    db.delete(item)
    db.commit()


# -----------------------------------------------------------------------------
# Serialização
# -----------------------------------------------------------------------------
def batch_item_to_dict(item: BatchItem) -> Dict[str, Any]:
    return {
        "id": str(item.id),
        "sku": item.sku,
        "baseName": item.base_name,
        "isManual": item.is_manual,
        "files": [
            {
                "name": f.get("name"),
                "url": storage.public_url(f.get("storage_path")),
                "view": f.get("view"),
            }
            for f in item.files or []
        ],
        "metadata": item.item_metadata,
        "excelMatch": item.excel_match,
        "aiDescription": item.ai_description,
        "clothingNotes": item.clothing_notes,
        "modelGender": item.model_gender,
        "modelAge": item.model_age,
        "status": item.status,
        "progressStatus": item.progress_status,
        "progressPercentage": item.progress_percentage,
        "error": item.error,
        "resultItemIds": item.result_item_ids or [],
        "parentId": item.parent_id,
        "durationMs": item.duration_ms,
    }


def batch_job_to_dict(job: BatchJob, items: Optional[List[BatchItem]] = None) -> Dict[str, Any]:
    items = list(job.items) if items is None else items
    return {
        "id": str(job.id),
        "status": job.status,
        "settings": job.settings or {},
        "spreadsheetLoaded": job.spreadsheet_loaded,
        "cancelRequested": job.cancel_requested,
        "estimatedTime": job_eta(job, items),
        "startedAt": job.started_at.isoformat() if job.started_at else None,
        "completedAt": job.completed_at.isoformat() if job.completed_at else None,
        "items": [batch_item_to_dict(i) for i in items],
    }
