from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, File, Form, HTTPException, UploadFile
from pydantic import ValidationError
from sqlalchemy.orm import Session

from vitrine.ai.genai_client import GenerationClient
from vitrine.api.deps import get_batch_runner, get_generation_client, optional_upload, rate_limit, read_upload_or_413
from vitrine.api.schemas import (
    BatchCreateBody,
    BatchItemUpdateBody,
    DescribeItemsBody,
    PresetBody,
    SpreadsheetBody,
)
from vitrine.batch import items as batch_items
from vitrine.batch.orchestrator import BatchRunner, cancel_item, cancel_job, prepare_run, prepare_single_item
from vitrine.batch.settings import GlobalSettings
from vitrine.core import config
from vitrine.core.logging import job_log
from vitrine.infra.db.crud import (
    create_batch_job,
    delete_preset,
    get_batch_item,
    get_batch_job,
    get_preset_by_name,
    list_batch_items,
    list_batch_jobs,
    list_presets,
    upsert_preset,
)
from vitrine.infra.db.database import get_db
from vitrine.infra.db.models import ROOT_ID, BatchItem, BatchJob
from vitrine.ledger.costs import CostRecorder
from vitrine.ledger.timing import format_duration
from vitrine.security.auth import CurrentUser, get_current_user

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/batch", tags=["batch"])


def _validated_settings(raw: Dict[str, Any]) -> Dict[str, Any]:
    try:
        return GlobalSettings.model_validate(raw or {}).model_dump()
    except ValidationError as e:
        raise HTTPException(
            status_code=400,
            detail={
                "error_code": "INVALID_SETTINGS",
                "message": "Configurações do lote inválidas.",
                "details": {"errors": e.errors(include_url=False, include_context=False)},
            },
        )


def _owned_job(db: Session, user: CurrentUser, job_id: str) -> BatchJob:
    job = get_batch_job(db, job_id)
    if job is None or job.uid != user.uid:
        raise HTTPException(status_code=404, detail={"error_code": "JOB_NOT_FOUND", "message": "Lote não encontrado."})
    return job


def _owned_item(db: Session, job: BatchJob, item_id: str) -> BatchItem:
    item = get_batch_item(db, item_id)
    if item is None or item.job_id != job.id:
        raise HTTPException(status_code=404, detail={"error_code": "ITEM_NOT_FOUND", "message": "Item não encontrado."})
    return item


def _not_running(job: BatchJob) -> None:
    if job.status == "running":
        raise HTTPException(
            status_code=409,
            detail={"error_code": "JOB_RUNNING", "message": "O lote já está em processamento."},
        )


def _dispatch(background: BackgroundTasks, runner: BatchRunner, task: str, target_id: str) -> None:
    """task: 'job' (fila inteira) ou 'item'."""
    if config.BATCH_RUNNER == "rq":
        from vitrine.infra.queue.rq import get_queue

        fn = "run_batch_job" if task == "job" else "run_batch_item"
        get_queue().enqueue(f"vitrine.workers.batch_worker.{fn}", target_id)
        return
    background.add_task(runner.process_queue if task == "job" else runner.process_item, target_id)


def _job_response(db: Session, job: BatchJob) -> dict:
    return batch_items.batch_job_to_dict(job, list_batch_items(db, job.id))


# ---- lotes ----
@router.post("/jobs", status_code=201)
def create_job(
    body: BatchCreateBody,
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    job = create_batch_job(db, uid=user.uid, settings=_validated_settings(body.settings))
    job_log(str(job.id), "job created")
    return _job_response(db, job)


@router.get("/jobs")
def list_jobs(
    limit: int = 50,
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return [
        {
            "id": str(j.id),
            "status": j.status,
            "createdAt": j.created_at.isoformat() if j.created_at else None,
            "completedAt": j.completed_at.isoformat() if j.completed_at else None,
        }
        for j in list_batch_jobs(db, user.uid, limit=min(max(limit, 1), 200))
    ]


@router.get("/jobs/{job_id}")
def get_job(
    job_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return _job_response(db, _owned_job(db, user, job_id))


@router.put("/jobs/{job_id}/settings")
def update_settings(
    job_id: str,
    body: BatchCreateBody,
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    job = _owned_job(db, user, job_id)
    _not_running(job)
    job.settings = _validated_settings(body.settings)
    db.commit()
    return _job_response(db, job)


# ---- itens ----
@router.post("/jobs/{job_id}/files", status_code=201)
def upload_files(
    job_id: str,
    files: List[UploadFile] = File(...),
    describe: bool = Form(True),
    user: CurrentUser = Depends(rate_limit),
    client: GenerationClient = Depends(get_generation_client),
    db: Session = Depends(get_db),
):
    job = _owned_job(db, user, job_id)
    uploaded = [
        (f.filename or "imagem.png", read_upload_or_413(f, field="files"), f.content_type or "image/png")
        for f in files
    ]
    created = batch_items.add_uploaded_files(db, job, uploaded)
    job_log(job_id, f"{len(uploaded)} files added as {len(created)} items")

    if describe and created:
        batch_items.describe_items(db, created, client.with_costs(CostRecorder(db, user.uid, ROOT_ID)))
    return [batch_items.batch_item_to_dict(i) for i in created]


@router.post("/jobs/{job_id}/manual", status_code=201)
def add_manual_product(
    job_id: str,
    baseName: str = Form(...),
    front: Optional[UploadFile] = File(None),
    back: Optional[UploadFile] = File(None),
    totalLook: Optional[UploadFile] = File(None),
    describe: bool = Form(True),
    user: CurrentUser = Depends(rate_limit),
    client: GenerationClient = Depends(get_generation_client),
    db: Session = Depends(get_db),
):
    job = _owned_job(db, user, job_id)
    item = batch_items.add_manual_item(
        db,
        job,
        baseName,
        front=optional_upload(front, field="front"),
        back=optional_upload(back, field="back"),
        total_look=optional_upload(totalLook, field="totalLook"),
    )
    job_log(job_id, f"manual product added: {item.sku}")

    if describe:
        batch_items.describe_items(db, [item], client.with_costs(CostRecorder(db, user.uid, ROOT_ID)))
    return batch_items.batch_item_to_dict(item)


@router.post("/jobs/{job_id}/spreadsheet")
def apply_spreadsheet(
    job_id: str,
    body: SpreadsheetBody,
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    job = _owned_job(db, user, job_id)
    matched = batch_items.apply_spreadsheet(db, job, body.rows)
    job_log(job_id, "spreadsheet applied", extra={"matched": matched})
    return {"matched": matched, "job": _job_response(db, job)}


@router.patch("/jobs/{job_id}/items/{item_id}")
def update_item(
    job_id: str,
    item_id: str,
    body: BatchItemUpdateBody,
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    job = _owned_job(db, user, job_id)
    item = _owned_item(db, job, item_id)
    changes = body.model_dump(exclude_unset=True)
    if "model_gender" in changes:
        item.model_gender = changes["model_gender"]
    if "model_age" in changes:
        item.model_age = (changes["model_age"] or "").strip() or None
    if "clothing_notes" in changes:
        item.clothing_notes = changes["clothing_notes"]
    db.commit()
    return batch_items.batch_item_to_dict(item)


@router.delete("/jobs/{job_id}/items/{item_id}")
def remove_item(
    job_id: str,
    item_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    job = _owned_job(db, user, job_id)
    batch_items.remove_item(db, _owned_item(db, job, item_id))
    return {"ok": True}


@router.post("/jobs/{job_id}/describe")
def describe_job_items(
    job_id: str,
    body: DescribeItemsBody,
    user: CurrentUser = Depends(rate_limit),
    client: GenerationClient = Depends(get_generation_client),
    db: Session = Depends(get_db),
):
    job = _owned_job(db, user, job_id)
    targets = list_batch_items(db, job.id)
    if body.item_ids:
        wanted = set(body.item_ids)
        targets = [i for i in targets if str(i.id) in wanted]
    described = batch_items.describe_items(db, targets, client.with_costs(CostRecorder(db, user.uid, ROOT_ID)))
    return {"described": described, "items": [batch_items.batch_item_to_dict(i) for i in targets]}


# ---- execução ----
@router.post("/jobs/{job_id}/start", status_code=202)
def start_job(
    job_id: str,
    background: BackgroundTasks,
    user: CurrentUser = Depends(rate_limit),
    runner: BatchRunner = Depends(get_batch_runner),
    db: Session = Depends(get_db),
):
    job = _owned_job(db, user, job_id)
    _not_running(job)
    queued, total_ms = prepare_run(db, job)
    if queued == 0:
        raise HTTPException(
            status_code=400,
            detail={"error_code": "QUEUE_EMPTY", "message": "Não há itens na fila para processar."},
        )
    _dispatch(background, runner, "job", job_id)
    return {
        "jobId": job_id,
        "queued": queued,
        "estimateMs": total_ms,
        "estimatedTime": f"Tempo estimado: {format_duration(total_ms)}",
    }


@router.post("/jobs/{job_id}/cancel")
def cancel(
    job_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    job = _owned_job(db, user, job_id)
    requeued = cancel_job(db, job)
    return {"cancelRequested": True, "requeued": requeued}


@router.post("/jobs/{job_id}/items/{item_id}/cancel")
def cancel_one(
    job_id: str,
    item_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    job = _owned_job(db, user, job_id)
    item = _owned_item(db, job, item_id)
    cancel_item(db, item)
    return batch_items.batch_item_to_dict(item)


@router.post("/jobs/{job_id}/items/{item_id}/process", status_code=202)
def process_one(
    job_id: str,
    item_id: str,
    background: BackgroundTasks,
    user: CurrentUser = Depends(rate_limit),
    runner: BatchRunner = Depends(get_batch_runner),
    db: Session = Depends(get_db),
):
    job = _owned_job(db, user, job_id)
    item = _owned_item(db, job, item_id)
    if item.status == "processing":
        raise HTTPException(
            status_code=409,
            detail={"error_code": "ITEM_PROCESSING", "message": "O item já está em processamento."},
        )
    prepare_single_item(db, item)
    _dispatch(background, runner, "item", item_id)
    return batch_items.batch_item_to_dict(item)


# ---- presets ----
@router.get("/presets")
def get_presets(
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return [{"name": p.name, "settings": p.settings} for p in list_presets(db, user.uid)]


@router.post("/presets", status_code=201)
def save_preset(
    body: PresetBody,
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    name = body.name.strip()
    if not name:
        raise HTTPException(
            status_code=400,
            detail={"error_code": "NAME_REQUIRED", "message": "O nome do preset é obrigatório."},
        )
    row = upsert_preset(db, uid=user.uid, name=name, settings=_validated_settings(body.settings or {}))
    return {"name": row.name, "settings": row.settings}


@router.post("/jobs/{job_id}/presets/{name}/load")
def load_preset(
    job_id: str,
    name: str,
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    job = _owned_job(db, user, job_id)
    _not_running(job)
    preset = get_preset_by_name(db, user.uid, name)
    if preset is None:
        raise HTTPException(status_code=404, detail={"error_code": "PRESET_NOT_FOUND", "message": "Preset não encontrado."})
    job.settings = _validated_settings(preset.settings)
    db.commit()
    return _job_response(db, job)


@router.delete("/presets/{name}")
def remove_preset(
    name: str,
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    preset = get_preset_by_name(db, user.uid, name)
    if preset is None:
        raise HTTPException(status_code=404, detail={"error_code": "PRESET_NOT_FOUND", "message": "Preset não encontrado."})
    delete_preset(db, preset)
    return {"ok": True}
