"""Funções executadas pelo RQ Worker (fila "batch")."""

from __future__ import annotations

import logging

from vitrine.batch.orchestrator import BatchRunner
from vitrine.core.config import STUCK_ITEM_TIMEOUT_SECONDS
from vitrine.core.logging import job_log
from vitrine.infra.db.crud import fail_stuck_items
from vitrine.infra.db.database import SessionLocal

logger = logging.getLogger(__name__)


def run_batch_job(job_id: str) -> None:
    job_log(job_id, "picked by worker")
    BatchRunner().process_queue(job_id)


def run_batch_item(item_id: str) -> bool:
    return BatchRunner(concurrency=1).process_item(item_id)


def sweep_stuck_items(timeout_seconds: int = STUCK_ITEM_TIMEOUT_SECONDS) -> int:
    db = SessionLocal()
    try:
        count = fail_stuck_items(db, timeout_seconds)
    finally:
        db.close()
    if count:
        logger.warning("%d batch items stuck in processing were marked as error", count)
    return count
