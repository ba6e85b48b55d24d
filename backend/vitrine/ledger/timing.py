from __future__ import annotations

from typing import Optional
from uuid import UUID

from sqlalchemy.orm import Session

from vitrine.infra.db.crud import add_timing_record, list_timing_records, trim_timing_records

HISTORY_LIMIT = 100
SAMPLE_SIZE = 5
DEFAULT_ESTIMATE_MS = 30_000
RESIZED_ESTIMATE_MS = 90_000
DEFAULT_KEY = "default"


def dimensions_key(width: Optional[int], height: Optional[int]) -> str:
    """'300x200' and '200x300' share a key: '200x300'."""
    w = int(width or 0)
    h = int(height or 0)
    if w > 0 and h > 0:
        a, b = sorted((w, h))
        return f"{a}x{b}"
    return DEFAULT_KEY


def record_completion(
    db: Session, *, user_id: Optional[UUID], width: Optional[int], height: Optional[int], duration_ms: float
) -> None:
    if duration_ms <= 0:
        return
    add_timing_record(db, user_id=user_id, dimensions_key=dimensions_key(width, height), duration_ms=int(duration_ms))
    trim_timing_records(db, user_id=user_id, keep=HISTORY_LIMIT)


def estimate_ms(db: Session, *, user_id: Optional[UUID], width: Optional[int], height: Optional[int]) -> int:
    key = dimensions_key(width, height)
    rows = list_timing_records(db, user_id=user_id, dimensions_key=key, limit=SAMPLE_SIZE)
    if rows:
        return int(round(sum(r.duration_ms for r in rows) / len(rows)))
    return DEFAULT_ESTIMATE_MS if key == DEFAULT_KEY else RESIZED_ESTIMATE_MS


def format_duration(ms: float) -> str:
    if ms <= 0:
        return ""
    seconds = int(ms / 1000 + 0.5)
    minutes, rest = divmod(seconds, 60)
    if minutes > 0:
        return f"~{minutes} min {rest} seg"
    return f"~{rest} seg"


def parallel_estimate_ms(avg_ms: float, remaining: int, concurrency: int) -> float:
    if remaining <= 0:
        return 0.0
    return avg_ms * remaining / min(remaining, max(1, concurrency))
