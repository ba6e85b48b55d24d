# backend/vitrine/infra/db/crud.py
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Union
from uuid import UUID

from sqlalchemy import delete, func, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from vitrine.infra.db.models import (
    ROOT_ID,
    AccessToken,
    BatchItem,
    BatchJob,
    BatchPreset,
    CostLog,
    EditorSession,
    GalleryItem,
    TimingRecord,
    TrainedAge,
    User,
)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# -----------------------------------------------------------------------------
# Helpers
# -----------------------------------------------------------------------------
def as_uuid(value: Union[str, UUID, None]) -> Optional[UUID]:
    if value is None or isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except (TypeError, ValueError):
        return None


# -----------------------------------------------------------------------------
# USERS / TOKENS
# -----------------------------------------------------------------------------
def create_user(db: Session, *, email: str, display_name: Optional[str] = None, role: str = "user") -> User:
    row = User(email=email.lower().strip(), display_name=display_name, role=role)
    db.add(row)
    db.commit()
    db.refresh(row)
    return row


def get_user(db: Session, user_id: Union[str, UUID]) -> Optional[User]:
    uid = as_uuid(user_id)
    if uid is None:
        return None
    return db.execute(select(User).where(User.id == uid)).scalar_one_or_none()


def get_user_by_email(db: Session, email: str) -> Optional[User]:
    stmt = select(User).where(User.email == email.lower().strip())
    return db.execute(stmt).scalar_one_or_none()


def list_users(db: Session) -> List[User]:
    return list(db.execute(select(User).order_by(User.created_at.asc())).scalars().all())


def count_admins(db: Session) -> int:
    stmt = select(func.count(User.id)).where(User.role == "admin")
    return int(db.execute(stmt).scalar_one() or 0)


def create_access_token(db: Session, *, user_id: UUID, ttl_hours: Optional[int] = None) -> AccessToken:
    expires_at = utcnow() + timedelta(hours=ttl_hours) if ttl_hours else None
    row = AccessToken(user_id=user_id, token=AccessToken.generate(), expires_at=expires_at, is_active=True)
    db.add(row)
    db.commit()
    db.refresh(row)
    return row


def get_active_token(db: Session, token: str) -> Optional[AccessToken]:
    stmt = select(AccessToken).where(
        AccessToken.token == token,
        AccessToken.is_active.is_(True),
        or_(AccessToken.expires_at.is_(None), AccessToken.expires_at > utcnow()),
    )
    return db.execute(stmt).scalar_one_or_none()


def touch_access_token(db: Session, row: AccessToken) -> None:
    now = utcnow()
    row.last_used_at = now
    if row.user is not None:
        row.user.last_sign_in_at = now
    db.commit()


def revoke_access_token(db: Session, row: AccessToken) -> None:
    row.is_active = False
    db.commit()


# -----------------------------------------------------------------------------
# GALLERY
# -----------------------------------------------------------------------------
def get_gallery_item(db: Session, item_id: Union[str, UUID]) -> Optional[GalleryItem]:
    iid = as_uuid(item_id)
    if iid is None:
        return None
    return db.execute(select(GalleryItem).where(GalleryItem.id == iid)).scalar_one_or_none()


def get_owned_item(db: Session, uid: UUID, item_id: Union[str, UUID]) -> Optional[GalleryItem]:
    item = get_gallery_item(db, item_id)
    if item is None or item.uid != uid:
        return None
    return item


def list_children(
    db: Session, uid: UUID, parent_id: str, *, item_type: Optional[str] = None
) -> List[GalleryItem]:
    stmt = select(GalleryItem).where(GalleryItem.uid == uid, GalleryItem.parent_id == parent_id)
    if item_type:
        stmt = stmt.where(GalleryItem.type == item_type)
    stmt = stmt.order_by(GalleryItem.created_at.asc())
    return list(db.execute(stmt).scalars().all())


def list_user_files(db: Session, uid: UUID) -> List[GalleryItem]:
    stmt = (
        select(GalleryItem)
        .where(GalleryItem.uid == uid, GalleryItem.type == "file")
        .order_by(GalleryItem.created_at.desc())
    )
    return list(db.execute(stmt).scalars().all())


def find_folder_by_name(db: Session, uid: UUID, name: str, parent_id: str = ROOT_ID) -> Optional[GalleryItem]:
    stmt = (
        select(GalleryItem)
        .where(
            GalleryItem.uid == uid,
            GalleryItem.type == "folder",
            GalleryItem.name == name,
            GalleryItem.parent_id == parent_id,
        )
        .order_by(GalleryItem.created_at.asc())
        .limit(1)
    )
    return db.execute(stmt).scalars().first()


def create_gallery_item(
    db: Session,
    *,
    uid: UUID,
    name: str,
    item_type: str = "file",
    parent_id: str = ROOT_ID,
    url: Optional[str] = None,
    storage_path: Optional[str] = None,
    original_url: Optional[str] = None,
    original_storage_path: Optional[str] = None,
    metadata: Optional[Dict[str, Any]] = None,
) -> GalleryItem:
    row = GalleryItem(
        uid=uid,
        name=name,
        type=item_type,
        parent_id=parent_id or ROOT_ID,
        url=url,
        storage_path=storage_path,
        original_url=original_url,
        original_storage_path=original_storage_path,
        item_metadata=metadata,
    )
    db.add(row)
    db.commit()
    db.refresh(row)
    return row


def delete_gallery_rows(db: Session, items: List[GalleryItem]) -> None:
    for item in items:
        db.delete(item)
    db.commit()


# -----------------------------------------------------------------------------
# COST LEDGER
# -----------------------------------------------------------------------------
def add_cost_log(
    db: Session,
    *,
    user_id: Optional[UUID],
    image_name: str,
    operation: str,
    cost: float,
    details: str = "",
    project_id: str = ROOT_ID,
) -> CostLog:
    row = CostLog(
        user_id=user_id,
        image_name=image_name,
        operation=operation,
        cost=float(cost),
        details=(details or "")[:150],
        project_id=project_id or ROOT_ID,
    )
    db.add(row)
    db.commit()
    db.refresh(row)
    return row


def list_cost_logs(db: Session, *, user_id: Optional[UUID] = None, project_id: Optional[str] = None) -> List[CostLog]:
    stmt = select(CostLog).order_by(CostLog.created_at.desc())
    if user_id is not None:
        stmt = stmt.where(CostLog.user_id == user_id)
    if project_id:
        stmt = stmt.where(CostLog.project_id == project_id)
    return list(db.execute(stmt).scalars().all())


# -----------------------------------------------------------------------------
# TIMING
# -----------------------------------------------------------------------------
def add_timing_record(db: Session, *, user_id: Optional[UUID], dimensions_key: str, duration_ms: int) -> TimingRecord:
    row = TimingRecord(user_id=user_id, dimensions_key=dimensions_key, duration_ms=int(duration_ms))
    db.add(row)
    db.commit()
    db.refresh(row)
    return row


def list_timing_records(
    db: Session, *, user_id: Optional[UUID], dimensions_key: Optional[str] = None, limit: Optional[int] = None
) -> List[TimingRecord]:
    stmt = select(TimingRecord).where(TimingRecord.user_id == user_id).order_by(TimingRecord.created_at.desc())
    if dimensions_key:
        stmt = stmt.where(TimingRecord.dimensions_key == dimensions_key)
    if limit:
        stmt = stmt.limit(limit)
    return list(db.execute(stmt).scalars().all())


def trim_timing_records(db: Session, *, user_id: Optional[UUID], keep: int) -> int:
    rows = list_timing_records(db, user_id=user_id)
    stale = [r.id for r in rows[keep:]]
    if stale:
        db.execute(delete(TimingRecord).where(TimingRecord.id.in_(stale)))
        db.commit()
    return len(stale)


# -----------------------------------------------------------------------------
# TRAINED AGES
# -----------------------------------------------------------------------------
def get_trained_age(db: Session, age: str) -> Optional[TrainedAge]:
    return db.execute(select(TrainedAge).where(TrainedAge.age == age)).scalar_one_or_none()


def save_trained_age(db: Session, *, age: str, characteristics: str) -> TrainedAge:
    row = TrainedAge(age=age, characteristics=characteristics)
    db.add(row)
    try:
        db.commit()
    except IntegrityError:
        # outro processo treinou a mesma idade antes
        db.rollback()
        existing = get_trained_age(db, age)
        if existing is None:
            raise
        return existing
    db.refresh(row)
    return row


# -----------------------------------------------------------------------------
# BATCH JOBS / ITEMS
# -----------------------------------------------------------------------------
def create_batch_job(db: Session, *, uid: UUID, settings: Dict[str, Any]) -> BatchJob:
    row = BatchJob(uid=uid, settings=settings, status="idle")
    db.add(row)
    db.commit()
    db.refresh(row)
    return row


def get_batch_job(db: Session, job_id: Union[str, UUID]) -> Optional[BatchJob]:
    jid = as_uuid(job_id)
    if jid is None:
        return None
    return db.execute(select(BatchJob).where(BatchJob.id == jid)).scalar_one_or_none()


def list_batch_jobs(db: Session, uid: UUID, limit: int = 50) -> List[BatchJob]:
    stmt = select(BatchJob).where(BatchJob.uid == uid).order_by(BatchJob.created_at.desc()).limit(limit)
    return list(db.execute(stmt).scalars().all())


def next_item_position(db: Session, job_id: UUID) -> int:
    stmt = select(func.coalesce(func.max(BatchItem.position), -1)).where(BatchItem.job_id == job_id)
    return int(db.execute(stmt).scalar_one()) + 1


def add_batch_item(db: Session, *, job_id: UUID, commit: bool = True, **fields: Any) -> BatchItem:
    if "position" not in fields:
        fields["position"] = next_item_position(db, job_id)
    row = BatchItem(job_id=job_id, **fields)
    db.add(row)
    if commit:
        db.commit()
        db.refresh(row)
    else:
        db.flush()
    return row


def get_batch_item(db: Session, item_id: Union[str, UUID]) -> Optional[BatchItem]:
    iid = as_uuid(item_id)
    if iid is None:
        return None
    return db.execute(select(BatchItem).where(BatchItem.id == iid)).scalar_one_or_none()


def list_batch_items(db: Session, job_id: UUID, *, status: Optional[str] = None) -> List[BatchItem]:
    stmt = select(BatchItem).where(BatchItem.job_id == job_id).order_by(BatchItem.position.asc())
    if status:
        stmt = stmt.where(BatchItem.status == status)
    return list(db.execute(stmt).scalars().all())


def set_item_progress(db: Session, item: BatchItem, status_text: str, percentage: int) -> None:
    item.progress_status = status_text
    item.progress_percentage = int(percentage)
    db.commit()


def claim_item(db: Session, item: BatchItem) -> bool:
    """queued -> processing in a single UPDATE; False when another worker got there first."""
    result = db.execute(
        update(BatchItem)
        .where(BatchItem.id == item.id, BatchItem.status == "queued")
        .values(
            status="processing",
            processing_started_at=utcnow(),
            error=None,
            progress_status="Na fila...",
            progress_percentage=0,
        )
    )
    db.commit()
    db.refresh(item)
    return result.rowcount == 1


def mark_item_done(
    db: Session, item: BatchItem, *, result_item_ids: List[str], parent_id: Optional[str], duration_ms: int
) -> None:
    item.status = "done"
    item.result_item_ids = list(result_item_ids)
    item.parent_id = parent_id
    item.duration_ms = int(duration_ms)
    item.completed_at = utcnow()
    item.progress_status = "Concluído"
    item.progress_percentage = 100
    item.error = None
    db.commit()


def mark_item_error(db: Session, item: BatchItem, error_message: str) -> None:
    item.status = "error"
    item.error = (error_message or "")[:2000]
    item.completed_at = utcnow()
    item.progress_status = None
    db.commit()


def reset_item_to_queued(db: Session, item: BatchItem, *, clear_results: bool = False) -> None:
    item.status = "queued"
    item.progress_status = None
    item.progress_percentage = 0
    item.processing_started_at = None
    if clear_results:
        item.error = None
        item.result_item_ids = []
        item.parent_id = None
        item.duration_ms = None
        item.completed_at = None
    db.commit()


def fail_stuck_items(db: Session, timeout_seconds: int = 900) -> int:
    now = utcnow()
    cutoff = now - timedelta(seconds=timeout_seconds)

    stmt = select(BatchItem).where(
        BatchItem.status == "processing",
        BatchItem.processing_started_at.is_not(None),
        BatchItem.processing_started_at < cutoff,
    )
    items = list(db.execute(stmt).scalars().all())

    for it in items:
        it.status = "error"
        it.error = "Item ficou travado em processamento e foi finalizado por timeout."
        it.progress_status = None
        it.completed_at = now

    if items:
        db.commit()

    return len(items)


# -----------------------------------------------------------------------------
# BATCH PRESETS
# -----------------------------------------------------------------------------
def list_presets(db: Session, uid: UUID) -> List[BatchPreset]:
    stmt = select(BatchPreset).where(BatchPreset.uid == uid).order_by(BatchPreset.name.asc())
    return list(db.execute(stmt).scalars().all())


def get_preset_by_name(db: Session, uid: UUID, name: str) -> Optional[BatchPreset]:
    stmt = select(BatchPreset).where(BatchPreset.uid == uid, BatchPreset.name == name)
    return db.execute(stmt).scalar_one_or_none()


def upsert_preset(db: Session, *, uid: UUID, name: str, settings: Dict[str, Any]) -> BatchPreset:
    row = get_preset_by_name(db, uid, name)
    if row is None:
        row = BatchPreset(uid=uid, name=name, settings=settings)
        db.add(row)
    else:
        row.settings = settings
    db.commit()
    db.refresh(row)
    return row


def delete_preset(db: Session, row: BatchPreset) -> None:
    db.delete(row)
    db.commit()


# -----------------------------------------------------------------------------
# EDITOR SESSIONS
# -----------------------------------------------------------------------------
def create_editor_session(
    db: Session, *, uid: UUID, image_name: str, first_entry: Dict[str, Any], project_id: str = ROOT_ID
) -> EditorSession:
    row = EditorSession(
        uid=uid,
        image_name=image_name,
        project_id=project_id or ROOT_ID,
        history=[first_entry],
        history_index=0,
    )
    db.add(row)
    db.commit()
    db.refresh(row)
    return row


def get_editor_session(db: Session, session_id: Union[str, UUID]) -> Optional[EditorSession]:
    sid = as_uuid(session_id)
    if sid is None:
        return None
    return db.execute(select(EditorSession).where(EditorSession.id == sid)).scalar_one_or_none()
