import secrets
import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from vitrine.infra.db.database import Base

ROOT_ID = "root"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class User(Base):
    __tablename__ = "users"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)

    email = Column(String, nullable=False, unique=True, index=True)
    display_name = Column(String, nullable=True)
    role = Column(String, nullable=False, default="user")  # admin|user
    disabled = Column(Boolean, nullable=False, default=False)
    last_sign_in_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), default=_utcnow, server_default=func.now())


class AccessToken(Base):
    __tablename__ = "access_tokens"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    token = Column(String, nullable=False, unique=True, index=True)
    is_active = Column(Boolean, nullable=False, default=True)
    expires_at = Column(DateTime(timezone=True), nullable=True)
    last_used_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), default=_utcnow, server_default=func.now())

    user = relationship("User")

    @staticmethod
    def generate() -> str:
        return secrets.token_urlsafe(32)


class GalleryItem(Base):
    __tablename__ = "gallery_items"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    uid = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    name = Column(String, nullable=False)
    type = Column(String, nullable=False, default="file")  # folder|file
    parent_id = Column(String(64), nullable=False, default=ROOT_ID, index=True)

    url = Column(String, nullable=True)
    storage_path = Column(String, nullable=True)
    original_url = Column(String, nullable=True)
    original_storage_path = Column(String, nullable=True)
    item_metadata = Column("metadata", JSON, nullable=True)

    # preenchido quando o item vai para a Lixeira
    original_parent_id = Column(String(64), nullable=True)

    created_at = Column(DateTime(timezone=True), default=_utcnow, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), default=_utcnow, server_default=func.now(), onupdate=_utcnow)


class CostLog(Base):
    __tablename__ = "cost_logs"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    project_id = Column(String(64), nullable=False, default=ROOT_ID, index=True)

    image_name = Column(String, nullable=False)
    operation = Column(String, nullable=False)
    cost = Column(Float, nullable=False)
    details = Column(String(150), nullable=False, default="")

    created_at = Column(DateTime(timezone=True), default=_utcnow, server_default=func.now(), index=True)


class TimingRecord(Base):
    __tablename__ = "timing_records"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=True, index=True)

    dimensions_key = Column(String(32), nullable=False, default="default")
    duration_ms = Column(Integer, nullable=False)

    created_at = Column(DateTime(timezone=True), default=_utcnow, server_default=func.now())


class TrainedAge(Base):
    __tablename__ = "trained_ages"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    age = Column(String, nullable=False, unique=True, index=True)
    characteristics = Column(Text, nullable=False)

    created_at = Column(DateTime(timezone=True), default=_utcnow, server_default=func.now())


class BatchJob(Base):
    __tablename__ = "batch_jobs"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    uid = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    status = Column(String, nullable=False, default="idle")  # idle|running|done|cancelled
    settings = Column(JSON, nullable=False, default=dict)
    spreadsheet_loaded = Column(Boolean, nullable=False, default=False)
    # SKU normalizado -> linha da planilha
    spreadsheet = Column(JSON, nullable=True)

    cancel_requested = Column(Boolean, nullable=False, default=False)
    estimate_ms = Column(Integer, nullable=True)
    started_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), default=_utcnow, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), default=_utcnow, server_default=func.now(), onupdate=_utcnow)

    items = relationship(
        "BatchItem",
        back_populates="job",
        order_by="BatchItem.position",
        cascade="all, delete-orphan",
    )


class BatchItem(Base):
    __tablename__ = "batch_items"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    job_id = Column(Uuid, ForeignKey("batch_jobs.id", ondelete="CASCADE"), nullable=False, index=True)
    position = Column(Integer, nullable=False, default=0)

    sku = Column(String, nullable=False)
    base_name = Column(String, nullable=False)
    # [{"name", "storage_path", "mime_type", "view"}]; "view" só em itens manuais
    files = Column(JSON, nullable=False, default=list)
    is_manual = Column(Boolean, nullable=False, default=False)

    item_metadata = Column("metadata", JSON, nullable=True)
    excel_match = Column(Boolean, nullable=False, default=False)
    ai_description = Column(JSON, nullable=True)
    clothing_notes = Column(Text, nullable=True)
    model_gender = Column(String, nullable=True)
    model_age = Column(String, nullable=True)

    status = Column(String, nullable=False, default="queued")  # queued|processing|done|error
    progress_status = Column(String, nullable=True)
    progress_percentage = Column(Integer, nullable=False, default=0)
    error = Column(Text, nullable=True)
    cancel_requested = Column(Boolean, nullable=False, default=False)

    result_item_ids = Column(JSON, nullable=False, default=list)
    parent_id = Column(String(64), nullable=True)

    processing_started_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    duration_ms = Column(Integer, nullable=True)

    created_at = Column(DateTime(timezone=True), default=_utcnow, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), default=_utcnow, server_default=func.now(), onupdate=_utcnow)

    job = relationship("BatchJob", back_populates="items")


class BatchPreset(Base):
    __tablename__ = "batch_presets"
    __table_args__ = (UniqueConstraint("uid", "name", name="uq_batch_presets_uid_name"),)

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    uid = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    name = Column(String, nullable=False)
    settings = Column(JSON, nullable=False, default=dict)

    created_at = Column(DateTime(timezone=True), default=_utcnow, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), default=_utcnow, server_default=func.now(), onupdate=_utcnow)


class EditorSession(Base):
    __tablename__ = "editor_sessions"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    uid = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    project_id = Column(String(64), nullable=False, default=ROOT_ID)

    image_name = Column(String, nullable=False)
    # [{"storage_path", "url"}]
    history = Column(JSON, nullable=False, default=list)
    history_index = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime(timezone=True), default=_utcnow, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), default=_utcnow, server_default=func.now(), onupdate=_utcnow)
