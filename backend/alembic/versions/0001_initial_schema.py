"""initial schema

Revision ID: 0001_initial_schema
Revises:
Create Date: 2026-10-18
"""
from __future__ import annotations

from alembic import op
import sqlalchemy as sa

revision = "0001_initial_schema"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps(updated: bool = True) -> list:
    cols = [sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=True)]
    if updated:
        cols.append(sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=True))
    return cols


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("email", sa.String(), nullable=False),
        sa.Column("display_name", sa.String(), nullable=True),
        sa.Column("role", sa.String(), nullable=False),
        sa.Column("disabled", sa.Boolean(), nullable=False),
        sa.Column("last_sign_in_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(updated=False),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    op.create_table(
        "access_tokens",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("user_id", sa.Uuid(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("token", sa.String(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_used_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(updated=False),
    )
    op.create_index("ix_access_tokens_user_id", "access_tokens", ["user_id"])
    op.create_index("ix_access_tokens_token", "access_tokens", ["token"], unique=True)

    op.create_table(
        "gallery_items",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("uid", sa.Uuid(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("type", sa.String(), nullable=False),
        sa.Column("parent_id", sa.String(64), nullable=False),
        sa.Column("url", sa.String(), nullable=True),
        sa.Column("storage_path", sa.String(), nullable=True),
        sa.Column("original_url", sa.String(), nullable=True),
        sa.Column("original_storage_path", sa.String(), nullable=True),
        sa.Column("metadata", sa.JSON(), nullable=True),
        sa.Column("original_parent_id", sa.String(64), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_gallery_items_uid", "gallery_items", ["uid"])
    op.create_index("ix_gallery_items_parent_id", "gallery_items", ["parent_id"])

    op.create_table(
        "cost_logs",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("user_id", sa.Uuid(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("project_id", sa.String(64), nullable=False),
        sa.Column("image_name", sa.String(), nullable=False),
        sa.Column("operation", sa.String(), nullable=False),
        sa.Column("cost", sa.Float(), nullable=False),
        sa.Column("details", sa.String(150), nullable=False),
        *_timestamps(updated=False),
    )
    op.create_index("ix_cost_logs_user_id", "cost_logs", ["user_id"])
    op.create_index("ix_cost_logs_project_id", "cost_logs", ["project_id"])
    op.create_index("ix_cost_logs_created_at", "cost_logs", ["created_at"])

    op.create_table(
        "timing_records",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("user_id", sa.Uuid(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=True),
        sa.Column("dimensions_key", sa.String(32), nullable=False),
        sa.Column("duration_ms", sa.Integer(), nullable=False),
        *_timestamps(updated=False),
    )
    op.create_index("ix_timing_records_user_id", "timing_records", ["user_id"])

    op.create_table(
        "trained_ages",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("age", sa.String(), nullable=False),
        sa.Column("characteristics", sa.Text(), nullable=False),
        *_timestamps(updated=False),
    )
    op.create_index("ix_trained_ages_age", "trained_ages", ["age"], unique=True)

    op.create_table(
        "batch_jobs",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("uid", sa.Uuid(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("status", sa.String(), nullable=False),
        sa.Column("settings", sa.JSON(), nullable=False),
        sa.Column("spreadsheet_loaded", sa.Boolean(), nullable=False),
        sa.Column("spreadsheet", sa.JSON(), nullable=True),
        sa.Column("cancel_requested", sa.Boolean(), nullable=False),
        sa.Column("estimate_ms", sa.Integer(), nullable=True),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_batch_jobs_uid", "batch_jobs", ["uid"])

    op.create_table(
        "batch_items",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("job_id", sa.Uuid(), sa.ForeignKey("batch_jobs.id", ondelete="CASCADE"), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("sku", sa.String(), nullable=False),
        sa.Column("base_name", sa.String(), nullable=False),
        sa.Column("files", sa.JSON(), nullable=False),
        sa.Column("is_manual", sa.Boolean(), nullable=False),
        sa.Column("metadata", sa.JSON(), nullable=True),
        sa.Column("excel_match", sa.Boolean(), nullable=False),
        sa.Column("ai_description", sa.JSON(), nullable=True),
        sa.Column("clothing_notes", sa.Text(), nullable=True),
        sa.Column("model_gender", sa.String(), nullable=True),
        sa.Column("model_age", sa.String(), nullable=True),
        sa.Column("status", sa.String(), nullable=False),
        sa.Column("progress_status", sa.String(), nullable=True),
        sa.Column("progress_percentage", sa.Integer(), nullable=False),
        sa.Column("error", sa.Text(), nullable=True),
        sa.Column("cancel_requested", sa.Boolean(), nullable=False),
        sa.Column("result_item_ids", sa.JSON(), nullable=False),
        sa.Column("parent_id", sa.String(64), nullable=True),
        sa.Column("processing_started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("duration_ms", sa.Integer(), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_batch_items_job_id", "batch_items", ["job_id"])

    op.create_table(
        "batch_presets",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("uid", sa.Uuid(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("settings", sa.JSON(), nullable=False),
        *_timestamps(),
        sa.UniqueConstraint("uid", "name", name="uq_batch_presets_uid_name"),
    )
    op.create_index("ix_batch_presets_uid", "batch_presets", ["uid"])

    op.create_table(
        "editor_sessions",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("uid", sa.Uuid(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("project_id", sa.String(64), nullable=False),
        sa.Column("image_name", sa.String(), nullable=False),
        sa.Column("history", sa.JSON(), nullable=False),
        sa.Column("history_index", sa.Integer(), nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_editor_sessions_uid", "editor_sessions", ["uid"])


def downgrade() -> None:
    for table in (
        "editor_sessions",
        "batch_presets",
        "batch_items",
        "batch_jobs",
        "trained_ages",
        "timing_records",
        "cost_logs",
        "gallery_items",
        "access_tokens",
        "users",
    ):
        op.drop_table(table)
