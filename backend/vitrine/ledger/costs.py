"""Cost ledger for provider calls.

Every generation call is priced from a deterministic usage shape (characters
in/out and images in/out) and written to ``cost_logs``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional
from uuid import UUID

from sqlalchemy.orm import Session

from vitrine.infra.db.crud import add_cost_log, list_cost_logs
from vitrine.infra.db.models import ROOT_ID, CostLog

logger = logging.getLogger(__name__)

# USD
PRICE_INPUT_CHAR = 0.35 / 1_000_000
PRICE_OUTPUT_CHAR = 0.70 / 1_000_000
PRICE_INPUT_IMAGE = 0.000125
PRICE_OUTPUT_IMAGE = 0.020
MIN_COST = 0.00001

OPERATIONS = (
    "retouch",
    "model",
    "expand",
    "describe",
    "enhance",
    "training",
    "correction",
    "findDifferences",
)


@dataclass(frozen=True)
class UsageShape:
    input_chars: int = 0
    output_chars: int = 0
    input_images: int = 0
    output_images: int = 0

    def describe(self) -> str:
        parts = []
        if self.input_images or self.output_images:
            parts.append(f"{self.input_images} img in, {self.output_images} img out")
        if self.input_chars:
            parts.append(f"{self.input_chars} chars")
        if self.output_chars:
            parts.append(f"{self.output_chars} chars out")
        return ", ".join(parts)


def calculate_cost(shape: UsageShape) -> float:
    total = (
        shape.input_chars * PRICE_INPUT_CHAR
        + shape.output_chars * PRICE_OUTPUT_CHAR
        + shape.input_images * PRICE_INPUT_IMAGE
        + shape.output_images * PRICE_OUTPUT_IMAGE
    )
    return max(total, MIN_COST)


class CostRecorder:
    """Writes ledger rows for one user in one project (gallery folder)."""

    def __init__(self, db: Session, user_id: Optional[UUID], project_id: str = ROOT_ID) -> None:
        self.db = db
        self.user_id = user_id
        self.project_id = project_id or ROOT_ID

    def record(
        self,
        *,
        image_name: str,
        operation: str,
        shape: UsageShape,
        details: Optional[str] = None,
        project_id: Optional[str] = None,
    ) -> CostLog:
        if operation not in OPERATIONS:
            raise ValueError(f"Unknown cost operation: {operation}")
        cost = calculate_cost(shape)
        row = add_cost_log(
            self.db,
            user_id=self.user_id,
            image_name=image_name or "imagem",
            operation=operation,
            cost=cost,
            details=details if details is not None else shape.describe(),
            project_id=project_id or self.project_id,
        )
        logger.info("cost %s %s %.6f USD (%s)", operation, image_name, cost, row.details)
        return row


def cost_log_to_dict(row: CostLog) -> Dict[str, Any]:
    return {
        "id": str(row.id),
        "imageName": row.image_name,
        "operation": row.operation,
        "cost": row.cost,
        "timestamp": row.created_at.isoformat() if row.created_at else None,
        "details": row.details,
        "projectId": row.project_id,
        "userId": str(row.user_id) if row.user_id else None,
    }


def summarize_costs(
    db: Session, *, user_id: Optional[UUID] = None, project_id: Optional[str] = None
) -> List[Dict[str, Any]]:
    """Groups logs by image name; groups and logs come newest first."""
    groups: Dict[str, Dict[str, Any]] = {}
    for row in list_cost_logs(db, user_id=user_id, project_id=project_id):
        group = groups.get(row.image_name)
        if group is None:
            group = {"imageName": row.image_name, "totalCost": 0.0, "logs": []}
            groups[row.image_name] = group
        group["totalCost"] += row.cost
        group["logs"].append(cost_log_to_dict(row))
    return list(groups.values())
