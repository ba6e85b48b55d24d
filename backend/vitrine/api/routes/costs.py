from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from vitrine.infra.db.crud import as_uuid, list_cost_logs
from vitrine.infra.db.database import get_db
from vitrine.ledger.costs import cost_log_to_dict, summarize_costs
from vitrine.ledger.timing import estimate_ms, format_duration
from vitrine.security.auth import CurrentUser, get_current_user

router = APIRouter(prefix="/api", tags=["costs"])


@router.get("/costs")
def list_costs(
    projectId: Optional[str] = None,
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return [cost_log_to_dict(r) for r in list_cost_logs(db, user_id=user.uid, project_id=projectId)]


@router.get("/costs/summary")
def cost_summary(
    projectId: Optional[str] = None,
    userId: Optional[str] = None,
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    target = user.uid
    if userId and user.is_admin:
        target = as_uuid(userId) or user.uid
    return summarize_costs(db, user_id=target, project_id=projectId)


@router.get("/timing/estimate")
def timing_estimate(
    width: Optional[int] = None,
    height: Optional[int] = None,
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    ms = estimate_ms(db, user_id=user.uid, width=width, height=height)
    return {"estimateMs": ms, "estimate": format_duration(ms)}
