# backend/workshop/routers/workorders.py
from typing import List, Optional

from fastapi import APIRouter, Depends, Path, Query, status
from sqlalchemy.orm import Session

from ..core.api import list_meta, ok
from ..core.db import get_db
from ..domain.confirm import Confirm
from ..domain.statuses import PriorityLiteral, WorkOrderStatusLiteral
from ..schemas.workorder import (
    AssignIn, DispositionChoice, EstimationRead, MissedDeadlineIn, ReestimateIn, TransitionIn,
    WorkOrderCreate, WorkOrderRead, WorkOrderUpdate,
)
from ..services import disposition_service, estimation_service, inventory_service, workorder_service
from .deps import actor_name, header_confirm

router = APIRouter(prefix="/workorders", tags=["workorders"])


def _read(wo) -> WorkOrderRead:
    return WorkOrderRead.model_validate(wo)


# --- LIST ---
@router.get("")
def list_workorders(
    status_s: Optional[WorkOrderStatusLiteral] = Query(None),
    priority_s: Optional[PriorityLiteral] = Query(None),
    technician_id: Optional[int] = Query(None, ge=1),
    q: Optional[str] = Query(None, description="Order number, plate or problem text"),
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
    sort: str = Query("-WorkOrderID"),
    db: Session = Depends(get_db),
):
    rows = workorder_service.list_workorders(
        db,
        status_s=status_s,
        priority_s=priority_s,
        technician_id=technician_id,
        q=q,
        skip=skip,
        limit=limit,
        sort=sort,
    )
    items = [_read(wo) for wo in rows]
    return ok(items, meta=list_meta(items))


# --- CREATE ---
@router.post("", status_code=status.HTTP_201_CREATED)
def create_workorder(payload: WorkOrderCreate, db: Session = Depends(get_db)):
    wo = workorder_service.create_workorder(db, payload)
    return ok(_read(wo), status_code=status.HTTP_201_CREATED)


# --- READ ---
@router.get("/by-number/{order_no}")
def get_workorder_by_number(order_no: str, db: Session = Depends(get_db)):
    return ok(_read(workorder_service.get_by_number(db, order_no)))


@router.get("/{workorder_id}")
def get_workorder(workorder_id: int = Path(..., ge=1), db: Session = Depends(get_db)):
    return ok(_read(workorder_service.get_workorder(db, workorder_id)))


@router.get("/{workorder_id}/totals")
def get_totals(workorder_id: int = Path(..., ge=1), db: Session = Depends(get_db)):
    wo = workorder_service.get_workorder(db, workorder_id)
    return ok(workorder_service.compute_totals(wo))


# --- EDIT ---
@router.patch("/{workorder_id}")
def update_workorder(payload: WorkOrderUpdate, workorder_id: int = Path(..., ge=1), db: Session = Depends(get_db)):
    return ok(_read(workorder_service.update_workorder(db, workorder_id, payload)))


@router.post("/{workorder_id}/assign")
def assign(payload: AssignIn, workorder_id: int = Path(..., ge=1), db: Session = Depends(get_db)):
    wo = workorder_service.assign(
        db,
        workorder_id,
        technician_id=payload.TechnicianID,
        assistant_ids=payload.AssistantIDs,
        external_contractor=payload.ExternalContractor,
    )
    return ok(_read(wo))


@router.post("/{workorder_id}/approve")
def approve(workorder_id: int = Path(..., ge=1), db: Session = Depends(get_db)):
    return ok(_read(workorder_service.approve(db, workorder_id)))


# --- STATUS ---
@router.post("/{workorder_id}/transition")
def transition(
    payload: TransitionIn,
    workorder_id: int = Path(..., ge=1),
    confirm: Confirm = Depends(header_confirm),
    actor: str = Depends(actor_name),
    db: Session = Depends(get_db),
):
    wo, report = workorder_service.transition_with_report(
        db,
        workorder_id,
        payload.Status_s,
        confirm=confirm,
        dispositions=payload.dispositions,
        actor=actor,
    )
    meta = {"completion": report.model_dump()} if report is not None else None
    return ok(_read(wo), meta=meta)


@router.delete("/{workorder_id}")
def delete_workorder(
    workorder_id: int = Path(..., ge=1),
    confirm: Confirm = Depends(header_confirm),
    db: Session = Depends(get_db),
):
    workorder_service.delete_workorder(db, workorder_id, confirm=confirm)
    return ok({"deleted": workorder_id})


# --- ESTIMATION ---
@router.post("/{workorder_id}/reestimate")
def reestimate(payload: ReestimateIn, workorder_id: int = Path(..., ge=1), db: Session = Depends(get_db)):
    attempt = estimation_service.reestimate(
        db,
        workorder_id,
        start=payload.EstimatedStart,
        hours=payload.EstimatedHours,
        reasoning=payload.Reasoning,
    )
    return ok(EstimationRead.model_validate(attempt))


@router.post("/{workorder_id}/missed-deadline", status_code=status.HTTP_201_CREATED)
def missed_deadline(payload: MissedDeadlineIn, workorder_id: int = Path(..., ge=1), db: Session = Depends(get_db)):
    attempt = estimation_service.record_missed_deadline(
        db,
        workorder_id,
        failure_reason=payload.FailureReason,
        start=payload.EstimatedStart,
        hours=payload.EstimatedHours,
        reasoning=payload.Reasoning,
    )
    return ok(EstimationRead.model_validate(attempt), status_code=status.HTTP_201_CREATED)


# --- LEDGER ---
@router.post("/{workorder_id}/post-withdrawals")
def post_withdrawals(
    workorder_id: int = Path(..., ge=1),
    actor: str = Depends(actor_name),
    db: Session = Depends(get_db),
):
    return ok(inventory_service.post_withdrawals(db, workorder_id, actor=actor))


@router.get("/{workorder_id}/removable-parts")
def removable_parts(workorder_id: int = Path(..., ge=1), db: Session = Depends(get_db)):
    wo = workorder_service.get_workorder(db, workorder_id)
    items = [
        {"PartName": p.name, "Quantity": float(p.quantity), "Unit": p.unit, "StockItemID": p.stock_item_id}
        for p in disposition_service.removable_parts(wo).values()
    ]
    return ok(items, meta=list_meta(items))


@router.post("/{workorder_id}/dispositions")
def resolve_dispositions(
    payload: List[DispositionChoice],
    workorder_id: int = Path(..., ge=1),
    actor: str = Depends(actor_name),
    db: Session = Depends(get_db),
):
    return ok(disposition_service.resolve_dispositions(db, workorder_id, payload, actor=actor))
