# backend/workshop/services/workorder_service.py
"""
Work orders: creation, edits, assignment and the status state machine.

Reaching Completed runs three effects inside the same transaction, in order:
estimation finalize, stock withdrawals, removed-part dispositions. Each is
idempotent, so a retried completion posts nothing twice.
"""
from __future__ import annotations

import logging
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, List, Optional, Sequence, Tuple

from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from workshop.core import clock
from workshop.core.db import lock_for_update
from workshop.domain.confirm import Confirm, require_confirmation
from workshop.domain.constants import (
    ACTION_CANCEL_WORK_ORDER, ACTION_DELETE_WORK_ORDER, MONEY_PLACES, QTY_PLACES, WORK_ORDER_PREFIX,
)
from workshop.domain.errors import NotFound, PreconditionFailed, ValidationError, WorkshopError
from workshop.domain.statuses import (
    SOURCE_EXTERNAL, WO_CANCELLED, WO_COMPLETED, WO_IN_PROGRESS, WO_PENDING, WO_STATUSES,
    WO_TERMINAL, check_workorder_transition,
)
from workshop.models import PartRequisitionItem, StockItem, Technician, WorkOrder
from workshop.schemas.workorder import (
    CompletionReport, DispositionChoice, PartLineIn, WorkOrderCreate, WorkOrderTotals,
    WorkOrderUpdate,
)
from workshop.services import disposition_service, estimation_service, inventory_service, numbering

logger = logging.getLogger(__name__)

# Fields that stay editable after completion (ledger already posted)
POST_COMPLETION_FIELDS = frozenset({
    "RepairResult", "Notes", "LaborCost", "LaborVatEnabled", "LaborVatRate", "PartsVat",
})


def _to_money(v) -> Decimal:
    d = v if isinstance(v, Decimal) else Decimal(str(v or 0))
    return d.quantize(MONEY_PLACES, rounding=ROUND_HALF_UP)


def _to_qty(v) -> Decimal:
    d = v if isinstance(v, Decimal) else Decimal(str(v or 0))
    return d.quantize(QTY_PLACES, rounding=ROUND_HALF_UP)


# ---- Part lines ----
def _build_part_items(db: Session, lines: Sequence[PartLineIn]) -> List[PartRequisitionItem]:
    ids = {ln.StockItemID for ln in lines if ln.StockItemID is not None}
    stock = inventory_service.stock_by_ids(db, ids)

    items: List[PartRequisitionItem] = []
    for no, ln in enumerate(lines, start=1):
        if ln.Source_s == SOURCE_EXTERNAL:
            if not (ln.SupplierName or "").strip() or ln.PurchaseDate is None:
                raise ValidationError(
                    f"Line {no} ('{ln.Name}'): external purchases need supplier name and purchase date",
                    LineNo=no,
                )
        elif ln.StockItemID is None:
            raise ValidationError(f"Line {no} ('{ln.Name}'): internal stock lines need a stock item", LineNo=no)
        if ln.StockItemID is not None and ln.StockItemID not in stock:
            raise NotFound("StockItem", ln.StockItemID)

        ref: Optional[StockItem] = stock.get(ln.StockItemID) if ln.StockItemID is not None else None
        items.append(PartRequisitionItem(
            LineNo=no,
            StockItemID=ln.StockItemID,
            Name=ln.Name,
            Code=ln.Code or (ref.Code if ref is not None else None),
            Quantity=_to_qty(ln.Quantity),
            Unit=ln.Unit,
            UnitPrice=_to_money(ln.UnitPrice),
            Source_s=ln.Source_s,
            SupplierName=ln.SupplierName if ln.Source_s == SOURCE_EXTERNAL else None,
            PurchaseDate=ln.PurchaseDate if ln.Source_s == SOURCE_EXTERNAL else None,
        ))
    return items


# ---- Assignment ----
def _lookup_technicians(db: Session, ids: Iterable[int]) -> List[Technician]:
    found: List[Technician] = []
    for tid in ids:
        tech = db.get(Technician, tid)
        if tech is None or not tech.IsActive:
            raise NotFound("Technician", tid)
        found.append(tech)
    return found


def _apply_assignment(
    db: Session,
    wo: WorkOrder,
    *,
    technician_id: Optional[int],
    assistant_ids: Sequence[int],
    external_contractor: Optional[str],
) -> None:
    contractor = (external_contractor or "").strip() or None
    if technician_id is not None and contractor is not None:
        raise ValidationError("Assign either a technician or an external contractor, not both")
    if assistant_ids and technician_id is None:
        raise ValidationError("Assistants need a primary technician")

    primary = _lookup_technicians(db, [technician_id])[0] if technician_id is not None else None
    assistants = _lookup_technicians(db, [a for a in dict.fromkeys(assistant_ids) if a != technician_id])

    wo.technician = primary
    wo.TechnicianID = primary.TechnicianID if primary is not None else None
    wo.assistants = assistants
    wo.ExternalContractor = contractor


# ---- Create / read ----
def create_workorder(db: Session, data: WorkOrderCreate, *, now: Optional[datetime] = None) -> WorkOrder:
    try:
        now = now or clock.now()
        order_no, seq = numbering.allocate(
            db, WORK_ORDER_PREFIX, now.year, year_col=WorkOrder.OrderYear, seq_col=WorkOrder.OrderSeq,
        )

        wo = WorkOrder(
            OrderNo=order_no,
            OrderYear=now.year,
            OrderSeq=seq,
            LicensePlate=data.LicensePlate.strip(),
            VehicleType=data.VehicleType,
            ReportedBy=data.ReportedBy,
            Category=data.Category,
            Priority_s=data.Priority_s,
            Status_s=WO_PENDING,
            ProblemDescription=data.ProblemDescription,
            CreatedAt=now,
            UpdatedAt=now,
            LaborCost=_to_money(data.LaborCost),
            LaborVatEnabled=data.LaborVatEnabled,
            LaborVatRate=_to_money(data.LaborVatRate),
            PartsVat=_to_money(data.PartsVat),
            Notes=data.Notes,
        )
        _apply_assignment(
            db, wo,
            technician_id=data.TechnicianID,
            assistant_ids=data.AssistantIDs,
            external_contractor=data.ExternalContractor,
        )
        wo.parts = _build_part_items(db, data.parts)

        hours = data.EstimatedHours
        if hours is None:
            hours = estimation_service.estimate_hours_from_tasks(db, data.TaskIDs)
        estimation_service.start_estimation(
            wo,
            now=now,
            start=data.EstimatedStart,
            hours=hours,
            holidays=estimation_service.load_holidays(db),
        )

        db.add(wo)
        db.commit()
        db.refresh(wo)
        logger.info("Work order %s created", wo.OrderNo)
        return wo
    except WorkshopError:
        db.rollback()
        raise
    except SQLAlchemyError:
        db.rollback()
        logger.exception("create_workorder failed")
        raise


def get_workorder(db: Session, work_order_id: int) -> WorkOrder:
    wo = db.get(WorkOrder, work_order_id)
    if wo is None:
        raise NotFound("WorkOrder", work_order_id)
    return wo


def get_by_number(db: Session, order_no: str) -> WorkOrder:
    prefix, _, _ = numbering.parse_number(order_no)
    if prefix != WORK_ORDER_PREFIX:
        raise ValidationError(f"Not a work order number: {order_no}", OrderNo=order_no)
    wo = db.query(WorkOrder).filter(WorkOrder.OrderNo == order_no.strip()).one_or_none()
    if wo is None:
        raise NotFound("WorkOrder", order_no)
    return wo


def list_workorders(
    db: Session,
    *,
    status_s: Optional[str] = None,
    priority_s: Optional[str] = None,
    technician_id: Optional[int] = None,
    q: Optional[str] = None,
    skip: int = 0,
    limit: int = 100,
    sort: str = "-WorkOrderID",
) -> List[WorkOrder]:
    query = db.query(WorkOrder)

    if status_s is not None:
        query = query.filter(WorkOrder.Status_s == status_s)
    if priority_s is not None:
        query = query.filter(WorkOrder.Priority_s == priority_s)
    if technician_id is not None:
        query = query.filter(WorkOrder.TechnicianID == technician_id)
    if q:
        like = f"%{q.lower()}%"
        query = query.filter(or_(
            func.lower(WorkOrder.OrderNo).like(like),
            func.lower(WorkOrder.LicensePlate).like(like),
            func.lower(WorkOrder.ProblemDescription).like(like),
        ))

    sort_map = {
        "WorkOrderID": WorkOrder.WorkOrderID.asc(),
        "-WorkOrderID": WorkOrder.WorkOrderID.desc(),
        "CreatedAt": WorkOrder.CreatedAt.asc(),
        "-CreatedAt": WorkOrder.CreatedAt.desc(),
    }
    query = query.order_by(sort_map.get(sort, WorkOrder.WorkOrderID.desc()))
    return query.offset(max(0, skip)).limit(min(max(1, limit), 500)).all()


# ---- Edit ----
def update_workorder(db: Session, work_order_id: int, data: WorkOrderUpdate) -> WorkOrder:
    """
    Field edits. The parts list can change until the order is Completed;
    afterwards only result, notes and labor/VAT fields are editable.
    """
    try:
        wo = lock_for_update(db, WorkOrder, work_order_id)
        if wo is None:
            raise NotFound("WorkOrder", work_order_id)
        if wo.Status_s == WO_CANCELLED:
            raise PreconditionFailed("Work order is Cancelled", missing="non-terminal status")

        changes = data.model_dump(exclude_unset=True)
        parts = changes.pop("parts", None)
        if wo.Status_s == WO_COMPLETED:
            locked = sorted(set(changes) - POST_COMPLETION_FIELDS) + (["parts"] if parts is not None else [])
            if locked:
                raise PreconditionFailed(
                    f"Work order is Completed; {', '.join(locked)} can no longer change",
                    missing="non-terminal status",
                    fields=locked,
                )

        for field, value in changes.items():
            if value is None and field in ("LicensePlate", "Priority_s", "ProblemDescription",
                                           "LaborCost", "LaborVatEnabled", "LaborVatRate", "PartsVat"):
                continue
            if field in ("LaborCost", "LaborVatRate", "PartsVat"):
                value = _to_money(value)
            setattr(wo, field, value)

        if parts is not None:
            wo.parts.clear()
            db.flush()
            wo.parts.extend(_build_part_items(db, data.parts))
        wo.UpdatedAt = clock.now()

        db.commit()
        db.refresh(wo)
        return wo
    except WorkshopError:
        db.rollback()
        raise
    except SQLAlchemyError:
        db.rollback()
        logger.exception("update_workorder failed for %s", work_order_id)
        raise


def assign(
    db: Session,
    work_order_id: int,
    *,
    technician_id: Optional[int] = None,
    assistant_ids: Sequence[int] = (),
    external_contractor: Optional[str] = None,
) -> WorkOrder:
    try:
        wo = lock_for_update(db, WorkOrder, work_order_id)
        if wo is None:
            raise NotFound("WorkOrder", work_order_id)
        if wo.Status_s in WO_TERMINAL:
            raise PreconditionFailed(f"Work order is {wo.Status_s}", missing="non-terminal status")
        _apply_assignment(
            db, wo,
            technician_id=technician_id,
            assistant_ids=assistant_ids,
            external_contractor=external_contractor,
        )
        if wo.Status_s != WO_PENDING and not wo.has_assignment:
            raise PreconditionFailed(
                "A repair in progress must keep a technician or an external contractor",
                missing="technician_or_contractor",
            )
        wo.UpdatedAt = clock.now()
        db.commit()
        db.refresh(wo)
        return wo
    except WorkshopError:
        db.rollback()
        raise
    except SQLAlchemyError:
        db.rollback()
        logger.exception("assign failed for %s", work_order_id)
        raise


def approve(db: Session, work_order_id: int) -> WorkOrder:
    """Stamp the approval time once; approving again keeps the first stamp."""
    try:
        wo = lock_for_update(db, WorkOrder, work_order_id)
        if wo is None:
            raise NotFound("WorkOrder", work_order_id)
        if wo.Status_s == WO_CANCELLED:
            raise PreconditionFailed("Work order is Cancelled", missing="non-terminal status")
        if wo.ApprovedAt is None:
            wo.ApprovedAt = clock.now()
            wo.UpdatedAt = wo.ApprovedAt
        db.commit()
        db.refresh(wo)
        return wo
    except WorkshopError:
        db.rollback()
        raise
    except SQLAlchemyError:
        db.rollback()
        logger.exception("approve failed for %s", work_order_id)
        raise


# ---- State machine ----
def _completion_effects(
    db: Session,
    wo: WorkOrder,
    dispositions: Optional[Sequence[DispositionChoice]],
    actor: Optional[str],
) -> CompletionReport:
    estimation_service.finalize(wo)
    report = CompletionReport(withdrawals=inventory_service.apply_withdrawals(db, wo, actor=actor))
    if dispositions is not None:
        report.dispositions = disposition_service.apply_dispositions(db, wo, dispositions, actor=actor)
    return report


def transition_with_report(
    db: Session,
    work_order_id: int,
    target: str,
    *,
    confirm: Optional[Confirm] = None,
    dispositions: Optional[Sequence[DispositionChoice]] = None,
    actor: Optional[str] = None,
) -> Tuple[WorkOrder, Optional[CompletionReport]]:
    """
    Move a work order to `target`. Guards run before any change; a failed
    guard leaves the order untouched. Completed -> Completed re-runs the
    completion effects, which post nothing already posted.
    """
    if target not in WO_STATUSES:
        raise ValidationError(f"Unknown work order status: {target}", target=target)

    try:
        wo = lock_for_update(db, WorkOrder, work_order_id)
        if wo is None:
            raise NotFound("WorkOrder", work_order_id)
        current = wo.Status_s
        report: Optional[CompletionReport] = None

        if target == current:
            if current == WO_COMPLETED:
                report = _completion_effects(db, wo, dispositions, actor)
                db.commit()
                db.refresh(wo)
            else:
                db.rollback()
            return wo, report

        check_workorder_transition(
            current, target, has_assignment=wo.has_assignment, has_started=wo.has_started,
        )
        if target == WO_CANCELLED:
            require_confirmation(confirm, ACTION_CANCEL_WORK_ORDER)

        now = clock.now()
        if target == WO_IN_PROGRESS and wo.RepairStartedAt is None:
            wo.RepairStartedAt = now
        wo.Status_s = target
        wo.UpdatedAt = now

        if target == WO_COMPLETED:
            if wo.RepairEndedAt is None:
                wo.RepairEndedAt = now
            report = _completion_effects(db, wo, dispositions, actor)

        db.commit()
        db.refresh(wo)
        logger.info("Work order %s: %s -> %s", wo.OrderNo, current, target)
        return wo, report
    except WorkshopError:
        db.rollback()
        raise
    except IntegrityError:
        # A concurrent completion posted first; its result stands
        db.rollback()
        wo = db.get(WorkOrder, work_order_id)
        if wo is not None and wo.Status_s == target == WO_COMPLETED:
            logger.warning("Work order %s: concurrent completion, treated as duplicate", wo.OrderNo)
            return wo, CompletionReport(withdrawals=inventory_service.conflict_report(
                db, inventory_service.withdrawal_keys(wo),
            ))
        raise
    except SQLAlchemyError:
        db.rollback()
        logger.exception("transition failed for work order %s", work_order_id)
        raise


def transition(
    db: Session,
    work_order_id: int,
    target: str,
    *,
    confirm: Optional[Confirm] = None,
    dispositions: Optional[Sequence[DispositionChoice]] = None,
    actor: Optional[str] = None,
) -> WorkOrder:
    wo, _ = transition_with_report(
        db, work_order_id, target, confirm=confirm, dispositions=dispositions, actor=actor,
    )
    return wo


def delete_workorder(db: Session, work_order_id: int, *, confirm: Optional[Confirm] = None) -> None:
    """Delete a work order that never touched the ledger. Its number is not reused."""
    try:
        wo = lock_for_update(db, WorkOrder, work_order_id)
        if wo is None:
            raise NotFound("WorkOrder", work_order_id)
        if wo.txns or wo.used_parts:
            raise PreconditionFailed(
                f"Work order {wo.OrderNo} has ledger entries; cancel it instead",
                missing="no ledger entries",
            )
        require_confirmation(confirm, ACTION_DELETE_WORK_ORDER)
        order_no = wo.OrderNo
        db.delete(wo)
        db.commit()
        logger.info("Work order %s deleted", order_no)
    except WorkshopError:
        db.rollback()
        raise
    except SQLAlchemyError:
        db.rollback()
        logger.exception("delete_workorder failed for %s", work_order_id)
        raise


# ---- Totals ----
def compute_totals(wo: WorkOrder) -> WorkOrderTotals:
    parts_cost = sum(
        (Decimal(p.Quantity) * Decimal(p.UnitPrice) for p in wo.parts),
        Decimal("0"),
    )
    labor = Decimal(wo.LaborCost or 0)
    labor_vat = labor * Decimal(wo.LaborVatRate or 0) / Decimal(100) if wo.LaborVatEnabled else Decimal("0")
    parts_vat = Decimal(wo.PartsVat or 0)
    return WorkOrderTotals(
        PartsCost=_to_money(parts_cost),
        PartsVat=_to_money(parts_vat),
        LaborCost=_to_money(labor),
        LaborVat=_to_money(labor_vat),
        GrandTotal=_to_money(parts_cost + parts_vat + labor + labor_vat),
    )
