# backend/workshop/services/requisition_service.py
from __future__ import annotations

import logging
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import List, Optional, Sequence, Tuple

from sqlalchemy import func, or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from workshop.core import clock
from workshop.core.db import lock_for_update
from workshop.domain.confirm import Confirm, require_confirmation
from workshop.domain.constants import (
    ACTION_CANCEL_REQUISITION, ACTION_DELETE_REQUISITION, MONEY_PLACES, QTY_PLACES, REQUISITION_PREFIX,
)
from workshop.domain.errors import NotFound, PreconditionFailed, ValidationError, WorkshopError
from workshop.domain.statuses import (
    PR_APPROVED, PR_CANCELLED, PR_DRAFT, PR_EDITABLE, PR_RECEIVED, PR_STATUSES, check_requisition_transition,
)
from workshop.models import PurchaseRequisition, PurchaseRequisitionLine
from workshop.schemas.inventory import PostingReport
from workshop.schemas.requisition import (
    RequisitionCreate, RequisitionLineIn, RequisitionTotals, RequisitionUpdate,
)
from workshop.services import inventory_service, numbering

logger = logging.getLogger(__name__)


def _to_money(v) -> Decimal:
    d = v if isinstance(v, Decimal) else Decimal(str(v or 0))
    return d.quantize(MONEY_PLACES, rounding=ROUND_HALF_UP)


def _build_lines(db: Session, lines: Sequence[RequisitionLineIn]) -> List[PurchaseRequisitionLine]:
    stock = inventory_service.stock_by_ids(db, {ln.StockItemID for ln in lines if ln.StockItemID is not None})
    out: List[PurchaseRequisitionLine] = []
    for no, ln in enumerate(lines, start=1):
        ref = None
        if ln.StockItemID is not None:
            ref = stock.get(ln.StockItemID)
            if ref is None:
                raise NotFound("StockItem", ln.StockItemID)
        out.append(PurchaseRequisitionLine(
            LineNo=no,
            StockItemID=ln.StockItemID,
            Description=ln.Description.strip(),
            Quantity=Decimal(ln.Quantity).quantize(QTY_PLACES, rounding=ROUND_HALF_UP),
            Unit=ln.Unit or (ref.Unit if ref is not None else None),
            UnitPrice=_to_money(ln.UnitPrice),
            ExpectedDate=ln.ExpectedDate,
        ))
    return out


def create_requisition(db: Session, data: RequisitionCreate, *, now: Optional[datetime] = None) -> PurchaseRequisition:
    try:
        now = now or clock.now()
        number, seq = numbering.allocate(
            db, REQUISITION_PREFIX, now.year,
            year_col=PurchaseRequisition.ReqYear, seq_col=PurchaseRequisition.ReqSeq,
        )
        pr = PurchaseRequisition(
            RequisitionNo=number,
            ReqYear=now.year,
            ReqSeq=seq,
            Status_s=PR_DRAFT,
            RequestType=data.RequestType,
            RequesterName=data.RequesterName,
            Department=data.Department,
            SupplierName=data.SupplierName,
            InBudget=data.InBudget,
            Vat=_to_money(data.Vat),
            Notes=data.Notes,
            CreatedAt=now,
            UpdatedAt=now,
        )
        pr.lines = _build_lines(db, data.lines)
        db.add(pr)
        db.commit()
        db.refresh(pr)
        logger.info("Requisition %s created", pr.RequisitionNo)
        return pr
    except WorkshopError:
        db.rollback()
        raise
    except SQLAlchemyError:
        db.rollback()
        logger.exception("create_requisition failed")
        raise


def get_requisition(db: Session, requisition_id: int) -> PurchaseRequisition:
    pr = db.get(PurchaseRequisition, requisition_id)
    if pr is None:
        raise NotFound("PurchaseRequisition", requisition_id)
    return pr


def list_requisitions(
    db: Session,
    *,
    status_s: Optional[str] = None,
    request_type: Optional[str] = None,
    q: Optional[str] = None,
    skip: int = 0,
    limit: int = 100,
    sort: str = "-RequisitionID",
) -> List[PurchaseRequisition]:
    query = db.query(PurchaseRequisition)
    if status_s is not None:
        query = query.filter(PurchaseRequisition.Status_s == status_s)
    if request_type is not None:
        query = query.filter(PurchaseRequisition.RequestType == request_type)
    if q:
        like = f"%{q.lower()}%"
        query = query.filter(or_(
            func.lower(PurchaseRequisition.RequisitionNo).like(like),
            func.lower(PurchaseRequisition.SupplierName).like(like),
            func.lower(PurchaseRequisition.RequesterName).like(like),
        ))
    col = PurchaseRequisition.RequisitionID
    query = query.order_by(col.desc() if sort.startswith("-") else col.asc())
    return query.offset(max(0, skip)).limit(min(max(1, limit), 500)).all()


def update_requisition(db: Session, requisition_id: int, data: RequisitionUpdate) -> PurchaseRequisition:
    """Draft and PendingApproval requisitions only."""
    try:
        pr = lock_for_update(db, PurchaseRequisition, requisition_id)
        if pr is None:
            raise NotFound("PurchaseRequisition", requisition_id)
        if pr.Status_s not in PR_EDITABLE:
            raise PreconditionFailed(
                f"Requisition is {pr.Status_s}; only Draft or PendingApproval can be edited",
                missing="editable status",
            )

        changes = data.model_dump(exclude_unset=True)
        lines = changes.pop("lines", None)
        for field, value in changes.items():
            if value is None and field in ("RequestType", "InBudget", "Vat"):
                continue
            if field == "Vat":
                value = _to_money(value)
            setattr(pr, field, value)

        if lines is not None:
            pr.lines.clear()
            db.flush()
            pr.lines.extend(_build_lines(db, data.lines))
        pr.UpdatedAt = clock.now()

        db.commit()
        db.refresh(pr)
        return pr
    except WorkshopError:
        db.rollback()
        raise
    except SQLAlchemyError:
        db.rollback()
        logger.exception("update_requisition failed for %s", requisition_id)
        raise


def transition_with_report(
    db: Session,
    requisition_id: int,
    target: str,
    *,
    confirm: Optional[Confirm] = None,
    approved_by: Optional[str] = None,
    actor: Optional[str] = None,
) -> Tuple[PurchaseRequisition, Optional[PostingReport]]:
    """
    Received is one-way: the receipt posting runs on entry and the requisition
    can never leave it, so goods are booked in once.
    """
    if target not in PR_STATUSES:
        raise ValidationError(f"Unknown requisition status: {target}", target=target)
    try:
        pr = lock_for_update(db, PurchaseRequisition, requisition_id)
        if pr is None:
            raise NotFound("PurchaseRequisition", requisition_id)
        current = pr.Status_s

        check_requisition_transition(current, target)
        if target == PR_APPROVED and not (approved_by or "").strip():
            raise ValidationError("Approval needs the approver's name", missing="approved_by")
        if target == PR_CANCELLED:
            require_confirmation(confirm, ACTION_CANCEL_REQUISITION)

        now = clock.now()
        report: Optional[PostingReport] = None
        pr.Status_s = target
        pr.UpdatedAt = now
        if target == PR_APPROVED:
            pr.ApprovedBy = approved_by.strip()
            pr.ApprovedAt = now
        elif target == PR_RECEIVED:
            pr.ReceivedAt = now
            report = inventory_service.apply_receipts(db, pr, actor=actor)

        db.commit()
        db.refresh(pr)
        logger.info("Requisition %s: %s -> %s", pr.RequisitionNo, current, target)
        return pr, report
    except WorkshopError:
        db.rollback()
        raise
    except SQLAlchemyError:
        db.rollback()
        logger.exception("transition failed for requisition %s", requisition_id)
        raise


def transition_requisition(
    db: Session,
    requisition_id: int,
    target: str,
    *,
    confirm: Optional[Confirm] = None,
    approved_by: Optional[str] = None,
    actor: Optional[str] = None,
) -> PurchaseRequisition:
    pr, _ = transition_with_report(
        db, requisition_id, target, confirm=confirm, approved_by=approved_by, actor=actor,
    )
    return pr


def delete_requisition(db: Session, requisition_id: int, *, confirm: Optional[Confirm] = None) -> None:
    """Received requisitions stay (they are in the ledger); the number is not reused."""
    try:
        pr = lock_for_update(db, PurchaseRequisition, requisition_id)
        if pr is None:
            raise NotFound("PurchaseRequisition", requisition_id)
        if pr.txns:
            raise PreconditionFailed(
                f"Requisition {pr.RequisitionNo} has ledger entries",
                missing="no ledger entries",
            )
        require_confirmation(confirm, ACTION_DELETE_REQUISITION)
        number = pr.RequisitionNo
        db.delete(pr)
        db.commit()
        logger.info("Requisition %s deleted", number)
    except WorkshopError:
        db.rollback()
        raise
    except SQLAlchemyError:
        db.rollback()
        logger.exception("delete_requisition failed for %s", requisition_id)
        raise


def compute_totals(pr: PurchaseRequisition) -> RequisitionTotals:
    subtotal = sum((Decimal(l.Quantity) * Decimal(l.UnitPrice) for l in pr.lines), Decimal("0"))
    vat = Decimal(pr.Vat or 0)
    return RequisitionTotals(
        Subtotal=_to_money(subtotal),
        Vat=_to_money(vat),
        Total=_to_money(subtotal + vat),
    )
