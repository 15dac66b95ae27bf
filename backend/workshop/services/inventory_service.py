# backend/workshop/services/inventory_service.py
"""
Inventory ledger.

Every change to StockItem.Quantity goes through `post_entry`, which appends a
StockTransaction in the same flush, so on-hand always equals the ledger sum.
Each row carries a PostingKey (unique); re-posting a key that already exists
is reported as a duplicate and skipped.

`apply_*` helpers flush only and expect the caller to hold the row lock on the
owning document; the public `post_*` functions lock, apply and commit.
"""
from __future__ import annotations

import logging
import uuid
from collections import OrderedDict
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, Iterable, List, Optional, Set

from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from workshop.core import clock
from workshop.core.config import LEDGER_SYSTEM_ACTOR
from workshop.core.db import lock_for_update
from workshop.domain.constants import (
    KEY_MANUAL, KEY_OPENING, KEY_PR_RECEIPT, KEY_WO_WITHDRAWAL,
    MONEY_PLACES, QTY_PLACES,
    REASON_OPENING_BALANCE, REASON_PR_RECEIVE, REASON_WO_WITHDRAWAL,
)
from workshop.domain.errors import NotFound, PreconditionFailed, ValidationError, WorkshopError
from workshop.domain.statuses import (
    PR_RECEIVED, SOURCE_INTERNAL, TXN_RECEIPT, TXN_WITHDRAWAL, WO_COMPLETED, stock_status,
)
from workshop.models import PurchaseRequisition, StockItem, StockTransaction, WorkOrder
from workshop.schemas.inventory import (
    MissingLine, PostingReport, ReconcileRead, StockItemCreate, StockItemUpdate, StockTxnCreate,
)

logger = logging.getLogger(__name__)


def _to_qty(v) -> Decimal:
    d = v if isinstance(v, Decimal) else Decimal(str(v or 0))
    return d.quantize(QTY_PLACES, rounding=ROUND_HALF_UP)


def _to_money(v) -> Decimal:
    d = v if isinstance(v, Decimal) else Decimal(str(v or 0))
    return d.quantize(MONEY_PLACES, rounding=ROUND_HALF_UP)


def refresh_status(item: StockItem) -> str:
    item.Status_s = stock_status(
        Decimal(item.Quantity or 0),
        Decimal(item.MinStock or 0),
        None if item.MaxStock is None else Decimal(item.MaxStock),
    )
    return item.Status_s


def existing_keys(db: Session, keys: Iterable[str]) -> Set[str]:
    keys = list(keys)
    if not keys:
        return set()
    rows = db.query(StockTransaction.PostingKey).filter(StockTransaction.PostingKey.in_(keys)).all()
    return {k for (k,) in rows}


def post_entry(
    db: Session,
    item: StockItem,
    *,
    txn_type: str,
    quantity,
    posting_key: str,
    actor: Optional[str] = None,
    notes: Optional[str] = None,
    unit_price=None,
    work_order_id: Optional[int] = None,
    requisition_id: Optional[int] = None,
    used_part_id: Optional[int] = None,
) -> StockTransaction:
    """
    Append one ledger row and move the on-hand quantity with it.
    `quantity` is the magnitude; the sign follows `txn_type`.
    """
    qty = _to_qty(quantity)
    if qty <= 0:
        raise ValidationError("Posting quantity must be > 0", quantity=str(qty))
    if txn_type not in (TXN_RECEIPT, TXN_WITHDRAWAL):
        raise ValidationError(f"Unknown transaction type: {txn_type}", txn_type=txn_type)

    signed = qty if txn_type == TXN_RECEIPT else -qty
    item.Quantity = _to_qty(Decimal(item.Quantity or 0) + signed)
    refresh_status(item)

    txn = StockTransaction(
        StockItemID=item.StockItemID,
        TxnType=txn_type,
        Quantity=signed,
        UnitPrice=_to_money(item.UnitPrice if unit_price is None else unit_price),
        TxnDate=clock.now(),
        Actor=actor or LEDGER_SYSTEM_ACTOR,
        Notes=notes,
        PostingKey=posting_key,
        WorkOrderID=work_order_id,
        RequisitionID=requisition_id,
        UsedPartID=used_part_id,
    )
    db.add(txn)
    db.flush()
    return txn


def conflict_report(db: Session, keys: List[str]) -> PostingReport:
    # A concurrent poster won the race: whatever is in the ledger now is a duplicate
    return PostingReport(duplicates=sorted(existing_keys(db, keys)))


# ---- Work order withdrawals ----
def _withdrawal_groups(wo: WorkOrder) -> "OrderedDict[int, dict]":
    groups: "OrderedDict[int, dict]" = OrderedDict()
    for line in wo.parts:
        if line.Source_s != SOURCE_INTERNAL or line.StockItemID is None:
            continue
        g = groups.setdefault(
            line.StockItemID,
            {"quantity": Decimal("0"), "names": [], "unit_price": line.UnitPrice},
        )
        g["quantity"] += Decimal(line.Quantity)
        if line.Name not in g["names"]:
            g["names"].append(line.Name)
    return OrderedDict(sorted(groups.items()))


def withdrawal_keys(wo: WorkOrder) -> List[str]:
    return [KEY_WO_WITHDRAWAL.format(wo_id=wo.WorkOrderID, stock_item_id=sid) for sid in _withdrawal_groups(wo)]


def apply_withdrawals(db: Session, wo: WorkOrder, *, actor: Optional[str] = None) -> PostingReport:
    """One Withdrawal per (work order, stock item) over the internal-stock lines."""
    report = PostingReport()
    groups = _withdrawal_groups(wo)
    keys = {sid: KEY_WO_WITHDRAWAL.format(wo_id=wo.WorkOrderID, stock_item_id=sid) for sid in groups}
    already = existing_keys(db, keys.values())

    for sid, g in groups.items():
        key = keys[sid]
        if key in already:
            report.duplicates.append(key)
            continue
        item = lock_for_update(db, StockItem, sid)
        if item is None:
            logger.warning("Work order %s: stock item %s not found, line skipped", wo.OrderNo, sid)
            report.missing.append(MissingLine(StockItemID=sid, Name=", ".join(g["names"])))
            continue
        post_entry(
            db,
            item,
            txn_type=TXN_WITHDRAWAL,
            quantity=g["quantity"],
            posting_key=key,
            actor=actor,
            notes=REASON_WO_WITHDRAWAL.format(wo.OrderNo),
            unit_price=g["unit_price"],
            work_order_id=wo.WorkOrderID,
        )
        report.posted.append(key)

    if report.posted:
        logger.info("Work order %s: %d withdrawal(s) posted", wo.OrderNo, len(report.posted))
    return report


def post_withdrawals(db: Session, work_order_id: int, *, actor: Optional[str] = None) -> PostingReport:
    """Re-runnable withdrawal posting for a completed work order."""
    keys: List[str] = []
    try:
        wo = lock_for_update(db, WorkOrder, work_order_id)
        if wo is None:
            raise NotFound("WorkOrder", work_order_id)
        if wo.Status_s != WO_COMPLETED:
            raise PreconditionFailed(
                f"Work order is {wo.Status_s}; withdrawals post on completion",
                missing="completed status",
            )
        keys = withdrawal_keys(wo)
        report = apply_withdrawals(db, wo, actor=actor)
        db.commit()
        return report
    except WorkshopError:
        db.rollback()
        raise
    except IntegrityError:
        db.rollback()
        logger.warning("Work order %s: concurrent withdrawal posting, treated as duplicate", work_order_id)
        return conflict_report(db, keys)
    except SQLAlchemyError:
        db.rollback()
        logger.exception("post_withdrawals failed for work order %s", work_order_id)
        raise


# ---- Requisition receipts ----
def receipt_keys(pr: PurchaseRequisition) -> List[str]:
    return [
        KEY_PR_RECEIPT.format(pr_id=pr.RequisitionID, line_id=line.LineID)
        for line in pr.lines
        if line.StockItemID is not None
    ]


def apply_receipts(db: Session, pr: PurchaseRequisition, *, actor: Optional[str] = None) -> PostingReport:
    """One Receipt per requisition line that references a stock item."""
    report = PostingReport()
    lines = [line for line in pr.lines if line.StockItemID is not None]
    already = existing_keys(db, receipt_keys(pr))

    for line in sorted(lines, key=lambda l: (l.StockItemID, l.LineNo)):
        key = KEY_PR_RECEIPT.format(pr_id=pr.RequisitionID, line_id=line.LineID)
        if key in already:
            report.duplicates.append(key)
            continue
        item = lock_for_update(db, StockItem, line.StockItemID)
        if item is None:
            logger.warning(
                "Requisition %s: stock item %s not found, line %s skipped",
                pr.RequisitionNo, line.StockItemID, line.LineNo,
            )
            report.missing.append(MissingLine(StockItemID=line.StockItemID, Name=line.Description))
            continue
        post_entry(
            db,
            item,
            txn_type=TXN_RECEIPT,
            quantity=line.Quantity,
            posting_key=key,
            actor=actor,
            notes=REASON_PR_RECEIVE.format(pr.RequisitionNo),
            unit_price=line.UnitPrice,
            requisition_id=pr.RequisitionID,
        )
        report.posted.append(key)

    if report.posted:
        logger.info("Requisition %s: %d receipt(s) posted", pr.RequisitionNo, len(report.posted))
    return report


def post_receipt(db: Session, requisition_id: int, *, actor: Optional[str] = None) -> PostingReport:
    """Re-runnable receipt posting for a received requisition."""
    keys: List[str] = []
    try:
        pr = lock_for_update(db, PurchaseRequisition, requisition_id)
        if pr is None:
            raise NotFound("PurchaseRequisition", requisition_id)
        if pr.Status_s != PR_RECEIVED:
            raise PreconditionFailed(
                f"Requisition is {pr.Status_s}; receipts post on receipt of goods",
                missing="received status",
            )
        keys = receipt_keys(pr)
        report = apply_receipts(db, pr, actor=actor)
        db.commit()
        return report
    except WorkshopError:
        db.rollback()
        raise
    except IntegrityError:
        db.rollback()
        logger.warning("Requisition %s: concurrent receipt posting, treated as duplicate", requisition_id)
        return conflict_report(db, keys)
    except SQLAlchemyError:
        db.rollback()
        logger.exception("post_receipt failed for requisition %s", requisition_id)
        raise


# ---- Stock items ----
def get_stock_item(db: Session, stock_item_id: int) -> StockItem:
    item = db.get(StockItem, stock_item_id)
    if item is None:
        raise NotFound("StockItem", stock_item_id)
    return item


def find_by_code(db: Session, code: str) -> Optional[StockItem]:
    return db.query(StockItem).filter(StockItem.Code == code).one_or_none()


def _check_thresholds(min_stock, max_stock) -> None:
    if max_stock is not None and Decimal(max_stock) < Decimal(min_stock or 0):
        raise ValidationError("MaxStock must be >= MinStock", MinStock=str(min_stock), MaxStock=str(max_stock))


def create_stock_item(db: Session, data: StockItemCreate, *, actor: Optional[str] = None) -> StockItem:
    """New stock item; an opening quantity is posted as a Receipt."""
    try:
        if find_by_code(db, data.Code) is not None:
            raise ValidationError(f"Stock code already exists: {data.Code}", Code=data.Code)
        _check_thresholds(data.MinStock, data.MaxStock)

        item = StockItem(
            Code=data.Code,
            Name=data.Name.strip(),
            Unit=data.Unit.strip(),
            Category=data.Category,
            UnitPrice=_to_money(data.UnitPrice),
            Quantity=Decimal("0"),
            MinStock=_to_qty(data.MinStock),
            MaxStock=None if data.MaxStock is None else _to_qty(data.MaxStock),
            IsFungibleUsedItem=data.IsFungibleUsedItem,
            IsRevolvingPart=data.IsRevolvingPart,
            IsActive=True,
        )
        refresh_status(item)
        db.add(item)
        db.flush()

        if data.OpeningQuantity and data.OpeningQuantity > 0:
            post_entry(
                db,
                item,
                txn_type=TXN_RECEIPT,
                quantity=data.OpeningQuantity,
                posting_key=KEY_OPENING.format(stock_item_id=item.StockItemID),
                actor=actor,
                notes=REASON_OPENING_BALANCE,
            )

        db.commit()
        db.refresh(item)
        return item
    except WorkshopError:
        db.rollback()
        raise
    except IntegrityError:
        db.rollback()
        raise ValidationError(f"Stock code already exists: {data.Code}", Code=data.Code)
    except SQLAlchemyError:
        db.rollback()
        logger.exception("create_stock_item failed")
        raise


def update_stock_item(db: Session, stock_item_id: int, data: StockItemUpdate) -> StockItem:
    """Master data only; quantity moves through the ledger."""
    try:
        item = get_stock_item(db, stock_item_id)
        changes = data.model_dump(exclude_unset=True)
        for field in ("MinStock", "MaxStock"):
            if field in changes and changes[field] is not None:
                changes[field] = _to_qty(changes[field])
        if "UnitPrice" in changes and changes["UnitPrice"] is not None:
            changes["UnitPrice"] = _to_money(changes["UnitPrice"])

        _check_thresholds(changes.get("MinStock", item.MinStock), changes.get("MaxStock", item.MaxStock))
        for field, value in changes.items():
            if field in ("MinStock", "UnitPrice", "Name", "Unit", "IsFungibleUsedItem", "IsRevolvingPart", "IsActive") and value is None:
                continue
            setattr(item, field, value)
        refresh_status(item)

        db.commit()
        db.refresh(item)
        return item
    except WorkshopError:
        db.rollback()
        raise
    except SQLAlchemyError:
        db.rollback()
        logger.exception("update_stock_item failed for %s", stock_item_id)
        raise


def list_stock_items(
    db: Session,
    *,
    q: Optional[str] = None,
    status_s: Optional[str] = None,
    fungible: Optional[bool] = None,
    include_inactive: bool = False,
    skip: int = 0,
    limit: int = 100,
) -> List[StockItem]:
    query = db.query(StockItem)
    if not include_inactive:
        query = query.filter(StockItem.IsActive == True)  # noqa: E712
    if status_s:
        query = query.filter(StockItem.Status_s == status_s)
    if fungible is not None:
        query = query.filter(StockItem.IsFungibleUsedItem == fungible)
    if q:
        like = f"%{q.lower()}%"
        query = query.filter(or_(func.lower(StockItem.Code).like(like), func.lower(StockItem.Name).like(like)))
    return query.order_by(StockItem.Code.asc()).offset(max(0, skip)).limit(min(max(1, limit), 500)).all()


def list_below_min(db: Session) -> List[StockItem]:
    return (
        db.query(StockItem)
        .filter(StockItem.IsActive == True)  # noqa: E712
        .filter(StockItem.Quantity <= StockItem.MinStock)
        .order_by((StockItem.MinStock - StockItem.Quantity).desc(), StockItem.Code.asc())
        .all()
    )


# ---- Manual movements ----
def post_manual(db: Session, data: StockTxnCreate, *, actor: Optional[str] = None) -> StockTransaction:
    """
    Warehouse desk IN/OUT. A manual Withdrawal may not take the item below zero.
    With an IdempotencyKey, a retried request returns the original row.
    """
    key = KEY_MANUAL.format(token=data.IdempotencyKey or uuid.uuid4().hex)
    try:
        if data.IdempotencyKey:
            prior = db.query(StockTransaction).filter(StockTransaction.PostingKey == key).one_or_none()
            if prior is not None:
                return prior

        item = lock_for_update(db, StockItem, data.StockItemID)
        if item is None:
            raise NotFound("StockItem", data.StockItemID)

        qty = _to_qty(data.Quantity)
        if data.TxnType == TXN_WITHDRAWAL and Decimal(item.Quantity or 0) < qty:
            raise PreconditionFailed(
                f"Insufficient stock. On hand: {item.Quantity}, requested: {qty}",
                missing="stock on hand",
                on_hand=str(item.Quantity),
                requested=str(qty),
            )

        txn = post_entry(
            db,
            item,
            txn_type=data.TxnType,
            quantity=qty,
            posting_key=key,
            actor=actor,
            notes=data.Notes,
            unit_price=data.UnitPrice,
        )
        db.commit()
        db.refresh(txn)
        return txn
    except WorkshopError:
        db.rollback()
        raise
    except IntegrityError:
        db.rollback()
        prior = db.query(StockTransaction).filter(StockTransaction.PostingKey == key).one_or_none()
        if prior is None:
            raise
        return prior
    except SQLAlchemyError:
        db.rollback()
        logger.exception("post_manual failed for stock item %s", data.StockItemID)
        raise


# ---- Queries ----
def reconcile(db: Session, stock_item_id: int) -> ReconcileRead:
    item = get_stock_item(db, stock_item_id)
    ledger_sum, count = (
        db.query(func.coalesce(func.sum(StockTransaction.Quantity), 0), func.count(StockTransaction.TxnID))
        .filter(StockTransaction.StockItemID == stock_item_id)
        .one()
    )
    on_hand = _to_qty(item.Quantity)
    ledger = _to_qty(ledger_sum)
    return ReconcileRead(
        StockItemID=item.StockItemID,
        Code=item.Code,
        OnHand=on_hand,
        LedgerSum=ledger,
        Difference=on_hand - ledger,
        Balanced=on_hand == ledger,
        TxnCount=int(count),
    )


def list_transactions(
    db: Session,
    *,
    stock_item_id: Optional[int] = None,
    txn_type: Optional[str] = None,
    work_order_id: Optional[int] = None,
    requisition_id: Optional[int] = None,
    q: Optional[str] = None,
    skip: int = 0,
    limit: int = 100,
    sort: str = "-TxnID",
) -> List[StockTransaction]:
    query = db.query(StockTransaction)

    if stock_item_id is not None:
        query = query.filter(StockTransaction.StockItemID == stock_item_id)
    if txn_type is not None:
        query = query.filter(StockTransaction.TxnType == txn_type)
    if work_order_id is not None:
        query = query.filter(StockTransaction.WorkOrderID == work_order_id)
    if requisition_id is not None:
        query = query.filter(StockTransaction.RequisitionID == requisition_id)
    if q:
        query = query.filter(func.lower(StockTransaction.Notes).like(f"%{q.lower()}%"))

    col = StockTransaction.TxnID
    query = query.order_by(col.desc() if sort.startswith("-") else col.asc())

    return query.offset(max(0, skip)).limit(min(max(1, limit), 500)).all()


def stock_by_ids(db: Session, ids: Iterable[int]) -> Dict[int, StockItem]:
    ids = set(ids)
    if not ids:
        return {}
    return {s.StockItemID: s for s in db.query(StockItem).filter(StockItem.StockItemID.in_(ids)).all()}
