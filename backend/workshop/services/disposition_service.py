# backend/workshop/services/disposition_service.py
"""
Removed-part dispositions of a completed work order.

Parts are matched by name; requisition lines with the same name are summed
into one removable part. All choices are validated before anything is
written, then applied in a single pass:

  TrackIndividually       new UsedPart (Pending)
  MergeIntoFungibleStock  Receipt on the chosen fungible stock item
  ReturnToMainStock       Receipt on the part's own stock item
  Dispose                 nothing recorded
"""
from __future__ import annotations

import hashlib
import logging
from collections import OrderedDict
from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, List, Optional, Sequence, Tuple

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from workshop.core import clock
from workshop.core.db import lock_for_update
from workshop.domain.constants import KEY_WO_RETURN, REASON_USED_PART_RETURN
from workshop.domain.errors import NotFound, PreconditionFailed, ValidationError, WorkshopError
from workshop.domain.statuses import (
    DISP_DISPOSE, DISP_MERGE, DISP_RETURN, DISP_TRACK, SOURCE_INTERNAL, TXN_RECEIPT, UP_PENDING, WO_COMPLETED,
)
from workshop.models import StockItem, UsedPart, WorkOrder
from workshop.schemas.inventory import MissingLine
from workshop.schemas.workorder import DispositionChoice, DispositionReport
from workshop.services import inventory_service

logger = logging.getLogger(__name__)

DISPOSITIONS = (DISP_TRACK, DISP_MERGE, DISP_RETURN, DISP_DISPOSE)


@dataclass
class RemovablePart:
    name: str
    quantity: Decimal
    unit: str
    code: Optional[str] = None
    # First internal-stock line of this name, if any
    stock_item_id: Optional[int] = None


def removable_parts(wo: WorkOrder) -> "OrderedDict[str, RemovablePart]":
    parts: "OrderedDict[str, RemovablePart]" = OrderedDict()
    for line in wo.parts:
        name = line.Name.strip()
        part = parts.get(name)
        if part is None:
            part = parts[name] = RemovablePart(name=name, quantity=Decimal("0"), unit=line.Unit, code=line.Code)
        part.quantity += Decimal(line.Quantity)
        if part.stock_item_id is None and line.Source_s == SOURCE_INTERNAL and line.StockItemID is not None:
            part.stock_item_id = line.StockItemID
    return parts


def return_key(wo: WorkOrder, name: str, stock_item_id: int) -> str:
    # Digest of the full name; names run to 200 chars
    digest = hashlib.sha1(name.encode("utf-8")).hexdigest()[:16]
    return KEY_WO_RETURN.format(wo_id=wo.WorkOrderID, part_digest=digest, stock_item_id=stock_item_id)


def validate_choices(
    db: Session,
    wo: WorkOrder,
    choices: Sequence[DispositionChoice],
) -> List[Tuple[DispositionChoice, RemovablePart]]:
    """Reject the whole batch on the first inconsistent choice; zero quantities drop out."""
    parts = removable_parts(wo)
    kept: List[Tuple[DispositionChoice, RemovablePart]] = []
    tracked: Dict[str, Decimal] = {}

    for choice in choices:
        name = choice.PartName.strip()
        part = parts.get(name)
        if part is None:
            raise ValidationError(f"Part '{name}' is not on work order {wo.OrderNo}", PartName=name)
        if choice.Disposition not in DISPOSITIONS:
            raise ValidationError(f"Unknown disposition: {choice.Disposition}", Disposition=choice.Disposition)
        qty = Decimal(choice.Quantity)
        if qty < 0:
            raise ValidationError("Quantity must be >= 0", PartName=name, Quantity=str(qty))
        if qty == 0:
            continue

        if choice.Disposition in (DISP_TRACK, DISP_RETURN):
            tracked[name] = tracked.get(name, Decimal("0")) + qty
            if tracked[name] > part.quantity:
                raise ValidationError(
                    f"Quantity for '{name}' exceeds the requisitioned {part.quantity}",
                    PartName=name,
                    Quantity=str(tracked[name]),
                    Requisitioned=str(part.quantity),
                )

        if choice.Disposition == DISP_RETURN and part.stock_item_id is None:
            raise ValidationError(
                f"'{name}' was not taken from internal stock and cannot be returned to it",
                PartName=name,
            )

        if choice.Disposition == DISP_MERGE:
            if choice.TargetStockItemID is None:
                raise ValidationError(f"Merging '{name}' needs a target stock item", PartName=name)
            target = db.get(StockItem, choice.TargetStockItemID)
            if target is None:
                raise NotFound("StockItem", choice.TargetStockItemID)
            if not target.IsFungibleUsedItem:
                raise ValidationError(
                    f"Stock item {target.Code} is not a fungible used-part item",
                    TargetStockItemID=target.StockItemID,
                )

        kept.append((choice, part))
    return kept


def apply_dispositions(
    db: Session,
    wo: WorkOrder,
    choices: Sequence[DispositionChoice],
    *,
    actor: Optional[str] = None,
) -> DispositionReport:
    """Flush-only; the caller holds the work order lock and commits."""
    if wo.DispositionsResolvedAt is not None:
        return DispositionReport(already_resolved=True)

    validated = validate_choices(db, wo, choices)
    now = clock.now()
    report = DispositionReport()

    # Receipts aggregated per (part name, stock item): one ledger row each
    receipts: "OrderedDict[Tuple[str, int], Decimal]" = OrderedDict()

    for choice, part in validated:
        qty = Decimal(choice.Quantity)
        if choice.Disposition == DISP_TRACK:
            up = UsedPart(
                WorkOrderID=wo.WorkOrderID,
                StockItemID=part.stock_item_id,
                PartName=part.name,
                PartCode=part.code,
                RemovedAt=now,
                InitialQuantity=qty,
                Unit=part.unit,
                Status_s=UP_PENDING,
                Notes=choice.Notes,
            )
            db.add(up)
            db.flush()
            report.used_part_ids.append(up.UsedPartID)
        elif choice.Disposition == DISP_MERGE:
            k = (part.name, choice.TargetStockItemID)
            receipts[k] = receipts.get(k, Decimal("0")) + qty
        elif choice.Disposition == DISP_RETURN:
            k = (part.name, part.stock_item_id)
            receipts[k] = receipts.get(k, Decimal("0")) + qty
        else:
            report.disposed.append(part.name)

    keys = [return_key(wo, name, sid) for (name, sid) in receipts]
    already = inventory_service.existing_keys(db, keys)
    for (name, sid), qty in sorted(receipts.items(), key=lambda kv: kv[0][1]):
        key = return_key(wo, name, sid)
        if key in already:
            report.receipts.duplicates.append(key)
            continue
        item = lock_for_update(db, StockItem, sid)
        if item is None:
            logger.warning("Work order %s: stock item %s not found, return of '%s' skipped", wo.OrderNo, sid, name)
            report.receipts.missing.append(MissingLine(StockItemID=sid, Name=name))
            continue
        inventory_service.post_entry(
            db,
            item,
            txn_type=TXN_RECEIPT,
            quantity=qty,
            posting_key=key,
            actor=actor,
            notes=REASON_USED_PART_RETURN.format(wo.OrderNo),
            work_order_id=wo.WorkOrderID,
        )
        report.receipts.posted.append(key)

    wo.DispositionsResolvedAt = now
    db.flush()
    logger.info(
        "Work order %s: dispositions resolved (%d tracked, %d receipts, %d disposed)",
        wo.OrderNo, len(report.used_part_ids), len(report.receipts.posted), len(report.disposed),
    )
    return report


def resolve_dispositions(
    db: Session,
    work_order_id: int,
    choices: Sequence[DispositionChoice],
    *,
    actor: Optional[str] = None,
) -> DispositionReport:
    try:
        wo = lock_for_update(db, WorkOrder, work_order_id)
        if wo is None:
            raise NotFound("WorkOrder", work_order_id)
        if wo.Status_s != WO_COMPLETED:
            raise PreconditionFailed(
                f"Work order is {wo.Status_s}; dispositions are resolved on completion",
                missing="completed status",
            )
        report = apply_dispositions(db, wo, choices, actor=actor)
        db.commit()
        return report
    except WorkshopError:
        db.rollback()
        raise
    except IntegrityError:
        db.rollback()
        logger.warning("Work order %s: concurrent disposition resolution, treated as done", work_order_id)
        return DispositionReport(already_resolved=True)
    except SQLAlchemyError:
        db.rollback()
        logger.exception("resolve_dispositions failed for work order %s", work_order_id)
        raise
