# backend/workshop/services/used_part_service.py
"""
Batch processing of individually tracked used parts.

Each event takes a quantity out of what remains. Moving a part back into
stock posts a Receipt: to a fungible used-part item, or to the revolving
twin `{code}-R` of the part's own stock item (created on first use).
"""
from __future__ import annotations

import logging
from decimal import Decimal, ROUND_HALF_UP
from typing import List, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from workshop.core import clock
from workshop.core.db import lock_for_update
from workshop.domain.constants import (
    KEY_USED_PART_MOVE, MONEY_PLACES, QTY_PLACES, REASON_USED_PART_MOVE, REVOLVING_CODE_SUFFIX,
)
from workshop.domain.errors import NotFound, ValidationError, WorkshopError
from workshop.domain.statuses import (
    TXN_RECEIPT, UP_DONE, UPD_SELL, UPD_TO_FUNGIBLE, UPD_TO_REVOLVING, USED_PART_EVENT_KINDS, used_part_status,
)
from workshop.models import StockItem, UsedPart, UsedPartDisposition
from workshop.schemas.inventory import UsedPartEventIn
from workshop.services import inventory_service

logger = logging.getLogger(__name__)


def _to_qty(v) -> Decimal:
    d = v if isinstance(v, Decimal) else Decimal(str(v or 0))
    return d.quantize(QTY_PLACES, rounding=ROUND_HALF_UP)


def handled_quantity(up: UsedPart) -> Decimal:
    return sum((Decimal(e.Quantity) for e in up.events), Decimal("0"))


def remaining_quantity(up: UsedPart) -> Decimal:
    return _to_qty(Decimal(up.InitialQuantity) - handled_quantity(up))


def get_used_part(db: Session, used_part_id: int) -> UsedPart:
    up = db.get(UsedPart, used_part_id)
    if up is None:
        raise NotFound("UsedPart", used_part_id)
    return up


def list_used_parts(
    db: Session,
    *,
    status_s: Optional[str] = None,
    work_order_id: Optional[int] = None,
    open_only: bool = False,
    skip: int = 0,
    limit: int = 100,
) -> List[UsedPart]:
    query = db.query(UsedPart)
    if status_s is not None:
        query = query.filter(UsedPart.Status_s == status_s)
    if open_only:
        query = query.filter(UsedPart.Status_s != UP_DONE)
    if work_order_id is not None:
        query = query.filter(UsedPart.WorkOrderID == work_order_id)
    return query.order_by(UsedPart.UsedPartID.desc()).offset(max(0, skip)).limit(min(max(1, limit), 500)).all()


def _revolving_twin(db: Session, origin: StockItem) -> StockItem:
    code = f"{origin.Code}{REVOLVING_CODE_SUFFIX}"
    twin = inventory_service.find_by_code(db, code)
    if twin is None:
        twin = StockItem(
            Code=code,
            Name=f"{origin.Name} (revolving)",
            Unit=origin.Unit,
            Category=origin.Category,
            UnitPrice=origin.UnitPrice,
            Quantity=Decimal("0"),
            MinStock=Decimal("0"),
            IsRevolvingPart=True,
            IsActive=True,
        )
        inventory_service.refresh_status(twin)
        db.add(twin)
        db.flush()
        logger.info("Revolving stock item %s created", code)
        return twin
    return lock_for_update(db, StockItem, twin.StockItemID)


def _move_target(db: Session, up: UsedPart, event: UsedPartEventIn) -> Optional[StockItem]:
    if event.Kind == UPD_TO_FUNGIBLE:
        if event.TargetStockItemID is None:
            raise ValidationError("MoveToFungible needs a target stock item")
        target = lock_for_update(db, StockItem, event.TargetStockItemID)
        if target is None:
            raise NotFound("StockItem", event.TargetStockItemID)
        if not target.IsFungibleUsedItem:
            raise ValidationError(
                f"Stock item {target.Code} is not a fungible used-part item",
                TargetStockItemID=target.StockItemID,
            )
        return target
    if event.Kind == UPD_TO_REVOLVING:
        origin = db.get(StockItem, up.StockItemID) if up.StockItemID is not None else None
        if origin is None:
            raise ValidationError(
                f"Used part {up.PartName} has no origin stock item to derive a revolving item from",
                UsedPartID=up.UsedPartID,
            )
        return _revolving_twin(db, origin)
    return None


def process_used_part(
    db: Session,
    used_part_id: int,
    event: UsedPartEventIn,
    *,
    actor: Optional[str] = None,
) -> UsedPart:
    try:
        up = lock_for_update(db, UsedPart, used_part_id)
        if up is None:
            raise NotFound("UsedPart", used_part_id)
        if event.Kind not in USED_PART_EVENT_KINDS:
            raise ValidationError(f"Unknown used-part event: {event.Kind}", Kind=event.Kind)

        qty = _to_qty(event.Quantity)
        remaining = remaining_quantity(up)
        if qty <= 0 or qty > remaining:
            raise ValidationError(
                f"Quantity {qty} is outside the remaining {remaining}",
                Quantity=str(qty),
                Remaining=str(remaining),
            )
        if event.Kind == UPD_SELL and not (event.BuyerName or "").strip():
            raise ValidationError("A sale needs the buyer name")

        target = _move_target(db, up, event)
        seq = max((e.Sequence for e in up.events), default=0) + 1
        now = clock.now()

        up.events.append(UsedPartDisposition(
            Sequence=seq,
            Kind=event.Kind,
            Quantity=qty,
            Condition=event.Condition,
            BuyerName=event.BuyerName if event.Kind == UPD_SELL else None,
            SalePrice=(
                Decimal(event.SalePrice).quantize(MONEY_PLACES, rounding=ROUND_HALF_UP)
                if event.Kind == UPD_SELL and event.SalePrice is not None else None
            ),
            TargetStockItemID=target.StockItemID if target is not None else None,
            CreatedAt=now,
            Actor=actor,
            Notes=event.Notes,
        ))

        if target is not None:
            inventory_service.post_entry(
                db,
                target,
                txn_type=TXN_RECEIPT,
                quantity=qty,
                posting_key=KEY_USED_PART_MOVE.format(used_part_id=up.UsedPartID, seq=seq),
                actor=actor,
                notes=REASON_USED_PART_MOVE.format(up.PartName, qty, up.Unit),
                used_part_id=up.UsedPartID,
            )

        up.Status_s = used_part_status(Decimal(up.InitialQuantity), handled_quantity(up))
        db.commit()
        db.refresh(up)
        logger.info("Used part %s: %s %s (%s)", up.UsedPartID, event.Kind, qty, up.Status_s)
        return up
    except WorkshopError:
        db.rollback()
        raise
    except IntegrityError:
        db.rollback()
        logger.warning("Used part %s: event %s already recorded", used_part_id, event.Kind)
        raise
    except SQLAlchemyError:
        db.rollback()
        logger.exception("process_used_part failed for %s", used_part_id)
        raise
