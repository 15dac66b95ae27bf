# backend/workshop/services/estimation_service.py
"""
Estimation attempts of a work order.

Attempt #1 is opened together with the work order. Re-estimating edits the
open (Active) attempt in place; only the missed-deadline workflow opens a new
attempt. Completion of the work order closes the list out via `finalize`.
"""
from __future__ import annotations

import logging
from datetime import date, datetime, time, timedelta
from decimal import Decimal, ROUND_HALF_UP
from typing import AbstractSet, FrozenSet, Iterable, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from workshop.core import clock
from workshop.core.db import lock_for_update
from workshop.domain.calendar import compute_finish, round_up_to_hour
from workshop.domain.constants import HOURS_PLACES
from workshop.domain.errors import NotFound, PreconditionFailed, WorkshopError
from workshop.domain.statuses import EST_ACTIVE, EST_COMPLETED, EST_FAILED, WO_TERMINAL
from workshop.models import EstimationAttempt, Holiday, StandardTask, WorkOrder

logger = logging.getLogger(__name__)


def _to_hours(v) -> Decimal:
    d = v if isinstance(v, Decimal) else Decimal(str(v or 0))
    if d < 0:
        d = Decimal("0")
    return d.quantize(HOURS_PLACES, rounding=ROUND_HALF_UP)


def load_holidays(db: Session) -> FrozenSet[date]:
    return frozenset(d for (d,) in db.query(Holiday.HolidayDate).all())


def start_estimation(
    work_order: WorkOrder,
    *,
    now: datetime,
    start: Optional[datetime] = None,
    hours=0,
    holidays: AbstractSet[date] = frozenset(),
    reasoning: Optional[str] = None,
) -> EstimationAttempt:
    """Open attempt #1 on a work order that has none yet."""
    if work_order.estimations:
        raise PreconditionFailed(
            "Work order already has estimation attempts",
            missing="no estimation attempts",
        )
    est_hours = _to_hours(hours)
    est_start = start or round_up_to_hour(now)
    attempt = EstimationAttempt(
        Sequence=1,
        CreatedAt=now,
        EstimatedStart=est_start,
        EstimatedEnd=compute_finish(est_start, float(est_hours), holidays),
        EstimatedHours=est_hours,
        Status_s=EST_ACTIVE,
        Reasoning=reasoning,
    )
    work_order.estimations.append(attempt)
    return attempt


def _active(work_order: WorkOrder) -> Optional[EstimationAttempt]:
    for est in work_order.estimations:
        if est.Status_s == EST_ACTIVE:
            return est
    return None


def _lock_open_workorder(db: Session, work_order_id: int) -> WorkOrder:
    wo = lock_for_update(db, WorkOrder, work_order_id)
    if wo is None:
        raise NotFound("WorkOrder", work_order_id)
    if wo.Status_s in WO_TERMINAL:
        raise PreconditionFailed(
            f"Work order is {wo.Status_s}; estimates can no longer change",
            missing="non-terminal status",
        )
    return wo


def reestimate(
    db: Session,
    work_order_id: int,
    *,
    start: Optional[datetime] = None,
    hours=None,
    reasoning: Optional[str] = None,
) -> EstimationAttempt:
    """Edit the Active attempt; the finish time is recomputed from scratch."""
    try:
        wo = _lock_open_workorder(db, work_order_id)
        active = _active(wo)
        if active is None:
            raise PreconditionFailed(
                "Work order has no active estimation attempt",
                missing="active estimation attempt",
            )

        new_start = start or active.EstimatedStart
        new_hours = _to_hours(hours) if hours is not None else _to_hours(active.EstimatedHours)
        active.EstimatedStart = new_start
        active.EstimatedHours = new_hours
        active.EstimatedEnd = compute_finish(new_start, float(new_hours), load_holidays(db))
        if reasoning is not None:
            active.Reasoning = reasoning
        wo.UpdatedAt = clock.now()

        db.commit()
        db.refresh(active)
        return active
    except WorkshopError:
        db.rollback()
        raise
    except SQLAlchemyError:
        db.rollback()
        logger.exception("reestimate failed for work order %s", work_order_id)
        raise


def recompute_for_holiday(db: Session, changed: date) -> int:
    """
    Re-run the finish time of every Active attempt on an open work order whose
    window reaches `changed`. Flush-only; the holiday change commits with it.
    """
    window_from = datetime.combine(changed, time.min)
    window_to = window_from + timedelta(days=1)
    attempts = (
        db.query(EstimationAttempt)
        .join(WorkOrder, WorkOrder.WorkOrderID == EstimationAttempt.WorkOrderID)
        .filter(
            EstimationAttempt.Status_s == EST_ACTIVE,
            WorkOrder.Status_s.notin_(WO_TERMINAL),
            EstimationAttempt.EstimatedStart < window_to,
            EstimationAttempt.EstimatedEnd >= window_from,
        )
        .all()
    )
    if not attempts:
        return 0

    holidays = load_holidays(db)
    for est in attempts:
        lock_for_update(db, WorkOrder, est.WorkOrderID)
        est.EstimatedEnd = compute_finish(est.EstimatedStart, float(est.EstimatedHours), holidays)
    db.flush()
    logger.info("Holiday %s: %d active estimate(s) recomputed", changed, len(attempts))
    return len(attempts)


def finalize(work_order: WorkOrder) -> Optional[EstimationAttempt]:
    """
    Close the attempt list when the work order completes: the Active attempt
    (or, without one, the highest sequence) becomes Completed, the rest Failed.
    Running it again changes nothing.
    """
    attempts = list(work_order.estimations)
    if not attempts:
        return None

    chosen = next((e for e in attempts if e.Status_s == EST_COMPLETED), None)
    if chosen is None:
        chosen = _active(work_order) or max(attempts, key=lambda e: e.Sequence)
        chosen.Status_s = EST_COMPLETED

    for est in attempts:
        if est is not chosen and est.Status_s != EST_COMPLETED:
            est.Status_s = EST_FAILED
    return chosen


def record_missed_deadline(
    db: Session,
    work_order_id: int,
    *,
    failure_reason: str,
    start: Optional[datetime] = None,
    hours=None,
    reasoning: Optional[str] = None,
) -> EstimationAttempt:
    """Fail the Active attempt with a reason and open the next one."""
    try:
        wo = _lock_open_workorder(db, work_order_id)
        now = clock.now()

        previous = _active(wo)
        if previous is not None:
            previous.Status_s = EST_FAILED
            previous.FailureReason = failure_reason

        last_seq = max((e.Sequence for e in wo.estimations), default=0)
        if hours is None:
            hours = previous.EstimatedHours if previous is not None else 0
        est_hours = _to_hours(hours)
        est_start = start or round_up_to_hour(now)

        attempt = EstimationAttempt(
            Sequence=last_seq + 1,
            CreatedAt=now,
            EstimatedStart=est_start,
            EstimatedEnd=compute_finish(est_start, float(est_hours), load_holidays(db)),
            EstimatedHours=est_hours,
            Status_s=EST_ACTIVE,
            Reasoning=reasoning,
        )
        wo.estimations.append(attempt)
        wo.UpdatedAt = now

        db.commit()
        db.refresh(attempt)
        logger.info("Work order %s: estimation attempt %s opened", wo.OrderNo, attempt.Sequence)
        return attempt
    except WorkshopError:
        db.rollback()
        raise
    except SQLAlchemyError:
        db.rollback()
        logger.exception("record_missed_deadline failed for work order %s", work_order_id)
        raise


def estimate_hours_from_tasks(db: Session, task_ids: Iterable[int]) -> Decimal:
    """Sum of the standard hours of the given tasks (a task may repeat)."""
    ids = list(task_ids)
    if not ids:
        return _to_hours(0)
    tasks = {t.TaskID: t for t in db.query(StandardTask).filter(StandardTask.TaskID.in_(set(ids))).all()}
    total = Decimal("0")
    for tid in ids:
        task = tasks.get(tid)
        if task is None:
            raise NotFound("StandardTask", tid)
        total += Decimal(task.StandardHours)
    return _to_hours(total)
