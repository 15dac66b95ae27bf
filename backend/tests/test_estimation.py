from datetime import date, datetime
from decimal import Decimal

import pytest

from workshop.domain.errors import NotFound, PreconditionFailed
from workshop.domain.statuses import EST_ACTIVE, EST_COMPLETED, EST_FAILED
from workshop.models import Holiday
from workshop.schemas.master_data import CategoryCreate, HolidayCreate, StandardTaskCreate
from workshop.services import estimation_service, master_data_service, workorder_service


def test_first_attempt_opens_with_workorder(make_workorder):
    wo = make_workorder(hours=Decimal("2"))

    assert len(wo.estimations) == 1
    est = wo.estimations[0]
    assert est.Sequence == 1
    assert est.Status_s == EST_ACTIVE
    # Created Monday 09:30, start rounds up to 10:00
    assert est.EstimatedStart == datetime(2025, 3, 3, 10, 0)
    assert est.EstimatedEnd == datetime(2025, 3, 3, 12, 0)


def test_holidays_from_database_shift_the_finish(db, make_workorder):
    db.add(Holiday(HolidayDate=datetime(2025, 3, 10).date(), Name="Bridge day"))
    db.commit()

    wo = make_workorder(EstimatedStart=datetime(2025, 3, 7, 16, 0), hours=Decimal("2"))
    assert wo.estimations[0].EstimatedEnd == datetime(2025, 3, 11, 9, 0)


def test_adding_and_removing_holiday_moves_open_estimates(db, make_workorder):
    wo = make_workorder(EstimatedStart=datetime(2025, 3, 7, 16, 0), hours=Decimal("2"))
    assert wo.estimations[0].EstimatedEnd == datetime(2025, 3, 10, 9, 0)

    h = master_data_service.create_holiday(db, HolidayCreate(HolidayDate=date(2025, 3, 10), Name="Bridge day"))
    db.refresh(wo)
    assert wo.estimations[0].EstimatedEnd == datetime(2025, 3, 11, 9, 0)

    master_data_service.delete_holiday(db, h.HolidayID)
    db.refresh(wo)
    assert wo.estimations[0].EstimatedEnd == datetime(2025, 3, 10, 9, 0)


def test_holiday_outside_window_leaves_estimate_alone(db, make_workorder):
    wo = make_workorder(hours=Decimal("2"))
    master_data_service.create_holiday(db, HolidayCreate(HolidayDate=date(2025, 3, 20), Name="Later"))
    db.refresh(wo)
    assert wo.estimations[0].EstimatedEnd == datetime(2025, 3, 3, 12, 0)


def test_reestimate_edits_active_attempt_in_place(db, make_workorder):
    wo = make_workorder(hours=Decimal("2"))

    est = estimation_service.reestimate(db, wo.WorkOrderID, hours=Decimal("3"), reasoning="seized bolt")

    assert est.Sequence == 1
    assert est.EstimatedHours == Decimal("3.00")
    assert est.EstimatedEnd == datetime(2025, 3, 3, 14, 0)
    assert est.Reasoning == "seized bolt"
    db.refresh(wo)
    assert len(wo.estimations) == 1


def test_missed_deadline_opens_next_attempt(db, make_workorder):
    wo = make_workorder(hours=Decimal("2"))

    est = estimation_service.record_missed_deadline(
        db, wo.WorkOrderID,
        failure_reason="parts late",
        start=datetime(2025, 3, 4, 8, 0),
        hours=Decimal("1"),
    )

    assert est.Sequence == 2
    assert est.Status_s == EST_ACTIVE
    assert est.EstimatedEnd == datetime(2025, 3, 4, 9, 0)
    db.refresh(wo)
    first = wo.estimations[0]
    assert first.Status_s == EST_FAILED
    assert first.FailureReason == "parts late"


def test_missed_deadline_keeps_previous_hours_by_default(db, make_workorder):
    wo = make_workorder(hours=Decimal("5"))
    est = estimation_service.record_missed_deadline(
        db, wo.WorkOrderID, failure_reason="late", start=datetime(2025, 3, 4, 8, 0),
    )
    assert est.EstimatedHours == Decimal("5.00")


def test_completion_finalizes_attempts(db, technician, make_workorder):
    wo = make_workorder(technician_id=technician.TechnicianID)
    estimation_service.record_missed_deadline(db, wo.WorkOrderID, failure_reason="late")
    workorder_service.transition(db, wo.WorkOrderID, "InProgress")
    workorder_service.transition(db, wo.WorkOrderID, "Completed")

    wo = workorder_service.get_workorder(db, wo.WorkOrderID)
    statuses = [(e.Sequence, e.Status_s) for e in wo.estimations]
    assert statuses == [(1, EST_FAILED), (2, EST_COMPLETED)]
    assert sum(1 for e in wo.estimations if e.Status_s == EST_ACTIVE) == 0


def test_finalize_is_idempotent(make_workorder):
    wo = make_workorder()
    chosen = estimation_service.finalize(wo)
    again = estimation_service.finalize(wo)
    assert chosen is again
    assert chosen.Status_s == EST_COMPLETED


def test_estimates_frozen_after_completion(db, technician, make_workorder):
    wo = make_workorder(technician_id=technician.TechnicianID)
    workorder_service.transition(db, wo.WorkOrderID, "InProgress")
    workorder_service.transition(db, wo.WorkOrderID, "Completed")

    with pytest.raises(PreconditionFailed) as exc:
        estimation_service.reestimate(db, wo.WorkOrderID, hours=Decimal("4"))
    assert exc.value.missing == "non-terminal status"

    with pytest.raises(PreconditionFailed):
        estimation_service.record_missed_deadline(db, wo.WorkOrderID, failure_reason="too late")


def test_hours_from_standard_tasks(db, make_workorder):
    master_data_service.create_category(db, CategoryCreate(Code="eng", Name="Engine"))
    a = master_data_service.create_standard_task(
        db, StandardTaskCreate(CategoryCode="ENG", Item="Oil change", StandardHours=Decimal("1")),
    )
    b = master_data_service.create_standard_task(
        db, StandardTaskCreate(CategoryCode="ENG", Item="Filter", StandardHours=Decimal("0.5")),
    )

    assert estimation_service.estimate_hours_from_tasks(db, [a.TaskID, b.TaskID, b.TaskID]) == Decimal("2.00")

    wo = make_workorder(hours=None, TaskIDs=[a.TaskID, b.TaskID])
    assert wo.estimations[0].EstimatedHours == Decimal("1.50")


def test_unknown_task_is_not_found(db):
    with pytest.raises(NotFound):
        estimation_service.estimate_hours_from_tasks(db, [999])
