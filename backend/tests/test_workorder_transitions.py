from decimal import Decimal

import pytest

from workshop.domain.confirm import always_confirm, never_confirm
from workshop.domain.errors import NotFound, PreconditionFailed, ValidationError
from workshop.domain.statuses import WO_CANCELLED, WO_COMPLETED, WO_IN_PROGRESS, WO_PENDING
from workshop.models import StockTransaction
from workshop.schemas.workorder import WorkOrderUpdate
from workshop.services import workorder_service


def test_new_workorder_is_pending_with_number(make_workorder):
    wo = make_workorder()
    assert wo.Status_s == WO_PENDING
    assert wo.OrderNo == "RO-2025-00001"
    assert wo.RepairStartedAt is None


def test_start_requires_assignment(db, make_workorder):
    wo = make_workorder()
    with pytest.raises(PreconditionFailed) as exc:
        workorder_service.transition(db, wo.WorkOrderID, WO_IN_PROGRESS)
    assert exc.value.missing == "technician_or_contractor"
    assert workorder_service.get_workorder(db, wo.WorkOrderID).Status_s == WO_PENDING


def test_external_contractor_counts_as_assignment(db, make_workorder):
    wo = make_workorder(ExternalContractor="Speedy Garage")
    wo = workorder_service.transition(db, wo.WorkOrderID, WO_IN_PROGRESS)
    assert wo.Status_s == WO_IN_PROGRESS
    assert wo.RepairStartedAt is not None


def test_technician_and_contractor_are_exclusive(db, technician, make_workorder):
    with pytest.raises(ValidationError):
        make_workorder(technician_id=technician.TechnicianID, ExternalContractor="Speedy Garage")


def test_assistants_need_primary(db, technician, make_workorder):
    with pytest.raises(ValidationError):
        make_workorder(AssistantIDs=[technician.TechnicianID])


def test_unknown_technician(db, make_workorder):
    with pytest.raises(NotFound):
        make_workorder(technician_id=4242)


def test_complete_requires_started_repair(db, technician, make_workorder):
    wo = make_workorder(technician_id=technician.TechnicianID)
    with pytest.raises(PreconditionFailed) as exc:
        workorder_service.transition(db, wo.WorkOrderID, WO_COMPLETED)
    assert exc.value.missing == "repair_started_at"


def test_awaiting_parts_round_trip_keeps_start_time(db, started_workorder):
    started = started_workorder.RepairStartedAt
    wo = workorder_service.transition(db, started_workorder.WorkOrderID, "AwaitingParts")
    wo = workorder_service.transition(db, wo.WorkOrderID, WO_IN_PROGRESS)
    assert wo.RepairStartedAt == started


def test_terminal_statuses_are_final(db, started_workorder):
    wo_id = started_workorder.WorkOrderID
    workorder_service.transition(db, wo_id, WO_COMPLETED)
    with pytest.raises(PreconditionFailed) as exc:
        workorder_service.transition(db, wo_id, WO_IN_PROGRESS)
    assert exc.value.missing == "non-terminal status"


def test_cancel_needs_confirmation(db, make_workorder):
    wo = make_workorder()
    with pytest.raises(PreconditionFailed) as exc:
        workorder_service.transition(db, wo.WorkOrderID, WO_CANCELLED, confirm=never_confirm)
    assert exc.value.missing == "confirmation"
    with pytest.raises(PreconditionFailed):
        workorder_service.transition(db, wo.WorkOrderID, WO_CANCELLED)

    wo = workorder_service.transition(db, wo.WorkOrderID, WO_CANCELLED, confirm=always_confirm)
    assert wo.Status_s == WO_CANCELLED


def test_unknown_status_is_rejected(db, make_workorder):
    wo = make_workorder()
    with pytest.raises(ValidationError):
        workorder_service.transition(db, wo.WorkOrderID, "Archived")


def test_same_status_is_noop(db, make_workorder):
    wo = make_workorder()
    updated_at = wo.UpdatedAt
    wo, report = workorder_service.transition_with_report(db, wo.WorkOrderID, WO_PENDING)
    assert report is None
    assert wo.UpdatedAt == updated_at


def test_completion_posts_withdrawals_once(db, started_workorder, oil, filter_item):
    wo_id = started_workorder.WorkOrderID

    wo, report = workorder_service.transition_with_report(db, wo_id, WO_COMPLETED)
    assert wo.RepairEndedAt is not None
    assert sorted(report.withdrawals.posted) == [
        f"WO:{wo_id}:OUT:{oil.StockItemID}",
        f"WO:{wo_id}:OUT:{filter_item.StockItemID}",
    ]

    # Retried completion posts nothing new
    wo, again = workorder_service.transition_with_report(db, wo_id, WO_COMPLETED)
    assert again.withdrawals.posted == []
    assert len(again.withdrawals.duplicates) == 2

    rows = db.query(StockTransaction).filter(StockTransaction.WorkOrderID == wo_id).all()
    assert len(rows) == 2
    oil_row = next(r for r in rows if r.StockItemID == oil.StockItemID)
    assert oil_row.Quantity == Decimal("-5")

    db.refresh(oil)
    assert oil.Quantity == Decimal("35")


def test_external_lines_are_not_withdrawn(db, technician, make_workorder):
    wo = make_workorder(
        technician_id=technician.TechnicianID,
        parts=[{
            "Name": "Alternator", "Quantity": "1", "Unit": "pcs", "UnitPrice": "3500",
            "Source_s": "ExternalSupplier", "SupplierName": "Auto Parts Co", "PurchaseDate": "2025-03-03",
        }],
    )
    workorder_service.transition(db, wo.WorkOrderID, WO_IN_PROGRESS)
    _, report = workorder_service.transition_with_report(db, wo.WorkOrderID, WO_COMPLETED)
    assert report.withdrawals.posted == []


def test_external_line_needs_supplier_and_date(db, make_workorder):
    with pytest.raises(ValidationError):
        make_workorder(parts=[{
            "Name": "Alternator", "Quantity": "1", "Unit": "pcs", "Source_s": "ExternalSupplier",
        }])


def test_internal_line_needs_stock_item(db, make_workorder):
    with pytest.raises(ValidationError):
        make_workorder(parts=[{"Name": "Bolt", "Quantity": "4", "Unit": "pcs"}])


def test_completed_order_only_accepts_result_edits(db, started_workorder):
    wo_id = started_workorder.WorkOrderID
    workorder_service.transition(db, wo_id, WO_COMPLETED)

    wo = workorder_service.update_workorder(db, wo_id, WorkOrderUpdate(RepairResult="Replaced gasket"))
    assert wo.RepairResult == "Replaced gasket"

    with pytest.raises(PreconditionFailed):
        workorder_service.update_workorder(db, wo_id, WorkOrderUpdate(LicensePlate="9ZZ-9999"))
    with pytest.raises(PreconditionFailed):
        workorder_service.update_workorder(db, wo_id, WorkOrderUpdate(parts=[]))


def test_parts_can_be_replaced_before_completion(db, started_workorder, oil):
    wo = workorder_service.update_workorder(
        db,
        started_workorder.WorkOrderID,
        WorkOrderUpdate(parts=[{"StockItemID": oil.StockItemID, "Name": "Engine oil", "Quantity": "6", "Unit": "L"}]),
    )
    assert [(p.LineNo, p.Quantity) for p in wo.parts] == [(1, Decimal("6"))]


def test_unassigning_a_running_repair_is_rejected(db, started_workorder):
    with pytest.raises(PreconditionFailed) as exc:
        workorder_service.assign(db, started_workorder.WorkOrderID)
    assert exc.value.missing == "technician_or_contractor"


def test_approve_stamps_once(db, make_workorder):
    wo = make_workorder()
    first = workorder_service.approve(db, wo.WorkOrderID).ApprovedAt
    assert first is not None
    assert workorder_service.approve(db, wo.WorkOrderID).ApprovedAt == first


def test_delete_needs_confirmation_and_no_ledger(db, make_workorder, started_workorder):
    draft = make_workorder()
    with pytest.raises(PreconditionFailed):
        workorder_service.delete_workorder(db, draft.WorkOrderID, confirm=never_confirm)
    workorder_service.delete_workorder(db, draft.WorkOrderID, confirm=always_confirm)
    with pytest.raises(NotFound):
        workorder_service.get_workorder(db, draft.WorkOrderID)

    wo_id = started_workorder.WorkOrderID
    workorder_service.transition(db, wo_id, WO_COMPLETED)
    with pytest.raises(PreconditionFailed) as exc:
        workorder_service.delete_workorder(db, wo_id, confirm=always_confirm)
    assert exc.value.missing == "no ledger entries"


def test_totals(db, technician, make_workorder, oil):
    wo = make_workorder(
        technician_id=technician.TechnicianID,
        parts=[{"StockItemID": oil.StockItemID, "Name": "Engine oil", "Quantity": "4", "Unit": "L", "UnitPrice": "180"}],
        LaborCost=Decimal("1000"),
        LaborVatEnabled=True,
        PartsVat=Decimal("50.40"),
    )
    totals = workorder_service.compute_totals(wo)
    assert totals.PartsCost == Decimal("720.00")
    assert totals.LaborVat == Decimal("70.00")
    assert totals.GrandTotal == Decimal("1840.40")
