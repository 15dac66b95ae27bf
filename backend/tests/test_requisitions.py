from datetime import datetime
from decimal import Decimal

import pytest

from workshop.domain.confirm import always_confirm
from workshop.domain.errors import PreconditionFailed, ValidationError
from workshop.schemas.requisition import RequisitionCreate, RequisitionLineIn, RequisitionUpdate
from workshop.services import inventory_service, requisition_service


@pytest.fixture
def requisition(db, oil, filter_item):
    data = RequisitionCreate(
        RequesterName="Anan P.",
        SupplierName="Lube Supply Ltd",
        Vat=Decimal("70"),
        lines=[
            RequisitionLineIn(StockItemID=oil.StockItemID, Description="Engine oil 10W-40", Quantity=20, UnitPrice=150),
            RequisitionLineIn(StockItemID=filter_item.StockItemID, Description="Oil filter", Quantity=10, UnitPrice=200),
            RequisitionLineIn(Description="Shop towels", Quantity=1, UnitPrice=300),
        ],
    )
    return requisition_service.create_requisition(db, data, now=datetime(2025, 3, 3, 10, 0))


def _to_received(db, pr_id):
    requisition_service.transition_requisition(db, pr_id, "PendingApproval")
    requisition_service.transition_requisition(db, pr_id, "Approved", approved_by="Workshop manager")
    return requisition_service.transition_with_report(db, pr_id, "Received")


def test_new_requisition_is_draft(requisition, oil):
    assert requisition.RequisitionNo == "PR-2025-00001"
    assert requisition.Status_s == "Draft"
    assert [l.LineNo for l in requisition.lines] == [1, 2, 3]
    # Unit copied from the stock item
    assert requisition.lines[0].Unit == "L"


def test_totals(requisition):
    totals = requisition_service.compute_totals(requisition)
    assert totals.Subtotal == Decimal("5300.00")
    assert totals.Total == Decimal("5370.00")


def test_approval_needs_approver(db, requisition):
    requisition_service.transition_requisition(db, requisition.RequisitionID, "PendingApproval")
    with pytest.raises(ValidationError):
        requisition_service.transition_requisition(db, requisition.RequisitionID, "Approved")

    pr = requisition_service.transition_requisition(db, requisition.RequisitionID, "Approved", approved_by="  Boss ")
    assert pr.ApprovedBy == "Boss"
    assert pr.ApprovedAt is not None


def test_draft_cannot_jump_to_received(db, requisition):
    with pytest.raises(PreconditionFailed) as exc:
        requisition_service.transition_requisition(db, requisition.RequisitionID, "Received")
    assert exc.value.missing == "allowed transition"


def test_receipt_posts_stock_once(db, requisition, oil, filter_item):
    pr_id = requisition.RequisitionID
    pr, report = _to_received(db, pr_id)

    assert pr.Status_s == "Received"
    assert pr.ReceivedAt is not None
    # Only lines with a stock item post
    assert len(report.posted) == 2

    db.refresh(oil)
    db.refresh(filter_item)
    assert oil.Quantity == Decimal("60")
    assert filter_item.Quantity == Decimal("22")

    with pytest.raises(PreconditionFailed) as exc:
        requisition_service.transition_requisition(db, pr_id, "Received")
    assert exc.value.missing == "non-terminal status"

    again = inventory_service.post_receipt(db, pr_id)
    assert again.posted == []
    assert len(again.duplicates) == 2
    db.refresh(oil)
    assert oil.Quantity == Decimal("60")


def test_receipt_uses_line_price(db, requisition, oil):
    _to_received(db, requisition.RequisitionID)
    rows = inventory_service.list_transactions(db, requisition_id=requisition.RequisitionID)
    oil_row = next(r for r in rows if r.StockItemID == oil.StockItemID)
    assert oil_row.UnitPrice == Decimal("150")
    assert oil_row.Notes == f"Received per requisition {requisition.RequisitionNo}"


def test_post_receipt_requires_received(db, requisition):
    with pytest.raises(PreconditionFailed):
        inventory_service.post_receipt(db, requisition.RequisitionID)


def test_edit_only_before_approval(db, requisition):
    pr = requisition_service.update_requisition(
        db, requisition.RequisitionID,
        RequisitionUpdate(lines=[RequisitionLineIn(Description="Brake fluid", Quantity=2, UnitPrice=90)]),
    )
    assert [l.Description for l in pr.lines] == ["Brake fluid"]

    requisition_service.transition_requisition(db, pr.RequisitionID, "PendingApproval")
    requisition_service.transition_requisition(db, pr.RequisitionID, "Approved", approved_by="Boss")
    with pytest.raises(PreconditionFailed):
        requisition_service.update_requisition(db, pr.RequisitionID, RequisitionUpdate(Notes="late edit"))


def test_cancel_and_delete_need_confirmation(db, requisition):
    pr_id = requisition.RequisitionID
    with pytest.raises(PreconditionFailed):
        requisition_service.transition_requisition(db, pr_id, "Cancelled")
    pr = requisition_service.transition_requisition(db, pr_id, "Cancelled", confirm=always_confirm)
    assert pr.Status_s == "Cancelled"

    with pytest.raises(PreconditionFailed):
        requisition_service.delete_requisition(db, pr_id)
    requisition_service.delete_requisition(db, pr_id, confirm=always_confirm)
    assert requisition_service.list_requisitions(db) == []


def test_received_requisition_cannot_be_deleted(db, requisition):
    _to_received(db, requisition.RequisitionID)
    with pytest.raises(PreconditionFailed) as exc:
        requisition_service.delete_requisition(db, requisition.RequisitionID, confirm=always_confirm)
    assert exc.value.missing == "no ledger entries"
