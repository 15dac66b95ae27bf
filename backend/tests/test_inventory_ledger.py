from decimal import Decimal

import pytest

from workshop.domain.errors import NotFound, PreconditionFailed, ValidationError
from workshop.domain.statuses import STOCK_LOW, STOCK_NORMAL, STOCK_OUT, STOCK_OVER, stock_status
from workshop.models import StockTransaction
from workshop.schemas.inventory import StockItemCreate, StockItemUpdate, StockTxnCreate
from workshop.services import inventory_service, workorder_service


def test_opening_balance_is_a_receipt(db, oil):
    rows = inventory_service.list_transactions(db, stock_item_id=oil.StockItemID)
    assert len(rows) == 1
    assert rows[0].TxnType == "Receipt"
    assert rows[0].PostingKey == f"STK:{oil.StockItemID}:OPEN"
    assert oil.Quantity == Decimal("40")


def test_duplicate_code_is_rejected(db, oil):
    with pytest.raises(ValidationError):
        inventory_service.create_stock_item(db, StockItemCreate(Code="OIL-10W40", Name="Other", Unit="L"))


def test_max_below_min_is_rejected(db):
    with pytest.raises(ValidationError):
        inventory_service.create_stock_item(
            db, StockItemCreate(Code="X", Name="X", Unit="pcs", MinStock=Decimal("5"), MaxStock=Decimal("2")),
        )


def test_stock_status_thresholds():
    assert stock_status(Decimal("0"), Decimal("2"), None) == STOCK_OUT
    assert stock_status(Decimal("-1"), Decimal("2"), None) == STOCK_OUT
    assert stock_status(Decimal("2"), Decimal("2"), None) == STOCK_LOW
    assert stock_status(Decimal("3"), Decimal("2"), Decimal("10")) == STOCK_NORMAL
    assert stock_status(Decimal("11"), Decimal("2"), Decimal("10")) == STOCK_OVER


def test_manual_movements_keep_ledger_balanced(db, oil):
    inventory_service.post_manual(db, StockTxnCreate(StockItemID=oil.StockItemID, TxnType="Receipt", Quantity=10))
    inventory_service.post_manual(db, StockTxnCreate(StockItemID=oil.StockItemID, TxnType="Withdrawal", Quantity=3))

    rec = inventory_service.reconcile(db, oil.StockItemID)
    assert rec.OnHand == Decimal("47")
    assert rec.Balanced
    assert rec.TxnCount == 3

    out = inventory_service.list_transactions(db, stock_item_id=oil.StockItemID, txn_type="Withdrawal")
    assert [t.Quantity for t in out] == [Decimal("-3")]


def test_manual_withdrawal_cannot_go_negative(db, filter_item):
    with pytest.raises(PreconditionFailed) as exc:
        inventory_service.post_manual(
            db, StockTxnCreate(StockItemID=filter_item.StockItemID, TxnType="Withdrawal", Quantity=13),
        )
    assert exc.value.missing == "stock on hand"
    db.refresh(filter_item)
    assert filter_item.Quantity == Decimal("12")


def test_manual_idempotency_key_posts_once(db, oil):
    payload = StockTxnCreate(StockItemID=oil.StockItemID, TxnType="Receipt", Quantity=5, IdempotencyKey="desk-001")
    first = inventory_service.post_manual(db, payload)
    second = inventory_service.post_manual(db, payload)

    assert first.TxnID == second.TxnID
    db.refresh(oil)
    assert oil.Quantity == Decimal("45")


def test_manual_unknown_item(db):
    with pytest.raises(NotFound):
        inventory_service.post_manual(db, StockTxnCreate(StockItemID=99, TxnType="Receipt", Quantity=1))


def test_post_withdrawals_requires_completion(db, started_workorder):
    with pytest.raises(PreconditionFailed) as exc:
        inventory_service.post_withdrawals(db, started_workorder.WorkOrderID)
    assert exc.value.missing == "completed status"


def test_post_withdrawals_is_rerunnable(db, started_workorder, oil, filter_item):
    wo_id = started_workorder.WorkOrderID
    workorder_service.transition(db, wo_id, "Completed")

    report = inventory_service.post_withdrawals(db, wo_id)
    assert report.posted == []
    assert len(report.duplicates) == 2

    for item in (oil, filter_item):
        assert inventory_service.reconcile(db, item.StockItemID).Balanced
    db.refresh(filter_item)
    assert filter_item.Quantity == Decimal("11")


@pytest.fixture
def stale_key_check(monkeypatch):
    """First existing_keys call misses rows another session committed meanwhile."""
    real = inventory_service.existing_keys
    calls = []

    def _stale(db, keys):
        calls.append(keys)
        return set() if len(calls) == 1 else real(db, keys)

    monkeypatch.setattr(inventory_service, "existing_keys", _stale)
    return calls


def test_concurrent_withdrawal_posting_reports_duplicates(db, started_workorder, oil, filter_item, stale_key_check):
    wo_id = started_workorder.WorkOrderID
    workorder_service.transition(db, wo_id, "Completed")
    stale_key_check.clear()

    report = inventory_service.post_withdrawals(db, wo_id)

    wo = workorder_service.get_workorder(db, wo_id)
    assert report.posted == []
    assert report.duplicates == sorted(inventory_service.withdrawal_keys(wo))
    db.refresh(oil)
    db.refresh(filter_item)
    assert oil.Quantity == Decimal("35")
    assert filter_item.Quantity == Decimal("11")
    assert db.query(StockTransaction).filter(StockTransaction.WorkOrderID == wo_id).count() == 2


def test_concurrent_completion_rerun_keeps_first_result(db, started_workorder, oil, stale_key_check):
    wo_id = started_workorder.WorkOrderID
    workorder_service.transition(db, wo_id, "Completed")
    stale_key_check.clear()

    wo, report = workorder_service.transition_with_report(db, wo_id, "Completed")

    assert wo.Status_s == "Completed"
    assert report.withdrawals.posted == []
    assert report.withdrawals.duplicates == sorted(inventory_service.withdrawal_keys(wo))
    db.refresh(oil)
    assert oil.Quantity == Decimal("35")
    assert inventory_service.reconcile(db, oil.StockItemID).Balanced


def test_missing_stock_item_is_reported_not_fatal(db, started_workorder, oil, filter_item):
    # Stock row disappears between requisition and completion
    wo_id = started_workorder.WorkOrderID
    oil_id, filter_id = oil.StockItemID, filter_item.StockItemID
    db.query(StockTransaction).filter(StockTransaction.StockItemID == filter_id).delete()
    db.delete(filter_item)
    db.commit()

    _, report = workorder_service.transition_with_report(db, wo_id, "Completed")
    assert report.withdrawals.posted == [f"WO:{wo_id}:OUT:{oil_id}"]
    assert [m.StockItemID for m in report.withdrawals.missing] == [filter_id]
    assert report.withdrawals.has_warnings


def test_work_order_withdrawal_may_take_stock_negative(db, technician, make_workorder, filter_item):
    wo = make_workorder(
        technician_id=technician.TechnicianID,
        parts=[{"StockItemID": filter_item.StockItemID, "Name": "Oil filter", "Quantity": "15", "Unit": "pcs"}],
    )
    workorder_service.transition(db, wo.WorkOrderID, "InProgress")
    workorder_service.transition(db, wo.WorkOrderID, "Completed")

    db.refresh(filter_item)
    assert filter_item.Quantity == Decimal("-3")
    assert filter_item.Status_s == STOCK_OUT
    assert inventory_service.reconcile(db, filter_item.StockItemID).Balanced


def test_below_min_listing(db, oil, filter_item):
    inventory_service.post_manual(db, StockTxnCreate(StockItemID=filter_item.StockItemID, TxnType="Withdrawal", Quantity=9))
    low = inventory_service.list_below_min(db)
    assert [s.Code for s in low] == ["FLT-OIL"]
    assert low[0].Status_s == STOCK_LOW


def test_update_does_not_touch_quantity(db, oil):
    item = inventory_service.update_stock_item(db, oil.StockItemID, StockItemUpdate(MinStock=Decimal("50")))
    assert item.Quantity == Decimal("40")
    assert item.Status_s == STOCK_LOW
