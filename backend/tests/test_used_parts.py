from decimal import Decimal

import pytest

from workshop.domain.errors import ValidationError
from workshop.schemas.inventory import UsedPartEventIn
from workshop.schemas.workorder import DispositionChoice
from workshop.services import inventory_service, used_part_service, workorder_service


@pytest.fixture
def tracked_oil(db, started_workorder):
    """5 L of engine oil tracked individually after completion."""
    _, report = workorder_service.transition_with_report(
        db, started_workorder.WorkOrderID, "Completed",
        dispositions=[DispositionChoice(PartName="Engine oil", Disposition="TrackIndividually", Quantity=Decimal("5"))],
    )
    return used_part_service.get_used_part(db, report.dispositions.used_part_ids[0])


def test_partial_then_full_handling(db, tracked_oil):
    up = used_part_service.process_used_part(
        db, tracked_oil.UsedPartID, UsedPartEventIn(Kind="Dispose", Quantity=Decimal("2")),
    )
    assert up.Status_s == "PartiallyHandled"
    assert used_part_service.remaining_quantity(up) == Decimal("3")

    up = used_part_service.process_used_part(
        db, up.UsedPartID, UsedPartEventIn(Kind="KeepForReuse", Quantity=Decimal("3"), Condition="clean"),
    )
    assert up.Status_s == "FullyHandled"
    assert [e.Sequence for e in up.events] == [1, 2]


def test_quantity_over_remaining_is_rejected(db, tracked_oil):
    with pytest.raises(ValidationError):
        used_part_service.process_used_part(
            db, tracked_oil.UsedPartID, UsedPartEventIn(Kind="Dispose", Quantity=Decimal("6")),
        )


def test_sale_needs_buyer(db, tracked_oil):
    with pytest.raises(ValidationError):
        used_part_service.process_used_part(
            db, tracked_oil.UsedPartID, UsedPartEventIn(Kind="Sell", Quantity=Decimal("1")),
        )
    up = used_part_service.process_used_part(
        db, tracked_oil.UsedPartID,
        UsedPartEventIn(Kind="Sell", Quantity=Decimal("1"), BuyerName="Recycler", SalePrice=Decimal("20")),
    )
    assert up.events[0].BuyerName == "Recycler"
    assert up.events[0].SalePrice == Decimal("20")


def test_move_to_fungible_posts_receipt(db, tracked_oil, used_oil):
    used_part_service.process_used_part(
        db, tracked_oil.UsedPartID,
        UsedPartEventIn(Kind="MoveToFungible", Quantity=Decimal("5"), TargetStockItemID=used_oil.StockItemID),
    )
    db.refresh(used_oil)
    assert used_oil.Quantity == Decimal("5")
    rows = inventory_service.list_transactions(db, stock_item_id=used_oil.StockItemID)
    assert rows[0].PostingKey == f"UP:{tracked_oil.UsedPartID}:MV:1"
    assert rows[0].UsedPartID == tracked_oil.UsedPartID


def test_move_to_fungible_rejects_regular_item(db, tracked_oil, oil):
    with pytest.raises(ValidationError):
        used_part_service.process_used_part(
            db, tracked_oil.UsedPartID,
            UsedPartEventIn(Kind="MoveToFungible", Quantity=Decimal("1"), TargetStockItemID=oil.StockItemID),
        )


def test_move_to_revolving_creates_twin_once(db, tracked_oil, oil):
    for _ in range(2):
        used_part_service.process_used_part(
            db, tracked_oil.UsedPartID, UsedPartEventIn(Kind="MoveToRevolving", Quantity=Decimal("1")),
        )

    twin = inventory_service.find_by_code(db, "OIL-10W40-R")
    assert twin is not None
    assert twin.IsRevolvingPart
    assert twin.Quantity == Decimal("2")
    assert inventory_service.reconcile(db, twin.StockItemID).Balanced


def test_open_only_listing(db, tracked_oil):
    assert [u.UsedPartID for u in used_part_service.list_used_parts(db, open_only=True)] == [tracked_oil.UsedPartID]
    used_part_service.process_used_part(
        db, tracked_oil.UsedPartID, UsedPartEventIn(Kind="Dispose", Quantity=Decimal("5")),
    )
    assert used_part_service.list_used_parts(db, open_only=True) == []
