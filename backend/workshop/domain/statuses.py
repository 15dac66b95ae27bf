# backend/workshop/domain/statuses.py
"""
Status vocabularies, transition tables and the pure guard checks that run
before any mutation.
"""
from decimal import Decimal
from typing import Dict, FrozenSet, Literal, Optional

from .errors import PreconditionFailed

# ---- Work orders ----
WO_PENDING = "Pending"
WO_IN_PROGRESS = "InProgress"
WO_AWAITING_PARTS = "AwaitingParts"
WO_COMPLETED = "Completed"
WO_CANCELLED = "Cancelled"

WO_STATUSES = (WO_PENDING, WO_IN_PROGRESS, WO_AWAITING_PARTS, WO_COMPLETED, WO_CANCELLED)
WO_TERMINAL: FrozenSet[str] = frozenset({WO_COMPLETED, WO_CANCELLED})
WorkOrderStatusLiteral = Literal["Pending", "InProgress", "AwaitingParts", "Completed", "Cancelled"]

WO_TRANSITIONS: Dict[str, FrozenSet[str]] = {
    WO_PENDING: frozenset({WO_IN_PROGRESS, WO_AWAITING_PARTS, WO_COMPLETED, WO_CANCELLED}),
    WO_IN_PROGRESS: frozenset({WO_AWAITING_PARTS, WO_COMPLETED, WO_CANCELLED}),
    WO_AWAITING_PARTS: frozenset({WO_IN_PROGRESS, WO_COMPLETED, WO_CANCELLED}),
    WO_COMPLETED: frozenset(),
    WO_CANCELLED: frozenset(),
}

PRIORITIES = ("Normal", "Urgent", "Emergency")
PriorityLiteral = Literal["Normal", "Urgent", "Emergency"]

# ---- Estimation attempts ----
EST_ACTIVE = "Active"
EST_COMPLETED = "Completed"
EST_FAILED = "Failed"
EST_STATUSES = (EST_ACTIVE, EST_COMPLETED, EST_FAILED)

# ---- Requisition lines on a work order ----
SOURCE_INTERNAL = "InternalStock"
SOURCE_EXTERNAL = "ExternalSupplier"
PART_SOURCES = (SOURCE_INTERNAL, SOURCE_EXTERNAL)
PartSourceLiteral = Literal["InternalStock", "ExternalSupplier"]

# ---- Stock ----
STOCK_OUT = "OutOfStock"
STOCK_LOW = "Low"
STOCK_NORMAL = "Normal"
STOCK_OVER = "Overstock"
STOCK_STATUSES = (STOCK_OUT, STOCK_LOW, STOCK_NORMAL, STOCK_OVER)

TXN_RECEIPT = "Receipt"
TXN_WITHDRAWAL = "Withdrawal"
TXN_TYPES = (TXN_RECEIPT, TXN_WITHDRAWAL)
TxnTypeLiteral = Literal["Receipt", "Withdrawal"]

# ---- Removed parts ----
DISP_TRACK = "TrackIndividually"
DISP_MERGE = "MergeIntoFungibleStock"
DISP_RETURN = "ReturnToMainStock"
DISP_DISPOSE = "Dispose"
DispositionLiteral = Literal["TrackIndividually", "MergeIntoFungibleStock", "ReturnToMainStock", "Dispose"]

UP_PENDING = "Pending"
UP_PARTIAL = "PartiallyHandled"
UP_DONE = "FullyHandled"
USED_PART_STATUSES = (UP_PENDING, UP_PARTIAL, UP_DONE)

UPD_SELL = "Sell"
UPD_DISPOSE = "Dispose"
UPD_KEEP = "KeepForReuse"
UPD_TO_REVOLVING = "MoveToRevolving"
UPD_TO_FUNGIBLE = "MoveToFungible"
USED_PART_EVENT_KINDS = (UPD_SELL, UPD_DISPOSE, UPD_KEEP, UPD_TO_REVOLVING, UPD_TO_FUNGIBLE)
UsedPartEventLiteral = Literal["Sell", "Dispose", "KeepForReuse", "MoveToRevolving", "MoveToFungible"]

# ---- Purchase requisitions ----
PR_DRAFT = "Draft"
PR_PENDING_APPROVAL = "PendingApproval"
PR_APPROVED = "Approved"
PR_AWAITING_GOODS = "AwaitingGoods"
PR_RECEIVED = "Received"
PR_CANCELLED = "Cancelled"

PR_STATUSES = (PR_DRAFT, PR_PENDING_APPROVAL, PR_APPROVED, PR_AWAITING_GOODS, PR_RECEIVED, PR_CANCELLED)
PR_TERMINAL: FrozenSet[str] = frozenset({PR_RECEIVED, PR_CANCELLED})
PR_EDITABLE: FrozenSet[str] = frozenset({PR_DRAFT, PR_PENDING_APPROVAL})
RequisitionStatusLiteral = Literal["Draft", "PendingApproval", "Approved", "AwaitingGoods", "Received", "Cancelled"]

PR_TRANSITIONS: Dict[str, FrozenSet[str]] = {
    PR_DRAFT: frozenset({PR_PENDING_APPROVAL, PR_CANCELLED}),
    PR_PENDING_APPROVAL: frozenset({PR_DRAFT, PR_APPROVED, PR_CANCELLED}),
    PR_APPROVED: frozenset({PR_AWAITING_GOODS, PR_RECEIVED, PR_CANCELLED}),
    PR_AWAITING_GOODS: frozenset({PR_RECEIVED, PR_CANCELLED}),
    PR_RECEIVED: frozenset(),
    PR_CANCELLED: frozenset(),
}

REQUEST_TYPES = ("Product", "Service", "Equipment", "Asset", "Other")
RequestTypeLiteral = Literal["Product", "Service", "Equipment", "Asset", "Other"]


def check_workorder_transition(
    current: str,
    target: str,
    *,
    has_assignment: bool,
    has_started: bool,
) -> None:
    """Raise PreconditionFailed when `current -> target` is not allowed right now."""
    if current in WO_TERMINAL:
        raise PreconditionFailed(
            f"Work order is {current}; no transition to {target}",
            missing="non-terminal status",
            current=current,
            target=target,
        )
    if target not in WO_TRANSITIONS[current]:
        raise PreconditionFailed(
            f"Transition {current} -> {target} is not allowed",
            missing="allowed transition",
            current=current,
            target=target,
        )
    if target == WO_IN_PROGRESS and not has_assignment:
        raise PreconditionFailed(
            "Assign a technician or an external contractor before starting the repair",
            missing="technician_or_contractor",
        )
    if target in (WO_AWAITING_PARTS, WO_COMPLETED) and not has_started:
        raise PreconditionFailed(
            f"Repair must be started before moving to {target}",
            missing="repair_started_at",
        )


def check_requisition_transition(current: str, target: str) -> None:
    if current in PR_TERMINAL:
        raise PreconditionFailed(
            f"Requisition is {current}; no transition to {target}",
            missing="non-terminal status",
            current=current,
            target=target,
        )
    if target not in PR_TRANSITIONS[current]:
        raise PreconditionFailed(
            f"Transition {current} -> {target} is not allowed",
            missing="allowed transition",
            current=current,
            target=target,
        )


def stock_status(quantity: Decimal, min_stock: Decimal, max_stock: Optional[Decimal]) -> str:
    if quantity <= 0:
        return STOCK_OUT
    if quantity <= min_stock:
        return STOCK_LOW
    if max_stock is not None and quantity > max_stock:
        return STOCK_OVER
    return STOCK_NORMAL


def used_part_status(initial_quantity: Decimal, disposed_quantity: Decimal) -> str:
    if disposed_quantity >= initial_quantity:
        return UP_DONE
    if disposed_quantity > 0:
        return UP_PARTIAL
    return UP_PENDING
