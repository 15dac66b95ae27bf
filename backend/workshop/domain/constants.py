# backend/workshop/domain/constants.py

"""
Single source for document prefixes, ledger note templates and posting keys.
"""

from decimal import Decimal
from typing import Final

# Document numbers: {PREFIX}-{year}-{5 digit sequence}
WORK_ORDER_PREFIX: Final[str] = "RO"
REQUISITION_PREFIX: Final[str] = "PR"
DOC_NUMBER_FORMAT: Final[str] = "{prefix}-{year}-{seq:05d}"

MONEY_PLACES: Final[Decimal] = Decimal("0.01")
QTY_PLACES: Final[Decimal] = Decimal("0.001")
HOURS_PLACES: Final[Decimal] = Decimal("0.01")

DEFAULT_LABOR_VAT_RATE: Final[Decimal] = Decimal("7")

# Ledger notes
REASON_WO_WITHDRAWAL: Final[str] = "Used for repair order {}"
REASON_PR_RECEIVE: Final[str] = "Received per requisition {}"
REASON_USED_PART_RETURN: Final[str] = "Used part returned from repair order {}"
REASON_USED_PART_MOVE: Final[str] = "Moved from used part: {} ({} {})"
REASON_OPENING_BALANCE: Final[str] = "Opening balance"

# Posting keys (unique per ledger row)
KEY_WO_WITHDRAWAL: Final[str] = "WO:{wo_id}:OUT:{stock_item_id}"
KEY_WO_RETURN: Final[str] = "WO:{wo_id}:RET:{part_digest}:{stock_item_id}"
KEY_PR_RECEIPT: Final[str] = "PR:{pr_id}:IN:{line_id}"
KEY_USED_PART_MOVE: Final[str] = "UP:{used_part_id}:MV:{seq}"
KEY_OPENING: Final[str] = "STK:{stock_item_id}:OPEN"
KEY_MANUAL: Final[str] = "MAN:{token}"

# Revolving twin of a stock item
REVOLVING_CODE_SUFFIX: Final[str] = "-R"

# Confirmation labels for destructive actions
ACTION_CANCEL_WORK_ORDER: Final[str] = "cancel work order"
ACTION_DELETE_WORK_ORDER: Final[str] = "delete work order"
ACTION_CANCEL_REQUISITION: Final[str] = "cancel requisition"
ACTION_DELETE_REQUISITION: Final[str] = "delete requisition"
