# backend/workshop/schemas/inventory.py
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator

from ..domain.statuses import TxnTypeLiteral, UsedPartEventLiteral


# ---- Stock items ----
class StockItemCreate(BaseModel):
    Code: str = Field(..., min_length=1, max_length=50)
    Name: str = Field(..., min_length=1, max_length=200)
    Unit: str = Field(..., min_length=1, max_length=20)
    Category: Optional[str] = None
    UnitPrice: Decimal = Field(default=Decimal("0"), ge=0)
    OpeningQuantity: Decimal = Field(default=Decimal("0"), ge=0)
    MinStock: Decimal = Field(default=Decimal("0"), ge=0)
    MaxStock: Optional[Decimal] = Field(default=None, ge=0)
    IsFungibleUsedItem: bool = False
    IsRevolvingPart: bool = False

    @field_validator("Code")
    @classmethod
    def _strip_code(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Code must not be blank")
        return v


class StockItemUpdate(BaseModel):
    Name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    Unit: Optional[str] = Field(default=None, min_length=1, max_length=20)
    Category: Optional[str] = None
    UnitPrice: Optional[Decimal] = Field(default=None, ge=0)
    MinStock: Optional[Decimal] = Field(default=None, ge=0)
    MaxStock: Optional[Decimal] = Field(default=None, ge=0)
    IsFungibleUsedItem: Optional[bool] = None
    IsRevolvingPart: Optional[bool] = None
    IsActive: Optional[bool] = None


class StockItemRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    StockItemID: int
    Code: str
    Name: str
    Unit: str
    Category: Optional[str] = None
    UnitPrice: Decimal
    Quantity: Decimal
    MinStock: Decimal
    MaxStock: Optional[Decimal] = None
    Status_s: str
    IsFungibleUsedItem: bool
    IsRevolvingPart: bool
    IsActive: bool

    @field_serializer("UnitPrice", "Quantity", "MinStock", "MaxStock")
    def _ser_dec(self, v: Optional[Decimal]):
        return None if v is None else float(v)


# ---- Ledger ----
class StockTxnCreate(BaseModel):
    """Manual warehouse movement. Quantity is always positive; TxnType gives the sign."""
    StockItemID: int = Field(..., ge=1)
    TxnType: TxnTypeLiteral
    Quantity: Decimal = Field(..., gt=0)
    UnitPrice: Optional[Decimal] = Field(default=None, ge=0)
    Notes: Optional[str] = Field(default=None, max_length=500)
    # Client supplied idempotency token; a retried request with the same token posts nothing
    IdempotencyKey: Optional[str] = Field(default=None, min_length=1, max_length=150)


class StockTxnRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    TxnID: int
    StockItemID: int
    TxnType: str
    Quantity: Decimal
    UnitPrice: Decimal
    TxnDate: datetime
    Actor: str
    Notes: Optional[str] = None
    PostingKey: str
    WorkOrderID: Optional[int] = None
    RequisitionID: Optional[int] = None
    UsedPartID: Optional[int] = None

    @field_serializer("Quantity", "UnitPrice")
    def _ser_dec(self, v: Decimal):
        return float(v)


class MissingLine(BaseModel):
    StockItemID: Optional[int] = None
    Name: Optional[str] = None
    Reason: str = "stock item not found"


class PostingReport(BaseModel):
    """Outcome of a posting batch. Skipped lines never fail the batch."""
    posted: List[str] = Field(default_factory=list)
    duplicates: List[str] = Field(default_factory=list)
    missing: List[MissingLine] = Field(default_factory=list)

    @property
    def has_warnings(self) -> bool:
        return bool(self.missing)

    def extend(self, other: "PostingReport") -> "PostingReport":
        self.posted.extend(other.posted)
        self.duplicates.extend(other.duplicates)
        self.missing.extend(other.missing)
        return self


class ReconcileRead(BaseModel):
    StockItemID: int
    Code: str
    OnHand: Decimal
    LedgerSum: Decimal
    Difference: Decimal
    Balanced: bool
    TxnCount: int

    @field_serializer("OnHand", "LedgerSum", "Difference")
    def _ser_dec(self, v: Decimal):
        return float(v)


# ---- Used parts ----
class UsedPartEventIn(BaseModel):
    Kind: UsedPartEventLiteral
    Quantity: Decimal = Field(..., gt=0)
    Condition: Optional[str] = Field(default=None, max_length=100)
    BuyerName: Optional[str] = Field(default=None, max_length=200)
    SalePrice: Optional[Decimal] = Field(default=None, ge=0)
    TargetStockItemID: Optional[int] = Field(default=None, ge=1)
    Notes: Optional[str] = Field(default=None, max_length=500)


class UsedPartEventRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    DispositionID: int
    Sequence: int
    Kind: str
    Quantity: Decimal
    Condition: Optional[str] = None
    BuyerName: Optional[str] = None
    SalePrice: Optional[Decimal] = None
    TargetStockItemID: Optional[int] = None
    CreatedAt: datetime
    Actor: Optional[str] = None
    Notes: Optional[str] = None

    @field_serializer("Quantity", "SalePrice")
    def _ser_dec(self, v: Optional[Decimal]):
        return None if v is None else float(v)


class UsedPartRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    UsedPartID: int
    WorkOrderID: int
    StockItemID: Optional[int] = None
    PartName: str
    PartCode: Optional[str] = None
    RemovedAt: datetime
    InitialQuantity: Decimal
    Unit: str
    Status_s: str
    Notes: Optional[str] = None
    events: List[UsedPartEventRead] = Field(default_factory=list)

    @field_serializer("InitialQuantity")
    def _ser_dec(self, v: Decimal):
        return float(v)
