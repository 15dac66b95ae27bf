# backend/workshop/schemas/requisition.py
from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_serializer

from ..domain.statuses import RequestTypeLiteral, RequisitionStatusLiteral


class RequisitionLineIn(BaseModel):
    StockItemID: Optional[int] = Field(default=None, ge=1)
    Description: str = Field(..., min_length=1, max_length=300)
    Quantity: Decimal = Field(..., gt=0)
    Unit: Optional[str] = Field(default=None, max_length=20)
    UnitPrice: Decimal = Field(default=Decimal("0"), ge=0)
    ExpectedDate: Optional[date] = None


class RequisitionLineRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    LineID: int
    LineNo: int
    StockItemID: Optional[int] = None
    Description: str
    Quantity: Decimal
    Unit: Optional[str] = None
    UnitPrice: Decimal
    ExpectedDate: Optional[date] = None

    @field_serializer("Quantity", "UnitPrice")
    def _ser_dec(self, v: Decimal):
        return float(v)


class RequisitionCreate(BaseModel):
    RequestType: RequestTypeLiteral = "Product"
    RequesterName: Optional[str] = Field(default=None, max_length=200)
    Department: Optional[str] = Field(default=None, max_length=100)
    SupplierName: Optional[str] = Field(default=None, max_length=200)
    InBudget: bool = True
    Vat: Decimal = Field(default=Decimal("0"), ge=0)
    Notes: Optional[str] = Field(default=None, max_length=1000)
    lines: List[RequisitionLineIn] = Field(default_factory=list)


class RequisitionUpdate(BaseModel):
    RequestType: Optional[RequestTypeLiteral] = None
    RequesterName: Optional[str] = Field(default=None, max_length=200)
    Department: Optional[str] = Field(default=None, max_length=100)
    SupplierName: Optional[str] = Field(default=None, max_length=200)
    InBudget: Optional[bool] = None
    Vat: Optional[Decimal] = Field(default=None, ge=0)
    Notes: Optional[str] = Field(default=None, max_length=1000)
    lines: Optional[List[RequisitionLineIn]] = None


class RequisitionTransitionIn(BaseModel):
    Status_s: RequisitionStatusLiteral
    ApprovedBy: Optional[str] = Field(default=None, max_length=200)


class RequisitionRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    RequisitionID: int
    RequisitionNo: str
    Status_s: str
    RequestType: str
    RequesterName: Optional[str] = None
    Department: Optional[str] = None
    SupplierName: Optional[str] = None
    InBudget: bool
    Vat: Decimal
    Notes: Optional[str] = None
    ApprovedBy: Optional[str] = None
    ApprovedAt: Optional[datetime] = None
    ReceivedAt: Optional[datetime] = None
    CreatedAt: datetime
    UpdatedAt: datetime
    lines: List[RequisitionLineRead] = Field(default_factory=list)

    @field_serializer("Vat")
    def _ser_dec(self, v: Decimal):
        return float(v)


class RequisitionTotals(BaseModel):
    Subtotal: Decimal
    Vat: Decimal
    Total: Decimal

    @field_serializer("Subtotal", "Vat", "Total")
    def _ser_dec(self, v: Decimal):
        return float(v)
