# backend/workshop/schemas/workorder.py
from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator

from ..domain.constants import DEFAULT_LABOR_VAT_RATE
from ..domain.statuses import (
    DispositionLiteral, PartSourceLiteral, PriorityLiteral, WorkOrderStatusLiteral,
)
from .inventory import PostingReport


# ---- Part requisition lines ----
class PartLineIn(BaseModel):
    StockItemID: Optional[int] = Field(default=None, ge=1)
    Name: str = Field(..., min_length=1, max_length=200)
    Code: Optional[str] = Field(default=None, max_length=50)
    Quantity: Decimal = Field(..., gt=0)
    Unit: str = Field(..., min_length=1, max_length=20)
    UnitPrice: Decimal = Field(default=Decimal("0"), ge=0)
    Source_s: PartSourceLiteral = "InternalStock"
    SupplierName: Optional[str] = Field(default=None, max_length=200)
    PurchaseDate: Optional[date] = None

    @field_validator("Name")
    @classmethod
    def _strip_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Name must not be blank")
        return v


class PartLineRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    ItemID: int
    LineNo: int
    StockItemID: Optional[int] = None
    Name: str
    Code: Optional[str] = None
    Quantity: Decimal
    Unit: str
    UnitPrice: Decimal
    Source_s: str
    SupplierName: Optional[str] = None
    PurchaseDate: Optional[date] = None

    @field_serializer("Quantity", "UnitPrice")
    def _ser_dec(self, v: Decimal):
        return float(v)


# ---- Estimation ----
class EstimationRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    AttemptID: int
    Sequence: int
    CreatedAt: datetime
    EstimatedStart: datetime
    EstimatedEnd: datetime
    EstimatedHours: Decimal
    Status_s: str
    FailureReason: Optional[str] = None
    Reasoning: Optional[str] = None

    @field_serializer("EstimatedHours")
    def _ser_hours(self, v: Decimal):
        return float(v)


class ReestimateIn(BaseModel):
    EstimatedStart: Optional[datetime] = None
    EstimatedHours: Optional[Decimal] = Field(default=None, ge=0)
    Reasoning: Optional[str] = Field(default=None, max_length=1000)


class MissedDeadlineIn(BaseModel):
    FailureReason: str = Field(..., min_length=1, max_length=500)
    EstimatedStart: Optional[datetime] = None
    EstimatedHours: Optional[Decimal] = Field(default=None, ge=0)
    Reasoning: Optional[str] = Field(default=None, max_length=1000)


# ---- Work orders ----
class WorkOrderCreate(BaseModel):
    LicensePlate: str = Field(..., min_length=1, max_length=30)
    VehicleType: Optional[str] = Field(default=None, max_length=50)
    ReportedBy: Optional[str] = Field(default=None, max_length=100)
    Category: Optional[str] = Field(default=None, max_length=20)
    Priority_s: PriorityLiteral = "Normal"
    ProblemDescription: str = Field(..., min_length=1, max_length=2000)

    TechnicianID: Optional[int] = Field(default=None, ge=1)
    AssistantIDs: List[int] = Field(default_factory=list)
    ExternalContractor: Optional[str] = Field(default=None, max_length=200)

    LaborCost: Decimal = Field(default=Decimal("0"), ge=0)
    LaborVatEnabled: bool = False
    LaborVatRate: Decimal = Field(default=DEFAULT_LABOR_VAT_RATE, ge=0, le=100)
    PartsVat: Decimal = Field(default=Decimal("0"), ge=0)
    Notes: Optional[str] = Field(default=None, max_length=1000)

    parts: List[PartLineIn] = Field(default_factory=list)

    # First estimation attempt; hours may come from standard tasks instead
    EstimatedStart: Optional[datetime] = None
    EstimatedHours: Optional[Decimal] = Field(default=None, ge=0)
    TaskIDs: List[int] = Field(default_factory=list)


class WorkOrderUpdate(BaseModel):
    LicensePlate: Optional[str] = Field(default=None, min_length=1, max_length=30)
    VehicleType: Optional[str] = Field(default=None, max_length=50)
    ReportedBy: Optional[str] = Field(default=None, max_length=100)
    Category: Optional[str] = Field(default=None, max_length=20)
    Priority_s: Optional[PriorityLiteral] = None
    ProblemDescription: Optional[str] = Field(default=None, min_length=1, max_length=2000)
    LaborCost: Optional[Decimal] = Field(default=None, ge=0)
    LaborVatEnabled: Optional[bool] = None
    LaborVatRate: Optional[Decimal] = Field(default=None, ge=0, le=100)
    PartsVat: Optional[Decimal] = Field(default=None, ge=0)
    RepairResult: Optional[str] = Field(default=None, max_length=2000)
    Notes: Optional[str] = Field(default=None, max_length=1000)
    parts: Optional[List[PartLineIn]] = None


class AssignIn(BaseModel):
    TechnicianID: Optional[int] = Field(default=None, ge=1)
    AssistantIDs: List[int] = Field(default_factory=list)
    ExternalContractor: Optional[str] = Field(default=None, max_length=200)


class DispositionChoice(BaseModel):
    PartName: str = Field(..., min_length=1, max_length=200)
    Disposition: DispositionLiteral
    Quantity: Decimal
    TargetStockItemID: Optional[int] = Field(default=None, ge=1)
    Notes: Optional[str] = Field(default=None, max_length=1000)


class TransitionIn(BaseModel):
    Status_s: WorkOrderStatusLiteral
    # Removed-part decisions, applied when the order reaches Completed
    dispositions: Optional[List[DispositionChoice]] = None


class TechnicianBrief(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    TechnicianID: int
    Name: str


class WorkOrderRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    WorkOrderID: int
    OrderNo: str
    LicensePlate: str
    VehicleType: Optional[str] = None
    ReportedBy: Optional[str] = None
    Category: Optional[str] = None
    Priority_s: str
    Status_s: str
    ProblemDescription: str
    TechnicianID: Optional[int] = None
    ExternalContractor: Optional[str] = None
    assistants: List[TechnicianBrief] = Field(default_factory=list)
    CreatedAt: datetime
    UpdatedAt: datetime
    ApprovedAt: Optional[datetime] = None
    RepairStartedAt: Optional[datetime] = None
    RepairEndedAt: Optional[datetime] = None
    DispositionsResolvedAt: Optional[datetime] = None
    LaborCost: Decimal
    LaborVatEnabled: bool
    LaborVatRate: Decimal
    PartsVat: Decimal
    RepairResult: Optional[str] = None
    Notes: Optional[str] = None
    parts: List[PartLineRead] = Field(default_factory=list)
    estimations: List[EstimationRead] = Field(default_factory=list)

    @field_serializer("LaborCost", "LaborVatRate", "PartsVat")
    def _ser_dec(self, v: Decimal):
        return float(v)


class WorkOrderTotals(BaseModel):
    PartsCost: Decimal
    PartsVat: Decimal
    LaborCost: Decimal
    LaborVat: Decimal
    GrandTotal: Decimal

    @field_serializer("PartsCost", "PartsVat", "LaborCost", "LaborVat", "GrandTotal")
    def _ser_dec(self, v: Decimal):
        return float(v)


class DispositionReport(BaseModel):
    already_resolved: bool = False
    used_part_ids: List[int] = Field(default_factory=list)
    disposed: List[str] = Field(default_factory=list)
    receipts: PostingReport = Field(default_factory=PostingReport)


class CompletionReport(BaseModel):
    withdrawals: PostingReport = Field(default_factory=PostingReport)
    dispositions: Optional[DispositionReport] = None
