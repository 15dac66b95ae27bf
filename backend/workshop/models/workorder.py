from sqlalchemy import (
    Column, Integer, SmallInteger, String, DateTime, Date, Boolean, Numeric, Table,
    ForeignKey, CheckConstraint, UniqueConstraint, Index,
)
from sqlalchemy.orm import relationship
from ..core.db import Base

# Assistant technicians (zero or more per work order)
work_order_assistant = Table(
    "WorkOrderAssistant",
    Base.metadata,
    Column("WorkOrderID",  Integer, ForeignKey("WorkOrder.WorkOrderID", ondelete="CASCADE"), primary_key=True),
    Column("TechnicianID", Integer, ForeignKey("Technician.TechnicianID"), primary_key=True),
)


class WorkOrder(Base):
    __tablename__ = "WorkOrder"

    WorkOrderID  = Column(Integer, primary_key=True, autoincrement=True)
    OrderNo      = Column(String(20), nullable=False, unique=True)
    OrderYear    = Column(SmallInteger, nullable=False)
    OrderSeq     = Column(Integer, nullable=False)

    # Vehicle reference
    LicensePlate = Column(String(30), nullable=False)
    VehicleType  = Column(String(50))

    ReportedBy         = Column(String(100))
    Category           = Column(String(20))
    Priority_s         = Column(String(20), nullable=False, default="Normal")
    Status_s           = Column(String(20), nullable=False, default="Pending")
    ProblemDescription = Column(String(2000), nullable=False)

    # Primary technician XOR external contractor
    TechnicianID       = Column(Integer, ForeignKey("Technician.TechnicianID"))
    ExternalContractor = Column(String(200))

    CreatedAt       = Column(DateTime, nullable=False)
    UpdatedAt       = Column(DateTime, nullable=False)
    ApprovedAt      = Column(DateTime)
    RepairStartedAt = Column(DateTime)
    RepairEndedAt   = Column(DateTime)
    DispositionsResolvedAt = Column(DateTime)

    LaborCost       = Column(Numeric(12, 2), nullable=False, default=0)
    LaborVatEnabled = Column(Boolean, nullable=False, default=False)
    LaborVatRate    = Column(Numeric(5, 2), nullable=False, default=7)
    PartsVat        = Column(Numeric(12, 2), nullable=False, default=0)
    RepairResult    = Column(String(2000))
    Notes           = Column(String(1000))

    __table_args__ = (
        CheckConstraint(
            "Status_s in ('Pending','InProgress','AwaitingParts','Completed','Cancelled')",
            name="CK_WO_Status",
        ),
        CheckConstraint("Priority_s in ('Normal','Urgent','Emergency')", name="CK_WO_Priority"),
        CheckConstraint("LaborCost >= 0", name="CK_WO_LaborCost_NonNegative"),
        UniqueConstraint("OrderYear", "OrderSeq", name="UQ_WorkOrder_Year_Seq"),
        Index("IX_WorkOrder_Status", "Status_s"),
    )

    technician  = relationship("Technician", back_populates="workorders")
    assistants  = relationship("Technician", secondary=work_order_assistant, order_by="Technician.TechnicianID")
    parts       = relationship(
        "PartRequisitionItem",
        back_populates="workorder",
        cascade="all, delete-orphan",
        order_by="PartRequisitionItem.LineNo",
    )
    estimations = relationship(
        "EstimationAttempt",
        back_populates="workorder",
        cascade="all, delete-orphan",
        order_by="EstimationAttempt.Sequence",
    )
    txns        = relationship("StockTransaction", back_populates="workorder")
    used_parts  = relationship("UsedPart", back_populates="workorder")

    @property
    def has_assignment(self) -> bool:
        return bool(self.TechnicianID or (self.ExternalContractor or "").strip())

    @property
    def has_started(self) -> bool:
        return self.RepairStartedAt is not None


class PartRequisitionItem(Base):
    __tablename__ = "PartRequisitionItem"

    ItemID       = Column(Integer, primary_key=True, autoincrement=True)
    WorkOrderID  = Column(Integer, ForeignKey("WorkOrder.WorkOrderID", ondelete="CASCADE"), nullable=False)
    LineNo       = Column(Integer, nullable=False)
    # Empty for ad-hoc external purchases
    StockItemID  = Column(Integer, ForeignKey("StockItem.StockItemID"))
    Name         = Column(String(200), nullable=False)
    Code         = Column(String(50))
    Quantity     = Column(Numeric(12, 3), nullable=False)
    Unit         = Column(String(20), nullable=False)
    UnitPrice    = Column(Numeric(12, 2), nullable=False, default=0)
    Source_s     = Column(String(20), nullable=False)
    SupplierName = Column(String(200))
    PurchaseDate = Column(Date)

    __table_args__ = (
        CheckConstraint("Quantity > 0", name="CK_PRItem_Quantity_Positive"),
        CheckConstraint("UnitPrice >= 0", name="CK_PRItem_UnitPrice_NonNegative"),
        CheckConstraint("Source_s in ('InternalStock','ExternalSupplier')", name="CK_PRItem_Source"),
        UniqueConstraint("WorkOrderID", "LineNo", name="UQ_PRItem_WorkOrder_Line"),
    )

    workorder  = relationship("WorkOrder", back_populates="parts")
    stock_item = relationship("StockItem")
