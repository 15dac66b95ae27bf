from sqlalchemy import (
    Column, Integer, SmallInteger, String, DateTime, Date, Boolean, Numeric, ForeignKey,
    CheckConstraint, UniqueConstraint,
)
from sqlalchemy.orm import relationship
from ..core.db import Base


class PurchaseRequisition(Base):
    __tablename__ = "PurchaseRequisition"

    RequisitionID  = Column(Integer, primary_key=True, autoincrement=True)
    RequisitionNo  = Column(String(20), nullable=False, unique=True)
    ReqYear        = Column(SmallInteger, nullable=False)
    ReqSeq         = Column(Integer, nullable=False)
    Status_s       = Column(String(20), nullable=False, default="Draft")
    RequestType    = Column(String(20), nullable=False, default="Product")

    RequesterName  = Column(String(200))
    Department     = Column(String(100))
    SupplierName   = Column(String(200))
    InBudget       = Column(Boolean, nullable=False, default=True)
    Vat            = Column(Numeric(12, 2), nullable=False, default=0)
    Notes          = Column(String(1000))

    ApprovedBy     = Column(String(200))
    ApprovedAt     = Column(DateTime)
    ReceivedAt     = Column(DateTime)
    CreatedAt      = Column(DateTime, nullable=False)
    UpdatedAt      = Column(DateTime, nullable=False)

    __table_args__ = (
        CheckConstraint(
            "Status_s in ('Draft','PendingApproval','Approved','AwaitingGoods','Received','Cancelled')",
            name="CK_PR_Status",
        ),
        CheckConstraint(
            "RequestType in ('Product','Service','Equipment','Asset','Other')",
            name="CK_PR_RequestType",
        ),
        CheckConstraint("Vat >= 0", name="CK_PR_Vat_NonNegative"),
        UniqueConstraint("ReqYear", "ReqSeq", name="UQ_PR_Year_Seq"),
    )

    lines = relationship(
        "PurchaseRequisitionLine",
        back_populates="requisition",
        cascade="all, delete-orphan",
        order_by="PurchaseRequisitionLine.LineNo",
    )
    txns  = relationship("StockTransaction", back_populates="requisition")


class PurchaseRequisitionLine(Base):
    __tablename__ = "PurchaseRequisitionLine"

    LineID        = Column(Integer, primary_key=True, autoincrement=True)
    RequisitionID = Column(Integer, ForeignKey("PurchaseRequisition.RequisitionID", ondelete="CASCADE"), nullable=False)
    LineNo        = Column(Integer, nullable=False)
    StockItemID   = Column(Integer, ForeignKey("StockItem.StockItemID"))
    Description   = Column(String(300), nullable=False)
    Quantity      = Column(Numeric(12, 3), nullable=False)
    Unit          = Column(String(20))
    UnitPrice     = Column(Numeric(12, 2), nullable=False, default=0)
    ExpectedDate  = Column(Date)

    __table_args__ = (
        CheckConstraint("Quantity > 0", name="CK_PRLine_Quantity_Positive"),
        CheckConstraint("UnitPrice >= 0", name="CK_PRLine_UnitPrice_NonNegative"),
        UniqueConstraint("RequisitionID", "LineNo", name="UQ_PRLine_Req_Line"),
    )

    requisition = relationship("PurchaseRequisition", back_populates="lines")
    stock_item  = relationship("StockItem")
