from sqlalchemy import (
    Column, Integer, String, DateTime, Boolean, Numeric, ForeignKey, CheckConstraint, Index, text,
)
from sqlalchemy.orm import relationship
from ..core.db import Base


class StockItem(Base):
    __tablename__ = "StockItem"

    StockItemID = Column(Integer, primary_key=True, autoincrement=True)
    Code        = Column(String(50),  nullable=False, unique=True)
    Name        = Column(String(200), nullable=False)
    Unit        = Column(String(20),  nullable=False)
    Category    = Column(String(100))
    UnitPrice   = Column(Numeric(12, 2), nullable=False, default=0)

    # Running sum of StockTransaction.Quantity; may dip below zero
    Quantity    = Column(Numeric(12, 3), nullable=False, default=0, server_default=text("0"))
    MinStock    = Column(Numeric(12, 3), nullable=False, default=0, server_default=text("0"))
    MaxStock    = Column(Numeric(12, 3))
    Status_s    = Column(String(20), nullable=False, default="OutOfStock")

    IsFungibleUsedItem = Column(Boolean, nullable=False, default=False, server_default=text("0"))
    IsRevolvingPart    = Column(Boolean, nullable=False, default=False, server_default=text("0"))
    IsActive           = Column(Boolean, nullable=False, default=True,  server_default=text("1"))

    __table_args__ = (
        CheckConstraint("MinStock >= 0", name="CK_Stock_MinStock_NonNegative"),
        CheckConstraint("MaxStock IS NULL OR MaxStock >= MinStock", name="CK_Stock_Max_GE_Min"),
        CheckConstraint("Status_s in ('OutOfStock','Low','Normal','Overstock')", name="CK_Stock_Status"),
    )

    txns = relationship("StockTransaction", back_populates="stock_item", order_by="StockTransaction.TxnID")


class StockTransaction(Base):
    """Append-only ledger row. PostingKey makes every posting happen at most once."""
    __tablename__ = "StockTransaction"

    TxnID         = Column(Integer, primary_key=True, autoincrement=True)
    StockItemID   = Column(Integer, ForeignKey("StockItem.StockItemID"), nullable=False)
    TxnType       = Column(String(20), nullable=False)      # 'Receipt' | 'Withdrawal'
    Quantity      = Column(Numeric(12, 3), nullable=False)  # signed
    UnitPrice     = Column(Numeric(12, 2), nullable=False, default=0)
    TxnDate       = Column(DateTime, nullable=False)
    Actor         = Column(String(100), nullable=False)
    Notes         = Column(String(500))
    PostingKey    = Column(String(200), nullable=False, unique=True)

    # Related document (at most one is set)
    WorkOrderID   = Column(Integer, ForeignKey("WorkOrder.WorkOrderID"))
    RequisitionID = Column(Integer, ForeignKey("PurchaseRequisition.RequisitionID"))
    UsedPartID    = Column(Integer, ForeignKey("UsedPart.UsedPartID"))

    __table_args__ = (
        CheckConstraint("TxnType IN ('Receipt','Withdrawal')", name="CK_STxn_TxnType"),
        CheckConstraint(
            "(TxnType = 'Receipt' AND Quantity > 0) OR (TxnType = 'Withdrawal' AND Quantity < 0)",
            name="CK_STxn_Quantity_Sign",
        ),
        Index("IX_STxn_StockItem", "StockItemID", "TxnID"),
        Index("IX_STxn_WorkOrder", "WorkOrderID"),
        Index("IX_STxn_Requisition", "RequisitionID"),
    )

    stock_item  = relationship("StockItem", back_populates="txns")
    workorder   = relationship("WorkOrder", back_populates="txns")
    requisition = relationship("PurchaseRequisition", back_populates="txns")
    used_part   = relationship("UsedPart", back_populates="txns")
