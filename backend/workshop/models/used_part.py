from sqlalchemy import Column, Integer, String, DateTime, Numeric, ForeignKey, CheckConstraint
from sqlalchemy.orm import relationship
from ..core.db import Base


class UsedPart(Base):
    """A part removed from a vehicle and kept under individual tracking."""
    __tablename__ = "UsedPart"

    UsedPartID      = Column(Integer, primary_key=True, autoincrement=True)
    WorkOrderID     = Column(Integer, ForeignKey("WorkOrder.WorkOrderID"), nullable=False)
    StockItemID     = Column(Integer, ForeignKey("StockItem.StockItemID"))
    PartName        = Column(String(200), nullable=False)
    PartCode        = Column(String(50))
    RemovedAt       = Column(DateTime, nullable=False)
    InitialQuantity = Column(Numeric(12, 3), nullable=False)
    Unit            = Column(String(20), nullable=False)
    Status_s        = Column(String(20), nullable=False, default="Pending")
    Notes           = Column(String(1000))

    __table_args__ = (
        CheckConstraint("InitialQuantity > 0", name="CK_UsedPart_Quantity_Positive"),
        CheckConstraint("Status_s in ('Pending','PartiallyHandled','FullyHandled')", name="CK_UsedPart_Status"),
    )

    workorder  = relationship("WorkOrder", back_populates="used_parts")
    stock_item = relationship("StockItem")
    events     = relationship(
        "UsedPartDisposition",
        back_populates="used_part",
        cascade="all, delete-orphan",
        order_by="UsedPartDisposition.Sequence",
    )
    txns       = relationship("StockTransaction", back_populates="used_part")


class UsedPartDisposition(Base):
    __tablename__ = "UsedPartDisposition"

    DispositionID = Column(Integer, primary_key=True, autoincrement=True)
    UsedPartID    = Column(Integer, ForeignKey("UsedPart.UsedPartID", ondelete="CASCADE"), nullable=False)
    Sequence      = Column(Integer, nullable=False)
    Kind          = Column(String(30), nullable=False)
    Quantity      = Column(Numeric(12, 3), nullable=False)
    Condition     = Column(String(100))
    BuyerName     = Column(String(200))
    SalePrice     = Column(Numeric(12, 2))
    TargetStockItemID = Column(Integer, ForeignKey("StockItem.StockItemID"))
    CreatedAt     = Column(DateTime, nullable=False)
    Actor         = Column(String(100))
    Notes         = Column(String(500))

    __table_args__ = (
        CheckConstraint(
            "Kind in ('Sell','Dispose','KeepForReuse','MoveToRevolving','MoveToFungible')",
            name="CK_UPD_Kind",
        ),
        CheckConstraint("Quantity > 0", name="CK_UPD_Quantity_Positive"),
    )

    used_part    = relationship("UsedPart", back_populates="events")
    target_stock = relationship("StockItem")
