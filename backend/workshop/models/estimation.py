from sqlalchemy import Column, Integer, String, DateTime, Numeric, ForeignKey, CheckConstraint, UniqueConstraint
from sqlalchemy.orm import relationship
from ..core.db import Base


class EstimationAttempt(Base):
    __tablename__ = "EstimationAttempt"

    AttemptID      = Column(Integer, primary_key=True, autoincrement=True)
    WorkOrderID    = Column(Integer, ForeignKey("WorkOrder.WorkOrderID", ondelete="CASCADE"), nullable=False)
    Sequence       = Column(Integer, nullable=False)   # 1-based, never reused
    CreatedAt      = Column(DateTime, nullable=False)
    EstimatedStart = Column(DateTime, nullable=False)
    EstimatedEnd   = Column(DateTime, nullable=False)
    EstimatedHours = Column(Numeric(8, 2), nullable=False, default=0)
    Status_s       = Column(String(20), nullable=False, default="Active")
    FailureReason  = Column(String(500))
    Reasoning      = Column(String(1000))

    __table_args__ = (
        CheckConstraint("Status_s in ('Active','Completed','Failed')", name="CK_Est_Status"),
        CheckConstraint("Sequence >= 1", name="CK_Est_Sequence_Positive"),
        CheckConstraint("EstimatedHours >= 0", name="CK_Est_Hours_NonNegative"),
        UniqueConstraint("WorkOrderID", "Sequence", name="UQ_Est_WorkOrder_Sequence"),
    )

    workorder = relationship("WorkOrder", back_populates="estimations")
