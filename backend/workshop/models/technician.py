from sqlalchemy import Column, Integer, String, Boolean, CheckConstraint, text
from sqlalchemy.orm import relationship
from ..core.db import Base

TECHNICIAN_ROLES = ("Technician", "Assistant")


class Technician(Base):
    __tablename__ = "Technician"

    TechnicianID = Column(Integer, primary_key=True, autoincrement=True)

    # Column is FullName in the database, Name on the Python side
    Name       = Column("FullName", String(200), nullable=False)
    Role       = Column(String(20), nullable=False, default="Technician", server_default=text("'Technician'"))
    Phone      = Column(String(50))
    IsActive   = Column(Boolean, nullable=False, default=True, server_default=text("1"))

    __table_args__ = (
        CheckConstraint("Role in ('Technician','Assistant')", name="CK_Technician_Role"),
    )

    # Work orders where this technician is the primary assignee
    workorders = relationship("WorkOrder", back_populates="technician")
