from sqlalchemy import Column, Integer, String, Date, Boolean, Numeric, CheckConstraint, text
from ..core.db import Base


class Holiday(Base):
    __tablename__ = "Holiday"

    HolidayID   = Column(Integer, primary_key=True, autoincrement=True)
    HolidayDate = Column(Date, nullable=False, unique=True)
    Name        = Column(String(200), nullable=False)


class RepairCategory(Base):
    __tablename__ = "RepairCategory"

    CategoryID = Column(Integer, primary_key=True, autoincrement=True)
    Code       = Column(String(20), nullable=False, unique=True)
    Name       = Column(String(200), nullable=False)
    # Sub-categories point at their parent's code
    ParentCode = Column(String(20))
    IsActive   = Column(Boolean, nullable=False, default=True, server_default=text("1"))


class StandardTask(Base):
    """Standard labour hours per repair item, used to seed estimates."""
    __tablename__ = "StandardTask"

    TaskID        = Column(Integer, primary_key=True, autoincrement=True)
    CategoryCode  = Column(String(20), nullable=False)
    Item          = Column(String(200), nullable=False)
    StandardHours = Column(Numeric(6, 2), nullable=False)

    __table_args__ = (
        CheckConstraint("StandardHours >= 0", name="CK_StandardTask_Hours_NonNegative"),
    )
