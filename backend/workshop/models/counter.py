from sqlalchemy import Column, Integer, SmallInteger, String
from ..core.db import Base


class DocumentCounter(Base):
    # Last issued sequence per (prefix, year); numbers are never handed out twice
    __tablename__ = "DocumentCounter"

    Prefix  = Column(String(10), primary_key=True)
    Year    = Column(SmallInteger, primary_key=True)
    LastSeq = Column(Integer, nullable=False, default=0)
