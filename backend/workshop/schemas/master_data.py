# backend/workshop/schemas/master_data.py
from datetime import date
from decimal import Decimal
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator

TechnicianRoleLiteral = Literal["Technician", "Assistant"]


# ---- Technicians ----
class TechnicianCreate(BaseModel):
    Name: str = Field(..., min_length=1, max_length=200)
    Role: TechnicianRoleLiteral = "Technician"
    Phone: Optional[str] = Field(default=None, max_length=50)


class TechnicianUpdate(BaseModel):
    Name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    Role: Optional[TechnicianRoleLiteral] = None
    Phone: Optional[str] = Field(default=None, max_length=50)
    IsActive: Optional[bool] = None


class TechnicianRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    TechnicianID: int
    Name: str
    Role: str
    Phone: Optional[str] = None
    IsActive: bool


# ---- Holidays ----
class HolidayCreate(BaseModel):
    HolidayDate: date
    Name: str = Field(..., min_length=1, max_length=200)


class HolidayRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    HolidayID: int
    HolidayDate: date
    Name: str


# ---- Repair categories ----
class CategoryCreate(BaseModel):
    Code: str = Field(..., min_length=1, max_length=20)
    Name: str = Field(..., min_length=1, max_length=200)
    ParentCode: Optional[str] = Field(default=None, max_length=20)

    @field_validator("Code")
    @classmethod
    def _norm_code(cls, v: str) -> str:
        v = v.strip().upper()
        if not v:
            raise ValueError("Code must not be blank")
        return v


class CategoryRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    CategoryID: int
    Code: str
    Name: str
    ParentCode: Optional[str] = None
    IsActive: bool


# ---- Standard tasks ----
class StandardTaskCreate(BaseModel):
    CategoryCode: str = Field(..., min_length=1, max_length=20)
    Item: str = Field(..., min_length=1, max_length=200)
    StandardHours: Decimal = Field(..., ge=0)


class StandardTaskRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    TaskID: int
    CategoryCode: str
    Item: str
    StandardHours: Decimal

    @field_serializer("StandardHours")
    def _ser_hours(self, v: Decimal):
        return float(v)
