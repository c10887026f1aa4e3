"""Employee Pydantic v2 schemas."""

import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from payzenix.common.constants import EmployeeStatus


class EmployeeRef(BaseModel):
    """The resolved employee reference handed to the payroll engine.

    Built once per request from the ``employees`` row; the engine never
    sees raw ids or ORM objects.
    """

    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: uuid.UUID
    employee_code: str
    name: str = ""
    base_salary: Decimal
    status: EmployeeStatus = EmployeeStatus.active


class EmployeeBrief(BaseModel):
    """Minimal employee info embedded in payroll / loan responses."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    employee_code: str
    name: str
    department: Optional[str] = None


class EmployeeCreate(BaseModel):
    employee_code: str = Field(..., min_length=1, max_length=20)
    name: str = Field(..., min_length=1, max_length=200)
    email: str = Field(..., min_length=3, max_length=255)
    department: Optional[str] = None
    designation: Optional[str] = None
    base_salary: Decimal = Field(..., ge=0, decimal_places=2)
    status: EmployeeStatus = EmployeeStatus.active
    date_of_joining: Optional[date] = None


class EmployeeUpdate(BaseModel):
    """Partial update; the employee code is immutable."""

    name: Optional[str] = Field(None, min_length=1, max_length=200)
    email: Optional[str] = Field(None, min_length=3, max_length=255)
    department: Optional[str] = None
    designation: Optional[str] = None
    base_salary: Optional[Decimal] = Field(None, ge=0, decimal_places=2)
    status: Optional[EmployeeStatus] = None
    date_of_joining: Optional[date] = None


class EmployeeOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    employee_code: str
    name: str
    email: str
    department: Optional[str] = None
    designation: Optional[str] = None
    base_salary: Decimal
    status: EmployeeStatus
    date_of_joining: Optional[date] = None
    created_at: Optional[datetime] = None


class EmployeeListResponse(BaseModel):
    data: List[EmployeeOut]
    total: int
