"""Salary component Pydantic v2 schemas — request/response validation."""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from payzenix.common.constants import CalculationMethod, ComponentKind


class SalaryComponentCreate(BaseModel):
    """New component. Range checks are repeated by the engine on save."""

    code: str = Field(..., min_length=1, max_length=50, pattern=r"^[a-z0-9_]+$")
    name: str = Field(..., min_length=1, max_length=200)
    kind: ComponentKind
    method: CalculationMethod
    value: Decimal = Field(..., ge=0, decimal_places=4)
    taxable: bool = True
    is_active: bool = True
    is_basic: bool = False
    sort_order: int = 0


class SalaryComponentUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    method: Optional[CalculationMethod] = None
    value: Optional[Decimal] = Field(None, ge=0, decimal_places=4)
    taxable: Optional[bool] = None
    is_active: Optional[bool] = None
    is_basic: Optional[bool] = None
    sort_order: Optional[int] = None


class SalaryComponentOut(BaseModel):
    """Salary component definition."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    code: str
    name: str
    kind: ComponentKind
    method: CalculationMethod
    value: Decimal
    taxable: bool = True
    is_active: bool = True
    is_basic: bool = False
    sort_order: int = 0
    updated_at: Optional[datetime] = None


class SalaryComponentListResponse(BaseModel):
    data: List[SalaryComponentOut]
    total: int


class BreakdownPreviewRequest(BaseModel):
    base_salary: Decimal = Field(..., ge=0, decimal_places=2)


class BreakdownPreviewOut(BaseModel):
    """Salary breakdown for a hypothetical base, computed but not stored."""

    base_salary: Decimal
    basic_salary: Decimal
    allowances: Dict[str, Decimal]
    deductions: Dict[str, Decimal]
    gross_salary: Decimal
    total_deductions: Decimal
    net_salary: Decimal
    taxable_earnings: Decimal
