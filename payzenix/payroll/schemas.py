"""Payroll Pydantic v2 schemas — request/response validation."""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Annotated, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from payzenix.common.constants import MAX_PAYROLL_YEAR, MIN_PAYROLL_YEAR, PayrollStatus
from payzenix.employees.schemas import EmployeeBrief

NonNegativeAmount = Annotated[Decimal, Field(ge=0, decimal_places=2)]


# ═════════════════════════════════════════════════════════════════════
# Payroll record
# ═════════════════════════════════════════════════════════════════════


class PayrollOut(BaseModel):
    """Full payroll record (payslip) representation."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    employee_id: uuid.UUID
    employee: Optional[EmployeeBrief] = None
    month: int
    year: int
    basic_salary: Decimal
    allowances: Dict[str, Decimal] = {}
    deductions: Dict[str, Decimal] = {}
    gross_salary: Decimal
    total_deductions: Decimal
    net_salary: Decimal
    status: PayrollStatus
    processed_at: Optional[datetime] = None
    payment_date: Optional[datetime] = None
    remarks: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class PayrollUpdate(BaseModel):
    """Manual adjustment of a pending record. Totals are always recomputed."""

    basic_salary: Optional[Decimal] = Field(None, ge=0, decimal_places=2)
    allowances: Optional[Dict[str, NonNegativeAmount]] = None
    deductions: Optional[Dict[str, NonNegativeAmount]] = None
    remarks: Optional[str] = Field(None, max_length=2000)


class MarkPaidRequest(BaseModel):
    payment_date: Optional[datetime] = None


# ═════════════════════════════════════════════════════════════════════
# Payroll run
# ═════════════════════════════════════════════════════════════════════


class PayrollRunRequest(BaseModel):
    month: int = Field(..., ge=1, le=12)
    year: int = Field(..., ge=MIN_PAYROLL_YEAR, le=MAX_PAYROLL_YEAR)
    employee_ids: Optional[List[uuid.UUID]] = None


class PayrollRunSkip(BaseModel):
    """An employee left out of a run, with the reason."""

    employee_id: uuid.UUID
    employee_code: str
    reason: str


class PayrollRunResult(BaseModel):
    month: int
    year: int
    created: int = 0
    recomputed: int = 0
    records: List[PayrollOut] = []
    skipped: List[PayrollRunSkip] = []


# ═════════════════════════════════════════════════════════════════════
# Period summary
# ═════════════════════════════════════════════════════════════════════


class PayrollSummaryOut(BaseModel):
    """Aggregate figures for one payroll period."""

    month: int
    year: int
    record_count: int = 0
    total_gross: Decimal = Decimal("0")
    total_deductions: Decimal = Decimal("0")
    total_net: Decimal = Decimal("0")
    by_status: Dict[str, int] = {}
