"""Loan Pydantic v2 schemas — request/response validation.

Principal, tenure and rate are range-checked by the amortizer so that a bad
request surfaces as ``invalid-loan-parameters`` rather than a generic
validation error.
"""

import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, computed_field

from payzenix.common.constants import LoanStatus, LoanType
from payzenix.employees.schemas import EmployeeBrief
from payzenix.loans.amortizer import LoanAmortizer
from payzenix.loans.lifecycle import repayment_progress


# ═════════════════════════════════════════════════════════════════════
# Requests
# ═════════════════════════════════════════════════════════════════════


class LoanCreate(BaseModel):
    """Loan request. HR may file on behalf of ``employee`` (id or code)."""

    employee: Optional[Union[uuid.UUID, str]] = None
    loan_type: LoanType = LoanType.personal
    principal: Decimal = Field(..., decimal_places=2)
    interest_rate: Decimal = Field(Decimal("0"), decimal_places=2)
    tenure: int
    start_date: Optional[date] = None
    reason: Optional[str] = Field(None, max_length=2000)


class LoanDecisionRequest(BaseModel):
    remarks: Optional[str] = Field(None, max_length=2000)


class LoanActivateRequest(BaseModel):
    start_date: Optional[date] = None


class LoanPaymentRequest(BaseModel):
    """Omit ``amount`` for a regular EMI; set it for a principal prepayment."""

    amount: Optional[Decimal] = Field(None, decimal_places=2)


class LoanQuoteRequest(BaseModel):
    principal: Decimal = Field(..., decimal_places=2)
    interest_rate: Decimal = Field(Decimal("0"), decimal_places=2)
    tenure: int
    start_date: Optional[date] = None


# ═════════════════════════════════════════════════════════════════════
# Responses
# ═════════════════════════════════════════════════════════════════════


class ScheduleEntryOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    installment: int
    due_date: Optional[date] = None
    emi: Decimal
    principal: Decimal
    interest: Decimal
    balance: Decimal


class ScheduleOut(BaseModel):
    emi_amount: Decimal
    total_interest: Decimal
    total_payable: Decimal
    entries: List[ScheduleEntryOut]


class LoanOut(BaseModel):
    """Full loan representation with repayment progress."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    employee_id: uuid.UUID
    employee: Optional[EmployeeBrief] = None
    loan_type: LoanType
    principal: Decimal
    interest_rate: Decimal
    tenure: int
    emi_amount: Decimal
    start_date: date
    status: LoanStatus
    paid_amount: Decimal
    remaining_amount: Decimal
    interest_paid: Decimal = Decimal("0")
    installments_paid: int = 0
    approved_by: Optional[uuid.UUID] = None
    approved_date: Optional[datetime] = None
    reason: Optional[str] = None
    remarks: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @computed_field
    @property
    def progress_percent(self) -> Decimal:
        return repayment_progress(self.paid_amount, self.principal)

    @computed_field
    @property
    def remaining_installments(self) -> int:
        return LoanAmortizer.remaining_installments(self.remaining_amount, self.emi_amount)


class LoanListResponse(BaseModel):
    data: List[LoanOut]
    total: int


class LoanSummaryOut(BaseModel):
    """Portfolio figures across all loans."""

    total_loans: int = 0
    total_disbursed: Decimal = Decimal("0")
    total_recovered: Decimal = Decimal("0")
    total_interest_collected: Decimal = Decimal("0")
    outstanding: Decimal = Decimal("0")
    active_count: int = 0
    completed_count: int = 0
    pending_count: int = 0
    by_status: Dict[str, int] = {}
