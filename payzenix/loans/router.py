"""Loans router — requests, approvals, activation, repayments, schedules.

All endpoints require authentication. Employees file and view their own
loans; decisions, disbursement and portfolio views are HR-only.
"""

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from payzenix.auth.dependencies import (
    actor_from,
    get_current_user,
    has_role,
    require_role,
)
from payzenix.common.constants import LoanStatus, UserRole
from payzenix.common.exceptions import ForbiddenException
from payzenix.common.rate_limit import LOAN_REQUEST_LIMIT, limiter
from payzenix.database import get_db
from payzenix.employees.models import Employee
from payzenix.employees.service import EmployeeService
from payzenix.loans.schemas import (
    LoanActivateRequest,
    LoanCreate,
    LoanDecisionRequest,
    LoanListResponse,
    LoanOut,
    LoanPaymentRequest,
    LoanQuoteRequest,
    LoanSummaryOut,
    ScheduleOut,
)
from payzenix.loans.service import LoanService

router = APIRouter(prefix="", tags=["loans"])


# ── POST / ──────────────────────────────────────────────────────────

@router.post("", response_model=LoanOut, status_code=status.HTTP_201_CREATED)
@limiter.limit(LOAN_REQUEST_LIMIT)
async def request_loan(
    request: Request,
    body: LoanCreate,
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Request a loan for yourself, or (HR) on behalf of another employee."""
    employee_id = employee.id
    if body.employee is not None:
        target = await EmployeeService.resolve_ref(db, body.employee)
        if target.id != employee.id and not has_role(request, UserRole.hr):
            raise ForbiddenException(
                detail="Only HR can request a loan on behalf of another employee.",
            )
        employee_id = target.id
    loan = await LoanService.create_loan(db, body, employee_id, actor_from(employee))
    return LoanOut.model_validate(loan)


# ── GET / ───────────────────────────────────────────────────────────

@router.get("", response_model=LoanListResponse)
async def list_loans(
    status_filter: Optional[LoanStatus] = Query(None, alias="status"),
    employee_id: Optional[uuid.UUID] = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=100),
    employee: Employee = Depends(require_role(UserRole.hr)),
    db: AsyncSession = Depends(get_db),
):
    loans, total = await LoanService.list_loans(
        db, status=status_filter, employee_id=employee_id, page=page, page_size=page_size,
    )
    return LoanListResponse(
        data=[LoanOut.model_validate(loan) for loan in loans],
        total=total,
    )


# ── GET /my-loans ───────────────────────────────────────────────────

@router.get("/my-loans", response_model=LoanListResponse)
async def my_loans(
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    loans = await LoanService.my_loans(db, employee.id)
    return LoanListResponse(
        data=[LoanOut.model_validate(loan) for loan in loans],
        total=len(loans),
    )


# ── GET /summary ────────────────────────────────────────────────────

@router.get("/summary", response_model=LoanSummaryOut)
async def loan_summary(
    employee: Employee = Depends(require_role(UserRole.hr)),
    db: AsyncSession = Depends(get_db),
):
    return await LoanService.get_summary(db)


# ── POST /quote ─────────────────────────────────────────────────────

@router.post("/quote", response_model=ScheduleOut)
async def quote_loan(
    body: LoanQuoteRequest,
    employee: Employee = Depends(get_current_user),
):
    """EMI and repayment schedule for the given terms, without filing a request."""
    return LoanService.quote(
        body.principal, body.interest_rate, body.tenure, start_date=body.start_date,
    )


# ── GET /{loan_id} ──────────────────────────────────────────────────

@router.get("/{loan_id}", response_model=LoanOut)
async def get_loan(
    loan_id: uuid.UUID,
    request: Request,
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    loan = await LoanService.get_loan(db, loan_id)
    if loan.employee_id != employee.id and not has_role(request, UserRole.hr):
        raise ForbiddenException()
    return LoanOut.model_validate(loan)


# ── GET /{loan_id}/schedule ─────────────────────────────────────────

@router.get("/{loan_id}/schedule", response_model=ScheduleOut)
async def get_loan_schedule(
    loan_id: uuid.UUID,
    request: Request,
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    loan = await LoanService.get_loan(db, loan_id)
    if loan.employee_id != employee.id and not has_role(request, UserRole.hr):
        raise ForbiddenException()
    return await LoanService.get_schedule(db, loan_id)


# ── PUT /{loan_id}/approve ──────────────────────────────────────────

@router.put("/{loan_id}/approve", response_model=LoanOut)
async def approve_loan(
    loan_id: uuid.UUID,
    body: Optional[LoanDecisionRequest] = None,
    employee: Employee = Depends(require_role(UserRole.hr)),
    db: AsyncSession = Depends(get_db),
):
    loan = await LoanService.approve_loan(
        db, loan_id, actor_from(employee), remarks=body.remarks if body else None,
    )
    return LoanOut.model_validate(loan)


# ── PUT /{loan_id}/reject ───────────────────────────────────────────

@router.put("/{loan_id}/reject", response_model=LoanOut)
async def reject_loan(
    loan_id: uuid.UUID,
    body: Optional[LoanDecisionRequest] = None,
    employee: Employee = Depends(require_role(UserRole.hr)),
    db: AsyncSession = Depends(get_db),
):
    loan = await LoanService.reject_loan(
        db, loan_id, actor_from(employee), remarks=body.remarks if body else None,
    )
    return LoanOut.model_validate(loan)


# ── POST /{loan_id}/activate ────────────────────────────────────────

@router.post("/{loan_id}/activate", response_model=LoanOut)
async def activate_loan(
    loan_id: uuid.UUID,
    body: Optional[LoanActivateRequest] = None,
    employee: Employee = Depends(require_role(UserRole.hr)),
    db: AsyncSession = Depends(get_db),
):
    """Disburse an approved loan and fix its repayment schedule."""
    loan = await LoanService.activate_loan(
        db, loan_id, actor_from(employee), start_date=body.start_date if body else None,
    )
    return LoanOut.model_validate(loan)


# ── POST /{loan_id}/payments ────────────────────────────────────────

@router.post("/{loan_id}/payments", response_model=LoanOut)
async def record_payment(
    loan_id: uuid.UUID,
    body: Optional[LoanPaymentRequest] = None,
    employee: Employee = Depends(require_role(UserRole.hr)),
    db: AsyncSession = Depends(get_db),
):
    """Deduct the next EMI, or apply a principal prepayment when ``amount`` is set."""
    loan = await LoanService.apply_payment(
        db, loan_id, actor_from(employee), amount=body.amount if body else None,
    )
    return LoanOut.model_validate(loan)


# ── DELETE /{loan_id} ───────────────────────────────────────────────

@router.delete("/{loan_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_loan(
    loan_id: uuid.UUID,
    employee: Employee = Depends(require_role(UserRole.hr)),
    db: AsyncSession = Depends(get_db),
):
    """Delete a pending or rejected loan."""
    await LoanService.delete_loan(db, loan_id, actor_from(employee))
    return Response(status_code=status.HTTP_204_NO_CONTENT)
