"""Payroll router — runs, payslips, lifecycle transitions, period summary.

All endpoints require authentication. Everything except ``/my-payslips``
is HR-only.
"""

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from payzenix.auth.dependencies import actor_from, get_current_user, require_role
from payzenix.common.constants import PayrollStatus, UserRole
from payzenix.common.pagination import PaginatedResponse, PaginationParams
from payzenix.common.rate_limit import PAYROLL_RUN_LIMIT, limiter
from payzenix.database import get_db
from payzenix.employees.models import Employee
from payzenix.payroll.schemas import (
    MarkPaidRequest,
    PayrollOut,
    PayrollRunRequest,
    PayrollRunResult,
    PayrollSummaryOut,
    PayrollUpdate,
)
from payzenix.payroll.service import PayrollService

router = APIRouter(prefix="", tags=["payroll"])


# ── POST /run ───────────────────────────────────────────────────────

@router.post("/run", response_model=PayrollRunResult)
@limiter.limit(PAYROLL_RUN_LIMIT)
async def run_payroll(
    request: Request,
    body: PayrollRunRequest,
    employee: Employee = Depends(require_role(UserRole.hr)),
    db: AsyncSession = Depends(get_db),
):
    """Compute pending records for a period. Processed/paid records are skipped."""
    return await PayrollService.run_payroll(
        db, body.month, body.year, actor_from(employee), employee_ids=body.employee_ids,
    )


# ── GET / ───────────────────────────────────────────────────────────

@router.get("", response_model=PaginatedResponse[PayrollOut])
async def list_payroll(
    month: Optional[int] = Query(None, ge=1, le=12),
    year: Optional[int] = Query(None),
    employee_id: Optional[uuid.UUID] = Query(None),
    status_filter: Optional[PayrollStatus] = Query(None, alias="status"),
    params: PaginationParams = Depends(PaginationParams),
    employee: Employee = Depends(require_role(UserRole.hr)),
    db: AsyncSession = Depends(get_db),
):
    return await PayrollService.list_records(
        db, params, month=month, year=year, employee_id=employee_id, status=status_filter,
    )


# ── GET /my-payslips ────────────────────────────────────────────────

@router.get("/my-payslips", response_model=PaginatedResponse[PayrollOut])
async def my_payslips(
    params: PaginationParams = Depends(PaginationParams),
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Processed and paid payslips of the authenticated user."""
    return await PayrollService.my_payslips(db, employee.id, params)


# ── GET /summary ────────────────────────────────────────────────────

@router.get("/summary", response_model=PayrollSummaryOut)
async def period_summary(
    month: int = Query(..., ge=1, le=12),
    year: int = Query(...),
    employee: Employee = Depends(require_role(UserRole.hr)),
    db: AsyncSession = Depends(get_db),
):
    return await PayrollService.get_period_summary(db, month, year)


# ── GET /{record_id} ────────────────────────────────────────────────

@router.get("/{record_id}", response_model=PayrollOut)
async def get_payroll(
    record_id: uuid.UUID,
    employee: Employee = Depends(require_role(UserRole.hr)),
    db: AsyncSession = Depends(get_db),
):
    row = await PayrollService.get_record(db, record_id)
    return PayrollOut.model_validate(row)


# ── PUT /{record_id} ────────────────────────────────────────────────

@router.put("/{record_id}", response_model=PayrollOut)
async def update_payroll(
    record_id: uuid.UUID,
    body: PayrollUpdate,
    employee: Employee = Depends(require_role(UserRole.hr)),
    db: AsyncSession = Depends(get_db),
):
    """Adjust a pending record. Processed and paid records are locked."""
    row = await PayrollService.update_record(db, record_id, body, actor_from(employee))
    return PayrollOut.model_validate(row)


# ── POST /{record_id}/finalize ──────────────────────────────────────

@router.post("/{record_id}/finalize", response_model=PayrollOut)
async def finalize_payroll(
    record_id: uuid.UUID,
    employee: Employee = Depends(require_role(UserRole.hr)),
    db: AsyncSession = Depends(get_db),
):
    row = await PayrollService.finalize(db, record_id, actor_from(employee))
    return PayrollOut.model_validate(row)


# ── POST /{record_id}/mark-paid ─────────────────────────────────────

@router.post("/{record_id}/mark-paid", response_model=PayrollOut)
async def mark_payroll_paid(
    record_id: uuid.UUID,
    body: Optional[MarkPaidRequest] = None,
    employee: Employee = Depends(require_role(UserRole.hr)),
    db: AsyncSession = Depends(get_db),
):
    row = await PayrollService.mark_paid(
        db, record_id, actor_from(employee),
        payment_date=body.payment_date if body else None,
    )
    return PayrollOut.model_validate(row)


# ── DELETE /{record_id} ─────────────────────────────────────────────

@router.delete("/{record_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_payroll(
    record_id: uuid.UUID,
    employee: Employee = Depends(require_role(UserRole.hr)),
    db: AsyncSession = Depends(get_db),
):
    """Delete a pending record."""
    await PayrollService.delete_record(db, record_id, actor_from(employee))
    return Response(status_code=status.HTTP_204_NO_CONTENT)
