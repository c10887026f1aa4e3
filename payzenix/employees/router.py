"""Employee router — the employee master the payroll engine reads from."""

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from payzenix.auth.dependencies import actor_from, get_current_user, has_role, require_role
from payzenix.common.constants import EmployeeStatus, UserRole
from payzenix.common.exceptions import ForbiddenException
from payzenix.database import get_db
from payzenix.employees.models import Employee
from payzenix.employees.schemas import (
    EmployeeCreate,
    EmployeeListResponse,
    EmployeeOut,
    EmployeeUpdate,
)
from payzenix.employees.service import EmployeeService

router = APIRouter(prefix="", tags=["employees"])


# ── GET /employees: List employees ─────────────────────────────────

@router.get("", response_model=EmployeeListResponse)
async def list_employees(
    status_filter: Optional[EmployeeStatus] = Query(None, alias="status"),
    search: Optional[str] = Query(None, description="Search by name or employee code"),
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=100),
    current_user: Employee = Depends(require_role(UserRole.hr)),
    db: AsyncSession = Depends(get_db),
):
    employees, total = await EmployeeService.list_employees(
        db, status=status_filter, search=search, page=page, page_size=page_size,
    )
    return EmployeeListResponse(
        data=[EmployeeOut.model_validate(e) for e in employees],
        total=total,
    )


# ── POST /employees: Create employee ──────────────────────────────

@router.post("", response_model=EmployeeOut, status_code=status.HTTP_201_CREATED)
async def create_employee(
    body: EmployeeCreate,
    current_user: Employee = Depends(require_role(UserRole.hr)),
    db: AsyncSession = Depends(get_db),
):
    employee = await EmployeeService.create_employee(db, body, actor_from(current_user))
    return EmployeeOut.model_validate(employee)


# ── GET /employees/{id} ────────────────────────────────────────────

@router.get("/{employee_id}", response_model=EmployeeOut)
async def get_employee(
    employee_id: uuid.UUID,
    request: Request,
    current_user: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Employees may view their own record; HR may view any."""
    if current_user.id != employee_id and not has_role(request, UserRole.hr):
        raise ForbiddenException(detail="You can only view your own profile.")
    employee = await EmployeeService.get_employee(db, employee_id)
    return EmployeeOut.model_validate(employee)


# ── PUT /employees/{id}: Update employee ───────────────────────────

@router.put("/{employee_id}", response_model=EmployeeOut)
async def update_employee(
    employee_id: uuid.UUID,
    body: EmployeeUpdate,
    current_user: Employee = Depends(require_role(UserRole.hr)),
    db: AsyncSession = Depends(get_db),
):
    """Partial update. Existing payroll records are not recomputed."""
    employee = await EmployeeService.update_employee(
        db, employee_id, body, actor_from(current_user),
    )
    return EmployeeOut.model_validate(employee)
