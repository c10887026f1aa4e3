"""Salary component router — component configuration and breakdown preview.

Reads are open to HR; writes require admin.
"""

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from payzenix.auth.dependencies import actor_from, require_role
from payzenix.common.constants import UserRole
from payzenix.components.schemas import (
    BreakdownPreviewOut,
    BreakdownPreviewRequest,
    SalaryComponentCreate,
    SalaryComponentListResponse,
    SalaryComponentOut,
    SalaryComponentUpdate,
)
from payzenix.components.service import ComponentService
from payzenix.database import get_db
from payzenix.employees.models import Employee

router = APIRouter(prefix="", tags=["components"])


# ── GET / ────────────────────────────────────────────────────────────

@router.get("", response_model=SalaryComponentListResponse)
async def list_components(
    is_active: Optional[bool] = Query(None),
    employee: Employee = Depends(require_role(UserRole.hr)),
    db: AsyncSession = Depends(get_db),
):
    """List salary components in resolution order."""
    components = await ComponentService.list_components(db, is_active=is_active)
    return SalaryComponentListResponse(
        data=[SalaryComponentOut.model_validate(c) for c in components],
        total=len(components),
    )


# ── POST / ───────────────────────────────────────────────────────────

@router.post("", response_model=SalaryComponentOut, status_code=status.HTTP_201_CREATED)
async def create_component(
    data: SalaryComponentCreate,
    employee: Employee = Depends(require_role(UserRole.admin)),
    db: AsyncSession = Depends(get_db),
):
    component = await ComponentService.create_component(db, data, actor_from(employee))
    return SalaryComponentOut.model_validate(component)


# ── POST /seed-defaults ──────────────────────────────────────────────

@router.post("/seed-defaults", response_model=SalaryComponentListResponse)
async def seed_defaults(
    employee: Employee = Depends(require_role(UserRole.admin)),
    db: AsyncSession = Depends(get_db),
):
    """Insert the stock components that are not configured yet."""
    created = await ComponentService.seed_default_components(db, actor_from(employee))
    return SalaryComponentListResponse(
        data=[SalaryComponentOut.model_validate(c) for c in created],
        total=len(created),
    )


# ── POST /preview ────────────────────────────────────────────────────

@router.post("/preview", response_model=BreakdownPreviewOut)
async def preview_breakdown(
    data: BreakdownPreviewRequest,
    employee: Employee = Depends(require_role(UserRole.hr)),
    db: AsyncSession = Depends(get_db),
):
    """Compute a breakdown for a base salary without persisting anything."""
    return await ComponentService.preview(db, data.base_salary)


# ── PUT /{component_id} ──────────────────────────────────────────────

@router.put("/{component_id}", response_model=SalaryComponentOut)
async def update_component(
    component_id: uuid.UUID,
    data: SalaryComponentUpdate,
    employee: Employee = Depends(require_role(UserRole.admin)),
    db: AsyncSession = Depends(get_db),
):
    component = await ComponentService.update_component(
        db, component_id, data, actor_from(employee),
    )
    return SalaryComponentOut.model_validate(component)


# ── DELETE /{component_id} ───────────────────────────────────────────

@router.delete("/{component_id}", response_model=SalaryComponentOut)
async def deactivate_component(
    component_id: uuid.UUID,
    employee: Employee = Depends(require_role(UserRole.admin)),
    db: AsyncSession = Depends(get_db),
):
    """Deactivate a component; stored payroll records are untouched."""
    component = await ComponentService.deactivate_component(
        db, component_id, actor_from(employee),
    )
    return SalaryComponentOut.model_validate(component)
