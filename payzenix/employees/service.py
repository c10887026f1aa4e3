"""Employee service layer — lookups and the single reference-resolution step."""

from __future__ import annotations

import uuid
from typing import Any, Optional, Sequence, Union

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from payzenix.common.audit import SYSTEM_ACTOR, ActorRef, AuditEvent, SqlAuditSink
from payzenix.common.constants import (
    PAYABLE_STATUSES,
    AuditModule,
    AuditType,
    EmployeeStatus,
)
from payzenix.common.exceptions import ConflictError, NotFoundException
from payzenix.employees.models import Employee
from payzenix.employees.schemas import EmployeeCreate, EmployeeRef, EmployeeUpdate


# Columns that cannot be cleared by an update.
_REQUIRED_FIELDS = frozenset({"name", "email", "base_salary", "status"})


class EmployeeService:
    """Employee lookups and maintenance for the payroll and loan services."""

    @staticmethod
    async def get_employee(
        db: AsyncSession,
        employee_id: uuid.UUID,
    ) -> Employee:
        employee = await db.get(Employee, employee_id)
        if employee is None:
            raise NotFoundException("Employee", str(employee_id))
        return employee

    @staticmethod
    async def resolve_ref(
        db: AsyncSession,
        ref: Union[uuid.UUID, str],
    ) -> EmployeeRef:
        """Resolve a UUID or an employee code to an :class:`EmployeeRef`.

        Every call site that accepts "an employee" goes through here, so the
        engine only ever receives one reference type.
        """
        if isinstance(ref, uuid.UUID):
            employee = await db.get(Employee, ref)
        else:
            try:
                employee = await db.get(Employee, uuid.UUID(ref))
            except ValueError:
                result = await db.execute(
                    select(Employee).where(Employee.employee_code == ref)
                )
                employee = result.scalar_one_or_none()
        if employee is None:
            raise NotFoundException("Employee", str(ref))
        return EmployeeRef.model_validate(employee)

    @staticmethod
    async def list_payable(
        db: AsyncSession,
        employee_ids: Optional[Sequence[uuid.UUID]] = None,
    ) -> list[EmployeeRef]:
        """Employees included in a payroll run, ordered by employee code."""
        stmt = select(Employee).where(Employee.status.in_(PAYABLE_STATUSES))
        if employee_ids:
            stmt = stmt.where(Employee.id.in_(list(employee_ids)))
        stmt = stmt.order_by(Employee.employee_code)
        result = await db.execute(stmt)
        return [EmployeeRef.model_validate(e) for e in result.scalars().all()]

    @staticmethod
    async def list_employees(
        db: AsyncSession,
        status: Optional[EmployeeStatus] = None,
        search: Optional[str] = None,
        page: int = 1,
        page_size: int = 50,
    ) -> tuple[list[Employee], int]:
        stmt = select(Employee)
        count_stmt = select(func.count()).select_from(Employee)

        if status:
            stmt = stmt.where(Employee.status == status)
            count_stmt = count_stmt.where(Employee.status == status)
        if search:
            pattern = f"%{search}%"
            cond = or_(
                Employee.name.ilike(pattern),
                Employee.employee_code.ilike(pattern),
            )
            stmt = stmt.where(cond)
            count_stmt = count_stmt.where(cond)

        total = (await db.execute(count_stmt)).scalar() or 0

        stmt = (
            stmt.order_by(Employee.employee_code)
            .offset((page - 1) * page_size)
            .limit(page_size)
        )
        result = await db.execute(stmt)
        return list(result.scalars().all()), total

    @staticmethod
    async def create_employee(
        db: AsyncSession,
        data: EmployeeCreate,
        actor: ActorRef = SYSTEM_ACTOR,
    ) -> Employee:
        for field in ("employee_code", "email"):
            value = getattr(data, field)
            dup = await db.execute(
                select(Employee.id).where(getattr(Employee, field) == value)
            )
            if dup.scalar() is not None:
                raise ConflictError(field, value)

        employee = Employee(**data.model_dump())
        db.add(employee)
        await db.flush()

        await SqlAuditSink(db).emit(AuditEvent(
            action="Employee Created",
            module=AuditModule.employees,
            type=AuditType.create,
            actor=actor,
            record_id=employee.id,
            entity_type="employee",
            details=f"Created employee {employee.employee_code}",
            changes={"base_salary": str(employee.base_salary)},
        ))
        return employee

    @staticmethod
    async def update_employee(
        db: AsyncSession,
        employee_id: uuid.UUID,
        data: EmployeeUpdate,
        actor: ActorRef = SYSTEM_ACTOR,
    ) -> Employee:
        """Partial update.

        Payroll records keep the ``basic_salary`` they were computed with; a
        new ``base_salary`` only reaches pending records when they are
        recomputed.
        """
        employee = await EmployeeService.get_employee(db, employee_id)
        changes = {
            field: value
            for field, value in data.model_dump(exclude_unset=True).items()
            if value is not None or field not in _REQUIRED_FIELDS
        }
        if not changes:
            return employee

        if "email" in changes and changes["email"] != employee.email:
            dup = await db.execute(
                select(Employee.id).where(Employee.email == changes["email"])
            )
            if dup.scalar() is not None:
                raise ConflictError("email", changes["email"])

        old_status = employee.status
        new_values: dict[str, Any] = {}
        for field, value in changes.items():
            setattr(employee, field, value)
            new_values[field] = value.value if hasattr(value, "value") else str(value)
        await db.flush()

        status_changed = employee.status != old_status
        await SqlAuditSink(db).emit(AuditEvent(
            action="Employee Updated",
            module=AuditModule.employees,
            type=AuditType.update,
            actor=actor,
            record_id=employee.id,
            entity_type="employee",
            from_status=old_status.value if status_changed else None,
            to_status=employee.status.value if status_changed else None,
            details=f"Updated employee {employee.employee_code}: {', '.join(sorted(changes))}",
            changes=new_values,
        ))
        return employee
