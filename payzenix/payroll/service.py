"""Payroll service layer — runs, lifecycle transitions, listings.

The service owns persistence only. Every figure comes from
:class:`PayrollCalculator` and every state change from
:class:`PayrollRecordLifecycle`; rows are locked with
``SELECT ... FOR UPDATE`` before a transition so two concurrent requests
cannot both move the same record.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime
from typing import Optional, Union

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from payzenix.common.audit import SYSTEM_ACTOR, ActorRef, SqlAuditSink
from payzenix.common.constants import PayrollStatus
from payzenix.common.exceptions import (
    ConflictError,
    InvalidPayrollComputation,
    NotFoundException,
    PayrollLocked,
)
from payzenix.common.money import ZERO, amounts_to_json, normalize, to_decimal
from payzenix.common.pagination import PaginatedResponse, PaginationParams, paginate
from payzenix.components.engine import SalaryComponentSet
from payzenix.components.service import ComponentService
from payzenix.employees.models import Employee
from payzenix.employees.schemas import EmployeeRef
from payzenix.employees.service import EmployeeService
from payzenix.payroll.calculator import PayrollCalculator, PayrollRecord, validate_period
from payzenix.payroll.lifecycle import PayrollRecordLifecycle
from payzenix.payroll.models import Payroll
from payzenix.payroll.schemas import (
    PayrollOut,
    PayrollRunResult,
    PayrollRunSkip,
    PayrollSummaryOut,
    PayrollUpdate,
)

logger = logging.getLogger(__name__)


def _apply(row: Payroll, record: PayrollRecord) -> None:
    """Copy an engine record onto its ORM row."""
    row.basic_salary = record.basic_salary
    row.allowances = amounts_to_json(record.allowances)
    row.deductions = amounts_to_json(record.deductions)
    row.gross_salary = record.gross_salary
    row.total_deductions = record.total_deductions
    row.net_salary = record.net_salary
    row.status = record.status
    row.processed_at = record.processed_at
    row.payment_date = record.payment_date
    row.remarks = record.remarks


class PayrollService:
    """Business logic for payroll records."""

    # ── Lookups ─────────────────────────────────────────────────────

    @staticmethod
    async def get_record(
        db: AsyncSession,
        record_id: uuid.UUID,
        for_update: bool = False,
    ) -> Payroll:
        stmt = select(Payroll).where(Payroll.id == record_id)
        if for_update:
            stmt = stmt.with_for_update(of=Payroll)
        row = (await db.execute(stmt)).scalar_one_or_none()
        if row is None:
            raise NotFoundException("PayrollRecord", str(record_id))
        return row

    @staticmethod
    async def _find_period(
        db: AsyncSession,
        employee_id: uuid.UUID,
        month: int,
        year: int,
    ) -> Optional[Payroll]:
        result = await db.execute(
            select(Payroll)
            .where(
                Payroll.employee_id == employee_id,
                Payroll.month == month,
                Payroll.year == year,
            )
            .with_for_update(of=Payroll)
        )
        return result.scalar_one_or_none()

    # ── Computation ─────────────────────────────────────────────────

    @staticmethod
    async def _compute(
        db: AsyncSession,
        employee: EmployeeRef,
        component_set: SalaryComponentSet,
        month: int,
        year: int,
        actor: ActorRef,
    ) -> tuple[Payroll, bool]:
        row = await PayrollService._find_period(db, employee.id, month, year)
        existing = PayrollRecord.model_validate(row) if row is not None else None
        record = PayrollCalculator.compute_for_period(
            employee, component_set, month, year, existing=existing,
        )

        if row is None:
            row = Payroll(employee_id=employee.id, month=month, year=year)
            db.add(row)
        _apply(row, record)
        try:
            await db.flush()
        except IntegrityError as exc:
            raise ConflictError(
                "period", f"{employee.employee_code} {month:02d}/{year}",
            ) from exc

        transition = PayrollRecordLifecycle.computed(
            record.model_copy(update={"id": row.id}),
            actor,
            recomputed=existing is not None,
        )
        await SqlAuditSink(db).emit(transition.event)
        await db.refresh(row, attribute_names=["employee"])
        return row, existing is not None

    @staticmethod
    async def compute_for_employee(
        db: AsyncSession,
        employee_ref: Union[uuid.UUID, str],
        month: int,
        year: int,
        actor: ActorRef = SYSTEM_ACTOR,
    ) -> Payroll:
        """Compute (or recompute) one employee's pending record for a period."""
        employee = await EmployeeService.resolve_ref(db, employee_ref)
        component_set = await ComponentService.load_component_set(db)
        row, _ = await PayrollService._compute(db, employee, component_set, month, year, actor)
        return row

    @staticmethod
    async def run_payroll(
        db: AsyncSession,
        month: int,
        year: int,
        actor: ActorRef = SYSTEM_ACTOR,
        employee_ids: Optional[list[uuid.UUID]] = None,
    ) -> PayrollRunResult:
        """Compute the period for every payable employee.

        Records already processed or paid are reported as skipped rather
        than failing the whole run.
        """
        validate_period(month, year)
        component_set = await ComponentService.load_component_set(db)
        employees = await EmployeeService.list_payable(db, employee_ids)

        result = PayrollRunResult(month=month, year=year)
        if employee_ids:
            payable = {e.id for e in employees}
            for employee_id in employee_ids:
                if employee_id in payable:
                    continue
                emp = await db.get(Employee, employee_id)
                if emp is None:
                    raise NotFoundException("Employee", str(employee_id))
                result.skipped.append(PayrollRunSkip(
                    employee_id=emp.id,
                    employee_code=emp.employee_code,
                    reason=f"Employee status is {emp.status.value}.",
                ))

        for employee in employees:
            try:
                row, recomputed = await PayrollService._compute(
                    db, employee, component_set, month, year, actor,
                )
            except (PayrollLocked, InvalidPayrollComputation) as exc:
                logger.warning(
                    "Payroll %02d/%d skipped for %s: %s",
                    month, year, employee.employee_code, exc.detail,
                )
                result.skipped.append(PayrollRunSkip(
                    employee_id=employee.id,
                    employee_code=employee.employee_code,
                    reason=exc.detail,
                ))
                continue
            if recomputed:
                result.recomputed += 1
            else:
                result.created += 1
            result.records.append(PayrollOut.model_validate(row))

        logger.info(
            "Payroll run %02d/%d: %d created, %d recomputed, %d skipped",
            month, year, result.created, result.recomputed, len(result.skipped),
        )
        return result

    # ── Transitions ─────────────────────────────────────────────────

    @staticmethod
    async def finalize(
        db: AsyncSession,
        record_id: uuid.UUID,
        actor: ActorRef = SYSTEM_ACTOR,
    ) -> Payroll:
        row = await PayrollService.get_record(db, record_id, for_update=True)
        transition = PayrollRecordLifecycle.finalize(PayrollRecord.model_validate(row), actor)
        _apply(row, transition.record)
        await db.flush()
        await SqlAuditSink(db).emit(transition.event)
        logger.info("Payroll %s processed", row.id)
        return row

    @staticmethod
    async def mark_paid(
        db: AsyncSession,
        record_id: uuid.UUID,
        actor: ActorRef = SYSTEM_ACTOR,
        payment_date: Optional[datetime] = None,
    ) -> Payroll:
        row = await PayrollService.get_record(db, record_id, for_update=True)
        transition = PayrollRecordLifecycle.mark_paid(
            PayrollRecord.model_validate(row), actor, payment_date=payment_date,
        )
        _apply(row, transition.record)
        await db.flush()
        await SqlAuditSink(db).emit(transition.event)
        logger.info("Payroll %s paid", row.id)
        return row

    @staticmethod
    async def update_record(
        db: AsyncSession,
        record_id: uuid.UUID,
        data: PayrollUpdate,
        actor: ActorRef = SYSTEM_ACTOR,
    ) -> Payroll:
        row = await PayrollService.get_record(db, record_id, for_update=True)
        transition = PayrollRecordLifecycle.update(
            PayrollRecord.model_validate(row),
            actor,
            basic_salary=data.basic_salary,
            allowances=data.allowances,
            deductions=data.deductions,
            remarks=data.remarks,
        )
        _apply(row, transition.record)
        await db.flush()
        await SqlAuditSink(db).emit(transition.event)
        return row

    @staticmethod
    async def delete_record(
        db: AsyncSession,
        record_id: uuid.UUID,
        actor: ActorRef = SYSTEM_ACTOR,
    ) -> None:
        row = await PayrollService.get_record(db, record_id, for_update=True)
        event = PayrollRecordLifecycle.deleted(PayrollRecord.model_validate(row), actor)
        await db.delete(row)
        await db.flush()
        await SqlAuditSink(db).emit(event)

    # ── Listings ────────────────────────────────────────────────────

    @staticmethod
    async def list_records(
        db: AsyncSession,
        params: PaginationParams,
        month: Optional[int] = None,
        year: Optional[int] = None,
        employee_id: Optional[uuid.UUID] = None,
        status: Optional[PayrollStatus] = None,
    ) -> PaginatedResponse:
        query = select(Payroll)
        if month is not None:
            query = query.where(Payroll.month == month)
        if year is not None:
            query = query.where(Payroll.year == year)
        if employee_id is not None:
            query = query.where(Payroll.employee_id == employee_id)
        if status is not None:
            query = query.where(Payroll.status == status)
        query = query.order_by(Payroll.year.desc(), Payroll.month.desc(), Payroll.created_at)
        return await paginate(db, query, params, model=Payroll, transform=PayrollOut.model_validate)

    @staticmethod
    async def my_payslips(
        db: AsyncSession,
        employee_id: uuid.UUID,
        params: PaginationParams,
    ) -> PaginatedResponse:
        """Issued payslips only; pending records are still drafts."""
        query = (
            select(Payroll)
            .where(
                Payroll.employee_id == employee_id,
                Payroll.status.in_([PayrollStatus.processed, PayrollStatus.paid]),
            )
            .order_by(Payroll.year.desc(), Payroll.month.desc())
        )
        return await paginate(db, query, params, model=Payroll, transform=PayrollOut.model_validate)

    @staticmethod
    async def get_period_summary(
        db: AsyncSession,
        month: int,
        year: int,
    ) -> PayrollSummaryOut:
        validate_period(month, year)
        result = await db.execute(
            select(
                Payroll.status,
                func.count(Payroll.id),
                func.sum(Payroll.gross_salary),
                func.sum(Payroll.total_deductions),
                func.sum(Payroll.net_salary),
            )
            .where(Payroll.month == month, Payroll.year == year)
            .group_by(Payroll.status)
        )
        summary = PayrollSummaryOut(month=month, year=year)
        gross = deductions = net = ZERO
        for status, count, sum_gross, sum_deductions, sum_net in result.all():
            summary.by_status[PayrollStatus(status).value] = count
            summary.record_count += count
            gross += to_decimal(sum_gross)
            deductions += to_decimal(sum_deductions)
            net += to_decimal(sum_net)
        summary.total_gross = normalize(gross)
        summary.total_deductions = normalize(deductions)
        summary.total_net = normalize(net)
        return summary
