"""Loan service layer — requests, decisions, activation and repayments."""

from __future__ import annotations

import logging
import uuid
from datetime import date
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from payzenix.common.audit import SYSTEM_ACTOR, ActorRef, SqlAuditSink
from payzenix.common.constants import EmployeeStatus, LoanStatus
from payzenix.common.exceptions import (
    ForbiddenException,
    InvalidLoanOperation,
    NotFoundException,
)
from payzenix.common.money import ZERO, normalize, to_decimal
from payzenix.employees.service import EmployeeService
from payzenix.loans.amortizer import AmortizationSchedule, LoanAmortizer
from payzenix.loans.lifecycle import LoanLifecycle, LoanRecord, LoanTransition
from payzenix.loans.models import Loan
from payzenix.loans.schemas import LoanCreate, LoanSummaryOut, ScheduleOut

logger = logging.getLogger(__name__)


def _apply(row: Loan, loan: LoanRecord) -> None:
    """Copy the mutable fields of an engine loan onto its ORM row."""
    row.status = loan.status
    row.emi_amount = loan.emi_amount
    row.start_date = loan.start_date
    row.paid_amount = loan.paid_amount
    row.remaining_amount = loan.remaining_amount
    row.interest_paid = loan.interest_paid
    row.installments_paid = loan.installments_paid
    row.approved_by = loan.approved_by
    row.approved_date = loan.approved_date
    row.remarks = loan.remarks
    row.schedule = [entry.model_dump(mode="json") for entry in loan.schedule]


def _schedule_out(schedule: AmortizationSchedule) -> ScheduleOut:
    return ScheduleOut(
        emi_amount=schedule.emi_amount,
        total_interest=schedule.total_interest,
        total_payable=schedule.total_payable,
        entries=[entry.model_dump() for entry in schedule.entries],
    )


class LoanService:
    """Business logic for employee loans."""

    @staticmethod
    async def get_loan(
        db: AsyncSession,
        loan_id: uuid.UUID,
        for_update: bool = False,
    ) -> Loan:
        stmt = select(Loan).where(Loan.id == loan_id)
        if for_update:
            stmt = stmt.with_for_update(of=Loan)
        row = (await db.execute(stmt)).scalar_one_or_none()
        if row is None:
            raise NotFoundException("Loan", str(loan_id))
        return row

    @staticmethod
    async def _commit_transition(
        db: AsyncSession,
        row: Loan,
        transition: LoanTransition,
    ) -> Loan:
        _apply(row, transition.loan)
        await db.flush()
        await SqlAuditSink(db).emit(transition.event)
        logger.info("Loan %s: %s", row.id, transition.event.action)
        return row

    # ── Request ─────────────────────────────────────────────────────

    @staticmethod
    async def create_loan(
        db: AsyncSession,
        data: LoanCreate,
        employee_id: uuid.UUID,
        actor: ActorRef = SYSTEM_ACTOR,
    ) -> Loan:
        """File a loan request for *employee_id*; it starts ``pending``."""
        employee = await EmployeeService.resolve_ref(db, employee_id)
        if employee.status == EmployeeStatus.inactive:
            raise InvalidLoanOperation(
                f"Employee {employee.employee_code} is inactive and cannot take a loan.",
            )

        transition = LoanLifecycle.create(
            employee_id=employee.id,
            loan_type=data.loan_type,
            principal=data.principal,
            interest_rate=data.interest_rate,
            tenure=data.tenure,
            actor=actor,
            start_date=data.start_date,
            reason=data.reason,
        )
        loan = transition.loan
        row = Loan(
            employee_id=loan.employee_id,
            loan_type=loan.loan_type,
            principal=loan.principal,
            interest_rate=loan.interest_rate,
            tenure=loan.tenure,
            reason=loan.reason,
        )
        _apply(row, loan)
        db.add(row)
        await db.flush()

        await SqlAuditSink(db).emit(
            transition.event.model_copy(update={"record_id": row.id}),
        )
        await db.refresh(row, attribute_names=["employee"])
        logger.info(
            "Loan %s requested for %s: %s over %d months",
            row.id, employee.employee_code, loan.principal, loan.tenure,
        )
        return row

    # ── Decisions ───────────────────────────────────────────────────

    @staticmethod
    def _ensure_independent(row: Loan, approver: ActorRef) -> None:
        if approver.id is not None and approver.id == row.employee_id:
            raise ForbiddenException(detail="You cannot decide on your own loan request.")

    @staticmethod
    async def approve_loan(
        db: AsyncSession,
        loan_id: uuid.UUID,
        approver: ActorRef,
        remarks: Optional[str] = None,
    ) -> Loan:
        row = await LoanService.get_loan(db, loan_id, for_update=True)
        LoanService._ensure_independent(row, approver)
        transition = LoanLifecycle.approve(
            LoanRecord.model_validate(row), approver, remarks=remarks,
        )
        return await LoanService._commit_transition(db, row, transition)

    @staticmethod
    async def reject_loan(
        db: AsyncSession,
        loan_id: uuid.UUID,
        approver: ActorRef,
        remarks: Optional[str] = None,
    ) -> Loan:
        row = await LoanService.get_loan(db, loan_id, for_update=True)
        LoanService._ensure_independent(row, approver)
        transition = LoanLifecycle.reject(
            LoanRecord.model_validate(row), approver, remarks=remarks,
        )
        return await LoanService._commit_transition(db, row, transition)

    # ── Disbursement / repayment ────────────────────────────────────

    @staticmethod
    async def activate_loan(
        db: AsyncSession,
        loan_id: uuid.UUID,
        actor: ActorRef = SYSTEM_ACTOR,
        start_date: Optional[date] = None,
    ) -> Loan:
        row = await LoanService.get_loan(db, loan_id, for_update=True)
        transition = LoanLifecycle.activate(
            LoanRecord.model_validate(row), actor, start_date=start_date,
        )
        return await LoanService._commit_transition(db, row, transition)

    @staticmethod
    async def apply_payment(
        db: AsyncSession,
        loan_id: uuid.UUID,
        actor: ActorRef = SYSTEM_ACTOR,
        amount: Optional[Decimal] = None,
    ) -> Loan:
        row = await LoanService.get_loan(db, loan_id, for_update=True)
        transition = LoanLifecycle.apply_payment(
            LoanRecord.model_validate(row), actor, amount=amount,
        )
        return await LoanService._commit_transition(db, row, transition)

    @staticmethod
    async def delete_loan(
        db: AsyncSession,
        loan_id: uuid.UUID,
        actor: ActorRef = SYSTEM_ACTOR,
    ) -> None:
        row = await LoanService.get_loan(db, loan_id, for_update=True)
        event = LoanLifecycle.deleted(LoanRecord.model_validate(row), actor)
        await db.delete(row)
        await db.flush()
        await SqlAuditSink(db).emit(event)

    # ── Schedules ───────────────────────────────────────────────────

    @staticmethod
    def quote(
        principal: Any,
        interest_rate: Any,
        tenure: int,
        start_date: Optional[date] = None,
    ) -> ScheduleOut:
        """Repayment schedule for hypothetical terms; nothing is stored."""
        return _schedule_out(
            LoanAmortizer.compute_schedule(principal, interest_rate, tenure, start_date=start_date),
        )

    @staticmethod
    async def get_schedule(db: AsyncSession, loan_id: uuid.UUID) -> ScheduleOut:
        """Stored schedule of an activated loan, or a projection otherwise."""
        row = await LoanService.get_loan(db, loan_id)
        loan = LoanRecord.model_validate(row)
        if loan.schedule:
            return _schedule_out(
                AmortizationSchedule(emi_amount=loan.emi_amount, entries=loan.schedule),
            )
        return LoanService.quote(
            loan.principal, loan.interest_rate, loan.tenure, start_date=loan.start_date,
        )

    # ── Listings ────────────────────────────────────────────────────

    @staticmethod
    async def list_loans(
        db: AsyncSession,
        status: Optional[LoanStatus] = None,
        employee_id: Optional[uuid.UUID] = None,
        page: int = 1,
        page_size: int = 50,
    ) -> tuple[list[Loan], int]:
        stmt = select(Loan)
        count_stmt = select(func.count()).select_from(Loan)

        if status:
            stmt = stmt.where(Loan.status == status)
            count_stmt = count_stmt.where(Loan.status == status)
        if employee_id:
            stmt = stmt.where(Loan.employee_id == employee_id)
            count_stmt = count_stmt.where(Loan.employee_id == employee_id)

        total = (await db.execute(count_stmt)).scalar() or 0

        stmt = (
            stmt.order_by(Loan.created_at.desc())
            .offset((page - 1) * page_size)
            .limit(page_size)
        )
        result = await db.execute(stmt)
        return list(result.scalars().all()), total

    @staticmethod
    async def my_loans(db: AsyncSession, employee_id: uuid.UUID) -> list[Loan]:
        result = await db.execute(
            select(Loan)
            .where(Loan.employee_id == employee_id)
            .order_by(Loan.created_at.desc())
        )
        return list(result.scalars().all())

    @staticmethod
    async def get_summary(db: AsyncSession) -> LoanSummaryOut:
        """Portfolio totals. Disbursed and recovered cover active and completed loans."""
        result = await db.execute(
            select(
                Loan.status,
                func.count(Loan.id),
                func.sum(Loan.principal),
                func.sum(Loan.paid_amount),
                func.sum(Loan.remaining_amount),
                func.sum(Loan.interest_paid),
            ).group_by(Loan.status)
        )
        summary = LoanSummaryOut()
        disbursed = recovered = outstanding = interest = ZERO
        for status, count, principal, paid, remaining, interest_paid in result.all():
            status = LoanStatus(status)
            summary.by_status[status.value] = count
            summary.total_loans += count
            if status in (LoanStatus.active, LoanStatus.completed):
                disbursed += to_decimal(principal)
                recovered += to_decimal(paid)
                interest += to_decimal(interest_paid)
            if status == LoanStatus.active:
                outstanding += to_decimal(remaining)
        summary.active_count = summary.by_status.get(LoanStatus.active.value, 0)
        summary.completed_count = summary.by_status.get(LoanStatus.completed.value, 0)
        summary.pending_count = summary.by_status.get(LoanStatus.pending.value, 0)
        summary.total_disbursed = normalize(disbursed)
        summary.total_recovered = normalize(recovered)
        summary.total_interest_collected = normalize(interest)
        summary.outstanding = normalize(outstanding)
        return summary
