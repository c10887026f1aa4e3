"""Loan lifecycle.

    pending ──approve──▶ approved ──activate──▶ active ──(balance 0)──▶ completed
       │
       └────reject────▶ rejected

``paid_amount`` and ``remaining_amount`` track principal only, so
``paid_amount + remaining_amount == principal`` holds after every step.
Interest collected on interest-bearing loans accumulates in
``interest_paid``.
"""

from __future__ import annotations

import uuid
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any, List, NamedTuple, Optional

from pydantic import BaseModel, ConfigDict, Field

from payzenix.common.audit import ActorRef, AuditEvent
from payzenix.common.constants import AuditModule, AuditType, LoanStatus, LoanType
from payzenix.common.exceptions import (
    InvalidLoanOperation,
    LoanAlreadyDecided,
)
from payzenix.common.money import ZERO, to_decimal
from payzenix.loans.amortizer import LoanAmortizer, ScheduleEntry

ENTITY_TYPE = "loan"

DECIDED_STATUSES = frozenset({
    LoanStatus.approved,
    LoanStatus.rejected,
    LoanStatus.active,
    LoanStatus.completed,
})


def repayment_progress(paid_amount: Any, principal: Any) -> Decimal:
    """Share of the principal repaid, in percent with two decimals."""
    principal = to_decimal(principal)
    if principal <= 0:
        return ZERO
    return (to_decimal(paid_amount) / principal * 100).quantize(Decimal("0.01"))


class LoanRecord(BaseModel):
    """Engine view of a loan."""

    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: Optional[uuid.UUID] = None
    employee_id: uuid.UUID
    loan_type: LoanType
    principal: Decimal
    interest_rate: Decimal = Decimal("0")
    tenure: int
    emi_amount: Decimal
    start_date: date
    status: LoanStatus = LoanStatus.pending
    paid_amount: Decimal = Decimal("0")
    remaining_amount: Decimal
    interest_paid: Decimal = Decimal("0")
    installments_paid: int = 0
    approved_by: Optional[uuid.UUID] = None
    approved_date: Optional[datetime] = None
    reason: Optional[str] = None
    remarks: Optional[str] = None
    schedule: List[ScheduleEntry] = Field(default_factory=list)

    @property
    def progress_percent(self) -> Decimal:
        return repayment_progress(self.paid_amount, self.principal)

    @property
    def remaining_installments(self) -> int:
        return LoanAmortizer.remaining_installments(self.remaining_amount, self.emi_amount)


class LoanTransition(NamedTuple):
    loan: LoanRecord
    event: AuditEvent


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _event(
    loan: LoanRecord,
    actor: ActorRef,
    *,
    action: str,
    audit_type: AuditType,
    from_status: Optional[LoanStatus],
    details: str,
    changes: Optional[dict[str, Any]] = None,
    timestamp: datetime,
) -> AuditEvent:
    return AuditEvent(
        action=action,
        module=AuditModule.loans,
        type=audit_type,
        actor=actor,
        record_id=loan.id,
        entity_type=ENTITY_TYPE,
        from_status=from_status.value if from_status else None,
        to_status=loan.status.value,
        details=details,
        changes=changes or {},
        timestamp=timestamp,
    )


class LoanLifecycle:
    """State machine over :class:`LoanRecord`."""

    @staticmethod
    def create(
        *,
        employee_id: uuid.UUID,
        loan_type: LoanType,
        principal: Any,
        interest_rate: Any,
        tenure: int,
        actor: ActorRef,
        start_date: Optional[date] = None,
        reason: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> LoanTransition:
        """Validate a loan request and build it in ``pending``."""
        ts = now or _now()
        emi = LoanAmortizer.emi_amount(principal, interest_rate, tenure)
        amount = to_decimal(principal)
        loan = LoanRecord(
            employee_id=employee_id,
            loan_type=loan_type,
            principal=amount,
            interest_rate=to_decimal(interest_rate),
            tenure=tenure,
            emi_amount=emi,
            start_date=start_date or ts.date(),
            status=LoanStatus.pending,
            paid_amount=ZERO,
            remaining_amount=amount,
            reason=reason,
        )
        event = _event(
            loan, actor,
            action="Loan Created",
            audit_type=AuditType.create,
            from_status=None,
            details=f"Requested {loan_type.value} loan of {amount} over {tenure} months (EMI {emi})",
            changes={"principal": str(amount), "emi_amount": str(emi)},
            timestamp=ts,
        )
        return LoanTransition(loan, event)

    @staticmethod
    def _ensure_undecided(loan: LoanRecord) -> None:
        if loan.status in DECIDED_STATUSES:
            raise LoanAlreadyDecided(
                f"Loan has already been decided (status: {loan.status.value}).",
            )

    @staticmethod
    def approve(
        loan: LoanRecord,
        approver: Optional[ActorRef],
        *,
        remarks: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> LoanTransition:
        LoanLifecycle._ensure_undecided(loan)
        if approver is None or approver.id is None:
            raise InvalidLoanOperation(
                "Approving a loan requires an authorised approver.",
                errors={"approved_by": ["Required."]},
            )
        ts = now or _now()
        updated = loan.model_copy(update={
            "status": LoanStatus.approved,
            "approved_by": approver.id,
            "approved_date": ts,
            "remarks": remarks if remarks is not None else loan.remarks,
        })
        event = _event(
            updated, approver,
            action="Loan Approved",
            audit_type=AuditType.approval,
            from_status=loan.status,
            details=f"Approved loan of {loan.principal}",
            changes={"approved_by": str(approver.id)},
            timestamp=ts,
        )
        return LoanTransition(updated, event)

    @staticmethod
    def reject(
        loan: LoanRecord,
        approver: Optional[ActorRef],
        *,
        remarks: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> LoanTransition:
        LoanLifecycle._ensure_undecided(loan)
        if approver is None or approver.id is None:
            raise InvalidLoanOperation(
                "Rejecting a loan requires an authorised approver.",
                errors={"approved_by": ["Required."]},
            )
        ts = now or _now()
        updated = loan.model_copy(update={
            "status": LoanStatus.rejected,
            "remarks": remarks if remarks is not None else loan.remarks,
        })
        event = _event(
            updated, approver,
            action="Loan Rejected",
            audit_type=AuditType.approval,
            from_status=loan.status,
            details=f"Rejected loan of {loan.principal}",
            timestamp=ts,
        )
        return LoanTransition(updated, event)

    @staticmethod
    def activate(
        loan: LoanRecord,
        actor: ActorRef,
        *,
        start_date: Optional[date] = None,
        now: Optional[datetime] = None,
    ) -> LoanTransition:
        """``approved → active``: reset the balance and attach the schedule."""
        if loan.status != LoanStatus.approved:
            raise InvalidLoanOperation(
                f"Only approved loans can be activated (status: {loan.status.value}).",
            )
        ts = now or _now()
        first_date = start_date or loan.start_date
        schedule = LoanAmortizer.compute_schedule(
            loan.principal, loan.interest_rate, loan.tenure, start_date=first_date,
        )
        updated = loan.model_copy(update={
            "status": LoanStatus.active,
            "start_date": first_date,
            "emi_amount": schedule.emi_amount,
            "paid_amount": ZERO,
            "remaining_amount": loan.principal,
            "interest_paid": ZERO,
            "installments_paid": 0,
            "schedule": list(schedule.entries),
        })
        event = _event(
            updated, actor,
            action="Loan Activated",
            audit_type=AuditType.process,
            from_status=loan.status,
            details=(
                f"Activated loan: {len(schedule.entries)} installments of "
                f"{schedule.emi_amount} from {first_date.isoformat()}"
            ),
            changes={"installments": len(schedule.entries)},
            timestamp=ts,
        )
        return LoanTransition(updated, event)

    @staticmethod
    def next_installment(loan: LoanRecord) -> tuple[Decimal, Decimal]:
        """``(principal, interest)`` of the next regular EMI."""
        interest = LoanAmortizer.interest_due(loan.remaining_amount, loan.interest_rate)
        principal = min(loan.emi_amount - interest, loan.remaining_amount)
        is_last = loan.installments_paid + 1 >= loan.tenure
        if is_last or principal <= 0:
            principal = loan.remaining_amount
        return principal, interest

    @staticmethod
    def apply_payment(
        loan: LoanRecord,
        actor: ActorRef,
        *,
        amount: Optional[Any] = None,
        now: Optional[datetime] = None,
    ) -> LoanTransition:
        """Apply one EMI deduction, or an explicit principal prepayment.

        Completes the loan automatically when the remaining balance hits 0.
        """
        if loan.status != LoanStatus.active:
            raise InvalidLoanOperation(
                f"Payments can only be applied to active loans (status: {loan.status.value}).",
            )

        if amount is None:
            principal_part, interest = LoanLifecycle.next_installment(loan)
        else:
            principal_part = to_decimal(amount)
            # Prepayments reduce principal only; interest is charged with the EMI.
            interest = ZERO
            if principal_part <= 0:
                raise InvalidLoanOperation(
                    "Payment amount must be greater than 0.",
                    errors={"amount": ["Must be greater than 0."]},
                )
            if principal_part > loan.remaining_amount:
                raise InvalidLoanOperation(
                    f"Payment of {principal_part} exceeds the remaining balance "
                    f"of {loan.remaining_amount}.",
                    errors={"amount": [f"Must not exceed {loan.remaining_amount}."]},
                )

        ts = now or _now()
        remaining = loan.remaining_amount - principal_part
        updated = loan.model_copy(update={
            "paid_amount": loan.paid_amount + principal_part,
            "remaining_amount": remaining,
            "interest_paid": loan.interest_paid + interest,
            "installments_paid": loan.installments_paid + (1 if amount is None else 0),
            "status": LoanStatus.completed if remaining == 0 else LoanStatus.active,
        })
        event = _event(
            updated, actor,
            action="Loan Completed" if remaining == 0 else "Loan EMI Deducted",
            audit_type=AuditType.process,
            from_status=loan.status,
            details=(
                f"Applied payment of {principal_part + interest} "
                f"(principal {principal_part}, interest {interest}); "
                f"remaining {remaining}"
            ),
            changes={
                "paid_amount": str(updated.paid_amount),
                "remaining_amount": str(remaining),
            },
            timestamp=ts,
        )
        return LoanTransition(updated, event)

    @staticmethod
    def ensure_deletable(loan: LoanRecord) -> None:
        if loan.status not in (LoanStatus.pending, LoanStatus.rejected):
            raise InvalidLoanOperation(
                f"Only pending or rejected loans can be deleted (status: {loan.status.value}).",
            )

    @staticmethod
    def deleted(
        loan: LoanRecord,
        actor: ActorRef,
        *,
        now: Optional[datetime] = None,
    ) -> AuditEvent:
        LoanLifecycle.ensure_deletable(loan)
        return AuditEvent(
            action="Loan Deleted",
            module=AuditModule.loans,
            type=AuditType.delete,
            actor=actor,
            record_id=loan.id,
            entity_type=ENTITY_TYPE,
            from_status=loan.status.value,
            details=f"Deleted {loan.status.value} loan of {loan.principal}",
            timestamp=now or _now(),
        )
