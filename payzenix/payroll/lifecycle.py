"""Payroll record lifecycle: ``pending → processed → paid``.

No backward transitions. Once a record leaves ``pending`` its figures are
frozen; only ``status``, ``processed_at`` and ``payment_date`` change after
that. Every transition returns the new record together with the audit event
describing it.
"""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from typing import Mapping, NamedTuple, Optional

from payzenix.common.audit import ActorRef, AuditEvent
from payzenix.common.constants import AuditModule, AuditType, PayrollStatus
from payzenix.common.exceptions import (
    InvalidPayrollComputation,
    InvalidPayrollTransition,
    PayrollLocked,
)
from payzenix.common.money import amounts_to_json, normalize
from payzenix.payroll.calculator import PayrollCalculator, PayrollRecord

ALLOWED_TRANSITIONS: dict[PayrollStatus, frozenset[PayrollStatus]] = {
    PayrollStatus.pending: frozenset({PayrollStatus.processed}),
    PayrollStatus.processed: frozenset({PayrollStatus.paid}),
    PayrollStatus.paid: frozenset(),
}

ENTITY_TYPE = "payroll_record"


class PayrollTransition(NamedTuple):
    record: PayrollRecord
    event: AuditEvent


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _period_label(record: PayrollRecord) -> str:
    return f"{record.month:02d}/{record.year}"


class PayrollRecordLifecycle:
    """State machine over :class:`PayrollRecord`."""

    @staticmethod
    def can_transition(current: PayrollStatus, target: PayrollStatus) -> bool:
        return target in ALLOWED_TRANSITIONS[current]

    @staticmethod
    def ensure_editable(record: PayrollRecord) -> None:
        if record.status != PayrollStatus.pending:
            raise PayrollLocked(
                f"Payroll record for {_period_label(record)} is "
                f"{record.status.value}; figures can no longer be edited.",
            )

    @staticmethod
    def ensure_deletable(record: PayrollRecord) -> None:
        if record.status != PayrollStatus.pending:
            raise PayrollLocked(
                f"Payroll record for {_period_label(record)} is "
                f"{record.status.value} and cannot be deleted.",
            )

    @staticmethod
    def _transition(
        record: PayrollRecord,
        target: PayrollStatus,
    ) -> None:
        if not PayrollRecordLifecycle.can_transition(record.status, target):
            raise InvalidPayrollTransition(
                f"Cannot move payroll record from {record.status.value} "
                f"to {target.value}.",
                errors={"status": [f"Allowed from {record.status.value}: "
                                   f"{sorted(s.value for s in ALLOWED_TRANSITIONS[record.status])}"]},
            )

    # ── Creation / recomputation ───────────────────────────────────

    @staticmethod
    def computed(
        record: PayrollRecord,
        actor: ActorRef,
        *,
        recomputed: bool = False,
        now: Optional[datetime] = None,
    ) -> PayrollTransition:
        """Audit event for a freshly computed (or recomputed) pending record."""
        event = AuditEvent(
            action="Payroll Recomputed" if recomputed else "Payroll Created",
            module=AuditModule.payroll,
            type=AuditType.update if recomputed else AuditType.create,
            actor=actor,
            record_id=record.id,
            entity_type=ENTITY_TYPE,
            from_status=PayrollStatus.pending.value if recomputed else None,
            to_status=PayrollStatus.pending.value,
            details=(
                f"{'Recomputed' if recomputed else 'Computed'} payroll for "
                f"{_period_label(record)}: net {record.net_salary}"
            ),
            changes={
                "gross_salary": str(record.gross_salary),
                "net_salary": str(record.net_salary),
            },
            timestamp=now or _now(),
        )
        return PayrollTransition(record, event)

    # ── Transitions ────────────────────────────────────────────────

    @staticmethod
    def finalize(
        record: PayrollRecord,
        actor: ActorRef,
        *,
        now: Optional[datetime] = None,
    ) -> PayrollTransition:
        """``pending → processed``; locks the figures."""
        PayrollRecordLifecycle._transition(record, PayrollStatus.processed)
        ts = now or _now()
        updated = record.model_copy(update={
            "status": PayrollStatus.processed,
            "processed_at": ts,
        })
        event = AuditEvent(
            action="Payroll Processed",
            module=AuditModule.payroll,
            type=AuditType.process,
            actor=actor,
            record_id=record.id,
            entity_type=ENTITY_TYPE,
            from_status=record.status.value,
            to_status=PayrollStatus.processed.value,
            details=f"Processed payroll for {_period_label(record)}: net {record.net_salary}",
            timestamp=ts,
        )
        return PayrollTransition(updated, event)

    @staticmethod
    def mark_paid(
        record: PayrollRecord,
        actor: ActorRef,
        *,
        payment_date: Optional[datetime] = None,
        now: Optional[datetime] = None,
    ) -> PayrollTransition:
        """``processed → paid``; payment date defaults to the transition time."""
        PayrollRecordLifecycle._transition(record, PayrollStatus.paid)
        ts = now or _now()
        paid_on = payment_date or ts
        updated = record.model_copy(update={
            "status": PayrollStatus.paid,
            "payment_date": paid_on,
        })
        event = AuditEvent(
            action="Payroll Paid",
            module=AuditModule.payroll,
            type=AuditType.process,
            actor=actor,
            record_id=record.id,
            entity_type=ENTITY_TYPE,
            from_status=record.status.value,
            to_status=PayrollStatus.paid.value,
            details=f"Paid payroll for {_period_label(record)} on {paid_on.date().isoformat()}",
            changes={"payment_date": paid_on.isoformat()},
            timestamp=ts,
        )
        return PayrollTransition(updated, event)

    # ── Field edits ────────────────────────────────────────────────

    @staticmethod
    def update(
        record: PayrollRecord,
        actor: ActorRef,
        *,
        basic_salary: Optional[Decimal] = None,
        allowances: Optional[Mapping[str, Decimal]] = None,
        deductions: Optional[Mapping[str, Decimal]] = None,
        remarks: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> PayrollTransition:
        """Manual adjustment of a pending record; totals are recomputed."""
        PayrollRecordLifecycle.ensure_editable(record)

        new_basic = normalize(basic_salary) if basic_salary is not None else record.basic_salary
        new_allowances = (
            {k: normalize(v) for k, v in allowances.items()}
            if allowances is not None else dict(record.allowances)
        )
        new_deductions = (
            {k: normalize(v) for k, v in deductions.items()}
            if deductions is not None else dict(record.deductions)
        )
        errors: dict[str, list[str]] = {}
        if new_basic < 0:
            errors["basic_salary"] = ["Must be >= 0."]
        for field, amounts in (("allowances", new_allowances), ("deductions", new_deductions)):
            negative = sorted(code for code, value in amounts.items() if value < 0)
            if negative:
                errors[field] = [f"Negative amount for {code}." for code in negative]
        if errors:
            raise InvalidPayrollComputation(
                "Payroll amounts must not be negative: " + ", ".join(sorted(errors)) + ".",
                errors=errors,
            )

        totals = PayrollCalculator.compute_totals(new_basic, new_allowances, new_deductions)

        updated = record.model_copy(update={
            "basic_salary": new_basic,
            "allowances": new_allowances,
            "deductions": new_deductions,
            "gross_salary": totals.gross_salary,
            "total_deductions": totals.total_deductions,
            "net_salary": totals.net_salary,
            "remarks": remarks if remarks is not None else record.remarks,
        })

        changes: dict[str, object] = {}
        if basic_salary is not None:
            changes["basic_salary"] = str(new_basic)
        if allowances is not None:
            changes["allowances"] = amounts_to_json(new_allowances)
        if deductions is not None:
            changes["deductions"] = amounts_to_json(new_deductions)
        if remarks is not None:
            changes["remarks"] = remarks

        event = AuditEvent(
            action="Payroll Updated",
            module=AuditModule.payroll,
            type=AuditType.update,
            actor=actor,
            record_id=record.id,
            entity_type=ENTITY_TYPE,
            details=f"Updated payroll for {_period_label(record)}: net {totals.net_salary}",
            changes=changes,
            timestamp=now or _now(),
        )
        return PayrollTransition(updated, event)

    @staticmethod
    def deleted(
        record: PayrollRecord,
        actor: ActorRef,
        *,
        now: Optional[datetime] = None,
    ) -> AuditEvent:
        PayrollRecordLifecycle.ensure_deletable(record)
        return AuditEvent(
            action="Payroll Deleted",
            module=AuditModule.payroll,
            type=AuditType.delete,
            actor=actor,
            record_id=record.id,
            entity_type=ENTITY_TYPE,
            from_status=record.status.value,
            details=f"Deleted pending payroll for {_period_label(record)}",
            timestamp=now or _now(),
        )
