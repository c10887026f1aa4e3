"""Payroll calculator — turns a base salary and a component set into a
gross/net payroll record for one (employee, month, year).

Algorithm:
  1. Snapshot ``basic_salary``: the set's basic-pay component resolved
     against the employee's base salary, or the base salary itself when the
     set has no basic component.
  2. Resolve every other active earning and every active deduction against
     ``basic_salary``.
  3. ``gross = basic + Σ earnings``; ``net = gross − Σ deductions``.
  4. A negative net is an error, never clamped.

The calculator is a pure function of its inputs. Recomputing a period is
only allowed while the stored record is still ``pending``.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field

from payzenix.common.constants import (
    MAX_PAYROLL_YEAR,
    MIN_PAYROLL_YEAR,
    EmployeeStatus,
    PayrollStatus,
)
from payzenix.common.exceptions import InvalidPayrollComputation, PayrollLocked
from payzenix.common.money import normalize, to_decimal, total
from payzenix.components.engine import SalaryComponentSet
from payzenix.employees.schemas import EmployeeRef


class PayrollRecord(BaseModel):
    """Engine view of a payroll record (one employee, one period)."""

    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: Optional[uuid.UUID] = None
    employee_id: uuid.UUID
    month: int
    year: int
    basic_salary: Decimal
    allowances: dict[str, Decimal] = Field(default_factory=dict)
    deductions: dict[str, Decimal] = Field(default_factory=dict)
    gross_salary: Decimal
    total_deductions: Decimal
    net_salary: Decimal
    status: PayrollStatus = PayrollStatus.pending
    payment_date: Optional[datetime] = None
    processed_at: Optional[datetime] = None
    remarks: Optional[str] = None

    @property
    def period(self) -> tuple[uuid.UUID, int, int]:
        return (self.employee_id, self.month, self.year)

    @property
    def is_locked(self) -> bool:
        return self.status != PayrollStatus.pending


class PayrollTotals(BaseModel):
    model_config = ConfigDict(frozen=True)

    gross_salary: Decimal
    total_deductions: Decimal
    net_salary: Decimal


def validate_period(month: int, year: int) -> None:
    if not 1 <= month <= 12:
        raise InvalidPayrollComputation(
            f"Month must be between 1 and 12, got {month}.",
            errors={"month": ["Must be between 1 and 12."]},
        )
    if not MIN_PAYROLL_YEAR <= year <= MAX_PAYROLL_YEAR:
        raise InvalidPayrollComputation(
            f"Year must be between {MIN_PAYROLL_YEAR} and {MAX_PAYROLL_YEAR}, got {year}.",
            errors={"year": ["Out of range."]},
        )


class PayrollCalculator:
    """Stateless payroll computation."""

    @staticmethod
    def compute_totals(
        basic_salary: Decimal,
        allowances: Mapping[str, Decimal],
        deductions: Mapping[str, Decimal],
    ) -> PayrollTotals:
        """Gross, total deductions and net for an itemised breakdown."""
        gross = to_decimal(basic_salary) + total(allowances)
        total_deductions = total(deductions)
        net = gross - total_deductions
        if net < 0:
            raise InvalidPayrollComputation(
                f"Deductions ({normalize(total_deductions)}) exceed gross pay "
                f"({normalize(gross)}).",
                errors={"deductions": ["Total deductions exceed gross salary."]},
            )
        return PayrollTotals(
            gross_salary=normalize(gross),
            total_deductions=normalize(total_deductions),
            net_salary=normalize(net),
        )

    @staticmethod
    def resolve_breakdown(
        base_salary: Decimal,
        component_set: SalaryComponentSet,
    ) -> tuple[Decimal, dict[str, Decimal], dict[str, Decimal]]:
        """Return ``(basic_salary, allowances, deductions)`` for a base."""
        base = to_decimal(base_salary)
        if base < 0:
            raise InvalidPayrollComputation(
                f"Base salary must not be negative, got {base}.",
                errors={"base_salary": ["Must be >= 0."]},
            )
        basic_component = component_set.basic_component
        if basic_component is not None:
            basic_salary = component_set.resolve(basic_component, base)
        else:
            basic_salary = base
        basic_salary = normalize(basic_salary)

        allowances = {
            c.code: normalize(component_set.resolve(c, basic_salary))
            for c in component_set.earnings()
        }
        deductions = {
            c.code: normalize(component_set.resolve(c, basic_salary))
            for c in component_set.deductions()
        }
        return basic_salary, allowances, deductions

    @staticmethod
    def compute_for_period(
        employee: EmployeeRef,
        component_set: SalaryComponentSet,
        month: int,
        year: int,
        existing: Optional[PayrollRecord] = None,
    ) -> PayrollRecord:
        """Compute the ``pending`` payroll record for one employee and period.

        If *existing* (the stored record for the same period) is given, the
        result reuses its id and replaces its figures; a processed or paid
        record raises :class:`PayrollLocked` instead.
        """
        validate_period(month, year)

        if existing is not None:
            if existing.period != (employee.id, month, year):
                raise InvalidPayrollComputation(
                    "Existing record belongs to a different employee or period.",
                )
            if existing.is_locked:
                raise PayrollLocked(
                    f"Payroll for {month:02d}/{year} is already "
                    f"{existing.status.value} and cannot be recomputed.",
                )

        if employee.status == EmployeeStatus.inactive:
            raise InvalidPayrollComputation(
                f"Employee {employee.employee_code} is inactive.",
                errors={"employee_id": ["Employee is inactive."]},
            )

        basic_salary, allowances, deductions = PayrollCalculator.resolve_breakdown(
            employee.base_salary, component_set,
        )
        totals = PayrollCalculator.compute_totals(basic_salary, allowances, deductions)

        return PayrollRecord(
            id=existing.id if existing is not None else None,
            employee_id=employee.id,
            month=month,
            year=year,
            basic_salary=basic_salary,
            allowances=allowances,
            deductions=deductions,
            gross_salary=totals.gross_salary,
            total_deductions=totals.total_deductions,
            net_salary=totals.net_salary,
            status=PayrollStatus.pending,
            remarks=existing.remarks if existing is not None else None,
        )

    @staticmethod
    def taxable_earnings(
        basic_salary: Decimal,
        allowances: Mapping[str, Decimal],
        component_set: SalaryComponentSet,
    ) -> Decimal:
        """Sum of earnings whose component is flagged taxable."""
        basic_component = component_set.basic_component
        amount = to_decimal(basic_salary) if (
            basic_component is None or basic_component.taxable
        ) else Decimal("0")
        for code, value in allowances.items():
            component = component_set.get(code)
            if component is None or component.taxable:
                amount += to_decimal(value)
        return normalize(amount)
