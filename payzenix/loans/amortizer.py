"""Loan amortizer — EMI computation and repayment schedules.

Zero-interest loans (the common case for salary advances) repay
``ceil(principal / tenure)`` each month with the last installment absorbing
the rounding remainder. Interest-bearing loans use the reducing-balance EMI
``P·r·(1+r)^n / ((1+r)^n − 1)`` with ``r`` the monthly rate; each installment
pays the interest due on the outstanding balance first, and the final one
clears whatever principal is left.

All amounts are whole currency units (round half up).
"""

from __future__ import annotations

import calendar
from datetime import date
from decimal import Decimal
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict

from payzenix.common.constants import MAX_LOAN_INTEREST_RATE, MAX_LOAN_TENURE_MONTHS
from payzenix.common.exceptions import InvalidLoanParameters
from payzenix.common.money import ZERO, ceil_whole, round_half_up, to_decimal


class ScheduleEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    installment: int
    due_date: Optional[date] = None
    emi: Decimal
    principal: Decimal
    interest: Decimal
    balance: Decimal


class AmortizationSchedule(BaseModel):
    model_config = ConfigDict(frozen=True)

    emi_amount: Decimal
    entries: List[ScheduleEntry]

    @property
    def total_interest(self) -> Decimal:
        return sum((e.interest for e in self.entries), ZERO)

    @property
    def total_payable(self) -> Decimal:
        return sum((e.emi for e in self.entries), ZERO)

    def to_json(self) -> list[dict[str, Any]]:
        """Serialise entries for a JSON column (decimals as strings)."""
        return [e.model_dump(mode="json") for e in self.entries]


def add_months(start: date, months: int) -> date:
    """Same day *months* later, clamped to the end of shorter months."""
    month_index = start.month - 1 + months
    year = start.year + month_index // 12
    month = month_index % 12 + 1
    day = min(start.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def monthly_rate(annual_rate_percent: Decimal) -> Decimal:
    return to_decimal(annual_rate_percent) / Decimal(12) / Decimal(100)


class LoanAmortizer:
    """Stateless EMI and schedule computation."""

    @staticmethod
    def validate(
        principal: Any,
        annual_rate_percent: Any,
        tenure_months: int,
    ) -> None:
        errors: dict[str, list[str]] = {}
        if to_decimal(principal) <= 0:
            errors["principal"] = ["Must be greater than 0."]
        if not isinstance(tenure_months, int) or not 1 <= tenure_months <= MAX_LOAN_TENURE_MONTHS:
            errors["tenure"] = [f"Must be between 1 and {MAX_LOAN_TENURE_MONTHS} months."]
        rate = to_decimal(annual_rate_percent)
        if rate < 0 or rate > MAX_LOAN_INTEREST_RATE:
            errors["interest_rate"] = [f"Must be between 0 and {MAX_LOAN_INTEREST_RATE}."]
        if errors:
            raise InvalidLoanParameters(
                "Invalid loan parameters: " + ", ".join(sorted(errors)) + ".",
                errors=errors,
            )

    @staticmethod
    def emi_amount(
        principal: Any,
        annual_rate_percent: Any,
        tenure_months: int,
    ) -> Decimal:
        LoanAmortizer.validate(principal, annual_rate_percent, tenure_months)
        p = to_decimal(principal)
        rate = to_decimal(annual_rate_percent)
        if rate == 0:
            return ceil_whole(p / tenure_months)
        r = monthly_rate(rate)
        factor = (1 + r) ** tenure_months
        return round_half_up(p * r * factor / (factor - 1))

    @staticmethod
    def interest_due(balance: Any, annual_rate_percent: Any) -> Decimal:
        """Interest accrued on *balance* over one month."""
        rate = to_decimal(annual_rate_percent)
        if rate == 0:
            return ZERO
        return round_half_up(to_decimal(balance) * monthly_rate(rate))

    @staticmethod
    def compute_schedule(
        principal: Any,
        annual_rate_percent: Any,
        tenure_months: int,
        start_date: Optional[date] = None,
    ) -> AmortizationSchedule:
        """Full repayment schedule; the balance after the last entry is 0.

        With ceiling rounding a short loan can be repaid before the tenure
        runs out (e.g. 5 over 4 months → 2, 2, 1); the schedule then stops at
        the installment that clears the balance.
        """
        emi = LoanAmortizer.emi_amount(principal, annual_rate_percent, tenure_months)
        balance = to_decimal(principal)
        entries: list[ScheduleEntry] = []

        for n in range(1, tenure_months + 1):
            interest = LoanAmortizer.interest_due(balance, annual_rate_percent)
            principal_part = emi - interest
            if n == tenure_months or principal_part >= balance:
                principal_part = balance
            payment = principal_part + interest
            balance -= principal_part
            entries.append(ScheduleEntry(
                installment=n,
                due_date=add_months(start_date, n) if start_date else None,
                emi=payment,
                principal=principal_part,
                interest=interest,
                balance=balance,
            ))
            if balance == 0:
                break

        return AmortizationSchedule(emi_amount=emi, entries=entries)

    @staticmethod
    def validate_schedule(schedule: AmortizationSchedule, principal: Any) -> bool:
        """True when principal parts sum to *principal* and the loan closes at 0."""
        if not schedule.entries:
            return False
        repaid = sum((e.principal for e in schedule.entries), ZERO)
        if repaid != to_decimal(principal) or schedule.entries[-1].balance != 0:
            return False
        running = to_decimal(principal)
        for entry in schedule.entries:
            running -= entry.principal
            if entry.principal < 0 or entry.balance != running:
                return False
            if entry.emi != entry.principal + entry.interest:
                return False
        return True

    @staticmethod
    def remaining_installments(remaining: Any, emi: Any) -> int:
        """Number of EMIs still to go for a remaining principal."""
        emi_d = to_decimal(emi)
        if emi_d <= 0:
            return 0
        return int(ceil_whole(to_decimal(remaining) / emi_d))
