"""Payroll calculator tests — breakdowns, rounding, the negative-net rule,
period validation and recomputation of existing records.
"""

from __future__ import annotations

import uuid
from decimal import Decimal

import pytest

from payzenix.common.constants import (
    CalculationMethod,
    ComponentKind,
    EmployeeStatus,
    PayrollStatus,
)
from payzenix.common.exceptions import InvalidPayrollComputation, PayrollLocked
from payzenix.components.engine import SalaryComponentRule, SalaryComponentSet
from payzenix.employees.schemas import EmployeeRef
from payzenix.payroll.calculator import PayrollCalculator


# ── Helpers ─────────────────────────────────────────────────────────


def _employee(base="50000", status=EmployeeStatus.active) -> EmployeeRef:
    return EmployeeRef(
        id=uuid.uuid4(), employee_code="PZ-001", name="Asha Rao",
        base_salary=Decimal(base), status=status,
    )


def _earning(code, value, method=CalculationMethod.percent_of_base, **kw):
    return SalaryComponentRule(
        code=code, name=code, kind=ComponentKind.earning, method=method,
        value=Decimal(value), **kw,
    )


def _deduction(code, value, method=CalculationMethod.percent_of_base, **kw):
    return SalaryComponentRule(
        code=code, name=code, kind=ComponentKind.deduction, method=method,
        value=Decimal(value), **kw,
    )


STANDARD_SET = SalaryComponentSet([
    _earning("hra", "0.10"),
    _deduction("pf", "0.12"),
])


# ═════════════════════════════════════════════════════════════════════
# 1. BREAKDOWN
# ═════════════════════════════════════════════════════════════════════


def test_standard_breakdown():
    record = PayrollCalculator.compute_for_period(_employee(), STANDARD_SET, 3, 2025)

    assert record.basic_salary == Decimal("50000")
    assert record.allowances == {"hra": Decimal("5000")}
    assert record.deductions == {"pf": Decimal("6000")}
    assert record.gross_salary == Decimal("55000")
    assert record.total_deductions == Decimal("6000")
    assert record.net_salary == Decimal("49000")
    assert record.status == PayrollStatus.pending
    assert record.id is None


def test_totals_match_line_items():
    component_set = SalaryComponentSet([
        _earning("hra", "0.40"),
        _earning("conveyance", "1600", method=CalculationMethod.fixed),
        _deduction("pf", "0.12"),
        _deduction("esi", "0.0075"),
        _deduction("pt", "200", method=CalculationMethod.fixed),
    ])
    record = PayrollCalculator.compute_for_period(_employee("33333"), component_set, 1, 2025)

    assert record.gross_salary == record.basic_salary + sum(record.allowances.values())
    assert record.total_deductions == sum(record.deductions.values())
    assert record.net_salary == record.gross_salary - record.total_deductions
    # 33333 * 0.40 = 13333.2 ; 33333 * 0.0075 = 249.9975
    assert record.allowances["hra"] == Decimal("13333")
    assert record.deductions["esi"] == Decimal("250")


def test_basic_component_scales_base_and_is_not_double_counted():
    component_set = SalaryComponentSet([
        _earning("basic", "0.50", is_basic=True),
        _earning("hra", "0.40"),
        _deduction("pf", "0.12"),
    ])
    record = PayrollCalculator.compute_for_period(_employee("60000"), component_set, 6, 2025)

    assert record.basic_salary == Decimal("30000")
    assert "basic" not in record.allowances
    # earnings and deductions resolve against the basic, not the base
    assert record.allowances == {"hra": Decimal("12000")}
    assert record.deductions == {"pf": Decimal("3600")}
    assert record.gross_salary == Decimal("42000")


def test_fixed_basic_component():
    component_set = SalaryComponentSet([
        _earning("basic", "50000", method=CalculationMethod.fixed, is_basic=True),
        _earning("hra", "0.10"),
    ])
    record = PayrollCalculator.compute_for_period(_employee("1"), component_set, 6, 2025)
    assert record.basic_salary == Decimal("50000")
    assert record.gross_salary == Decimal("55000")


def test_inactive_components_are_skipped():
    component_set = SalaryComponentSet([
        _earning("hra", "0.10"),
        _earning("lta", "0.05", is_active=False),
        _deduction("pf", "0.12", is_active=False),
    ])
    record = PayrollCalculator.compute_for_period(_employee(), component_set, 2, 2025)
    assert record.allowances == {"hra": Decimal("5000")}
    assert record.deductions == {}
    assert record.net_salary == Decimal("55000")


def test_identical_inputs_give_identical_records():
    employee = _employee()
    first = PayrollCalculator.compute_for_period(employee, STANDARD_SET, 4, 2025)
    second = PayrollCalculator.compute_for_period(employee, STANDARD_SET, 4, 2025)
    assert first == second


def test_taxable_earnings_skip_non_taxable_components():
    component_set = SalaryComponentSet([
        _earning("hra", "0.10"),
        _earning("meal", "2200", method=CalculationMethod.fixed, taxable=False),
    ])
    basic, allowances, _ = PayrollCalculator.resolve_breakdown(Decimal("50000"), component_set)
    assert PayrollCalculator.taxable_earnings(basic, allowances, component_set) == Decimal("55000")


# ═════════════════════════════════════════════════════════════════════
# 2. REJECTED INPUTS
# ═════════════════════════════════════════════════════════════════════


def test_negative_net_is_an_error_not_clamped():
    component_set = SalaryComponentSet([
        _earning("hra", "0.10"),
        _deduction("loan", "5000", method=CalculationMethod.fixed),
    ])
    with pytest.raises(InvalidPayrollComputation) as exc:
        PayrollCalculator.compute_for_period(_employee("1000"), component_set, 1, 2025)
    assert "deductions" in exc.value.errors


def test_zero_net_is_allowed():
    totals = PayrollCalculator.compute_totals(
        Decimal("1000"), {}, {"advance": Decimal("1000")},
    )
    assert totals.net_salary == Decimal("0")


@pytest.mark.parametrize("month,year", [(0, 2025), (13, 2025), (6, 1999), (6, 2101)])
def test_invalid_period(month, year):
    with pytest.raises(InvalidPayrollComputation):
        PayrollCalculator.compute_for_period(_employee(), STANDARD_SET, month, year)


def test_inactive_employee_rejected():
    with pytest.raises(InvalidPayrollComputation):
        PayrollCalculator.compute_for_period(
            _employee(status=EmployeeStatus.inactive), STANDARD_SET, 1, 2025,
        )


def test_negative_base_salary_rejected():
    with pytest.raises(InvalidPayrollComputation):
        PayrollCalculator.resolve_breakdown(Decimal("-1"), STANDARD_SET)


# ═════════════════════════════════════════════════════════════════════
# 3. RECOMPUTATION
# ═════════════════════════════════════════════════════════════════════


def test_recompute_pending_keeps_id_and_remarks():
    employee = _employee()
    original = PayrollCalculator.compute_for_period(employee, STANDARD_SET, 5, 2025)
    stored = original.model_copy(update={"id": uuid.uuid4(), "remarks": "March arrears"})

    raised = employee.model_copy(update={"base_salary": Decimal("60000")})
    recomputed = PayrollCalculator.compute_for_period(
        raised, STANDARD_SET, 5, 2025, existing=stored,
    )
    assert recomputed.id == stored.id
    assert recomputed.remarks == "March arrears"
    assert recomputed.net_salary == Decimal("58800")


@pytest.mark.parametrize("status", [PayrollStatus.processed, PayrollStatus.paid])
def test_recompute_locked_record_raises(status):
    employee = _employee()
    stored = PayrollCalculator.compute_for_period(employee, STANDARD_SET, 5, 2025).model_copy(
        update={"id": uuid.uuid4(), "status": status},
    )
    with pytest.raises(PayrollLocked):
        PayrollCalculator.compute_for_period(employee, STANDARD_SET, 5, 2025, existing=stored)


def test_existing_record_for_other_period_rejected():
    employee = _employee()
    stored = PayrollCalculator.compute_for_period(employee, STANDARD_SET, 5, 2025)
    with pytest.raises(InvalidPayrollComputation):
        PayrollCalculator.compute_for_period(employee, STANDARD_SET, 6, 2025, existing=stored)
