"""Salary component set — the single authoritative resolution of earnings
and deductions against a base salary.

Every payroll computation, preview and seed goes through
:meth:`SalaryComponentSet.resolve`; there is no other place where a PF or
HRA percentage is applied.

Rules:
  - ``fixed`` components resolve to their configured amount unchanged.
  - ``percent_of_base`` components resolve to ``round_half_up(base * rate)``
    with ``rate`` a fraction in ``[0, 1]``.
  - Inactive components resolve to 0 and are skipped by the calculator, but
    stay in the set so historical records can still be labelled.
  - Validation happens when the set is built, never during computation.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Iterable, Iterator, Optional

from pydantic import BaseModel, ConfigDict

from payzenix.common.constants import CalculationMethod, ComponentKind
from payzenix.common.exceptions import InvalidComponentConfiguration
from payzenix.common.money import ZERO, round_half_up, to_decimal


class SalaryComponentRule(BaseModel):
    """Engine view of one configured salary component."""

    model_config = ConfigDict(from_attributes=True, frozen=True)

    code: str
    name: str
    kind: ComponentKind
    method: CalculationMethod
    value: Decimal
    taxable: bool = True
    is_active: bool = True
    is_basic: bool = False
    sort_order: int = 0

    @property
    def can_resolve_positive(self) -> bool:
        return self.is_active and self.value > 0


def validate_component(component: SalaryComponentRule) -> None:
    """Reject a single component whose rule can never be valid."""
    if not component.code or not component.code.strip():
        raise InvalidComponentConfiguration(
            "Component code must not be empty.",
            errors={"code": ["Required."]},
        )
    value = to_decimal(component.value)
    if component.method == CalculationMethod.percent_of_base:
        if value < 0 or value > 1:
            raise InvalidComponentConfiguration(
                f"Component '{component.code}': percentage rate {value} "
                "must be between 0 and 1.",
                errors={"value": ["Rate must be within [0, 1]."]},
            )
    elif value < 0:
        raise InvalidComponentConfiguration(
            f"Component '{component.code}': fixed amount {value} must not be negative.",
            errors={"value": ["Fixed amount must be >= 0."]},
        )
    if component.is_basic and component.kind != ComponentKind.earning:
        raise InvalidComponentConfiguration(
            f"Component '{component.code}' is marked as basic pay but is a deduction.",
            errors={"is_basic": ["Only an earning can be the basic pay component."]},
        )


class SalaryComponentSet:
    """Ordered, validated collection of salary components."""

    def __init__(self, components: Iterable[SalaryComponentRule]) -> None:
        ordered = sorted(components, key=lambda c: (c.sort_order, c.code))
        for component in ordered:
            validate_component(component)

        codes = [c.code for c in ordered]
        duplicates = sorted({code for code in codes if codes.count(code) > 1})
        if duplicates:
            raise InvalidComponentConfiguration(
                f"Duplicate component codes: {', '.join(duplicates)}.",
                errors={"code": duplicates},
            )

        basics = [c for c in ordered if c.is_active and c.is_basic]
        if len(basics) > 1:
            raise InvalidComponentConfiguration(
                "At most one active component may be marked as basic pay; "
                f"found {', '.join(c.code for c in basics)}.",
            )

        if not any(
            c.kind == ComponentKind.earning and c.can_resolve_positive
            for c in ordered
        ):
            raise InvalidComponentConfiguration(
                "At least one active earning component must resolve to a "
                "positive amount.",
            )

        self._components: tuple[SalaryComponentRule, ...] = tuple(ordered)

    # ── Accessors ──────────────────────────────────────────────────

    def __iter__(self) -> Iterator[SalaryComponentRule]:
        return iter(self._components)

    def __len__(self) -> int:
        return len(self._components)

    @property
    def components(self) -> tuple[SalaryComponentRule, ...]:
        return self._components

    def active(self) -> list[SalaryComponentRule]:
        return [c for c in self._components if c.is_active]

    @property
    def basic_component(self) -> Optional[SalaryComponentRule]:
        for c in self._components:
            if c.is_active and c.is_basic:
                return c
        return None

    def earnings(self) -> list[SalaryComponentRule]:
        """Active earnings other than the basic-pay component."""
        return [
            c for c in self.active()
            if c.kind == ComponentKind.earning and not c.is_basic
        ]

    def deductions(self) -> list[SalaryComponentRule]:
        return [c for c in self.active() if c.kind == ComponentKind.deduction]

    def get(self, code: str) -> Optional[SalaryComponentRule]:
        for c in self._components:
            if c.code == code:
                return c
        return None

    # ── Resolution ─────────────────────────────────────────────────

    @staticmethod
    def resolve(component: SalaryComponentRule, base_salary: Decimal) -> Decimal:
        """Amount of *component* for a given base salary."""
        if not component.is_active:
            return ZERO
        if component.method == CalculationMethod.fixed:
            return to_decimal(component.value)
        return round_half_up(to_decimal(base_salary) * to_decimal(component.value))

    def with_component(self, component: SalaryComponentRule) -> "SalaryComponentSet":
        """Return a new set with *component* added or replacing the same code."""
        others = [c for c in self._components if c.code != component.code]
        return SalaryComponentSet([*others, component])

    def __repr__(self) -> str:
        return f"<SalaryComponentSet {[c.code for c in self._components]}>"
