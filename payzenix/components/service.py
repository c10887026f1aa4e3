"""Salary component service — CRUD on the configured component set.

Every write re-validates the *whole* set through
:class:`SalaryComponentSet` before it is flushed, so an invalid
configuration never reaches a payroll run.
"""

from __future__ import annotations

import logging
import uuid
from decimal import Decimal
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from payzenix.common.audit import SYSTEM_ACTOR, ActorRef, AuditEvent, SqlAuditSink
from payzenix.common.constants import (
    AuditModule,
    AuditType,
    CalculationMethod,
    ComponentKind,
)
from payzenix.common.exceptions import ConflictError, NotFoundException
from payzenix.components.engine import SalaryComponentRule, SalaryComponentSet
from payzenix.components.models import SalaryComponent
from payzenix.components.schemas import (
    BreakdownPreviewOut,
    SalaryComponentCreate,
    SalaryComponentUpdate,
)
from payzenix.config import settings
from payzenix.payroll.calculator import PayrollCalculator

logger = logging.getLogger(__name__)

ENTITY_TYPE = "salary_component"


def default_components() -> list[SalaryComponentRule]:
    """The stock component set offered on a fresh installation."""
    return [
        SalaryComponentRule(
            code="basic", name="Basic Salary",
            kind=ComponentKind.earning, method=CalculationMethod.percent_of_base,
            value=Decimal("1"), is_basic=True, sort_order=0,
        ),
        SalaryComponentRule(
            code="hra", name="House Rent Allowance",
            kind=ComponentKind.earning, method=CalculationMethod.percent_of_base,
            value=Decimal("0.40"), sort_order=10,
        ),
        SalaryComponentRule(
            code="special", name="Special Allowance",
            kind=ComponentKind.earning, method=CalculationMethod.fixed,
            value=Decimal("0"), sort_order=20,
        ),
        SalaryComponentRule(
            code="pf", name="Provident Fund",
            kind=ComponentKind.deduction, method=CalculationMethod.percent_of_base,
            value=Decimal("0.12"), taxable=False, sort_order=100,
        ),
        SalaryComponentRule(
            code="esi", name="Employee State Insurance",
            kind=ComponentKind.deduction, method=CalculationMethod.percent_of_base,
            value=Decimal("0.0075"), taxable=False, sort_order=110,
        ),
        SalaryComponentRule(
            code="pt", name="Professional Tax",
            kind=ComponentKind.deduction, method=CalculationMethod.fixed,
            value=settings.DEFAULT_PROFESSIONAL_TAX, taxable=False, sort_order=120,
        ),
    ]


class ComponentService:
    """Business logic for the salary component configuration."""

    @staticmethod
    async def list_components(
        db: AsyncSession,
        is_active: Optional[bool] = None,
    ) -> list[SalaryComponent]:
        stmt = select(SalaryComponent)
        if is_active is not None:
            stmt = stmt.where(SalaryComponent.is_active.is_(is_active))
        stmt = stmt.order_by(SalaryComponent.sort_order, SalaryComponent.code)
        result = await db.execute(stmt)
        return list(result.scalars().all())

    @staticmethod
    async def get_component(
        db: AsyncSession,
        component_id: uuid.UUID,
        for_update: bool = False,
    ) -> SalaryComponent:
        stmt = select(SalaryComponent).where(SalaryComponent.id == component_id)
        if for_update:
            stmt = stmt.with_for_update()
        component = (await db.execute(stmt)).scalar_one_or_none()
        if component is None:
            raise NotFoundException("SalaryComponent", str(component_id))
        return component

    @staticmethod
    async def load_component_set(db: AsyncSession) -> SalaryComponentSet:
        """Build the validated set from every stored component."""
        rows = await ComponentService.list_components(db)
        return SalaryComponentSet(SalaryComponentRule.model_validate(r) for r in rows)

    @staticmethod
    async def _validate_with(
        db: AsyncSession,
        rule: SalaryComponentRule,
    ) -> SalaryComponentSet:
        """Validate the stored set with *rule* added or replacing its code."""
        rows = await ComponentService.list_components(db)
        others = [
            SalaryComponentRule.model_validate(r) for r in rows if r.code != rule.code
        ]
        return SalaryComponentSet([*others, rule])

    @staticmethod
    async def create_component(
        db: AsyncSession,
        data: SalaryComponentCreate,
        actor: ActorRef = SYSTEM_ACTOR,
    ) -> SalaryComponent:
        dup = await db.execute(
            select(SalaryComponent.id).where(SalaryComponent.code == data.code)
        )
        if dup.scalar() is not None:
            raise ConflictError("code", data.code)

        rule = SalaryComponentRule(**data.model_dump())
        await ComponentService._validate_with(db, rule)

        component = SalaryComponent(**data.model_dump())
        db.add(component)
        await db.flush()

        await SqlAuditSink(db).emit(AuditEvent(
            action="Component Created",
            module=AuditModule.settings,
            type=AuditType.create,
            actor=actor,
            record_id=component.id,
            entity_type=ENTITY_TYPE,
            details=f"Created {component.kind.value} component '{component.code}'",
            changes={"method": component.method.value, "value": str(component.value)},
        ))
        return component

    @staticmethod
    async def update_component(
        db: AsyncSession,
        component_id: uuid.UUID,
        data: SalaryComponentUpdate,
        actor: ActorRef = SYSTEM_ACTOR,
    ) -> SalaryComponent:
        component = await ComponentService.get_component(db, component_id, for_update=True)
        changes = data.model_dump(exclude_unset=True)

        current = SalaryComponentRule.model_validate(component)
        await ComponentService._validate_with(db, current.model_copy(update=changes))

        for field, value in changes.items():
            setattr(component, field, value)
        await db.flush()

        await SqlAuditSink(db).emit(AuditEvent(
            action="Component Updated",
            module=AuditModule.settings,
            type=AuditType.update,
            actor=actor,
            record_id=component.id,
            entity_type=ENTITY_TYPE,
            details=f"Updated component '{component.code}'",
            changes={k: str(v.value if hasattr(v, "value") else v) for k, v in changes.items()},
        ))
        return component

    @staticmethod
    async def deactivate_component(
        db: AsyncSession,
        component_id: uuid.UUID,
        actor: ActorRef = SYSTEM_ACTOR,
    ) -> SalaryComponent:
        """Soft delete: stored payroll records keep their labelled lines."""
        component = await ComponentService.get_component(db, component_id, for_update=True)
        current = SalaryComponentRule.model_validate(component)
        await ComponentService._validate_with(db, current.model_copy(update={"is_active": False}))

        component.is_active = False
        await db.flush()

        await SqlAuditSink(db).emit(AuditEvent(
            action="Component Deactivated",
            module=AuditModule.settings,
            type=AuditType.delete,
            actor=actor,
            record_id=component.id,
            entity_type=ENTITY_TYPE,
            details=f"Deactivated component '{component.code}'",
        ))
        return component

    @staticmethod
    async def seed_default_components(
        db: AsyncSession,
        actor: ActorRef = SYSTEM_ACTOR,
    ) -> list[SalaryComponent]:
        """Insert the stock components whose code is not configured yet."""
        rows = await ComponentService.list_components(db)
        existing = {c.code for c in rows}
        missing = [r for r in default_components() if r.code not in existing]
        if not missing:
            return []

        SalaryComponentSet(
            [*(SalaryComponentRule.model_validate(r) for r in rows), *missing]
        )

        created: list[SalaryComponent] = []
        for rule in missing:
            component = SalaryComponent(**rule.model_dump())
            db.add(component)
            created.append(component)
        await db.flush()

        await SqlAuditSink(db).emit(AuditEvent(
            action="Components Seeded",
            module=AuditModule.settings,
            type=AuditType.create,
            actor=actor,
            entity_type=ENTITY_TYPE,
            details=f"Seeded default components: {', '.join(r.code for r in missing)}",
        ))
        logger.info("Seeded %d default salary components", len(created))
        return created

    @staticmethod
    async def preview(
        db: AsyncSession,
        base_salary: Decimal,
    ) -> BreakdownPreviewOut:
        """Breakdown for a hypothetical base salary; nothing is stored."""
        component_set = await ComponentService.load_component_set(db)
        basic, allowances, deductions = PayrollCalculator.resolve_breakdown(
            base_salary, component_set,
        )
        totals = PayrollCalculator.compute_totals(basic, allowances, deductions)
        return BreakdownPreviewOut(
            base_salary=base_salary,
            basic_salary=basic,
            allowances=allowances,
            deductions=deductions,
            gross_salary=totals.gross_salary,
            total_deductions=totals.total_deductions,
            net_salary=totals.net_salary,
            taxable_earnings=PayrollCalculator.taxable_earnings(basic, allowances, component_set),
        )
