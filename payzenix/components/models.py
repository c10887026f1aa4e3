"""Salary component ORM model.

SQLAlchemy 2.0 async-compatible model. Components are never deleted;
retiring one sets ``is_active`` to false so older payroll records keep a
label for every code they reference.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from decimal import Decimal

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from payzenix.common.constants import CalculationMethod, ComponentKind
from payzenix.database import Base


class SalaryComponent(Base):
    """Salary component definition (e.g., Basic, HRA, PF)."""

    __tablename__ = "salary_components"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    code: Mapped[str] = mapped_column(sa.String(50), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(sa.String(200), nullable=False)
    kind: Mapped[ComponentKind] = mapped_column(
        sa.Enum(ComponentKind, name="component_kind", native_enum=False, length=20),
        default=ComponentKind.earning,
        nullable=False,
    )
    method: Mapped[CalculationMethod] = mapped_column(
        sa.Enum(CalculationMethod, name="calculation_method", native_enum=False, length=20),
        default=CalculationMethod.fixed,
        nullable=False,
    )
    # Fixed amount, or a fraction in [0, 1] for percent_of_base.
    value: Mapped[Decimal] = mapped_column(sa.Numeric(12, 4), default=0, nullable=False)
    taxable: Mapped[bool] = mapped_column(sa.Boolean, default=True)
    is_active: Mapped[bool] = mapped_column(sa.Boolean, default=True)
    is_basic: Mapped[bool] = mapped_column(sa.Boolean, default=False)
    sort_order: Mapped[int] = mapped_column(sa.Integer, default=0)
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc),
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), onupdate=lambda: datetime.now(timezone.utc),
    )

    def __repr__(self) -> str:
        return f"<SalaryComponent {self.code!r} {self.kind.value}>"
