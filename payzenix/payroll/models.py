"""Payroll ORM model.

SQLAlchemy 2.0 async-compatible model. One row per (employee, month, year),
enforced by ``uq_payroll_employee_period``.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from payzenix.common.constants import PayrollStatus
from payzenix.database import Base


class Payroll(Base):
    """Monthly payroll record for one employee."""

    __tablename__ = "payroll_records"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    employee_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        sa.ForeignKey("employees.id", ondelete="RESTRICT"),
        nullable=False,
    )
    month: Mapped[int] = mapped_column(sa.SmallInteger, nullable=False)
    year: Mapped[int] = mapped_column(sa.SmallInteger, nullable=False)
    basic_salary: Mapped[Decimal] = mapped_column(sa.Numeric(12, 2), nullable=False)
    # code → amount (decimal strings)
    allowances: Mapped[dict] = mapped_column(JSONB, default=dict)
    deductions: Mapped[dict] = mapped_column(JSONB, default=dict)
    gross_salary: Mapped[Decimal] = mapped_column(sa.Numeric(12, 2), nullable=False)
    total_deductions: Mapped[Decimal] = mapped_column(sa.Numeric(12, 2), nullable=False)
    net_salary: Mapped[Decimal] = mapped_column(sa.Numeric(12, 2), nullable=False)
    status: Mapped[PayrollStatus] = mapped_column(
        sa.Enum(PayrollStatus, name="payroll_status", native_enum=False, length=20),
        default=PayrollStatus.pending,
        nullable=False,
    )
    processed_at: Mapped[Optional[datetime]] = mapped_column(sa.DateTime(timezone=True))
    payment_date: Mapped[Optional[datetime]] = mapped_column(sa.DateTime(timezone=True))
    remarks: Mapped[Optional[str]] = mapped_column(sa.Text)
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc),
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), onupdate=lambda: datetime.now(timezone.utc),
    )

    # Relationships
    employee = relationship("Employee", foreign_keys=[employee_id], lazy="joined")

    __table_args__ = (
        sa.UniqueConstraint("employee_id", "month", "year", name="uq_payroll_employee_period"),
        sa.CheckConstraint("month BETWEEN 1 AND 12", name="ck_payroll_month"),
        sa.Index("ix_payroll_period", "year", "month"),
    )

    def __repr__(self) -> str:
        return (
            f"<Payroll employee_id={self.employee_id} "
            f"{self.month:02d}/{self.year} {self.status.value} net={self.net_salary}>"
        )
