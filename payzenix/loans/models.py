"""Loan ORM model.

SQLAlchemy 2.0 async-compatible model. ``paid_amount`` and
``remaining_amount`` hold principal only; the check constraint keeps the
two in step with ``principal`` at the database level as well.
"""

from __future__ import annotations

import uuid
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Optional

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from payzenix.common.constants import LoanStatus, LoanType
from payzenix.database import Base


class Loan(Base):
    """Employee loan / salary advance."""

    __tablename__ = "loans"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    employee_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        sa.ForeignKey("employees.id", ondelete="RESTRICT"),
        nullable=False,
    )
    loan_type: Mapped[LoanType] = mapped_column(
        sa.Enum(LoanType, name="loan_type", native_enum=False, length=20),
        nullable=False,
    )
    principal: Mapped[Decimal] = mapped_column(sa.Numeric(12, 2), nullable=False)
    interest_rate: Mapped[Decimal] = mapped_column(sa.Numeric(5, 2), default=0)
    tenure: Mapped[int] = mapped_column(sa.SmallInteger, nullable=False)
    emi_amount: Mapped[Decimal] = mapped_column(sa.Numeric(12, 2), nullable=False)
    start_date: Mapped[date] = mapped_column(sa.Date, nullable=False)
    status: Mapped[LoanStatus] = mapped_column(
        sa.Enum(LoanStatus, name="loan_status", native_enum=False, length=20),
        default=LoanStatus.pending,
        nullable=False,
    )
    paid_amount: Mapped[Decimal] = mapped_column(sa.Numeric(12, 2), default=0)
    remaining_amount: Mapped[Decimal] = mapped_column(sa.Numeric(12, 2), nullable=False)
    interest_paid: Mapped[Decimal] = mapped_column(sa.Numeric(12, 2), default=0)
    installments_paid: Mapped[int] = mapped_column(sa.SmallInteger, default=0)
    schedule: Mapped[Optional[list]] = mapped_column(JSONB, default=list)
    reason: Mapped[Optional[str]] = mapped_column(sa.Text)
    remarks: Mapped[Optional[str]] = mapped_column(sa.Text)
    approved_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("employees.id"), nullable=True,
    )
    approved_date: Mapped[Optional[datetime]] = mapped_column(sa.DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc),
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), onupdate=lambda: datetime.now(timezone.utc),
    )

    # Relationships
    employee = relationship("Employee", foreign_keys=[employee_id], lazy="joined")

    __table_args__ = (
        sa.CheckConstraint("paid_amount + remaining_amount = principal", name="ck_loan_balance"),
        sa.CheckConstraint("tenure BETWEEN 1 AND 60", name="ck_loan_tenure"),
        sa.Index("ix_loans_employee_status", "employee_id", "status"),
    )

    def __repr__(self) -> str:
        return f"<Loan {self.loan_type.value} {self.principal} {self.status.value}>"
