"""Employee ORM model.

SQLAlchemy 2.0 async-compatible model with Mapped[] annotations. Payroll
records, loans and audit entries reference ``employees.id`` through real
foreign keys, so an employee cannot disappear from under them.
"""

from __future__ import annotations

import uuid
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Optional

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from payzenix.common.constants import EmployeeStatus
from payzenix.database import Base


class Employee(Base):
    """Employee master record — the engine reads the base salary and status."""

    __tablename__ = "employees"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    employee_code: Mapped[str] = mapped_column(
        sa.String(20), unique=True, nullable=False,
    )
    name: Mapped[str] = mapped_column(sa.String(200), nullable=False)
    email: Mapped[str] = mapped_column(
        sa.String(255), unique=True, nullable=False,
    )
    department: Mapped[Optional[str]] = mapped_column(sa.String(100))
    designation: Mapped[Optional[str]] = mapped_column(sa.String(150))
    base_salary: Mapped[Decimal] = mapped_column(
        sa.Numeric(12, 2), nullable=False,
    )
    status: Mapped[EmployeeStatus] = mapped_column(
        sa.Enum(EmployeeStatus, name="employee_status", native_enum=False, length=20),
        default=EmployeeStatus.active,
        nullable=False,
    )
    date_of_joining: Mapped[Optional[date]] = mapped_column(sa.Date)
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc),
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), onupdate=lambda: datetime.now(timezone.utc),
    )

    def __repr__(self) -> str:
        return f"<Employee {self.employee_code} {self.name!r}>"
