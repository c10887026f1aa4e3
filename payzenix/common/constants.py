"""Enums and constants for PayZenix."""

from __future__ import annotations

import enum


# ── Employees ───────────────────────────────────────────────────────

class EmployeeStatus(str, enum.Enum):
    active = "active"
    probation = "probation"
    onleave = "onleave"
    inactive = "inactive"


# Employees in these states are included in a payroll run.
PAYABLE_STATUSES = (
    EmployeeStatus.active,
    EmployeeStatus.probation,
    EmployeeStatus.onleave,
)


# ── Auth / Roles ────────────────────────────────────────────────────

class UserRole(str, enum.Enum):
    employee = "employee"
    hr = "hr"
    admin = "admin"
    superadmin = "superadmin"


# ── Salary components ───────────────────────────────────────────────

class ComponentKind(str, enum.Enum):
    earning = "earning"
    deduction = "deduction"


class CalculationMethod(str, enum.Enum):
    fixed = "fixed"
    percent_of_base = "percent_of_base"


# ── Payroll ─────────────────────────────────────────────────────────

class PayrollStatus(str, enum.Enum):
    pending = "pending"
    processed = "processed"
    paid = "paid"


# ── Loans ───────────────────────────────────────────────────────────

class LoanType(str, enum.Enum):
    personal = "personal"
    advance = "advance"
    emergency = "emergency"


class LoanStatus(str, enum.Enum):
    pending = "pending"
    approved = "approved"
    rejected = "rejected"
    active = "active"
    completed = "completed"


# ── Audit ───────────────────────────────────────────────────────────

class AuditType(str, enum.Enum):
    create = "create"
    update = "update"
    delete = "delete"
    process = "process"
    approval = "approval"


class AuditModule(str, enum.Enum):
    employees = "Employees"
    payroll = "Payroll"
    loans = "Loans"
    settings = "Settings"


# ── Misc constants ──────────────────────────────────────────────────

MIN_PAYROLL_YEAR = 2000
MAX_PAYROLL_YEAR = 2100
MAX_LOAN_TENURE_MONTHS = 60
MAX_LOAN_INTEREST_RATE = 100
MAX_PAGE_SIZE = 100
DEFAULT_PAGE_SIZE = 50
