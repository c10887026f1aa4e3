"""001 – Initial schema: employees, salary components, payroll, loans, audit.

Revision ID: 001_initial_schema
Revises:
Create Date: 2026-10-19 10:00:00.000000+05:30
"""

from alembic import op

# Revision identifiers
revision = "001_initial_schema"
down_revision = None
branch_labels = None
depends_on = None


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

# Enums are stored as VARCHAR with CHECK constraints (native_enum=False in
# the ORM) so new values never need an ALTER TYPE.
STATUS_CHECKS: dict[str, list[str]] = {
    "employee_status": ["active", "probation", "onleave", "inactive"],
    "component_kind": ["earning", "deduction"],
    "calculation_method": ["fixed", "percent_of_base"],
    "payroll_status": ["pending", "processed", "paid"],
    "loan_type": ["personal", "advance", "emergency"],
    "loan_status": ["pending", "approved", "rejected", "active", "completed"],
}


def _in(name: str) -> str:
    return "(" + ", ".join(f"'{v}'" for v in STATUS_CHECKS[name]) + ")"


# ---------------------------------------------------------------------------
# UPGRADE
# ---------------------------------------------------------------------------


def upgrade() -> None:
    # ── Extensions ────────────────────────────────────────────────────────
    op.execute('CREATE EXTENSION IF NOT EXISTS "uuid-ossp"')

    # ── 1. employees ──────────────────────────────────────────────────────
    op.execute(f"""
        CREATE TABLE employees (
            id               UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            employee_code    VARCHAR(20)  NOT NULL UNIQUE,
            name             VARCHAR(200) NOT NULL,
            email            VARCHAR(255) NOT NULL UNIQUE,
            department       VARCHAR(100),
            designation      VARCHAR(150),
            base_salary      NUMERIC(12,2) NOT NULL CHECK (base_salary >= 0),
            status           VARCHAR(20) NOT NULL DEFAULT 'active'
                             CHECK (status IN {_in("employee_status")}),
            date_of_joining  DATE,
            created_at       TIMESTAMPTZ DEFAULT NOW(),
            updated_at       TIMESTAMPTZ DEFAULT NOW()
        )
    """)

    # ── 2. salary_components ──────────────────────────────────────────────
    op.execute(f"""
        CREATE TABLE salary_components (
            id          UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            code        VARCHAR(50)  NOT NULL UNIQUE,
            name        VARCHAR(200) NOT NULL,
            kind        VARCHAR(20)  NOT NULL CHECK (kind IN {_in("component_kind")}),
            method      VARCHAR(20)  NOT NULL CHECK (method IN {_in("calculation_method")}),
            value       NUMERIC(12,4) NOT NULL CHECK (value >= 0),
            taxable     BOOLEAN DEFAULT TRUE,
            is_active   BOOLEAN DEFAULT TRUE,
            is_basic    BOOLEAN DEFAULT FALSE,
            sort_order  INTEGER DEFAULT 0,
            created_at  TIMESTAMPTZ DEFAULT NOW(),
            updated_at  TIMESTAMPTZ DEFAULT NOW()
        )
    """)
    # At most one active basic-pay component
    op.execute("""
        CREATE UNIQUE INDEX uq_salary_components_active_basic
            ON salary_components (is_basic)
            WHERE is_basic AND is_active
    """)

    # ── 3. payroll_records ────────────────────────────────────────────────
    op.execute(f"""
        CREATE TABLE payroll_records (
            id                UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            employee_id       UUID NOT NULL REFERENCES employees(id) ON DELETE RESTRICT,
            month             SMALLINT NOT NULL,
            year              SMALLINT NOT NULL,
            basic_salary      NUMERIC(12,2) NOT NULL,
            allowances        JSONB DEFAULT '{{}}',
            deductions        JSONB DEFAULT '{{}}',
            gross_salary      NUMERIC(12,2) NOT NULL,
            total_deductions  NUMERIC(12,2) NOT NULL,
            net_salary        NUMERIC(12,2) NOT NULL CHECK (net_salary >= 0),
            status            VARCHAR(20) NOT NULL DEFAULT 'pending'
                              CHECK (status IN {_in("payroll_status")}),
            processed_at      TIMESTAMPTZ,
            payment_date      TIMESTAMPTZ,
            remarks           TEXT,
            created_at        TIMESTAMPTZ DEFAULT NOW(),
            updated_at        TIMESTAMPTZ DEFAULT NOW(),
            CONSTRAINT uq_payroll_employee_period UNIQUE (employee_id, month, year),
            CONSTRAINT ck_payroll_month CHECK (month BETWEEN 1 AND 12)
        )
    """)
    op.execute("CREATE INDEX ix_payroll_period ON payroll_records (year, month)")

    # ── 4. loans ──────────────────────────────────────────────────────────
    op.execute(f"""
        CREATE TABLE loans (
            id                 UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            employee_id        UUID NOT NULL REFERENCES employees(id) ON DELETE RESTRICT,
            loan_type          VARCHAR(20) NOT NULL CHECK (loan_type IN {_in("loan_type")}),
            principal          NUMERIC(12,2) NOT NULL CHECK (principal > 0),
            interest_rate      NUMERIC(5,2) DEFAULT 0,
            tenure             SMALLINT NOT NULL,
            emi_amount         NUMERIC(12,2) NOT NULL,
            start_date         DATE NOT NULL,
            status             VARCHAR(20) NOT NULL DEFAULT 'pending'
                               CHECK (status IN {_in("loan_status")}),
            paid_amount        NUMERIC(12,2) DEFAULT 0,
            remaining_amount   NUMERIC(12,2) NOT NULL,
            interest_paid      NUMERIC(12,2) DEFAULT 0,
            installments_paid  SMALLINT DEFAULT 0,
            schedule           JSONB DEFAULT '[]',
            reason             TEXT,
            remarks            TEXT,
            approved_by        UUID REFERENCES employees(id),
            approved_date      TIMESTAMPTZ,
            created_at         TIMESTAMPTZ DEFAULT NOW(),
            updated_at         TIMESTAMPTZ DEFAULT NOW(),
            CONSTRAINT ck_loan_balance CHECK (paid_amount + remaining_amount = principal),
            CONSTRAINT ck_loan_tenure CHECK (tenure BETWEEN 1 AND 60)
        )
    """)
    op.execute(
        "CREATE INDEX ix_loans_employee_status ON loans (employee_id, status)"
    )

    # ── 5. audit_trail ────────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE audit_trail (
            id           UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            actor_id     UUID REFERENCES employees(id),
            actor_name   VARCHAR(200) NOT NULL,
            action       VARCHAR(100) NOT NULL,
            module       VARCHAR(30)  NOT NULL,
            audit_type   VARCHAR(20)  NOT NULL,
            entity_type  VARCHAR(50)  NOT NULL,
            entity_id    UUID,
            details      TEXT,
            old_values   JSONB,
            new_values   JSONB,
            created_at   TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("CREATE INDEX ix_audit_trail_actor_id ON audit_trail (actor_id)")
    op.execute(
        "CREATE INDEX ix_audit_trail_entity ON audit_trail (entity_type, entity_id)"
    )
    op.execute(
        "CREATE INDEX ix_audit_trail_module_created ON audit_trail (module, created_at)"
    )
    op.execute(
        "CREATE INDEX ix_audit_trail_type_created ON audit_trail (audit_type, created_at)"
    )

    # ── Seed: default salary components ───────────────────────────────────
    op.execute("""
        INSERT INTO salary_components
            (code, name, kind, method, value, taxable, is_basic, sort_order) VALUES
        ('basic',   'Basic Salary',             'earning',   'percent_of_base', 1,      TRUE,  TRUE,  0),
        ('hra',     'House Rent Allowance',     'earning',   'percent_of_base', 0.40,   TRUE,  FALSE, 10),
        ('special', 'Special Allowance',        'earning',   'fixed',           0,      TRUE,  FALSE, 20),
        ('pf',      'Provident Fund',           'deduction', 'percent_of_base', 0.12,   FALSE, FALSE, 100),
        ('esi',     'Employee State Insurance', 'deduction', 'percent_of_base', 0.0075, FALSE, FALSE, 110),
        ('pt',      'Professional Tax',         'deduction', 'fixed',           200,    FALSE, FALSE, 120)
    """)


# ---------------------------------------------------------------------------
# DOWNGRADE
# ---------------------------------------------------------------------------


def downgrade() -> None:
    # Drop tables in reverse dependency order
    tables = [
        "audit_trail",
        "loans",
        "payroll_records",
        "salary_components",
        "employees",
    ]
    for t in tables:
        op.execute(f"DROP TABLE IF EXISTS {t} CASCADE")
