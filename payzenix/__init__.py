"""PayZenix — payroll and loan computation engine."""

__version__ = "1.0.0"
