"""Rate limiting configuration using slowapi.

Provides a module-level Limiter instance that routers import for
per-endpoint limits on the expensive write paths (payroll runs, loan
requests), wired into the FastAPI app in main.py.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

from payzenix.config import settings

limiter = Limiter(
    key_func=get_remote_address,
    default_limits=["120/minute"],
    enabled=settings.RATE_LIMIT_ENABLED,
)

# Applied to endpoints that recompute or persist many records at once.
PAYROLL_RUN_LIMIT = "10/minute"
LOAN_REQUEST_LIMIT = "20/minute"
