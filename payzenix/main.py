"""PayZenix — FastAPI Application Factory."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from payzenix import __version__
from payzenix.audit.router import router as audit_router
from payzenix.common.exceptions import register_exception_handlers
from payzenix.common.rate_limit import limiter
from payzenix.components.router import router as components_router
from payzenix.config import settings
from payzenix.database import engine
from payzenix.employees.router import router as employees_router
from payzenix.loans.router import router as loans_router
from payzenix.payroll.router import router as payroll_router

logger = logging.getLogger("payzenix")


def configure_logging() -> None:
    logging.basicConfig(
        level=settings.LOG_LEVEL.upper(),
        format="%(asctime)s %(levelname)-8s %(name)s: %(message)s",
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application startup and shutdown events."""
    logger.info("PayZenix %s starting (%s)", __version__, settings.ENVIRONMENT)
    yield
    await engine.dispose()
    logger.info("PayZenix stopped")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    configure_logging()

    app = FastAPI(
        title="PayZenix",
        description="Payroll & loan computation engine",
        version=__version__,
        docs_url="/api/docs" if settings.ENVIRONMENT != "production" else None,
        redoc_url="/api/redoc" if settings.ENVIRONMENT != "production" else None,
        lifespan=lifespan,
    )

    # Exception handlers (RFC 7807)
    register_exception_handlers(app)

    # Rate limiting (slowapi)
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Health check (no auth)
    @app.get("/api/v1/health", tags=["system"])
    async def health_check():
        return {
            "status": "healthy",
            "version": __version__,
            "environment": settings.ENVIRONMENT,
        }

    # Register routers
    app.include_router(employees_router, prefix="/api/v1/employees", tags=["employees"])
    app.include_router(components_router, prefix="/api/v1/components", tags=["components"])
    app.include_router(payroll_router, prefix="/api/v1/payroll", tags=["payroll"])
    app.include_router(loans_router, prefix="/api/v1/loans", tags=["loans"])
    app.include_router(audit_router, prefix="/api/v1/audit-logs", tags=["audit"])

    return app


app = create_app()
