"""Custom exceptions and RFC 7807 Problem Detail error handlers."""

from __future__ import annotations

import logging
from typing import Any, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

BASE_ERROR_URI = "https://payzenix.local/errors"

logger = logging.getLogger(__name__)


# ── Exception hierarchy ─────────────────────────────────────────────

class AppException(Exception):
    """Base for all application exceptions → RFC 7807 JSON."""

    def __init__(
        self,
        status_code: int,
        error_type: str,
        title: str,
        detail: str,
        errors: Optional[dict[str, Any]] = None,
    ) -> None:
        self.status_code = status_code
        self.error_type = error_type
        self.title = title
        self.detail = detail
        self.errors = errors
        super().__init__(detail)


class NotFoundException(AppException):
    """404 — entity not found."""

    def __init__(self, entity_type: str, entity_id: Any) -> None:
        super().__init__(
            status_code=404,
            error_type="not-found",
            title=f"{entity_type} Not Found",
            detail=f"{entity_type} with id '{entity_id}' does not exist.",
        )


class ConflictError(AppException):
    """409 — unique-constraint / duplicate."""

    def __init__(self, field: str, value: Any) -> None:
        super().__init__(
            status_code=409,
            error_type="conflict",
            title="Conflict",
            detail=f"An entry with {field}='{value}' already exists.",
            errors={field: [f"'{value}' is already in use."]},
        )


class ForbiddenException(AppException):
    """403 — insufficient permissions."""

    def __init__(
        self,
        detail: str = "You do not have permission to perform this action.",
    ) -> None:
        super().__init__(
            status_code=403,
            error_type="forbidden",
            title="Forbidden",
            detail=detail,
        )


# ── Engine errors ───────────────────────────────────────────────────
#
# Raised by the pure payroll/loan engine. Each subclass has a fixed
# ``error_type`` slug that callers can match on.

class PayrollEngineError(AppException):
    """Base for every error raised by the computation engine."""

    status_code = 422
    error_type = "engine-error"
    title = "Engine Error"

    def __init__(self, detail: str, errors: Optional[dict[str, Any]] = None) -> None:
        super().__init__(
            status_code=type(self).status_code,
            error_type=type(self).error_type,
            title=type(self).title,
            detail=detail,
            errors=errors,
        )

    @property
    def kind(self) -> str:
        """Stable error kind, e.g. ``PayrollLocked``."""
        return type(self).__name__


class InvalidComponentConfiguration(PayrollEngineError):
    """Bad rate / amount / shape of a salary component set."""

    error_type = "invalid-component-configuration"
    title = "Invalid Component Configuration"


class InvalidPayrollComputation(PayrollEngineError):
    """Deductions exceed gross pay, or the inputs cannot produce a record."""

    error_type = "invalid-payroll-computation"
    title = "Invalid Payroll Computation"


class PayrollLocked(PayrollEngineError):
    """Mutation attempted on a payroll record that is no longer pending."""

    status_code = 409
    error_type = "payroll-locked"
    title = "Payroll Locked"


class InvalidPayrollTransition(PayrollEngineError):
    status_code = 409
    error_type = "invalid-payroll-transition"
    title = "Invalid Payroll Transition"


class InvalidLoanParameters(PayrollEngineError):
    """Principal, tenure or interest rate out of range."""

    error_type = "invalid-loan-parameters"
    title = "Invalid Loan Parameters"


class InvalidLoanOperation(PayrollEngineError):
    """Payment on a non-active loan, overpayment, or an illegal transition."""

    status_code = 409
    error_type = "invalid-loan-operation"
    title = "Invalid Loan Operation"


class LoanAlreadyDecided(PayrollEngineError):
    status_code = 409
    error_type = "loan-already-decided"
    title = "Loan Already Decided"


# ── RFC 7807 builder ────────────────────────────────────────────────

def _build_problem_detail(exc: AppException, request: Request) -> dict[str, Any]:
    body: dict[str, Any] = {
        "type": f"{BASE_ERROR_URI}/{exc.error_type}",
        "title": exc.title,
        "status": exc.status_code,
        "detail": exc.detail,
        "instance": str(request.url.path),
    }
    if exc.errors:
        body["errors"] = exc.errors
    return body


# ── FastAPI handlers ────────────────────────────────────────────────

async def _handle_app_exception(
    request: Request,
    exc: AppException,
) -> JSONResponse:
    if isinstance(exc, PayrollEngineError):
        logger.warning(
            "%s on %s %s: %s",
            exc.kind, request.method, request.url.path, exc.detail,
        )
    return JSONResponse(
        status_code=exc.status_code,
        content=_build_problem_detail(exc, request),
        media_type="application/problem+json",
    )


async def _handle_validation_error(
    request: Request,
    exc: RequestValidationError,
) -> JSONResponse:
    field_errors: dict[str, list[str]] = {}
    for err in exc.errors():
        loc = err.get("loc", ())
        name = (
            ".".join(str(p) for p in loc[1:])
            if len(loc) > 1
            else str(loc[0]) if loc else "unknown"
        )
        field_errors.setdefault(name, []).append(err.get("msg", "Invalid value"))

    return JSONResponse(
        status_code=422,
        content={
            "type": f"{BASE_ERROR_URI}/validation-error",
            "title": "Validation Error",
            "status": 422,
            "detail": "Request validation failed.",
            "instance": str(request.url.path),
            "errors": field_errors,
        },
        media_type="application/problem+json",
    )


# ── Registration helper (called from main.py) ──────────────────────

def register_exception_handlers(app: FastAPI) -> None:
    """Attach all custom exception handlers to the FastAPI app."""
    app.add_exception_handler(AppException, _handle_app_exception)          # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, _handle_validation_error)  # type: ignore[arg-type]
