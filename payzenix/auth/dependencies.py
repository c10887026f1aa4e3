"""Auth dependencies — JWT validation, RBAC enforcement."""

from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from fastapi import Depends, Request
from fastapi.exceptions import HTTPException
from jose import ExpiredSignatureError, JWTError, jwt
from sqlalchemy.ext.asyncio import AsyncSession

from payzenix.common.audit import ActorRef
from payzenix.common.constants import EmployeeStatus, UserRole
from payzenix.common.exceptions import ForbiddenException
from payzenix.config import settings
from payzenix.database import get_db
from payzenix.employees.models import Employee

ACCESS_TOKEN_TTL = timedelta(hours=8)

# Role hierarchy: each role implicitly includes lower roles
_ROLE_HIERARCHY: dict[UserRole, set[UserRole]] = {
    UserRole.superadmin: {UserRole.superadmin, UserRole.admin, UserRole.hr, UserRole.employee},
    UserRole.admin: {UserRole.admin, UserRole.hr, UserRole.employee},
    UserRole.hr: {UserRole.hr, UserRole.employee},
    UserRole.employee: {UserRole.employee},
}


def create_access_token(
    employee_id: uuid.UUID,
    role: UserRole,
    expires_in: Optional[timedelta] = None,
) -> str:
    """Sign an access token for *employee_id* with *role*."""
    now = datetime.now(timezone.utc)
    payload = {
        "sub": str(employee_id),
        "role": role.value,
        "type": "access",
        "iat": now,
        "exp": now + (expires_in or ACCESS_TOKEN_TTL),
    }
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def _extract_bearer(request: Request) -> str:
    """Extract Bearer token from Authorization header."""
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        raise HTTPException(status_code=401, detail="Missing or invalid Authorization header.")
    return auth_header[7:]


# ── Core dependency ─────────────────────────────────────────────────

async def get_current_user(
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> Employee:
    """Validate the JWT and return the authenticated Employee."""
    token = _extract_bearer(request)

    try:
        payload = jwt.decode(
            token,
            settings.JWT_SECRET,
            algorithms=[settings.JWT_ALGORITHM],
        )
    except ExpiredSignatureError:
        raise HTTPException(status_code=401, detail="Token has expired.")
    except JWTError:
        raise HTTPException(status_code=401, detail="Invalid token.")

    if payload.get("type") != "access":
        raise HTTPException(status_code=401, detail="Invalid token type.")

    try:
        employee_id = uuid.UUID(payload["sub"])
    except (KeyError, ValueError):
        raise HTTPException(status_code=401, detail="Invalid token subject.")

    employee = await db.get(Employee, employee_id)
    if employee is None or employee.status == EmployeeStatus.inactive:
        raise HTTPException(status_code=401, detail="User account is inactive or not found.")

    # Attach role to request state for downstream use
    role_str = payload.get("role", UserRole.employee.value)
    try:
        role = UserRole(role_str)
    except ValueError:
        role = UserRole.employee
    request.state.user_role = role

    return employee


# ── Role-based dependency ───────────────────────────────────────────

def require_role(*allowed_roles: UserRole) -> Callable:
    """Return a FastAPI dependency that enforces role membership.

    Respects hierarchy — e.g. superadmin can access hr endpoints.
    """

    async def _check(
        request: Request,
        employee: Employee = Depends(get_current_user),
    ) -> Employee:
        user_role: UserRole = request.state.user_role
        effective_roles = _ROLE_HIERARCHY.get(user_role, {user_role})
        if not effective_roles.intersection(set(allowed_roles)):
            raise ForbiddenException(
                detail=f"Role '{user_role.value}' is not permitted. Required: {[r.value for r in allowed_roles]}.",
            )
        return employee

    return _check


def has_role(request: Request, role: UserRole) -> bool:
    """True when the authenticated user's role includes *role*."""
    user_role: UserRole = request.state.user_role
    return role in _ROLE_HIERARCHY.get(user_role, {user_role})


def actor_from(employee: Employee) -> ActorRef:
    """Audit actor for the authenticated employee."""
    return ActorRef(id=employee.id, name=employee.name)
