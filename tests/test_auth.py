"""Auth tests — token validation and role enforcement."""

from __future__ import annotations

import uuid
from datetime import timedelta

from jose import jwt

from payzenix.auth.dependencies import create_access_token as issue_token
from payzenix.common.constants import EmployeeStatus, UserRole
from payzenix.config import settings
from tests.conftest import _insert_employee, auth_headers_for, create_access_token

COMPONENTS = "/api/v1/components"


async def test_missing_header(client):
    resp = await client.get(COMPONENTS)
    assert resp.status_code == 401


async def test_malformed_token(client):
    resp = await client.get(COMPONENTS, headers={"Authorization": "Bearer not-a-jwt"})
    assert resp.status_code == 401
    assert resp.json()["detail"] == "Invalid token."


async def test_expired_token(client, db, hr_user):
    await db.commit()
    token = create_access_token(hr_user["id"], UserRole.hr, expired=True)
    resp = await client.get(COMPONENTS, headers={"Authorization": f"Bearer {token}"})
    assert resp.status_code == 401
    assert resp.json()["detail"] == "Token has expired."


async def test_wrong_token_type(client, db, hr_user):
    await db.commit()
    token = jwt.encode(
        {"sub": str(hr_user["id"]), "role": "hr", "type": "refresh"},
        settings.JWT_SECRET,
        algorithm=settings.JWT_ALGORITHM,
    )
    resp = await client.get(COMPONENTS, headers={"Authorization": f"Bearer {token}"})
    assert resp.status_code == 401


async def test_unknown_subject(client):
    resp = await client.get(COMPONENTS, headers=auth_headers_for(uuid.uuid4(), UserRole.hr))
    assert resp.status_code == 401


async def test_inactive_user_rejected(client, db):
    inactive = await _insert_employee(db, status=EmployeeStatus.inactive)
    await db.commit()
    resp = await client.get(COMPONENTS, headers=auth_headers_for(inactive["id"], UserRole.hr))
    assert resp.status_code == 401


async def test_issued_token_is_accepted(client, db, hr_user):
    await db.commit()
    token = issue_token(hr_user["id"], UserRole.hr)
    resp = await client.get(COMPONENTS, headers={"Authorization": f"Bearer {token}"})
    assert resp.status_code == 200


async def test_issued_token_expiry(client, db, hr_user):
    await db.commit()
    token = issue_token(hr_user["id"], UserRole.hr, expires_in=timedelta(seconds=-5))
    resp = await client.get(COMPONENTS, headers={"Authorization": f"Bearer {token}"})
    assert resp.status_code == 401


async def test_role_hierarchy(client, db, hr_user):
    await db.commit()
    for role, expected in (
        (UserRole.employee, 403),
        (UserRole.hr, 200),
        (UserRole.admin, 200),
        (UserRole.superadmin, 200),
    ):
        resp = await client.get(COMPONENTS, headers=auth_headers_for(hr_user["id"], role))
        assert resp.status_code == expected, role


async def test_unknown_role_falls_back_to_employee(client, db, hr_user):
    await db.commit()
    token = jwt.encode(
        {"sub": str(hr_user["id"]), "role": "owner", "type": "access"},
        settings.JWT_SECRET,
        algorithm=settings.JWT_ALGORITHM,
    )
    resp = await client.get(COMPONENTS, headers={"Authorization": f"Bearer {token}"})
    assert resp.status_code == 403
