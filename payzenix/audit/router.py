"""Audit log router (admin only)."""

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from payzenix.audit.schemas import AuditLogListResponse, AuditLogOut
from payzenix.audit.service import AuditService
from payzenix.auth.dependencies import require_role
from payzenix.common.constants import AuditModule, AuditType, UserRole
from payzenix.database import get_db
from payzenix.employees.models import Employee

router = APIRouter(prefix="", tags=["audit"])


# ── GET /audit-logs ─────────────────────────────────────────────────

@router.get("", response_model=AuditLogListResponse)
async def list_audit_logs(
    module: Optional[AuditModule] = Query(None),
    audit_type: Optional[AuditType] = Query(None, alias="type"),
    entity_id: Optional[uuid.UUID] = Query(None),
    limit: Optional[int] = Query(None, ge=1),
    employee: Employee = Depends(require_role(UserRole.admin)),
    db: AsyncSession = Depends(get_db),
):
    entries = await AuditService.list_entries(
        db, module=module, audit_type=audit_type, entity_id=entity_id, limit=limit,
    )
    return AuditLogListResponse(
        data=[AuditLogOut.model_validate(e) for e in entries],
        total=len(entries),
    )
