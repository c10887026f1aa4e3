"""Audit log queries."""

from __future__ import annotations

import uuid
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from payzenix.common.audit import AuditTrail
from payzenix.common.constants import AuditModule, AuditType
from payzenix.config import settings


class AuditService:

    @staticmethod
    async def list_entries(
        db: AsyncSession,
        module: Optional[AuditModule] = None,
        audit_type: Optional[AuditType] = None,
        entity_id: Optional[uuid.UUID] = None,
        limit: Optional[int] = None,
    ) -> list[AuditTrail]:
        """Newest entries first, capped at ``AUDIT_LOG_LIMIT``."""
        stmt = select(AuditTrail)
        if module is not None:
            stmt = stmt.where(AuditTrail.module == module.value)
        if audit_type is not None:
            stmt = stmt.where(AuditTrail.audit_type == audit_type.value)
        if entity_id is not None:
            stmt = stmt.where(AuditTrail.entity_id == entity_id)
        cap = min(limit or settings.AUDIT_LOG_LIMIT, settings.AUDIT_LOG_LIMIT)
        stmt = stmt.order_by(AuditTrail.created_at.desc()).limit(cap)
        result = await db.execute(stmt)
        return list(result.scalars().all())
