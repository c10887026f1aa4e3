"""Audit events, the audit-trail table, and the sink that persists events.

The payroll and loan lifecycles never write to the database themselves:
every transition returns an :class:`AuditEvent`, and the service layer hands
it to an :class:`AuditSink`. :class:`SqlAuditSink` is the production sink.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Optional, Protocol

from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy import (
    DateTime,
    ForeignKey,
    Index,
    String,
    Text,
)
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Mapped, mapped_column

from payzenix.common.constants import AuditModule, AuditType
from payzenix.database import Base

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ── Domain event ────────────────────────────────────────────────────

class ActorRef(BaseModel):
    """Who performed an action. ``id`` is ``None`` for system jobs."""

    model_config = ConfigDict(frozen=True)

    id: Optional[uuid.UUID] = None
    name: str = "system"


SYSTEM_ACTOR = ActorRef()


class AuditEvent(BaseModel):
    """One lifecycle transition or configuration change."""

    model_config = ConfigDict(frozen=True)

    action: str
    module: AuditModule
    type: AuditType
    actor: ActorRef
    record_id: Optional[uuid.UUID] = None
    entity_type: str
    from_status: Optional[str] = None
    to_status: Optional[str] = None
    details: str = ""
    changes: dict[str, Any] = Field(default_factory=dict)
    timestamp: datetime = Field(default_factory=utcnow)

    def to_log_entry(self) -> dict[str, Any]:
        """Flatten into the ``{action, user, userId, ...}`` sink format."""
        return {
            "action": self.action,
            "user": self.actor.name,
            "userId": str(self.actor.id) if self.actor.id else "system",
            "details": self.details,
            "type": self.type.value,
            "module": self.module.value,
            "timestamp": self.timestamp.isoformat(),
        }


class AuditSink(Protocol):
    """Anything that can persist audit events."""

    async def emit(self, event: AuditEvent) -> None: ...


# ── Immutable audit-trail table ─────────────────────────────────────

class AuditTrail(Base):
    """Immutable log of every significant data change."""

    __tablename__ = "audit_trail"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    actor_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("employees.id"),
        nullable=True,
    )
    actor_name: Mapped[str] = mapped_column(String(200), nullable=False)
    action: Mapped[str] = mapped_column(String(100), nullable=False)
    module: Mapped[str] = mapped_column(String(30), nullable=False)
    audit_type: Mapped[str] = mapped_column(String(20), nullable=False)
    entity_type: Mapped[str] = mapped_column(String(50), nullable=False)
    entity_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), nullable=True,
    )
    details: Mapped[Optional[str]] = mapped_column(Text)
    old_values: Mapped[Optional[dict]] = mapped_column(JSONB, nullable=True)
    new_values: Mapped[Optional[dict]] = mapped_column(JSONB, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow,
    )

    __table_args__ = (
        Index("ix_audit_trail_actor_id", "actor_id"),
        Index("ix_audit_trail_entity", "entity_type", "entity_id"),
        Index("ix_audit_trail_module_created", "module", "created_at"),
        Index("ix_audit_trail_type_created", "audit_type", "created_at"),
    )

    def __repr__(self) -> str:
        return (
            f"<AuditTrail {self.action} {self.entity_type}"
            f"/{self.entity_id} by {self.actor_name}>"
        )


# ── Helper to create an entry ───────────────────────────────────────

async def create_audit_entry(
    session: AsyncSession,
    *,
    action: str,
    module: AuditModule,
    audit_type: AuditType,
    entity_type: str,
    entity_id: Optional[uuid.UUID],
    actor: ActorRef = SYSTEM_ACTOR,
    details: str = "",
    old_values: Optional[dict[str, Any]] = None,
    new_values: Optional[dict[str, Any]] = None,
    created_at: Optional[datetime] = None,
) -> AuditTrail:
    """
    Create and flush an audit-trail entry.

    Args:
        session: Async SQLAlchemy session.
        action: Human-readable action, e.g. "Payroll Processed".
        module: Payroll | Loans | Settings | Employees.
        audit_type: create | update | delete | process | approval.
        entity_type: e.g. "payroll_record", "loan".
        entity_id: UUID of the affected entity.
        actor: The user performing the action.
        old_values: Previous state (for updates/deletes).
        new_values: New state (for creates/updates).
    """
    entry = AuditTrail(
        actor_id=actor.id,
        actor_name=actor.name,
        action=action,
        module=module.value,
        audit_type=audit_type.value,
        entity_type=entity_type,
        entity_id=entity_id,
        details=details,
        old_values=old_values,
        new_values=new_values,
        created_at=created_at or utcnow(),
    )
    session.add(entry)
    await session.flush()
    return entry


class SqlAuditSink:
    """Persists audit events into ``audit_trail`` within the caller's session."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def emit(self, event: AuditEvent) -> None:
        old_values = {"status": event.from_status} if event.from_status else None
        new_values: dict[str, Any] = dict(event.changes)
        if event.to_status:
            new_values["status"] = event.to_status
        await create_audit_entry(
            self.session,
            action=event.action,
            module=event.module,
            audit_type=event.type,
            entity_type=event.entity_type,
            entity_id=event.record_id,
            actor=event.actor,
            details=event.details,
            old_values=old_values,
            new_values=new_values or None,
            created_at=event.timestamp,
        )
        logger.info("audit: %s", event.to_log_entry())
