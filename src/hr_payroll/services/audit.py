"""Audit trail for period closes and batch calculations.

Audit is fire-and-forget: ``record_safely`` logs and drops any failure so a
broken audit sink never aborts payroll processing.
"""

from __future__ import annotations

import logging
from typing import Any, Protocol

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from hr_payroll.models import AuditEvent

logger = logging.getLogger(__name__)


class AuditLogger(Protocol):
    """Protocol for audit sinks."""

    async def record(
        self,
        action: str,
        entity_type: str,
        entity_id: int | None = None,
        actor_id: int | None = None,
        description: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        ...


class SessionAuditLogger:
    """Adds audit events to the caller's session.

    The event commits or rolls back together with the change it describes.
    Each insert is flushed inside a savepoint, so a failed write surfaces
    here and is undone without touching the rest of the transaction.
    Callers flush their own changes first.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def record(
        self,
        action: str,
        entity_type: str,
        entity_id: int | None = None,
        actor_id: int | None = None,
        description: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        async with self.session.begin_nested():
            self.session.add(
                AuditEvent(
                    action=action,
                    entity_type=entity_type,
                    entity_id=entity_id,
                    actor_id=actor_id,
                    description=description,
                    details=details,
                )
            )
            await self.session.flush()


class DatabaseAuditLogger:
    """Writes audit events in a session and transaction of their own."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def record(
        self,
        action: str,
        entity_type: str,
        entity_id: int | None = None,
        actor_id: int | None = None,
        description: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        async with self.session_factory() as session:
            async with session.begin():
                await SessionAuditLogger(session).record(
                    action,
                    entity_type,
                    entity_id=entity_id,
                    actor_id=actor_id,
                    description=description,
                    details=details,
                )


class LoggingAuditLogger:
    """Writes audit events to the log only."""

    def __init__(self, log: logging.Logger | None = None):
        self.log = log or logger

    async def record(
        self,
        action: str,
        entity_type: str,
        entity_id: int | None = None,
        actor_id: int | None = None,
        description: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.log.info(
            "audit action=%s entity=%s:%s actor=%s %s %s",
            action,
            entity_type,
            entity_id,
            actor_id,
            description or "",
            details or {},
        )


async def record_safely(
    audit: AuditLogger | None,
    action: str,
    entity_type: str,
    entity_id: int | None = None,
    actor_id: int | None = None,
    description: str | None = None,
    details: dict[str, Any] | None = None,
) -> bool:
    """Record an audit event, never raising.

    Returns True when the sink accepted the event.
    """
    if audit is None:
        return False
    try:
        await audit.record(
            action,
            entity_type,
            entity_id=entity_id,
            actor_id=actor_id,
            description=description,
            details=details,
        )
    except Exception:
        logger.exception("Audit sink %s failed for action %s", audit, action)
        return False
    return True
