"""Fire-and-forget audit notifications for payroll changes."""

from __future__ import annotations

import json
import logging
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Protocol
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from staff_payroll.models import AuditEvent

logger = logging.getLogger(__name__)

MODULE = "PAYROLL"


class AuditSink(Protocol):
    """Receives a notification for every lifecycle transition and catalog change."""

    async def record(
        self,
        *,
        tenant_id: UUID,
        action: str,
        entity_type: str,
        entity_id: UUID,
        actor_id: UUID | None = None,
        before: dict[str, Any] | None = None,
        after: dict[str, Any] | None = None,
    ) -> None:
        ...


def _json_serializer(obj: Any) -> Any:
    """JSON serializer for objects not serializable by default."""
    if isinstance(obj, UUID):
        return str(obj)
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    if isinstance(obj, Decimal):
        return str(obj)
    raise TypeError(f"Object of type {type(obj)} is not JSON serializable")


def to_json_safe(payload: dict[str, Any] | None) -> dict[str, Any] | None:
    """Round-trip a payload through json so it fits a JSON column."""
    if payload is None:
        return None
    return json.loads(json.dumps(payload, default=_json_serializer))


class SqlAuditSink:
    """Audit sink writing audit_event rows.

    Each write runs in its own SAVEPOINT. Failures are logged and swallowed;
    they never fail the operation being audited.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def record(
        self,
        *,
        tenant_id: UUID,
        action: str,
        entity_type: str,
        entity_id: UUID,
        actor_id: UUID | None = None,
        before: dict[str, Any] | None = None,
        after: dict[str, Any] | None = None,
    ) -> None:
        logger.info(
            "%s %s %s tenant=%s actor=%s",
            action,
            entity_type,
            entity_id,
            tenant_id,
            actor_id,
        )
        try:
            async with self.session.begin_nested():
                self.session.add(
                    AuditEvent(
                        tenant_id=tenant_id,
                        actor_user_id=actor_id,
                        module=MODULE,
                        level="info",
                        entity_type=entity_type,
                        entity_id=entity_id,
                        action=action,
                        before_json=to_json_safe(before),
                        after_json=to_json_safe(after),
                    )
                )
        except Exception:
            logger.exception("Failed to write audit event %s for %s %s", action, entity_type, entity_id)
