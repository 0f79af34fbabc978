"""Audit sinks.

A sink is any ``async (AuditEvent) -> None``. Services hand records to
``deliver`` only after their transaction commits; a failing sink is logged and
otherwise ignored, so audit loss never changes an operation's result.
"""

from __future__ import annotations

import logging
from typing import Awaitable, Callable, Iterable

from teamkit.config import settings
from teamkit.models import AuditEvent
from teamkit.redis_client import list_append, list_tail

logger = logging.getLogger(__name__)
audit_logger = logging.getLogger("teamkit.audit.trail")

AuditSink = Callable[[AuditEvent], Awaitable[None]]


async def redis_audit_sink(event: AuditEvent) -> None:
    """Append the record to the capped Redis audit list."""
    stored = await list_append(
        settings.audit_list_key,
        event.model_dump(mode="json"),
        settings.audit_max_entries,
    )
    if not stored:
        logger.warning(
            "Audit record dropped: %s %s %s", event.action, event.entity_type, event.entity_id
        )


async def recent_audit_events(limit: int = 50) -> list[AuditEvent]:
    """Read back the newest records from Redis, oldest first."""
    raw = await list_tail(settings.audit_list_key, limit)
    return [AuditEvent.model_validate(item) for item in raw]


async def logging_audit_sink(event: AuditEvent) -> None:
    audit_logger.info(
        "%s %s=%s actor=%s target=%s metadata=%s",
        event.action,
        event.entity_type,
        event.entity_id,
        event.actor_id,
        event.target_id,
        event.metadata,
    )


class MemoryAuditSink:
    """Collects records in a list."""

    def __init__(self) -> None:
        self.events: list[AuditEvent] = []

    async def __call__(self, event: AuditEvent) -> None:
        self.events.append(event)

    def actions(self) -> list[str]:
        return [e.action for e in self.events]

    def clear(self) -> None:
        self.events.clear()


async def deliver(sink: AuditSink, events: Iterable[AuditEvent]) -> None:
    for event in events:
        try:
            await sink(event)
        except Exception:
            logger.warning(
                "Audit sink failed for %s on %s %s",
                event.action,
                event.entity_type,
                event.entity_id,
                exc_info=True,
            )
