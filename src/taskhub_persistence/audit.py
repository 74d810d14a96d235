"""Audit events emitted after repository mutations commit."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Protocol, runtime_checkable

from taskhub_persistence.database import UnitOfWork
from taskhub_persistence.options import AuditConfig

logger = logging.getLogger(__name__)


class AuditAction(str, Enum):
    """Mutation kinds that produce audit events."""

    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


@dataclass(frozen=True)
class AuditEvent:
    """A single audited mutation."""

    action: AuditAction
    entity_name: str
    entity_id: str | None
    record: dict[str, Any]
    changes: dict[str, Any] | None = None
    user_id: str | None = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> dict[str, Any]:
        return {
            "action": self.action.value,
            "entity_name": self.entity_name,
            "entity_id": self.entity_id,
            "record": {k: repr(v) for k, v in self.record.items()},
            "changes": self.changes,
            "user_id": self.user_id,
            "timestamp": self.timestamp.isoformat(),
        }


@runtime_checkable
class AuditSink(Protocol):
    """Destination for audit events."""

    async def record(self, event: AuditEvent) -> None: ...


class LoggingAuditSink:
    """Writes each event to the ``taskhub_persistence.audit`` logger."""

    def __init__(self, level: int = logging.INFO) -> None:
        self._level = level

    async def record(self, event: AuditEvent) -> None:
        logger.log(
            self._level,
            "[AUDIT] %s on %s (id=%s) by %s",
            event.action.value,
            event.entity_name,
            event.entity_id,
            event.user_id or "-",
            extra={"audit": event.to_dict()},
        )


class InMemoryAuditSink:
    """Accumulates events in memory, in emission order."""

    def __init__(self) -> None:
        self._events: list[AuditEvent] = []

    async def record(self, event: AuditEvent) -> None:
        self._events.append(event)

    @property
    def events(self) -> list[AuditEvent]:
        return list(self._events)

    def filter_by_action(self, action: AuditAction) -> list[AuditEvent]:
        return [e for e in self._events if e.action == action]

    def filter_by_entity(self, entity_name: str) -> list[AuditEvent]:
        return [e for e in self._events if e.entity_name == entity_name]

    def clear(self) -> None:
        self._events.clear()

    def __len__(self) -> int:
        return len(self._events)

    def __bool__(self) -> bool:
        return True


class AuditEmitter:
    """Best-effort side channel notified of mutations.

    Events are queued on the unit of work that performed the mutation and
    delivered only after it commits.  Sink failures are logged and never
    reach the caller.
    """

    def __init__(self, entity_name: str, config: AuditConfig, sink: AuditSink | None = None) -> None:
        self._entity_name = entity_name
        self._config = config
        self._sink: AuditSink = sink if sink is not None else LoggingAuditSink()

    @property
    def enabled(self) -> bool:
        return self._config.enabled

    @property
    def track_changes(self) -> bool:
        return self._config.enabled and self._config.track_changes

    def emit(
        self,
        uow: UnitOfWork,
        action: AuditAction,
        record: dict[str, Any],
        *,
        entity_id: str | None = None,
        changes: dict[str, Any] | None = None,
    ) -> None:
        if not self._config.enabled:
            return
        event = AuditEvent(
            action=action,
            entity_name=self._entity_name,
            entity_id=entity_id,
            record=dict(record),
            changes=changes,
            user_id=self._config.user_id,
        )

        async def deliver() -> None:
            await self._deliver(event)

        uow.after_commit(deliver)

    async def _deliver(self, event: AuditEvent) -> None:
        try:
            await self._sink.record(event)
        except Exception:
            logger.warning(
                "Audit sink failed for %s %s (id=%s); mutation unaffected.",
                event.action.value,
                event.entity_name,
                event.entity_id,
                exc_info=True,
            )


def diff_changes(before: dict[str, Any] | None, after: dict[str, Any], fields: list[str]) -> dict[str, Any]:
    """Return ``{field: {"before": old, "after": new}}`` for *fields* that changed."""
    changes: dict[str, Any] = {}
    for name in fields:
        old = before.get(name) if before is not None else None
        new = after.get(name)
        if old != new:
            changes[name] = {"before": old, "after": new}
    return changes
