"""Append-only, capped, time-rotated audit log."""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import TYPE_CHECKING

from gumsync.common.clock import utcnow
from gumsync.domain.model import AuditEventType, AuditLogEntry
from gumsync.domain.reconciliation.settings import DEFAULT_LOG_LIMIT, DEFAULT_LOG_ROTATION_DAYS

if TYPE_CHECKING:
    from collections.abc import Mapping

    from gumsync.common.clock import Clock
    from gumsync.domain.ports import AuditLogRepository

log = logging.getLogger(__name__)

_WARNING_TYPES = frozenset(
    {
        AuditEventType.SALE_ERROR,
        AuditEventType.LIFECYCLE_ERROR,
        AuditEventType.LIFECYCLE_WARNING,
        AuditEventType.FETCH_ERROR,
        AuditEventType.PASS_ERROR,
    }
)


class AuditLog:
    """Newest-first record of reconciliation outcomes.

    Both retention rules run on every append: entries older than
    ``rotation_days`` go first, then whatever still exceeds ``limit``.
    """

    def __init__(
        self,
        repository: AuditLogRepository,
        *,
        limit: int = DEFAULT_LOG_LIMIT,
        rotation_days: int = DEFAULT_LOG_ROTATION_DAYS,
        clock: Clock = utcnow,
    ) -> None:
        if limit < 1 or rotation_days < 1:
            raise ValueError("Audit log limit and rotation must be positive")
        self._repository = repository
        self.limit = limit
        self.rotation_days = rotation_days
        self._clock = clock

    def append(self, event_type: str, payload: Mapping[str, object]) -> AuditLogEntry:
        now = self._clock()
        entry = AuditLogEntry(event_type=str(event_type), created_at=now, payload=dict(payload))
        self._repository.add(entry)
        self._repository.prune_older_than(now - timedelta(days=self.rotation_days))
        self._repository.prune_beyond(self.limit)

        level = logging.WARNING if event_type in _WARNING_TYPES else logging.INFO
        log.log(level, "%s: %s", event_type, entry.payload)
        return entry

    def clear(self) -> int:
        removed = self._repository.clear()
        log.info("Cleared %s audit log entries", removed)
        return removed
