from __future__ import annotations

import pytest

from gumsync.domain.model import AuditEventType
from gumsync.domain.reconciliation import AuditLog
from tests.helpers.fakes import FixedClock, InMemoryAuditLogRepository


def test_append_stores_the_payload_with_the_current_time() -> None:
    repository = InMemoryAuditLogRepository()
    clock = FixedClock()

    entry = AuditLog(repository, clock=clock).append(
        AuditEventType.USER_CREATED, {"email": "jane@example.com"}
    )

    assert entry.event_type == "User created"
    assert entry.created_at == clock.now
    assert repository.entries == [entry]


def test_entries_beyond_the_limit_are_dropped_oldest_first() -> None:
    repository = InMemoryAuditLogRepository()
    audit = AuditLog(repository, limit=3, clock=FixedClock())

    for index in range(5):
        audit.append(AuditEventType.PASS_COMPLETED, {"index": index})

    assert [entry.payload["index"] for entry in repository.entries] == [2, 3, 4]


def test_entries_older_than_the_rotation_window_are_dropped() -> None:
    repository = InMemoryAuditLogRepository()
    clock = FixedClock()
    audit = AuditLog(repository, rotation_days=30, clock=clock)
    audit.append(AuditEventType.PASS_COMPLETED, {"index": "old"})
    clock.advance(days=31)

    audit.append(AuditEventType.PASS_COMPLETED, {"index": "new"})

    assert [entry.payload["index"] for entry in repository.entries] == ["new"]


def test_clear_reports_how_many_entries_were_removed() -> None:
    repository = InMemoryAuditLogRepository()
    audit = AuditLog(repository, clock=FixedClock())
    audit.append(AuditEventType.PASS_COMPLETED, {})
    audit.append(AuditEventType.PASS_COMPLETED, {})

    assert audit.clear() == 2
    assert repository.entries == []


@pytest.mark.parametrize(("limit", "rotation_days"), [(0, 30), (500, 0)])
def test_retention_settings_must_be_positive(limit: int, rotation_days: int) -> None:
    with pytest.raises(ValueError, match="positive"):
        AuditLog(InMemoryAuditLogRepository(), limit=limit, rotation_days=rotation_days)
