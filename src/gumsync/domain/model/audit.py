"""Audit log records."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from datetime import datetime


@dataclass(eq=False, kw_only=True)
class AuditLogEntry:
    """One reconciliation outcome as shown to operators."""

    event_type: str
    created_at: datetime
    payload: dict[str, object] = field(default_factory=dict[str, object])
    id: int | None = None
