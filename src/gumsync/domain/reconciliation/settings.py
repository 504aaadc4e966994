"""Immutable per-pass reconciliation configuration."""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import TYPE_CHECKING

from gumsync.domain.model import ProductPolicy, RemediationAction
from gumsync.domain.welcome import WelcomeTemplate

if TYPE_CHECKING:
    from collections.abc import Mapping

DEFAULT_ROLES: tuple[str, ...] = ("subscriber",)
DEFAULT_CRON_INTERVAL_SECONDS = 120
DEFAULT_SALES_LIMIT = 50
DEFAULT_LOG_LIMIT = 500
DEFAULT_LOG_ROTATION_DAYS = 30
LEDGER_CAPACITY = 1000


def _no_products() -> Mapping[str, ProductPolicy]:
    return MappingProxyType({})


@dataclass(frozen=True, slots=True, kw_only=True)
class ReconciliationConfig:
    """Settings read once at the start of a pass; nothing mutates them mid-pass."""

    access_token: str = ""
    sales_limit: int = DEFAULT_SALES_LIMIT
    cron_interval: int = DEFAULT_CRON_INTERVAL_SECONDS
    default_roles: tuple[str, ...] = DEFAULT_ROLES
    products: Mapping[str, ProductPolicy] = field(default_factory=_no_products)
    send_welcome_email: bool = True
    welcome: WelcomeTemplate = field(default_factory=WelcomeTemplate)
    handle_refunds: bool = True
    refund_action: RemediationAction = RemediationAction.REMOVE_ROLES
    handle_subscriptions: bool = True
    subscription_cancellation_action: RemediationAction = RemediationAction.REMOVE_ROLES
    log_limit: int = DEFAULT_LOG_LIMIT
    log_rotation_days: int = DEFAULT_LOG_ROTATION_DAYS
