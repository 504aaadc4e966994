"""Operator-editable reconciliation settings.

Settings live in the database as one JSON document so that the operator can
change them between passes. They are validated here and turned into a frozen
``ReconciliationConfig`` once per pass.
"""

from __future__ import annotations

import tomllib
from types import MappingProxyType
from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from gumsync.domain.model import ProductPolicy, RemediationAction
from gumsync.domain.reconciliation.settings import (
    DEFAULT_CRON_INTERVAL_SECONDS,
    DEFAULT_LOG_LIMIT,
    DEFAULT_LOG_ROTATION_DAYS,
    DEFAULT_ROLES,
    DEFAULT_SALES_LIMIT,
    ReconciliationConfig,
)
from gumsync.domain.welcome import DEFAULT_EMAIL_SUBJECT, DEFAULT_EMAIL_TEMPLATE, WelcomeTemplate

from .errors import ConfigurationError
from .gumroad import get_access_token_override

if TYPE_CHECKING:
    from collections.abc import Mapping
    from pathlib import Path

    from gumsync.domain.ports import SettingsRepository


def _clean_roles(value: object) -> object:
    if isinstance(value, str):
        value = [value]
    if isinstance(value, list):
        roles: list[str] = []
        for item in value:
            role = str(item).strip()
            if role and role not in roles:
                roles.append(role)
        return roles
    return value


class SettingsModel(BaseModel):
    model_config = ConfigDict(extra="ignore", validate_assignment=True)


class ProductSettings(SettingsModel):
    auto_provision: bool = False
    roles: list[str] = Field(default_factory=list[str])

    _normalize_roles = field_validator("roles", mode="before")(_clean_roles)


class SettingsDocument(SettingsModel):
    access_token: str = ""
    default_roles: list[str] = Field(default_factory=lambda: list(DEFAULT_ROLES))
    products: dict[str, ProductSettings] = Field(default_factory=dict[str, ProductSettings])
    cron_interval: int = Field(default=DEFAULT_CRON_INTERVAL_SECONDS, ge=60)
    sales_limit: int = Field(default=DEFAULT_SALES_LIMIT, ge=1, le=200)
    send_welcome_email: bool = True
    email_subject: str = DEFAULT_EMAIL_SUBJECT
    email_template: str = DEFAULT_EMAIL_TEMPLATE
    site_name: str = ""
    site_url: str = ""
    login_url: str = ""
    password_reset_url: str = ""
    handle_refunds: bool = True
    refund_action: RemediationAction = RemediationAction.REMOVE_ROLES
    handle_subscriptions: bool = True
    subscription_cancellation_action: RemediationAction = RemediationAction.REMOVE_ROLES
    log_limit: int = Field(default=DEFAULT_LOG_LIMIT, ge=1)
    log_rotation_days: int = Field(default=DEFAULT_LOG_ROTATION_DAYS, ge=1)

    _normalize_default_roles = field_validator("default_roles", mode="before")(_clean_roles)

    @field_validator("products", mode="before")
    @classmethod
    def _strip_blank_product_ids(cls, value: object) -> object:
        if isinstance(value, dict):
            return {str(key).strip(): item for key, item in value.items() if str(key).strip()}
        return value

    def to_config(self, *, access_token: str | None = None) -> ReconciliationConfig:
        products = {
            product_id: ProductPolicy(
                auto_provision=entry.auto_provision,
                roles=tuple(entry.roles),
            )
            for product_id, entry in self.products.items()
        }
        return ReconciliationConfig(
            access_token=access_token or self.access_token,
            sales_limit=self.sales_limit,
            cron_interval=self.cron_interval,
            default_roles=tuple(self.default_roles),
            products=MappingProxyType(products),
            send_welcome_email=self.send_welcome_email,
            welcome=WelcomeTemplate(
                subject=self.email_subject,
                body=self.email_template,
                site_name=self.site_name,
                site_url=self.site_url,
                login_url=self.login_url,
                password_reset_url=self.password_reset_url,
            ),
            handle_refunds=self.handle_refunds,
            refund_action=self.refund_action,
            handle_subscriptions=self.handle_subscriptions,
            subscription_cancellation_action=self.subscription_cancellation_action,
            log_limit=self.log_limit,
            log_rotation_days=self.log_rotation_days,
        )


def parse_settings(document: Mapping[str, object] | None) -> SettingsDocument:
    try:
        return SettingsDocument.model_validate(dict(document or {}))
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid reconciliation settings: {exc}") from exc


def load_settings(repository: SettingsRepository) -> SettingsDocument:
    return parse_settings(repository.load())


def load_reconciliation_config(repository: SettingsRepository) -> ReconciliationConfig:
    """Build the per-pass configuration; the environment token wins over the stored one."""

    return load_settings(repository).to_config(access_token=get_access_token_override())


def read_settings_file(path: Path) -> SettingsDocument:
    """Read settings from a TOML file such as ``settings.example.toml``."""

    try:
        with path.open("rb") as handle:
            document = tomllib.load(handle)
    except (OSError, tomllib.TOMLDecodeError) as exc:
        raise ConfigurationError(f"Cannot read settings file {path}: {exc}") from exc
    return parse_settings(document)
