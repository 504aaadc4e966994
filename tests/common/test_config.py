from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from gumsync.config import (
    ConfigurationError,
    MissingConfigurationError,
    env_flag,
    get_smtp_config,
    optional_env_var,
    require_env_vars,
)
from gumsync.config.reconciliation import parse_settings, read_settings_file
from gumsync.domain.model import RemediationAction
from gumsync.domain.reconciliation import DEFAULT_CRON_INTERVAL_SECONDS

if TYPE_CHECKING:
    from pathlib import Path


def test_require_env_vars_returns_values(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("EXAMPLE_VAR", "value")

    assert require_env_vars(["EXAMPLE_VAR"]) == {"EXAMPLE_VAR": "value"}


def test_require_env_vars_lists_every_missing_name(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("MISSING_A", raising=False)
    monkeypatch.setenv("MISSING_B", "   ")

    with pytest.raises(MissingConfigurationError) as exc:
        require_env_vars(["MISSING_B", "MISSING_A"])

    assert exc.value.names == ("MISSING_A", "MISSING_B")
    assert "MISSING_A, MISSING_B" in str(exc.value)


def test_optional_env_var_strips_and_treats_blank_as_unset(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    monkeypatch.setenv("EXAMPLE_VAR", "  value ")
    monkeypatch.setenv("BLANK_VAR", "  ")

    assert optional_env_var("EXAMPLE_VAR") == "value"
    assert optional_env_var("BLANK_VAR") is None


@pytest.mark.parametrize(
    ("raw", "expected"), [("1", True), ("Yes", True), ("off", False), ("FALSE", False)]
)
def test_env_flag_parses_booleans(
    monkeypatch: pytest.MonkeyPatch, raw: str, expected: bool
) -> None:
    monkeypatch.setenv("EXAMPLE_FLAG", raw)

    assert env_flag("EXAMPLE_FLAG", default=not expected) is expected


def test_env_flag_rejects_garbage(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("EXAMPLE_FLAG", "maybe")

    with pytest.raises(ConfigurationError):
        env_flag("EXAMPLE_FLAG", default=True)


def test_smtp_config_needs_a_sender(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("SMTP_HOST", "smtp.example.com")

    with pytest.raises(MissingConfigurationError, match="SMTP_FROM_ADDRESS"):
        get_smtp_config()


def test_smtp_config_rejects_a_bad_port(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("SMTP_HOST", "smtp.example.com")
    monkeypatch.setenv("SMTP_FROM_ADDRESS", "shop@example.com")
    monkeypatch.setenv("SMTP_PORT", "submission")

    with pytest.raises(ConfigurationError, match="SMTP_PORT"):
        get_smtp_config()


def test_parse_settings_defaults() -> None:
    settings = parse_settings(None)

    assert settings.access_token == ""
    assert settings.cron_interval == DEFAULT_CRON_INTERVAL_SECONDS
    assert settings.products == {}
    assert settings.refund_action is RemediationAction.REMOVE_ROLES


def test_parse_settings_cleans_roles_and_product_ids() -> None:
    settings = parse_settings(
        {
            "default_roles": " member ",
            "products": {
                " P1 ": {"auto_provision": True, "roles": ["vip", " vip", "", "gold"]},
                "  ": {"auto_provision": True},
            },
        }
    )

    assert settings.default_roles == ["member"]
    assert list(settings.products) == ["P1"]
    assert settings.products["P1"].roles == ["vip", "gold"]


@pytest.mark.parametrize(
    "document",
    [
        {"cron_interval": 30},
        {"sales_limit": 0},
        {"sales_limit": 500},
        {"refund_action": "ban_user"},
        {"log_limit": 0},
    ],
)
def test_parse_settings_rejects_out_of_range_values(document: dict[str, object]) -> None:
    with pytest.raises(ConfigurationError, match="Invalid reconciliation settings"):
        parse_settings(document)


def test_to_config_prefers_an_explicit_token() -> None:
    settings = parse_settings(
        {
            "access_token": "stored",
            "products": {"P1": {"auto_provision": True, "roles": ["customer"]}},
            "subscription_cancellation_action": "delete_account",
            "site_name": "Example Shop",
            "password_reset_url": "https://shop.example.com/password-reset",
        }
    )

    config = settings.to_config(access_token="from-env")

    assert config.access_token == "from-env"
    assert config.products["P1"].roles == ("customer",)
    assert config.subscription_cancellation_action is RemediationAction.DELETE_ACCOUNT
    assert config.welcome.site_name == "Example Shop"
    assert config.welcome.password_reset_url == "https://shop.example.com/password-reset"
    assert settings.to_config().access_token == "stored"


def test_read_settings_file(tmp_path: Path) -> None:
    path = tmp_path / "settings.toml"
    path.write_text('access_token = "abc"\nsales_limit = 25\n')

    settings = read_settings_file(path)

    assert settings.access_token == "abc"
    assert settings.sales_limit == 25


def test_read_settings_file_reports_bad_toml(tmp_path: Path) -> None:
    path = tmp_path / "settings.toml"
    path.write_text("access_token = \n")

    with pytest.raises(ConfigurationError, match="Cannot read settings file"):
        read_settings_file(path)
