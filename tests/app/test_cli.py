from __future__ import annotations

from datetime import UTC, datetime
from typing import TYPE_CHECKING

import pytest

from gumsync.app import PURGE_CONFIRMATION, ReconciliationService
from gumsync.domain.model import Product
from gumsync.domain.ports import AccountFilter
from gumsync.domain.reconciliation import PassSummary
from gumsync.ui import cli
from tests.helpers.fakes import FakeSaleSource, FakeUnitOfWork, FixedClock, make_sale

if TYPE_CHECKING:
    from pathlib import Path

SETTINGS: dict[str, object] = {
    "access_token": "abcdef123456",
    "products": {"P1": {"auto_provision": True, "roles": ["customer"]}},
}


@pytest.fixture
def uow() -> FakeUnitOfWork:
    return FakeUnitOfWork(SETTINGS)


@pytest.fixture
def service(monkeypatch: pytest.MonkeyPatch, uow: FakeUnitOfWork) -> ReconciliationService:
    service = ReconciliationService(
        unit_of_work_factory=lambda: uow,
        source=FakeSaleSource([make_sale("S1")]),
        notifier_factory=None,
        clock=FixedClock(),
    )
    monkeypatch.setattr(cli, "build_service", lambda: service)
    return service


def test_run_command_runs_one_pass(monkeypatch: pytest.MonkeyPatch) -> None:
    calls: list[str] = []

    def fake_pass() -> PassSummary:
        calls.append("run")
        return PassSummary(total=1, created=1)

    monkeypatch.setattr(cli, "run_reconciliation_pass", fake_pass)

    cli.main(["run"])

    assert calls == ["run"]


def test_aborted_pass_exits_with_an_error(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(
        cli, "run_reconciliation_pass", lambda: PassSummary(fetch_error="Access token not set")
    )

    with pytest.raises(SystemExit) as excinfo:
        cli.main(["run"])

    assert excinfo.value.code == 1


def test_verify_prints_the_account_name(
    monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    seen: list[str | None] = []

    def fake_verify(token: str | None) -> str:
        seen.append(token)
        return "Example Shop"

    monkeypatch.setattr(cli, "verify_credential", fake_verify)

    cli.main(["verify", "--token", "abc"])

    assert seen == ["abc"]
    assert "Connected to Gumroad as Example Shop" in capsys.readouterr().out


def test_products_lists_the_catalogue(
    monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    monkeypatch.setattr(
        cli, "list_products", lambda _token: [Product(id="P1", name="Course", published=True)]
    )

    cli.main(["products"])

    assert "P1\tCourse\tpublished" in capsys.readouterr().out


def test_accounts_list_passes_filters(
    service: ReconciliationService, capsys: pytest.CaptureFixture[str]
) -> None:
    service.run_pass()

    cli.main(["accounts", "list", "--email", "jane", "--role", "customer"])

    out = capsys.readouterr().out
    assert "jane.doe@example.com\tcustomer\tCourse\tS1" in out
    assert "-- page 1/1, 1 accounts" in out


def test_accounts_list_parses_timestamps(monkeypatch: pytest.MonkeyPatch) -> None:
    captured: dict[str, object] = {}

    class _Service:
        def read_provisioned_accounts(self, filters: object, **kwargs: object) -> object:
            captured["filters"] = filters
            captured.update(kwargs)
            raise RuntimeError("stop")

    monkeypatch.setattr(cli, "build_service", _Service)

    with pytest.raises(SystemExit):
        cli.main(
            [
                "accounts",
                "list",
                "--from",
                "2025-01-01T03:00:00+03:00",
                "--to",
                "2025-01-02T00:00:00Z",
                "--page",
                "2",
            ]
        )

    filters = captured["filters"]
    assert isinstance(filters, AccountFilter)
    assert filters.created_from == datetime(2025, 1, 1, 0, 0, tzinfo=UTC)
    assert filters.created_to == datetime(2025, 1, 2, 0, 0, tzinfo=UTC)
    assert captured["page"] == 2


@pytest.mark.parametrize(
    "argv",
    [
        ["accounts", "list", "--from", "not-a-date"],
        ["accounts", "list", "--from", "2025-02-01", "--to", "2025-01-01"],
    ],
)
def test_invalid_account_filters_exit_with_usage_error(argv: list[str]) -> None:
    with pytest.raises(SystemExit) as excinfo:
        cli.main(argv)

    assert excinfo.value.code == 2


def test_logs_list_and_clear(
    service: ReconciliationService, uow: FakeUnitOfWork, capsys: pytest.CaptureFixture[str]
) -> None:
    service.run_pass()

    cli.main(["logs", "list", "--per-page", "1"])
    out = capsys.readouterr().out
    assert "Cron completed" in out
    assert "-- page 1/2, 2 entries" in out

    cli.main(["logs", "clear"])
    assert uow.audit_log.entries == []


def test_settings_show_masks_the_token(
    service: ReconciliationService, capsys: pytest.CaptureFixture[str]
) -> None:
    _ = service

    cli.main(["settings", "show"])

    out = capsys.readouterr().out
    assert "access_token = abcd********" in out
    assert "abcdef123456" not in out
    assert "email_template" not in out


def test_settings_import_replaces_the_document(
    service: ReconciliationService, uow: FakeUnitOfWork, tmp_path: Path
) -> None:
    path = tmp_path / "settings.toml"
    path.write_text(
        'access_token = "new-token"\n'
        "cron_interval = 300\n"
        "\n"
        "[products.P7]\n"
        "auto_provision = true\n"
        'roles = ["member"]\n'
    )

    cli.main(["settings", "import", str(path)])

    assert uow.settings.document is not None
    assert uow.settings.document["access_token"] == "new-token"
    assert service.poll_interval() == 300.0
    assert uow.settings.document["products"] == {
        "P7": {"auto_provision": True, "roles": ["member"]}
    }


def test_settings_import_of_a_missing_file_fails(service: ReconciliationService) -> None:
    _ = service

    with pytest.raises(SystemExit) as excinfo:
        cli.main(["settings", "import", "/nonexistent/settings.toml"])

    assert excinfo.value.code == 1


def test_purge_requires_confirmation(service: ReconciliationService, uow: FakeUnitOfWork) -> None:
    service.run_pass()

    with pytest.raises(SystemExit) as excinfo:
        cli.main(["purge", "--confirm", "yes"])
    assert excinfo.value.code == 1
    assert uow.ledger.entries == ["S1"]

    cli.main(["purge", "--confirm", PURGE_CONFIRMATION])
    assert uow.ledger.entries == []
