"""Tests for SQLAlchemy repositories."""

from __future__ import annotations

from datetime import timedelta

from sqlalchemy.orm import Session  # noqa: TC002

from gumsync.adapters.sqlalchemy.repositories import (
    SqlAlchemyAccountRepository,
    SqlAlchemyAuditLogRepository,
    SqlAlchemyLedgerRepository,
    SqlAlchemySettingsRepository,
    verify_credential,
)
from gumsync.domain.model import Account, AuditLogEntry, ProvisioningRecord
from gumsync.domain.ports import AccountFilter
from tests.helpers.fakes import BASE_TIME, make_sale


def _create(
    repository: SqlAlchemyAccountRepository,
    email: str,
    *,
    sale_id: str,
    roles: tuple[str, ...] = ("customer",),
    product_name: str = "Course",
    offset_days: int = 0,
) -> Account:
    created_at = BASE_TIME + timedelta(days=offset_days)
    account = repository.create(
        username=email,
        credential="s3cret",
        email=email,
        display_name="Buyer",
        created_at=created_at,
    )
    account.roles = roles
    account.provisioning = ProvisioningRecord.from_sale(
        make_sale(sale_id, email=email, product_name=product_name),
        assigned_roles=roles,
        at=created_at,
    )
    repository.save(account)
    return account


def test_account_create_hashes_the_credential(sqlite_session: Session) -> None:
    repository = SqlAlchemyAccountRepository(sqlite_session)

    account = _create(repository, "jane@example.com", sale_id="S1")
    sqlite_session.commit()

    assert account.password_hash != "s3cret"
    assert verify_credential("s3cret", account.password_hash)
    assert not verify_credential("wrong", account.password_hash)


def test_account_round_trips_its_provisioning_record(sqlite_session: Session) -> None:
    repository = SqlAlchemyAccountRepository(sqlite_session)
    account = _create(repository, "jane@example.com", sale_id="S1")
    record = account.provisioning
    assert record is not None
    record.record_purchase(
        make_sale("S2", email="jane@example.com", product_name="Bundle"),
        roles_added=("vip",),
        at=BASE_TIME + timedelta(days=1),
    )
    repository.save(account)
    sqlite_session.commit()
    sqlite_session.expunge_all()

    loaded = repository.get_by_email("jane@example.com")

    assert loaded is not None
    assert loaded.roles == ("customer",)
    loaded_record = loaded.provisioning
    assert loaded_record is not None
    assert loaded_record.assigned_roles == ("customer", "vip")
    assert loaded_record.linked_sale_ids == ("S1", "S2")
    assert loaded_record.raw_payload["id"] == "S1"
    assert loaded_record.created_at == BASE_TIME
    assert [entry.product_name for entry in loaded_record.purchase_history] == ["Bundle"]


def test_unknown_assigned_roles_stay_unknown(sqlite_session: Session) -> None:
    repository = SqlAlchemyAccountRepository(sqlite_session)
    account = _create(repository, "jane@example.com", sale_id="S1")
    assert account.provisioning is not None
    account.provisioning.assigned_roles = None
    repository.save(account)
    sqlite_session.commit()
    sqlite_session.expunge_all()

    loaded = repository.get_by_email("jane@example.com")

    assert loaded is not None
    assert loaded.provisioning is not None
    assert loaded.provisioning.assigned_roles is None


def test_get_by_sale_matches_whole_ids_only(sqlite_session: Session) -> None:
    repository = SqlAlchemyAccountRepository(sqlite_session)
    account = _create(repository, "jane@example.com", sale_id="S10")
    assert account.provisioning is not None
    account.provisioning.link_sale("S20")
    repository.save(account)
    sqlite_session.commit()

    assert repository.get_by_sale("S10") is account
    assert repository.get_by_sale("S20") is account
    assert repository.get_by_sale("S1") is None
    assert repository.get_by_sale("S2") is None


def test_username_exists(sqlite_session: Session) -> None:
    repository = SqlAlchemyAccountRepository(sqlite_session)
    _create(repository, "jane@example.com", sale_id="S1")

    assert repository.username_exists("jane@example.com")
    assert not repository.username_exists("jane@example.com1")


def test_delete_removes_the_account_and_its_record(sqlite_session: Session) -> None:
    repository = SqlAlchemyAccountRepository(sqlite_session)
    account = _create(repository, "jane@example.com", sale_id="S1")
    sqlite_session.commit()

    repository.delete(account)
    sqlite_session.commit()

    assert repository.get_by_email("jane@example.com") is None
    assert repository.get_by_sale("S1") is None


def test_query_provisioned_filters_and_pages(sqlite_session: Session) -> None:
    repository = SqlAlchemyAccountRepository(sqlite_session)
    _create(repository, "ann@example.com", sale_id="S1", offset_days=0)
    _create(repository, "bob@example.com", sale_id="S2", roles=("vip",), offset_days=1)
    _create(repository, "cat@other.org", sale_id="S3", product_name="Bundle", offset_days=2)
    repository.create(
        username="legacy@example.com",
        credential="x",
        email="legacy@example.com",
        display_name="Legacy",
        created_at=BASE_TIME,
    )
    sqlite_session.commit()

    everything, total = repository.query_provisioned(AccountFilter(), offset=0, limit=10)
    assert total == 3
    assert [account.email for account in everything] == [
        "cat@other.org",
        "bob@example.com",
        "ann@example.com",
    ]

    page, total = repository.query_provisioned(AccountFilter(), offset=1, limit=1)
    assert total == 3
    assert [account.email for account in page] == ["bob@example.com"]

    def emails(filters: AccountFilter) -> list[str]:
        items, _ = repository.query_provisioned(filters, offset=0, limit=10)
        return sorted(account.email for account in items)

    assert emails(AccountFilter(email="EXAMPLE")) == ["ann@example.com", "bob@example.com"]
    assert emails(AccountFilter(product="bund")) == ["cat@other.org"]
    assert emails(AccountFilter(sale_id="S2")) == ["bob@example.com"]
    assert emails(AccountFilter(role="vip")) == ["bob@example.com"]
    assert emails(AccountFilter(created_from=BASE_TIME + timedelta(days=1))) == [
        "bob@example.com",
        "cat@other.org",
    ]
    assert emails(AccountFilter(created_to=BASE_TIME)) == ["ann@example.com"]


def test_clear_provisioning_keeps_the_accounts(sqlite_session: Session) -> None:
    repository = SqlAlchemyAccountRepository(sqlite_session)
    _create(repository, "ann@example.com", sale_id="S1")
    _create(repository, "bob@example.com", sale_id="S2")
    sqlite_session.commit()

    assert repository.clear_provisioning() == 2
    sqlite_session.commit()

    account = repository.get_by_email("ann@example.com")
    assert account is not None
    assert account.provisioning is None
    assert account.roles == ("customer",)


def test_ledger_keeps_insertion_order_and_trims_oldest(sqlite_session: Session) -> None:
    repository = SqlAlchemyLedgerRepository(sqlite_session)
    for index in range(5):
        repository.append(f"S{index}")

    assert repository.trim(3) == 2
    assert list(repository.sale_ids()) == ["S2", "S3", "S4"]
    assert repository.trim(3) == 0
    assert repository.contains("S4")
    assert not repository.contains("S0")

    repository.remove("S3")
    assert list(repository.sale_ids()) == ["S2", "S4"]
    assert repository.clear() == 2
    assert list(repository.sale_ids()) == []


def test_audit_log_prunes_by_age_and_count(sqlite_session: Session) -> None:
    repository = SqlAlchemyAuditLogRepository(sqlite_session)
    for index in range(5):
        repository.add(
            AuditLogEntry(
                event_type="Cron completed",
                created_at=BASE_TIME + timedelta(hours=index),
                payload={"index": index},
            )
        )

    assert repository.prune_older_than(BASE_TIME + timedelta(hours=1)) == 1
    assert repository.prune_beyond(2) == 2
    newest = repository.newest(offset=0, limit=10)
    assert [entry.payload["index"] for entry in newest] == [4, 3]
    assert repository.count() == 2
    assert repository.clear() == 2
    assert repository.count() == 0


def test_audit_log_orders_same_timestamp_entries_by_insertion(sqlite_session: Session) -> None:
    repository = SqlAlchemyAuditLogRepository(sqlite_session)
    for index in range(3):
        repository.add(
            AuditLogEntry(event_type="Sale skipped", created_at=BASE_TIME, payload={"i": index})
        )

    assert repository.prune_beyond(2) == 1
    assert [entry.payload["i"] for entry in repository.newest(offset=0, limit=5)] == [2, 1]


def test_settings_document_is_upserted(sqlite_session: Session) -> None:
    repository = SqlAlchemySettingsRepository(sqlite_session)

    assert repository.load() is None
    repository.save({"access_token": "one"})
    repository.save({"access_token": "two", "products": {"P1": {"auto_provision": True}}})
    sqlite_session.commit()

    assert repository.load() == {
        "access_token": "two",
        "products": {"P1": {"auto_provision": True}},
    }
    repository.clear()
    assert repository.load() is None
