"""Creates accounts for new buyers and extends the roles of returning ones."""

from __future__ import annotations

import re
import secrets
from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING

from gumsync.common.clock import utcnow
from gumsync.domain.errors import (
    AccountCreateConflictError,
    InvalidEmailError,
    NoRolesConfiguredError,
    PolicyDisabledError,
)
from gumsync.domain.model import ProvisioningRecord

if TYPE_CHECKING:
    from collections.abc import Callable

    from gumsync.common.clock import Clock
    from gumsync.domain.model import Account, ProvisioningDecision, SaleEvent
    from gumsync.domain.ports import AccountRepository

log = getLogger(__name__)

CREDENTIAL_BYTES = 24
MAX_USERNAME_ATTEMPTS = 1000

_EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
_NAME_SEPARATORS = re.compile(r"[._\-\d]+")


def normalize_email(value: str) -> str:
    email = value.strip().lower()
    if not email or not _EMAIL_PATTERN.match(email):
        raise InvalidEmailError(f"Invalid buyer email: {value!r}")
    return email


def derive_display_name(email: str) -> str:
    """Guess a first name from the local part: ``jane.doe42`` becomes ``Jane Doe``."""

    local_part = email.split("@", 1)[0]
    words = _NAME_SEPARATORS.sub(" ", local_part).split()
    name = " ".join(words).title()
    return name or local_part.capitalize()


def generate_credential() -> str:
    return secrets.token_urlsafe(CREDENTIAL_BYTES)


@dataclass(slots=True)
class ProvisionOutcome:
    """``credential`` is the plaintext password of a newly created account."""

    account: Account
    created: bool
    roles_added: tuple[str, ...] = ()
    credential: str | None = field(default=None, repr=False)

    @property
    def changed(self) -> bool:
        return self.created or bool(self.roles_added)


class AccountProvisioner:
    def __init__(
        self,
        accounts: AccountRepository,
        *,
        clock: Clock = utcnow,
        credential_factory: Callable[[], str] = generate_credential,
    ) -> None:
        self._accounts = accounts
        self._clock = clock
        self._credential_factory = credential_factory

    def provision(self, event: SaleEvent, decision: ProvisioningDecision) -> ProvisionOutcome:
        email = normalize_email(event.email)
        if not decision.auto_provision:
            raise PolicyDisabledError(f"Product {event.product_id!r} is not auto-provisioned")
        if not decision.roles:
            raise NoRolesConfiguredError(f"No roles configured for product {event.product_id!r}")

        account = self._accounts.get_by_email(email)
        if account is None:
            return self._create(event, decision, email)
        return self._augment(account, event, decision)

    def _create(
        self,
        event: SaleEvent,
        decision: ProvisioningDecision,
        email: str,
    ) -> ProvisionOutcome:
        now = self._clock()
        credential = self._credential_factory()
        account = self._accounts.create(
            username=self._unique_username(email),
            credential=credential,
            email=email,
            display_name=derive_display_name(email),
            created_at=now,
        )
        primary, *others = decision.roles
        account.set_primary_role(primary)
        for role in others:
            account.add_role(role)
        account.provisioning = ProvisioningRecord.from_sale(
            event,
            assigned_roles=decision.roles,
            at=now,
        )
        self._accounts.save(account)
        log.info("Created account %s for sale %s", account.username, event.sale_id)
        return ProvisionOutcome(
            account=account,
            created=True,
            roles_added=tuple(account.roles),
            credential=credential,
        )

    def _augment(
        self,
        account: Account,
        event: SaleEvent,
        decision: ProvisioningDecision,
    ) -> ProvisionOutcome:
        now = self._clock()
        record = account.provisioning
        if record is None:
            # The account predates this system; nothing it holds was granted here.
            record = ProvisioningRecord.from_sale(event, assigned_roles=(), at=now)
            account.provisioning = record

        missing = account.missing_roles(decision.roles)
        if missing:
            for role in missing:
                account.add_role(role)
            record.record_purchase(event, roles_added=missing, at=now)
            log.info("Added roles %s to %s for sale %s", missing, account.username, event.sale_id)
        else:
            record.link_sale(event.sale_id)
        self._accounts.save(account)
        return ProvisionOutcome(account=account, created=False, roles_added=missing)

    def _unique_username(self, email: str) -> str:
        if not self._accounts.username_exists(email):
            return email
        for suffix in range(1, MAX_USERNAME_ATTEMPTS + 1):
            candidate = f"{email}{suffix}"
            if not self._accounts.username_exists(candidate):
                return candidate
        raise AccountCreateConflictError(f"No free username derived from {email!r}")
