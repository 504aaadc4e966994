"""Port for notifying newly provisioned account holders."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from gumsync.domain.model import Account


@runtime_checkable
class WelcomeNotifier(Protocol):
    """Send the welcome message; return False instead of raising on delivery failure."""

    def send_welcome(self, account: Account, credential: str, product_name: str) -> bool: ...
