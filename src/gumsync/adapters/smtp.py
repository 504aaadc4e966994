"""SMTP delivery of welcome messages."""

from __future__ import annotations

import smtplib
from collections.abc import Callable
from dataclasses import dataclass, field
from email.message import EmailMessage
from logging import getLogger
from typing import TYPE_CHECKING

from gumsync.config.notification import get_smtp_config
from gumsync.domain.ports import WelcomeNotifier

if TYPE_CHECKING:
    from gumsync.config.notification import SmtpConfig
    from gumsync.domain.model import Account
    from gumsync.domain.welcome import WelcomeTemplate

log = getLogger(__name__)

type SmtpFactory = Callable[[SmtpConfig], smtplib.SMTP]


def _default_smtp_factory(config: SmtpConfig) -> smtplib.SMTP:
    return smtplib.SMTP(config.host, config.port, timeout=config.timeout_seconds)


@dataclass(slots=True)
class SmtpWelcomeNotifier(WelcomeNotifier):
    """Renders the welcome template and sends it as an HTML message.

    Delivery problems are logged and reported as ``False``; they never
    interrupt provisioning.
    """

    config: SmtpConfig
    template: WelcomeTemplate
    smtp_factory: SmtpFactory = field(default=_default_smtp_factory)

    def send_welcome(self, account: Account, credential: str, product_name: str) -> bool:
        subject, body = self.template.render(
            username=account.username,
            credential=credential,
            email=account.email,
            product_name=product_name,
        )
        message = EmailMessage()
        message["Subject"] = subject
        message["From"] = self.config.from_address
        message["To"] = account.email
        message.set_content("This message requires an HTML capable mail client.")
        message.add_alternative(body, subtype="html")

        try:
            with self.smtp_factory(self.config) as client:
                if self.config.starttls:
                    client.starttls()
                if self.config.username and self.config.password:
                    client.login(self.config.username, self.config.password)
                client.send_message(message)
        except (smtplib.SMTPException, OSError) as exc:
            log.warning("Could not send welcome message to %s: %s", account.email, exc)
            return False
        log.info("Sent welcome message to %s", account.email)
        return True


def build_welcome_notifier(template: WelcomeTemplate) -> SmtpWelcomeNotifier | None:
    """Return an SMTP notifier, or ``None`` when SMTP is not configured."""

    config = get_smtp_config()
    if config is None:
        log.debug("SMTP_HOST not set; welcome messages are disabled")
        return None
    return SmtpWelcomeNotifier(config=config, template=template)
