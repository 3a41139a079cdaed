"""Outbound email. Sending is best-effort: failures are logged and reported as False."""
import logging
from abc import ABC, abstractmethod

import httpx

from perfreview.core.config import Settings

logger = logging.getLogger(__name__)

RESEND_API_URL = "https://api.resend.com/emails"


def split_recipients(to: str | list[str]) -> list[str]:
    if isinstance(to, str):
        to = to.split(",")
    return [addr.strip() for addr in to if addr and addr.strip()]


class Mailer(ABC):
    @abstractmethod
    def send(self, to: str | list[str], subject: str, html: str) -> bool: ...

    def close(self) -> None:
        pass


class LogMailer(Mailer):
    """Development mailer: nothing leaves the process."""

    def send(self, to, subject, html) -> bool:
        logger.info(
            "Mock email",
            extra={"to": split_recipients(to), "subject": subject, "html_length": len(html)},
        )
        return True


class ResendMailer(Mailer):
    def __init__(
        self,
        api_key: str,
        sender: str,
        timeout_seconds: float = 10.0,
        client: httpx.Client | None = None,
    ):
        self.api_key = api_key
        self.sender = sender
        self._client = client or httpx.Client(timeout=timeout_seconds)

    def send(self, to, subject, html) -> bool:
        recipients = split_recipients(to)
        if not recipients:
            logger.warning("Email skipped, no recipients", extra={"subject": subject})
            return False

        try:
            response = self._client.post(
                RESEND_API_URL,
                json={"from": self.sender, "to": recipients, "subject": subject, "html": html},
                headers={"Authorization": f"Bearer {self.api_key}"},
            )
        except httpx.HTTPError as e:
            logger.error("Email send error", extra={"subject": subject, "error": str(e)})
            return False

        if response.is_success:
            logger.info(
                "Email sent",
                extra={"subject": subject, "recipients": len(recipients), "status_code": response.status_code},
            )
            return True

        logger.warning(
            "Email rejected",
            extra={
                "subject": subject,
                "status_code": response.status_code,
                "response_text": response.text[:200],
            },
        )
        return False

    def close(self) -> None:
        self._client.close()


def build_mailer(settings: Settings) -> Mailer:
    if settings.RESEND_API_KEY:
        return ResendMailer(
            api_key=settings.RESEND_API_KEY,
            sender=settings.EMAIL_FROM,
            timeout_seconds=settings.EMAIL_TIMEOUT_SECONDS,
        )
    return LogMailer()
