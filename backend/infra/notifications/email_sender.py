# ============================================================
# Module : backend/infra/notifications/email_sender.py
# Objet  : Livraison des e-mails transactionnels (API HTTP ou log).
# Contexte : la livraison est best-effort; toute erreur devient
#            NotificationFailure, que l'appelant journalise.
# ============================================================

from __future__ import annotations

import httpx
import structlog

from backend.core.settings import Settings
from backend.domain.errors import NotificationFailure
from backend.domain.notifications import EmailMessage


class LogEmailSender:
    """Pas d'API configurée: l'e-mail est seulement journalisé."""

    def __init__(self) -> None:
        self._log = structlog.get_logger(__name__).bind(component="log_email_sender")

    def send(self, message: EmailMessage) -> None:
        self._log.info("email_mock", to=message.to, subject=message.subject)


class HttpEmailSender:
    """Client d'envoi vers une API e-mail JSON (format Resend: from/to/subject/html)."""

    def __init__(
        self,
        api_url: str,
        api_key: str | None,
        sender: str,
        timeout_seconds: float = 5.0,
        client: httpx.Client | None = None,
    ) -> None:
        self.api_url = api_url
        self.sender = sender
        headers: dict[str, str] = {"Content-Type": "application/json"}
        if api_key:
            headers["Authorization"] = f"Bearer {api_key}"
        self._client = client or httpx.Client(
            headers=headers, timeout=httpx.Timeout(timeout_seconds)
        )
        self._log = structlog.get_logger(__name__).bind(component="http_email_sender")

    def send(self, message: EmailMessage) -> None:
        payload = {
            "from": self.sender,
            "to": message.to,
            "subject": message.subject,
            "html": message.html,
        }
        try:
            resp = self._client.post(self.api_url, json=payload)
        except httpx.HTTPError as exc:
            raise NotificationFailure(f"Email delivery failed: {type(exc).__name__}") from exc
        if resp.status_code >= 400:
            raise NotificationFailure(
                "Email delivery rejected", details={"status_code": resp.status_code}
            )
        self._log.info("email_sent", to=message.to, subject=message.subject)


def build_email_sender(settings: Settings) -> LogEmailSender | HttpEmailSender:
    if settings.EMAIL_API_URL:
        return HttpEmailSender(
            api_url=settings.EMAIL_API_URL,
            api_key=settings.EMAIL_API_KEY,
            sender=settings.EMAIL_FROM,
            timeout_seconds=settings.EMAIL_TIMEOUT_SECONDS,
        )
    return LogEmailSender()
