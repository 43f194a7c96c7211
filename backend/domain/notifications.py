"""Contrat de notification du workflow documentaire et rendu des e-mails.

Le dispatcher est "fire-and-forget": l'appel ne fait qu'émettre la demande. La livraison est
best-effort et ses échecs sont journalisés, jamais remontés au chemin de requête.
"""

from __future__ import annotations

from dataclasses import dataclass
from html import escape
from typing import Protocol


class NotificationDispatcher(Protocol):
    """Interface consommée par le moteur de workflow."""

    def notify_document_created(
        self,
        recipient_email: str,
        recipient_name: str,
        document_title: str,
        document_id: str,
        project_name: str,
    ) -> None: ...

    def notify_document_decided(
        self,
        recipient_email: str,
        recipient_name: str,
        document_title: str,
        document_id: str,
        status: str,
        reason: str | None = None,
    ) -> None: ...


@dataclass(frozen=True)
class EmailMessage:
    to: str
    subject: str
    html: str


_BUTTON_STYLE = (
    "background-color: #4F46E5; color: white; padding: 12px 24px; "
    "text-decoration: none; border-radius: 6px; display: inline-block;"
)


def document_link(base_url: str, document_id: str) -> str:
    return f"{base_url.rstrip('/')}/prd-designer/{document_id}"


def render_document_created(
    *,
    base_url: str,
    recipient_email: str,
    recipient_name: str,
    document_title: str,
    document_id: str,
    project_name: str,
) -> EmailMessage:
    """E-mail "nouveau document créé" envoyé au créateur."""
    link = document_link(base_url, document_id)
    html = (
        "<h2>New PRD Created</h2>"
        f"<p>Hi {escape(recipient_name or recipient_email)},</p>"
        f"<p>A new PRD \"<strong>{escape(document_title)}</strong>\" has been created "
        f"for the project \"{escape(project_name)}\".</p>"
        f"<p><a href=\"{escape(link)}\" style=\"{_BUTTON_STYLE}\">View PRD</a></p>"
    )
    return EmailMessage(to=recipient_email, subject=f"New PRD created: {document_title}", html=html)


def render_document_decided(
    *,
    base_url: str,
    recipient_email: str,
    recipient_name: str,
    document_title: str,
    document_id: str,
    status: str,
    reason: str | None = None,
) -> EmailMessage:
    """E-mail "document approuvé/rejeté" envoyé au créateur."""
    link = document_link(base_url, document_id)
    message = f"Your PRD \"{escape(document_title)}\" has been {escape(status)}"
    if reason:
        message += f": {escape(reason)}"
    html = (
        f"<h2>PRD {escape(status.capitalize())}</h2>"
        f"<p>Hi {escape(recipient_name or recipient_email)},</p>"
        f"<p>{message}.</p>"
        f"<p><a href=\"{escape(link)}\" style=\"{_BUTTON_STYLE}\">View PRD</a></p>"
    )
    return EmailMessage(
        to=recipient_email,
        subject=f"PRD {status}: {document_title}",
        html=html,
    )
