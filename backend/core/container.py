"""
Conteneur d'injection de dépendances et configuration application.

Instancie les composants centraux (settings, moteur SQL, fabrique de sessions, dispatcher de
notifications, expéditeur d'e-mails) et expose un singleton `container` utilisé par le reste
de l'application (routes, tâches Celery).
"""

from __future__ import annotations

from sqlalchemy.orm import Session

from backend.core.settings import Settings, get_settings
from backend.domain.workflow import DocumentWorkflowEngine
from backend.infra.notifications.dispatcher import CeleryNotificationDispatcher
from backend.infra.notifications.email_sender import build_email_sender
from backend.infra.repo.db import get_engine, get_session_factory

DEFAULT_DATABASE_URL = "sqlite:///./prdflow.db"


class Container:
    def __init__(self, settings: Settings | None = None):
        self.settings = settings or get_settings()
        self.use_database(self.settings.DATABASE_URL or DEFAULT_DATABASE_URL)
        self.notifier = CeleryNotificationDispatcher()
        self.email_sender = build_email_sender(self.settings)

    def use_database(self, database_url: str) -> None:
        """(Re)lie le conteneur à une base (tests: sqlite temporaire)."""
        self.database_url = database_url
        self.engine = get_engine(database_url)
        self.session_factory = get_session_factory(self.engine)

    def workflow(self, session: Session) -> DocumentWorkflowEngine:
        """Moteur de workflow lié à la session (une unité de travail)."""
        return DocumentWorkflowEngine(
            session,
            self.notifier,
            max_version_attempts=self.settings.VERSION_BUMP_MAX_ATTEMPTS,
            max_page_size=self.settings.MAX_PAGE_SIZE,
        )


container = Container()
