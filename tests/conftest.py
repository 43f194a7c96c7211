"""Configuration de test pour pytest: chemins, base SQLite temporaire et données de référence.

Les variables d'environnement sont posées AVANT tout import `backend...` (les settings sont lus à
l'import du conteneur et de l'app Celery).
"""

import os
import sys
from types import SimpleNamespace

import pytest

# Ensure project root is on sys.path so that
# imports like `from backend...` resolve.
CURRENT_DIR = os.path.dirname(__file__)
PROJECT_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, ".."))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

os.environ["APP_ENV"] = "test"
os.environ["DATABASE_URL"] = "sqlite+pysqlite:///:memory:"
os.environ["CELERY_BROKER_URL"] = "memory://"
os.environ["CELERY_RESULT_BACKEND"] = "cache+memory://"
os.environ.pop("REDIS_URL", None)
os.environ.pop("EMAIL_API_URL", None)

from backend.app.celery_app import celery_app  # noqa: E402
from backend.core.container import container  # noqa: E402
from backend.domain.auth import create_access_token  # noqa: E402
from backend.infra.repo.models import Base, CompanyORM, ProjectORM, UserORM  # noqa: E402


@pytest.fixture()
def db(tmp_path):
    """Relie le conteneur à une base SQLite fichier neuve, schéma créé."""
    previous = container.database_url
    container.use_database(f"sqlite+pysqlite:///{tmp_path / 'prdflow-test.db'}")
    Base.metadata.create_all(container.engine)
    yield container
    container.engine.dispose()
    container.use_database(previous)


@pytest.fixture()
def session_factory(db):
    return db.session_factory


@pytest.fixture()
def seed(session_factory):
    """Deux companies isolées: A (auteur, approbateur, projet) et B (un projet)."""
    ids = SimpleNamespace(
        company_a="company-a",
        company_b="company-b",
        author="user-author",
        approver="user-approver",
        outsider="user-outsider",
        project_a="project-a",
        project_b="project-b",
    )
    session = session_factory()
    session.add_all(
        [
            CompanyORM(id=ids.company_a, name="Acme"),
            CompanyORM(id=ids.company_b, name="Globex"),
        ]
    )
    session.flush()
    session.add_all(
        [
            UserORM(
                id=ids.author,
                company_id=ids.company_a,
                email="author@acme.io",
                full_name="Ada Author",
                role="developer",
            ),
            UserORM(
                id=ids.approver,
                company_id=ids.company_a,
                email="approver@acme.io",
                full_name="Alex Approver",
                role="admin",
            ),
            UserORM(
                id=ids.outsider,
                company_id=ids.company_b,
                email="someone@globex.io",
                full_name="Sam Globex",
                role="admin",
            ),
            ProjectORM(id=ids.project_a, company_id=ids.company_a, name="Billing"),
            ProjectORM(id=ids.project_b, company_id=ids.company_b, name="Other"),
        ]
    )
    session.commit()
    session.close()
    return ids


@pytest.fixture()
def eager_celery():
    """Exécute les tâches dans le process (envoi après commit → exécution immédiate)."""
    import backend.tasks.document_tasks  # noqa: F401

    previous = celery_app.conf.task_always_eager
    celery_app.conf.task_always_eager = True
    yield celery_app
    celery_app.conf.task_always_eager = previous


def make_token(sub: str, email: str, company_id: str | None, role: str = "developer") -> str:
    return create_access_token(
        secret=container.settings.JWT_SECRET,
        alg=container.settings.JWT_ALG,
        expires_min=5,
        payload={"sub": sub, "email": email, "company_id": company_id, "role": role},
    )


def auth_header(sub: str, email: str, company_id: str | None, role: str = "developer") -> dict:
    return {"Authorization": f"Bearer {make_token(sub, email, company_id, role)}"}


@pytest.fixture()
def auth():
    """Fabrique d'en-têtes Authorization: `auth(sub, email, company_id, role)`."""
    return auth_header
