"""
Serveur de développement local.

Exécute les tâches Celery dans le process (mode eager) et crée le schéma SQLite si besoin, pour
utiliser l'API sans broker ni migration.
"""

import os

# Defaults locaux AVANT l'import des modules applicatifs
os.environ.setdefault("CELERY_TASK_ALWAYS_EAGER", "true")

import uvicorn

from backend.app.main import app
from backend.core.container import container
from backend.infra.repo.models import Base


def main():
    """Point d'entrée: schéma local puis uvicorn sur APP_HOST/APP_PORT."""
    if container.engine.dialect.name == "sqlite":
        Base.metadata.create_all(container.engine)
    settings = container.settings
    uvicorn.run(app, host=settings.APP_HOST, port=settings.APP_PORT, reload=False)


if __name__ == "__main__":
    main()
