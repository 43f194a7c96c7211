"""Configuration de logging basée sur structlog.

Objectif du module
------------------
- Fournir une configuration de logs structurés lisibles en développement.
- Fusionner le contexte de requête (request_id) lié via `structlog.contextvars`.
"""

import logging
import sys

import structlog


def setup_logging(level: int = logging.DEBUG, json_output: bool = False) -> None:
    """Configure structlog pour produire des logs détaillés et filtrables.

    Args:
        level: niveau minimal émis.
        json_output: rendu JSON (prod) au lieu du rendu console (dev).
    """
    renderer = (
        structlog.processors.JSONRenderer() if json_output else structlog.dev.ConsoleRenderer()
    )
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.TimeStamper(fmt="ISO"),
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stdout),
        cache_logger_on_first_use=True,
    )
