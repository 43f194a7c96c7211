"""Post-commit enqueue helpers for API→workers handoff.

Ce module fournit des utilitaires pour déclencher des actions (génération de work items,
notifications) uniquement après qu'une transaction SQLAlchemy ait été effectivement commitée.
Rien n'est déclenché si la transaction est rollback, et un échec d'action ne remonte jamais
vers l'appelant: il est journalisé.
"""

from __future__ import annotations

import functools
from collections.abc import Callable

import structlog
from sqlalchemy import event
from sqlalchemy.orm import Session

from backend.app.celery_app import celery_app
from backend.app.metrics import POSTCOMMIT_ACTIONS_TOTAL

_ACTIONS_KEY = "_post_commit_actions"

log = structlog.get_logger(__name__)


def _ensure_action_list(session: Session) -> list[Callable[[], None]]:
    """Ensure action list container exists on session.info and return it."""
    actions = session.info.get(_ACTIONS_KEY)
    if actions is None:
        actions = []
        session.info[_ACTIONS_KEY] = actions
        _bind_session_events(session)
    return actions


def _run_action(action: Callable[[], None]) -> None:
    try:
        action()
    except Exception as exc:
        POSTCOMMIT_ACTIONS_TOTAL.labels(result="failed").inc()
        log.error(
            "post_commit_action_failed",
            action=getattr(getattr(action, "func", action), "__name__", repr(action)),
            error_type=type(exc).__name__,
            error=str(exc),
        )
        return
    POSTCOMMIT_ACTIONS_TOTAL.labels(result="ran").inc()


def _bind_session_events(session: Session) -> None:
    """Bind commit/rollback events once for the given session instance."""
    if session.info.get("_post_commit_bound"):
        return
    session.info["_post_commit_bound"] = True

    @event.listens_for(session, "after_commit")
    def _after_commit(_session: Session) -> None:
        actions = list(_session.info.get(_ACTIONS_KEY, []) or [])
        _session.info[_ACTIONS_KEY] = []
        for action in actions:
            _run_action(action)

    @event.listens_for(session, "after_rollback")
    def _after_rollback(_session: Session) -> None:
        # Purge les actions planifiées si la transaction est rollback
        dropped = len(_session.info.get(_ACTIONS_KEY, []) or [])
        _session.info[_ACTIONS_KEY] = []
        if dropped:
            POSTCOMMIT_ACTIONS_TOTAL.labels(result="rolled_back").inc(dropped)


def register_action_after_commit(
    session: Session,
    func: Callable[..., None],
    *args,
    **kwargs,
) -> None:
    """Register an arbitrary callable to run after a successful commit.

    La fonction est stockée dans la session et exécutée lors de l'évènement
    `after_commit`. En cas de rollback, elle est oubliée.
    """
    bound = functools.partial(func, *args, **kwargs)
    _ensure_action_list(session).append(bound)


def send_task(task_name: str, *args, queue: str | None = None, **kwargs) -> None:
    """Envoie une tâche Celery par son nom.

    Si la tâche est enregistrée localement, passe par `apply_async` (respecte le mode eager),
    sinon `send_task` vers le broker.
    """
    opts: dict[str, object] = {}
    if queue:
        opts["queue"] = queue
    task = celery_app.tasks.get(task_name)
    if task is not None:
        task.apply_async(args=args, kwargs=kwargs, **opts)
    else:
        celery_app.send_task(task_name, args=args, kwargs=kwargs, **opts)


def enqueue_task_after_commit(
    session: Session,
    task_name: str,
    *args,
    queue: str | None = None,
    **kwargs,
) -> None:
    """Enqueue a Celery task only after the current transaction commits.

    Args:
        session: Session SQLAlchemy concernée.
        task_name: Nom pleinement qualifié de la tâche (ex: "backend.tasks.generate_work_items").
        args: Arguments positionnels de la tâche.
        queue: Nom de la queue cible (optionnel).
        kwargs: Arguments nommés de la tâche.
    """

    def _enqueue() -> None:
        send_task(task_name, *args, queue=queue, **kwargs)

    _enqueue.__name__ = f"enqueue:{task_name}"
    register_action_after_commit(session, _enqueue)


__all__ = [
    "enqueue_task_after_commit",
    "register_action_after_commit",
    "send_task",
]
