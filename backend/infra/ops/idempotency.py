"""Idempotence des tâches Celery (Redis, ou mémoire locale sans `REDIS_URL`).

Règle de clé:
    task:{name}:{param_significatif}

`make_idem_key("generate_work_items", document_id)` compose les clés de façon cohérente.
Une livraison répétée (acks tardifs, relivraison broker) trouve la clé déjà prise et sort
sans effet de bord.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field

import redis
import structlog
from prometheus_client import Counter

from backend.core.settings import get_settings

WORKER_IDEMPOTENCY_ATTEMPTS_TOTAL = Counter(
    "worker_idempotency_attempts_total",
    "Idempotency attempts at worker",
    ["task", "result"],
)

log = structlog.get_logger(__name__)


def make_idem_key(task: str, *parts: str) -> str:
    """Compose une clé stable `task:{name}:{param}`."""
    safe_parts = [str(p).replace("\n", " ").replace("\r", " ") for p in parts]
    suffix = ":".join(safe_parts) if safe_parts else ""
    return f"task:{task}:{suffix}" if suffix else f"task:{task}"


class _InMemoryKV:
    def __init__(self) -> None:
        self._exp: dict[str, float] = {}
        self._vals: dict[str, str] = {}

    def set(self, name: str, value: str, nx: bool = False, ex: int | None = None) -> bool:
        now = time.time()
        exp = self._exp.get(name)
        if exp is not None and exp <= now:
            self._exp.pop(name, None)
            self._vals.pop(name, None)
        if nx and name in self._vals:
            return False
        self._vals[name] = value
        if ex:
            self._exp[name] = now + int(ex)
        return True

    def delete(self, name: str) -> int:
        self._exp.pop(name, None)
        return 1 if self._vals.pop(name, None) is not None else 0


def _redis_client() -> redis.Redis | None:  # pragma: no cover - smoke path
    url = get_settings().REDIS_URL
    if not url:
        return None
    return redis.Redis.from_url(url, decode_responses=True)


@dataclass
class IdempotencyStore:
    """Store pour l'idempotence des tâches avec TTL."""

    ttl_seconds: int = 300
    client: object | None = field(default=None)

    def __post_init__(self) -> None:
        if self.client is None:
            self.client = _redis_client() or _InMemoryKV()

    def acquire(self, key: str, ttl: int | None = None) -> bool:
        """Pose la clé si absente. False si une exécution l'a déjà prise."""
        ttl = int(ttl or self.ttl_seconds)
        task = key.split(":")[1] if ":" in key else key
        try:
            ok = bool(self.client.set(name=key, value="1", nx=True, ex=ttl))  # type: ignore[attr-defined]
        except redis.RedisError as exc:
            # Store indisponible: on laisse passer, la tâche reste protégée par son guard métier
            log.warning("idempotency_store_unavailable", key=key, error_type=type(exc).__name__)
            ok = True
        WORKER_IDEMPOTENCY_ATTEMPTS_TOTAL.labels(task=task, result="allowed" if ok else "deduped").inc()
        return ok

    def release(self, key: str) -> None:
        """Libère la clé (échec de la tâche: une relivraison pourra réessayer)."""
        try:
            self.client.delete(key)  # type: ignore[attr-defined]
        except redis.RedisError as exc:
            log.warning("idempotency_release_failed", key=key, error_type=type(exc).__name__)


idempotency_store = IdempotencyStore()
