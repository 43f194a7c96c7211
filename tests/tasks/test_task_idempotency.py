"""Tests unitaires de l'idempotence des tâches workers."""

from __future__ import annotations

from unittest.mock import Mock

import redis

from backend.infra.ops import idempotency
from backend.infra.ops.idempotency import IdempotencyStore, _InMemoryKV, make_idem_key


def test_make_idem_key_rule():
    assert make_idem_key("generate_work_items", "doc-1") == "task:generate_work_items:doc-1"
    assert make_idem_key("cleanup") == "task:cleanup"
    assert make_idem_key("t", "a\nb") == "task:t:a b"


def test_acquire_once_then_duplicate():
    store = IdempotencyStore(client=_InMemoryKV())
    key = make_idem_key("generate_work_items", "doc-1")
    assert store.acquire(key, ttl=60) is True
    assert store.acquire(key, ttl=60) is False


def test_release_allows_retry():
    store = IdempotencyStore(client=_InMemoryKV())
    key = make_idem_key("generate_work_items", "doc-2")
    assert store.acquire(key)
    store.release(key)
    assert store.acquire(key)


def test_expired_key_can_be_acquired_again(monkeypatch):
    kv = _InMemoryKV()
    store = IdempotencyStore(client=kv)
    clock = {"now": 1000.0}
    monkeypatch.setattr(idempotency, "time", Mock(time=lambda: clock["now"]))
    assert store.acquire("task:t:x", ttl=10)
    clock["now"] += 11
    assert store.acquire("task:t:x", ttl=10)


def test_redis_errors_do_not_block_the_task():
    client = Mock()
    client.set.side_effect = redis.ConnectionError("down")
    store = IdempotencyStore(client=client)
    assert store.acquire("task:t:y") is True
