"""Configuration centralisée Celery pour les tâches asynchrones.

Ce module définit la configuration globale de Celery incluant les politiques de retry, timeouts et
limites de connexion au broker.
"""

# ============================================================
# Module : backend/app/celeryconfig.py
# Objet  : Configuration centralisée Celery (retries, timeouts).
# ============================================================

from __future__ import annotations

# Retries & acks: une tâche perdue par un worker est relivrée (idempotence côté tâche)
task_acks_late = True
task_reject_on_worker_lost = True
worker_prefetch_multiplier = 1
task_time_limit = 120  # secondes
broker_pool_limit = 10

# Mode eager: les erreurs des tâches restent dans la tâche (journalisées), jamais chez l'appelant
task_eager_propagates = False

task_serializer = "json"
result_serializer = "json"
accept_content = ["json"]
