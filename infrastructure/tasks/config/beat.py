"""Celery beat schedule configuration.

Keeping the structure close to the Celery docs makes copying snippets
straightforward for new periodic jobs.
"""
from __future__ import annotations

CELERY_BEAT_SCHEDULE = {
    # Captures whose webhook never arrived
    "payments-reconcile-pending-intents": {
        "task": "payments.reconcile_pending_intents",
        "schedule": 300,
    },
    # Carrier refunds that were queued or pending at cancel time
    "labels-poll-pending-refunds": {
        "task": "labels.poll_pending_refunds",
        "schedule": 600,
    },
}
