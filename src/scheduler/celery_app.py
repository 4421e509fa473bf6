"""Celery entry point for periodic commitment sweeps, reconciliation, and reminders."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Callable

from celery import Celery
from sqlalchemy.orm import Session

from commitments.notifications import CommitmentNotifier
from commitments.reconciliation import CommitmentReconciler
from commitments.reminders import ReminderDispatcher
from commitments.sweeper import EscalationSweeper
from config import settings
from logging_config import log_context
from services.database import get_sync_session

LOGGER = logging.getLogger(__name__)

celery_app = Celery("commitments.scheduler")
celery_app.conf.broker_url = settings.scheduler.broker_url
celery_app.conf.result_backend = settings.scheduler.result_backend
celery_app.conf.task_default_queue = settings.scheduler.queue_name
celery_app.conf.task_serializer = "json"
celery_app.conf.result_serializer = "json"
celery_app.conf.accept_content = ["json"]
celery_app.conf.enable_utc = True
celery_app.conf.timezone = "UTC"

beat_schedule = celery_app.conf.get("beat_schedule")
if beat_schedule is None:
    beat_schedule = {}
beat_schedule["commitments.sweep"] = {
    "task": "commitments.sweep",
    "schedule": settings.scheduler.sweep_interval_seconds,
}
beat_schedule["commitments.reconcile"] = {
    "task": "commitments.reconcile",
    "schedule": settings.scheduler.reconcile_interval_seconds,
}
beat_schedule["commitments.send_reminders"] = {
    "task": "commitments.send_reminders",
    "schedule": settings.scheduler.reminder_interval_seconds,
}
celery_app.conf.beat_schedule = beat_schedule


def _session_factory() -> Session:
    """Return a new synchronous SQLAlchemy session for commitment tasks."""
    return get_sync_session()


def run_escalation_sweep(
    *,
    session_factory: Callable[[], Session],
    now: datetime,
    notifier: CommitmentNotifier | None = None,
) -> dict[str, int]:
    """Run one escalation sweep and return its counts."""
    sweeper = EscalationSweeper(session_factory, notifier=notifier)
    return sweeper.sweep(now.astimezone(timezone.utc)).as_dict()


def run_reconciliation(
    *,
    session_factory: Callable[[], Session],
    now: datetime,
    window_hours: int,
    batch_size: int,
) -> dict[str, int]:
    """Backfill commitments over the trailing window ending at now."""
    end = now.astimezone(timezone.utc)
    start = end - timedelta(hours=window_hours)
    reconciler = CommitmentReconciler(session_factory)
    return reconciler.reconcile(start, end, limit=batch_size).as_dict()


def run_reminder_dispatch(
    *,
    session_factory: Callable[[], Session],
    now: datetime,
    batch_size: int,
    notifier: CommitmentNotifier | None = None,
) -> dict[str, int]:
    """Send due reminders and return counts."""
    dispatcher = ReminderDispatcher(session_factory, notifier=notifier, batch_size=batch_size)
    return dispatcher.dispatch_due(now.astimezone(timezone.utc)).as_dict()


@celery_app.task(name="commitments.sweep")
def sweep_commitments() -> dict[str, int]:
    """Celery beat job that ages overdue commitments."""
    with log_context({"task": "commitments.sweep"}):
        return run_escalation_sweep(
            session_factory=_session_factory,
            now=datetime.now(timezone.utc),
        )


@celery_app.task(name="commitments.reconcile")
def reconcile_commitments() -> dict[str, int]:
    """Celery beat job that backfills commitments missed inline."""
    with log_context({"task": "commitments.reconcile"}):
        return run_reconciliation(
            session_factory=_session_factory,
            now=datetime.now(timezone.utc),
            window_hours=settings.commitments.reconciliation_window_hours,
            batch_size=settings.commitments.reconciliation_batch_size,
        )


@celery_app.task(name="commitments.send_reminders")
def send_commitment_reminders() -> dict[str, int]:
    """Celery beat job that delivers due reminders."""
    with log_context({"task": "commitments.send_reminders"}):
        return run_reminder_dispatch(
            session_factory=_session_factory,
            now=datetime.now(timezone.utc),
            batch_size=settings.commitments.reminder_batch_size,
        )


__all__ = [
    "celery_app",
    "reconcile_commitments",
    "run_escalation_sweep",
    "run_reconciliation",
    "run_reminder_dispatch",
    "send_commitment_reminders",
    "sweep_commitments",
]
