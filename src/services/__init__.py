"""Services module for the support commitments engine."""

from services.database import get_sync_session, run_migrations

__all__ = [
    "get_sync_session",
    "run_migrations",
]
