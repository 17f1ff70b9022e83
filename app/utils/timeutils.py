"""Timestamp helpers shared by models and services."""

from datetime import datetime, timezone


def utcnow() -> datetime:
    """Naive UTC timestamp with microsecond precision (what the DB columns store)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)
