# campusgate/utils/clock.py
"""Naive-UTC clock shared by every table timestamp. Patch `utcnow` in tests to pin time."""

from datetime import datetime, timezone


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)
