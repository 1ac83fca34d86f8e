from __future__ import annotations

from datetime import datetime, timedelta

DATE_WINDOWS = ("today", "7days", "30days")


def window_start(window: str | None, *, now: datetime | None = None) -> datetime | None:
    """Lower bound on creation time for a named date window (UTC).

    Windows are rolling: ``today`` is the last 24 hours, not the calendar day.
    """
    if not window:
        return None
    now = now or datetime.utcnow()
    if window == "today":
        return now - timedelta(days=1)
    if window == "7days":
        return now - timedelta(days=7)
    if window == "30days":
        return now - timedelta(days=30)
    raise ValueError(f"unknown date window: {window}")
