from __future__ import annotations

from contextlib import contextmanager
from contextvars import ContextVar
from typing import Iterator

# One-element list shared with worker threads that run sync endpoints.
_db_time_ms: ContextVar[list[float] | None] = ContextVar("db_time_ms", default=None)


@contextmanager
def db_timer() -> Iterator[None]:
    """Accumulate statement time for the current request while the block runs."""
    token = _db_time_ms.set([0.0])
    try:
        yield
    finally:
        _db_time_ms.reset(token)


def timing_active() -> bool:
    return _db_time_ms.get() is not None


def add_db_time(delta_ms: float) -> None:
    cell = _db_time_ms.get()
    if cell is None:
        return
    cell[0] += delta_ms


def get_db_time_ms() -> float | None:
    cell = _db_time_ms.get()
    if cell is None:
        return None
    return cell[0]
