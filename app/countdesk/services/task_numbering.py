"""Task number allocation.

Numbers look like ``A0001``: one letter followed by a zero-padded counter.
The singleton ``task_counter`` row is advanced with a single
``UPDATE ... RETURNING`` before anything is read from it. That write takes
the row lock on a server database and the database write lock on SQLite,
and either is held until the caller's transaction ends, so concurrent
creators queue on it and never see the same value.
"""

from __future__ import annotations

from sqlalchemy import update

from app.countdesk.core.config import settings
from app.countdesk.core.metrics import metrics
from app.countdesk.db.models import TaskCounter

COUNTER_ID = 1

_counter = TaskCounter.__table__


def format_task_number(letter: str, number: int) -> str:
    return f"{letter}{number:04d}"


def next_value(letter: str, number: int, *, maximum: int | None = None) -> tuple[str, int]:
    """Return the (letter, number) pair following the given one."""
    maximum = settings.TASK_NUMBER_MAX if maximum is None else maximum
    number += 1
    if number > maximum:
        # rollover starts the next letter at 0
        return chr(ord(letter) + 1), 0
    return letter, number


def _reserve(db, count: int) -> tuple[str, int]:
    """Advance the counter by ``count`` and return the value it held before."""
    stmt = (
        update(_counter)
        .where(_counter.c.id == COUNTER_ID)
        .values(last_number=_counter.c.last_number + count)
        .returning(_counter.c.last_letter, _counter.c.last_number)
    )
    row = db.execute(stmt).first()
    if row is None:
        db.add(TaskCounter(id=COUNTER_ID, last_number=0, last_letter=settings.TASK_NUMBER_FIRST_LETTER))
        db.flush()
        row = db.execute(stmt).first()
    return row.last_letter, row.last_number - count


def allocate(db) -> str:
    """Reserve the next task number inside the caller's open transaction."""
    return allocate_many(db, 1)[0]


def allocate_many(db, count: int) -> list[str]:
    letter, number = _reserve(db, count)
    numbers: list[str] = []
    for _ in range(count):
        letter, number = next_value(letter, number)
        numbers.append(format_task_number(letter, number))
    # the reservation only added to the number; store the rolled-over pair
    db.execute(
        update(_counter).where(_counter.c.id == COUNTER_ID).values(last_letter=letter, last_number=number)
    )
    metrics.increment_task_numbers_allocated(count)
    return numbers
