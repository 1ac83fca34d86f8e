"""Scan history interpretation.

A task item's scan history is an append-only log of ``confirmed`` and
``counted`` events. The physical-on-hand (POH) quantity is never stored
independently: it is always the result of replaying the log against the
baseline read from the inventory system.

Rules:

- an empty history has no POH yet (``None``);
- when the last event is ``confirmed`` the POH is the baseline;
- otherwise the POH is the sum of ``counted`` values after the last
  ``confirmed`` event (or over the whole history when there is none).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable, Literal, Sequence

ScanKind = Literal["confirmed", "counted"]

CONFIRMED: ScanKind = "confirmed"
COUNTED: ScanKind = "counted"


class InvalidScanEvent(ValueError):
    pass


@dataclass(frozen=True)
class ScanEvent:
    kind: ScanKind
    value: int | None = None
    at: datetime = field(default_factory=datetime.utcnow)

    def __post_init__(self) -> None:
        if self.kind == CONFIRMED:
            if self.value is not None:
                raise InvalidScanEvent("confirmed events do not carry a value")
        elif self.kind == COUNTED:
            if isinstance(self.value, bool) or not isinstance(self.value, int):
                raise InvalidScanEvent("counted events require an integer value")
            if self.value < 0:
                raise InvalidScanEvent("counted value must not be negative")
        else:
            raise InvalidScanEvent(f"unknown scan kind: {self.kind!r}")

    @classmethod
    def confirmed(cls, at: datetime | None = None) -> "ScanEvent":
        return cls(CONFIRMED, None, at or datetime.utcnow())

    @classmethod
    def counted(cls, value: int, at: datetime | None = None) -> "ScanEvent":
        return cls(COUNTED, value, at or datetime.utcnow())

    def to_json(self) -> dict:
        payload: dict = {"kind": self.kind, "at": self.at.isoformat()}
        if self.kind == COUNTED:
            payload["value"] = self.value
        return payload

    @classmethod
    def from_json(cls, payload: dict) -> "ScanEvent":
        at = payload.get("at")
        return cls(
            kind=payload.get("kind"),
            value=payload.get("value"),
            at=datetime.fromisoformat(at) if at else datetime.utcnow(),
        )


ScanHistory = tuple[ScanEvent, ...]


def load_history(raw: Iterable[dict] | None) -> ScanHistory:
    return tuple(ScanEvent.from_json(item) for item in (raw or ()))


def dump_history(history: Sequence[ScanEvent]) -> list[dict]:
    return [event.to_json() for event in history]


def append_event(history: Sequence[ScanEvent], event: ScanEvent) -> ScanHistory:
    return (*history, event)


def _window_after_last_confirmation(history: Sequence[ScanEvent]) -> Sequence[ScanEvent]:
    for index in range(len(history) - 1, -1, -1):
        if history[index].kind == CONFIRMED:
            return history[index + 1 :]
    return history


def interpret(baseline: int, history: Sequence[ScanEvent]) -> int | None:
    if not history:
        return None
    if history[-1].kind == CONFIRMED:
        return baseline
    return sum(event.value for event in _window_after_last_confirmation(history) if event.kind == COUNTED)


def is_exact_match(baseline: int, history: Sequence[ScanEvent]) -> bool:
    if not history:
        return False
    if history[-1].kind == CONFIRMED:
        return True
    return interpret(baseline, history) == baseline


@dataclass(frozen=True)
class Reconciliation:
    baseline: int
    history: ScanHistory
    quantity: int | None
    exact_match: bool

    @property
    def delta(self) -> int | None:
        if self.quantity is None:
            return None
        return self.quantity - self.baseline


def reconcile(baseline: int, history: Sequence[ScanEvent]) -> Reconciliation:
    """Replay ``history`` against ``baseline`` and return every derived field together."""
    history = tuple(history)
    return Reconciliation(
        baseline=baseline,
        history=history,
        quantity=interpret(baseline, history),
        exact_match=is_exact_match(baseline, history),
    )
