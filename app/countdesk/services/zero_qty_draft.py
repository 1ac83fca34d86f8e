"""Client-held buffer for zero-quantity report scanning.

Scans are collected per barcode before anything is sent to the server.
Each entry keeps its own scan history and derives its POH through the same
interpreter the counting tasks use.
"""

from __future__ import annotations

from dataclasses import dataclass, replace

from app.countdesk.services.scan_history import (
    CONFIRMED,
    ScanEvent,
    ScanHistory,
    append_event,
    dump_history,
    interpret,
)


@dataclass(frozen=True)
class DraftEntry:
    barcode: str
    location: str
    baseline: int
    history: ScanHistory = ()
    name: str | None = None
    department: str | None = None

    @property
    def poh(self) -> int | None:
        return interpret(self.baseline, self.history)

    def to_submission(self) -> dict:
        return {
            "barcode": self.barcode,
            "name": self.name,
            "department": self.department,
            "location": self.location,
            "baseline": self.baseline,
            "scan_history": dump_history(self.history),
        }


class ZeroQtyDraft:
    def __init__(self, location: str):
        self.location = location
        self._entries: dict[str, DraftEntry] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, barcode: str) -> bool:
        return barcode in self._entries

    @property
    def entries(self) -> list[DraftEntry]:
        return list(self._entries.values())

    def get(self, barcode: str) -> DraftEntry | None:
        return self._entries.get(barcode)

    def scan(
        self,
        barcode: str,
        event: ScanEvent,
        *,
        baseline: int | None = None,
        name: str | None = None,
        department: str | None = None,
    ) -> DraftEntry | None:
        """Record ``event`` for ``barcode`` and return the updated entry.

        A ``confirmed`` scan only applies to an existing entry; for an unknown
        barcode it is ignored and ``None`` is returned. The first ``counted``
        scan of a barcode needs the baseline read from the inventory system.
        """
        entry = self._entries.get(barcode)
        if entry is None:
            if event.kind == CONFIRMED:
                return None
            if baseline is None:
                raise ValueError(f"baseline is required for the first scan of {barcode}")
            entry = DraftEntry(
                barcode=barcode,
                location=self.location,
                baseline=baseline,
                history=(event,),
                name=name,
                department=department,
            )
        else:
            entry = replace(
                entry,
                history=append_event(entry.history, event),
                baseline=entry.baseline if baseline is None else baseline,
                name=name or entry.name,
                department=department or entry.department,
            )
        self._entries[barcode] = entry
        return entry

    def remove(self, barcode: str) -> DraftEntry | None:
        return self._entries.pop(barcode, None)

    def clear(self) -> None:
        self._entries.clear()

    def to_submission(self) -> dict:
        return {"entries": [entry.to_submission() for entry in self._entries.values()]}
