import pytest

from app.countdesk.services.scan_history import ScanEvent
from app.countdesk.services.zero_qty_draft import ZeroQtyDraft


def test_confirmed_scan_does_not_create_entry():
    draft = ZeroQtyDraft("Main Store")
    assert draft.scan("3001", ScanEvent.confirmed()) is None
    assert len(draft) == 0


def test_counted_scans_accumulate_per_barcode():
    draft = ZeroQtyDraft("Main Store")
    draft.scan("3001", ScanEvent.counted(2), baseline=0, name="Lace wig")
    entry = draft.scan("3001", ScanEvent.counted(3))
    draft.scan("3002", ScanEvent.counted(1), baseline=0)

    assert entry.poh == 5
    assert entry.name == "Lace wig"
    assert [item.barcode for item in draft.entries] == ["3001", "3002"]


def test_confirmed_resets_to_baseline_for_existing_entry():
    draft = ZeroQtyDraft("Main Store")
    draft.scan("3001", ScanEvent.counted(4), baseline=0)
    entry = draft.scan("3001", ScanEvent.confirmed())
    assert entry.poh == 0
    assert len(entry.history) == 2


def test_first_count_needs_baseline():
    draft = ZeroQtyDraft("Main Store")
    with pytest.raises(ValueError):
        draft.scan("3001", ScanEvent.counted(1))


def test_submission_payload():
    draft = ZeroQtyDraft("Main Store")
    draft.scan("3001", ScanEvent.counted(2), baseline=0, department="HAIR")
    payload = draft.to_submission()
    (entry,) = payload["entries"]
    assert entry["location"] == "Main Store"
    assert entry["baseline"] == 0
    assert entry["department"] == "HAIR"
    assert [event["kind"] for event in entry["scan_history"]] == ["counted"]

    draft.remove("3001")
    assert "3001" not in draft
