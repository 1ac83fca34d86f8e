import uuid
from datetime import datetime, timedelta

from app.countdesk.repos.filters import window_start
from tests.helpers import BRANCH_STORE, BRANCH_STORE_ID, MAIN_STORE, MAIN_STORE_ID, create_task, scan


def test_create_one_task_per_location(client, mapped_locations):
    tasks = create_task(client, locations=[MAIN_STORE, BRANCH_STORE], barcodes=["1001", "1002", "1003"])

    assert len(tasks) == 2
    assert {task["task_no"] for task in tasks} == {"A0001", "A0002"}
    by_location = {task["location"]: task for task in tasks}
    assert by_location[MAIN_STORE]["external_location_id"] == MAIN_STORE_ID
    assert by_location[BRANCH_STORE]["external_location_id"] == BRANCH_STORE_ID
    for task in tasks:
        assert task["status"] == "counting"
        assert [item["barcode"] for item in task["items"]] == ["1001", "1002", "1003"]
        assert task["counts"] == {"total_count": 3, "processed_count": 0, "inaccurate_count": 0}

    main_items = {item["id"] for item in by_location[MAIN_STORE]["items"]}
    branch_items = {item["id"] for item in by_location[BRANCH_STORE]["items"]}
    assert main_items.isdisjoint(branch_items)


def test_items_have_independent_history_per_location(client, mapped_locations):
    main, branch = create_task(client, locations=[MAIN_STORE, BRANCH_STORE])

    response = scan(client, main, "1001", "counted", 4, baseline=6)
    assert response.status_code == 200

    branch_detail = client.get(f"/api/tasks/{branch['id']}").json()
    item = next(item for item in branch_detail["items"] if item["barcode"] == "1001")
    assert item["scan_history"] == []
    assert item["computed_quantity"] is None


def test_create_draft_and_publish(client):
    (task,) = create_task(client, publish=False)
    assert task["status"] == "draft"
    assert task["status_tone"] == "new"

    response = client.patch(f"/api/tasks/{task['id']}/publish")
    assert response.status_code == 200
    assert response.json()["status"] == "counting"
    assert response.json()["status_label"] == "Counting"

    again = client.patch(f"/api/tasks/{task['id']}/publish")
    assert again.status_code == 409
    assert again.json()["code"] == "INVALID_STATE_TRANSITION"


def test_create_without_mapping_keeps_location_unresolved(client):
    (task,) = create_task(client, locations=["Warehouse"])
    assert task["external_location_id"] is None


def test_create_validation_errors(client):
    base = {"department": "HAIR", "locations": [MAIN_STORE], "items": [{"barcode": "1001"}]}
    for override in ({"locations": []}, {"items": []}, {"department": ""}):
        response = client.post("/api/tasks", json={**base, **override})
        assert response.status_code == 422
        assert response.json()["code"] == "VALIDATION_ERROR"

    blank = client.post("/api/tasks", json={**base, "locations": ["  "]})
    assert blank.status_code == 422
    assert client.get("/api/tasks").json()["total"] == 0


def test_get_unknown_task_returns_404(client):
    response = client.get(f"/api/tasks/{uuid.uuid4()}")
    assert response.status_code == 404
    assert response.json()["code"] == "TASK_NOT_FOUND"


def test_list_counts_and_filters(client, mapped_locations):
    main, branch = create_task(client, locations=[MAIN_STORE, BRANCH_STORE])
    scan(client, main, "1001", "counted", 2, baseline=5)
    scan(client, main, "1002", "confirmed", baseline=3)
    create_task(client, locations=[MAIN_STORE], department="CARE", publish=False)

    rows = client.get("/api/tasks", params={"location": MAIN_STORE, "department": "HAIR"}).json()["rows"]
    assert len(rows) == 1
    assert rows[0]["id"] == main["id"]
    assert rows[0]["counts"] == {"total_count": 3, "processed_count": 2, "inaccurate_count": 1}

    drafts = client.get("/api/tasks", params={"status": "draft"}).json()
    assert drafts["total"] == 1
    assert drafts["rows"][0]["department"] == "CARE"

    everything = client.get("/api/tasks", params={"date": "today"}).json()
    assert everything["total"] == 3
    assert client.get("/api/tasks", params={"location": [MAIN_STORE, BRANCH_STORE]}).json()["total"] == 3


def test_committed_filter_includes_auto_committed(client):
    (task,) = create_task(client)
    response = client.patch(f"/api/tasks/{task['id']}/submit")
    assert response.json()["task"]["status"] == "auto_committed"

    rows = client.get("/api/tasks", params={"status": "committed"}).json()["rows"]
    assert [row["id"] for row in rows] == [task["id"]]


def test_today_window_is_the_last_24_hours():
    now = datetime(2026, 3, 4, 0, 30)
    assert window_start("today", now=now) == datetime(2026, 3, 3, 0, 30)
    assert window_start("7days", now=now) == datetime(2026, 2, 25, 0, 30)
    assert window_start(None, now=now) is None


def test_today_filter_includes_tasks_from_yesterday_evening(client, db_session):
    from app.countdesk.db.models import CountingTask

    recent, stale = create_task(client, locations=[MAIN_STORE, BRANCH_STORE])
    for task, age in ((recent, timedelta(hours=20)), (stale, timedelta(hours=30))):
        db_session.get(CountingTask, uuid.UUID(task["id"])).created_at = datetime.utcnow() - age
    db_session.commit()

    rows = client.get("/api/tasks", params={"date": "today"}).json()["rows"]
    assert [row["id"] for row in rows] == [recent["id"]]


def test_list_rejects_unknown_status(client):
    response = client.get("/api/tasks", params={"status": "lost"})
    assert response.status_code == 422
    assert response.json()["code"] == "VALIDATION_ERROR"


def test_notes_add_and_delete(client):
    (task,) = create_task(client, notes=["bring the scanner"])
    assert [note["text"] for note in task["notes"]] == ["bring the scanner"]

    added = client.patch(f"/api/tasks/{task['id']}/notes", json={"text": "back shelf done"})
    assert added.status_code == 200
    assert [note["index"] for note in added.json()["notes"]] == [0, 1]

    removed = client.delete(f"/api/tasks/{task['id']}/notes/0")
    assert removed.status_code == 200
    assert [note["text"] for note in removed.json()["notes"]] == ["back shelf done"]

    missing = client.delete(f"/api/tasks/{task['id']}/notes/5")
    assert missing.status_code == 404


def test_archive_and_delete(client, db_session):
    from sqlalchemy import func, select

    from app.countdesk.db.models import TaskItem

    first, second = create_task(client, locations=[MAIN_STORE, BRANCH_STORE])

    archived = client.request("PATCH", "/api/tasks/archive", json={"ids": [first["id"]]})
    assert archived.status_code == 200
    assert archived.json()["affected"] == 1
    assert client.get(f"/api/tasks/{first['id']}").json()["status"] == "archived"

    repeat = client.request("PATCH", "/api/tasks/archive", json={"ids": [first["id"]]})
    assert repeat.json()["affected"] == 0

    deleted = client.request("DELETE", "/api/tasks", json={"ids": [second["id"]]})
    assert deleted.status_code == 200
    assert deleted.json()["affected"] == 1
    assert client.get(f"/api/tasks/{second['id']}").status_code == 404

    remaining = db_session.execute(select(func.count()).select_from(TaskItem)).scalar_one()
    assert remaining == 3
