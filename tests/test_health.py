from app.countdesk.middleware.trace import resolve_trace_id


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"
    assert response.headers["X-Trace-ID"] == response.json()["trace_id"]


def test_ready(client):
    response = client.get("/ready", headers={"X-Trace-ID": "trace-ready"})
    assert response.status_code == 200
    body = response.json()
    assert (body["status"], body["database"], body["trace_id"]) == ("ready", "ok", "trace-ready")
    assert body["gateway"] in {"configured", "unconfigured"}
    assert response.headers["X-Trace-ID"] == "trace-ready"


def test_error_carries_trace_id(client):
    response = client.get("/api/tasks/00000000-0000-0000-0000-000000000000", headers={"X-Trace-ID": "trace-404"})
    assert response.status_code == 404
    assert response.json()["trace_id"] == "trace-404"
    assert response.json()["code"] == "TASK_NOT_FOUND"


def test_unusable_trace_ids_are_replaced():
    assert resolve_trace_id(" abc ") == "abc"
    assert len(resolve_trace_id("")) == 32
    assert resolve_trace_id("x" * 65) != "x" * 65
