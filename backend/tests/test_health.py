from fastapi.testclient import TestClient


def _get_client() -> TestClient:
    from cadence.main import app

    return TestClient(app)


def test_health_endpoint_reports_scheduler_state(monkeypatch) -> None:
    import cadence.main as main_module

    monkeypatch.setattr(main_module.settings, "scheduler_enabled", False)
    client = _get_client()
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok", "scheduler": "disabled"}


def test_request_id_generated_and_returned() -> None:
    client = _get_client()
    response = client.get("/health")

    assert response.headers.get("X-Request-Id")


def test_request_id_echoed_from_header() -> None:
    client = _get_client()
    req_id = "sweep-debug-42"
    response = client.get("/health", headers={"X-Request-Id": req_id})

    assert response.headers.get("X-Request-Id") == req_id
