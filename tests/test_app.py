from typing import Iterator

import pytest
from fastapi.testclient import TestClient

from app.main import create_app, serve
from datastore.mock_identity import MockIdentityProvider
from services.dashboard import ConsumptionService, build_default_service, build_service
from settings import Settings, get_settings


def _install_service(monkeypatch, service: ConsumptionService) -> None:
    def build_test_service() -> ConsumptionService:
        return service

    build_test_service.cache_clear = lambda: None  # type: ignore[attr-defined]

    monkeypatch.setattr("app.main.build_default_service", build_test_service)
    monkeypatch.setattr("app.api.build_default_service", build_test_service)
    monkeypatch.setattr("app.web.build_default_service", build_test_service)


def _settings(tmp_path, **overrides) -> Settings:
    values = dict(
        store_config={"persistence_path": str(tmp_path / "db.json")},
        app_id="test-app",
        initial_auth_token=None,
        notice_seconds=3.0,
        log_level="INFO",
    )
    values.update(overrides)
    return Settings(**values)


@pytest.fixture
def service(tmp_path) -> ConsumptionService:
    return build_service(_settings(tmp_path), identity=MockIdentityProvider())


@pytest.fixture
def api_client(service: ConsumptionService, monkeypatch) -> Iterator[TestClient]:
    _install_service(monkeypatch, service)
    app = create_app()
    with TestClient(app) as client:
        yield client


def _daily_payload(**overrides) -> dict:
    payload = {
        "date": "2024-01-05",
        "line": 1,
        "waterConsumption": 100,
        "oilConsumptionTotal": 40,
        "oilConsumptionPartial": 20,
    }
    payload.update(overrides)
    return payload


def test_lifespan_starts_and_shuts_down_default_service(tmp_path, monkeypatch) -> None:
    monkeypatch.setenv("CONSUMO_STORE_CONFIG", f'{{"persistence_path": "{tmp_path / "db.json"}"}}')
    get_settings.cache_clear()
    build_default_service.cache_clear()
    app = create_app()

    try:
        with TestClient(app) as client:
            service_during = build_default_service()
            assert service_during.ready is True
            assert client.get("/session").json()["ready"] is True

        assert service_during.ready is False
        service_after = build_default_service()
        try:
            assert service_after is not service_during
            assert service_after.ready is False
        finally:
            service_after.shutdown()
    finally:
        build_default_service.cache_clear()
        get_settings.cache_clear()


def test_health_endpoints(api_client: TestClient) -> None:
    assert api_client.get("/health").json() == {"status": "ok"}
    assert api_client.get("/").json()["status"] == "ok"


def test_session_reports_identifier(api_client: TestClient, service: ConsumptionService) -> None:
    body = api_client.get("/session").json()

    assert body == {"ready": True, "session_id": service.session.session_id}


def test_post_daily_then_dashboard_reflects_totals(
    api_client: TestClient, service: ConsumptionService
) -> None:
    first = api_client.post("/womack-entries", json=_daily_payload())
    second = api_client.post(
        "/womack-entries", json=_daily_payload(waterConsumption=50, oilConsumptionTotal=10)
    )
    third = api_client.post(
        "/womack-entries",
        json=_daily_payload(date="2024-01-06", line=2, waterConsumption=30, oilConsumptionTotal=5),
    )
    assert [response.status_code for response in (first, second, third)] == [201, 201, 201]
    assert first.json()["message"] == "¡Registro guardado con éxito!"
    service.wait_until_synced(timeout=5)

    body = api_client.get("/dashboard").json()

    rows = {row["name"]: row for row in body["womack"]}
    assert rows["5 ene"]["Agua L1"] == 150
    assert rows["5 ene"]["Aceite L1"] == 50
    assert rows["6 ene"]["Agua L2"] == 30
    assert body["bodymaker"] == []


def test_post_daily_with_missing_field_returns_bad_request(
    api_client: TestClient, service: ConsumptionService
) -> None:
    response = api_client.post("/womack-entries", json=_daily_payload(oilConsumptionPartial=""))

    assert response.status_code == 400
    assert response.json()["detail"] == "Error: Todos los campos son obligatorios."
    service.wait_until_synced(timeout=5)
    assert api_client.get("/womack-entries").json() == []


def test_post_weekly_and_list_history(api_client: TestClient, service: ConsumptionService) -> None:
    response = api_client.post(
        "/bodymaker-entries",
        json={
            "weekStartDate": "2024-01-08",
            "line": 1,
            "consumptionsByMachine": {"11": 9, "12": "", "13": 0},
        },
    )
    assert response.status_code == 201
    service.wait_until_synced(timeout=5)

    history = api_client.get("/bodymaker-entries", params={"line": 1}).json()
    dashboard = api_client.get("/dashboard").json()

    assert len(history) == 1
    assert history[0]["weekStartDate"] == "2024-01-08"
    assert history[0]["cells"]["11"] == 9
    assert history[0]["cells"]["12"] is None
    assert dashboard["bodymaker"] == [
        {"machineId": 11, "name": "BM 11", "consumptionLine1": 9.0, "consumptionLine2": 0.0}
    ]


def test_post_weekly_with_only_blank_readings_is_rejected(api_client: TestClient) -> None:
    response = api_client.post(
        "/bodymaker-entries",
        json={"weekStartDate": "2024-01-08", "line": 2, "consumptionsByMachine": {"21": "", "22": 0}},
    )

    assert response.status_code == 400
    assert "al menos un consumo" in response.json()["detail"]


def test_write_failure_returns_service_unavailable(
    api_client: TestClient, service: ConsumptionService, monkeypatch
) -> None:
    def broken_add(path, data):
        raise ConnectionError("offline")

    monkeypatch.setattr(service.store, "add_document", broken_add)

    response = api_client.post("/womack-entries", json=_daily_payload())

    assert response.status_code == 503
    assert response.json()["detail"] == "Error al guardar. Inténtalo de nuevo."


def test_daily_history_limits_and_filters(api_client: TestClient, service: ConsumptionService) -> None:
    for day in range(1, 13):
        api_client.post("/womack-entries", json=_daily_payload(date=f"2024-02-{day:02d}"))
    api_client.post("/womack-entries", json=_daily_payload(line=2))
    service.wait_until_synced(timeout=5)

    history = api_client.get("/womack-entries", params={"line": 1}).json()

    assert len(history) == 10
    assert history[0]["date"] == "2024-02-12"
    assert {entry["line"] for entry in history} == {1}


def test_data_endpoints_return_loading_without_store_config(tmp_path, monkeypatch) -> None:
    service = build_service(_settings(tmp_path, store_config={}), identity=MockIdentityProvider())
    _install_service(monkeypatch, service)

    with TestClient(create_app()) as client:
        dashboard = client.get("/dashboard")
        submit = client.post("/womack-entries", json=_daily_payload())
        session = client.get("/session").json()

    assert dashboard.status_code == 503
    assert dashboard.json()["detail"] == "Cargando datos..."
    assert submit.status_code == 503
    assert session == {"ready": False, "session_id": None}


def test_serve_runs_uvicorn_with_environment_address(monkeypatch) -> None:
    calls = []
    monkeypatch.setenv("CONSUMO_HOST", "0.0.0.0")
    monkeypatch.setenv("CONSUMO_PORT", "9100")
    monkeypatch.setattr("app.main.uvicorn.run", lambda target, **kwargs: calls.append((target, kwargs)))

    serve()

    assert calls == [("app.main:app", {"host": "0.0.0.0", "port": 9100, "log_config": None})]
