# backend/tests/test_app.py

from fastapi.testclient import TestClient

from olimpo_gym.main import create_app


def test_health_check() -> None:
    client = TestClient(create_app())

    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_routers_are_mounted_under_api_prefix() -> None:
    app = create_app()
    paths = {route.path for route in app.routes}

    assert "/api/memberships" in paths
    assert "/api/memberships/{membership_id}/renew" in paths
    assert "/api/notifications/bulk-email" in paths
    assert "/api/notifications/templates/default/{type_}" in paths
    assert "/memberships" not in paths


def test_cors_headers_for_configured_origin(monkeypatch) -> None:
    monkeypatch.setenv("CORS_ORIGINS", "https://olimpo.test")
    client = TestClient(create_app())

    response = client.options(
        "/health",
        headers={
            "Origin": "https://olimpo.test",
            "Access-Control-Request-Method": "GET",
        },
    )

    assert response.headers.get("access-control-allow-origin") == "https://olimpo.test"


def test_scheduler_starts_only_when_enabled(monkeypatch) -> None:
    from olimpo_gym import main

    events = []

    class FakeScheduler:
        def start(self) -> None:
            events.append("start")

        def stop(self) -> None:
            events.append("stop")

    monkeypatch.setattr(main, "get_scheduler", lambda: FakeScheduler())

    with TestClient(create_app()):
        pass
    assert events == []

    monkeypatch.setenv("ENABLE_SCHEDULER", "true")
    main.get_app_settings.cache_clear()
    with TestClient(create_app()):
        assert events == ["start"]
    assert events == ["start", "stop"]
