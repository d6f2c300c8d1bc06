"""
Tests for application wiring: static files, CORS, logging filter, settings.
"""

import logging

from fastapi.testclient import TestClient

from device_relay.config import Settings
from device_relay.main import _HealthCheckNoiseFilter, _mask, create_app


def _access_record(path: str) -> logging.LogRecord:
    return logging.LogRecord(
        name="uvicorn.access",
        level=logging.INFO,
        pathname=__file__,
        lineno=1,
        msg='%s - "%s %s HTTP/%s" %d',
        args=("127.0.0.1:1234", "GET", path, "1.1", 200),
        exc_info=None,
    )


def test_static_files_served(tmp_path, settings):
    (tmp_path / "index.html").write_text("<h1>relay</h1>")
    app = create_app(settings.model_copy(update={"static_dir": str(tmp_path)}))

    with TestClient(app) as client:
        response = client.get("/")
        assert response.status_code == 200
        assert "<h1>relay</h1>" in response.text

        # API routes and the root WebSocket still win over the static mount.
        assert client.get("/health").json()["status"] == "online"
        with client.websocket_connect("/") as ws:
            ws.send_json({"type": "observer_connect"})
            assert ws.receive_json()["type"] == "esp32_status"


def test_no_static_dir(relay_app):
    with TestClient(relay_app) as client:
        assert client.get("/").status_code == 404


def test_cors_preflight(relay_app):
    with TestClient(relay_app) as client:
        response = client.options(
            "/command",
            headers={
                "Origin": "https://dashboard.example.com",
                "Access-Control-Request-Method": "POST",
                "Access-Control-Request-Headers": "Content-Type",
            },
        )

    assert response.status_code == 200
    assert response.headers["access-control-allow-origin"] == "*"


def test_cors_allows_any_method_and_header(relay_app):
    with TestClient(relay_app) as client:
        response = client.options(
            "/command",
            headers={
                "Origin": "https://dashboard.example.com",
                "Access-Control-Request-Method": "PUT",
                "Access-Control-Request-Headers": "X-Custom-Header",
            },
        )

    assert response.status_code == 200
    assert "PUT" in response.headers["access-control-allow-methods"]
    assert "x-custom-header" in response.headers["access-control-allow-headers"].lower()


def test_health_filter_drops_health_access_lines():
    f = _HealthCheckNoiseFilter()
    assert f.filter(_access_record("/health")) is False
    assert f.filter(_access_record("/api/health")) is False
    assert f.filter(_access_record("/command")) is True


def test_health_filter_ignores_other_loggers():
    record = logging.LogRecord(
        "device_relay.registry", logging.INFO, __file__, 1, "/health", None, None
    )
    assert _HealthCheckNoiseFilter().filter(record) is True


def test_mask():
    assert _mask("admin123") == "ad****23"
    assert _mask("abc") == "***"


def test_settings_from_env(monkeypatch):
    monkeypatch.setenv("PORT", "8080")
    monkeypatch.setenv("ESP32_TOKEN", "from-env")
    monkeypatch.setenv("WEB_PASSWORD", "hunter2")

    cfg = Settings()

    assert cfg.port == 8080
    assert cfg.esp32_token == "from-env"
    assert cfg.web_password == "hunter2"


def test_settings_defaults(monkeypatch):
    for name in ("PORT", "ESP32_TOKEN", "WEB_PASSWORD", "WEB_ACCESS_TOKEN"):
        monkeypatch.delenv(name, raising=False)

    cfg = Settings(_env_file=None)

    assert cfg.port == 3000
    assert cfg.esp32_token == "esp32_secret_token_2025"
    assert cfg.web_password == "admin123"
    assert cfg.web_access_token == "web_access_granted"
