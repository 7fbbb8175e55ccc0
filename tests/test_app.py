"""App factory, health endpoints, error shape, config guardrails and browser sockets."""

import pytest

from wholesale import create_app
from wholesale.config import ProductionConfig, TestingConfig
from wholesale.extensions import emit_socket, socketio
from wholesale.services.api_client import WholesaleApiError


class TestFactory:
    def test_blueprints_registered(self, app):
        assert {"health", "storefront", "cart", "checkout", "orders"} <= set(app.blueprints)

    def test_backend_client_and_board_installed(self):
        app = create_app(TestingConfig)
        assert app.extensions["wholesale_api"].base_url == "http://backend.test"
        assert app.extensions["stock_board"].snapshot() == {}

    def test_config_by_dotted_path(self):
        app = create_app("wholesale.config.TestingConfig")
        assert app.config["TESTING"] is True

    def test_request_id_is_echoed(self, client):
        resp = client.get("/livez", headers={"X-Request-ID": "abc123"})
        assert resp.headers["X-Request-ID"] == "abc123"
        assert "X-Response-Time-ms" in resp.headers

    def test_unknown_api_route_is_json(self, client):
        resp = client.get("/api/nope")
        assert resp.status_code == 404
        body = resp.get_json()
        assert body["ok"] is False
        assert body["error"]["code"] == "not_found"

    def test_error_codes_match_blueprint_errors(self, client):
        resp = client.put("/cart/items")
        assert resp.status_code == 405
        assert resp.get_json()["error"]["code"] == "method_not_allowed"

        bad = client.post("/cart/items", json={"quantity": 1}).get_json()
        assert isinstance(bad["error"]["code"], str)

    def test_unhandled_error_is_json(self, app, client):
        @app.get("/api/boom")
        def boom():
            raise RuntimeError("kaboom")

        resp = client.get("/api/boom")
        assert resp.status_code == 500
        assert resp.get_json()["error"] == {
            "code": "internal_server_error",
            "message": "Internal Server Error",
            "request_id": resp.headers["X-Request-ID"],
        }


class TestProductionGuardrails:
    def test_default_secret_key_is_refused(self, monkeypatch):
        monkeypatch.delenv("FLASK_DEBUG", raising=False)

        class Prod(ProductionConfig):
            SECRET_KEY = "dev-change-me"

        with pytest.raises(RuntimeError, match="SECRET_KEY"):
            create_app(Prod)

    def test_demo_payments_are_refused(self, monkeypatch):
        monkeypatch.delenv("FLASK_DEBUG", raising=False)

        class Prod(ProductionConfig):
            SECRET_KEY = "s3cr3t-" * 6
            WHOLESALE_DEMO_PAYMENTS = True

        with pytest.raises(RuntimeError, match="WHOLESALE_DEMO_PAYMENTS"):
            create_app(Prod)


class TestHealth:
    def test_healthz_ok(self, client):
        body = client.get("/healthz").get_json()
        assert body["status"] == "ok"
        assert body["parts"]["stripe"]["mode"] == "demo"
        assert body["parts"]["realtime"]["enabled"] is False

    def test_backend_down_is_degraded(self, client, api):
        def down():
            raise WholesaleApiError("unreachable")

        api.health_check = down
        resp = client.get("/healthz")
        assert resp.status_code == 200
        assert resp.get_json()["parts"]["backend"]["status"] == "degraded"

    def test_version(self, client):
        assert client.get("/version").get_json()["restaurant"] == "Hafaloha"


class TestBrowserSockets:
    def test_join_requires_slug(self, app):
        sio = socketio.test_client(app)
        assert sio.emit("join_fundraiser", {}, callback=True) == {"ok": False, "error": "slug is required"}
        sio.disconnect()

    def test_room_receives_stock_rebroadcast(self, app):
        shopper = socketio.test_client(app)
        other = socketio.test_client(app)
        assert shopper.emit("join_fundraiser", {"slug": "spring-sale"}, callback=True) == {
            "ok": True,
            "room": "spring-sale",
        }
        other.emit("join_fundraiser", {"slug": "band-camp"}, callback=True)

        with app.app_context():
            assert emit_socket("wholesale_item_stock_updated", {"id": 102, "in_stock": False}, "spring-sale")

        received = shopper.get_received()
        assert [m["name"] for m in received] == ["wholesale_item_stock_updated"]
        assert received[0]["args"][0]["id"] == 102
        assert other.get_received() == []
        shopper.disconnect()
        other.disconnect()
