"""
test_web_auth.py - Login, logout, status and startup tests through the HTTP API
"""

import pytest

from conftest import ADMIN_PASSWORD
from s3explorer.core.errors import StartupError
from s3explorer.web.app import create_app

LOCAL_IP = "127.0.0.1"


def login(client, password=ADMIN_PASSWORD, **extra):
    return client.post("/api/auth/login", json={"password": password, **extra})


def set_cookie_header(response):
    return next(h for h in response.headers.getlist("Set-Cookie") if h.startswith("sid="))


class TestLogin:
    def test_success_sets_session_cookie(self, client):
        response = login(client)
        assert response.status_code == 200
        assert response.get_json() == {"success": True}

        cookie = set_cookie_header(response)
        assert "HttpOnly" in cookie
        assert "SameSite=Strict" in cookie
        assert "Max-Age=86400" in cookie
        assert "Secure" not in cookie

    def test_remember_me_extends_cookie(self, client):
        response = login(client, rememberMe=True)
        assert "Max-Age=604800" in set_cookie_header(response)

    def test_wrong_password(self, client):
        response = login(client, password="Wr0ngP@ssword!")
        assert response.status_code == 401
        assert response.get_json()["kind"] == "auth"
        assert "Set-Cookie" not in response.headers

    def test_missing_password(self, client, services):
        response = client.post("/api/auth/login", json={})
        assert response.status_code == 400
        assert response.get_json()["error"] == "Password required"
        assert services.rate_limiter.get_record(LOCAL_IP).attempts == 1

    def test_non_json_body(self, client):
        response = client.post("/api/auth/login", data="password", content_type="text/plain")
        assert response.status_code == 400

    def test_lockout_after_ten_failures(self, client):
        for _ in range(10):
            assert login(client, password="Wr0ngP@ssword!").status_code == 401

        response = login(client)
        assert response.status_code == 429
        body = response.get_json()
        assert body["retryAfter"] == 1800
        assert body["kind"] == "rate_limited"
        assert response.headers["Retry-After"] == "1800"

    def test_lockout_expires(self, client, clock):
        for _ in range(10):
            login(client, password="Wr0ngP@ssword!")
        assert login(client).status_code == 429

        clock.advance(30 * 60 + 1)
        assert login(client).status_code == 200

    def test_success_clears_failures(self, client, services):
        for _ in range(3):
            login(client, password="Wr0ngP@ssword!")
        assert login(client).status_code == 200
        assert services.rate_limiter.get_record(LOCAL_IP) is None

    def test_forwarded_for_ignored_by_default(self, client):
        for index in range(10):
            client.post(
                "/api/auth/login",
                json={"password": "Wr0ngP@ssword!"},
                headers={"X-Forwarded-For": f"10.0.0.{index}"},
            )
        assert login(client).status_code == 429


class TestStatusAndLogout:
    def test_status_anonymous(self, client):
        assert client.get("/api/auth/status").get_json() == {"authenticated": False, "loginTime": None}

    def test_status_after_login(self, auth_client, clock):
        body = auth_client.get("/api/auth/status").get_json()
        assert body == {"authenticated": True, "loginTime": int(clock() * 1000)}

    def test_logout(self, auth_client):
        response = auth_client.post("/api/auth/logout")
        assert response.status_code == 200
        assert response.get_json() == {"success": True}

        assert auth_client.get("/api/auth/status").get_json()["authenticated"] is False
        assert auth_client.get("/api/connections").status_code == 401

    def test_logout_without_session(self, client):
        assert client.post("/api/auth/logout").status_code == 200

    def test_session_expires(self, auth_client, clock):
        assert auth_client.get("/api/connections").status_code == 200
        clock.advance(24 * 60 * 60 + 1)
        assert auth_client.get("/api/connections").status_code == 401

    def test_forged_cookie_rejected(self, client):
        client.set_cookie("sid", "forged-token")
        assert client.get("/api/connections").status_code == 401


class TestSystem:
    def test_health(self, client):
        response = client.get("/api/health")
        assert response.status_code == 200
        assert response.get_json()["status"] == "ok"

    def test_unknown_route_is_json(self, client):
        response = client.get("/api/nope")
        assert response.status_code == 404
        assert response.get_json()["kind"] == "http"

    def test_security_headers(self, client):
        response = client.get("/api/health")
        assert response.headers["X-Content-Type-Options"] == "nosniff"
        assert response.headers["Cache-Control"] == "no-store"


class TestStartup:
    def test_missing_password_aborts(self, config, object_store):
        with pytest.raises(StartupError, match="APP_PASSWORD"):
            create_app(config, object_store=object_store, environ={})

    def test_weak_password_aborts(self, config, object_store):
        with pytest.raises(StartupError, match="uppercase"):
            create_app(config, object_store=object_store, environ={"APP_PASSWORD": "alllowercase1!"})

    def test_key_file_created(self, app, config):
        assert config.paths.key_file.exists()
        assert len(config.paths.key_file.read_bytes()) == 32
