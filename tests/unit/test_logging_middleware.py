import json
from fastapi.testclient import TestClient
from unittest.mock import patch
from schoolhub.main import app
from schoolhub.middleware.logging_middleware import mask_sensitive


class TestMaskSensitive:

    def test_password_is_masked(self):
        body = json.dumps({"email": "a@school.test", "password": "temp-pass-1"}).encode()

        masked = json.loads(mask_sensitive(body))

        assert masked == {"email": "a@school.test", "password": "***"}

    def test_non_json_body_is_passed_through(self):
        assert mask_sensitive(b"ok") == "ok"


class TestAppLogging:

    def test_debug_mode_logs_without_password(self, caplog, store, auth):
        with patch("schoolhub.middleware.logging_middleware.config.DEBUG_MODE", True), \
             patch("schoolhub.api.routes.get_store", return_value=store), \
             patch("schoolhub.api.routes.get_auth", return_value=auth):
            with caplog.at_level("INFO", logger="schoolhub.middleware.logging_middleware"):
                response = TestClient(app).post(
                    "/functions/admin-create-teacher",
                    json={"email": "not-an-email", "password": "temp-pass-1", "full_name": "Nia"},
                    headers={"Authorization": "Bearer token"},
                )

        assert response.status_code == 400
        assert "temp-pass-1" not in caplog.text
        assert "Request Body" in caplog.text

    def test_cors_preflight_from_browser(self):
        response = TestClient(app).options(
            "/functions/admin-create-teacher",
            headers={"Origin": "https://school.example", "Access-Control-Request-Method": "POST"},
        )
        assert response.status_code == 200
