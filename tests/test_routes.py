"""
End-to-end tests through the HTTP binding.
"""

import pytest
from starlette.testclient import TestClient

from passcode_auth.main import create_app
from tests.conftest import make_settings

PREFIX = "/api/auth"
ALICE = "alice@example.com"


@pytest.fixture
def client(tmp_path, outbox, clock):
    app = create_app(
        make_settings(tmp_path, auto_sign_in_after_verification=True),
        outbox,
        clock=clock,
    )
    with TestClient(app) as test_client:
        yield test_client


def _send(client, email, purpose):
    return client.post(
        f"{PREFIX}/email-otp/send-verification-otp", json={"email": email, "type": purpose}
    )


class TestSendRoute:
    def test_send_reports_success(self, client, outbox):
        response = _send(client, ALICE, "sign-in")

        assert response.status_code == 200
        assert response.json() == {"success": True}
        assert len(outbox.last_code) == 6

    def test_invalid_email_is_400(self, client, outbox):
        response = _send(client, "invalid-email", "email-verification")

        assert response.status_code == 400
        assert response.json()["detail"]["code"] == "INVALID_EMAIL"
        assert outbox.sent == []

    def test_unknown_purpose_is_rejected(self, client):
        response = _send(client, ALICE, "magic-link")

        assert response.status_code == 422

    def test_delivery_failure_is_502(self, client, outbox):
        outbox.fail_with = RuntimeError("smtp down")

        response = _send(client, ALICE, "sign-in")

        assert response.status_code == 502
        assert response.json()["detail"]["code"] == "DELIVERY_FAILED"


class TestSignInRoute:
    def test_sign_in_sets_session_cookie(self, client, outbox):
        _send(client, ALICE, "sign-in")
        code = outbox.last_code

        response = client.post(f"{PREFIX}/sign-in/email-otp", json={"email": ALICE, "otp": code})

        assert response.status_code == 200
        body = response.json()
        assert body["token"]
        assert body["user"]["email"] == ALICE
        assert "better-auth.session_token" in response.headers["set-cookie"]

        session = client.get(f"{PREFIX}/get-session")
        assert session.status_code == 200
        assert session.json()["token"] == body["token"]

        replay = client.post(f"{PREFIX}/sign-in/email-otp", json={"email": ALICE, "otp": code})
        assert replay.status_code == 400
        assert replay.json()["detail"]["code"] == "OTP_NOT_FOUND"

    def test_bearer_session_lookup(self, client, outbox):
        _send(client, "test-email@domain.com", "sign-in")
        body = client.post(
            f"{PREFIX}/sign-in/email-otp",
            json={"email": "test-email@domain.com", "otp": outbox.last_code},
        ).json()
        client.cookies.clear()

        session = client.get(
            f"{PREFIX}/get-session", headers={"Authorization": f"Bearer {body['token']}"}
        )

        assert session.status_code == 200
        assert session.json()["user"]["email_verified"] is True

    def test_sign_out_revokes_session(self, client, outbox):
        _send(client, ALICE, "sign-in")
        token = client.post(
            f"{PREFIX}/sign-in/email-otp", json={"email": ALICE, "otp": outbox.last_code}
        ).json()["token"]
        headers = {"Authorization": f"Bearer {token}"}

        assert client.post(f"{PREFIX}/sign-out", headers=headers).status_code == 200
        assert client.get(f"{PREFIX}/get-session", headers=headers).status_code == 401


class TestVerifyEmailRoute:
    def _sign_up(self, client):
        response = client.post(
            f"{PREFIX}/sign-up/email",
            json={"email": ALICE, "password": "password", "name": "Alice"},
        )
        assert response.status_code == 200
        client.cookies.clear()

    def test_verify_after_four_minutes(self, client, outbox, clock):
        self._sign_up(client)
        _send(client, ALICE, "email-verification")
        clock.advance(minutes=4)

        response = client.post(
            f"{PREFIX}/email-otp/verify-email", json={"email": ALICE, "otp": outbox.last_code}
        )

        assert response.status_code == 200
        body = response.json()
        assert body["status"] is True
        session = client.get(
            f"{PREFIX}/get-session", headers={"Authorization": f"Bearer {body['token']}"}
        )
        assert session.json()["user"]["email_verified"] is True

    def test_expired_after_five_minutes(self, client, outbox, clock):
        self._sign_up(client)
        _send(client, ALICE, "email-verification")
        clock.advance(minutes=5)

        response = client.post(
            f"{PREFIX}/email-otp/verify-email", json={"email": ALICE, "otp": outbox.last_code}
        )

        assert response.status_code == 400
        assert response.json()["detail"]["code"] == "OTP_EXPIRED"


class TestResetPasswordRoute:
    def test_reset_then_password_sign_in(self, client, outbox):
        client.post(f"{PREFIX}/sign-up/email", json={"email": ALICE, "password": "password"})
        _send(client, ALICE, "forget-password")

        response = client.post(
            f"{PREFIX}/email-otp/reset-password",
            json={"email": ALICE, "otp": outbox.last_code, "password": "changed-password"},
        )

        assert response.status_code == 200
        assert response.json()["user"]["email"] == ALICE
        good = client.post(
            f"{PREFIX}/sign-in/email", json={"email": ALICE, "password": "changed-password"}
        )
        assert good.status_code == 200
        assert good.json()["user"]["email"] == ALICE
        bad = client.post(f"{PREFIX}/sign-in/email", json={"email": ALICE, "password": "password"})
        assert bad.status_code == 401
        assert bad.json()["detail"]["code"] == "INVALID_EMAIL_OR_PASSWORD"


class TestAppFactory:
    def test_missing_jwt_secret_is_rejected(self, tmp_path, outbox, clock):
        with pytest.raises(RuntimeError, match="JWT_SECRET"):
            create_app(make_settings(tmp_path, jwt_secret=""), outbox, clock=clock)


class TestCors:
    def test_configured_origin_is_allowed(self, tmp_path, outbox, clock):
        origin = "http://localhost:5173"
        app = create_app(
            make_settings(tmp_path, cors_origins=(origin,)), outbox, clock=clock
        )

        with TestClient(app) as test_client:
            response = test_client.options(
                f"{PREFIX}/sign-in/email-otp",
                headers={
                    "Origin": origin,
                    "Access-Control-Request-Method": "POST",
                },
            )

        assert response.status_code == 200
        assert response.headers["access-control-allow-origin"] == origin
        assert response.headers["access-control-allow-credentials"] == "true"
