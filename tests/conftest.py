from datetime import datetime, timezone

import pytest

from passcode_auth.auth import build_auth
from passcode_auth.config import Settings
from passcode_auth.schemas.otp import OtpPurpose
from passcode_auth.services.clock import ManualClock

START = datetime(2026, 1, 1, 9, 0, tzinfo=timezone.utc)


class Outbox:
    """Delivery hook that records what would have been sent."""

    def __init__(self) -> None:
        self.sent: list[tuple[str, str, OtpPurpose]] = []
        self.fail_with: Exception | None = None

    async def __call__(self, identifier: str, code: str, purpose: OtpPurpose) -> None:
        if self.fail_with is not None:
            raise self.fail_with
        self.sent.append((identifier, code, purpose))

    @property
    def last_code(self) -> str:
        return self.sent[-1][1]


def make_settings(tmp_path, **overrides) -> Settings:
    values = {
        "database_url": f"sqlite+aiosqlite:///{tmp_path / 'auth.db'}",
        "jwt_secret": "test-secret",
        "otp_length": 6,
        "otp_ttl_seconds": 300,
        "otp_storage": "plain",
        "disable_sign_up": False,
        "send_verification_on_sign_up": False,
        "auto_sign_in_after_verification": False,
        "revoke_sessions_on_password_reset": False,
    }
    values.update(overrides)
    return Settings(**values)


@pytest.fixture
def clock():
    return ManualClock(START)


@pytest.fixture
def outbox():
    return Outbox()


@pytest.fixture
def settings(tmp_path):
    return make_settings(tmp_path)


@pytest.fixture
async def auth(settings, outbox, clock):
    components = build_auth(settings, outbox, clock=clock)
    await components.database.init_db()
    yield components
    await components.database.dispose()


@pytest.fixture
async def auth_factory(tmp_path, outbox, clock):
    """Build an auth stack with custom settings on its own database file."""
    created = []

    async def _build(deliver=None, policy=None, **overrides):
        overrides.setdefault(
            "database_url",
            f"sqlite+aiosqlite:///{tmp_path / f'auth-{len(created)}.db'}",
        )
        components = build_auth(
            make_settings(tmp_path, **overrides),
            deliver or outbox,
            clock=clock,
            policy=policy,
        )
        await components.database.init_db()
        created.append(components)
        return components

    yield _build
    for components in created:
        await components.database.dispose()
