import logging
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from passcode_auth.auth import build_auth
from passcode_auth.config import Settings, settings as default_settings
from passcode_auth.database import Database
from passcode_auth.routers import email_otp
from passcode_auth.schemas.otp import OtpPurpose
from passcode_auth.services.clock import Clock
from passcode_auth.services.email_otp import DeliveryHook
from passcode_auth.services.policy import OtpPolicy

LOGGER = logging.getLogger(__name__)


async def log_delivery(identifier: str, code: str, purpose: OtpPurpose) -> None:
    # Default hook for local runs: nothing is sent and the code is not logged.
    LOGGER.warning("No OTP delivery hook configured purpose=%s", purpose.value)


def create_app(
    settings: Optional[Settings] = None,
    deliver: Optional[DeliveryHook] = None,
    *,
    database: Optional[Database] = None,
    clock: Optional[Clock] = None,
    policy: Optional[OtpPolicy] = None,
) -> FastAPI:
    settings = settings or default_settings
    auth = build_auth(
        settings,
        deliver or log_delivery,
        database=database,
        clock=clock,
        policy=policy,
    )

    app = FastAPI(title="Passcode Auth")
    app.state.auth = auth

    if settings.cors_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=list(settings.cors_origins),
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    app.include_router(email_otp.router, prefix="/api/auth")

    @app.on_event("startup")
    async def startup() -> None:
        await auth.database.init_db()

    @app.on_event("shutdown")
    async def shutdown() -> None:
        await auth.database.dispose()

    @app.get("/")
    def root():
        return {"status": "Backend running"}

    return app
