from dataclasses import dataclass
from typing import Optional

from passcode_auth.config import Settings
from passcode_auth.database import Database
from passcode_auth.services.clock import Clock, SystemClock
from passcode_auth.services.codes import CodeGenerator, build_code_encoder
from passcode_auth.services.credentials import CredentialStore
from passcode_auth.services.email_otp import DeliveryHook, EmailOtpService
from passcode_auth.services.flows import FlowDispatcher
from passcode_auth.services.otp import OtpLifecycleManager
from passcode_auth.services.otp_store import OtpStore, SqlOtpStore
from passcode_auth.services.password_auth import PasswordAuthService
from passcode_auth.services.policy import OtpPolicy
from passcode_auth.services.server_api import EmailOtpServerApi
from passcode_auth.services.sessions import SessionStore
from passcode_auth.services.users import UserStore


@dataclass
class EmailOtpAuth:
    settings: Settings
    database: Database
    otp: OtpLifecycleManager
    users: UserStore
    sessions: SessionStore
    credentials: CredentialStore
    flows: FlowDispatcher
    email_otp: EmailOtpService
    passwords: PasswordAuthService
    server: EmailOtpServerApi


def build_auth(
    settings: Settings,
    deliver: DeliveryHook,
    *,
    database: Optional[Database] = None,
    clock: Optional[Clock] = None,
    store: Optional[OtpStore] = None,
    policy: Optional[OtpPolicy] = None,
) -> EmailOtpAuth:
    if not settings.jwt_secret:
        raise RuntimeError("JWT_SECRET is not configured")
    database = database or Database(settings.database_url, echo=settings.database_echo)
    clock = clock or SystemClock()
    otp = OtpLifecycleManager(
        store or SqlOtpStore(database),
        generator=CodeGenerator(settings.otp_length),
        clock=clock,
        ttl_seconds=settings.otp_ttl_seconds,
        encoder=build_code_encoder(settings.otp_storage),
    )
    users = UserStore(database, clock)
    sessions = SessionStore(database, settings, clock)
    credentials = CredentialStore(database, clock)
    flows = FlowDispatcher(settings, users, sessions, credentials)
    email_otp = EmailOtpService(
        otp,
        flows,
        deliver,
        policy=policy,
        min_password_length=settings.min_password_length,
        max_password_length=settings.max_password_length,
    )
    passwords = PasswordAuthService(settings, users, sessions, credentials, email_otp)
    return EmailOtpAuth(
        settings=settings,
        database=database,
        otp=otp,
        users=users,
        sessions=sessions,
        credentials=credentials,
        flows=flows,
        email_otp=email_otp,
        passwords=passwords,
        server=EmailOtpServerApi(otp),
    )
