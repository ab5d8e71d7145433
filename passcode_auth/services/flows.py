import logging
from typing import Optional, Union, assert_never

from sqlalchemy.exc import SQLAlchemyError

from passcode_auth.config import Settings
from passcode_auth.schemas.errors import EmailOtpError, ErrorCode
from passcode_auth.schemas.otp import OtpPurpose, OtpRecord, VerifiedEmail
from passcode_auth.schemas.sessions import IssuedSession
from passcode_auth.schemas.users import UserResponse
from passcode_auth.services.credentials import CredentialStore
from passcode_auth.services.sessions import SessionStore
from passcode_auth.services.users import UserExistsError, UserStore

LOGGER = logging.getLogger(__name__)

FlowOutcome = Union[IssuedSession, VerifiedEmail, UserResponse, None]


class FlowDispatcher:
    """Runs the side effect that belongs to a freshly consumed passcode."""

    def __init__(
        self,
        settings: Settings,
        users: UserStore,
        sessions: SessionStore,
        credentials: CredentialStore,
    ) -> None:
        self._users = users
        self._sessions = sessions
        self._credentials = credentials
        self._disable_sign_up = settings.disable_sign_up
        self._auto_sign_in = settings.auto_sign_in_after_verification
        self._revoke_on_reset = settings.revoke_sessions_on_password_reset

    async def dispatch(self, record: OtpRecord) -> FlowOutcome:
        match record.purpose:
            case OtpPurpose.SIGN_IN:
                return await self.sign_in(record.identifier)
            case OtpPurpose.EMAIL_VERIFICATION:
                return await self.verify_email(record.identifier)
            case OtpPurpose.FORGET_PASSWORD:
                # Possession proof only; the reset itself consumes its own code.
                return None
            case _:
                assert_never(record.purpose)

    async def sign_in(self, identifier: str) -> IssuedSession:
        user = await self._users.find_by_identifier(identifier)
        if user is None:
            if self._disable_sign_up:
                raise EmailOtpError(ErrorCode.USER_NOT_FOUND)
            user = await self._provision(identifier)
        elif not user.email_verified:
            # Holding the code proves ownership of the address.
            user = await self._users.set_verified(identifier) or user
        return await self._sessions.issue(user)

    async def verify_email(self, identifier: str) -> VerifiedEmail:
        user = await self._users.set_verified(identifier)
        if user is None:
            raise EmailOtpError(ErrorCode.USER_NOT_FOUND)
        if not self._auto_sign_in:
            return VerifiedEmail(user=user)
        return VerifiedEmail(user=user, session=await self._sessions.issue(user))

    async def reset_password(self, identifier: str, new_password: str) -> UserResponse:
        user = await self._users.find_by_identifier(identifier)
        if user is None:
            raise EmailOtpError(ErrorCode.USER_NOT_FOUND)
        await self._credentials.upsert_password(user, new_password)
        if self._revoke_on_reset:
            await self._sessions.revoke_user_sessions(user.id)
        return user

    async def _provision(self, identifier: str) -> UserResponse:
        try:
            return await self._users.create(identifier, email_verified=True)
        except UserExistsError:
            # Lost a race with a concurrent sign-in for the same address.
            existing: Optional[UserResponse] = await self._users.find_by_identifier(
                identifier
            )
            if existing is not None:
                return existing
            raise EmailOtpError(ErrorCode.USER_PROVISION_FAILED)
        except SQLAlchemyError as exc:
            LOGGER.error("User provisioning failed: %s", exc)
            raise EmailOtpError(ErrorCode.USER_PROVISION_FAILED) from exc
