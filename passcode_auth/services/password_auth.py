import logging
from typing import Optional

from passcode_auth.config import Settings
from passcode_auth.schemas.errors import EmailOtpError, ErrorCode
from passcode_auth.schemas.otp import OtpPurpose
from passcode_auth.schemas.sessions import IssuedSession
from passcode_auth.services.credentials import CredentialStore
from passcode_auth.services.email_otp import EmailOtpService
from passcode_auth.services.otp import validate_email
from passcode_auth.services.passwords import check_password_length
from passcode_auth.services.sessions import SessionStore
from passcode_auth.services.users import UserExistsError, UserStore

LOGGER = logging.getLogger(__name__)


class PasswordAuthService:
    """Email and password sign-up/sign-in next to the passcode flows."""

    def __init__(
        self,
        settings: Settings,
        users: UserStore,
        sessions: SessionStore,
        credentials: CredentialStore,
        email_otp: EmailOtpService,
    ) -> None:
        self._users = users
        self._sessions = sessions
        self._credentials = credentials
        self._email_otp = email_otp
        self._send_verification = settings.send_verification_on_sign_up
        self._min_password_length = settings.min_password_length
        self._max_password_length = settings.max_password_length

    async def sign_up(
        self, identifier: str, password: str, name: Optional[str] = None
    ) -> IssuedSession:
        email = validate_email(identifier)
        check_password_length(
            password, self._min_password_length, self._max_password_length
        )
        try:
            user = await self._users.create(email, name=name)
        except UserExistsError as exc:
            raise EmailOtpError(ErrorCode.USER_ALREADY_EXISTS) from exc
        await self._credentials.upsert_password(user, password)
        if self._send_verification:
            try:
                await self._email_otp.send_verification_otp(
                    email, OtpPurpose.EMAIL_VERIFICATION
                )
            except EmailOtpError as exc:
                # The account stands; the user can ask for a new code later.
                LOGGER.warning(
                    "Verification OTP on sign-up failed user_id=%s code=%s",
                    user.id,
                    exc.code.value,
                )
        return await self._sessions.issue(user)

    async def sign_in(self, identifier: str, password: str) -> IssuedSession:
        user = await self._users.find_by_identifier(identifier)
        if user is None or not await self._credentials.check_password(user, password):
            raise EmailOtpError(ErrorCode.INVALID_EMAIL_OR_PASSWORD)
        return await self._sessions.issue(user)
