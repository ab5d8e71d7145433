import asyncio
import logging
from typing import Awaitable, Callable, Optional

from passcode_auth.schemas.errors import EmailOtpError, ErrorCode
from passcode_auth.schemas.otp import (
    OtpPurpose,
    SendOtpResponse,
    VerifiedEmail,
)
from passcode_auth.schemas.sessions import IssuedSession
from passcode_auth.schemas.users import UserResponse
from passcode_auth.services.flows import FlowDispatcher, FlowOutcome
from passcode_auth.services.otp import (
    OtpLifecycleManager,
    normalize_identifier,
    validate_email,
)
from passcode_auth.services.passwords import check_password_length
from passcode_auth.services.policy import OtpPolicy

LOGGER = logging.getLogger(__name__)

DeliveryHook = Callable[[str, str, OtpPurpose], Awaitable[None]]


class EmailOtpService:
    def __init__(
        self,
        otp: OtpLifecycleManager,
        flows: FlowDispatcher,
        deliver: DeliveryHook,
        policy: Optional[OtpPolicy] = None,
        min_password_length: int = 8,
        max_password_length: int = 128,
    ) -> None:
        self._otp = otp
        self._flows = flows
        self._deliver = deliver
        self._policy = policy or OtpPolicy()
        self._min_password_length = min_password_length
        self._max_password_length = max_password_length

    async def send_verification_otp(
        self, identifier: str, purpose: OtpPurpose
    ) -> SendOtpResponse:
        normalized = validate_email(identifier)
        await self._policy.before_send(normalized, purpose)
        issued = await self._otp.request_code(normalized, purpose)
        try:
            await self._deliver(normalized, issued.code, purpose)
        except asyncio.CancelledError:
            await self._otp.discard(issued.record)
            raise
        except Exception as exc:
            LOGGER.warning(
                "OTP delivery failed purpose=%s error=%s", purpose.value, exc
            )
            await self._otp.discard(issued.record)
            raise EmailOtpError(ErrorCode.DELIVERY_FAILED) from exc
        return SendOtpResponse(success=True)

    async def verify(
        self, identifier: str, purpose: OtpPurpose, code: str
    ) -> FlowOutcome:
        normalized = normalize_identifier(identifier)
        await self._policy.before_verify(normalized, purpose)
        record = await self._otp.verify_code(normalized, purpose, code)
        return await self._flows.dispatch(record)

    async def verify_email(self, identifier: str, code: str) -> VerifiedEmail:
        purpose = OtpPurpose.EMAIL_VERIFICATION
        normalized = normalize_identifier(identifier)
        await self._policy.before_verify(normalized, purpose)
        record = await self._otp.verify_code(normalized, purpose, code)
        return await self._flows.verify_email(record.identifier)

    async def sign_in_with_otp(self, identifier: str, code: str) -> IssuedSession:
        purpose = OtpPurpose.SIGN_IN
        normalized = normalize_identifier(identifier)
        await self._policy.before_verify(normalized, purpose)
        record = await self._otp.verify_code(normalized, purpose, code)
        return await self._flows.sign_in(record.identifier)

    async def reset_password(
        self, identifier: str, code: str, new_password: str
    ) -> UserResponse:
        check_password_length(
            new_password, self._min_password_length, self._max_password_length
        )
        purpose = OtpPurpose.FORGET_PASSWORD
        normalized = normalize_identifier(identifier)
        await self._policy.before_verify(normalized, purpose)
        record = await self._otp.verify_code(normalized, purpose, code)
        return await self._flows.reset_password(record.identifier, new_password)
