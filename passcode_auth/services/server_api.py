from typing import Optional

from passcode_auth.schemas.otp import OtpPurpose, OtpRecordView
from passcode_auth.services.otp import OtpLifecycleManager


class EmailOtpServerApi:
    """Trusted server-side access to passcodes. Nothing here is delivered."""

    def __init__(self, otp: OtpLifecycleManager) -> None:
        self._otp = otp

    async def create_verification_otp(self, purpose: OtpPurpose, identifier: str) -> str:
        issued = await self._otp.request_code(identifier, purpose)
        return issued.code

    async def get_verification_otp(
        self, identifier: str, purpose: OtpPurpose
    ) -> Optional[OtpRecordView]:
        record = await self._otp.get_active(identifier, purpose)
        if record is None:
            return None
        return OtpRecordView(
            identifier=record.identifier,
            purpose=record.purpose,
            created_at=record.created_at,
            expires_at=record.expires_at,
            code=record.code if self._otp.exposes_code else None,
        )
