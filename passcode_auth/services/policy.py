from passcode_auth.schemas.otp import OtpPurpose


class OtpPolicy:
    """Hook points evaluated before a passcode is sent or checked.

    Subclasses reject a request by raising ``EmailOtpError``. The base class
    allows everything.
    """

    async def before_send(self, identifier: str, purpose: OtpPurpose) -> None:
        return None

    async def before_verify(self, identifier: str, purpose: OtpPurpose) -> None:
        return None
