from datetime import datetime, timedelta

import jwt

from passcode_auth.config import Settings
from passcode_auth.schemas.sessions import SessionTokenData, TokenError


class SessionTokenSigner:
    """Wraps an opaque session token in a signed cookie value."""

    def __init__(self, settings: Settings) -> None:
        self._secret = settings.jwt_secret
        self._algorithm = settings.jwt_algorithm

    def sign(self, session_token: str, issued_at: datetime, ttl_seconds: int) -> str:
        if not self._secret:
            raise TokenError("JWT secret is not configured")
        expires_at = issued_at + timedelta(seconds=ttl_seconds)
        payload = {
            "sid": session_token,
            "type": "session",
            "iat": int(issued_at.timestamp()),
            "exp": int(expires_at.timestamp()),
        }
        return jwt.encode(payload, self._secret, algorithm=self._algorithm)

    def unsign(self, value: str) -> SessionTokenData:
        if not value:
            raise TokenError("Token is missing")
        if not self._secret:
            raise TokenError("JWT secret is not configured")
        try:
            # Expiry is enforced by the session row against the injected clock.
            payload = jwt.decode(
                value,
                self._secret,
                algorithms=[self._algorithm],
                options={"verify_exp": False, "verify_iat": False},
            )
        except jwt.InvalidTokenError as exc:
            raise TokenError("Invalid token") from exc
        if payload.get("type") != "session":
            raise TokenError("Invalid token type")
        session_token = payload.get("sid")
        if not session_token:
            raise TokenError("Token is missing session id")
        return SessionTokenData(session_token=session_token)
