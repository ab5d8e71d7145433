import logging
import secrets
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import delete, select, update

from passcode_auth.config import Settings
from passcode_auth.database import Database
from passcode_auth.models.session import SessionEntry
from passcode_auth.schemas.sessions import IssuedSession, SessionCookie, TokenError
from passcode_auth.schemas.users import UserResponse
from passcode_auth.services.clock import Clock, SystemClock, as_utc
from passcode_auth.services.tokens import SessionTokenSigner

LOGGER = logging.getLogger(__name__)


class SessionStore:
    def __init__(
        self, database: Database, settings: Settings, clock: Optional[Clock] = None
    ) -> None:
        self._database = database
        self._clock = clock or SystemClock()
        self._ttl_seconds = settings.session_ttl_seconds
        self._cookie_name = settings.session_cookie_name
        self._signer = SessionTokenSigner(settings)

    async def issue(self, user: UserResponse) -> IssuedSession:
        now = self._clock.now()
        token = secrets.token_urlsafe(32)
        expires_at = now + timedelta(seconds=self._ttl_seconds)
        cookie_value = self._signer.sign(token, now, self._ttl_seconds)
        async with self._database.session_scope() as session:
            await session.execute(delete(SessionEntry).where(SessionEntry.expires_at <= now))
            session.add(
                SessionEntry(
                    token=token,
                    user_id=user.id,
                    created_at=now,
                    expires_at=expires_at,
                    revoked_at=None,
                )
            )
        LOGGER.info("Session issued user_id=%s", user.id)
        return IssuedSession(
            token=token,
            cookie=SessionCookie(
                name=self._cookie_name, value=cookie_value, max_age=self._ttl_seconds
            ),
            expires_at=expires_at,
            user=user,
        )

    async def get_user_id(self, token: str) -> Optional[int]:
        entry = await self._get_active_entry(token)
        if entry is None:
            return None
        return entry.user_id

    async def get_expiry(self, token: str) -> Optional[datetime]:
        entry = await self._get_active_entry(token)
        if entry is None:
            return None
        return as_utc(entry.expires_at)

    async def resolve_cookie(self, cookie_value: str) -> Optional[str]:
        """Return the session token inside a signed cookie if it is still live."""
        try:
            data = self._signer.unsign(cookie_value)
        except TokenError:
            return None
        if await self._get_active_entry(data.session_token) is None:
            return None
        return data.session_token

    async def revoke_session(self, token: str) -> bool:
        now = self._clock.now()
        async with self._database.session_scope() as session:
            result = await session.execute(
                update(SessionEntry)
                .where(SessionEntry.token == token, SessionEntry.revoked_at.is_(None))
                .values(revoked_at=now)
            )
            return result.rowcount > 0

    async def revoke_user_sessions(self, user_id: int) -> int:
        now = self._clock.now()
        async with self._database.session_scope() as session:
            result = await session.execute(
                update(SessionEntry)
                .where(SessionEntry.user_id == user_id, SessionEntry.revoked_at.is_(None))
                .values(revoked_at=now)
            )
        LOGGER.info("Sessions revoked user_id=%s count=%s", user_id, result.rowcount)
        return result.rowcount

    async def _get_active_entry(self, token: str) -> Optional[SessionEntry]:
        if not token:
            return None
        now = self._clock.now()
        async with self._database.session_scope() as session:
            result = await session.execute(
                select(SessionEntry).where(
                    SessionEntry.token == token,
                    SessionEntry.revoked_at.is_(None),
                    SessionEntry.expires_at > now,
                )
            )
            return result.scalar_one_or_none()
