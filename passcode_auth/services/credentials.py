import logging
from typing import Optional

from sqlalchemy import select

from passcode_auth.database import Database
from passcode_auth.models.account import AccountEntry
from passcode_auth.schemas.users import UserResponse
from passcode_auth.services.clock import Clock, SystemClock
from passcode_auth.services.passwords import hash_password, verify_password

LOGGER = logging.getLogger(__name__)

CREDENTIAL_PROVIDER = "credential"


class CredentialStore:
    """Password credentials, one ``credential`` account row per user."""

    def __init__(self, database: Database, clock: Optional[Clock] = None) -> None:
        self._database = database
        self._clock = clock or SystemClock()

    async def upsert_password(self, user: UserResponse, password: str) -> bool:
        """Store ``password`` for ``user``. Returns True when a credential was created."""
        password_hash = await hash_password(password)
        now = self._clock.now()
        async with self._database.session_scope() as session:
            entry = await self._get_entry(session, user.id)
            if entry is not None:
                entry.password_hash = password_hash
                entry.updated_at = now
                LOGGER.info("Password credential updated user_id=%s", user.id)
                return False
            session.add(
                AccountEntry(
                    user_id=user.id,
                    provider_id=CREDENTIAL_PROVIDER,
                    password_hash=password_hash,
                    created_at=now,
                    updated_at=now,
                )
            )
        LOGGER.info("Password credential created user_id=%s", user.id)
        return True

    async def has_password(self, user: UserResponse) -> bool:
        async with self._database.session_scope() as session:
            entry = await self._get_entry(session, user.id)
            return entry is not None and bool(entry.password_hash)

    async def check_password(self, user: UserResponse, password: str) -> bool:
        async with self._database.session_scope() as session:
            entry = await self._get_entry(session, user.id)
            stored_hash = entry.password_hash if entry is not None else None
        if not stored_hash:
            return False
        return await verify_password(password, stored_hash)

    async def _get_entry(self, session, user_id: int) -> Optional[AccountEntry]:
        result = await session.execute(
            select(AccountEntry).where(
                AccountEntry.user_id == user_id,
                AccountEntry.provider_id == CREDENTIAL_PROVIDER,
            )
        )
        return result.scalar_one_or_none()
