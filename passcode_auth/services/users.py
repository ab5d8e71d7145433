import logging
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError

from passcode_auth.database import Database
from passcode_auth.models.user import UserEntry
from passcode_auth.schemas.users import UserResponse
from passcode_auth.services.clock import Clock, SystemClock, as_utc
from passcode_auth.services.otp import normalize_identifier

LOGGER = logging.getLogger(__name__)


class UserExistsError(ValueError):
    pass


class UserStore:
    def __init__(self, database: Database, clock: Optional[Clock] = None) -> None:
        self._database = database
        self._clock = clock or SystemClock()

    async def find_by_identifier(self, identifier: str) -> Optional[UserResponse]:
        key = normalize_identifier(identifier)
        async with self._database.session_scope() as session:
            result = await session.execute(select(UserEntry).where(UserEntry.email == key))
            entry = result.scalar_one_or_none()
            if entry is None:
                return None
            return self._to_response(entry)

    async def get_user(self, user_id: int) -> Optional[UserResponse]:
        async with self._database.session_scope() as session:
            entry = await session.get(UserEntry, user_id)
            if entry is None:
                return None
            return self._to_response(entry)

    async def create(
        self,
        identifier: str,
        *,
        name: Optional[str] = None,
        email_verified: bool = False,
    ) -> UserResponse:
        key = normalize_identifier(identifier)
        now = self._clock.now()
        try:
            async with self._database.session_scope() as session:
                entry = UserEntry(
                    email=key,
                    name=name,
                    email_verified=email_verified,
                    created_at=now,
                    updated_at=now,
                )
                session.add(entry)
                await session.flush()
                user = self._to_response(entry)
        except IntegrityError as exc:
            raise UserExistsError("Email already in use") from exc
        LOGGER.info("User created id=%s verified=%s", user.id, email_verified)
        return user

    async def set_verified(self, identifier: str) -> Optional[UserResponse]:
        key = normalize_identifier(identifier)
        async with self._database.session_scope() as session:
            await session.execute(
                update(UserEntry)
                .where(UserEntry.email == key)
                .values(email_verified=True, updated_at=self._clock.now())
            )
            result = await session.execute(select(UserEntry).where(UserEntry.email == key))
            entry = result.scalar_one_or_none()
            if entry is None:
                return None
            return self._to_response(entry)

    def _to_response(self, entry: UserEntry) -> UserResponse:
        return UserResponse(
            id=entry.id,
            email=entry.email,
            name=entry.name,
            email_verified=bool(entry.email_verified),
            created_at=as_utc(entry.created_at),
            updated_at=as_utc(entry.updated_at),
        )
