import asyncio
import logging
import re
from contextlib import asynccontextmanager
from dataclasses import replace
from datetime import timedelta
from typing import AsyncIterator, Optional
from weakref import WeakValueDictionary

from passcode_auth.schemas.errors import EmailOtpError, ErrorCode
from passcode_auth.schemas.otp import IssuedOtp, OtpPurpose, OtpRecord
from passcode_auth.services.clock import Clock, SystemClock
from passcode_auth.services.codes import (
    CodeGenerator,
    HashedCodeEncoder,
    PlainCodeEncoder,
)
from passcode_auth.services.otp_store import OtpStore

LOGGER = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(
    r"^[A-Za-z0-9._%+'-]+@[A-Za-z0-9-]+(\.[A-Za-z0-9-]+)*\.[A-Za-z]{2,}$"
)


def normalize_identifier(identifier: str) -> str:
    return identifier.strip().lower()


def validate_email(identifier: str) -> str:
    normalized = normalize_identifier(identifier)
    if len(normalized) > 255 or not EMAIL_PATTERN.match(normalized):
        raise EmailOtpError(ErrorCode.INVALID_EMAIL)
    return normalized


class OtpLifecycleManager:
    """Issues, supersedes and consumes one-time passcodes.

    Mutations for one ``(identifier, purpose)`` pair run under a lock owned by
    that pair only. Locks are held weakly and vanish once no caller uses them.
    """

    def __init__(
        self,
        store: OtpStore,
        generator: Optional[CodeGenerator] = None,
        clock: Optional[Clock] = None,
        ttl_seconds: int = 300,
        encoder: Optional[PlainCodeEncoder | HashedCodeEncoder] = None,
    ) -> None:
        self._store = store
        self._generator = generator or CodeGenerator()
        self._clock = clock or SystemClock()
        self._ttl_seconds = ttl_seconds
        self._encoder = encoder or PlainCodeEncoder()
        self._locks: WeakValueDictionary[tuple[str, OtpPurpose], asyncio.Lock] = (
            WeakValueDictionary()
        )

    @property
    def exposes_code(self) -> bool:
        return self._encoder.exposes_code

    @asynccontextmanager
    async def _key_lock(self, identifier: str, purpose: OtpPurpose) -> AsyncIterator[None]:
        key = (identifier, purpose)
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        async with lock:
            yield

    async def request_code(self, identifier: str, purpose: OtpPurpose) -> IssuedOtp:
        normalized = validate_email(identifier)
        code = self._generator.generate()
        async with self._key_lock(normalized, purpose):
            now = self._clock.now()
            record = OtpRecord(
                identifier=normalized,
                purpose=purpose,
                code=self._encoder.encode(code),
                created_at=now,
                expires_at=now + timedelta(seconds=self._ttl_seconds),
            )
            stored = await self._store.replace_active(record)
        LOGGER.info(
            "OTP issued id=%s purpose=%s expires_at=%s",
            stored.id,
            purpose.value,
            stored.expires_at.isoformat(),
        )
        return IssuedOtp(record=stored, code=code)

    async def verify_code(
        self, identifier: str, purpose: OtpPurpose, candidate: str
    ) -> OtpRecord:
        normalized = normalize_identifier(identifier)
        async with self._key_lock(normalized, purpose):
            record = await self._store.get_active(normalized, purpose)
            if record is None:
                raise EmailOtpError(ErrorCode.OTP_NOT_FOUND)
            now = self._clock.now()
            if record.is_expired(now):
                LOGGER.info("OTP expired id=%s purpose=%s", record.id, purpose.value)
                raise EmailOtpError(ErrorCode.OTP_EXPIRED)
            if not self._encoder.matches(candidate, record.code):
                LOGGER.info("OTP mismatch id=%s purpose=%s", record.id, purpose.value)
                raise EmailOtpError(ErrorCode.INVALID_OTP)
            if not await self._store.mark_consumed(record.id, now):
                raise EmailOtpError(ErrorCode.OTP_NOT_FOUND)
        LOGGER.info("OTP consumed id=%s purpose=%s", record.id, purpose.value)
        return replace(record, consumed_at=now)

    async def get_active(
        self, identifier: str, purpose: OtpPurpose
    ) -> Optional[OtpRecord]:
        record = await self._store.get_active(normalize_identifier(identifier), purpose)
        if record is None or record.is_expired(self._clock.now()):
            return None
        return record

    async def discard(self, record: OtpRecord) -> None:
        async with self._key_lock(record.identifier, record.purpose):
            await self._store.delete(record.id)
        LOGGER.info("OTP discarded id=%s purpose=%s", record.id, record.purpose.value)
