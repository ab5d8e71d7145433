import itertools
from abc import ABC, abstractmethod
from dataclasses import replace
from datetime import datetime
from typing import Optional

from sqlalchemy import delete, select, update

from passcode_auth.database import Database
from passcode_auth.models.otp import OtpEntry
from passcode_auth.schemas.otp import OtpPurpose, OtpRecord
from passcode_auth.services.clock import as_utc


class OtpStore(ABC):
    """Keyed persistence of OTP records.

    ``replace_active`` must supersede and insert as one step, and
    ``mark_consumed`` must only succeed for a record that is still pending.
    """

    @abstractmethod
    async def replace_active(self, record: OtpRecord) -> OtpRecord: ...

    @abstractmethod
    async def get_active(
        self, identifier: str, purpose: OtpPurpose
    ) -> Optional[OtpRecord]: ...

    @abstractmethod
    async def mark_consumed(self, record_id: int, consumed_at: datetime) -> bool: ...

    @abstractmethod
    async def delete(self, record_id: int) -> None: ...


class SqlOtpStore(OtpStore):
    def __init__(self, database: Database) -> None:
        self._database = database

    async def replace_active(self, record: OtpRecord) -> OtpRecord:
        async with self._database.session_scope() as session:
            await session.execute(
                update(OtpEntry)
                .where(
                    OtpEntry.identifier == record.identifier,
                    OtpEntry.purpose == record.purpose.value,
                    OtpEntry.consumed_at.is_(None),
                    OtpEntry.superseded_at.is_(None),
                )
                .values(superseded_at=record.created_at)
            )
            entry = OtpEntry(
                identifier=record.identifier,
                purpose=record.purpose.value,
                code=record.code,
                created_at=record.created_at,
                expires_at=record.expires_at,
            )
            session.add(entry)
            await session.flush()
            return replace(record, id=entry.id)

    async def get_active(
        self, identifier: str, purpose: OtpPurpose
    ) -> Optional[OtpRecord]:
        async with self._database.session_scope() as session:
            result = await session.execute(
                select(OtpEntry)
                .where(
                    OtpEntry.identifier == identifier,
                    OtpEntry.purpose == purpose.value,
                    OtpEntry.consumed_at.is_(None),
                    OtpEntry.superseded_at.is_(None),
                )
                .order_by(OtpEntry.id.desc())
                .limit(1)
            )
            entry = result.scalar_one_or_none()
            if entry is None:
                return None
            return _to_record(entry)

    async def mark_consumed(self, record_id: int, consumed_at: datetime) -> bool:
        async with self._database.session_scope() as session:
            result = await session.execute(
                update(OtpEntry)
                .where(
                    OtpEntry.id == record_id,
                    OtpEntry.consumed_at.is_(None),
                    OtpEntry.superseded_at.is_(None),
                )
                .values(consumed_at=consumed_at)
            )
            return result.rowcount > 0

    async def delete(self, record_id: int) -> None:
        async with self._database.session_scope() as session:
            await session.execute(delete(OtpEntry).where(OtpEntry.id == record_id))


def _to_record(entry: OtpEntry) -> OtpRecord:
    return OtpRecord(
        id=entry.id,
        identifier=entry.identifier,
        purpose=OtpPurpose(entry.purpose),
        code=entry.code,
        created_at=as_utc(entry.created_at),
        expires_at=as_utc(entry.expires_at),
        consumed_at=as_utc(entry.consumed_at),
        superseded_at=as_utc(entry.superseded_at),
    )


class InMemoryOtpStore(OtpStore):
    """Process-local store. Every method completes without awaiting, so each
    call is atomic with respect to other coroutines on the same loop."""

    def __init__(self) -> None:
        self._records: dict[int, OtpRecord] = {}
        self._ids = itertools.count(1)

    async def replace_active(self, record: OtpRecord) -> OtpRecord:
        for record_id, existing in list(self._records.items()):
            if (
                existing.identifier == record.identifier
                and existing.purpose == record.purpose
                and existing.consumed_at is None
                and existing.superseded_at is None
            ):
                self._records[record_id] = replace(
                    existing, superseded_at=record.created_at
                )
        stored = replace(record, id=next(self._ids))
        self._records[stored.id] = stored
        return stored

    async def get_active(
        self, identifier: str, purpose: OtpPurpose
    ) -> Optional[OtpRecord]:
        candidates = [
            record
            for record in self._records.values()
            if record.identifier == identifier
            and record.purpose == purpose
            and record.consumed_at is None
            and record.superseded_at is None
        ]
        if not candidates:
            return None
        return max(candidates, key=lambda record: record.id)

    async def mark_consumed(self, record_id: int, consumed_at: datetime) -> bool:
        existing = self._records.get(record_id)
        if existing is None or existing.consumed_at or existing.superseded_at:
            return False
        self._records[record_id] = replace(existing, consumed_at=consumed_at)
        return True

    async def delete(self, record_id: int) -> None:
        self._records.pop(record_id, None)

    def all_records(self) -> list[OtpRecord]:
        return sorted(self._records.values(), key=lambda record: record.id)
