import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base

LOGGER = logging.getLogger(__name__)

Base = declarative_base()


def _build_database_url(raw_url: str) -> str:
    if raw_url.startswith("postgresql://"):
        return raw_url.replace("postgresql://", "postgresql+psycopg://", 1)
    return raw_url


class Database:
    """Async engine plus a session factory bound to it."""

    def __init__(self, url: str, echo: bool = False) -> None:
        if not url:
            raise RuntimeError("DATABASE_URL is not configured")
        self.url = _build_database_url(url)
        self.engine = create_async_engine(self.url, pool_pre_ping=True, echo=echo)
        self.session_factory = async_sessionmaker(
            self.engine, class_=AsyncSession, autoflush=False, expire_on_commit=False
        )

    async def init_db(self) -> None:
        from passcode_auth.models import account as _account  # noqa: F401
        from passcode_auth.models import otp as _otp  # noqa: F401
        from passcode_auth.models import session as _session  # noqa: F401
        from passcode_auth.models import user as _user  # noqa: F401

        async with self.engine.begin() as connection:
            await connection.run_sync(Base.metadata.create_all)
        LOGGER.info("Database tables ensured url=%s", self.engine.url.render_as_string())

    @asynccontextmanager
    async def session_scope(self) -> AsyncIterator[AsyncSession]:
        session = self.session_factory()
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()

    async def dispose(self) -> None:
        await self.engine.dispose()
