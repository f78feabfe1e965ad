from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi.requests import HTTPConnection
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool


class Database:
    """Engine and session factory shared by one application instance."""

    def __init__(self, url: str, echo: bool = False):
        engine_kwargs = {"echo": echo}
        # every session must see the same in-memory database
        if url.startswith("sqlite") and (url.endswith("://") or ":memory:" in url):
            engine_kwargs.update(
                connect_args={"check_same_thread": False},
                poolclass=StaticPool,
            )
        self.engine = create_async_engine(url, **engine_kwargs)
        self.session_factory = async_sessionmaker(self.engine, class_=AsyncSession, expire_on_commit=False)

    @asynccontextmanager
    async def session(self) -> AsyncIterator[AsyncSession]:
        async with self.session_factory() as session:
            try:
                yield session
            finally:
                await session.close()

    async def create_tables(self):
        from pairchat.models import Base

        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def dispose(self):
        await self.engine.dispose()


async def get_db(connection: HTTPConnection):
    async with connection.app.state.db.session() as session:
        yield session
