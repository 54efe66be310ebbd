import logging
from typing import AsyncGenerator, Optional

from fastapi import Request
from sqlalchemy.ext.asyncio import create_async_engine, AsyncEngine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import StaticPool

from app.database.models import Base

logger = logging.getLogger(__name__)


class Database:
    """
    Owns the async engine and session factory for one application instance.
    Built in the app lifespan, kept on `app.state.db`, disposed on shutdown.
    """

    def __init__(self, url: str, echo: bool = False):
        self.url = url
        self.echo = echo
        self.engine: Optional[AsyncEngine] = None
        self.sessionmaker: Optional[async_sessionmaker] = None

    def connect(self) -> None:
        if self.engine is not None:
            return
        kwargs = {"echo": self.echo}
        if self.url.startswith("sqlite"):
            # In-memory sqlite must share one connection across sessions
            kwargs.update(connect_args={"check_same_thread": False}, poolclass=StaticPool)
        self.engine = create_async_engine(self.url, **kwargs)
        self.sessionmaker = async_sessionmaker(self.engine, class_=AsyncSession, expire_on_commit=False)
        logger.info("Database engine created for %s", self.engine.url.render_as_string(hide_password=True))

    async def create_all(self) -> None:
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def drop_all(self) -> None:
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)

    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        if self.sessionmaker is None:
            raise RuntimeError("Database.connect() has not been called")
        async with self.sessionmaker() as session:
            try:
                yield session
            finally:
                await session.close()

    async def dispose(self) -> None:
        if self.engine is not None:
            await self.engine.dispose()
            logger.info("Database engine disposed")
        self.engine = None
        self.sessionmaker = None


async def get_db(request: Request) -> AsyncGenerator[AsyncSession, None]:
    db: Database = request.app.state.db
    async for session in db.session():
        yield session
