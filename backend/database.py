# backend/database.py
from sqlmodel import SQLModel
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine, async_sessionmaker

from config import settings


def build_engine(url: str = settings.DATABASE_URL, **engine_kwargs) -> AsyncEngine:
    return create_async_engine(url, echo=False, **engine_kwargs)


def build_session_factory(bind: AsyncEngine) -> async_sessionmaker:
    return async_sessionmaker(bind, expire_on_commit=False)


engine = build_engine()
AsyncSessionLocal = build_session_factory(engine)

async def create_db_and_tables(bind: AsyncEngine = engine):
    async with bind.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)

async def get_session():
    async with AsyncSessionLocal() as session:
        yield session
