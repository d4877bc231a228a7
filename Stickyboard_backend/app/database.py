from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base
from app.config import settings
from app.migrations import run_migrations

Base = declarative_base()


def database_url(path: str | None = None) -> str:
    return f"sqlite+aiosqlite:///{path or settings.DATABASE_PATH}"


def build_engine(path: str | None = None, *, echo: bool | None = None) -> AsyncEngine:
    if echo is None:
        echo = settings.DATABASE_ECHO
    return create_async_engine(database_url(path), echo=echo)


def build_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def create_tables(engine: AsyncEngine):
    # 导入模型以注册元数据
    import models.notes  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
        await run_migrations(conn)
