"""Почему: журнал модерации пишется через одну точку доступа к БД."""

from __future__ import annotations

from collections.abc import AsyncIterator
from pathlib import Path

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from groupmaster.config import settings

SQLITE_PREFIX = "sqlite+aiosqlite:///"


class Base(DeclarativeBase):
    """Базовый класс моделей."""


engine: AsyncEngine = create_async_engine(settings.database_url, echo=False)
SessionFactory = async_sessionmaker(engine, expire_on_commit=False)


async def get_session() -> AsyncIterator[AsyncSession]:
    async with SessionFactory() as session:
        yield session


async def init_db(async_engine: AsyncEngine, database_url: str | None = None) -> None:
    """Создает каталог для SQLite-файла и таблицы моделей."""

    import groupmaster.models  # noqa: F401 - регистрирует таблицы в metadata

    url = database_url or settings.database_url
    if url.startswith(SQLITE_PREFIX) and ":memory:" not in url:
        Path(url.removeprefix(SQLITE_PREFIX)).expanduser().parent.mkdir(parents=True, exist_ok=True)
    async with async_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
