"""Append-only durable history of scrape results.

SQLAlchemy 2.0 async; any async driver works, ``sqlite+aiosqlite`` is the
default. Each scrape is one row with the entries and metadata stored as
JSON.
"""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Protocol, runtime_checkable

import sqlalchemy as sa
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from ..engine.errors import StoreError
from ..models import ScrapeResult, entries_from_payload, entries_to_payload

log = logging.getLogger(__name__)

DEFAULT_HISTORY_LIMIT = 10


class Base(DeclarativeBase):
    pass


class SnapshotRecord(Base):
    __tablename__ = "leaderboard_snapshots"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    scraped_at: Mapped[datetime] = mapped_column(sa.DateTime(timezone=True), index=True)
    source_url: Mapped[str] = mapped_column(sa.String(2048), default="")
    total_entries: Mapped[int] = mapped_column(sa.Integer, default=0)
    entries: Mapped[list] = mapped_column(sa.JSON, default=list)
    # "metadata" is reserved on declarative classes
    meta: Mapped[dict] = mapped_column("metadata", sa.JSON, default=dict)


def _aware(value: datetime) -> datetime:
    # SQLite hands back naive datetimes even for timezone=True columns.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _to_result(record: SnapshotRecord) -> ScrapeResult:
    return ScrapeResult(
        entries=entries_from_payload(record.entries or []),
        source_url=record.source_url or "",
        scraped_at=_aware(record.scraped_at),
        metadata=dict(record.meta or {}),
    )


@runtime_checkable
class SnapshotStore(Protocol):
    async def append(self, result: ScrapeResult) -> int:
        ...

    async def latest(self) -> ScrapeResult | None:
        ...

    async def history(self, limit: int = DEFAULT_HISTORY_LIMIT) -> list[dict]:
        ...


class SqlSnapshotStore:
    """SnapshotStore over an ``AsyncEngine``. Database errors raise ``StoreError``."""

    def __init__(self, engine: AsyncEngine):
        self.engine = engine
        self._sessions = async_sessionmaker(
            bind=engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )

    @classmethod
    def from_url(cls, database_url: str) -> SqlSnapshotStore:
        return cls(create_async_engine(database_url, echo=False, pool_pre_ping=True))

    async def create_schema(self) -> None:
        try:
            async with self.engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
        except SQLAlchemyError as e:
            raise StoreError(f"schema creation failed: {e}") from e

    async def append(self, result: ScrapeResult) -> int:
        record = SnapshotRecord(
            scraped_at=result.scraped_at,
            source_url=result.source_url,
            total_entries=result.total_entries,
            entries=entries_to_payload(result.entries),
            meta=dict(result.metadata),
        )
        try:
            async with self._sessions() as session:
                session.add(record)
                await session.commit()
                return record.id
        except SQLAlchemyError as e:
            raise StoreError(f"store write failed: {e}") from e

    async def latest(self) -> ScrapeResult | None:
        stmt = (
            sa.select(SnapshotRecord)
            .order_by(SnapshotRecord.scraped_at.desc(), SnapshotRecord.id.desc())
            .limit(1)
        )
        try:
            async with self._sessions() as session:
                record = (await session.execute(stmt)).scalars().first()
        except SQLAlchemyError as e:
            raise StoreError(f"store read failed: {e}") from e
        return _to_result(record) if record is not None else None

    async def history(self, limit: int = DEFAULT_HISTORY_LIMIT) -> list[dict]:
        """Newest-first summaries: scrapedAt, totalEntries, sourceUrl, metadata."""
        stmt = (
            sa.select(
                SnapshotRecord.scraped_at,
                SnapshotRecord.total_entries,
                SnapshotRecord.source_url,
                SnapshotRecord.meta,
            )
            .order_by(SnapshotRecord.scraped_at.desc(), SnapshotRecord.id.desc())
            .limit(max(0, int(limit)))
        )
        try:
            async with self._sessions() as session:
                rows = (await session.execute(stmt)).all()
        except SQLAlchemyError as e:
            raise StoreError(f"history read failed: {e}") from e
        return [
            {
                "scrapedAt": _aware(scraped_at).isoformat(),
                "totalEntries": total,
                "sourceUrl": source_url,
                "metadata": dict(meta or {}),
            }
            for scraped_at, total, source_url, meta in rows
        ]

    async def close(self) -> None:
        await self.engine.dispose()
