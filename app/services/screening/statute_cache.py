"""
Statute Cache
=============

Write-once store of validated statute text keyed by
(jurisdiction, normalized key). Two implementations share one contract:

- SqlStatuteCache: the statute_cache table (SQLAlchemy async)
- InMemoryStatuteCache: a dict, for tests and one-off runs

Reads decode the stored JSON through a strict schema and re-run the
content check; anything that fails is reported as a miss, never returned.
"""

import logging
from typing import Dict, Optional, Protocol, Tuple

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.utc import utc_now
from app.models.models import StatuteCacheEntry
from app.services.screening.models import Jurisdiction, StatuteRecord
from app.services.screening.statute_text import validate_statute_text

logger = logging.getLogger(__name__)


class CachedStatutePayload(BaseModel):
    """Exact shape of a cache row's content column."""
    model_config = ConfigDict(strict=True, extra="forbid")

    title: Optional[str] = None
    text: str = Field(min_length=1)
    url: str = Field(min_length=1)
    fetched_at_iso: str = Field(min_length=1)


def encode_record(record: StatuteRecord) -> str:
    return CachedStatutePayload(
        title=record.title,
        text=record.text,
        url=record.url,
        fetched_at_iso=record.fetched_at_iso,
    ).model_dump_json()


def decode_record(jurisdiction: Jurisdiction, normalized_key: str, content_json: str) -> Optional[StatuteRecord]:
    """Strictly decode a stored row; None if the shape or content is off."""
    try:
        payload = CachedStatutePayload.model_validate_json(content_json)
    except ValidationError as e:
        logger.warning("Cache row %s:%s is malformed (%d errors); treating as miss",
                       jurisdiction.value, normalized_key, e.error_count())
        return None

    problem = validate_statute_text(jurisdiction, payload.text)
    if problem:
        logger.warning("Cache row %s:%s fails validation (%s); treating as miss",
                       jurisdiction.value, normalized_key, problem)
        return None

    return StatuteRecord(
        jurisdiction=jurisdiction,
        normalized_key=normalized_key,
        title=payload.title,
        text=payload.text,
        url=payload.url,
        fetched_at_iso=payload.fetched_at_iso,
        cached=True,
    )


class StatuteCache(Protocol):
    """Create-if-absent, read-if-present."""

    async def get(self, jurisdiction: Jurisdiction, normalized_key: str) -> Optional[StatuteRecord]:
        ...

    async def put_if_absent(self, record: StatuteRecord) -> bool:
        """Store the record unless the key exists. True if it was written."""
        ...


# =============================================================================
# In-memory
# =============================================================================

class InMemoryStatuteCache:
    """Dict-backed cache holding the same JSON rows the table would."""

    def __init__(self):
        self.rows: Dict[Tuple[str, str], str] = {}

    def __len__(self) -> int:
        return len(self.rows)

    async def get(self, jurisdiction: Jurisdiction, normalized_key: str) -> Optional[StatuteRecord]:
        content = self.rows.get((jurisdiction.value, normalized_key))
        if content is None:
            return None
        return decode_record(jurisdiction, normalized_key, content)

    async def put_if_absent(self, record: StatuteRecord) -> bool:
        key = (record.jurisdiction.value, record.normalized_key)
        if key in self.rows:
            return False
        self.rows[key] = encode_record(record)
        return True


# =============================================================================
# SQL
# =============================================================================

class SqlStatuteCache:
    """statute_cache table; the unique constraint enforces write-once."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def get(self, jurisdiction: Jurisdiction, normalized_key: str) -> Optional[StatuteRecord]:
        async with self.session_factory() as session:
            row = await session.scalar(
                select(StatuteCacheEntry.content_json).where(
                    StatuteCacheEntry.jurisdiction == jurisdiction.value,
                    StatuteCacheEntry.normalized_key == normalized_key,
                )
            )
        if row is None:
            return None
        return decode_record(jurisdiction, normalized_key, row)

    async def put_if_absent(self, record: StatuteRecord) -> bool:
        async with self.session_factory() as session:
            session.add(StatuteCacheEntry(
                jurisdiction=record.jurisdiction.value,
                normalized_key=record.normalized_key,
                content_json=encode_record(record),
                fetched_at=utc_now(),
            ))
            try:
                await session.commit()
            except IntegrityError:
                await session.rollback()
            else:
                return True

        if await self.get(record.jurisdiction, record.normalized_key) is None:
            logger.warning(
                "Statute %s:%s not cached: an invalid row holds the key and it will be refetched "
                "on every lookup until scripts/purge_statute_cache.py removes it",
                record.jurisdiction.value, record.normalized_key,
            )
        else:
            logger.info("Statute %s:%s already cached; keeping existing row",
                        record.jurisdiction.value, record.normalized_key)
        return False

    async def purge_invalid(self) -> int:
        """Delete rows that no longer decode or validate. Returns the count removed."""
        async with self.session_factory() as session:
            rows = (await session.execute(
                select(
                    StatuteCacheEntry.id,
                    StatuteCacheEntry.jurisdiction,
                    StatuteCacheEntry.normalized_key,
                    StatuteCacheEntry.content_json,
                )
            )).all()

            bad_ids = []
            for row_id, jurisdiction, normalized_key, content_json in rows:
                try:
                    jur = Jurisdiction(jurisdiction)
                except ValueError:
                    bad_ids.append(row_id)
                    continue
                if decode_record(jur, normalized_key, content_json) is None:
                    bad_ids.append(row_id)

            if bad_ids:
                await session.execute(delete(StatuteCacheEntry).where(StatuteCacheEntry.id.in_(bad_ids)))
                await session.commit()

        logger.info("Purged %d invalid statute cache rows", len(bad_ids))
        return len(bad_ids)
