"""
Tests for the write-once statute cache (in-memory and SQL).
"""
import json
import logging

import pytest

from app.core.utc import utc_now, utc_now_iso
from app.models.models import StatuteCacheEntry
from app.services.screening.models import Jurisdiction, StatuteRecord
from app.services.screening.statute_cache import (
    InMemoryStatuteCache,
    SqlStatuteCache,
    decode_record,
    encode_record,
)


STATUTE_TEXT = "(1) A person commits theft if the person takes property of another. " * 8


def make_record(key="76-6-404", text=STATUTE_TEXT, jurisdiction=Jurisdiction.UTAH) -> StatuteRecord:
    return StatuteRecord(
        jurisdiction=jurisdiction,
        normalized_key=key,
        title="Theft",
        text=text,
        url=f"https://example.test/{key}",
        fetched_at_iso=utc_now_iso(),
    )


class TestCodec:

    def test_encode_decode(self):
        record = make_record()
        decoded = decode_record(Jurisdiction.UTAH, "76-6-404", encode_record(record))
        assert decoded.text == record.text
        assert decoded.title == "Theft"
        assert decoded.cached is True

    def test_unknown_field_is_a_miss(self):
        content = json.loads(encode_record(make_record()))
        content["extra"] = 1
        assert decode_record(Jurisdiction.UTAH, "76-6-404", json.dumps(content)) is None

    def test_wrong_type_is_a_miss(self):
        content = json.loads(encode_record(make_record()))
        content["text"] = 42
        assert decode_record(Jurisdiction.UTAH, "76-6-404", json.dumps(content)) is None

    def test_not_json_is_a_miss(self):
        assert decode_record(Jurisdiction.UTAH, "76-6-404", "{not json") is None

    def test_invalid_content_is_a_miss(self):
        content = encode_record(make_record(text="(1) too short"))
        assert decode_record(Jurisdiction.UTAH, "76-6-404", content) is None


class TestInMemoryCache:

    @pytest.mark.asyncio
    async def test_write_once(self):
        cache = InMemoryStatuteCache()
        assert await cache.put_if_absent(make_record()) is True
        assert await cache.put_if_absent(make_record(text=STATUTE_TEXT + " amended")) is False

        stored = await cache.get(Jurisdiction.UTAH, "76-6-404")
        assert stored.text == STATUTE_TEXT
        assert len(cache) == 1

    @pytest.mark.asyncio
    async def test_keys_are_per_jurisdiction(self):
        cache = InMemoryStatuteCache()
        await cache.put_if_absent(make_record(key="9-1-101"))
        assert await cache.get(Jurisdiction.WVC, "9-1-101") is None


class TestSqlCache:

    @pytest.mark.asyncio
    async def test_put_and_get(self, session_factory):
        cache = SqlStatuteCache(session_factory)
        assert await cache.get(Jurisdiction.UTAH, "76-6-404") is None

        assert await cache.put_if_absent(make_record()) is True
        stored = await cache.get(Jurisdiction.UTAH, "76-6-404")

        assert stored is not None
        assert stored.cached is True
        assert stored.text == STATUTE_TEXT

    @pytest.mark.asyncio
    async def test_existing_row_kept(self, session_factory):
        cache = SqlStatuteCache(session_factory)
        await cache.put_if_absent(make_record())

        written = await cache.put_if_absent(make_record(text=STATUTE_TEXT + " replaced"))

        assert written is False
        stored = await cache.get(Jurisdiction.UTAH, "76-6-404")
        assert stored.text == STATUTE_TEXT

    @pytest.mark.asyncio
    async def test_invalid_row_blocking_write_is_logged(self, session_factory, caplog):
        cache = SqlStatuteCache(session_factory)
        async with session_factory() as session:
            session.add(StatuteCacheEntry(
                jurisdiction="UT", normalized_key="76-6-404",
                content_json='{"text": "Skip to content"}', fetched_at=utc_now(),
            ))
            await session.commit()

        with caplog.at_level(logging.WARNING, logger="app.services.screening.statute_cache"):
            written = await cache.put_if_absent(make_record())

        assert written is False
        assert await cache.get(Jurisdiction.UTAH, "76-6-404") is None
        assert "purge_statute_cache" in caplog.text

        assert await cache.purge_invalid() == 1
        assert await cache.put_if_absent(make_record()) is True

    @pytest.mark.asyncio
    async def test_purge_invalid_removes_only_bad_rows(self, session_factory):
        cache = SqlStatuteCache(session_factory)
        await cache.put_if_absent(make_record())

        async with session_factory() as session:
            session.add(StatuteCacheEntry(
                jurisdiction="UT", normalized_key="58-37-8",
                content_json='{"text": "Skip to content"}', fetched_at=utc_now(),
            ))
            session.add(StatuteCacheEntry(
                jurisdiction="XX", normalized_key="1-2-3",
                content_json=encode_record(make_record(key="1-2-3")), fetched_at=utc_now(),
            ))
            await session.commit()

        assert await cache.get(Jurisdiction.UTAH, "58-37-8") is None
        assert await cache.purge_invalid() == 2
        assert await cache.purge_invalid() == 0
        assert await cache.get(Jurisdiction.UTAH, "76-6-404") is not None
