"""Delete statute cache rows that no longer decode or pass content validation."""
import asyncio
import sys
sys.path.insert(0, ".")

from app.core.database import close_db, get_session_factory, init_db
from app.services.screening.statute_cache import SqlStatuteCache


async def purge():
    await init_db()
    cache = SqlStatuteCache(get_session_factory())
    removed = await cache.purge_invalid()
    await close_db()
    print(f"🧹 Removed {removed} invalid statute cache rows")


if __name__ == "__main__":
    asyncio.run(purge())
