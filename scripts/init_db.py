"""Create the statute cache and case tables in the configured database."""
import asyncio
import sys
sys.path.insert(0, ".")

from app.models import models  # noqa: F401
from app.core.database import Base, close_db, init_db


async def create_tables():
    print(f"📦 Registered tables: {len(Base.metadata.tables)}")
    for table in Base.metadata.tables:
        print(f"   - {table}")

    await init_db()
    await close_db()
    print("\n✅ All tables created!")


if __name__ == "__main__":
    asyncio.run(create_tables())
