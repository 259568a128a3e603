"""
Database initialization script.

Creates every Flowless table on the configured database. Production
deployments use the Alembic migrations instead.
"""

import asyncio

from sqlalchemy.ext.asyncio import create_async_engine

from backend.app.core.config import get_settings
from backend.app.core.database import Base
import backend.app.models  # noqa: F401  registers all tables

settings = get_settings()


async def init_database(database_url: str = None):
    """Create all tables."""
    url = database_url or settings.database_url
    print(f"📡 Initializing database at {url}...")
    engine = create_async_engine(url, echo=settings.debug)
    async with engine.begin() as conn:
        print("📦 Creating tables...")
        await conn.run_sync(Base.metadata.create_all)
    await engine.dispose()
    print("✅ Database initialized")


if __name__ == "__main__":
    asyncio.run(init_database())
