#!/usr/bin/env python3
"""
Initialize the Integration Hub database with all tables
"""
import asyncio
import sys
import os

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from integration_hub.config import get_settings
from integration_hub.database import create_engine, create_tables
from integration_hub.models.base import Base

# Import the record classes so they're registered on the metadata
from integration_hub.models.integration import IntegrationEventRecord, IntegrationRecord, WorkflowRecord


async def init_database():
    """Create all tables"""
    settings = get_settings()
    engine = create_engine(settings)

    print(f"🗄️  Initializing database at {settings.database_url}...")
    print(f"Creating tables: {', '.join([t.name for t in Base.metadata.sorted_tables])}")

    await create_tables(engine)
    await engine.dispose()

    print("✅ Database initialized successfully!")


if __name__ == "__main__":
    asyncio.run(init_database())
