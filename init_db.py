"""Initialize database tables and bootstrap existing projects"""
import asyncio
from sitepulse.database import engine, Base
from sitepulse.models import *  # noqa: F401,F403 - Import all models to register them
from sitepulse.services.bootstrap import run_bootstrap
from sitepulse.services.document_store import DocumentStore


async def init():
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    print("Database tables created successfully.")

    results = await run_bootstrap(DocumentStore())
    for name, result in results.items():
        print(f"{name}: migrated={result.migrated} errors={len(result.errors)}")


if __name__ == "__main__":
    asyncio.run(init())
