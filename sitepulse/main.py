"""
Main FastAPI application
"""
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from sitepulse.config import get_settings
from sitepulse.database import engine, Base
from sitepulse.models import *  # noqa: F401,F403 - register all tables
from sitepulse.api import budget, resources, tasks
from sitepulse.api.dependencies import get_registry
from sitepulse.services.bootstrap import run_bootstrap
from sitepulse.utils.logger import get_logger

settings = get_settings()
logger = get_logger("sitepulse")


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Create all tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables created")

    # Default blueprints and budgets for projects that predate them
    registry = get_registry()
    try:
        await run_bootstrap(registry.document_store)
    except Exception as e:
        logger.warning(f"Bootstrap skipped: {e}")

    yield

    await registry.drain()
    await engine.dispose()

app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    debug=settings.DEBUG,
    lifespan=lifespan,
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(budget.router, prefix="/api/projects/{project_id}/budget", tags=["Budget"])
app.include_router(resources.router, prefix="/api/projects/{project_id}", tags=["Resources"])
app.include_router(tasks.router, prefix="/api/projects/{project_id}", tags=["Tasks"])


@app.get("/")
async def root():
    return {
        "app": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "status": "running"
    }


@app.get("/health")
async def health_check():
    return {"status": "healthy"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "sitepulse.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG
    )
