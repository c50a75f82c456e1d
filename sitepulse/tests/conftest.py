"""
Test fixtures - file-backed SQLite document store, in-memory fake store, HTTP client
"""
import asyncio
import uuid

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker

from sitepulse.database import Base
from sitepulse.main import app
from sitepulse.api.dependencies import get_registry
from sitepulse.budget.schemas import ProjectInfo
from sitepulse.budget.session import SessionRegistry
from sitepulse.services.document_store import (
    COLLECTIONS,
    DocumentNotFoundError,
    DocumentStore,
    DocumentStoreError,
    PermissionDeniedError,
)


class FakeDocumentStore:
    """In-memory stand-in for the document store with hooks for timing tests"""

    def __init__(self):
        self.items = {name: {} for name in COLLECTIONS}
        self.projects = {}
        self.budgets = {}
        self.saved = []
        self.budget_reads = []
        self.fail_saves = False
        self.fail_budget_reads = False
        self.fail_collections = set()
        self.denied_projects = set()
        self.save_delay = 0.0
        self.active_saves = {}
        self.max_active_saves = {}
        self.budget_gates = {}
        self.budget_read_started = {}

    def seed(self, collection, project_id, **data):
        _, schema, _ = COLLECTIONS[collection]
        item = schema(id=data.pop("id", uuid.uuid4().hex), **data)
        self.items[collection].setdefault(project_id, []).append(item)
        return item

    async def get_all(self, collection, project_id):
        if collection in self.fail_collections:
            raise DocumentStoreError(f"Failed to fetch {collection}")
        return list(self.items[collection].get(project_id, []))

    async def add(self, collection, project_id, data):
        return self.seed(collection, project_id, **data)

    async def update(self, collection, item_id, updates):
        for project_items in self.items[collection].values():
            for index, item in enumerate(project_items):
                if item.id == item_id:
                    project_items[index] = item.model_copy(update=updates)
                    return project_items[index]
        raise DocumentNotFoundError(f"{collection} item {item_id} not found")

    async def delete(self, collection, item_id):
        for project_items in self.items[collection].values():
            for item in project_items:
                if item.id == item_id:
                    project_items.remove(item)
                    return
        raise DocumentNotFoundError(f"{collection} item {item_id} not found")

    async def get_project(self, project_id, user_id=None):
        if project_id in self.denied_projects:
            raise PermissionDeniedError(f"Permission denied for project {project_id}")
        return self.projects.get(project_id)

    async def get_budget(self, project_id):
        self.budget_reads.append(project_id)
        if project_id in self.budget_read_started:
            self.budget_read_started[project_id].set()
        if project_id in self.budget_gates:
            await self.budget_gates[project_id].wait()
        if self.fail_budget_reads:
            raise DocumentStoreError("Failed to fetch budget")
        return self.budgets.get(project_id)

    async def save_budget(self, project_id, budget):
        active = self.active_saves.get(project_id, 0) + 1
        self.active_saves[project_id] = active
        self.max_active_saves[project_id] = max(active, self.max_active_saves.get(project_id, 0))
        try:
            if self.save_delay:
                await asyncio.sleep(self.save_delay)
        finally:
            self.active_saves[project_id] -= 1
        if self.fail_saves:
            raise DocumentStoreError("Failed to save budget")
        self.budgets[project_id] = budget
        self.saved.append((project_id, budget))

    def add_project(self, project_id, **fields):
        self.projects[project_id] = ProjectInfo(id=project_id, name=fields.pop("name", project_id), **fields)


@pytest.fixture()
def fake_store():
    return FakeDocumentStore()


@pytest_asyncio.fixture()
async def session_factory(tmp_path):
    """Fresh SQLite database file per test"""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'sitepulse_test.db'}", echo=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()


@pytest_asyncio.fixture()
async def document_store(session_factory):
    return DocumentStore(session_factory)


@pytest_asyncio.fixture()
async def registry(document_store):
    registry = SessionRegistry(document_store, debounce_seconds=0.01, cooldown_seconds=0.0)
    yield registry
    await registry.drain()


@pytest_asyncio.fixture()
async def client(registry):
    """httpx AsyncClient bound to the FastAPI app"""
    app.dependency_overrides[get_registry] = lambda: registry

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test", follow_redirects=True) as ac:
        yield ac

    app.dependency_overrides.clear()
