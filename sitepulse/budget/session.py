"""
Project data session - the engineer's working set for one selected project.

Holds the latest collections, routes every mutation to the document store and
then into the budget synchronizer, and runs the one-time budget bootstrap.
"""
import asyncio
import logging
from typing import Dict, Optional, Set

from sitepulse.budget import editing
from sitepulse.budget.aggregator import aggregate_spend
from sitepulse.budget.events import (
    BudgetLogsChanged,
    EquipmentChanged,
    ManualEdit,
    MaterialsChanged,
    ProjectSnapshot,
)
from sitepulse.budget.reconciler import default_budget, reconcile_budget
from sitepulse.budget.schemas import ProjectBudget, ProjectInfo
from sitepulse.budget.store import BudgetStore
from sitepulse.budget.synchronizer import BudgetSynchronizer
from sitepulse.config import get_settings
from sitepulse.services.document_store import DocumentStore, PermissionDeniedError
from sitepulse.utils.helpers import gather_with_fallback

settings = get_settings()
logger = logging.getLogger(__name__)

# collection -> (snapshot attribute, event raised after a change)
COLLECTION_EVENTS = {
    "materials": ("materials", MaterialsChanged),
    "workers": ("workers", None),
    "equipment": ("equipment", EquipmentChanged),
    "budget_logs": ("budget_logs", BudgetLogsChanged),
}


class ProjectSession:

    def __init__(
        self,
        document_store: DocumentStore,
        user_id: Optional[str] = None,
        debounce_seconds: Optional[float] = None,
        cooldown_seconds: Optional[float] = None,
        fetch_timeout: Optional[float] = None,
    ):
        self.document_store = document_store
        self.user_id = user_id
        self.debounce_seconds = debounce_seconds
        self.cooldown_seconds = cooldown_seconds
        self.fetch_timeout = settings.FETCH_TIMEOUT_SECONDS if fetch_timeout is None else fetch_timeout

        self.snapshot = ProjectSnapshot()
        self.budget_store = BudgetStore()
        self.synchronizer: Optional[BudgetSynchronizer] = None
        self._bootstrapped: Set[str] = set()
        self._budget_loads: Dict[str, asyncio.Future] = {}
        self._budgets: Dict[str, ProjectBudget] = {}
        self._synchronizers: Dict[str, BudgetSynchronizer] = {}

    @property
    def project_id(self) -> Optional[str]:
        return self.snapshot.project_id

    @property
    def budget(self) -> Optional[ProjectBudget]:
        return self.budget_store.budget

    # --- Project selection and loading ---

    async def select_project(self, project_id: str) -> Optional[ProjectBudget]:
        """Switch to ``project_id``, load its collections and its budget"""
        if project_id != self.project_id:
            if self.synchronizer is not None:
                self.synchronizer.cancel()
            if self.project_id is not None and self.budget_store.budget is not None:
                self._budgets[self.project_id] = self.budget_store.budget
            self.snapshot.reset(project_id)
            self.budget_store.clear(project_id)
            self.synchronizer = self._synchronizer_for(project_id)
            cached = self._budgets.get(project_id)
            if cached is not None:
                self.budget_store.set_budget(cached)

        await self.load_data()
        if self.project_id != project_id:
            return None
        if project_id in self._bootstrapped and self.budget_store.budget is not None:
            self.synchronizer.notify(MaterialsChanged(reason="project selected"))
            return self.budget_store.budget
        return await self.load_budget()

    def _synchronizer_for(self, project_id: str) -> BudgetSynchronizer:
        """One synchronizer per project; its write guard outlives a switch away"""
        synchronizer = self._synchronizers.get(project_id)
        if synchronizer is None:
            synchronizer = BudgetSynchronizer(
                project_id,
                self.document_store,
                self.budget_store,
                self.snapshot,
                debounce_seconds=self.debounce_seconds,
                cooldown_seconds=self.cooldown_seconds,
            )
            self._synchronizers[project_id] = synchronizer
        return synchronizer

    async def _fetch_project(self, project_id: str) -> Optional[ProjectInfo]:
        try:
            return await self.document_store.get_project(project_id, self.user_id)
        except PermissionDeniedError:
            logger.warning(f"Permission denied for project {project_id}. User may not have access to this project.")
            return None

    async def load_data(self) -> None:
        """Load every collection in parallel; a failed fetch falls back to empty"""
        project_id = self.project_id
        if project_id is None:
            return
        self.snapshot.loading = True
        store = self.document_store
        fallbacks = [[], [], [], []]
        try:
            materials, workers, equipment, budget_logs, project = await gather_with_fallback(
                (store.get_all("materials", project_id), fallbacks[0], "materials"),
                (store.get_all("workers", project_id), fallbacks[1], "workers"),
                (store.get_all("equipment", project_id), fallbacks[2], "equipment"),
                (store.get_all("budget_logs", project_id), fallbacks[3], "budget logs"),
                (self._fetch_project(project_id), None, "project"),
                timeout=self.fetch_timeout,
            )
        except Exception as e:
            logger.error(f"Error loading project data: {e}", exc_info=True)
            if self.project_id == project_id:
                self.snapshot.reset(project_id)
                self.snapshot.error = str(e) or "Failed to load project data"
            return

        if self.project_id != project_id:
            logger.info(f"Discarding data loaded for project {project_id}: another project was selected")
            return

        self.snapshot.materials = materials
        self.snapshot.workers = workers
        self.snapshot.equipment = equipment
        self.snapshot.budget_logs = budget_logs
        self.snapshot.project = project
        self.snapshot.loading = False
        self.snapshot.error = None
        # a fetch that fell back returns the fallback list itself
        self.snapshot.partial = any(
            loaded is fallback
            for loaded, fallback in zip((materials, workers, equipment, budget_logs), fallbacks)
        )

    async def load_budget(self) -> Optional[ProjectBudget]:
        """
        Load the budget once per project per session.

        An existing document is reconciled against the current collections right
        away; a missing one is replaced by the default and saved immediately.
        Concurrent callers for the same project share one load.
        """
        project_id = self.project_id
        if project_id is None:
            return None
        if project_id in self._bootstrapped and self.budget_store.budget is not None:
            return self.budget_store.budget

        task = self._budget_loads.get(project_id)
        if task is None:
            task = asyncio.ensure_future(self._bootstrap_budget(project_id, self.synchronizer))
            self._budget_loads[project_id] = task
            task.add_done_callback(lambda _: self._budget_loads.pop(project_id, None))
        return await task

    async def _bootstrap_budget(self, project_id: str, synchronizer: BudgetSynchronizer) -> Optional[ProjectBudget]:
        load_failed = False
        try:
            stored = await asyncio.wait_for(
                self.document_store.get_budget(project_id), self.fetch_timeout
            )
        except Exception as e:
            logger.error(f"Error loading budget for project {project_id}: {e}")
            stored, load_failed = None, True

        if self.project_id != project_id:
            logger.info(f"Discarding budget loaded for project {project_id}: another project was selected")
            return None

        spend = aggregate_spend(self.snapshot.materials, self.snapshot.equipment)

        if stored is not None:
            synchronizer.mark_persisted(stored)
            budget = reconcile_budget(stored, spend, self.snapshot.budget_logs)
            self.budget_store.set_budget(budget)
            self._bootstrapped.add(project_id)
            if budget is not stored:
                synchronizer.schedule_persist(budget)
            return budget

        budget = default_budget(spend, total_budget=self._project_total_budget())
        self.budget_store.set_budget(budget)
        if load_failed:
            logger.warning(f"Using an unsaved default budget for project {project_id}; the stored one could not be read")
            return budget

        self._bootstrapped.add(project_id)
        if await synchronizer.persist(budget):
            logger.info(f"Created default budget for project {project_id}")
        else:
            logger.warning(f"Default budget for project {project_id} could not be saved")
        return budget

    def _project_total_budget(self) -> Optional[float]:
        project = self.snapshot.project
        if project is not None and project.total_budget:
            return project.total_budget
        return None

    async def refresh(self) -> None:
        """Reload collections and reconcile against them"""
        await self.load_data()
        if self.synchronizer is not None:
            self.synchronizer.notify(MaterialsChanged(reason="refresh"))

    async def drain(self) -> None:
        for synchronizer in list(self._synchronizers.values()):
            await synchronizer.drain()

    # --- Collection mutations ---

    def _dispatch(self, collection: str, reason: str):
        _, event_type = COLLECTION_EVENTS[collection]
        if event_type is not None and self.synchronizer is not None:
            self.synchronizer.notify(event_type(reason=reason))

    def _require_project(self) -> str:
        if self.project_id is None:
            raise RuntimeError("No project selected")
        return self.project_id

    async def add_item(self, collection: str, data: dict):
        project_id = self._require_project()
        attribute, _ = COLLECTION_EVENTS[collection]
        try:
            item = await self.document_store.add(collection, project_id, data)
        except Exception as e:
            logger.error(f"Error adding to {collection}: {e}")
            raise
        if self.project_id == project_id:
            setattr(self.snapshot, attribute, [*getattr(self.snapshot, attribute), item])
            self._dispatch(collection, f"add {item.id}")
        return item

    async def update_item(self, collection: str, item_id: str, updates: dict):
        project_id = self._require_project()
        attribute, _ = COLLECTION_EVENTS[collection]
        try:
            item = await self.document_store.update(collection, item_id, updates)
        except Exception as e:
            logger.error(f"Error updating {collection} item {item_id}: {e}")
            raise
        if self.project_id == project_id:
            setattr(self.snapshot, attribute, [
                item if existing.id == item_id else existing
                for existing in getattr(self.snapshot, attribute)
            ])
            self._dispatch(collection, f"update {item_id}")
        return item

    async def delete_item(self, collection: str, item_id: str) -> None:
        project_id = self._require_project()
        attribute, _ = COLLECTION_EVENTS[collection]
        try:
            await self.document_store.delete(collection, item_id)
        except Exception as e:
            logger.error(f"Error deleting {collection} item {item_id}: {e}")
            raise
        if self.project_id == project_id:
            setattr(self.snapshot, attribute, [
                existing for existing in getattr(self.snapshot, attribute)
                if existing.id != item_id
            ])
            self._dispatch(collection, f"delete {item_id}")

    async def add_material(self, data: dict):
        return await self.add_item("materials", data)

    async def update_material(self, material_id: str, updates: dict):
        return await self.update_item("materials", material_id, updates)

    async def delete_material(self, material_id: str):
        await self.delete_item("materials", material_id)

    async def add_worker(self, data: dict):
        return await self.add_item("workers", data)

    async def update_worker(self, worker_id: str, updates: dict):
        return await self.update_item("workers", worker_id, updates)

    async def delete_worker(self, worker_id: str):
        await self.delete_item("workers", worker_id)

    async def add_equipment(self, data: dict):
        return await self.add_item("equipment", data)

    async def update_equipment(self, equipment_id: str, updates: dict):
        return await self.update_item("equipment", equipment_id, updates)

    async def delete_equipment(self, equipment_id: str):
        await self.delete_item("equipment", equipment_id)

    async def add_budget_log(self, data: dict):
        return await self.add_item("budget_logs", data)

    async def update_budget_log(self, log_id: str, updates: dict):
        return await self.update_item("budget_logs", log_id, updates)

    async def delete_budget_log(self, log_id: str):
        await self.delete_item("budget_logs", log_id)

    # --- Manual budget edits ---

    async def _submit(self, edit: ManualEdit) -> bool:
        self._require_project()
        if self.budget_store.budget is None:
            await self.load_budget()
        return await self.synchronizer.submit(edit)

    async def save_category(self, data: editing.CategoryInput, category_id: Optional[str] = None) -> bool:
        return await self._submit(ManualEdit(
            description=f"save category {category_id or data.name}",
            apply=lambda budget: editing.save_category(budget, data, category_id),
        ))

    async def delete_category(self, category_id: str) -> bool:
        return await self._submit(ManualEdit(
            description=f"delete category {category_id}",
            apply=lambda budget: editing.delete_category(budget, category_id),
        ))

    async def update_budget_settings(
        self,
        total_budget: Optional[float] = None,
        contingency_percentage: Optional[float] = None,
    ) -> bool:
        return await self._submit(ManualEdit(
            description="update budget settings",
            apply=lambda budget: editing.update_settings(budget, total_budget, contingency_percentage),
        ))

    async def reconcile(self) -> bool:
        """Reload the collections, reconcile against them and save the result"""
        self._require_project()
        await self.load_data()
        return await self._submit(ManualEdit(description="reconcile", apply=lambda budget: budget))


class SessionRegistry:
    """One loaded session per project for the HTTP surface"""

    def __init__(self, document_store: Optional[DocumentStore] = None, **session_options):
        self.document_store = document_store or DocumentStore()
        self.session_options = session_options
        self._sessions: Dict[str, ProjectSession] = {}

    async def get(self, project_id: str) -> ProjectSession:
        session = self._sessions.get(project_id)
        if session is None:
            session = ProjectSession(self.document_store, **self.session_options)
            self._sessions[project_id] = session
            await session.select_project(project_id)
        else:
            if session.snapshot.partial:
                await session.refresh()
            if session.budget is None:
                await session.load_budget()
        return session

    async def drain(self) -> None:
        for session in list(self._sessions.values()):
            await session.drain()
