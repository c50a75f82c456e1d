"""
Budget synchronisation - debounced reconciliation and guarded persistence.

Every inbound event for the selected project ends up in ``reconcile_now``.
Data events (materials, equipment, logs) are debounced so a burst produces a
single reconcile; manual edits are reconciled straight away and their write is
awaited so the caller can report a failed save.

Writes go through one choke point. While a write is in flight, and for a short
cooldown after it, reactive results are only remembered; the latest one is
written once the window closes.
"""
import asyncio
import logging
from typing import Optional

from sitepulse.budget.aggregator import aggregate_spend
from sitepulse.budget.editing import BudgetEditError
from sitepulse.budget.events import ManualEdit, ProjectSnapshot
from sitepulse.budget.reconciler import reconcile_budget
from sitepulse.budget.schemas import ProjectBudget
from sitepulse.budget.store import BudgetStore
from sitepulse.config import get_settings

settings = get_settings()
logger = logging.getLogger(__name__)


class BudgetSynchronizer:

    def __init__(
        self,
        project_id: str,
        document_store,
        budget_store: BudgetStore,
        snapshot: ProjectSnapshot,
        debounce_seconds: Optional[float] = None,
        cooldown_seconds: Optional[float] = None,
    ):
        self.project_id = project_id
        self.document_store = document_store
        self.budget_store = budget_store
        self.snapshot = snapshot
        self.debounce_seconds = (
            settings.RECONCILE_DEBOUNCE_MS / 1000 if debounce_seconds is None else debounce_seconds
        )
        self.cooldown_seconds = (
            settings.PERSIST_COOLDOWN_MS / 1000 if cooldown_seconds is None else cooldown_seconds
        )

        self._reconcile_task: Optional[asyncio.Task] = None
        self._flush_task: Optional[asyncio.Task] = None
        self._pending: Optional[ProjectBudget] = None
        self._last_written: Optional[dict] = None
        self._in_flight = False
        self._cooldown_until = 0.0
        self._idle = asyncio.Event()
        self._idle.set()
        self.write_count = 0

    @property
    def is_active(self) -> bool:
        return (
            self.snapshot.project_id == self.project_id
            and self.budget_store.project_id == self.project_id
        )

    # --- Inbound events ---

    def notify(self, event) -> None:
        """Schedule a reconcile; a newer event replaces one still waiting"""
        logger.debug(f"Budget event for project {self.project_id}: {event}")
        self._cancel_scheduled_reconcile()
        self._reconcile_task = asyncio.create_task(self._debounced_reconcile())

    async def submit(self, edit: ManualEdit) -> bool:
        """Apply a manual edit, publish it and wait for the save"""
        current = self.budget_store.budget
        if current is None:
            raise BudgetEditError("Budget has not been loaded yet")

        edited = edit.apply(current)
        self._cancel_scheduled_reconcile()

        if not self.is_active:
            logger.info(f"Dropping edit '{edit.description}': project {self.project_id} no longer selected")
            return False

        budget = self._reconcile(edited)
        self.budget_store.set_budget(budget)
        logger.info(f"Applied budget edit '{edit.description}' for project {self.project_id}")
        return await self.persist(budget)

    def cancel(self) -> None:
        """Forget scheduled reconciles; queued writes for this project still complete"""
        self._cancel_scheduled_reconcile()

    async def drain(self) -> None:
        """Wait until no reconcile or write is scheduled"""
        while True:
            tasks = [
                t for t in (self._reconcile_task, self._flush_task)
                if t is not None and not t.done()
            ]
            if not tasks:
                return
            await asyncio.gather(*tasks, return_exceptions=True)

    # --- Reconciliation ---

    def _reconcile(self, budget: Optional[ProjectBudget]) -> ProjectBudget:
        spend = aggregate_spend(self.snapshot.materials, self.snapshot.equipment)
        return reconcile_budget(budget, spend, self.snapshot.budget_logs)

    def reconcile_now(self) -> Optional[ProjectBudget]:
        """Recompute from the snapshot as it is right now and publish the result"""
        if not self.is_active:
            logger.info(f"Skipping reconcile: project {self.project_id} is no longer selected")
            return None
        current = self.budget_store.budget
        if current is None:
            return None
        budget = self._reconcile(current)
        if budget is not current:
            self.budget_store.set_budget(budget)
        return budget

    async def _debounced_reconcile(self):
        await asyncio.sleep(self.debounce_seconds)
        budget = self.reconcile_now()
        if budget is not None:
            self.schedule_persist(budget)

    def _cancel_scheduled_reconcile(self):
        if self._reconcile_task is not None and not self._reconcile_task.done():
            self._reconcile_task.cancel()
        self._reconcile_task = None

    # --- Persistence ---

    def mark_persisted(self, budget: ProjectBudget) -> None:
        """Record a value known to match the stored document"""
        self._last_written = budget.fingerprint()

    def schedule_persist(self, budget: ProjectBudget) -> None:
        """Coalesced write for reactive results"""
        idle = self._pending is None and not self._in_flight
        if idle and budget.fingerprint() == self._last_written:
            return
        self._pending = budget
        if self._flush_task is None or self._flush_task.done():
            self._flush_task = asyncio.create_task(self._flush())

    async def persist(self, budget: ProjectBudget) -> bool:
        """Write now (after the guard window); returns False if the save failed"""
        self._pending = None
        await self._wait_for_window()
        return await self._write(budget)

    async def _flush(self):
        while self._pending is not None:
            await self._wait_for_window()
            budget, self._pending = self._pending, None
            if budget is None:
                break
            if budget.fingerprint() == self._last_written:
                continue
            await self._write(budget)

    async def _wait_for_window(self):
        loop = asyncio.get_running_loop()
        while True:
            if self._in_flight:
                await self._idle.wait()
                continue
            remaining = self._cooldown_until - loop.time()
            if remaining > 0:
                await asyncio.sleep(remaining)
                continue
            return

    async def _write(self, budget: ProjectBudget) -> bool:
        loop = asyncio.get_running_loop()
        self._in_flight = True
        self._idle.clear()
        try:
            await self.document_store.save_budget(self.project_id, budget)
        except Exception as e:
            logger.error(f"Failed to save budget for project {self.project_id}: {e}")
            return False
        else:
            self._last_written = budget.fingerprint()
            self.write_count += 1
            logger.debug(f"Saved budget for project {self.project_id} (total spent {budget.total_spent:,.2f})")
            return True
        finally:
            self._in_flight = False
            self._cooldown_until = loop.time() + self.cooldown_seconds
            self._idle.set()
