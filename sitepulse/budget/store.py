"""
Shared budget state - the single budget value every consumer reads
"""
import logging
from typing import Callable, List, Optional

from sitepulse.budget.schemas import ProjectBudget

logger = logging.getLogger(__name__)

BudgetListener = Callable[[Optional[ProjectBudget]], None]


class BudgetStore:
    """
    Holds the authoritative in-memory budget for the selected project and
    notifies subscribers on every change.
    """

    def __init__(self):
        self.project_id: Optional[str] = None
        self._budget: Optional[ProjectBudget] = None
        self._listeners: List[BudgetListener] = []

    @property
    def budget(self) -> Optional[ProjectBudget]:
        return self._budget

    def subscribe(self, listener: BudgetListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def clear(self, project_id: Optional[str] = None):
        """Drop the current value, e.g. when another project is selected"""
        self.project_id = project_id
        self._budget = None
        self._publish()

    def set_budget(self, budget: ProjectBudget):
        self._budget = budget
        self._publish()

    def update_budget(self, **changes) -> Optional[ProjectBudget]:
        """Shallow merge into the current budget; no-op until one is loaded"""
        if self._budget is None:
            return None
        merged = self._budget.model_copy(update=changes)
        merged = merged.model_copy(update={
            "total_spent": sum(c.spent_amount for c in merged.categories),
        })
        self._budget = merged
        self._publish()
        return merged

    def _publish(self):
        for listener in list(self._listeners):
            try:
                listener(self._budget)
            except Exception as e:
                logger.error(f"Budget listener failed: {e}", exc_info=True)
