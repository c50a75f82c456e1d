"""
Inbound budget events and the mutable project snapshot they are computed from
"""
from dataclasses import dataclass, field
from typing import Callable, List, Optional

from sitepulse.budget.schemas import (
    BudgetLog,
    Equipment,
    Material,
    ProjectBudget,
    ProjectInfo,
    Worker,
)


@dataclass
class ProjectSnapshot:
    """
    Latest known collections for the selected project.

    Updated in place on every mutation; readers take values at the moment they
    need them instead of holding on to lists.
    """
    project_id: Optional[str] = None
    materials: List[Material] = field(default_factory=list)
    workers: List[Worker] = field(default_factory=list)
    equipment: List[Equipment] = field(default_factory=list)
    budget_logs: List[BudgetLog] = field(default_factory=list)
    project: Optional[ProjectInfo] = None
    loading: bool = False
    error: Optional[str] = None
    partial: bool = False

    def reset(self, project_id: Optional[str]):
        self.project_id = project_id
        self.materials = []
        self.workers = []
        self.equipment = []
        self.budget_logs = []
        self.project = None
        self.loading = False
        self.error = None
        self.partial = False


@dataclass(frozen=True)
class MaterialsChanged:
    reason: str = ""


@dataclass(frozen=True)
class EquipmentChanged:
    reason: str = ""


@dataclass(frozen=True)
class BudgetLogsChanged:
    reason: str = ""


@dataclass(frozen=True)
class ManualEdit:
    """User initiated budget change, applied before reconciliation"""
    description: str
    apply: Callable[[ProjectBudget], ProjectBudget]


DataChanged = (MaterialsChanged, EquipmentChanged, BudgetLogsChanged)
