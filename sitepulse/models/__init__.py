from sitepulse.models.project import Project, ProjectBudgetDocument
from sitepulse.models.resources import Material, Worker, Equipment, BudgetLog
from sitepulse.models.blueprint import Blueprint, Task

__all__ = [
    "Project",
    "ProjectBudgetDocument",
    "Material",
    "Worker",
    "Equipment",
    "BudgetLog",
    "Blueprint",
    "Task",
]
