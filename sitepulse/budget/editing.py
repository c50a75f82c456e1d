"""
Manual budget edits - category create/update/delete and budget settings
"""
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel

from sitepulse.budget.schemas import BudgetCategory, ProjectBudget

MAX_CONTINGENCY_PERCENTAGE = 50


class BudgetEditError(ValueError):
    """Rejected manual edit"""


class PrimaryCategoryError(BudgetEditError):
    pass


class CategoryNotFoundError(BudgetEditError):
    pass


class CategoryInput(BaseModel):
    name: str
    allocated_amount: Optional[float] = None
    spent_amount: Optional[float] = None
    description: Optional[str] = None


def _with_categories(budget: ProjectBudget, categories: List[BudgetCategory], now: datetime) -> ProjectBudget:
    return budget.model_copy(update={
        "categories": categories,
        "total_spent": sum(c.spent_amount for c in categories),
        "last_updated": now,
    })


def _new_category_id(budget: ProjectBudget, now: datetime) -> str:
    base = f"category-{int(now.timestamp() * 1000)}"
    category_id = base
    suffix = 1
    while budget.category(category_id) is not None:
        category_id = f"{base}-{suffix}"
        suffix += 1
    return category_id


def spent_exceeds_allocation(category: BudgetCategory) -> bool:
    return category.spent_amount > category.allocated_amount


def save_category(
    budget: ProjectBudget,
    data: CategoryInput,
    category_id: Optional[str] = None,
    now: Optional[datetime] = None,
) -> ProjectBudget:
    """
    Add a category, or replace the one with ``category_id``.

    Primary categories only accept a new allocation and description; their name,
    spend and primary flag stay as the system set them.
    """
    now = now or datetime.utcnow()
    if not data.name.strip() or data.allocated_amount is None:
        raise BudgetEditError("Please fill in all required fields")
    if data.allocated_amount < 0:
        raise BudgetEditError("Allocated amount cannot be negative")

    existing = None
    if category_id is not None:
        existing = budget.category(category_id)
        if existing is None:
            raise CategoryNotFoundError(f"Budget category {category_id} not found")

    description = (data.description or "").strip() or None

    if existing is not None and existing.is_primary:
        category = existing.model_copy(update={
            "allocated_amount": data.allocated_amount,
            "description": description or existing.description,
            "last_updated": now,
        })
    else:
        if data.spent_amount is None:
            raise BudgetEditError("Please fill in the spent amount")
        if data.spent_amount < 0:
            raise BudgetEditError("Spent amount cannot be negative")
        category = BudgetCategory(
            id=existing.id if existing else _new_category_id(budget, now),
            name=data.name.strip(),
            allocated_amount=data.allocated_amount,
            spent_amount=data.spent_amount,
            description=description,
            last_updated=now,
            is_primary=False,
        )

    if existing is not None:
        categories = [category if c.id == existing.id else c for c in budget.categories]
    else:
        categories = [*budget.categories, category]
    return _with_categories(budget, categories, now)


def delete_category(
    budget: ProjectBudget,
    category_id: str,
    now: Optional[datetime] = None,
) -> ProjectBudget:
    category = budget.category(category_id)
    if category is None:
        raise CategoryNotFoundError(f"Budget category {category_id} not found")
    if category.is_primary:
        raise PrimaryCategoryError(
            f"{category.name} is a primary category and cannot be deleted. "
            "It is synced automatically with your inventory."
        )
    categories = [c for c in budget.categories if c.id != category_id]
    return _with_categories(budget, categories, now or datetime.utcnow())


def update_settings(
    budget: ProjectBudget,
    total_budget: Optional[float] = None,
    contingency_percentage: Optional[float] = None,
    now: Optional[datetime] = None,
) -> ProjectBudget:
    updates = {}
    if total_budget is not None:
        if total_budget <= 0:
            raise BudgetEditError("Please enter a valid total budget")
        updates["total_budget"] = total_budget
    if contingency_percentage is not None:
        if not 0 <= contingency_percentage <= MAX_CONTINGENCY_PERCENTAGE:
            raise BudgetEditError(
                f"Contingency percentage must be between 0% and {MAX_CONTINGENCY_PERCENTAGE}%"
            )
        updates["contingency_percentage"] = contingency_percentage
    if not updates:
        return budget
    updates["last_updated"] = now or datetime.utcnow()
    return budget.model_copy(update=updates)
