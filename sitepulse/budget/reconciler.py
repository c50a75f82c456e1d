"""
Budget reconciliation - merges derived spend into the persisted budget document.

Primary categories (``equipment`` and ``materials``) are owned by the system:
their spend always comes from live inventory. User categories take their spend
from matching expense logs when there are any, otherwise they keep the amount
entered by hand.

Early builds seeded primary allocations with hardcoded amounts (50,000 and
150,000). Those are migrated to 20% of the total budget, but only when the
stored value is one of those constants or exceeds the whole budget, so that
allocations chosen by the user survive.
"""
import math
from datetime import datetime
from typing import Any, Dict, Iterable, Optional

from sitepulse.budget.aggregator import as_amount, field_value
from sitepulse.budget.schemas import (
    PRIMARY_CATEGORY_IDS,
    BudgetCategory,
    ProjectBudget,
    SpendTotals,
)
from sitepulse.config import get_settings

settings = get_settings()

LEGACY_ALLOCATIONS = (50000, 150000)
PRIMARY_ALLOCATION_SHARE = 0.20

PRIMARY_CATEGORY_DEFAULTS = {
    "equipment": ("Equipment", "Equipment rental and purchases (Auto-calculated)"),
    "materials": ("Materials", "Construction materials and supplies (Auto-calculated)"),
}


def primary_allocation_target(total_budget: float) -> float:
    """20% of the total, halves rounded up"""
    return math.floor(as_amount(total_budget) * PRIMARY_ALLOCATION_SHARE + 0.5)


def needs_legacy_repair(allocated_amount: float, total_budget: float) -> bool:
    if allocated_amount > total_budget:
        return True
    target = primary_allocation_target(total_budget)
    return allocated_amount in LEGACY_ALLOCATIONS and allocated_amount != target


def expense_totals_by_category(logs: Iterable[Any]) -> Dict[str, float]:
    """Sum expense logs per lower-cased category name; income is ignored"""
    totals: Dict[str, float] = {}
    for log in logs or []:
        if field_value(log, "type") != "expense":
            continue
        name = field_value(log, "category")
        if not isinstance(name, str):
            continue
        key = name.lower()
        totals[key] = totals.get(key, 0.0) + as_amount(field_value(log, "amount"))
    return totals


def _primary_category(category_id: str, total_budget: float, spend: SpendTotals, now: datetime) -> BudgetCategory:
    name, description = PRIMARY_CATEGORY_DEFAULTS[category_id]
    return BudgetCategory(
        id=category_id,
        name=name,
        allocated_amount=primary_allocation_target(total_budget),
        spent_amount=spend.for_category(category_id),
        description=description,
        last_updated=now,
        is_primary=True,
    )


def default_budget(
    spend: Optional[SpendTotals] = None,
    total_budget: Optional[float] = None,
    contingency_percentage: Optional[float] = None,
    now: Optional[datetime] = None,
) -> ProjectBudget:
    """Budget for a project that has never stored one"""
    spend = spend or SpendTotals()
    now = now or datetime.utcnow()
    if total_budget is None:
        total_budget = settings.DEFAULT_TOTAL_BUDGET
    if contingency_percentage is None:
        contingency_percentage = settings.DEFAULT_CONTINGENCY_PERCENTAGE

    categories = [
        _primary_category(category_id, total_budget, spend, now)
        for category_id in PRIMARY_CATEGORY_IDS
    ]
    return ProjectBudget(
        total_budget=total_budget,
        total_spent=sum(c.spent_amount for c in categories),
        categories=categories,
        contingency_percentage=contingency_percentage,
        last_updated=now,
    )


def _reconcile_category(
    category: BudgetCategory,
    total_budget: float,
    spend: SpendTotals,
    log_totals: Dict[str, float],
    now: datetime,
) -> BudgetCategory:
    updates: Dict[str, Any] = {}

    if category.is_primary and category.id in PRIMARY_CATEGORY_IDS:
        spent = spend.for_category(category.id)
        if spent != category.spent_amount:
            updates["spent_amount"] = spent
    else:
        logged = log_totals.get(category.name.lower())
        if logged is not None and logged != category.spent_amount:
            updates["spent_amount"] = logged

    if category.is_primary and needs_legacy_repair(category.allocated_amount, total_budget):
        updates["allocated_amount"] = primary_allocation_target(total_budget)

    if not updates:
        return category
    updates["last_updated"] = now
    return category.model_copy(update=updates)


def reconcile_budget(
    budget: Optional[ProjectBudget],
    spend: SpendTotals,
    logs: Iterable[Any] = (),
    now: Optional[datetime] = None,
) -> ProjectBudget:
    """
    Produce the budget implied by the current inventory and logs.

    Returns the input object itself when nothing changed, so repeated runs on the
    same inputs are free of timestamp churn.
    """
    now = now or datetime.utcnow()
    if budget is None:
        return default_budget(spend, now=now)

    log_totals = expense_totals_by_category(logs)
    changed = False
    seen = set()
    categories = []

    for category in budget.categories:
        if category.id in seen:
            changed = True
            continue
        seen.add(category.id)
        updated = _reconcile_category(category, budget.total_budget, spend, log_totals, now)
        if updated is not category:
            changed = True
        categories.append(updated)

    for category_id in PRIMARY_CATEGORY_IDS:
        if category_id not in seen:
            categories.append(_primary_category(category_id, budget.total_budget, spend, now))
            changed = True

    total_spent = sum(c.spent_amount for c in categories)
    if total_spent != budget.total_spent:
        changed = True

    if not changed:
        return budget

    return budget.model_copy(update={
        "categories": categories,
        "total_spent": total_spent,
        "last_updated": now,
    })
