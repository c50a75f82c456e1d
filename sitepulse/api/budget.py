"""
Budget API endpoints - the reconciled project budget and manual category edits
"""
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from sitepulse.api.dependencies import get_project_session
from sitepulse.budget.editing import (
    BudgetEditError,
    CategoryInput,
    CategoryNotFoundError,
    spent_exceeds_allocation,
)
from sitepulse.budget.schemas import ProjectBudget
from sitepulse.budget.session import ProjectSession
from sitepulse.utils.helpers import format_currency

router = APIRouter()
logger = logging.getLogger(__name__)


# --- Pydantic Schemas ---

class BudgetSettingsUpdate(BaseModel):
    total_budget: Optional[float] = None
    contingency_percentage: Optional[float] = None


class CategorySummary(BaseModel):
    id: str
    name: str
    allocated: float
    spent: float
    remaining: float
    percent_used: float
    is_primary: bool
    over_budget_message: Optional[str] = None


class BudgetSummary(BaseModel):
    total_budget: float
    total_spent: float
    remaining: float
    percent_used: float
    contingency_percentage: float
    contingency_amount: float
    categories: List[CategorySummary]


def _percent(part: float, whole: float) -> float:
    return round(part / whole * 100, 1) if whole > 0 else 0


def _require_budget(session: ProjectSession) -> ProjectBudget:
    if session.budget is None:
        raise HTTPException(status_code=503, detail="Budget not loaded")
    return session.budget


async def _saved(session: ProjectSession, operation) -> ProjectBudget:
    try:
        saved = await operation
    except CategoryNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except BudgetEditError as e:
        raise HTTPException(status_code=400, detail=str(e))
    if not saved:
        raise HTTPException(status_code=502, detail="Budget could not be saved")
    return _require_budget(session)


# --- Endpoints ---

@router.get("", response_model=ProjectBudget)
async def get_budget(session: ProjectSession = Depends(get_project_session)):
    """Current reconciled budget"""
    return _require_budget(session)


@router.get("/summary", response_model=BudgetSummary)
async def budget_summary(session: ProjectSession = Depends(get_project_session)):
    """Budget vs actual per category"""
    budget = _require_budget(session)
    categories = []
    for c in budget.categories:
        message = None
        if spent_exceeds_allocation(c):
            message = f"Over Budget by {format_currency(c.spent_amount - c.allocated_amount)}"
        categories.append(CategorySummary(
            id=c.id,
            name=c.name,
            allocated=c.allocated_amount,
            spent=c.spent_amount,
            remaining=c.allocated_amount - c.spent_amount,
            percent_used=_percent(c.spent_amount, c.allocated_amount),
            is_primary=c.is_primary,
            over_budget_message=message,
        ))

    return BudgetSummary(
        total_budget=budget.total_budget,
        total_spent=budget.total_spent,
        remaining=budget.total_budget - budget.total_spent,
        percent_used=_percent(budget.total_spent, budget.total_budget),
        contingency_percentage=budget.contingency_percentage,
        contingency_amount=round(budget.total_budget * budget.contingency_percentage / 100, 2),
        categories=categories,
    )


@router.post("/reconcile", response_model=ProjectBudget)
async def reconcile_budget(session: ProjectSession = Depends(get_project_session)):
    """Recompute derived spend from current inventory and save"""
    return await _saved(session, session.reconcile())


@router.put("/settings", response_model=ProjectBudget)
async def update_budget_settings(
    data: BudgetSettingsUpdate,
    session: ProjectSession = Depends(get_project_session),
):
    """Update total budget and contingency percentage"""
    return await _saved(session, session.update_budget_settings(
        total_budget=data.total_budget,
        contingency_percentage=data.contingency_percentage,
    ))


@router.post("/categories", response_model=ProjectBudget)
async def create_category(
    data: CategoryInput,
    session: ProjectSession = Depends(get_project_session),
):
    """Add a user-defined budget category"""
    return await _saved(session, session.save_category(data))


@router.put("/categories/{category_id}", response_model=ProjectBudget)
async def update_category(
    category_id: str,
    data: CategoryInput,
    session: ProjectSession = Depends(get_project_session),
):
    """Edit a category; primary categories only take allocation and description"""
    return await _saved(session, session.save_category(data, category_id))


@router.delete("/categories/{category_id}", response_model=ProjectBudget)
async def delete_category(
    category_id: str,
    session: ProjectSession = Depends(get_project_session),
):
    """Remove a user-defined category"""
    return await _saved(session, session.delete_category(category_id))
