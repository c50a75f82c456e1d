"""
Site resource API endpoints - materials, workers, equipment and budget logs.

Every write goes through the project session so budget spend is re-derived.
"""
from typing import List, Literal, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from sitepulse.api.dependencies import get_project_session, store_error
from sitepulse.budget import schemas
from sitepulse.budget.session import ProjectSession
from sitepulse.services.document_store import DocumentNotFoundError, DocumentStoreError

router = APIRouter()


# --- Pydantic Schemas ---

class MaterialCreate(BaseModel):
    name: str
    quantity: float = 0
    total_bought: Optional[float] = None
    price: float = 0
    unit: str = "pcs"
    category: str = "general"
    supplier: Optional[str] = None
    date_added: Optional[str] = None


class MaterialUpdate(BaseModel):
    name: Optional[str] = None
    quantity: Optional[float] = None
    total_bought: Optional[float] = None
    price: Optional[float] = None
    unit: Optional[str] = None
    category: Optional[str] = None
    supplier: Optional[str] = None


class WorkerCreate(BaseModel):
    name: str
    role: str = "laborer"
    contract_type: Literal["daily", "weekly", "monthly"] = "daily"
    rate: float = 0
    phone: Optional[str] = None
    email: Optional[str] = None
    status: Literal["active", "inactive"] = "active"
    date_hired: Optional[str] = None


class WorkerUpdate(BaseModel):
    name: Optional[str] = None
    role: Optional[str] = None
    contract_type: Optional[Literal["daily", "weekly", "monthly"]] = None
    rate: Optional[float] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    status: Optional[Literal["active", "inactive"]] = None


class EquipmentCreate(BaseModel):
    name: str
    type: Literal["owned", "rental"] = "owned"
    category: str = "general"
    condition: Literal["excellent", "good", "fair", "needs_repair"] = "good"
    rental_cost: Optional[float] = None
    quantity: int = 1
    status: Literal["available", "in_use", "maintenance"] = "available"
    date_acquired: Optional[str] = None


class EquipmentUpdate(BaseModel):
    name: Optional[str] = None
    type: Optional[Literal["owned", "rental"]] = None
    category: Optional[str] = None
    condition: Optional[Literal["excellent", "good", "fair", "needs_repair"]] = None
    rental_cost: Optional[float] = None
    quantity: Optional[int] = None
    status: Optional[Literal["available", "in_use", "maintenance"]] = None


class BudgetLogCreate(BaseModel):
    category: str
    description: Optional[str] = None
    amount: float
    type: Literal["expense", "income"] = "expense"
    date: Optional[str] = None
    reference: Optional[str] = None


class BudgetLogUpdate(BaseModel):
    category: Optional[str] = None
    description: Optional[str] = None
    amount: Optional[float] = None
    type: Optional[Literal["expense", "income"]] = None
    date: Optional[str] = None
    reference: Optional[str] = None


def _register(path: str, collection: str, response_schema, create_schema, update_schema):
    """List/create/update/delete endpoints for one project collection"""

    @router.get(f"/{path}", response_model=List[response_schema], name=f"list_{collection}")
    async def list_items(session: ProjectSession = Depends(get_project_session)):
        return getattr(session.snapshot, collection)

    @router.post(f"/{path}", response_model=response_schema, name=f"create_{collection}")
    async def create_item(
        data: create_schema,
        session: ProjectSession = Depends(get_project_session),
    ):
        try:
            return await session.add_item(collection, data.model_dump())
        except DocumentStoreError as e:
            raise store_error(e)

    @router.put(f"/{path}/{{item_id}}", response_model=response_schema, name=f"update_{collection}")
    async def update_item(
        item_id: str,
        data: update_schema,
        session: ProjectSession = Depends(get_project_session),
    ):
        try:
            return await session.update_item(collection, item_id, data.model_dump(exclude_none=True))
        except DocumentNotFoundError as e:
            raise HTTPException(status_code=404, detail=str(e))
        except DocumentStoreError as e:
            raise store_error(e)

    @router.delete(f"/{path}/{{item_id}}", name=f"delete_{collection}")
    async def delete_item(
        item_id: str,
        session: ProjectSession = Depends(get_project_session),
    ):
        try:
            await session.delete_item(collection, item_id)
        except DocumentNotFoundError as e:
            raise HTTPException(status_code=404, detail=str(e))
        except DocumentStoreError as e:
            raise store_error(e)
        return {"message": f"{path} item deleted"}


_register("materials", "materials", schemas.Material, MaterialCreate, MaterialUpdate)
_register("workers", "workers", schemas.Worker, WorkerCreate, WorkerUpdate)
_register("equipment", "equipment", schemas.Equipment, EquipmentCreate, EquipmentUpdate)
_register("budget-logs", "budget_logs", schemas.BudgetLog, BudgetLogCreate, BudgetLogUpdate)
