"""
Task API endpoints and delay predictions
"""
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from sitepulse.api.dependencies import get_delay_prediction_service, get_registry, store_error
from sitepulse.budget.schemas import Task
from sitepulse.budget.session import SessionRegistry
from sitepulse.services.delay_prediction import (
    DelayPredictionError,
    DelayPredictionService,
    PredictAllDelaysResponse,
)
from sitepulse.services.document_store import DocumentNotFoundError, DocumentStoreError

router = APIRouter()


class TaskCreate(BaseModel):
    title: str
    description: Optional[str] = None
    assigned_to: Optional[str] = None
    status: str = "not_started"
    planned_duration: Optional[int] = None
    due_date: Optional[str] = None


class TaskUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    assigned_to: Optional[str] = None
    status: Optional[str] = None
    planned_duration: Optional[int] = None
    due_date: Optional[str] = None


@router.get("/tasks", response_model=List[Task])
async def list_tasks(project_id: str, registry: SessionRegistry = Depends(get_registry)):
    try:
        return await registry.document_store.get_tasks(project_id)
    except DocumentStoreError as e:
        raise store_error(e)


@router.post("/tasks", response_model=Task)
async def create_task(
    project_id: str,
    data: TaskCreate,
    registry: SessionRegistry = Depends(get_registry),
):
    try:
        return await registry.document_store.add_task(project_id, data.model_dump())
    except DocumentStoreError as e:
        raise store_error(e)


@router.put("/tasks/{task_id}", response_model=Task)
async def update_task(
    project_id: str,
    task_id: str,
    data: TaskUpdate,
    registry: SessionRegistry = Depends(get_registry),
):
    try:
        return await registry.document_store.update_task(
            task_id, data.model_dump(exclude_none=True), project_id=project_id
        )
    except DocumentNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except DocumentStoreError as e:
        raise store_error(e)


@router.get("/delay-predictions", response_model=PredictAllDelaysResponse)
async def delay_predictions(
    project_id: str,
    service: DelayPredictionService = Depends(get_delay_prediction_service),
):
    """AI delay predictions for every active task"""
    if not service.is_available:
        raise HTTPException(status_code=503, detail="Delay prediction service not configured")
    try:
        return await service.predict_all_delays(project_id)
    except DelayPredictionError as e:
        raise HTTPException(status_code=502, detail=str(e))
