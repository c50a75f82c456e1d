"""
Shared FastAPI dependencies
"""
from typing import Optional

from fastapi import Depends, HTTPException

from sitepulse.budget.session import ProjectSession, SessionRegistry
from sitepulse.services.delay_prediction import DelayPredictionService, delay_prediction_service
from sitepulse.services.document_store import DocumentStoreError

_registry: Optional[SessionRegistry] = None


def get_registry() -> SessionRegistry:
    global _registry
    if _registry is None:
        _registry = SessionRegistry()
    return _registry


async def get_project_session(
    project_id: str,
    registry: SessionRegistry = Depends(get_registry),
) -> ProjectSession:
    session = await registry.get(project_id)
    if session.snapshot.error:
        raise HTTPException(status_code=503, detail=f"Project data unavailable: {session.snapshot.error}")
    return session


def get_delay_prediction_service() -> DelayPredictionService:
    return delay_prediction_service


def store_error(e: DocumentStoreError) -> HTTPException:
    return HTTPException(status_code=502, detail=str(e))
