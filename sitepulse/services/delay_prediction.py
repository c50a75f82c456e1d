"""
Delay prediction client - calls the task delay prediction cloud functions
"""
import logging
import math
from typing import List, Literal, Optional

import httpx
from pydantic import BaseModel, Field, ValidationError
from pydantic.alias_generators import to_camel

from sitepulse.config import get_settings

settings = get_settings()
logger = logging.getLogger(__name__)

RiskLevel = Literal["Low", "Medium", "High"]

RISK_LEVEL_COLORS = {
    "High": "#F44336",
    "Medium": "#FFC107",
    "Low": "#4CAF50",
}

RISK_LEVEL_ICONS = {
    "High": "alert-circle",
    "Medium": "alert",
    "Low": "check-circle",
}


class DelayPredictionError(Exception):
    pass


class _CamelModel(BaseModel):
    class Config:
        alias_generator = to_camel
        populate_by_name = True


class DelayPrediction(_CamelModel):
    task_id: str
    task_title: str
    task_type: Optional[str] = None
    status: Optional[str] = None
    planned_duration: float
    predicted_duration: float
    delay_days: float
    risk_level: RiskLevel
    factors: List[str] = []
    planned_end_date: Optional[str] = None


class PredictAllDelaysResponse(_CamelModel):
    project_id: str
    predictions: List[DelayPrediction] = []
    total_tasks: int = 0
    high_risk_count: int = 0
    medium_risk_count: int = 0
    low_risk_count: int = 0
    timestamp: Optional[str] = None

    def with_counts(self) -> "PredictAllDelaysResponse":
        levels = [p.risk_level for p in self.predictions]
        return self.model_copy(update={
            "total_tasks": len(self.predictions),
            "high_risk_count": levels.count("High"),
            "medium_risk_count": levels.count("Medium"),
            "low_risk_count": levels.count("Low"),
        })


class SinglePredictionInput(_CamelModel):
    task_id: str
    task_type: str
    planned_duration: float
    days_passed: float
    progress_percent: float
    # the prediction function takes the site factors in snake_case
    material_shortage: Optional[float] = Field(default=None, alias="material_shortage")
    equipment_breakdown: Optional[float] = Field(default=None, alias="equipment_breakdown")
    weather_issue: Optional[float] = Field(default=None, alias="weather_issue")
    permit_issue: Optional[float] = Field(default=None, alias="permit_issue")


class SinglePredictionResponse(_CamelModel):
    task_id: str
    predicted_duration: float
    delay_days: float
    risk_level: RiskLevel
    factors: List[str] = []
    timestamp: Optional[str] = None


class DelayPredictionService:
    """
    Client for the ``predictAllDelays`` and ``predictDelay`` callable functions.

    One attempt per call; failures surface as DelayPredictionError.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = (settings.DELAY_PREDICTION_URL if base_url is None else base_url).rstrip("/")
        self.timeout = settings.DELAY_PREDICTION_TIMEOUT_SECONDS if timeout is None else timeout
        self._transport = transport

    @property
    def is_available(self) -> bool:
        return bool(self.base_url)

    async def _call(self, function_name: str, payload: dict) -> dict:
        if not self.is_available:
            raise DelayPredictionError("Delay prediction not configured: DELAY_PREDICTION_URL is not set")

        try:
            async with httpx.AsyncClient(
                base_url=self.base_url, timeout=self.timeout, transport=self._transport
            ) as client:
                response = await client.post(f"/{function_name}", json={"data": payload})
                response.raise_for_status()
                body = response.json()
        except httpx.HTTPError as e:
            logger.error(f"[DelayPrediction] {function_name} failed: {e}")
            raise DelayPredictionError(str(e) or f"Failed to call {function_name}") from e
        except ValueError as e:
            logger.error(f"[DelayPrediction] {function_name} returned invalid JSON: {e}")
            raise DelayPredictionError(f"Invalid response from {function_name}") from e

        if not isinstance(body, dict):
            raise DelayPredictionError(f"Invalid response from {function_name}")
        if "error" in body:
            error = body["error"]
            message = error.get("message") if isinstance(error, dict) else str(error)
            raise DelayPredictionError(message or f"{function_name} returned an error")
        return body.get("result", body)

    async def predict_all_delays(self, project_id: str) -> PredictAllDelaysResponse:
        """Predict delays for every active task in a project"""
        logger.info(f"[DelayPrediction] Fetching predictions for project: {project_id}")
        result = await self._call("predictAllDelays", {"projectId": project_id})
        try:
            response = PredictAllDelaysResponse.model_validate(result)
        except ValidationError as e:
            raise DelayPredictionError(f"Malformed delay predictions: {e}") from e
        return response.with_counts()

    async def predict_single_delay(self, data: SinglePredictionInput) -> SinglePredictionResponse:
        logger.info(f"[DelayPrediction] Predicting delay for task: {data.task_id}")
        result = await self._call(
            "predictDelay", data.model_dump(by_alias=True, exclude_none=True)
        )
        try:
            return SinglePredictionResponse.model_validate(result)
        except ValidationError as e:
            raise DelayPredictionError(f"Malformed delay prediction: {e}") from e


def risk_level_color(risk_level: str) -> str:
    return RISK_LEVEL_COLORS.get(risk_level, "#757575")


def risk_level_icon(risk_level: str) -> str:
    return RISK_LEVEL_ICONS.get(risk_level, "help-circle")


def format_delay_days(delay_days: float) -> str:
    if delay_days <= 0:
        return "On track"
    rounded = math.floor(delay_days * 10 + 0.5) / 10
    if rounded == 1:
        return "1 day delayed"
    return f"{rounded:g} days delayed"


# Singleton instance
delay_prediction_service = DelayPredictionService()
