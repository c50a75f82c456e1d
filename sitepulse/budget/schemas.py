"""
Budget domain schemas - site resources, budget categories and the persisted budget document
"""
from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel

PRIMARY_CATEGORY_IDS = ("equipment", "materials")


# --- Site resources ---

class Material(BaseModel):
    id: str
    name: str
    quantity: Optional[float] = 0
    total_bought: Optional[float] = None
    price: Optional[float] = 0
    unit: str = "pcs"
    category: str = "general"
    supplier: Optional[str] = None
    date_added: Optional[str] = None

    class Config:
        from_attributes = True


class Worker(BaseModel):
    id: str
    name: str
    role: str = "laborer"
    contract_type: Literal["daily", "weekly", "monthly"] = "daily"
    rate: float = 0
    phone: Optional[str] = None
    email: Optional[str] = None
    status: Literal["active", "inactive"] = "active"
    date_hired: Optional[str] = None

    class Config:
        from_attributes = True


class Equipment(BaseModel):
    id: str
    name: str
    type: Literal["owned", "rental"] = "owned"
    category: str = "general"
    condition: str = "good"
    rental_cost: Optional[float] = None
    quantity: int = 1
    status: str = "available"
    date_acquired: Optional[str] = None

    class Config:
        from_attributes = True


class BudgetLog(BaseModel):
    id: str
    category: str
    description: Optional[str] = None
    amount: float = 0
    type: Literal["expense", "income"] = "expense"
    date: Optional[str] = None
    reference: Optional[str] = None

    class Config:
        from_attributes = True


class ProjectInfo(BaseModel):
    id: str
    name: str
    description: Optional[str] = None
    location: Optional[str] = None
    client_name: Optional[str] = None
    engineer_id: Optional[str] = None
    total_budget: Optional[float] = None
    status: str = "planning"

    class Config:
        from_attributes = True


class Task(BaseModel):
    id: str
    project_id: str
    title: str
    description: Optional[str] = None
    assigned_to: Optional[str] = None
    status: str = "not_started"
    planned_duration: Optional[int] = None
    due_date: Optional[str] = None

    class Config:
        from_attributes = True


# --- Budget ---

class SpendTotals(BaseModel):
    materials_spent: float = 0
    equipment_spent: float = 0

    def for_category(self, category_id: str) -> float:
        if category_id == "materials":
            return self.materials_spent
        return self.equipment_spent


class BudgetCategory(BaseModel):
    id: str
    name: str
    allocated_amount: float = 0
    spent_amount: float = 0
    description: Optional[str] = None
    last_updated: datetime = Field(default_factory=datetime.utcnow)
    is_primary: bool = False

    class Config:
        alias_generator = to_camel
        populate_by_name = True


class ProjectBudget(BaseModel):
    total_budget: float
    total_spent: float = 0
    categories: List[BudgetCategory] = []
    contingency_percentage: float = 10
    last_updated: datetime = Field(default_factory=datetime.utcnow)

    class Config:
        alias_generator = to_camel
        populate_by_name = True

    @classmethod
    def from_document(cls, document: dict) -> "ProjectBudget":
        return cls.model_validate(document)

    def to_document(self) -> dict:
        """Full persisted document with camelCase keys"""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)

    def fingerprint(self) -> dict:
        """Document without timestamps, for detecting logically identical writes"""
        document = self.to_document()
        document.pop("lastUpdated", None)
        for category in document.get("categories", []):
            category.pop("lastUpdated", None)
        return document

    def category(self, category_id: str) -> Optional[BudgetCategory]:
        for c in self.categories:
            if c.id == category_id:
                return c
        return None
