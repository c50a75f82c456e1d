"""
Project models - construction projects and their per-project budget document
"""
import uuid
from sqlalchemy import Column, String, Text, Float, DateTime, JSON
from datetime import datetime
from sitepulse.database import Base


def new_id() -> str:
    return uuid.uuid4().hex


class Project(Base):
    __tablename__ = "projects"

    id = Column(String, primary_key=True, default=new_id)
    name = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    location = Column(String, nullable=True)
    client_name = Column(String, nullable=True)
    engineer_id = Column(String, nullable=True, index=True)
    engineer_name = Column(String, nullable=True)
    total_budget = Column(Float, nullable=True)
    status = Column(String, nullable=False, default="planning")
    start_date = Column(String, nullable=True)
    estimated_end_date = Column(String, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class ProjectBudgetDocument(Base):
    """One budget document per project, stored whole (no field-level writes)"""
    __tablename__ = "project_budgets"

    project_id = Column(String, primary_key=True)
    document = Column(JSON, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
