"""
Blueprint and task models
"""
from sqlalchemy import Column, String, Text, Integer, DateTime, JSON
from datetime import datetime
from sitepulse.database import Base
from sitepulse.models.project import new_id


class Blueprint(Base):
    __tablename__ = "blueprints"

    id = Column(String, primary_key=True, default=new_id)
    project_id = Column(String, nullable=False, index=True)
    image_url = Column(String, nullable=False, default="")  # empty means use the default image
    pins = Column(JSON, nullable=False, default=list)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class Task(Base):
    __tablename__ = "tasks"

    id = Column(String, primary_key=True, default=new_id)
    project_id = Column(String, nullable=False, index=True)
    title = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    assigned_to = Column(String, nullable=True)
    status = Column(String, nullable=False, default="not_started")
    planned_duration = Column(Integer, nullable=True)  # days
    due_date = Column(String, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
