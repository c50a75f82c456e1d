"""
Site resource models - materials, workers, equipment and budget logs
"""
from sqlalchemy import Column, String, Text, Float, Integer, DateTime
from datetime import datetime
from sitepulse.database import Base
from sitepulse.models.project import new_id


class Material(Base):
    __tablename__ = "materials"

    id = Column(String, primary_key=True, default=new_id)
    project_id = Column(String, nullable=False, index=True)
    name = Column(String, nullable=False)
    quantity = Column(Float, nullable=False, default=0)
    total_bought = Column(Float, nullable=True)
    price = Column(Float, nullable=True, default=0)
    unit = Column(String, nullable=False, default="pcs")
    category = Column(String, nullable=False, default="general")
    supplier = Column(String, nullable=True)
    date_added = Column(String, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class Worker(Base):
    __tablename__ = "workers"

    id = Column(String, primary_key=True, default=new_id)
    project_id = Column(String, nullable=False, index=True)
    name = Column(String, nullable=False)
    role = Column(String, nullable=False, default="laborer")
    contract_type = Column(String, nullable=False, default="daily")
    rate = Column(Float, nullable=False, default=0)
    phone = Column(String, nullable=True)
    email = Column(String, nullable=True)
    status = Column(String, nullable=False, default="active")
    date_hired = Column(String, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class Equipment(Base):
    __tablename__ = "equipment"

    id = Column(String, primary_key=True, default=new_id)
    project_id = Column(String, nullable=False, index=True)
    name = Column(String, nullable=False)
    type = Column(String, nullable=False, default="owned")  # owned | rental
    category = Column(String, nullable=False, default="general")
    condition = Column(String, nullable=False, default="good")
    rental_cost = Column(Float, nullable=True)
    quantity = Column(Integer, nullable=False, default=1)
    status = Column(String, nullable=False, default="available")
    date_acquired = Column(String, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class BudgetLog(Base):
    __tablename__ = "budget_logs"

    id = Column(String, primary_key=True, default=new_id)
    project_id = Column(String, nullable=False, index=True)
    category = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    amount = Column(Float, nullable=False, default=0)
    type = Column(String, nullable=False, default="expense")  # expense | income
    date = Column(String, nullable=True)
    reference = Column(String, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
