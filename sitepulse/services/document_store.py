"""
Document store - project collections and the per-project budget document
"""
import logging
from datetime import date
from typing import Callable, Dict, List, Optional, Set

from pydantic import ValidationError
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from sitepulse.budget import schemas
from sitepulse.database import AsyncSessionLocal
from sitepulse.models import (
    Blueprint,
    BudgetLog,
    Equipment,
    Material,
    Project,
    ProjectBudgetDocument,
    Task,
    Worker,
)

logger = logging.getLogger(__name__)

TaskListener = Callable[[List[schemas.Task]], None]

# collection name -> (ORM model, schema, date column used for ordering)
COLLECTIONS = {
    "materials": (Material, schemas.Material, "date_added"),
    "workers": (Worker, schemas.Worker, "date_hired"),
    "equipment": (Equipment, schemas.Equipment, "date_acquired"),
    "budget_logs": (BudgetLog, schemas.BudgetLog, "date"),
}


class DocumentStoreError(Exception):
    """A read or write against the store failed"""


class DocumentNotFoundError(DocumentStoreError):
    pass


class PermissionDeniedError(DocumentStoreError):
    pass


def _collection(name: str):
    if name not in COLLECTIONS:
        raise ValueError(f"Unknown collection: {name}")
    return COLLECTIONS[name]


class DocumentStore:

    def __init__(self, session_factory=None):
        self.session_factory = session_factory or AsyncSessionLocal
        self._task_listeners: Dict[str, List[TaskListener]] = {}

    # --- Project collections ---

    async def get_all(self, collection: str, project_id: str) -> list:
        model, schema, order_column = _collection(collection)
        try:
            async with self.session_factory() as session:
                result = await session.execute(
                    select(model)
                    .where(model.project_id == project_id)
                    .order_by(getattr(model, order_column).desc())
                )
                return [schema.model_validate(row) for row in result.scalars().all()]
        except SQLAlchemyError as e:
            logger.error(f"Error getting {collection}: {e}")
            raise DocumentStoreError(f"Failed to fetch {collection}") from e

    async def add(self, collection: str, project_id: str, data: dict):
        model, schema, date_column = _collection(collection)
        values = {k: v for k, v in data.items() if k not in ("id", "project_id")}
        values.setdefault(date_column, None)
        if values[date_column] is None:
            values[date_column] = date.today().isoformat()
        try:
            async with self.session_factory() as session:
                row = model(project_id=project_id, **values)
                session.add(row)
                await session.commit()
                await session.refresh(row)
                return schema.model_validate(row)
        except SQLAlchemyError as e:
            logger.error(f"Error adding to {collection}: {e}")
            raise DocumentStoreError(f"Failed to add to {collection}") from e

    async def update(self, collection: str, item_id: str, updates: dict):
        model, schema, _ = _collection(collection)
        try:
            async with self.session_factory() as session:
                row = await session.get(model, item_id)
                if row is None:
                    raise DocumentNotFoundError(f"{collection} item {item_id} not found")
                for key, value in updates.items():
                    if key not in ("id", "project_id"):
                        setattr(row, key, value)
                await session.commit()
                await session.refresh(row)
                return schema.model_validate(row)
        except SQLAlchemyError as e:
            logger.error(f"Error updating {collection} item {item_id}: {e}")
            raise DocumentStoreError(f"Failed to update {collection}") from e

    async def delete(self, collection: str, item_id: str) -> None:
        model, _, _ = _collection(collection)
        try:
            async with self.session_factory() as session:
                row = await session.get(model, item_id)
                if row is None:
                    raise DocumentNotFoundError(f"{collection} item {item_id} not found")
                await session.delete(row)
                await session.commit()
        except SQLAlchemyError as e:
            logger.error(f"Error deleting {collection} item {item_id}: {e}")
            raise DocumentStoreError(f"Failed to delete from {collection}") from e

    # --- Projects ---

    async def create_project(self, name: str, **fields) -> schemas.ProjectInfo:
        try:
            async with self.session_factory() as session:
                project = Project(name=name, **fields)
                session.add(project)
                await session.commit()
                await session.refresh(project)
                return schemas.ProjectInfo.model_validate(project)
        except SQLAlchemyError as e:
            logger.error(f"Error creating project: {e}")
            raise DocumentStoreError("Failed to create project") from e

    async def list_project_ids(self) -> List[str]:
        try:
            async with self.session_factory() as session:
                result = await session.execute(select(Project.id).order_by(Project.created_at))
                return list(result.scalars().all())
        except SQLAlchemyError as e:
            logger.error(f"Error listing projects: {e}")
            raise DocumentStoreError("Failed to list projects") from e

    async def get_project(self, project_id: str, user_id: Optional[str] = None) -> Optional[schemas.ProjectInfo]:
        """
        Fetch a project, or None if it does not exist.

        Raises PermissionDeniedError when ``user_id`` is given and the project
        belongs to another engineer.
        """
        try:
            async with self.session_factory() as session:
                project = await session.get(Project, project_id)
        except SQLAlchemyError as e:
            logger.error(f"Error fetching project {project_id}: {e}")
            raise DocumentStoreError("Failed to fetch project") from e

        if project is None:
            return None
        if user_id is not None and project.engineer_id and project.engineer_id != user_id:
            raise PermissionDeniedError(f"Permission denied for project {project_id}")
        return schemas.ProjectInfo.model_validate(project)

    # --- Budget document ---

    async def get_budget(self, project_id: str) -> Optional[schemas.ProjectBudget]:
        try:
            async with self.session_factory() as session:
                row = await session.get(ProjectBudgetDocument, project_id)
        except SQLAlchemyError as e:
            logger.error(f"Error fetching budget for project {project_id}: {e}")
            raise DocumentStoreError("Failed to fetch budget") from e

        if row is None:
            return None
        try:
            return schemas.ProjectBudget.from_document(row.document)
        except ValidationError as e:
            logger.error(f"Stored budget for project {project_id} is malformed: {e}")
            raise DocumentStoreError("Stored budget is malformed") from e

    async def save_budget(self, project_id: str, budget: schemas.ProjectBudget) -> None:
        """Write the whole budget document, replacing any previous one"""
        document = budget.to_document()
        try:
            async with self.session_factory() as session:
                row = await session.get(ProjectBudgetDocument, project_id)
                if row is None:
                    session.add(ProjectBudgetDocument(project_id=project_id, document=document))
                else:
                    row.document = document
                await session.commit()
        except SQLAlchemyError as e:
            logger.error(f"Error saving budget for project {project_id}: {e}")
            raise DocumentStoreError("Failed to save budget") from e

    async def list_budget_project_ids(self) -> Set[str]:
        try:
            async with self.session_factory() as session:
                result = await session.execute(select(ProjectBudgetDocument.project_id))
                return set(result.scalars().all())
        except SQLAlchemyError as e:
            logger.error(f"Error listing budgets: {e}")
            raise DocumentStoreError("Failed to list budgets") from e

    # --- Blueprints ---

    async def list_blueprint_project_ids(self) -> Set[str]:
        try:
            async with self.session_factory() as session:
                result = await session.execute(select(Blueprint.project_id))
                return set(result.scalars().all())
        except SQLAlchemyError as e:
            logger.error(f"Error listing blueprints: {e}")
            raise DocumentStoreError("Failed to list blueprints") from e

    async def create_blueprint(self, project_id: str, image_url: str = "") -> str:
        try:
            async with self.session_factory() as session:
                blueprint = Blueprint(project_id=project_id, image_url=image_url, pins=[])
                session.add(blueprint)
                await session.commit()
                return blueprint.id
        except SQLAlchemyError as e:
            logger.error(f"Error creating blueprint for project {project_id}: {e}")
            raise DocumentStoreError("Failed to create blueprint") from e

    # --- Tasks (realtime) ---

    async def get_tasks(self, project_id: str) -> List[schemas.Task]:
        try:
            async with self.session_factory() as session:
                result = await session.execute(
                    select(Task).where(Task.project_id == project_id).order_by(Task.created_at)
                )
                return [schemas.Task.model_validate(t) for t in result.scalars().all()]
        except SQLAlchemyError as e:
            logger.error(f"Error getting tasks: {e}")
            raise DocumentStoreError("Failed to fetch tasks") from e

    async def add_task(self, project_id: str, data: dict) -> schemas.Task:
        values = {k: v for k, v in data.items() if k not in ("id", "project_id")}
        try:
            async with self.session_factory() as session:
                task = Task(project_id=project_id, **values)
                session.add(task)
                await session.commit()
                await session.refresh(task)
                created = schemas.Task.model_validate(task)
        except SQLAlchemyError as e:
            logger.error(f"Error adding task: {e}")
            raise DocumentStoreError("Failed to add task") from e
        await self._publish_tasks(project_id)
        return created

    async def update_task(self, task_id: str, updates: dict, project_id: Optional[str] = None) -> schemas.Task:
        try:
            async with self.session_factory() as session:
                task = await session.get(Task, task_id)
                if task is None or (project_id is not None and task.project_id != project_id):
                    raise DocumentNotFoundError(f"Task {task_id} not found")
                for key, value in updates.items():
                    if key not in ("id", "project_id"):
                        setattr(task, key, value)
                await session.commit()
                await session.refresh(task)
                updated = schemas.Task.model_validate(task)
        except SQLAlchemyError as e:
            logger.error(f"Error updating task {task_id}: {e}")
            raise DocumentStoreError("Failed to update task") from e
        await self._publish_tasks(updated.project_id)
        return updated

    async def subscribe_tasks(self, project_id: str, listener: TaskListener) -> Callable[[], None]:
        """
        Deliver the full task list now and again after every change.

        Returns a callable that stops the subscription.
        """
        self._task_listeners.setdefault(project_id, []).append(listener)
        self._notify(listener, await self.get_tasks(project_id))

        def unsubscribe():
            listeners = self._task_listeners.get(project_id, [])
            if listener in listeners:
                listeners.remove(listener)

        return unsubscribe

    async def _publish_tasks(self, project_id: str):
        listeners = list(self._task_listeners.get(project_id, []))
        if not listeners:
            return
        tasks = await self.get_tasks(project_id)
        for listener in listeners:
            self._notify(listener, tasks)

    @staticmethod
    def _notify(listener: TaskListener, tasks: List[schemas.Task]):
        try:
            listener(list(tasks))
        except Exception as e:
            logger.error(f"Task listener failed: {e}", exc_info=True)
