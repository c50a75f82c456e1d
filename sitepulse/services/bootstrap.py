"""
Bootstrap routines - give every project a default blueprint and budget.

Run opportunistically at startup rather than as a gated migration step: each
project is handled independently and failures are collected, not raised.
"""
import logging
from typing import List

from pydantic import BaseModel

from sitepulse.budget.reconciler import default_budget
from sitepulse.services.document_store import DocumentStore

logger = logging.getLogger(__name__)


class MigrationResult(BaseModel):
    success: bool = True
    migrated: int = 0
    errors: List[str] = []


async def migrate_projects_with_default_blueprint(store: DocumentStore) -> MigrationResult:
    """Create an empty blueprint (default image, no pins) for projects without one"""
    migrated = 0
    errors: List[str] = []
    try:
        project_ids = await store.list_project_ids()
        existing = await store.list_blueprint_project_ids()
    except Exception as e:
        return MigrationResult(success=False, errors=[f"Migration failed: {e}"])

    for project_id in project_ids:
        if project_id in existing:
            continue
        try:
            await store.create_blueprint(project_id)
            migrated += 1
            logger.info(f"Created blueprint for project: {project_id}")
        except Exception as e:
            message = f"Failed to create blueprint for project {project_id}: {e}"
            errors.append(message)
            logger.error(message)

    return MigrationResult(success=not errors, migrated=migrated, errors=errors)


async def ensure_default_budgets(store: DocumentStore) -> MigrationResult:
    """Write the default budget document for projects that have none"""
    migrated = 0
    errors: List[str] = []
    try:
        project_ids = await store.list_project_ids()
        existing = await store.list_budget_project_ids()
    except Exception as e:
        return MigrationResult(success=False, errors=[f"Migration failed: {e}"])

    for project_id in project_ids:
        if project_id in existing:
            continue
        try:
            project = await store.get_project(project_id)
            total_budget = project.total_budget if project and project.total_budget else None
            await store.save_budget(project_id, default_budget(total_budget=total_budget))
            migrated += 1
            logger.info(f"Created default budget for project: {project_id}")
        except Exception as e:
            message = f"Failed to create budget for project {project_id}: {e}"
            errors.append(message)
            logger.error(message)

    return MigrationResult(success=not errors, migrated=migrated, errors=errors)


async def run_bootstrap(store: DocumentStore) -> dict:
    blueprints = await migrate_projects_with_default_blueprint(store)
    budgets = await ensure_default_budgets(store)
    for name, result in (("blueprints", blueprints), ("budgets", budgets)):
        if result.success:
            logger.info(f"Bootstrap {name}: {result.migrated} project(s) migrated")
        else:
            logger.warning(f"Bootstrap {name} finished with errors: {result.errors}")
    return {"blueprints": blueprints, "budgets": budgets}
