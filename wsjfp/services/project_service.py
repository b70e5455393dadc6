"""Project CRUD service, scoped to the acting tenant."""

from __future__ import annotations

import logging

from sqlalchemy import select

from wsjfp.core.exceptions import ConflictError, ValidationError
from wsjfp.models import db
from wsjfp.models.project import Project
from wsjfp.services import status_engine
from wsjfp.services.helpers.scoped_queries import get_scoped, scoped_all
from wsjfp.services.policies import authorize
from wsjfp.tenancy import stamp_on_create
from wsjfp.utils.helpers import parse_date

logger = logging.getLogger(__name__)


def list_projects(ctx, *, status: str | None = None) -> list[Project]:
    """List the tenant's projects, newest first."""
    stmt = select(Project).order_by(Project.created_at.desc(), Project.id.desc())
    if status:
        stmt = stmt.where(Project.status == status_engine.validate("project", status))
    return scoped_all(stmt, ctx)


def get_project(ctx, project_id: int) -> Project:
    project = get_scoped(Project, project_id, ctx)
    authorize(ctx, "view", project)
    return project


def create_project(ctx, data: dict) -> Project:
    """Create a project owned by the acting tenant.

    ``created_by`` defaults to the acting user and is mandatory.
    """
    authorize(ctx, "create", Project)

    number = str(data.get("project_number", "") or "").strip()
    name = str(data.get("name", "") or "").strip()
    created_by = data.get("created_by") or ctx.user_id

    errors = {}
    if not number:
        errors["project_number"] = "project_number is required"
    if not name:
        errors["name"] = "name is required"
    if not created_by:
        errors["created_by"] = "created_by is required"
    if errors:
        raise ValidationError("Invalid project data", details=errors)

    duplicate = scoped_all(select(Project).where(Project.project_number == number), ctx)
    if duplicate:
        raise ConflictError("Project", "project_number", number)

    project = Project(
        project_number=number,
        name=name,
        description=data.get("description"),
        start_date=parse_date(data.get("start_date")),
        project_leader_id=data.get("project_leader_id"),
        deputy_leader_id=data.get("deputy_leader_id"),
        created_by=created_by,
    )
    if data.get("status"):
        project.status = status_engine.validate("project", data["status"])
    stamp_on_create(project, ctx)

    db.session.add(project)
    db.session.commit()
    logger.info("Project created id=%s tenant=%s", project.id, project.tenant_id)
    return project


def update_project(ctx, project_id: int, data: dict) -> Project:
    """Update descriptive fields; a ``status`` key goes through the lifecycle."""
    project = get_scoped(Project, project_id, ctx)
    authorize(ctx, "update", project)

    if "name" in data:
        name = str(data.get("name", "") or "").strip()
        if not name:
            raise ValidationError("Invalid project data", details={"name": "name cannot be empty"})
        project.name = name
    if "description" in data:
        project.description = data.get("description")
    if "start_date" in data:
        project.start_date = parse_date(data.get("start_date"))
    for attr in ("project_leader_id", "deputy_leader_id"):
        if attr in data:
            setattr(project, attr, data.get(attr))

    if data.get("status"):
        status_engine.transition(project, data["status"])

    db.session.commit()
    return project


def transition_project(ctx, project_id: int, target: str) -> tuple[Project, bool]:
    """Move a project along its lifecycle. Returns (project, changed)."""
    project = get_scoped(Project, project_id, ctx)
    authorize(ctx, "update", project)

    changed = status_engine.transition(project, target)
    if changed:
        db.session.commit()
        logger.info("Project id=%s moved to %s", project.id, project.status)
    return project, changed


def delete_project(ctx, project_id: int) -> None:
    project = get_scoped(Project, project_id, ctx)
    authorize(ctx, "delete", project)
    db.session.delete(project)
    db.session.commit()
    logger.info("Project deleted id=%s", project_id)
