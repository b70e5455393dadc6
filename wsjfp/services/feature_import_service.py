"""
Feature Import Service — CSV upsert of features into one project.

Column resolution, first match wins per target:
    1. explicit ``mapping`` {column index: "jira_key" | "name" | "description" | "ignore"}
    2. header names (jira key / name / description, German aliases accepted)
    3. positional fallback 0 = jira_key, 1 = name, 2 = description
       (only jira_key falls back when an explicit mapping was sent)

Rows are upserted by (project, jira_key): existing features get the mapped
name/description, new ones are created in the default status. Rows without a
Jira key are skipped.
"""

import csv
import io
import logging

from sqlalchemy import select

from wsjfp.core.exceptions import ValidationError
from wsjfp.models import db
from wsjfp.models.feature import Feature
from wsjfp.models.project import Project
from wsjfp.services.helpers.scoped_queries import get_scoped, scoped_all
from wsjfp.services.policies import authorize
from wsjfp.tenancy import stamp_on_create

logger = logging.getLogger(__name__)

IMPORT_TARGETS = ("jira_key", "name", "description")

HEADER_ALIASES = {
    "jira_key": {"jirakey", "jira", "key"},
    "name": {"name", "titel", "title"},
    "description": {"description", "beschreibung", "desc"},
}


def _normalize_header(value: str) -> str:
    return "".join(ch for ch in value.strip().lower() if ch not in " -_")


def _decode(content: str | bytes) -> str:
    if isinstance(content, bytes):
        try:
            return content.decode("utf-8-sig")
        except UnicodeDecodeError:
            raise ValidationError("Invalid CSV file", details={"file": "file must be UTF-8 encoded"}) from None
    return content.lstrip("\ufeff")


def _detect_delimiter(first_line: str) -> str:
    return ";" if first_line.count(";") > first_line.count(",") else ","


def _parse_mapping(mapping) -> dict[str, int]:
    if not mapping:
        return {}
    if not isinstance(mapping, dict):
        raise ValidationError("Invalid column mapping", details={"mapping": "mapping must be an object"})

    index = {}
    for column, target in mapping.items():
        if target in (None, "", "ignore"):
            continue
        if target not in IMPORT_TARGETS:
            raise ValidationError(
                "Invalid column mapping",
                details={"mapping": f"unknown target {target!r} for column {column}"},
            )
        try:
            column = int(column)
        except (TypeError, ValueError):
            raise ValidationError(
                "Invalid column mapping", details={"mapping": f"column {column!r} is not an index"},
            ) from None
        index.setdefault(target, column)
    return index


def resolve_columns(header: list[str] | None, mapping=None) -> dict[str, int | None]:
    """Return the column index for each import target (None = not imported)."""
    explicit = _parse_mapping(mapping)
    index = {target: explicit.get(target) for target in IMPORT_TARGETS}

    for position, raw in enumerate(header or []):
        normalized = _normalize_header(raw)
        for target, aliases in HEADER_ALIASES.items():
            if index[target] is None and normalized in aliases:
                index[target] = position
                break

    if index["jira_key"] is None:
        index["jira_key"] = 0
    if not explicit:
        for position, target in enumerate(IMPORT_TARGETS):
            if index[target] is None:
                index[target] = position
    return index


def _cell(row: list[str], position: int | None) -> str | None:
    if position is None or position >= len(row):
        return None
    return row[position]


def import_features_csv(ctx, project_id: int, content: str | bytes, *, has_header=True, mapping=None) -> dict:
    """Upsert features of ``project_id`` from CSV text.

    Returns:
        {"created", "updated", "skipped", "columns"} counts and the resolved
        column indexes.
    """
    authorize(ctx, "create", Feature)
    project = get_scoped(Project, project_id, ctx)

    text = _decode(content or "")
    if not text.strip():
        raise ValidationError("Invalid CSV file", details={"file": "file is empty"})

    first_line = text.splitlines()[0]
    rows = list(csv.reader(io.StringIO(text), delimiter=_detect_delimiter(first_line)))
    header = rows.pop(0) if has_header and rows else None
    columns = resolve_columns(header, mapping)

    existing = {
        f.jira_key: f
        for f in scoped_all(select(Feature).where(Feature.project_id == project.id), ctx)
    }

    created = updated = skipped = 0
    for row in rows:
        if not row or all(not cell.strip() for cell in row):
            continue
        jira_key = (_cell(row, columns["jira_key"]) or "").strip()
        if not jira_key:
            skipped += 1
            continue
        name = _cell(row, columns["name"])
        name = name.strip() if name is not None else None
        description = _cell(row, columns["description"])

        feature = existing.get(jira_key)
        if feature is None:
            feature = Feature(
                jira_key=jira_key,
                name=name or jira_key,
                description=description,
                project_id=project.id,
            )
            stamp_on_create(feature, ctx)
            db.session.add(feature)
            existing[jira_key] = feature
            created += 1
            continue

        changes = {}
        if name:
            changes["name"] = name
        if description is not None:
            changes["description"] = description
        if not changes:
            skipped += 1
            continue
        for attr, value in changes.items():
            setattr(feature, attr, value)
        updated += 1

    db.session.commit()
    logger.info(
        "Feature import into project=%s tenant=%s: %d created, %d updated, %d skipped",
        project.id, project.tenant_id, created, updated, skipped,
    )
    return {"created": created, "updated": updated, "skipped": skipped, "columns": columns}
