"""
Status repair — coerce missing or undeclared statuses back to the default.

Rows written before a lifecycle existed, or by tools that bypass the ORM,
can hold an empty or unknown status. This pass scans every tenant, resets
such rows to their type's default state and logs each correction.

Usage:
    flask fix-states --type feature
    flask fix-states            # all types
"""

import logging
from contextlib import contextmanager
from dataclasses import dataclass

from sqlalchemy import select

from wsjfp.models import db
from wsjfp.models.history import MODELS_BY_TYPE, STATUS_REPAIR_KEY
from wsjfp.models.workflow import ENTITY_TYPES
from wsjfp.services import status_engine
from wsjfp.tenancy import bypass_tenant_scope

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StatusCorrection:
    entity_type: str
    entity_id: int
    tenant_id: int
    old_status: str | None
    new_status: str

    def to_dict(self):
        return {
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "tenant_id": self.tenant_id,
            "old_status": self.old_status,
            "new_status": self.new_status,
        }


@contextmanager
def status_repair_session(session=None):
    """Cross-tenant block in which the status flush guard is suspended."""
    session = session or db.session
    previous = session.info.get(STATUS_REPAIR_KEY, False)
    with bypass_tenant_scope(session):
        session.info[STATUS_REPAIR_KEY] = True
        try:
            yield session
        finally:
            session.info[STATUS_REPAIR_KEY] = previous


def repair_statuses(entity_type: str) -> list[StatusCorrection]:
    """Reset invalid statuses of one entity type across all tenants."""
    if entity_type not in MODELS_BY_TYPE:
        raise ValueError(f"Unknown entity type {entity_type!r}")
    model = MODELS_BY_TYPE[entity_type]
    default = status_engine.default_state(entity_type)

    corrections = []
    with status_repair_session() as session:
        for entity in session.execute(select(model).order_by(model.id)).scalars():
            raw = entity.status
            if status_engine.is_valid_state(entity_type, raw) and raw == raw.strip():
                continue
            entity.status = default
            corrections.append(StatusCorrection(entity_type, entity.id, entity.tenant_id, raw, default))
            logger.warning(
                "%s id=%s tenant=%s: invalid status %r reset to %r",
                entity_type, entity.id, entity.tenant_id, raw, default,
            )
        session.commit()

    if corrections:
        logger.info("%d %s status(es) repaired", len(corrections), entity_type)
    else:
        logger.info("All %s statuses are valid", entity_type)
    return corrections


def repair_all() -> dict[str, list[StatusCorrection]]:
    return {entity_type: repair_statuses(entity_type) for entity_type in ENTITY_TYPES}
