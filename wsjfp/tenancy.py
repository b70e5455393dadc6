"""
WSJF Planner — Tenant Isolation Layer (row-level multi-tenancy).

Every table derived from ``TenantModel`` carries a ``tenant_id``. This module
guarantees that no ORM statement can read or write another tenant's rows
without each call site remembering to filter:

    ┌──────────────┐   ┌────────────────────┐   ┌──────────────────────────┐
    │ acting user  │──▶│ TenantContext      │──▶│ do_orm_execute hook      │
    │ current_/    │   │ (tenant_id | None) │   │ + <table>.tenant_id = :t │
    │ tenant_id    │   └────────────────────┘   │ or zero rows (no tenant) │
    └──────────────┘                            └──────────────────────────┘

The context travels explicitly with each statement as the ``tenant_context``
execution option (``apply_scope``). Statements without one match zero scoped
rows — the layer fails closed, never open. Administrative code (status
repair, registration bootstrap) opts out with ``bypass_tenant_scope()``.

Writes: ``stamp_on_create`` fills ``tenant_id`` from the acting user; the
``before_flush`` hook rejects scoped rows that still have none and refuses to
move a persisted row to another tenant.

Usage:
    ctx = TenantContext.for_user(user)
    features = db.session.execute(apply_scope(select(Feature), ctx)).scalars().all()

    feature = stamp_on_create(Feature(name="Login"), ctx)
"""

import logging
from contextlib import contextmanager
from dataclasses import dataclass

from sqlalchemy import event, false, inspect
from sqlalchemy.orm import Session, with_loader_criteria

from wsjfp.core.exceptions import TenantRequiredError, ValidationError
from wsjfp.models.base import TenantModel

logger = logging.getLogger(__name__)

TENANT_CONTEXT_OPTION = "tenant_context"
BYPASS_OPTION = "bypass_tenant_scope"


def resolve_tenant_id(user) -> int | None:
    """``current_tenant_id`` if set, else ``tenant_id``, else None."""
    if user is None:
        return None
    tenant_id = getattr(user, "current_tenant_id", None)
    if tenant_id is None:
        tenant_id = getattr(user, "tenant_id", None)
    return tenant_id or None


@dataclass(frozen=True)
class TenantContext:
    """Effective tenant of one request, passed explicitly to the data layer."""

    tenant_id: int | None = None
    user_id: int | None = None

    @classmethod
    def for_user(cls, user) -> "TenantContext":
        if user is None:
            return cls()
        return cls(tenant_id=resolve_tenant_id(user), user_id=getattr(user, "id", None))

    @classmethod
    def none(cls) -> "TenantContext":
        return cls()

    @property
    def is_resolved(self) -> bool:
        return self.tenant_id is not None


def as_tenant_context(actor) -> TenantContext:
    """Accept a TenantContext, a user-like object, or None."""
    if isinstance(actor, TenantContext):
        return actor
    return TenantContext.for_user(actor)


# ── Reads ────────────────────────────────────────────────────────────────────


def apply_scope(stmt, actor):
    """Attach the acting tenant to an ORM statement.

    The interceptor below turns this into ``<table>.tenant_id = :tenant_id``
    for every scoped entity in the statement (aliases and joins included),
    or into a zero-row filter when no tenant can be resolved.
    """
    return stmt.execution_options(**{TENANT_CONTEXT_OPTION: as_tenant_context(actor)})


@contextmanager
def bypass_tenant_scope(session=None):
    """Privileged block: scoped statements in it are not tenant-filtered."""
    if session is None:
        from wsjfp.models import db
        session = db.session
    previous = session.info.get(BYPASS_OPTION, False)
    session.info[BYPASS_OPTION] = True
    try:
        yield session
    finally:
        session.info[BYPASS_OPTION] = previous


@event.listens_for(Session, "do_orm_execute")
def _inject_tenant_criteria(orm_execute_state):
    """Add the tenant predicate to every ORM SELECT / UPDATE / DELETE."""
    if not (orm_execute_state.is_select or orm_execute_state.is_update or orm_execute_state.is_delete):
        return
    # Lazy loads and attribute refreshes inherit the criteria of the query
    # that loaded their parent row.
    if orm_execute_state.is_column_load or orm_execute_state.is_relationship_load:
        return

    options = orm_execute_state.execution_options
    if options.get(BYPASS_OPTION) or orm_execute_state.session.info.get(BYPASS_OPTION):
        return

    ctx = options.get(TENANT_CONTEXT_OPTION)
    tenant_id = ctx.tenant_id if isinstance(ctx, TenantContext) else None

    if tenant_id is None:
        criteria = with_loader_criteria(TenantModel, lambda cls: false(), include_aliases=True)
    else:
        criteria = with_loader_criteria(
            TenantModel,
            lambda cls: cls.tenant_id == tenant_id,
            include_aliases=True,
        )
    orm_execute_state.statement = orm_execute_state.statement.options(criteria)


# ── Writes ───────────────────────────────────────────────────────────────────


def stamp_on_create(entity, actor):
    """Fill ``entity.tenant_id`` from the acting user if it is unset.

    Without a user (or without a resolvable tenant) the entity is left alone;
    the flush guard then rejects it unless the caller assigns a tenant
    explicitly.
    """
    if getattr(entity, "tenant_id", None):
        return entity
    ctx = as_tenant_context(actor)
    if ctx.is_resolved:
        entity.tenant_id = ctx.tenant_id
    return entity


@event.listens_for(Session, "before_flush")
def _guard_tenant_writes(session, flush_context, instances):
    """Reject scoped inserts without a tenant and cross-tenant moves."""
    for obj in session.new:
        if isinstance(obj, TenantModel) and not obj.tenant_id:
            logger.warning("Blocked %s insert without tenant", type(obj).__name__)
            raise TenantRequiredError(type(obj).__name__)

    for obj in session.dirty:
        if not isinstance(obj, TenantModel):
            continue
        hist = inspect(obj).attrs.tenant_id.history
        if hist.deleted and hist.deleted[0] is not None and obj.tenant_id != hist.deleted[0]:
            logger.warning(
                "Blocked tenant reassignment of %s id=%s (%s → %s)",
                type(obj).__name__, obj.id, hist.deleted[0], obj.tenant_id,
            )
            raise ValidationError(
                "The owning tenant of a record cannot change.",
                details={"tenant_id": "immutable"},
            )
