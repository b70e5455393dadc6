"""
Tenant-scoped query helpers.

Every get-by-id MUST go through these helpers instead of
``db.session.get(Model, pk)``: ``Session.get`` answers from the identity map
without emitting SQL, so it can hand back a row that the tenant filter would
have hidden.

Usage:
    feature = get_scoped(Feature, feature_id, ctx)
    planning = get_scoped_or_none(Planning, planning_id, ctx)
    features = scoped_all(select(Feature).order_by(Feature.id), ctx)
"""

import logging

from sqlalchemy import select

from wsjfp.core.exceptions import NotFoundError
from wsjfp.models import db
from wsjfp.models.base import TenantModel
from wsjfp.tenancy import apply_scope, as_tenant_context

logger = logging.getLogger(__name__)


def get_scoped(model, pk: int, ctx):
    """Fetch a single scoped entity by PK within the acting tenant.

    Cross-tenant access is indistinguishable from a missing record: both
    raise NotFoundError → HTTP 404.

    Raises:
        ValueError: ``model`` is not tenant-scoped.
        NotFoundError: missing, or owned by another tenant.
    """
    if not (isinstance(model, type) and issubclass(model, TenantModel)):
        raise ValueError(f"{getattr(model, '__name__', model)} is not a tenant-scoped model")

    ctx = as_tenant_context(ctx)
    stmt = apply_scope(select(model).where(model.id == pk), ctx)
    result = db.session.execute(stmt).scalar_one_or_none()

    if result is None:
        logger.debug(
            "get_scoped: %s id=%s not found for tenant %s",
            model.__name__, pk, ctx.tenant_id,
        )
        raise NotFoundError(resource=model.__name__, resource_id=pk)
    return result


def get_scoped_or_none(model, pk: int | None, ctx):
    """Same as get_scoped but returns None when absent (or when pk is None)."""
    if pk is None:
        return None
    try:
        return get_scoped(model, pk, ctx)
    except NotFoundError:
        return None


def scoped_all(stmt, ctx) -> list:
    """Execute a SELECT within the acting tenant and return all scalars."""
    return list(db.session.execute(apply_scope(stmt, ctx)).scalars().all())
