"""
Authorization policies for tenant-scoped entities.

Pure functions of (acting user, entity): no database access. The acting
user may be a ``User``, a ``TenantContext`` or None.

Usage:
    from wsjfp.services.policies import authorize, can, PermissionDenied

    authorize(ctx, "update", feature)          # raises PermissionDenied
    if can(user, "view_any", Feature): ...
"""

from wsjfp.models.feature import Feature
from wsjfp.models.planning import Commitment, Planning, Vote
from wsjfp.models.project import Project
from wsjfp.tenancy import as_tenant_context

ACTIONS = ("view_any", "view", "create", "update", "delete", "restore", "force_delete")


class PermissionDenied(Exception):
    """Raised when the acting user may not perform an action on an entity."""

    def __init__(self, action: str, resource: str, user_id: int | None = None):
        super().__init__(f"User {user_id} may not {action} {resource}")
        self.action = action
        self.resource = resource
        self.user_id = user_id


class TenantPolicy:
    """Tenant-membership rules shared by every scoped entity."""

    def _has_tenant(self, user) -> bool:
        return as_tenant_context(user).is_resolved

    def _same_tenant(self, user, entity) -> bool:
        ctx = as_tenant_context(user)
        return ctx.is_resolved and entity is not None and entity.tenant_id == ctx.tenant_id

    def view_any(self, user) -> bool:
        return self._has_tenant(user)

    def view(self, user, entity) -> bool:
        return self._same_tenant(user, entity)

    def create(self, user) -> bool:
        return self._has_tenant(user)

    def update(self, user, entity) -> bool:
        return self._same_tenant(user, entity)

    def delete(self, user, entity) -> bool:
        return self._same_tenant(user, entity)

    def restore(self, user, entity) -> bool:
        return False

    def force_delete(self, user, entity) -> bool:
        return False


class FeaturePolicy(TenantPolicy):
    pass


class ProjectPolicy(TenantPolicy):
    pass


class PlanningPolicy(TenantPolicy):
    pass


class CommitmentPolicy(TenantPolicy):
    pass


class VotePolicy(TenantPolicy):
    pass


POLICIES = {
    Feature: FeaturePolicy(),
    Project: ProjectPolicy(),
    Planning: PlanningPolicy(),
    Commitment: CommitmentPolicy(),
    Vote: VotePolicy(),
}

# Actions that are checked against the model class, not an instance
_CLASS_ACTIONS = {"view_any", "create"}


def policy_for(subject) -> TenantPolicy:
    model = subject if isinstance(subject, type) else type(subject)
    try:
        return POLICIES[model]
    except KeyError:
        raise ValueError(f"No policy registered for {model.__name__}") from None


def can(user, action: str, subject) -> bool:
    """Evaluate ``action`` for ``user`` on a model class or instance."""
    if action not in ACTIONS:
        raise ValueError(f"Unknown policy action {action!r}")
    policy = policy_for(subject)
    if action in _CLASS_ACTIONS:
        return getattr(policy, action)(user)
    if isinstance(subject, type):
        return False
    return getattr(policy, action)(user, subject)


def authorize(user, action: str, subject) -> None:
    """Raise PermissionDenied unless ``can(user, action, subject)``."""
    if not can(user, action, subject):
        model = subject if isinstance(subject, type) else type(subject)
        raise PermissionDenied(action, model.__name__, as_tenant_context(user).user_id)
