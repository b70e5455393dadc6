"""
Tenant Service — registration bootstrap, invitations and tenant switching.

Tenants, users, memberships and invitations are not tenant-scoped rows, so
these functions work directly on the acting ``User``.

Registration flow:
    1. register_user_with_tenant(name, email) → user + own tenant + membership
    2. invite(user, tenant_id, email) → invitation token (7 days)
    3. accept_invitation(invitee, token) → membership + switch, atomically
"""

import logging
from datetime import datetime, timezone

from sqlalchemy import select

from wsjfp.core.exceptions import ConflictError, NotFoundError, ValidationError
from wsjfp.models import db
from wsjfp.models.auth import Tenant, TenantInvitation, User
from wsjfp.services.policies import PermissionDenied

logger = logging.getLogger(__name__)


def _normalize_email(email) -> str:
    email = str(email or "").strip().lower()
    if not email or "@" not in email:
        raise ValidationError("Invalid email", details={"email": "a valid email is required"})
    return email


def _require_member(user: User, tenant_id: int) -> Tenant:
    tenant = db.session.get(Tenant, tenant_id)
    if tenant is None:
        raise NotFoundError(resource="Tenant", resource_id=tenant_id)
    if not user.is_member_of(tenant.id):
        raise PermissionDenied("access", "Tenant", user.id)
    return tenant


def register_user_with_tenant(name: str, email: str) -> User:
    """Create a user together with their own tenant and make it current."""
    email = _normalize_email(email)
    name = str(name or "").strip()
    if not name:
        raise ValidationError("Invalid registration", details={"name": "name is required"})
    if db.session.execute(select(User.id).where(User.email == email)).first():
        raise ConflictError("User", "email", email)

    try:
        user = User(name=name, email=email)
        db.session.add(user)
        db.session.flush()

        tenant = Tenant(name=f"{name} Tenant", owner_user_id=user.id)
        db.session.add(tenant)
        db.session.flush()

        user.tenant_id = tenant.id
        user.current_tenant_id = tenant.id
        user.tenants.append(tenant)
        db.session.commit()
    except Exception:
        db.session.rollback()
        logger.exception("Registration failed for %s", email)
        raise

    logger.info("Registered user id=%s with tenant id=%s", user.id, tenant.id)
    return user


def list_tenants(user: User) -> list[Tenant]:
    return sorted(user.tenants, key=lambda t: t.id)


def pending_invitations(user: User) -> list[TenantInvitation]:
    return list(db.session.execute(
        select(TenantInvitation)
        .where(TenantInvitation.email == user.email.lower(), TenantInvitation.accepted_at.is_(None))
        .order_by(TenantInvitation.id)
    ).scalars().all())


def invite(user: User, tenant_id: int, email: str) -> TenantInvitation:
    """Members may invite an email address into their tenant."""
    tenant = _require_member(user, tenant_id)
    invitation = TenantInvitation(
        tenant_id=tenant.id,
        email=_normalize_email(email),
        inviter_id=user.id,
    )
    db.session.add(invitation)
    db.session.commit()
    logger.info("Invitation id=%s to tenant=%s created by user=%s", invitation.id, tenant.id, user.id)
    return invitation


def _add_membership(user: User, tenant: Tenant) -> None:
    if not user.is_member_of(tenant.id):
        user.tenants.append(tenant)


def _switch_current_tenant(user: User, tenant_id: int) -> None:
    user.current_tenant_id = tenant_id


def accept_invitation(user: User, token: str) -> Tenant:
    """Join the invited tenant and switch to it.

    Membership, acceptance stamp and tenant switch are committed together;
    any failure rolls all three back.
    """
    invitation = db.session.execute(
        select(TenantInvitation).where(TenantInvitation.token == str(token or ""))
    ).scalar_one_or_none()
    if invitation is None or invitation.is_expired:
        raise NotFoundError(resource="TenantInvitation")
    if invitation.accepted_at is not None:
        raise ConflictError("TenantInvitation", "token", "already accepted")
    if invitation.email.lower() != user.email.lower():
        raise PermissionDenied("accept", "TenantInvitation", user.id)

    try:
        _add_membership(user, invitation.tenant)
        invitation.accepted_at = datetime.now(timezone.utc)
        _switch_current_tenant(user, invitation.tenant_id)
        db.session.commit()
    except Exception:
        db.session.rollback()
        logger.exception("Accepting invitation id=%s failed", invitation.id)
        raise

    logger.info("User id=%s joined tenant id=%s", user.id, invitation.tenant_id)
    return invitation.tenant


def switch_tenant(user: User, tenant_id: int) -> Tenant:
    """Make ``tenant_id`` the user's current tenant (members only)."""
    tenant = _require_member(user, tenant_id)
    _switch_current_tenant(user, tenant.id)
    db.session.commit()
    logger.info("User id=%s switched to tenant id=%s", user.id, tenant.id)
    return tenant
