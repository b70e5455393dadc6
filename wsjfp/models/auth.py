"""
Auth Models — tenants, users, memberships, invitations.

These tables are NOT tenant-scoped: resolving the acting user and their
tenant must work before any tenant filter can be applied.
"""

import secrets
from datetime import datetime, timedelta, timezone

from wsjfp.models import db


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_aware(value: datetime | None) -> datetime | None:
    """SQLite drops tzinfo on read; treat naive datetimes as UTC."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


tenant_user = db.Table(
    "tenant_user",
    db.Column("tenant_id", db.Integer, db.ForeignKey("tenants.id", ondelete="CASCADE"), primary_key=True),
    db.Column("user_id", db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
    db.Column("created_at", db.DateTime(timezone=True), default=_utcnow),
)


# ═══════════════════════════════════════════════════════════════
# 1. TENANTS
# ═══════════════════════════════════════════════════════════════
class Tenant(db.Model):
    __tablename__ = "tenants"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False)
    owner_user_id = db.Column(
        db.Integer, nullable=True,
        comment="users.id of the registering user (no FK: users.tenant_id already points here)",
    )
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    members = db.relationship(
        "User", secondary=tenant_user, back_populates="tenants", lazy="select",
    )
    invitations = db.relationship(
        "TenantInvitation", back_populates="tenant", lazy="select",
        cascade="all, delete-orphan",
    )

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "owner_user_id": self.owner_user_id,
            "member_count": len(self.members),
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<Tenant {self.id}: {self.name}>"


# ═══════════════════════════════════════════════════════════════
# 2. USERS
# ═══════════════════════════════════════════════════════════════
class User(db.Model):
    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False)
    email = db.Column(db.String(200), unique=True, nullable=False)
    tenant_id = db.Column(
        db.Integer, db.ForeignKey("tenants.id", ondelete="SET NULL"), nullable=True,
        comment="Home tenant (set at registration)",
    )
    current_tenant_id = db.Column(
        db.Integer, db.ForeignKey("tenants.id", ondelete="SET NULL"), nullable=True,
        comment="Tenant the user is currently working in",
    )
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    tenants = db.relationship(
        "Tenant", secondary=tenant_user, back_populates="members", lazy="select",
    )

    def is_member_of(self, tenant_id: int) -> bool:
        return any(t.id == tenant_id for t in self.tenants)

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "tenant_id": self.tenant_id,
            "current_tenant_id": self.current_tenant_id,
        }

    def __repr__(self):
        return f"<User {self.id}: {self.email}>"


# ═══════════════════════════════════════════════════════════════
# 3. TENANT INVITATIONS
# ═══════════════════════════════════════════════════════════════
INVITATION_TTL_DAYS = 7


class TenantInvitation(db.Model):
    __tablename__ = "tenant_invitations"

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(
        db.Integer, db.ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    email = db.Column(db.String(200), nullable=False)
    inviter_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    token = db.Column(
        db.String(64), unique=True, nullable=False,
        default=lambda: secrets.token_urlsafe(32),
    )
    expires_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: _utcnow() + timedelta(days=INVITATION_TTL_DAYS),
    )
    accepted_at = db.Column(db.DateTime(timezone=True), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)

    tenant = db.relationship("Tenant", back_populates="invitations")

    @property
    def is_expired(self) -> bool:
        expires_at = _as_aware(self.expires_at)
        return expires_at is not None and expires_at < _utcnow()

    def to_dict(self):
        return {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "email": self.email,
            "inviter_id": self.inviter_id,
            "expires_at": self.expires_at.isoformat() if self.expires_at else None,
            "accepted_at": self.accepted_at.isoformat() if self.accepted_at else None,
        }
