"""Pydantic models: the contract between the services and their callers.

Row models mirror the three tables (team, team_member, team_invite). Every
service operation returns a ``ServiceResult``: either ``Ok`` carrying data or
``Err`` carrying a ``ServiceError`` with a code from a closed set.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Generic, Literal, TypeVar, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class TeamRole(str, Enum):
    OWNER = "owner"
    ADMIN = "admin"
    MEMBER = "member"
    VIEWER = "viewer"


class TeamPlan(str, Enum):
    FREE = "free"
    PRO = "pro"
    ENTERPRISE = "enterprise"


class TeamStatus(str, Enum):
    ACTIVE = "active"
    SUSPENDED = "suspended"
    DELETED = "deleted"


class InviteStatus(str, Enum):
    """Read-time state of an invite. Only accepted/revoked are ever stored."""
    PENDING = "pending"
    ACCEPTED = "accepted"
    REVOKED = "revoked"
    EXPIRED = "expired"


class ErrorCode(str, Enum):
    VALIDATION_ERROR = "VALIDATION_ERROR"
    UNAUTHORIZED = "UNAUTHORIZED"
    FORBIDDEN = "FORBIDDEN"
    NOT_FOUND = "NOT_FOUND"
    CONFLICT = "CONFLICT"
    INVALID_ACTION = "INVALID_ACTION"
    EXPIRED = "EXPIRED"
    INTERNAL_ERROR = "INTERNAL_ERROR"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Row models
# ---------------------------------------------------------------------------

class Team(BaseModel):
    id: str
    name: str
    slug: str
    owner_id: str
    plan: TeamPlan = TeamPlan.FREE
    status: TeamStatus = TeamStatus.ACTIVE
    created_at: datetime
    updated_at: datetime


class TeamMember(BaseModel):
    id: str
    team_id: str
    user_id: str
    role: TeamRole = TeamRole.MEMBER
    joined_at: datetime


class TeamInvite(BaseModel):
    id: str
    team_id: str
    email: str
    role: TeamRole = TeamRole.MEMBER
    token: str
    expires_at: datetime
    accepted_at: datetime | None = None
    accepted_by: str | None = None
    revoked_at: datetime | None = None
    created_at: datetime

    def status_at(self, now: datetime) -> InviteStatus:
        """Derive the invite state. Terminal stored states win over expiry."""
        if self.accepted_at is not None:
            return InviteStatus.ACCEPTED
        if self.revoked_at is not None:
            return InviteStatus.REVOKED
        if self.expires_at < now:
            return InviteStatus.EXPIRED
        return InviteStatus.PENDING

    def is_closed(self) -> bool:
        return self.accepted_at is not None or self.revoked_at is not None

    def is_pending(self, now: datetime) -> bool:
        return self.status_at(now) is InviteStatus.PENDING


class MembershipWithTeam(BaseModel):
    """An actor's membership row joined with the owning team."""
    member: TeamMember
    team: Team

    @property
    def role(self) -> TeamRole:
        return self.member.role


class User(BaseModel):
    """An identity from the host's user directory."""
    id: str
    email: str


# ---------------------------------------------------------------------------
# Input models
# ---------------------------------------------------------------------------

class TeamUpdate(BaseModel):
    """Fields a team owner may change. Identity, owner, slug and timestamps are fixed."""
    model_config = ConfigDict(extra="forbid")

    name: str | None = None
    plan: TeamPlan | None = None
    status: TeamStatus | None = None

    @field_validator("name")
    @classmethod
    def _name_not_blank(cls, value: str | None) -> str | None:
        if value is None:
            return value
        value = value.strip()
        if not value:
            raise ValueError("name must not be blank")
        return value

    def changes(self) -> dict[str, Any]:
        return self.model_dump(exclude_none=True, mode="json")


# ---------------------------------------------------------------------------
# Audit
# ---------------------------------------------------------------------------

class AuditEvent(BaseModel):
    actor_id: str
    actor_type: Literal["user", "system"] = "user"
    entity_type: Literal["team", "member", "invite"]
    entity_id: str
    action: str
    target_id: str | None = None
    metadata: dict[str, Any] | None = None
    created_at: datetime = Field(default_factory=utcnow)


# ---------------------------------------------------------------------------
# Result envelope
# ---------------------------------------------------------------------------

T = TypeVar("T")


class ServiceError(BaseModel):
    code: ErrorCode
    message: str


class Ok(BaseModel, Generic[T]):
    ok: Literal[True] = True
    data: T


class Err(BaseModel):
    ok: Literal[False] = False
    error: ServiceError


ServiceResult = Union[Ok[T], Err]


class MessageData(BaseModel):
    """data for delete_team / remove_member"""
    message: str


def ok(data: T) -> Ok[T]:
    return Ok(data=data)


def fail(code: ErrorCode, message: str) -> Err:
    return Err(error=ServiceError(code=code, message=message))
