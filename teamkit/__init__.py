"""teamkit: multi-tenant team membership: teams, roles, invites."""

from teamkit.audit import MemoryAuditSink, logging_audit_sink, redis_audit_sink
from teamkit.models import (
    AuditEvent,
    ErrorCode,
    InviteStatus,
    ServiceError,
    ServiceResult,
    Team,
    TeamInvite,
    TeamMember,
    TeamPlan,
    TeamRole,
    TeamStatus,
    TeamUpdate,
    User,
)
from teamkit.teams import Teams
from teamkit.users import InMemoryUserDirectory, UserDirectory

__all__ = [
    "AuditEvent",
    "ErrorCode",
    "InMemoryUserDirectory",
    "InviteStatus",
    "MemoryAuditSink",
    "ServiceError",
    "ServiceResult",
    "Team",
    "TeamInvite",
    "TeamMember",
    "TeamPlan",
    "TeamRole",
    "TeamStatus",
    "TeamUpdate",
    "Teams",
    "User",
    "UserDirectory",
    "logging_audit_sink",
    "redis_audit_sink",
]
