"""``Teams``, the entry point hosts construct once and call into.

Binds the collaborators (user directory, audit sink, id/slug/token factories,
clock) to the service functions, so callers only pass the operation's own
arguments.

Usage:
    teams = Teams(users=my_directory)
    await teams.open()
    result = await teams.create_team(user_id, "Acme Labs")
    if result.ok:
        team = result.data
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any, Callable

from teamkit.audit import AuditSink, redis_audit_sink
from teamkit.config import settings
from teamkit.database import close_db, create_schema, resolve_db_path
from teamkit.identifiers import generate_token, new_id, random_suffix
from teamkit.models import (
    MessageData,
    ServiceResult,
    Team,
    TeamInvite,
    TeamMember,
    TeamRole,
    TeamUpdate,
    utcnow,
)
from teamkit.redis_client import connect_redis, disconnect_redis
from teamkit.services import invite, member, team
from teamkit.services.base import TeamsDeps
from teamkit.users import UserDirectory
class Teams:
    """One membership service bound to its own database.

    Each instance keeps its database path; several instances may target
    different databases in one process. The Redis audit client is shared by
    the process and stays connected until the last instance using it closes.
    """

    def __init__(
        self,
        users: UserDirectory,
        *,
        audit_sink: AuditSink = redis_audit_sink,
        database_url: str | None = None,
        clock: Callable[[], datetime] = utcnow,
        id_factory: Callable[[], str] = new_id,
        slug_suffix: Callable[[], str] = random_suffix,
        token_factory: Callable[[], str] = generate_token,
        invite_ttl: timedelta | None = None,
        slug_max_attempts: int | None = None,
    ) -> None:
        self.database_url = database_url or settings.database_url
        if invite_ttl is None:
            invite_ttl = timedelta(hours=settings.invite_ttl_hours)
        if slug_max_attempts is None:
            slug_max_attempts = settings.slug_max_attempts
        self.deps = TeamsDeps(
            users=users,
            audit_sink=audit_sink,
            clock=clock,
            new_id=id_factory,
            slug_suffix=slug_suffix,
            new_token=token_factory,
            invite_ttl=invite_ttl,
            slug_max_attempts=slug_max_attempts,
            db_path=resolve_db_path(self.database_url),
        )
        self._holds_redis = False

    @property
    def db_path(self) -> str:
        return self.deps.db_path

    async def open(self) -> None:
        """Create tables and, when auditing to Redis, connect to it."""
        await create_schema(self.deps.db_path)
        if self.deps.audit_sink is redis_audit_sink and not self._holds_redis:
            await connect_redis()
            self._holds_redis = True

    async def close(self) -> None:
        """Release Redis and, for ``:memory:``, discard the database."""
        if self._holds_redis:
            await disconnect_redis()
            self._holds_redis = False
        await close_db(self.deps.db_path)

    # Teams

    async def create_team(self, user_id: str, name: str) -> ServiceResult[Team]:
        return await team.create_team(self.deps, user_id, name)

    async def get_team(self, team_id: str, current_user_id: str) -> ServiceResult[Team]:
        return await team.get_team(self.deps, team_id, current_user_id)

    async def update_team(
        self, team_id: str, current_user_id: str, updates: TeamUpdate | dict[str, Any]
    ) -> ServiceResult[Team]:
        return await team.update_team(self.deps, team_id, current_user_id, updates)

    async def delete_team(self, current_user_id: str, team_id: str) -> ServiceResult[MessageData]:
        return await team.delete_team(self.deps, current_user_id, team_id)

    # Members

    async def add_member(
        self, team_id: str, user_id: str, role: TeamRole | str, current_user_id: str
    ) -> ServiceResult[TeamMember]:
        return await member.add_member(self.deps, team_id, user_id, role, current_user_id)

    async def change_role(
        self, team_id: str, user_id: str, role: TeamRole | str, current_user_id: str
    ) -> ServiceResult[TeamMember]:
        return await member.change_role(self.deps, team_id, user_id, role, current_user_id)

    async def remove_member(
        self, team_id: str, user_id: str, current_user_id: str
    ) -> ServiceResult[MessageData]:
        return await member.remove_member(self.deps, team_id, user_id, current_user_id)

    async def list_members(
        self, team_id: str, current_user_id: str
    ) -> ServiceResult[list[TeamMember]]:
        return await member.list_members(self.deps, team_id, current_user_id)

    # Invites

    async def create_invite(
        self, team_id: str, current_user_id: str, email: str, role: TeamRole | str
    ) -> ServiceResult[TeamInvite]:
        return await invite.create_invite(self.deps, team_id, current_user_id, email, role)

    async def accept_invite(self, token: str, user_id: str) -> ServiceResult[TeamInvite]:
        return await invite.accept_invite(self.deps, token, user_id)

    async def revoke_invite(
        self, team_id: str, current_user_id: str, invite_id: str
    ) -> ServiceResult[TeamInvite]:
        return await invite.revoke_invite(self.deps, team_id, current_user_id, invite_id)

    async def list_invites(
        self, team_id: str, current_user_id: str, include_closed: bool = False
    ) -> ServiceResult[list[TeamInvite]]:
        return await invite.list_invites(self.deps, team_id, current_user_id, include_closed)
