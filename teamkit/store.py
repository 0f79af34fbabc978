"""Row-level queries over one open transaction.

A ``Store`` wraps the connection yielded by ``database.transaction()``. Every
read a service uses for a permission decision goes through the same Store as
the write that follows it, so both see one snapshot. Audit records raised
during the transaction are queued here and only delivered after commit.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

import aiosqlite

from teamkit.models import (
    AuditEvent,
    MembershipWithTeam,
    Team,
    TeamInvite,
    TeamMember,
    TeamRole,
)

_TEAM_COLUMNS = ("id", "name", "slug", "owner_id", "plan", "status", "created_at", "updated_at")
_MEMBER_COLUMNS = ("id", "team_id", "user_id", "role", "joined_at")
_INVITE_COLUMNS = (
    "id", "team_id", "email", "role", "token", "expires_at",
    "accepted_at", "accepted_by", "revoked_at", "created_at",
)

# Columns update_team may touch
_TEAM_MUTABLE = frozenset({"name", "slug", "plan", "status"})


def _to_db(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    if hasattr(value, "value"):  # str enums
        return value.value
    return value


def _insert_sql(table: str, columns: tuple[str, ...]) -> str:
    placeholders = ", ".join("?" for _ in columns)
    return f"INSERT INTO {table} ({', '.join(columns)}) VALUES ({placeholders}) RETURNING *"


class Store:
    def __init__(self, db: aiosqlite.Connection) -> None:
        self.db = db
        self.audit_events: list[AuditEvent] = []

    async def _one(self, sql: str, params: tuple = ()) -> dict | None:
        cursor = await self.db.execute(sql, params)
        row = await cursor.fetchone()
        await cursor.close()
        return dict(row) if row is not None else None

    async def _all(self, sql: str, params: tuple = ()) -> list[dict]:
        cursor = await self.db.execute(sql, params)
        rows = await cursor.fetchall()
        await cursor.close()
        return [dict(r) for r in rows]

    def audit(self, event: AuditEvent) -> None:
        """Queue an audit record for delivery once the transaction commits."""
        self.audit_events.append(event)

    # ------------------------------------------------------------------
    # Teams
    # ------------------------------------------------------------------

    async def get_team(self, team_id: str) -> Team | None:
        row = await self._one("SELECT * FROM team WHERE id = ?", (team_id,))
        return Team.model_validate(row) if row else None

    async def insert_team(self, team: Team) -> Team:
        """Raises ``sqlite3.IntegrityError`` when the slug is taken."""
        data = team.model_dump()
        row = await self._one(
            _insert_sql("team", _TEAM_COLUMNS),
            tuple(_to_db(data[c]) for c in _TEAM_COLUMNS),
        )
        return Team.model_validate(row)

    async def update_team(
        self, team_id: str, changes: dict[str, Any], updated_at: datetime
    ) -> Team | None:
        unknown = set(changes) - _TEAM_MUTABLE
        if unknown:
            raise ValueError(f"team columns are not updatable: {sorted(unknown)}")
        assignments = [f"{column} = ?" for column in changes] + ["updated_at = ?"]
        params = [_to_db(v) for v in changes.values()] + [_to_db(updated_at), team_id]
        row = await self._one(
            f"UPDATE team SET {', '.join(assignments)} WHERE id = ? RETURNING *",
            tuple(params),
        )
        return Team.model_validate(row) if row else None

    async def delete_team(self, team_id: str) -> bool:
        row = await self._one("DELETE FROM team WHERE id = ? RETURNING id", (team_id,))
        return row is not None

    # ------------------------------------------------------------------
    # Members
    # ------------------------------------------------------------------

    async def get_membership_with_team(
        self, team_id: str, user_id: str
    ) -> MembershipWithTeam | None:
        """The actor's membership and its team, in one read."""
        cursor = await self.db.execute(
            "SELECT m.id, m.team_id, m.user_id, m.role, m.joined_at, "
            "t.id, t.name, t.slug, t.owner_id, t.plan, t.status, t.created_at, t.updated_at "
            "FROM team_member m JOIN team t ON t.id = m.team_id "
            "WHERE m.team_id = ? AND m.user_id = ?",
            (team_id, user_id),
        )
        row = await cursor.fetchone()
        await cursor.close()
        if row is None:
            return None
        values = tuple(row)
        split = len(_MEMBER_COLUMNS)
        return MembershipWithTeam(
            member=TeamMember.model_validate(dict(zip(_MEMBER_COLUMNS, values[:split]))),
            team=Team.model_validate(dict(zip(_TEAM_COLUMNS, values[split:]))),
        )

    async def get_member(self, team_id: str, user_id: str) -> TeamMember | None:
        row = await self._one(
            "SELECT * FROM team_member WHERE team_id = ? AND user_id = ?",
            (team_id, user_id),
        )
        return TeamMember.model_validate(row) if row else None

    async def list_members(self, team_id: str) -> list[TeamMember]:
        rows = await self._all(
            "SELECT * FROM team_member WHERE team_id = ? ORDER BY joined_at ASC, rowid ASC",
            (team_id,),
        )
        return [TeamMember.model_validate(r) for r in rows]

    async def count_members_with_role(self, team_id: str, role: TeamRole) -> int:
        row = await self._one(
            "SELECT COUNT(*) AS cnt FROM team_member WHERE team_id = ? AND role = ?",
            (team_id, _to_db(role)),
        )
        return row["cnt"] if row else 0

    async def count_owners(self, team_id: str) -> int:
        return await self.count_members_with_role(team_id, TeamRole.OWNER)

    async def insert_member(self, member: TeamMember) -> TeamMember:
        data = member.model_dump()
        row = await self._one(
            _insert_sql("team_member", _MEMBER_COLUMNS),
            tuple(_to_db(data[c]) for c in _MEMBER_COLUMNS),
        )
        return TeamMember.model_validate(row)

    async def update_member_role(self, member_id: str, role: TeamRole) -> TeamMember | None:
        row = await self._one(
            "UPDATE team_member SET role = ? WHERE id = ? RETURNING *",
            (_to_db(role), member_id),
        )
        return TeamMember.model_validate(row) if row else None

    async def delete_member(self, team_id: str, user_id: str) -> str | None:
        """Returns the deleted membership id, or None if nothing matched."""
        row = await self._one(
            "DELETE FROM team_member WHERE team_id = ? AND user_id = ? RETURNING id",
            (team_id, user_id),
        )
        return row["id"] if row else None

    async def delete_team_members(self, team_id: str) -> int:
        rows = await self._all(
            "DELETE FROM team_member WHERE team_id = ? RETURNING id", (team_id,)
        )
        return len(rows)

    # ------------------------------------------------------------------
    # Invites
    # ------------------------------------------------------------------

    async def get_invite(self, team_id: str, invite_id: str) -> TeamInvite | None:
        row = await self._one(
            "SELECT * FROM team_invite WHERE id = ? AND team_id = ?",
            (invite_id, team_id),
        )
        return TeamInvite.model_validate(row) if row else None

    async def get_invite_by_token(self, token: str) -> TeamInvite | None:
        row = await self._one("SELECT * FROM team_invite WHERE token = ?", (token,))
        return TeamInvite.model_validate(row) if row else None

    async def get_outstanding_invite(self, team_id: str, email: str) -> TeamInvite | None:
        """Neither accepted nor revoked. May still be expired; callers check the clock."""
        row = await self._one(
            "SELECT * FROM team_invite WHERE team_id = ? AND email = ? "
            "AND accepted_at IS NULL AND revoked_at IS NULL",
            (team_id, email),
        )
        return TeamInvite.model_validate(row) if row else None

    async def list_invites(self, team_id: str) -> list[TeamInvite]:
        rows = await self._all(
            "SELECT * FROM team_invite WHERE team_id = ? ORDER BY created_at DESC, rowid DESC",
            (team_id,),
        )
        return [TeamInvite.model_validate(r) for r in rows]

    async def insert_invite(self, invite: TeamInvite) -> TeamInvite:
        data = invite.model_dump()
        row = await self._one(
            _insert_sql("team_invite", _INVITE_COLUMNS),
            tuple(_to_db(data[c]) for c in _INVITE_COLUMNS),
        )
        return TeamInvite.model_validate(row)

    async def mark_invite_accepted(
        self, invite_id: str, user_id: str, accepted_at: datetime
    ) -> TeamInvite | None:
        """Conditional on the invite still being open."""
        row = await self._one(
            "UPDATE team_invite SET accepted_at = ?, accepted_by = ? "
            "WHERE id = ? AND accepted_at IS NULL AND revoked_at IS NULL RETURNING *",
            (_to_db(accepted_at), user_id, invite_id),
        )
        return TeamInvite.model_validate(row) if row else None

    async def mark_invite_revoked(self, invite_id: str, revoked_at: datetime) -> TeamInvite | None:
        """Conditional on the invite still being open."""
        row = await self._one(
            "UPDATE team_invite SET revoked_at = ? "
            "WHERE id = ? AND accepted_at IS NULL AND revoked_at IS NULL RETURNING *",
            (_to_db(revoked_at), invite_id),
        )
        return TeamInvite.model_validate(row) if row else None

    async def delete_team_invites(self, team_id: str) -> int:
        rows = await self._all(
            "DELETE FROM team_invite WHERE team_id = ? RETURNING id", (team_id,)
        )
        return len(rows)
