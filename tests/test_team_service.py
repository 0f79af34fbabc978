"""Tests for team lifecycle: create, get, update, delete."""

from __future__ import annotations

import logging
from itertools import cycle

from teamkit import ErrorCode, Teams, TeamPlan, TeamRole, TeamUpdate
from teamkit.database import get_db, get_db_path


async def count(table: str, team_id: str | None = None) -> int:
    async with get_db() as db:
        if team_id is None:
            cursor = await db.execute(f"SELECT COUNT(*) FROM {table}")
        else:
            column = "id" if table == "team" else "team_id"
            cursor = await db.execute(
                f"SELECT COUNT(*) FROM {table} WHERE {column} = ?", (team_id,)
            )
        return (await cursor.fetchone())[0]


class TestCreateTeam:
    async def test_creates_team_and_owner_membership(self, teams, audit):
        result = await teams.create_team("alice", "  Acme Labs ")
        assert result.ok
        team = result.data
        assert team.name == "Acme Labs"
        assert team.owner_id == "alice"
        assert team.plan is TeamPlan.FREE
        assert team.slug.startswith("acme-labs-")

        members = await teams.list_members(team.id, "alice")
        assert [(m.user_id, m.role) for m in members.data] == [("alice", TeamRole.OWNER)]
        assert await count("team") == 1
        assert audit.actions() == ["CREATE"]
        assert audit.events[0].metadata == {"name": "Acme Labs", "slug": team.slug}

    async def test_blank_name_rejected(self, teams, audit):
        result = await teams.create_team("alice", "   ")
        assert not result.ok
        assert result.error.code is ErrorCode.VALIDATION_ERROR
        assert audit.events == []

    async def test_missing_user_rejected(self, teams):
        result = await teams.create_team("", "Acme")
        assert result.error.code is ErrorCode.VALIDATION_ERROR

    async def test_slug_collision_retries(self, users, audit, clock):
        suffixes = cycle(["aaaaaa", "aaaaaa", "bbbbbb"])
        svc = Teams(
            users,
            audit_sink=audit,
            clock=clock,
            slug_suffix=lambda: next(suffixes),
            database_url=f"sqlite:///{get_db_path()}",
        )
        first = await svc.create_team("alice", "Acme")
        second = await svc.create_team("bob", "Acme")
        assert first.data.slug == "acme-aaaaaa"
        assert second.data.slug == "acme-bbbbbb"

    async def test_slug_retries_are_bounded(self, users, audit, clock, caplog):
        svc = Teams(
            users,
            audit_sink=audit,
            clock=clock,
            slug_suffix=lambda: "same00",
            slug_max_attempts=5,
            database_url=f"sqlite:///{get_db_path()}",
        )
        assert (await svc.create_team("alice", "Acme")).ok
        audit.clear()

        with caplog.at_level(logging.INFO):
            result = await svc.create_team("bob", "Acme")

        assert result.error.code is ErrorCode.INTERNAL_ERROR
        assert result.error.message == "Could not allocate a unique team slug"
        assert caplog.text.count("already taken") == 5
        assert await count("team") == 1
        assert await count("team_member") == 1
        assert audit.events == []


class TestGetTeam:
    async def test_member_can_read(self, teams, team, add_members):
        await add_members(team.id, bob=TeamRole.VIEWER)
        result = await teams.get_team(team.id, "bob")
        assert result.data.id == team.id

    async def test_outsider_rejected(self, teams, team):
        result = await teams.get_team(team.id, "mallory")
        assert result.error.code is ErrorCode.UNAUTHORIZED


class TestUpdateTeam:
    async def test_owner_updates_plan(self, teams, team, audit, clock):
        clock.advance(minutes=10)
        result = await teams.update_team(team.id, "alice", {"plan": "pro"})
        assert result.ok
        assert result.data.plan is TeamPlan.PRO
        assert result.data.slug == team.slug
        assert result.data.updated_at == clock.now
        assert audit.actions() == ["UPDATE"]
        assert audit.events[0].metadata == {"plan": "pro"}

    async def test_rename_regenerates_slug(self, teams, team):
        result = await teams.update_team(team.id, "alice", TeamUpdate(name="Rocket Co"))
        assert result.data.name == "Rocket Co"
        assert result.data.slug.startswith("rocket-co-")

    async def test_co_owner_may_update(self, teams, team, add_members):
        await add_members(team.id, carol=TeamRole.OWNER)
        result = await teams.update_team(team.id, "carol", {"status": "suspended"})
        assert result.ok

    async def test_admin_rejected(self, teams, team, add_members):
        await add_members(team.id, bob=TeamRole.ADMIN)
        result = await teams.update_team(team.id, "bob", {"plan": "pro"})
        assert result.error.code is ErrorCode.UNAUTHORIZED

    async def test_outsider_rejected(self, teams, team):
        result = await teams.update_team(team.id, "mallory", {"plan": "pro"})
        assert result.error.code is ErrorCode.UNAUTHORIZED

    async def test_owner_id_not_updatable(self, teams, team):
        result = await teams.update_team(team.id, "alice", {"owner_id": "bob"})
        assert result.error.code is ErrorCode.VALIDATION_ERROR

    async def test_empty_update_rejected(self, teams, team):
        assert (await teams.update_team(team.id, "alice", {})).error.code is ErrorCode.VALIDATION_ERROR
        assert (
            await teams.update_team(team.id, "alice", TeamUpdate())
        ).error.code is ErrorCode.VALIDATION_ERROR


class TestDeleteTeam:
    async def test_primary_owner_deletes_everything(self, teams, team, add_members, audit):
        await add_members(team.id, bob=TeamRole.ADMIN, carol=TeamRole.OWNER)
        await teams.create_invite(team.id, "alice", "dave@acme.io", "member")
        audit.clear()

        result = await teams.delete_team("alice", team.id)
        assert result.ok
        assert result.data.message == "Team deleted successfully"
        assert await count("team", team.id) == 0
        assert await count("team_member", team.id) == 0
        assert await count("team_invite", team.id) == 0
        assert audit.actions() == ["DELETE"]
        assert audit.events[0].metadata == {"members_removed": 3, "invites_removed": 1}

    async def test_co_owner_cannot_delete(self, teams, team, add_members):
        await add_members(team.id, carol=TeamRole.OWNER)
        result = await teams.delete_team("carol", team.id)
        assert result.error.code is ErrorCode.UNAUTHORIZED
        assert await count("team", team.id) == 1

    async def test_outsider_cannot_delete(self, teams, team):
        result = await teams.delete_team("mallory", team.id)
        assert result.error.code is ErrorCode.UNAUTHORIZED

    async def test_other_teams_untouched(self, teams, team):
        other = await teams.create_team("bob", "Other")
        await teams.delete_team("alice", team.id)
        assert await count("team", other.data.id) == 1
        assert await count("team_member", other.data.id) == 1
