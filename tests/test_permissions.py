"""Tests for the permission engine. Pure functions, no database."""

from __future__ import annotations

from itertools import product

import pytest

from teamkit import permissions
from teamkit.models import TeamRole

OWNER, ADMIN, MEMBER, VIEWER = TeamRole.OWNER, TeamRole.ADMIN, TeamRole.MEMBER, TeamRole.VIEWER
ORDERED = [OWNER, ADMIN, MEMBER, VIEWER]  # strongest first


class TestRoleOrdering:
    def test_power_values(self):
        assert permissions.ROLE_POWER == {OWNER: 3, ADMIN: 2, MEMBER: 1, VIEWER: 0}

    @pytest.mark.parametrize(
        "stronger,weaker",
        [(ORDERED[i], ORDERED[j]) for i in range(4) for j in range(i + 1, 4)],
    )
    def test_higher_is_strict_and_antisymmetric(self, stronger, weaker):
        assert permissions.is_higher_role(stronger, weaker) is True
        assert permissions.is_higher_role(weaker, stronger) is False

    @pytest.mark.parametrize("role", ORDERED)
    def test_equal_roles_never_higher(self, role):
        assert permissions.is_higher_role(role, role) is False

    def test_accepts_plain_strings(self):
        assert permissions.is_higher_role("admin", "member") is True


class TestPrimaryOwner:
    def test_equality(self):
        assert permissions.is_primary_owner("u1", "u1")
        assert not permissions.is_primary_owner("u1", "u2")

    def test_only_primary_owner_deletes_team(self):
        assert permissions.can_delete_team("u1", "u1")
        assert not permissions.can_delete_team("co-owner", "u1")


class TestCanManageMembers:
    def test_owner_and_admin(self):
        assert permissions.can_manage_members(OWNER)
        assert permissions.can_manage_members(ADMIN)

    def test_member_and_viewer(self):
        assert not permissions.can_manage_members(MEMBER)
        assert not permissions.can_manage_members(VIEWER)


class TestCanAssignRole:
    def test_primary_owner_assigns_anything(self):
        for role in ORDERED:
            assert permissions.can_assign_role(
                actor_role=VIEWER, actor_user_id="p", team_owner_id="p", new_role=role
            )

    def test_admin_assigns_only_lower_roles(self):
        allowed = {
            role
            for role in ORDERED
            if permissions.can_assign_role(
                actor_role=ADMIN, actor_user_id="a", team_owner_id="p", new_role=role
            )
        }
        assert allowed == {MEMBER, VIEWER}

    def test_co_owner_cannot_assign_owner(self):
        assert not permissions.can_assign_role(
            actor_role=OWNER, actor_user_id="c", team_owner_id="p", new_role=OWNER
        )
        assert permissions.can_assign_role(
            actor_role=OWNER, actor_user_id="c", team_owner_id="p", new_role=ADMIN
        )


class TestCanChangeRole:
    @pytest.mark.parametrize("target,new", list(product(ORDERED, ORDERED)))
    def test_primary_owner_always_allowed(self, target, new):
        assert permissions.can_change_role(
            actor_role=OWNER, actor_user_id="p", team_owner_id="p", target_role=target, new_role=new
        )

    def test_admin_moves_member_to_viewer(self):
        assert permissions.can_change_role(
            actor_role=ADMIN, actor_user_id="a", team_owner_id="p", target_role=MEMBER, new_role=VIEWER
        )

    def test_admin_cannot_promote_to_admin(self):
        assert not permissions.can_change_role(
            actor_role=ADMIN, actor_user_id="a", team_owner_id="p", target_role=MEMBER, new_role=ADMIN
        )

    def test_admin_cannot_demote_peer_admin(self):
        assert not permissions.can_change_role(
            actor_role=ADMIN, actor_user_id="a", team_owner_id="p", target_role=ADMIN, new_role=VIEWER
        )

    def test_co_owner_cannot_touch_other_owner(self):
        assert not permissions.can_change_role(
            actor_role=OWNER, actor_user_id="c", team_owner_id="p", target_role=OWNER, new_role=MEMBER
        )


class TestCanRemoveMember:
    def _check(self, **overrides):
        args = dict(
            actor_role=OWNER,
            actor_user_id="p",
            team_owner_id="p",
            target_role=MEMBER,
            target_user_id="t",
            owners_count=1,
        )
        args.update(overrides)
        return permissions.can_remove_member(**args)

    @pytest.mark.parametrize("actor_role", ORDERED)
    @pytest.mark.parametrize("actor_user_id", ["p", "someone"])
    def test_primary_owner_never_removable(self, actor_role, actor_user_id):
        assert not self._check(
            actor_role=actor_role,
            actor_user_id=actor_user_id,
            target_role=OWNER,
            target_user_id="p",
            owners_count=5,
        )

    def test_last_owner_protected_even_from_primary_owner(self):
        assert not self._check(target_role=OWNER, owners_count=1)
        assert not self._check(target_role=OWNER, owners_count=0)

    def test_primary_owner_removes_co_owner_when_others_remain(self):
        assert self._check(target_role=OWNER, owners_count=2)

    def test_primary_owner_removes_anyone_below(self):
        for role in (ADMIN, MEMBER, VIEWER):
            assert self._check(target_role=role)

    def test_admin_removes_lower_roles_only(self):
        assert self._check(actor_role=ADMIN, actor_user_id="a", target_role=MEMBER)
        assert self._check(actor_role=ADMIN, actor_user_id="a", target_role=VIEWER)
        assert not self._check(actor_role=ADMIN, actor_user_id="a", target_role=ADMIN)
        assert not self._check(
            actor_role=ADMIN, actor_user_id="a", target_role=OWNER, owners_count=3
        )

    def test_member_removes_viewer(self):
        assert self._check(actor_role=MEMBER, actor_user_id="m", target_role=VIEWER)
        assert not self._check(actor_role=VIEWER, actor_user_id="v", target_role=VIEWER)
