"""Role hierarchy and permission predicates.

Pure functions, no I/O. Absence of permission is ``False``; callers turn it
into an error result. The primary owner (``user_id == team.owner_id``) bypasses
role comparisons everywhere except where they are the *target* of a removal.
"""

from __future__ import annotations

from teamkit.models import TeamRole

ROLE_POWER: dict[TeamRole, int] = {
    TeamRole.OWNER: 3,
    TeamRole.ADMIN: 2,
    TeamRole.MEMBER: 1,
    TeamRole.VIEWER: 0,
}

MANAGER_ROLES = frozenset({TeamRole.OWNER, TeamRole.ADMIN})


def is_primary_owner(user_id: str, team_owner_id: str) -> bool:
    return user_id == team_owner_id


def is_higher_role(actor: TeamRole, target: TeamRole) -> bool:
    """Strict comparison; equal roles are never higher."""
    return ROLE_POWER[TeamRole(actor)] > ROLE_POWER[TeamRole(target)]


def can_manage_members(role: TeamRole) -> bool:
    return TeamRole(role) in MANAGER_ROLES


def can_assign_role(
    *,
    actor_role: TeamRole,
    actor_user_id: str,
    team_owner_id: str,
    new_role: TeamRole,
) -> bool:
    if is_primary_owner(actor_user_id, team_owner_id):
        return True
    return is_higher_role(actor_role, new_role)


def can_change_role(
    *,
    actor_role: TeamRole,
    actor_user_id: str,
    team_owner_id: str,
    target_role: TeamRole,
    new_role: TeamRole,
) -> bool:
    """Non-primary actors must outrank both the current and the requested role."""
    if is_primary_owner(actor_user_id, team_owner_id):
        return True
    return is_higher_role(actor_role, target_role) and is_higher_role(actor_role, new_role)


def can_remove_member(
    *,
    actor_role: TeamRole,
    actor_user_id: str,
    team_owner_id: str,
    target_role: TeamRole,
    target_user_id: str,
    owners_count: int,
) -> bool:
    # The primary owner is never removable.
    if is_primary_owner(target_user_id, team_owner_id):
        return False

    # Last owner stays.
    if TeamRole(target_role) is TeamRole.OWNER and owners_count <= 1:
        return False

    if is_primary_owner(actor_user_id, team_owner_id):
        return True

    return is_higher_role(actor_role, target_role)


def can_delete_team(user_id: str, team_owner_id: str) -> bool:
    return is_primary_owner(user_id, team_owner_id)
