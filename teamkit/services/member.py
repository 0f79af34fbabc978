"""Membership: add members, change roles, remove members, list the roster."""

from __future__ import annotations

from teamkit import permissions
from teamkit.models import (
    AuditEvent,
    ErrorCode,
    MessageData,
    ServiceResult,
    TeamMember,
    TeamRole,
    fail,
    ok,
)
from teamkit.services.base import (
    TeamsDeps,
    atomic,
    has_ids,
    invalid_input,
    not_a_member,
    parse_role,
)
from teamkit.store import Store
from teamkit.users import normalize_email


async def add_member(
    deps: TeamsDeps,
    team_id: str,
    user_id: str,
    role: TeamRole | str,
    current_user_id: str,
) -> ServiceResult[TeamMember]:
    """Add an existing user directly, bypassing invites.

    Refused while the user still has a pending invite to this team: the invite
    has to be accepted or revoked first.
    """
    new_role = parse_role(role)
    if not has_ids(team_id, user_id, current_user_id) or new_role is None:
        return invalid_input()

    async def body(store: Store) -> ServiceResult[TeamMember]:
        membership = await store.get_membership_with_team(team_id, current_user_id)
        if membership is None:
            return not_a_member()
        if not permissions.can_manage_members(membership.role):
            return fail(ErrorCode.UNAUTHORIZED, "You cannot manage members")
        if not permissions.can_assign_role(
            actor_role=membership.role,
            actor_user_id=current_user_id,
            team_owner_id=membership.team.owner_id,
            new_role=new_role,
        ):
            return fail(ErrorCode.INVALID_ACTION, "You cannot assign this role")

        target_user = await deps.users.get_user(user_id)
        if target_user is None:
            return fail(ErrorCode.NOT_FOUND, "User not found")

        if await store.get_member(team_id, user_id) is not None:
            return fail(ErrorCode.CONFLICT, "User already a member")

        invited_email = normalize_email(target_user.email)
        pending = await store.get_outstanding_invite(team_id, invited_email)
        if pending is not None and pending.is_pending(deps.clock()):
            return fail(ErrorCode.CONFLICT, "User already invited")

        member = await store.insert_member(
            TeamMember(
                id=deps.new_id(),
                team_id=team_id,
                user_id=user_id,
                role=new_role,
                joined_at=deps.clock(),
            )
        )
        store.audit(
            AuditEvent(
                actor_id=current_user_id,
                entity_type="member",
                entity_id=member.id,
                action="ADD",
                target_id=user_id,
                metadata={"role": new_role.value},
            )
        )
        return ok(member)

    return await atomic(deps, "add member", body)


async def change_role(
    deps: TeamsDeps,
    team_id: str,
    user_id: str,
    role: TeamRole | str,
    current_user_id: str,
) -> ServiceResult[TeamMember]:
    new_role = parse_role(role)
    if not has_ids(team_id, user_id, current_user_id) or new_role is None:
        return invalid_input()

    # Nobody changes their own role through this path, primary owner included.
    if user_id == current_user_id:
        return fail(ErrorCode.INVALID_ACTION, "You cannot change your own role")

    async def body(store: Store) -> ServiceResult[TeamMember]:
        membership = await store.get_membership_with_team(team_id, current_user_id)
        if membership is None:
            return not_a_member()
        if not permissions.can_manage_members(membership.role):
            return fail(ErrorCode.UNAUTHORIZED, "No permission to change roles")

        target = await store.get_member(team_id, user_id)
        if target is None:
            return fail(ErrorCode.NOT_FOUND, "Target member not found")

        if not permissions.can_change_role(
            actor_role=membership.role,
            actor_user_id=current_user_id,
            team_owner_id=membership.team.owner_id,
            target_role=target.role,
            new_role=new_role,
        ):
            return fail(ErrorCode.INVALID_ACTION, "You cannot change to this role")

        updated = await store.update_member_role(target.id, new_role)
        if updated is None:
            return fail(ErrorCode.INTERNAL_ERROR, "Failed to change role")

        store.audit(
            AuditEvent(
                actor_id=current_user_id,
                entity_type="member",
                entity_id=target.id,
                action="UPDATE_ROLE",
                target_id=user_id,
                metadata={"old_role": target.role.value, "new_role": new_role.value},
            )
        )
        return ok(updated)

    return await atomic(deps, "change role", body)


async def remove_member(
    deps: TeamsDeps, team_id: str, user_id: str, current_user_id: str
) -> ServiceResult[MessageData]:
    if not has_ids(team_id, user_id, current_user_id):
        return invalid_input()

    if user_id == current_user_id:
        return fail(
            ErrorCode.INVALID_ACTION, "You cannot remove yourself (use leave team instead)"
        )

    async def body(store: Store) -> ServiceResult[MessageData]:
        membership = await store.get_membership_with_team(team_id, current_user_id)
        if membership is None:
            return not_a_member()

        target = await store.get_member(team_id, user_id)
        if target is None:
            return fail(ErrorCode.NOT_FOUND, "Member not found")

        owners_count = await store.count_owners(team_id)
        if not permissions.can_remove_member(
            actor_role=membership.role,
            actor_user_id=current_user_id,
            team_owner_id=membership.team.owner_id,
            target_role=target.role,
            target_user_id=target.user_id,
            owners_count=owners_count,
        ):
            return fail(ErrorCode.INVALID_ACTION, "You cannot remove this member")

        if await store.delete_member(team_id, user_id) is None:
            return fail(ErrorCode.INTERNAL_ERROR, "Failed to remove member")

        store.audit(
            AuditEvent(
                actor_id=current_user_id,
                entity_type="member",
                entity_id=target.id,
                action="REMOVE",
                target_id=user_id,
                metadata={"role": target.role.value},
            )
        )
        return ok(MessageData(message="Member removed"))

    return await atomic(deps, "remove member", body)


async def list_members(
    deps: TeamsDeps, team_id: str, current_user_id: str
) -> ServiceResult[list[TeamMember]]:
    if not has_ids(team_id, current_user_id):
        return invalid_input()

    async def body(store: Store) -> ServiceResult[list[TeamMember]]:
        if await store.get_member(team_id, current_user_id) is None:
            return not_a_member()
        return ok(await store.list_members(team_id))

    return await atomic(deps, "list members", body)
