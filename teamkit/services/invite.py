"""Invites: issue, accept, revoke, list.

An invite is pending until it is accepted or revoked, both terminal. Expiry is
never stored; it is read off ``expires_at`` against the clock. Only one
outstanding invite may exist per (team, email). An outstanding invite that has
already expired is superseded (stamped revoked) when the email is invited again.
"""

from __future__ import annotations

import logging

from teamkit import permissions
from teamkit.models import (
    AuditEvent,
    ErrorCode,
    InviteStatus,
    ServiceResult,
    TeamInvite,
    TeamMember,
    fail,
    ok,
)
from teamkit.services.base import (
    TeamsDeps,
    atomic,
    has_ids,
    invalid_input,
    not_a_member,
    parse_email,
    parse_role,
)
from teamkit.store import Store

logger = logging.getLogger(__name__)


async def create_invite(
    deps: TeamsDeps,
    team_id: str,
    current_user_id: str,
    email: str,
    role: str,
) -> ServiceResult[TeamInvite]:
    invite_role = parse_role(role)
    address = parse_email(email)
    if not has_ids(team_id, current_user_id) or invite_role is None or address is None:
        return invalid_input()

    async def body(store: Store) -> ServiceResult[TeamInvite]:
        membership = await store.get_membership_with_team(team_id, current_user_id)
        if membership is None:
            return not_a_member()
        if not permissions.can_manage_members(membership.role):
            return fail(ErrorCode.UNAUTHORIZED, "Not authorized")
        if not permissions.can_assign_role(
            actor_role=membership.role,
            actor_user_id=current_user_id,
            team_owner_id=membership.team.owner_id,
            new_role=invite_role,
        ):
            return fail(ErrorCode.INVALID_ACTION, "You cannot assign this role")

        existing_user = await deps.users.get_user_by_email(address)
        if existing_user is not None and await store.get_member(team_id, existing_user.id):
            return fail(ErrorCode.CONFLICT, "User already a member")

        now = deps.clock()
        outstanding = await store.get_outstanding_invite(team_id, address)
        if outstanding is not None:
            if outstanding.is_pending(now):
                return fail(ErrorCode.CONFLICT, "Invite already exists for this email")
            await store.mark_invite_revoked(outstanding.id, now)
            logger.info("Superseded expired invite %s for team %s", outstanding.id, team_id)

        invite = await store.insert_invite(
            TeamInvite(
                id=deps.new_id(),
                team_id=team_id,
                email=address,
                role=invite_role,
                token=deps.new_token(),
                expires_at=now + deps.invite_ttl,
                created_at=now,
            )
        )
        store.audit(
            AuditEvent(
                actor_id=current_user_id,
                entity_type="invite",
                entity_id=invite.id,
                action="INVITE_CREATE",
                metadata={"email": address, "role": invite_role.value, "team_id": team_id},
            )
        )
        return ok(invite)

    return await atomic(deps, "create invite", body)


async def accept_invite(deps: TeamsDeps, token: str, user_id: str) -> ServiceResult[TeamInvite]:
    """Redeem an invite token: the user joins with the invite's role."""
    if not has_ids(token, user_id):
        return invalid_input()

    async def body(store: Store) -> ServiceResult[TeamInvite]:
        invite = await store.get_invite_by_token(token)
        if invite is None:
            return fail(ErrorCode.NOT_FOUND, "Invite not found")

        now = deps.clock()
        status = invite.status_at(now)
        if status in (InviteStatus.ACCEPTED, InviteStatus.REVOKED):
            return fail(ErrorCode.INVALID_ACTION, "Invite already used or revoked")
        if status is InviteStatus.EXPIRED:
            return fail(ErrorCode.EXPIRED, "Invite has expired")

        if await store.get_member(invite.team_id, user_id) is not None:
            return fail(ErrorCode.CONFLICT, "User is already a team member")

        await store.insert_member(
            TeamMember(
                id=deps.new_id(),
                team_id=invite.team_id,
                user_id=user_id,
                role=invite.role,
                joined_at=now,
            )
        )
        accepted = await store.mark_invite_accepted(invite.id, user_id, now)
        if accepted is None:
            return fail(ErrorCode.INTERNAL_ERROR, "Failed to update invite")

        store.audit(
            AuditEvent(
                actor_id=user_id,
                entity_type="invite",
                entity_id=accepted.id,
                action="INVITE_ACCEPT",
                target_id=user_id,
                metadata={"team_id": accepted.team_id, "role": accepted.role.value},
            )
        )
        return ok(accepted)

    return await atomic(deps, "accept invite", body)


async def revoke_invite(
    deps: TeamsDeps, team_id: str, current_user_id: str, invite_id: str
) -> ServiceResult[TeamInvite]:
    if not has_ids(team_id, current_user_id, invite_id):
        return invalid_input()

    async def body(store: Store) -> ServiceResult[TeamInvite]:
        membership = await store.get_membership_with_team(team_id, current_user_id)
        if membership is None:
            return not_a_member()
        if not permissions.can_manage_members(membership.role):
            return fail(ErrorCode.UNAUTHORIZED, "You are not allowed to manage invites")

        invite = await store.get_invite(team_id, invite_id)
        if invite is None:
            return fail(ErrorCode.NOT_FOUND, "Invite not found")
        if invite.is_closed():
            return fail(ErrorCode.INVALID_ACTION, "Invite cannot be revoked")

        revoked = await store.mark_invite_revoked(invite.id, deps.clock())
        if revoked is None:
            return fail(ErrorCode.INTERNAL_ERROR, "Failed to revoke invite")

        store.audit(
            AuditEvent(
                actor_id=current_user_id,
                entity_type="invite",
                entity_id=revoked.id,
                action="INVITE_REVOKE",
                metadata={"team_id": team_id, "email": revoked.email},
            )
        )
        return ok(revoked)

    return await atomic(deps, "revoke invite", body)


async def list_invites(
    deps: TeamsDeps, team_id: str, current_user_id: str, include_closed: bool = False
) -> ServiceResult[list[TeamInvite]]:
    """Invites for a team, newest first. By default only ones still redeemable."""
    if not has_ids(team_id, current_user_id):
        return invalid_input()

    async def body(store: Store) -> ServiceResult[list[TeamInvite]]:
        membership = await store.get_membership_with_team(team_id, current_user_id)
        if membership is None:
            return not_a_member()
        if not permissions.can_manage_members(membership.role):
            return fail(ErrorCode.UNAUTHORIZED, "You are not allowed to manage invites")

        invites = await store.list_invites(team_id)
        if not include_closed:
            now = deps.clock()
            invites = [i for i in invites if i.is_pending(now)]
        return ok(invites)

    return await atomic(deps, "list invites", body)
