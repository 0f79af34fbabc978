"""Team lifecycle: create, read, update, delete."""

from __future__ import annotations

import logging
import sqlite3
from typing import Any, Awaitable, Callable, TypeVar

from pydantic import ValidationError

from teamkit import permissions
from teamkit.identifiers import generate_team_slug
from teamkit.models import (
    AuditEvent,
    ErrorCode,
    MessageData,
    ServiceResult,
    Team,
    TeamMember,
    TeamRole,
    TeamUpdate,
    fail,
    ok,
)
from teamkit.services.base import TeamsDeps, atomic, has_ids, invalid_input, not_a_member
from teamkit.store import Store

logger = logging.getLogger(__name__)

T = TypeVar("T")


class SlugAllocationError(Exception):
    """Every slug attempt collided with an existing team."""


def _is_slug_collision(exc: sqlite3.IntegrityError) -> bool:
    return "team.slug" in str(exc)


async def with_unique_slug(
    deps: TeamsDeps, name: str, write: Callable[[str], Awaitable[T]]
) -> T:
    """Run ``write(slug)`` with fresh slugs until one is free, up to the attempt bound."""
    for attempt in range(1, deps.slug_max_attempts + 1):
        slug = generate_team_slug(name, deps.slug_suffix())
        try:
            return await write(slug)
        except sqlite3.IntegrityError as exc:
            if not _is_slug_collision(exc):
                raise
            logger.info(
                "Slug %s already taken (attempt %d/%d)", slug, attempt, deps.slug_max_attempts
            )
    raise SlugAllocationError(name)


def _slug_failure() -> ServiceResult[Any]:
    return fail(ErrorCode.INTERNAL_ERROR, "Could not allocate a unique team slug")


# ---------------------------------------------------------------------------
# Create
# ---------------------------------------------------------------------------

async def create_team(deps: TeamsDeps, user_id: str, name: str) -> ServiceResult[Team]:
    """Create a team owned by ``user_id`` and make them its first owner member."""
    name = name.strip() if isinstance(name, str) else ""
    if not has_ids(user_id) or not name:
        return invalid_input()

    async def body(store: Store) -> ServiceResult[Team]:
        now = deps.clock()
        team_id = deps.new_id()

        async def insert(slug: str) -> Team:
            return await store.insert_team(
                Team(
                    id=team_id,
                    name=name,
                    slug=slug,
                    owner_id=user_id,
                    created_at=now,
                    updated_at=now,
                )
            )

        try:
            team = await with_unique_slug(deps, name, insert)
        except SlugAllocationError:
            return _slug_failure()

        await store.insert_member(
            TeamMember(
                id=deps.new_id(),
                team_id=team.id,
                user_id=user_id,
                role=TeamRole.OWNER,
                joined_at=now,
            )
        )
        store.audit(
            AuditEvent(
                actor_id=user_id,
                entity_type="team",
                entity_id=team.id,
                action="CREATE",
                metadata={"name": name, "slug": team.slug},
            )
        )
        return ok(team)

    return await atomic(deps, "create team", body)


# ---------------------------------------------------------------------------
# Read
# ---------------------------------------------------------------------------

async def get_team(deps: TeamsDeps, team_id: str, current_user_id: str) -> ServiceResult[Team]:
    if not has_ids(team_id, current_user_id):
        return invalid_input()

    async def body(store: Store) -> ServiceResult[Team]:
        membership = await store.get_membership_with_team(team_id, current_user_id)
        if membership is None:
            return not_a_member()
        return ok(membership.team)

    return await atomic(deps, "load team", body)


# ---------------------------------------------------------------------------
# Update
# ---------------------------------------------------------------------------

async def update_team(
    deps: TeamsDeps,
    team_id: str,
    current_user_id: str,
    updates: TeamUpdate | dict[str, Any],
) -> ServiceResult[Team]:
    """Any member holding the owner role may update; renaming regenerates the slug."""
    if not has_ids(team_id, current_user_id) or not updates:
        return invalid_input()
    try:
        update = (
            updates if isinstance(updates, TeamUpdate) else TeamUpdate.model_validate(updates)
        )
    except ValidationError as exc:
        return invalid_input(f"Invalid team update: {exc.error_count()} error(s)")
    changes = update.changes()
    if not changes:
        return invalid_input()

    async def body(store: Store) -> ServiceResult[Team]:
        membership = await store.get_membership_with_team(team_id, current_user_id)
        if membership is None or membership.role is not TeamRole.OWNER:
            return fail(ErrorCode.UNAUTHORIZED, "Not an owner")

        now = deps.clock()
        if "name" in changes:
            try:
                updated = await with_unique_slug(
                    deps,
                    changes["name"],
                    lambda slug: store.update_team(team_id, {**changes, "slug": slug}, now),
                )
            except SlugAllocationError:
                return _slug_failure()
        else:
            updated = await store.update_team(team_id, changes, now)

        if updated is None:
            return fail(ErrorCode.NOT_FOUND, "Team not found")

        store.audit(
            AuditEvent(
                actor_id=current_user_id,
                entity_type="team",
                entity_id=team_id,
                action="UPDATE",
                metadata=changes,
            )
        )
        return ok(updated)

    return await atomic(deps, "update team", body)


# ---------------------------------------------------------------------------
# Delete
# ---------------------------------------------------------------------------

async def delete_team(
    deps: TeamsDeps, current_user_id: str, team_id: str
) -> ServiceResult[MessageData]:
    """Only the primary owner may delete. Invites and memberships go with the team."""
    if not has_ids(team_id, current_user_id):
        return invalid_input()

    async def body(store: Store) -> ServiceResult[MessageData]:
        membership = await store.get_membership_with_team(team_id, current_user_id)
        if membership is None or not permissions.can_delete_team(
            current_user_id, membership.team.owner_id
        ):
            return fail(ErrorCode.UNAUTHORIZED, "Only the primary owner can delete a team")

        invites_removed = await store.delete_team_invites(team_id)
        members_removed = await store.delete_team_members(team_id)
        if not await store.delete_team(team_id):
            return fail(ErrorCode.NOT_FOUND, "Team not found")

        store.audit(
            AuditEvent(
                actor_id=current_user_id,
                entity_type="team",
                entity_id=team_id,
                action="DELETE",
                metadata={
                    "members_removed": members_removed,
                    "invites_removed": invites_removed,
                },
            )
        )
        return ok(MessageData(message="Team deleted successfully"))

    return await atomic(deps, "delete team", body)
