"""Shared plumbing for the team, member and invite services.

``atomic`` is the transaction boundary every operation runs through: it opens
one write transaction, rolls back when the body returns a failure, downgrades
unexpected exceptions to INTERNAL_ERROR, and delivers queued audit records only
after a successful commit.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Awaitable, Callable

from pydantic import EmailStr, TypeAdapter, ValidationError

from teamkit.audit import AuditSink, deliver, redis_audit_sink
from teamkit.config import settings
from teamkit.database import transaction
from teamkit.identifiers import generate_token, new_id, random_suffix
from teamkit.models import Err, ErrorCode, ServiceResult, TeamRole, fail, utcnow
from teamkit.store import Store
from teamkit.users import UserDirectory, normalize_email

logger = logging.getLogger(__name__)

_email_adapter = TypeAdapter(EmailStr)


@dataclass
class TeamsDeps:
    """Collaborators injected into every service call."""
    users: UserDirectory
    audit_sink: AuditSink = redis_audit_sink
    clock: Callable[[], datetime] = utcnow
    new_id: Callable[[], str] = new_id
    slug_suffix: Callable[[], str] = random_suffix
    new_token: Callable[[], str] = generate_token
    invite_ttl: timedelta = field(
        default_factory=lambda: timedelta(hours=settings.invite_ttl_hours)
    )
    slug_max_attempts: int = field(default_factory=lambda: settings.slug_max_attempts)
    # None targets the process default database set by init_db
    db_path: str | None = None


class _Abort(Exception):
    """Carries a failure result out of the transaction so it rolls back."""

    def __init__(self, result: Err) -> None:
        super().__init__(result.error.message)
        self.result = result


async def atomic(
    deps: TeamsDeps,
    action: str,
    body: Callable[[Store], Awaitable[ServiceResult[Any]]],
) -> ServiceResult[Any]:
    store: Store | None = None
    try:
        async with transaction(deps.db_path) as db:
            store = Store(db)
            result = await body(store)
            if not result.ok:
                raise _Abort(result)
    except _Abort as abort:
        return abort.result
    except Exception:
        logger.exception("Failed to %s", action)
        return fail(ErrorCode.INTERNAL_ERROR, f"Failed to {action}")

    await deliver(deps.audit_sink, store.audit_events)
    return result


# ---------------------------------------------------------------------------
# Input validation
# ---------------------------------------------------------------------------

def invalid_input(message: str = "Invalid input") -> Err:
    return fail(ErrorCode.VALIDATION_ERROR, message)


def has_ids(*values: Any) -> bool:
    return all(isinstance(v, str) and v.strip() for v in values)


def parse_role(value: Any) -> TeamRole | None:
    try:
        return TeamRole(value)
    except ValueError:
        return None


def parse_email(value: Any) -> str | None:
    if not isinstance(value, str):
        return None
    try:
        return normalize_email(_email_adapter.validate_python(value.strip()))
    except ValidationError:
        return None


# ---------------------------------------------------------------------------
# Common failures
# ---------------------------------------------------------------------------

def not_a_member() -> Err:
    return fail(ErrorCode.UNAUTHORIZED, "Not a team member")
