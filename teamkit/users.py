"""User directory: the host application's identity store.

teamkit never owns users. It only needs to resolve an opaque user id to an
email (and back) when adding members and issuing invites. Hosts pass any object
implementing ``UserDirectory``.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from teamkit.models import User


@runtime_checkable
class UserDirectory(Protocol):
    """Lookups receive trimmed, lower-cased emails. Returned emails may keep any case."""

    async def get_user(self, user_id: str) -> User | None: ...

    async def get_user_by_email(self, email: str) -> User | None: ...


def normalize_email(email: str) -> str:
    return email.strip().lower()


class InMemoryUserDirectory:
    """Dictionary-backed directory for tests and embedded hosts."""

    def __init__(self, users: list[User] | None = None) -> None:
        self._by_id: dict[str, User] = {}
        for user in users or []:
            self.add(user)

    def add(self, user: User) -> User:
        user = User(id=user.id, email=normalize_email(user.email))
        self._by_id[user.id] = user
        return user

    def register(self, user_id: str, email: str) -> User:
        return self.add(User(id=user_id, email=email))

    async def get_user(self, user_id: str) -> User | None:
        return self._by_id.get(user_id)

    async def get_user_by_email(self, email: str) -> User | None:
        email = normalize_email(email)
        for user in self._by_id.values():
            if user.email == email:
                return user
        return None
