"""Identifier helpers: row ids, team slugs and invite tokens."""

from __future__ import annotations

import re
import secrets
import uuid

from teamkit.config import settings

SLUG_ALPHABET = "abcdefghijklmnopqrstuvwxyz0123456789"

_NON_SLUG_CHARS = re.compile(r"[^\w\s-]", re.ASCII)
_WHITESPACE = re.compile(r"\s+")


def new_id() -> str:
    return str(uuid.uuid4())


def slugify(value: str) -> str:
    """Lower-case, drop punctuation, collapse whitespace runs into hyphens."""
    value = _NON_SLUG_CHARS.sub("", value.lower().strip())
    return _WHITESPACE.sub("-", value)


def random_suffix(length: int | None = None) -> str:
    length = length or settings.slug_suffix_length
    return "".join(secrets.choice(SLUG_ALPHABET) for _ in range(length))


def generate_team_slug(name: str, suffix: str | None = None) -> str:
    """``"Acme Labs"`` -> ``"acme-labs-x7k2q9"``. Names with no slug characters get ``team``."""
    base = slugify(name) or "team"
    return f"{base}-{suffix or random_suffix()}"


def generate_token() -> str:
    """Unguessable invite credential (256 bits, URL-safe)."""
    return secrets.token_urlsafe(32)
