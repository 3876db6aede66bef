"""config.py — Runtime configuration from the environment.

All knobs come from CALLBOARD_* environment variables. Config.from_env()
reads them once at startup; bad values fail loudly there rather than
on the first request.

Admin tokens use a compact format so they fit in one variable:

    CALLBOARD_ADMIN_TOKENS="s3cret=alice:superadmin,t0ken=bob:admin"
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Mapping

import pendulum

from .keys import DEFAULT_PREFIX

DEFAULT_REDIS_URL = "redis://localhost:6379/0"
DEFAULT_HOST = "0.0.0.0"
DEFAULT_PORT = 3000
DEFAULT_FEATURED_RETRIES = 5

VALID_ROLES = ("admin", "superadmin")


def _flag(value: str | None) -> bool:
    return (value or "").lower() in ("1", "true", "yes")


def parse_admin_tokens(raw: str) -> dict[str, tuple[str, str]]:
    """Parse "token=name:role,..." into {token: (name, role)}.

    Role defaults to "admin" when omitted. Raises ValueError on
    malformed entries or unknown roles.
    """
    tokens: dict[str, tuple[str, str]] = {}
    for entry in raw.split(","):
        entry = entry.strip()
        if not entry:
            continue
        token, sep, who = entry.partition("=")
        if not sep or not token.strip() or not who.strip():
            raise ValueError(f"Malformed admin token entry: {entry!r}")
        name, _, role = who.partition(":")
        role = role.strip() or "admin"
        if role not in VALID_ROLES:
            raise ValueError(f"Unknown role {role!r} for {name.strip()!r}")
        tokens[token.strip()] = (name.strip().lower(), role)
    return tokens


@dataclass
class Config:
    """Everything the server needs to start."""

    redis_url: str = DEFAULT_REDIS_URL
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    key_prefix: str = DEFAULT_PREFIX
    timezone: str = "UTC"
    admin_tokens: dict[str, tuple[str, str]] = field(default_factory=dict)
    featured_retries: int = DEFAULT_FEATURED_RETRIES
    debug: bool = False

    def __post_init__(self):
        if not 0 < self.port < 65536:
            raise ValueError(f"Port out of range: {self.port}")
        if self.featured_retries < 1:
            raise ValueError("featured_retries must be at least 1")
        try:
            pendulum.timezone(self.timezone)
        except Exception as e:
            raise ValueError(f"Unknown timezone: {self.timezone!r}") from e

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> Config:
        env = os.environ if environ is None else environ
        try:
            port = int(env.get("CALLBOARD_PORT", DEFAULT_PORT))
            retries = int(env.get("CALLBOARD_FEATURED_RETRIES", DEFAULT_FEATURED_RETRIES))
        except ValueError as e:
            raise ValueError(f"Invalid numeric setting: {e}") from e

        return cls(
            redis_url=env.get("CALLBOARD_REDIS_URL", DEFAULT_REDIS_URL),
            host=env.get("CALLBOARD_HOST", DEFAULT_HOST),
            port=port,
            key_prefix=env.get("CALLBOARD_KEY_PREFIX", DEFAULT_PREFIX),
            timezone=env.get("CALLBOARD_TIMEZONE", "UTC"),
            admin_tokens=parse_admin_tokens(env.get("CALLBOARD_ADMIN_TOKENS", "")),
            featured_retries=retries,
            debug=_flag(env.get("CALLBOARD_DEBUG")),
        )
