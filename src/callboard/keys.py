"""keys.py — The Redis key layout.

Every key the board touches is built here. Nothing else in the package
should hardcode a key string.
"""

from __future__ import annotations

from dataclasses import dataclass

DEFAULT_PREFIX = "callsys"

# Passed numbers kept after every add (highest N by score)
MAX_PASSED_NUMBERS = 20

# Admin log entries kept, newest first
MAX_ADMIN_LOG = 50


@dataclass(frozen=True)
class Keys:
    """Key names for one board, namespaced by prefix.

    Two boards sharing a Redis instance only need different prefixes.
    """

    prefix: str = DEFAULT_PREFIX

    def _k(self, name: str) -> str:
        return f"{self.prefix}:{name}"

    @property
    def current_number(self) -> str:
        return self._k("number")

    @property
    def passed_numbers(self) -> str:
        # Sorted set, member = score = the number
        return self._k("passed")

    @property
    def featured_contents(self) -> str:
        # List of JSON-encoded {linkText, linkUrl}
        return self._k("featured")

    @property
    def last_updated(self) -> str:
        return self._k("updated")

    @property
    def sound_enabled(self) -> str:
        return self._k("soundEnabled")

    @property
    def is_public(self) -> str:
        return self._k("isPublic")

    @property
    def admin_log(self) -> str:
        return self._k("admin-log")

    @property
    def events_channel(self) -> str:
        # Pub/sub channel shared by every server instance
        return self._k("events")
