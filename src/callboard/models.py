"""models.py — Board data types, event names, and input validation.

Validation lives here so every boundary (HTTP handlers, CLI, Board)
rejects bad input the same way, before the store is touched.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Iterator

from .errors import ValidationError

# -- Event names (wire protocol for display clients) -------------------------

EVENT_NUMBER = "update"
EVENT_PASSED = "updatePassed"
EVENT_FEATURED = "updateFeaturedContents"
EVENT_TIMESTAMP = "updateTimestamp"
EVENT_SOUND = "updateSoundSetting"
EVENT_PUBLIC = "updatePublicStatus"
EVENT_ADMIN_LOG = "newAdminLog"
EVENT_ADMIN_LOG_INIT = "initAdminLogs"
EVENT_INITIAL_STATE_ERROR = "initialStateError"

URL_SCHEMES = ("http://", "https://")


# -- Validation ---------------------------------------------------------------


def _as_int(value: Any, what: str) -> int:
    """Coerce a JSON-ish value to int, or raise ValidationError.

    Accepts ints, integral floats, and numeric strings. Rejects bools,
    which are ints in Python but never a number on the wire.
    """
    if isinstance(value, bool):
        raise ValidationError(f"{what} must be an integer")
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            pass
    raise ValidationError(f"{what} must be an integer")


def non_negative_int(value: Any, what: str = "number") -> int:
    n = _as_int(value, what)
    if n < 0:
        raise ValidationError(f"{what} must be a non-negative integer")
    return n


def positive_int(value: Any, what: str = "number") -> int:
    n = _as_int(value, what)
    if n <= 0:
        raise ValidationError(f"{what} must be a positive integer")
    return n


def any_int(value: Any, what: str = "number") -> int:
    return _as_int(value, what)


def require_bool(value: Any, what: str) -> bool:
    if not isinstance(value, bool):
        raise ValidationError(f"{what} must be true or false")
    return value


# -- Featured content ---------------------------------------------------------


@dataclass(frozen=True)
class FeaturedItem:
    """One featured link. Equality is the exact (text, url) pair."""

    link_text: str
    link_url: str = ""

    @classmethod
    def create(cls, link_text: Any, link_url: Any = "") -> FeaturedItem:
        """Validated constructor for input from the outside world."""
        if not isinstance(link_text, str) or not link_text.strip():
            raise ValidationError("linkText is required")
        if link_url is None:
            link_url = ""
        if not isinstance(link_url, str):
            raise ValidationError("linkUrl must be a string")
        link_url = link_url.strip()
        if link_url and not link_url.startswith(URL_SCHEMES):
            raise ValidationError("linkUrl must start with http:// or https://")
        return cls(link_text=link_text.strip(), link_url=link_url)

    def to_dict(self) -> dict[str, str]:
        return {"linkText": self.link_text, "linkUrl": self.link_url}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> FeaturedItem:
        if not isinstance(data, dict):
            raise ValueError(f"Featured item must be an object, got {type(data).__name__}")
        return cls(link_text=data.get("linkText", ""), link_url=data.get("linkUrl", ""))

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=False)

    @classmethod
    def from_json(cls, raw: str) -> FeaturedItem:
        return cls.from_dict(json.loads(raw))


# -- Snapshot -----------------------------------------------------------------


@dataclass
class Snapshot:
    """A consistent copy of the whole board, read in one transaction."""

    current_number: int = 0
    passed_numbers: list[int] = field(default_factory=list)
    featured_contents: list[FeaturedItem] = field(default_factory=list)
    last_updated: str = ""
    sound_enabled: bool = True
    is_public: bool = True

    def events(self) -> Iterator[tuple[str, Any]]:
        """The (event, data) pairs that bring a fresh client up to date."""
        yield EVENT_NUMBER, self.current_number
        yield EVENT_PASSED, list(self.passed_numbers)
        yield EVENT_FEATURED, [item.to_dict() for item in self.featured_contents]
        yield EVENT_TIMESTAMP, self.last_updated
        yield EVENT_SOUND, self.sound_enabled
        yield EVENT_PUBLIC, self.is_public

    def to_dict(self) -> dict[str, Any]:
        return {
            "currentNumber": self.current_number,
            "passedNumbers": list(self.passed_numbers),
            "featuredContents": [item.to_dict() for item in self.featured_contents],
            "lastUpdated": self.last_updated,
            "soundEnabled": self.sound_enabled,
            "isPublic": self.is_public,
        }
