"""Incremental update detection against previously persisted skill records."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from skillsync.core.models import SkillRecord

REASON_NEW = "new"
REASON_UNCHANGED = "unchanged"

# persisted key -> SkillRecord attribute
TRACKED_FIELDS: tuple[tuple[str, str], ...] = (
    ("description", "description"),
    ("version", "version"),
    ("author", "author"),
    ("sourceUrl", "source_url"),
)


@dataclass(frozen=True, slots=True)
class UpdateCheck:
    needs_update: bool
    reason: str


def _tags_key(tags: Any) -> str:
    if not isinstance(tags, list):
        return ""
    return ",".join(sorted(str(tag) for tag in tags))


def decide_update(previous: dict[str, Any] | None, incoming: SkillRecord) -> UpdateCheck:
    """Classify incoming data as new, changed (with reason) or unchanged."""
    if previous is None:
        return UpdateCheck(True, REASON_NEW)

    for key, attr in TRACKED_FIELDS:
        old_value = previous.get(key)
        new_value = getattr(incoming, attr)
        if old_value != new_value:
            return UpdateCheck(True, f"{key} changed: {old_value} -> {new_value}")

    if _tags_key(previous.get("tags")) != _tags_key(incoming.tags):
        return UpdateCheck(True, "tags changed")

    return UpdateCheck(False, REASON_UNCHANGED)
