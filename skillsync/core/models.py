"""Skill record model and its persisted JSON form."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from skillsync.core.origin import parse_origin

DEFAULT_VERSION = "1.0.0"


def now_iso() -> str:
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat()


@dataclass(slots=True)
class SkillRecord:
    name: str
    description: str = ""
    tags: list[str] = field(default_factory=list)
    version: str = DEFAULT_VERSION
    author: str = ""
    owner: str = ""
    repo: str = ""
    source_url: str = ""
    stars: int = 0
    updated_at: str | None = None
    content: str = ""
    files: dict[str, str] = field(default_factory=dict)
    original_name: str | None = None

    @property
    def effective_owner(self) -> str:
        """Owner of the record, derived from the source URL when not set."""
        return self.owner or parse_origin(self.source_url).owner

    @property
    def effective_repo(self) -> str:
        return self.repo or parse_origin(self.source_url).repo

    def to_json(self, synced_at: str | None = None) -> dict[str, Any]:
        """Persisted subset of the record (content and files live next to SKILL.md)."""
        data: dict[str, Any] = {
            "name": self.name,
            "path": self.name,
            "description": self.description,
            "tags": list(self.tags),
            "version": self.version,
            "author": self.author,
            "owner": self.effective_owner,
            "repo": self.effective_repo,
            "sourceUrl": self.source_url,
            "stars": self.stars,
            "updatedAt": self.updated_at,
            "syncedAt": synced_at or now_iso(),
        }
        if self.original_name:
            data["originalName"] = self.original_name
        return data

    @classmethod
    def from_json(cls, data: dict[str, Any]) -> "SkillRecord":
        source_url = str(data.get("sourceUrl") or "")
        origin = parse_origin(source_url)
        raw_tags = data.get("tags")
        tags = [str(tag) for tag in raw_tags] if isinstance(raw_tags, list) else []
        try:
            stars = max(int(data.get("stars") or 0), 0)
        except (TypeError, ValueError):
            stars = 0
        return cls(
            name=str(data.get("name") or ""),
            description=str(data.get("description") or ""),
            tags=tags,
            version=str(data.get("version") or DEFAULT_VERSION),
            author=str(data.get("author") or ""),
            owner=str(data.get("owner") or origin.owner),
            repo=str(data.get("repo") or origin.repo),
            source_url=source_url,
            stars=stars,
            updated_at=data.get("updatedAt") or None,
            original_name=data.get("originalName") or None,
        )
