"""Feature extraction from catalog payloads and SKILL.md documents."""

from __future__ import annotations

import logging
import re
from datetime import datetime, timezone
from typing import Any

import yaml

from skillsync.core.models import DEFAULT_VERSION, SkillRecord
from skillsync.core.origin import parse_origin

LOGGER = logging.getLogger(__name__)

DEFAULT_MAX_TAGS = 10
MAX_DESCRIPTION_CHARS = 200
TAG_FIELDS = ("tags", "categories", "topics", "keywords", "labels")
SOURCE_URL_FIELDS = ("githubUrl", "repository", "url")

KEYWORD_TAGS: dict[str, tuple[str, ...]] = {
    "react": ("frontend", "react"),
    "vue": ("frontend", "vue"),
    "angular": ("frontend", "angular"),
    "frontend": ("frontend",),
    "next.js": ("nextjs", "frontend", "react"),
    "nextjs": ("nextjs", "frontend", "react"),
    "backend": ("backend",),
    "node": ("backend", "nodejs"),
    "express": ("backend", "express"),
    "database": ("database",),
    "sql": ("database", "sql"),
    "test": ("testing",),
    "testing": ("testing",),
    "jest": ("testing", "jest"),
    "git": ("git", "version-control"),
    "github": ("git", "github"),
    "design": ("design",),
    "ui": ("design", "ui"),
    "ux": ("design", "ux"),
    "api": ("api",),
    "rest": ("api", "rest"),
    "graphql": ("api", "graphql"),
    "security": ("security",),
    "auth": ("security", "authentication"),
    "debug": ("debugging",),
    "performance": ("performance",),
    "optimize": ("performance",),
    "cache": ("caching", "performance"),
    "skill": ("skills", "cli"),
    "cli": ("cli",),
    "write": ("code-generation", "writing"),
    "author": ("code-generation", "writing"),
    "create": ("code-generation",),
    "generate": ("code-generation",),
    "scaffold": ("code-generation", "scaffolding"),
    "search": ("search", "discovery"),
    "lookup": ("search", "discovery"),
    "find": ("search", "discovery"),
    "install": ("discovery",),
    "documentation": ("documentation", "dx"),
    "docs": ("documentation", "dx"),
    "mdx": ("documentation", "mdx"),
    "brainstorm": ("planning", "design"),
    "idea": ("planning",),
    "plan": ("planning",),
    "file": ("filesystem", "io"),
    "fs": ("filesystem", "io"),
    "bun": ("bun", "runtime"),
    "component": ("components", "frontend"),
    "update": ("automation", "maintenance"),
    "sync": ("automation", "maintenance"),
}
KEYWORD_PATTERNS = {
    keyword: re.compile(rf"\b{re.escape(keyword)}\b", re.IGNORECASE) for keyword in KEYWORD_TAGS
}


def parse_front_matter(content: str) -> tuple[dict[str, Any], str]:
    """Split YAML front matter from a markdown document."""
    text = (content or "").replace("\r\n", "\n").replace("\r", "\n")
    if not text.startswith("---"):
        return {}, text
    end = text.find("\n---", 3)
    if end < 0:
        return {}, text
    block = text[3:end]
    body = text[end + 4 :].lstrip("\n")
    try:
        parsed = yaml.safe_load(block)
    except yaml.YAMLError as exc:
        LOGGER.warning("Failed to parse front matter: %s", exc)
        return {}, body
    if not isinstance(parsed, dict):
        return {}, body
    return parsed, body


def coerce_tags(raw: Any) -> list[str]:
    """Turn a string (comma/semicolon separated) or list into trimmed tags."""
    if not raw:
        return []
    if isinstance(raw, str):
        return [part.strip() for part in re.split(r"[,;]", raw) if part.strip()]
    if isinstance(raw, (list, tuple)):
        return [str(item).strip() for item in raw if str(item).strip()]
    return []


def normalize_tags(tags: list[str], owner: str = "", max_tags: int = DEFAULT_MAX_TAGS) -> list[str]:
    """Dedupe case-insensitively, put the owner first, cap the length."""
    seen: set[str] = set()
    result: list[str] = []
    owner = (owner or "").strip()
    if owner:
        seen.add(owner.lower())
        result.append(owner)
    for tag in tags:
        value = str(tag).strip()
        if not value or value.lower() in seen:
            continue
        seen.add(value.lower())
        result.append(value)
    return result[: max(max_tags, 0)]


def extract_description_from_content(content: str) -> str:
    """First non-heading, non-fence line of the body."""
    description = ""
    for line in content.splitlines():
        stripped = line.strip()
        if not stripped or stripped.startswith("#") or stripped.startswith("```"):
            continue
        description = stripped
        break
    if len(description) > MAX_DESCRIPTION_CHARS:
        return description[: MAX_DESCRIPTION_CHARS - 3] + "..."
    return description


def infer_tags_from_content(content: str) -> list[str]:
    tags: dict[str, None] = {}
    for keyword, pattern in KEYWORD_PATTERNS.items():
        if pattern.search(content):
            for tag in KEYWORD_TAGS[keyword]:
                tags.setdefault(tag, None)
    return list(tags)


def unix_to_iso(value: Any) -> str | None:
    if value in (None, ""):
        return None
    try:
        timestamp = float(value)
        return datetime.fromtimestamp(timestamp, tz=timezone.utc).replace(microsecond=0).isoformat()
    except (TypeError, ValueError, OverflowError, OSError):
        LOGGER.warning("Ignoring invalid updatedAt value %r", value)
        return None


class FeatureExtractor:
    """Builds SkillRecords from catalog data and enriches them from SKILL.md."""

    def __init__(self, max_tags: int = DEFAULT_MAX_TAGS) -> None:
        self.max_tags = max_tags

    def extract(self, content: str) -> dict[str, Any]:
        metadata, body = parse_front_matter(content)
        description = str(metadata.get("description") or "")
        tags = coerce_tags(metadata.get("tags"))
        if not description and body:
            description = extract_description_from_content(body)
        if not tags and body:
            tags = infer_tags_from_content(body)
        return {
            "name": str(metadata.get("name") or ""),
            "description": description,
            "tags": tags,
            "version": str(metadata.get("version") or DEFAULT_VERSION),
            "author": str(metadata.get("author") or ""),
        }

    def extract_from_api_data(self, api_data: dict[str, Any]) -> SkillRecord:
        raw_tags: Any = None
        for key in TAG_FIELDS:
            if api_data.get(key):
                raw_tags = api_data[key]
                break

        source_url = ""
        for key in SOURCE_URL_FIELDS:
            value = api_data.get(key)
            if isinstance(value, str) and value.strip():
                source_url = value.strip()
                break

        origin = parse_origin(source_url)
        name = str(api_data.get("name") or "")
        try:
            stars = max(int(api_data.get("stars") or 0), 0)
        except (TypeError, ValueError):
            stars = 0

        return SkillRecord(
            name=name,
            description=str(api_data.get("description") or api_data.get("summary") or ""),
            tags=normalize_tags(coerce_tags(raw_tags), origin.owner, self.max_tags),
            version=str(api_data.get("version") or DEFAULT_VERSION),
            author=str(api_data.get("author") or api_data.get("owner") or ""),
            owner=origin.owner,
            repo=origin.repo or name,
            source_url=source_url,
            stars=stars,
            updated_at=unix_to_iso(api_data.get("updatedAt")),
        )

    def enrich(self, record: SkillRecord, content: str) -> SkillRecord:
        """Fill description and tags from the document when the catalog had none."""
        features = self.extract(content)
        if not record.description:
            record.description = features["description"]
        owner = record.effective_owner
        catalog_tags = [tag for tag in record.tags if tag.lower() != owner.lower()]
        if not catalog_tags and features["tags"]:
            record.tags = normalize_tags(features["tags"], owner, self.max_tags)
        return record
