"""Heuristic detection of SKILL.md links to auxiliary files that were not fetched."""

from __future__ import annotations

import re
from urllib.parse import unquote

MARKDOWN_LINK_RE = re.compile(r"\[[^\]]*]\(([^)\s]+)(?:\s+\"[^\"]*\")?\)")
AUXILIARY_FOLDERS = ("scripts", "references", "assets", "templates", "examples", "resources")
IGNORED_PREFIXES = ("http://", "https://", "mailto:", "#", "//")


def normalize_link(target: str) -> str | None:
    """Reduce a relative link target to a clean relative path, or None."""
    value = unquote(target.strip().strip("<>"))
    if not value or value.lower().startswith(IGNORED_PREFIXES):
        return None
    value = value.split("?", 1)[0].split("#", 1)[0]
    pieces = [piece for piece in value.split("/") if piece not in {"", "."}]
    if not pieces:
        return None
    return "/".join(pieces)


def is_auxiliary_reference(path: str) -> bool:
    first = path.split("/", 1)[0].lower()
    if first in AUXILIARY_FOLDERS and "/" in path:
        return True
    name = path.rsplit("/", 1)[-1].lower()
    return name.endswith(".md") and name != "skill.md"


def find_unfetched_references(content: str, files: dict[str, str]) -> list[str]:
    """Links into auxiliary folders or other .md files when no files came back."""
    if files:
        return []
    refs: dict[str, None] = {}
    for target in MARKDOWN_LINK_RE.findall(content or ""):
        path = normalize_link(target)
        if path and is_auxiliary_reference(path):
            refs.setdefault(path, None)
    return list(refs)
