"""Origin parsing for GitHub repository and skill source URLs."""

from __future__ import annotations

import re
from dataclasses import dataclass
from urllib.parse import urlparse

PRIMARY_DOCUMENT = "SKILL.md"
DEFAULT_BRANCH = "main"

GITHUB_OWNER_REPO_RE = re.compile(r"github\.com/([^/]+)/([^/.]+)")


@dataclass(frozen=True, slots=True)
class Origin:
    owner: str = ""
    repo: str = ""


@dataclass(frozen=True, slots=True)
class SourceLocation:
    owner: str
    repo: str
    branch: str
    subpath: str


def _path_parts(url: str) -> list[str] | None:
    try:
        parsed = urlparse(url)
    except ValueError:
        return None
    if not parsed.scheme or not parsed.netloc:
        return None
    return [part for part in parsed.path.split("/") if part]


def parse_origin(url: str | None) -> Origin:
    """Parse owner/repo from a repository URL; empty fields when it cannot be parsed."""
    if not url or not isinstance(url, str):
        return Origin()

    parts = _path_parts(url.strip())
    if parts is not None:
        if len(parts) >= 2:
            repo = parts[1]
            if repo.endswith(".git"):
                repo = repo[:-4]
            return Origin(owner=parts[0], repo=repo)
        return Origin()

    match = GITHUB_OWNER_REPO_RE.search(url)
    if match:
        return Origin(owner=match.group(1), repo=match.group(2))
    return Origin()


def parse_source_location(url: str | None) -> SourceLocation | None:
    """Parse a GitHub URL (repo, tree or blob form) into fetch coordinates."""
    if not url or not isinstance(url, str):
        return None
    parts = _path_parts(url.strip())
    if not parts or len(parts) < 2:
        return None

    owner = parts[0]
    repo = parts[1]
    if repo.endswith(".git"):
        repo = repo[:-4]
    branch = DEFAULT_BRANCH
    subpath = ""

    if len(parts) >= 4 and parts[2] in {"tree", "blob"}:
        branch = parts[3]
        subpath = "/".join(parts[4:])
        if subpath == PRIMARY_DOCUMENT:
            subpath = ""
        elif subpath.endswith(f"/{PRIMARY_DOCUMENT}"):
            subpath = subpath[: -len(PRIMARY_DOCUMENT) - 1]

    return SourceLocation(owner=owner, repo=repo, branch=branch, subpath=subpath.strip("/"))
