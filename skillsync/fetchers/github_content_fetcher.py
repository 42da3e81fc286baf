"""GitHub content fetcher for SKILL.md documents and their auxiliary files."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any

import httpx

from skillsync.core.origin import PRIMARY_DOCUMENT, SourceLocation, parse_source_location

LOGGER = logging.getLogger(__name__)

GITHUB_API_BASE = "https://api.github.com"
GITHUB_RAW_BASE = "https://raw.githubusercontent.com"
DEFAULT_BRANCHES = ("main", "master")
RETRYABLE_STATUSES = {403, 429}
METADATA_ATTEMPTS = 3
FILE_ATTEMPTS = 2
USER_AGENT = "skillsync/1.0 (+https://github.com/skillsync/skillsync)"


class FetchError(Exception):
    """Raised for recoverable content fetch errors."""


class RateLimitError(FetchError):
    """Raised when retries are exhausted against a rate-limited host."""


@dataclass(slots=True)
class FetchedContent:
    skill_md: str
    files: dict[str, str] = field(default_factory=dict)
    branch: str = ""
    path: str = ""


def resolve_link_target(current_dir: str, target: str) -> str:
    """Resolve a symlink target against the directory holding the link."""
    value = (target or "").strip()
    if value.startswith("/"):
        segments: list[str] = []
        value = value.lstrip("/")
    else:
        segments = [part for part in (current_dir or "").split("/") if part]

    for piece in value.split("/"):
        if piece in {"", "."}:
            continue
        if piece == "..":
            if segments:
                segments.pop()
            continue
        segments.append(piece)
    return "/".join(segments)


def parse_retry_after(value: str | None) -> float | None:
    if not value:
        return None
    try:
        return max(float(value), 0.0)
    except ValueError:
        return None


class GitHubContentFetcher:
    """Fetches a skill directory from GitHub with retry/backoff on rate limits."""

    def __init__(
        self,
        github_token: str = "",
        timeout_seconds: float = 20.0,
        concurrency: int = 5,
        base_delay: float = 1.0,
        network_delay: float = 1.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.github_token = github_token.strip()
        self.timeout_seconds = timeout_seconds
        self.base_delay = base_delay
        self.network_delay = network_delay
        self._semaphore = asyncio.Semaphore(max(1, concurrency))
        self._client = client
        self._owns_client = False

    def _headers(self) -> dict[str, str]:
        headers = {"User-Agent": USER_AGENT}
        if self.github_token:
            headers["Authorization"] = f"Bearer {self.github_token}"
        return headers

    async def __aenter__(self) -> "GitHubContentFetcher":
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout_seconds),
                headers=self._headers(),
                follow_redirects=True,
            )
            self._owns_client = True
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None
            self._owns_client = False

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            raise FetchError("Fetcher used outside of 'async with'")
        return self._client

    async def _get_with_retry(
        self,
        url: str,
        attempts: int,
        headers: dict[str, str] | None = None,
    ) -> httpx.Response:
        """GET with backoff on 403/429 and network errors; other statuses are returned."""
        request_headers = {**self._headers(), **(headers or {})}
        last_error: Exception | None = None
        for attempt in range(attempts):
            try:
                async with self._semaphore:
                    response = await self.client.get(url, headers=request_headers)
            except httpx.TransportError as exc:
                last_error = exc
                delay = self.network_delay * (attempt + 1)
                LOGGER.warning(
                    "Network error for %s (attempt %d/%d): %s", url, attempt + 1, attempts, exc
                )
            else:
                if response.status_code not in RETRYABLE_STATUSES:
                    return response
                last_error = None
                hint = parse_retry_after(response.headers.get("Retry-After"))
                delay = hint if hint is not None else self.base_delay * (2**attempt)
                LOGGER.warning(
                    "Rate limited (%d) for %s (attempt %d/%d), retrying in %.1fs",
                    response.status_code,
                    url,
                    attempt + 1,
                    attempts,
                    delay,
                )
            if attempt + 1 < attempts:
                await asyncio.sleep(delay)

        message = (
            f"GitHub rate limit exceeded for {url}; "
            "set GITHUB_TOKEN to use authenticated requests"
        )
        if last_error is not None:
            raise RateLimitError(f"{message} (last error: {last_error})") from last_error
        raise RateLimitError(message)

    def _raw_url(self, location: SourceLocation, branch: str, path: str) -> str:
        return f"{GITHUB_RAW_BASE}/{location.owner}/{location.repo}/{branch}/{path}"

    def _contents_url(self, location: SourceLocation, branch: str, path: str) -> str:
        return (
            f"{GITHUB_API_BASE}/repos/{location.owner}/{location.repo}"
            f"/contents/{path}?ref={branch}"
        )

    @staticmethod
    def candidate_branches(location: SourceLocation) -> list[str]:
        branches = list(DEFAULT_BRANCHES)
        if location.branch and location.branch not in DEFAULT_BRANCHES:
            branches.insert(0, location.branch)
        return branches

    async def _fetch_primary(self, location: SourceLocation) -> tuple[str, str] | None:
        path = f"{location.subpath}/{PRIMARY_DOCUMENT}" if location.subpath else PRIMARY_DOCUMENT
        for branch in self.candidate_branches(location):
            url = self._raw_url(location, branch, path)
            try:
                response = await self._get_with_retry(url, METADATA_ATTEMPTS)
            except FetchError as exc:
                LOGGER.warning("Could not fetch %s: %s", url, exc)
                continue
            if response.status_code == 200:
                return branch, response.text
            LOGGER.debug("No %s at %s (HTTP %d)", PRIMARY_DOCUMENT, url, response.status_code)
        return None

    async def _list_directory(
        self, location: SourceLocation, branch: str, path: str
    ) -> list[dict[str, Any]]:
        url = self._contents_url(location, branch, path)
        response = await self._get_with_retry(
            url, METADATA_ATTEMPTS, headers={"Accept": "application/vnd.github.v3+json"}
        )
        if response.status_code != 200:
            raise FetchError(f"Listing {path} failed with HTTP {response.status_code}")
        try:
            payload = response.json()
        except ValueError as exc:
            raise FetchError(f"Invalid listing JSON for {path}: {exc}") from exc
        if not isinstance(payload, list):
            raise FetchError(f"Path is not a directory: {path}")
        return payload

    async def _fetch_text(self, url: str) -> str:
        response = await self._get_with_retry(url, FILE_ATTEMPTS)
        if response.status_code != 200:
            raise FetchError(f"HTTP {response.status_code} for {url}")
        return response.text

    async def _fetch_entry(
        self,
        location: SourceLocation,
        branch: str,
        directory: str,
        prefix: str,
        entry: dict[str, Any],
    ) -> dict[str, str]:
        entry_type = entry.get("type")
        name = str(entry.get("name") or "")
        if not name:
            return {}
        relative = f"{prefix}/{name}" if prefix else name
        entry_path = str(entry.get("path") or (f"{directory}/{name}" if directory else name))
        download_url = str(entry.get("download_url") or "") or self._raw_url(
            location, branch, entry_path
        )

        if entry_type == "file":
            if not prefix and name.lower() == PRIMARY_DOCUMENT.lower():
                return {}
            return {relative: await self._fetch_text(download_url)}

        if entry_type == "dir":
            return await self._walk(location, branch, entry_path, relative)

        if entry_type == "symlink":
            link_target = (await self._fetch_text(download_url)).strip()
            resolved = resolve_link_target(directory, link_target)
            if not resolved:
                return {}
            try:
                files = await self._walk(location, branch, resolved, relative)
            except FetchError:
                files = {}
            if files:
                return files
            return {relative: await self._fetch_text(self._raw_url(location, branch, resolved))}

        LOGGER.debug("Skipping %s entry %s", entry_type, entry_path)
        return {}

    async def _walk(
        self, location: SourceLocation, branch: str, directory: str, prefix: str
    ) -> dict[str, str]:
        """Fetch every file below a directory; failed siblings are dropped."""
        entries = await self._list_directory(location, branch, directory)
        results = await asyncio.gather(
            *(
                self._fetch_entry(location, branch, directory, prefix, entry)
                for entry in entries
                if isinstance(entry, dict)
            ),
            return_exceptions=True,
        )
        files: dict[str, str] = {}
        for result in results:
            if isinstance(result, BaseException):
                if not isinstance(result, Exception):
                    raise result
                LOGGER.warning("Skipping entry under %s/%s: %s", location.repo, directory, result)
                continue
            files.update(result)
        return files

    async def fetch(self, source_url: str) -> FetchedContent | None:
        """Fetch SKILL.md plus auxiliary files; None when SKILL.md cannot be found."""
        location = parse_source_location(source_url)
        if location is None:
            LOGGER.warning("Unsupported source URL: %s", source_url)
            return None

        primary = await self._fetch_primary(location)
        if primary is None:
            return None
        branch, skill_md = primary

        files: dict[str, str] = {}
        if location.subpath:
            try:
                files = await self._walk(location, branch, location.subpath, "")
            except FetchError as exc:
                LOGGER.warning(
                    "Could not list %s/%s/%s: %s",
                    location.owner,
                    location.repo,
                    location.subpath,
                    exc,
                )

        return FetchedContent(skill_md=skill_md, files=files, branch=branch, path=location.subpath)
