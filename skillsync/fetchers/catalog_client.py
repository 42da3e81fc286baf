"""Async client for the skillsmp.com skill catalog API."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

import httpx

LOGGER = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://skillsmp.com/api/v1"
MAX_PER_PAGE = 100
TOP_SKILLS_QUERY = "skill"
USER_AGENT = "skillsync/1.0 (+https://github.com/skillsync/skillsync)"


class CatalogError(Exception):
    """Raised when the catalog API returns an error or cannot be reached."""


def extract_skills(payload: Any) -> list[dict[str, Any]]:
    """Unwrap `data.skills` or `data` from a catalog response."""
    if not isinstance(payload, dict):
        return []
    data = payload.get("data")
    if isinstance(data, dict):
        data = data.get("skills")
    if not isinstance(data, list):
        return []
    return [item for item in data if isinstance(item, dict)]


def _error_message(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        payload = None
    if isinstance(payload, dict):
        error = payload.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
        if isinstance(error, str) and error:
            return error
    return response.reason_phrase or f"HTTP {response.status_code}"


class SkillsMPClient:
    """Thin wrapper over the catalog's keyword and semantic search endpoints."""

    def __init__(
        self,
        token: str,
        base_url: str = DEFAULT_BASE_URL,
        timeout_seconds: float = 20.0,
        attempts: int = 3,
        retry_delay: float = 0.75,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.token = token
        self.base_url = base_url.rstrip("/")
        self.timeout_seconds = timeout_seconds
        self.attempts = max(1, attempts)
        self.retry_delay = retry_delay
        self._client = client
        self._owns_client = False

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.token}",
            "Accept": "application/json",
            "User-Agent": USER_AGENT,
        }

    async def __aenter__(self) -> "SkillsMPClient":
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=httpx.Timeout(self.timeout_seconds))
            self._owns_client = True
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None
            self._owns_client = False

    async def _request(self, endpoint: str, params: dict[str, Any]) -> Any:
        if self._client is None:
            raise CatalogError("Catalog client used outside of 'async with'")
        url = f"{self.base_url}/{endpoint.lstrip('/')}"
        query = {key: str(value) for key, value in params.items() if value is not None}

        last_error: Exception | None = None
        for attempt in range(1, self.attempts + 1):
            try:
                response = await self._client.get(url, params=query, headers=self._headers())
            except httpx.TransportError as exc:
                last_error = exc
            else:
                if response.status_code == 429 or response.status_code >= 500:
                    last_error = CatalogError(
                        f"Catalog API HTTP {response.status_code}: {_error_message(response)}"
                    )
                elif response.status_code >= 400:
                    raise CatalogError(f"API Error: {_error_message(response)}")
                else:
                    try:
                        return response.json()
                    except ValueError as exc:
                        raise CatalogError(f"Invalid JSON from {endpoint}: {exc}") from exc
            if attempt == self.attempts:
                break
            delay = min(8.0, self.retry_delay * (2 ** (attempt - 1)))
            LOGGER.warning(
                "Catalog request %s failed (%s), retrying in %.1fs", url, last_error, delay
            )
            await asyncio.sleep(delay)
        raise CatalogError(f"Failed catalog request {endpoint}: {last_error}") from last_error

    async def search(
        self,
        query: str,
        page: int = 1,
        limit: int = 20,
        sort_by: str = "stars",
    ) -> list[dict[str, Any]]:
        payload = await self._request(
            "/skills/search",
            {"q": query, "page": page, "limit": limit, "sortBy": sort_by},
        )
        return extract_skills(payload)

    async def semantic_search(self, query: str) -> list[dict[str, Any]]:
        payload = await self._request("/skills/ai-search", {"q": query})
        return extract_skills(payload)

    async def get_top_skills(
        self, limit: int = 20, sort_by: str = "stars"
    ) -> list[dict[str, Any]]:
        skills: list[dict[str, Any]] = []
        page = 1
        while len(skills) < limit:
            page_limit = min(MAX_PER_PAGE, limit - len(skills))
            batch = await self.search(
                TOP_SKILLS_QUERY, page=page, limit=page_limit, sort_by=sort_by
            )
            if not batch:
                break
            skills.extend(batch)
            page += 1
            if len(batch) < page_limit:
                break
        return skills[:limit]
