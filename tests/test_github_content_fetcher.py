from __future__ import annotations

import asyncio
from typing import Any, Callable

import httpx
import pytest

from skillsync.fetchers.github_content_fetcher import (
    FetchError,
    GitHubContentFetcher,
    RateLimitError,
    resolve_link_target,
)

RAW_HOST = "raw.githubusercontent.com"
API_HOST = "api.github.com"
RAW = f"https://{RAW_HOST}/acme/kit"


def file_entry(path: str) -> dict[str, Any]:
    return {
        "name": path.rsplit("/", 1)[-1],
        "path": path,
        "type": "file",
        "download_url": f"{RAW}/main/{path}",
    }


def dir_entry(path: str) -> dict[str, Any]:
    return {"name": path.rsplit("/", 1)[-1], "path": path, "type": "dir", "download_url": None}


def link_entry(path: str) -> dict[str, Any]:
    return {
        "name": path.rsplit("/", 1)[-1],
        "path": path,
        "type": "symlink",
        "download_url": f"{RAW}/main/{path}",
    }


def make_handler(
    raw: dict[str, Any],
    listings: dict[str, Any] | None = None,
    calls: list[str] | None = None,
) -> Callable[[httpx.Request], httpx.Response]:
    """raw: "branch/path" -> text or status; listings: path -> contents API payload."""
    listings = listings or {}

    def handler(request: httpx.Request) -> httpx.Response:
        if calls is not None:
            calls.append(str(request.url))
        if request.url.host == RAW_HOST:
            key = request.url.path.split("/", 3)[-1]
            value = raw.get(key, 404)
            if isinstance(value, int):
                return httpx.Response(value)
            return httpx.Response(200, text=value)
        if request.url.host == API_HOST:
            path = request.url.path.split("/contents/", 1)[-1]
            if path in listings:
                return httpx.Response(200, json=listings[path])
            return httpx.Response(404, json={"message": "Not Found"})
        return httpx.Response(500)

    return handler


def run_fetch(handler: Callable[[httpx.Request], httpx.Response], url: str, **kwargs: Any):
    async def run():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            fetcher = GitHubContentFetcher(client=client, base_delay=0, network_delay=0, **kwargs)
            async with fetcher:
                return await fetcher.fetch(url)

    return asyncio.run(run())


@pytest.mark.parametrize(
    ("current", "target", "expected"),
    [
        ("skills/docs", "../shared", "skills/shared"),
        ("skills/docs", "/config.yaml", "config.yaml"),
        ("skills/docs", "./refs/", "skills/docs/refs"),
        ("a", "../../../x", "x"),
        ("", "", ""),
    ],
)
def test_resolve_link_target(current: str, target: str, expected: str) -> None:
    assert resolve_link_target(current, target) == expected


def test_fetch_falls_back_to_master_branch() -> None:
    calls: list[str] = []
    handler = make_handler({"master/SKILL.md": "# Root skill"}, calls=calls)

    result = run_fetch(handler, "https://github.com/acme/kit")

    assert result is not None
    assert result.branch == "master"
    assert result.skill_md == "# Root skill"
    # Root-level skills never walk the repository root.
    assert result.files == {}
    assert not any(API_HOST in url for url in calls)


def test_fetch_returns_none_when_primary_document_missing() -> None:
    handler = make_handler({})
    assert run_fetch(handler, "https://github.com/acme/kit/tree/main/skills/docs") is None


def test_fetch_rejects_unsupported_url() -> None:
    handler = make_handler({})
    assert run_fetch(handler, "not a url") is None


def test_fetch_walks_directories_and_symlinks() -> None:
    raw = {
        "main/skills/docs/SKILL.md": "# Docs",
        "main/skills/docs/README.md": "readme",
        "main/skills/docs/references/guide.md": "guide",
        "main/skills/docs/shared-link": "../shared",
        "main/skills/shared/tip.md": "tip",
        "main/skills/docs/config.yaml": "../../config.yaml",
        "main/config.yaml": "key: value",
    }
    listings = {
        "skills/docs": [
            file_entry("skills/docs/SKILL.md"),
            file_entry("skills/docs/README.md"),
            dir_entry("skills/docs/references"),
            link_entry("skills/docs/shared-link"),
            link_entry("skills/docs/config.yaml"),
        ],
        "skills/docs/references": [file_entry("skills/docs/references/guide.md")],
        "skills/shared": [file_entry("skills/shared/tip.md")],
        # Contents API answers with an object, not a list, for a file path.
        "config.yaml": file_entry("config.yaml"),
    }

    result = run_fetch(
        make_handler(raw, listings), "https://github.com/acme/kit/tree/main/skills/docs"
    )

    assert result is not None
    assert result.path == "skills/docs"
    assert result.files == {
        "README.md": "readme",
        "references/guide.md": "guide",
        "shared-link/tip.md": "tip",
        "config.yaml": "key: value",
    }


def test_failed_files_are_dropped_from_partial_result() -> None:
    raw: dict[str, Any] = {"main/skills/docs/SKILL.md": "# Docs"}
    entries = [file_entry("skills/docs/SKILL.md")]
    for index in range(5):
        path = f"skills/docs/f{index}.md"
        entries.append(file_entry(path))
        raw[f"main/{path}"] = 429 if index in {1, 3} else f"file {index}"
    calls: list[str] = []

    result = run_fetch(
        make_handler(raw, {"skills/docs": entries}, calls),
        "https://github.com/acme/kit/tree/main/skills/docs",
    )

    assert result is not None
    assert sorted(result.files) == ["f0.md", "f2.md", "f4.md"]
    assert sum(url.endswith("/f1.md") for url in calls) == 2


def test_listing_failure_keeps_primary_document() -> None:
    handler = make_handler({"main/skills/docs/SKILL.md": "# Docs"})
    result = run_fetch(handler, "https://github.com/acme/kit/tree/main/skills/docs")
    assert result is not None
    assert result.skill_md == "# Docs"
    assert result.files == {}


def test_token_is_sent_as_bearer_header() -> None:
    seen: list[str | None] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request.headers.get("Authorization"))
        return httpx.Response(200, text="# Root")

    run_fetch(handler, "https://github.com/acme/kit", github_token="secret")
    assert seen == ["Bearer secret"]


def _retry(
    responses: list[Any],
    monkeypatch: pytest.MonkeyPatch,
    attempts: int = 3,
    **kwargs: Any,
) -> tuple[list[float], Any]:
    delays: list[float] = []

    async def fake_sleep(delay: float) -> None:
        delays.append(delay)

    monkeypatch.setattr(asyncio, "sleep", fake_sleep)
    queue = list(responses)

    def handler(request: httpx.Request) -> httpx.Response:
        item = queue.pop(0)
        if isinstance(item, Exception):
            raise item
        return item

    async def run():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            fetcher = GitHubContentFetcher(client=client, **kwargs)
            return await fetcher._get_with_retry(f"{RAW}/main/SKILL.md", attempts)

    try:
        return delays, asyncio.run(run())
    except FetchError as exc:
        return delays, exc


def test_retry_after_header_is_honoured(monkeypatch: pytest.MonkeyPatch) -> None:
    delays, response = _retry(
        [httpx.Response(429, headers={"Retry-After": "7"}), httpx.Response(200, text="ok")],
        monkeypatch,
    )
    assert delays == [7.0]
    assert response.text == "ok"


def test_exponential_backoff_without_hint(monkeypatch: pytest.MonkeyPatch) -> None:
    delays, response = _retry(
        [httpx.Response(403), httpx.Response(403), httpx.Response(200, text="ok")],
        monkeypatch,
        base_delay=1.0,
    )
    assert delays == [1.0, 2.0]
    assert response.status_code == 200


def test_other_statuses_are_not_retried(monkeypatch: pytest.MonkeyPatch) -> None:
    delays, response = _retry([httpx.Response(404)], monkeypatch)
    assert delays == []
    assert response.status_code == 404


def test_exhausted_rate_limit_raises_with_token_hint(monkeypatch: pytest.MonkeyPatch) -> None:
    delays, error = _retry(
        [httpx.Response(429) for _ in range(3)], monkeypatch, base_delay=1.0
    )
    assert delays == [1.0, 2.0]
    assert isinstance(error, RateLimitError)
    assert "GITHUB_TOKEN" in str(error)


def test_network_errors_back_off_linearly(monkeypatch: pytest.MonkeyPatch) -> None:
    delays, error = _retry(
        [httpx.ConnectError("boom")] * 3,
        monkeypatch,
        network_delay=0.5,
    )
    assert delays == [0.5, 1.0]
    assert isinstance(error, RateLimitError)
    assert "boom" in str(error)


def test_non_json_listing_keeps_primary_document() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.host == RAW_HOST:
            return httpx.Response(200, text="# Docs")
        return httpx.Response(200, text="<html>not json</html>")

    result = run_fetch(handler, "https://github.com/acme/kit/tree/main/skills/docs")

    assert result is not None
    assert result.skill_md == "# Docs"
    assert result.files == {}


def test_non_json_subdirectory_listing_is_dropped() -> None:
    raw = {
        "main/skills/docs/SKILL.md": "# Docs",
        "main/skills/docs/README.md": "readme",
    }
    listings = {
        "skills/docs": [file_entry("skills/docs/README.md"), dir_entry("skills/docs/broken")],
    }
    json_handler = make_handler(raw, listings)

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("/contents/skills/docs/broken"):
            return httpx.Response(200, text="<html>oops</html>")
        return json_handler(request)

    result = run_fetch(handler, "https://github.com/acme/kit/tree/main/skills/docs")

    assert result is not None
    assert result.files == {"README.md": "readme"}
