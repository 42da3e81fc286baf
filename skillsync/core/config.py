"""Environment-driven configuration for skill syncing."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

from skillsync.core.conflicts import RESOLUTIONS
from skillsync.fetchers.catalog_client import DEFAULT_BASE_URL

LOGGER = logging.getLogger(__name__)

DEFAULT_MAX_TAGS = 10
DEFAULT_TIMEOUT_SECONDS = 20.0
DEFAULT_SEARCH_LIMIT = 20
DEFAULT_STRATEGY = "skip"


class ConfigError(Exception):
    """Raised when required configuration is missing or invalid."""


@dataclass(frozen=True, slots=True)
class Config:
    root_dir: Path
    api_token: str = ""
    api_base_url: str = DEFAULT_BASE_URL
    github_token: str = ""
    max_tags: int = DEFAULT_MAX_TAGS
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS
    search_limit: int = DEFAULT_SEARCH_LIMIT
    default_strategy: str = DEFAULT_STRATEGY

    @property
    def skills_dir(self) -> Path:
        return self.root_dir / "skills-json"

    @property
    def skills_index(self) -> Path:
        return self.root_dir / "skills.json"

    @property
    def collection_dir(self) -> Path:
        return self.root_dir / "skills-collection"


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        LOGGER.warning("Ignoring invalid %s=%r, using %s", name, raw, default)
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        LOGGER.warning("Ignoring invalid %s=%r, using %s", name, raw, default)
        return default


def load_config(root_dir: Path | None = None) -> Config:
    """Load `.env` from the root directory, then read settings from the environment."""
    root = root_dir or Path(os.getenv("SKILLSYNC_ROOT", "") or Path.cwd())
    root = Path(root).resolve()
    load_dotenv(root / ".env")

    strategy = os.getenv("SKILLSYNC_CONFLICT_STRATEGY", "").strip() or DEFAULT_STRATEGY
    if strategy not in RESOLUTIONS:
        LOGGER.warning(
            "Ignoring invalid SKILLSYNC_CONFLICT_STRATEGY=%r, using %s",
            strategy,
            DEFAULT_STRATEGY,
        )
        strategy = DEFAULT_STRATEGY

    return Config(
        root_dir=root,
        api_token=os.getenv("SKILLSMP_API_TOKEN", "").strip(),
        api_base_url=os.getenv("SKILLSMP_BASE_URL", "").strip() or DEFAULT_BASE_URL,
        github_token=os.getenv("GITHUB_TOKEN", "").strip(),
        max_tags=_env_int("SKILLSYNC_MAX_TAGS", DEFAULT_MAX_TAGS),
        timeout_seconds=_env_float("SKILLSYNC_TIMEOUT", DEFAULT_TIMEOUT_SECONDS),
        search_limit=_env_int("SKILLSYNC_SEARCH_LIMIT", DEFAULT_SEARCH_LIMIT),
        default_strategy=strategy,
    )


def validate_config(config: Config) -> None:
    if not config.api_token:
        raise ConfigError(
            "SKILLSMP_API_TOKEN is not set. Copy .env.example to .env and fill in your API token."
        )
