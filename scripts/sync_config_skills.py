#!/usr/bin/env python3
"""
Sync the skills listed in a JSON config file.

Config format:
  {
    "description": "My skills",
    "skills": ["pr-creator", "code-reviewer", "docs-writer"],
    "options": {"useAiSearch": false, "autoMerge": true, "autoSelect": false, "strategy": "skip"}
  }

Usage:
  python scripts/sync_config_skills.py
  python scripts/sync_config_skills.py --file my-skills.json
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any

REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from skillsync.core.config import ConfigError, load_config, validate_config  # noqa: E402
from skillsync.core.orchestrator import run_sync  # noqa: E402

LOGGER = logging.getLogger(__name__)

DEFAULT_CONFIG_FILE = "config-skills.json"


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Sync skills listed in a config file.")
    parser.add_argument(
        "-f",
        "--file",
        default=DEFAULT_CONFIG_FILE,
        help=f"Config file, relative to the store root (default: {DEFAULT_CONFIG_FILE}).",
    )
    parser.add_argument("--root", default=None, help="Store root directory (default: cwd).")
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Logging level.",
    )
    return parser.parse_args()


def load_skill_list(path: Path) -> tuple[list[str], dict[str, Any], str]:
    """Read and validate the config file; raises ConfigError on any problem."""
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError as exc:
        raise ConfigError(f"Config file not found: {path}") from exc
    except (OSError, ValueError) as exc:
        raise ConfigError(f"Cannot read config file {path}: {exc}") from exc

    if not isinstance(payload, dict) or "skills" not in payload:
        raise ConfigError(f'Config file {path} has no "skills" field')
    skills = payload["skills"]
    if not isinstance(skills, list):
        raise ConfigError(f'"skills" in {path} must be a list')
    names = [name.strip() for name in skills if isinstance(name, str) and name.strip()]
    if not names:
        raise ConfigError(f"Config file {path} lists no valid skill names")

    options = payload.get("options")
    if not isinstance(options, dict):
        options = {}
    return names, options, str(payload.get("description") or "")


async def run() -> int:
    args = parse_args()
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    )

    config = load_config(Path(args.root) if args.root else None)
    try:
        validate_config(config)
        names, options, description = load_skill_list(config.root_dir / args.file)
    except ConfigError as exc:
        LOGGER.error("Configuration error: %s", exc)
        return 1

    if description:
        print(description)
    print(f"{len(names)} skill(s) configured: {', '.join(names)}")

    try:
        orchestrator = await run_sync(
            config,
            names=names,
            use_semantic_search=bool(options.get("useAiSearch", False)),
            non_interactive=options.get("autoSelect") is True,
            strategy=options.get("strategy") or None,
            merge=options.get("autoMerge") is not False,
        )
    except Exception as exc:  # noqa: BLE001
        LOGGER.error("Sync failed: %s", exc)
        return 1

    print(orchestrator.format_stats())
    print(json.dumps({"summary": orchestrator.stats.as_dict()}, ensure_ascii=False))
    return 0 if orchestrator.stats.failed == 0 else 1


if __name__ == "__main__":
    raise SystemExit(asyncio.run(run()))
