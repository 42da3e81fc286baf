#!/usr/bin/env python3
"""
Sync skills from the skillsmp.com catalog and GitHub into the local store.

Usage:
  python scripts/sync_skills.py --names pr-creator docs-writer
  python scripts/sync_skills.py --limit 50 --sort stars
  python scripts/sync_skills.py --names react --force
  python scripts/sync_skills.py --limit 100 --non-interactive --strategy keep-both
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from skillsync.core.config import ConfigError, load_config, validate_config  # noqa: E402
from skillsync.core.conflicts import RESOLUTIONS  # noqa: E402
from skillsync.core.orchestrator import run_sync  # noqa: E402

LOGGER = logging.getLogger(__name__)


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Sync skills from the skillsmp.com catalog.")
    parser.add_argument(
        "--names",
        nargs="+",
        default=[],
        help="Sync these skill names (otherwise sync the top --limit skills).",
    )
    parser.add_argument("--limit", type=int, default=20, help="Number of top skills in batch mode.")
    parser.add_argument("--sort", dest="sort_by", default="stars", help="Catalog sort key.")
    parser.add_argument(
        "--use-ai-search",
        action="store_true",
        help="Use the catalog's semantic search when looking up names.",
    )
    parser.add_argument(
        "--force", action="store_true", help="Rewrite skills even when nothing changed."
    )
    parser.add_argument(
        "--non-interactive",
        action="store_true",
        help="Never prompt; apply --strategy to every conflict.",
    )
    parser.add_argument(
        "--strategy",
        choices=list(RESOLUTIONS),
        default=None,
        help="Conflict strategy in non-interactive mode (default: SKILLSYNC_CONFLICT_STRATEGY).",
    )
    parser.add_argument(
        "--no-merge",
        dest="merge",
        action="store_false",
        default=True,
        help="Do not rebuild skills.json after syncing.",
    )
    parser.add_argument("--root", default=None, help="Store root directory (default: cwd).")
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Logging level.",
    )
    return parser.parse_args()


async def run() -> int:
    args = parse_args()
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    )

    config = load_config(Path(args.root) if args.root else None)
    try:
        validate_config(config)
    except ConfigError as exc:
        LOGGER.error("Configuration error: %s", exc)
        return 1

    try:
        orchestrator = await run_sync(
            config,
            names=args.names,
            limit=args.limit,
            sort_by=args.sort_by,
            use_semantic_search=args.use_ai_search,
            force_update=args.force,
            non_interactive=args.non_interactive,
            strategy=args.strategy,
            merge=args.merge,
        )
    except Exception as exc:  # noqa: BLE001
        LOGGER.error("Sync failed: %s", exc)
        return 1

    print(orchestrator.format_stats())
    print(json.dumps({"summary": orchestrator.stats.as_dict()}, ensure_ascii=False))
    return 0 if orchestrator.stats.failed == 0 else 1


if __name__ == "__main__":
    raise SystemExit(asyncio.run(run()))
