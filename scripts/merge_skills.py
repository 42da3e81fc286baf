#!/usr/bin/env python3
"""
Merge every per-skill JSON document into skills.json.

Usage:
  python scripts/merge_skills.py
  python scripts/merge_skills.py --verbose
  python scripts/merge_skills.py --dry-run
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from skillsync.core.config import load_config  # noqa: E402
from skillsync.core.storage import SkillStore  # noqa: E402

LOGGER = logging.getLogger(__name__)


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Rebuild skills.json from skills-json/.")
    parser.add_argument("-v", "--verbose", action="store_true", help="List merged skills.")
    parser.add_argument("-d", "--dry-run", action="store_true", help="Do not write skills.json.")
    parser.add_argument("--root", default=None, help="Store root directory (default: cwd).")
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Logging level.",
    )
    return parser.parse_args()


def main() -> int:
    args = parse_args()
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    )
    config = load_config(Path(args.root) if args.root else None)
    store = SkillStore(config.skills_dir, config.collection_dir, config.skills_index)

    try:
        result = store.merge_index(dry_run=args.dry_run)
    except OSError as exc:
        LOGGER.error("Merge failed: %s", exc)
        return 1

    if args.verbose:
        for skill in result.data["skills"]:
            print(f"  {skill['name']}")
    for error in result.errors:
        print(f"  failed: {error['file']}: {error['error']}")

    summary = {
        "total": result.data["meta"]["total"],
        "errors": len(result.errors),
        "dry_run": args.dry_run,
        "path": str(config.skills_index),
    }
    print(json.dumps({"summary": summary}, ensure_ascii=False))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
