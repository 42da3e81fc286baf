"""File-based skill store: per-skill JSON, skill directories and the merged index."""

from __future__ import annotations

import json
import logging
import re
import shutil
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from skillsync.core.conflicts import Registry
from skillsync.core.models import SkillRecord, now_iso
from skillsync.core.origin import PRIMARY_DOCUMENT
from skillsync.core.updates import REASON_NEW, UpdateCheck, decide_update

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class SaveResult:
    saved: bool
    action: str
    path: Path | None = None
    data: dict[str, Any] | None = None


@dataclass(slots=True)
class MergeResult:
    data: dict[str, Any]
    errors: list[dict[str, str]] = field(default_factory=list)


def sanitize_segment(value: str) -> str:
    """Create filesystem-safe path segment."""
    return re.sub(r"[^A-Za-z0-9._@:-]+", "_", value)


def safe_output_path(base_dir: Path, relative_path: str) -> Path:
    """Map a relative file path below base_dir; `..` segments cannot escape it."""
    parts = [
        sanitize_segment(part)
        for part in relative_path.replace("\\", "/").split("/")
        if part and part not in {".", ".."}
    ]
    if not parts:
        parts = ["_root_"]
    return base_dir.joinpath(*parts)


def _write_json(path: Path, payload: dict[str, Any]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(payload, indent=2, ensure_ascii=False) + "\n", encoding="utf-8")


class SkillStore:
    """Reads and writes skills under the configured directories."""

    def __init__(self, skills_dir: Path, collection_dir: Path, index_path: Path) -> None:
        self.skills_dir = skills_dir
        self.collection_dir = collection_dir
        self.index_path = index_path

    def skill_json_path(self, name: str) -> Path:
        return self.skills_dir / f"{sanitize_segment(name)}.json"

    def skill_dir(self, name: str) -> Path:
        return self.collection_dir / sanitize_segment(name)

    def read_skill_json(self, name: str) -> dict[str, Any] | None:
        path = self.skill_json_path(name)
        if not path.exists():
            return None
        try:
            payload = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            LOGGER.warning("Ignoring unreadable skill JSON %s: %s", path, exc)
            return None
        return payload if isinstance(payload, dict) else None

    def _iter_documents(self) -> list[tuple[Path, dict[str, Any] | None, str]]:
        documents: list[tuple[Path, dict[str, Any] | None, str]] = []
        if not self.skills_dir.exists():
            return documents
        for path in sorted(p for p in self.skills_dir.glob("*.json") if p.is_file()):
            try:
                payload = json.loads(path.read_text(encoding="utf-8"))
            except (OSError, ValueError) as exc:
                documents.append((path, None, str(exc)))
                continue
            if not isinstance(payload, dict) or not payload.get("name"):
                documents.append((path, None, "missing name field"))
                continue
            documents.append((path, payload, ""))
        return documents

    def load_registry(self) -> Registry:
        registry = Registry()
        for path, payload, error in self._iter_documents():
            if payload is None:
                LOGGER.warning("Skipping skill JSON %s: %s", path.name, error)
                continue
            registry.upsert(SkillRecord.from_json(payload))
        return registry

    def check_needs_update(self, name: str, incoming: SkillRecord) -> UpdateCheck:
        return decide_update(self.read_skill_json(name), incoming)

    def save_skill(self, record: SkillRecord, reason: str) -> SaveResult:
        """Write SKILL.md, auxiliary files and the per-skill JSON document."""
        previous = self.read_skill_json(record.name)
        if previous is not None and previous.get("name") != record.name:
            LOGGER.warning(
                "Skill %s overwrites %s: both names map to %s",
                record.name,
                previous.get("name"),
                self.skill_json_path(record.name).name,
            )

        # The directory mirrors the synced origin; files from an earlier write do not survive.
        skill_dir = self.skill_dir(record.name)
        if skill_dir.exists():
            shutil.rmtree(skill_dir)
        skill_dir.mkdir(parents=True, exist_ok=True)
        (skill_dir / PRIMARY_DOCUMENT).write_text(record.content or "", encoding="utf-8")

        for relative_path, content in record.files.items():
            out_path = safe_output_path(skill_dir, relative_path)
            out_path.parent.mkdir(parents=True, exist_ok=True)
            out_path.write_text(content, encoding="utf-8")

        data = record.to_json(synced_at=now_iso())
        _write_json(self.skill_json_path(record.name), data)

        action = "created" if reason == REASON_NEW else "updated"
        LOGGER.info("%s %s (%s)", action.capitalize(), record.name, reason)
        return SaveResult(saved=True, action=action, path=skill_dir, data=data)

    def merge_index(self, dry_run: bool = False) -> MergeResult:
        """Rebuild the merged index from every per-skill JSON document."""
        skills: list[dict[str, Any]] = []
        errors: list[dict[str, str]] = []
        for path, payload, error in self._iter_documents():
            if payload is None:
                LOGGER.warning("Failed to merge %s: %s", path.name, error)
                errors.append({"file": path.name, "error": error})
                continue
            skills.append(payload)

        skills.sort(key=lambda item: str(item["name"]))
        data = {
            "meta": {"generatedAt": now_iso(), "total": len(skills)},
            "skills": skills,
        }
        if not dry_run:
            _write_json(self.index_path, data)
        return MergeResult(data=data, errors=errors)
