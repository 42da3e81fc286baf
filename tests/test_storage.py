from __future__ import annotations

import json
import logging
from pathlib import Path

import pytest

from skillsync.core.models import SkillRecord
from skillsync.core.storage import SkillStore, safe_output_path, sanitize_segment


def make_store(tmp_path: Path) -> SkillStore:
    return SkillStore(
        skills_dir=tmp_path / "skills-json",
        collection_dir=tmp_path / "skills-collection",
        index_path=tmp_path / "skills.json",
    )


def sample(name: str = "docs-writer", **kwargs) -> SkillRecord:
    defaults = {
        "description": "Writes docs",
        "tags": ["docs", "acme"],
        "owner": "acme",
        "repo": "kit",
        "source_url": "https://github.com/acme/kit/tree/main/skills/docs-writer",
        "stars": 12,
        "content": "# Docs writer\n",
        "files": {"references/guide.md": "guide", "../escape.md": "nope"},
    }
    defaults.update(kwargs)
    return SkillRecord(name=name, **defaults)


def test_sanitize_and_safe_output_path(tmp_path: Path) -> None:
    assert sanitize_segment("a b/c") == "a_b_c"
    assert safe_output_path(tmp_path, "../../etc/passwd") == tmp_path / "etc" / "passwd"
    assert safe_output_path(tmp_path, "scripts\\run.sh") == tmp_path / "scripts" / "run.sh"
    assert safe_output_path(tmp_path, "..") == tmp_path / "_root_"


def test_save_skill_writes_directory_and_json(tmp_path: Path) -> None:
    store = make_store(tmp_path)

    result = store.save_skill(sample(original_name="writer"), "new")

    assert result.action == "created"
    skill_dir = tmp_path / "skills-collection" / "docs-writer"
    assert (skill_dir / "SKILL.md").read_text(encoding="utf-8") == "# Docs writer\n"
    assert (skill_dir / "references" / "guide.md").read_text(encoding="utf-8") == "guide"
    assert (skill_dir / "escape.md").exists()
    assert not (tmp_path / "skills-collection" / "escape.md").exists()

    data = store.read_skill_json("docs-writer")
    assert data is not None
    assert data["owner"] == "acme"
    assert data["sourceUrl"].startswith("https://github.com/acme/kit")
    assert data["originalName"] == "writer"
    assert data["syncedAt"]

    assert store.save_skill(sample(), "version changed: 1.0.0 -> 1.1.0").action == "updated"


def test_check_needs_update_uses_persisted_json(tmp_path: Path) -> None:
    store = make_store(tmp_path)
    assert store.check_needs_update("docs-writer", sample()).reason == "new"

    store.save_skill(sample(), "new")
    assert store.check_needs_update("docs-writer", sample()).needs_update is False
    changed = store.check_needs_update("docs-writer", sample(description="Better docs"))
    assert changed.needs_update is True
    assert changed.reason.startswith("description changed")


def test_load_registry_skips_unreadable_documents(tmp_path: Path) -> None:
    store = make_store(tmp_path)
    store.save_skill(sample(), "new")
    store.save_skill(sample("linter", owner="other"), "new")
    (store.skills_dir / "broken.json").write_text("{not json", encoding="utf-8")
    (store.skills_dir / "nameless.json").write_text("{}", encoding="utf-8")

    registry = store.load_registry()

    assert len(registry) == 2
    assert "docs-writer" in registry
    assert "broken" not in registry
    assert registry.get("linter").owner == "other"  # type: ignore[union-attr]
    assert store.read_skill_json("broken") is None


def test_merge_index_sorts_and_reports_errors(tmp_path: Path) -> None:
    store = make_store(tmp_path)
    store.save_skill(sample("zeta"), "new")
    store.save_skill(sample("alpha"), "new")
    (store.skills_dir / "broken.json").write_text("[", encoding="utf-8")

    preview = store.merge_index(dry_run=True)
    assert not store.index_path.exists()
    assert [skill["name"] for skill in preview.data["skills"]] == ["alpha", "zeta"]
    assert preview.data["meta"]["total"] == 2
    assert [error["file"] for error in preview.errors] == ["broken.json"]

    store.merge_index()
    written = json.loads(store.index_path.read_text(encoding="utf-8"))
    assert written["meta"]["total"] == 2
    assert written["skills"][0]["name"] == "alpha"


def test_merge_index_on_empty_store(tmp_path: Path) -> None:
    result = make_store(tmp_path).merge_index(dry_run=True)
    assert result.data["skills"] == []
    assert result.errors == []


def test_save_skill_removes_files_dropped_upstream(tmp_path: Path) -> None:
    store = make_store(tmp_path)
    store.save_skill(sample(files={"scripts/old.sh": "old", "references/guide.md": "g"}), "new")

    store.save_skill(sample(files={"references/guide.md": "g2"}), "description changed")

    skill_dir = tmp_path / "skills-collection" / "docs-writer"
    assert not (skill_dir / "scripts").exists()
    assert (skill_dir / "references" / "guide.md").read_text(encoding="utf-8") == "g2"


def test_save_skill_logs_file_name_collision(
    tmp_path: Path, caplog: pytest.LogCaptureFixture
) -> None:
    store = make_store(tmp_path)
    store.save_skill(sample("a_b"), "new")

    with caplog.at_level(logging.WARNING, logger="skillsync.core.storage"):
        store.save_skill(sample("a b"), "new")

    assert "Skill a b overwrites a_b" in caplog.text
    assert store.read_skill_json("a_b")["name"] == "a b"  # type: ignore[index]
