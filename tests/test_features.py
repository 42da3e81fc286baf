from __future__ import annotations

from skillsync.analyzers.features import (
    FeatureExtractor,
    coerce_tags,
    extract_description_from_content,
    infer_tags_from_content,
    normalize_tags,
    parse_front_matter,
)
from skillsync.core.models import SkillRecord


SKILL_MD = """---
name: docs-writer
description: Writes project documentation
tags: [documentation, markdown]
version: 2.0.0
author: Acme
---

# Docs Writer

Generate docs for a repository.
"""


def test_normalize_tags_puts_owner_first_and_is_idempotent() -> None:
    once = normalize_tags(["x", "owner", "y"], owner="owner")
    assert once == ["owner", "x", "y"]
    assert normalize_tags(once, owner="owner") == once


def test_normalize_tags_dedupes_case_insensitively_and_caps() -> None:
    tags = normalize_tags(["React", "react", " ", "Acme", "ui", "api"], owner="acme", max_tags=3)
    assert tags == ["acme", "React", "ui"]


def test_normalize_tags_without_owner() -> None:
    assert normalize_tags(["a", "A", "b"], owner="") == ["a", "b"]


def test_coerce_tags_from_string_and_list() -> None:
    assert coerce_tags("a, b;c") == ["a", "b", "c"]
    assert coerce_tags([" a ", "", 3]) == ["a", "3"]
    assert coerce_tags(None) == []
    assert coerce_tags({"a": 1}) == []


def test_parse_front_matter_and_malformed_yaml() -> None:
    metadata, body = parse_front_matter(SKILL_MD)
    assert metadata["name"] == "docs-writer"
    assert body.startswith("# Docs Writer")

    metadata, body = parse_front_matter("---\nname: [unclosed\n---\nbody\n")
    assert metadata == {}
    assert body == "body\n"


def test_extract_uses_front_matter() -> None:
    features = FeatureExtractor().extract(SKILL_MD)
    assert features["name"] == "docs-writer"
    assert features["description"] == "Writes project documentation"
    assert features["tags"] == ["documentation", "markdown"]
    assert features["version"] == "2.0.0"
    assert features["author"] == "Acme"


def test_extract_falls_back_to_body() -> None:
    features = FeatureExtractor().extract("# Title\n\nRun the test suite with jest.\n")
    assert features["description"] == "Run the test suite with jest."
    assert "testing" in features["tags"]
    assert "jest" in features["tags"]
    assert features["version"] == "1.0.0"


def test_description_truncated() -> None:
    text = "x" * 250
    assert extract_description_from_content(text) == "x" * 197 + "..."


def test_infer_tags_uses_word_boundaries() -> None:
    assert "testing" not in infer_tags_from_content("contest results")
    assert "api" in infer_tags_from_content("Call the REST API")


def test_extract_from_api_data() -> None:
    record = FeatureExtractor().extract_from_api_data(
        {
            "name": "pr-creator",
            "summary": "Creates PRs",
            "categories": "git, GitHub",
            "githubUrl": "https://github.com/acme/tools/tree/main/pr-creator",
            "stars": "12",
            "updatedAt": 0,
        }
    )
    assert record.name == "pr-creator"
    assert record.description == "Creates PRs"
    assert record.tags == ["acme", "git", "GitHub"]
    assert record.owner == "acme"
    assert record.repo == "tools"
    assert record.stars == 12
    assert record.version == "1.0.0"
    assert record.updated_at == "1970-01-01T00:00:00+00:00"


def test_extract_from_api_data_tolerates_bad_values() -> None:
    record = FeatureExtractor().extract_from_api_data(
        {"name": "x", "stars": "many", "updatedAt": "soon", "repository": "garbage"}
    )
    assert record.stars == 0
    assert record.updated_at is None
    assert record.owner == ""
    assert record.repo == "x"
    assert record.tags == []


def test_enrich_fills_missing_fields_only() -> None:
    extractor = FeatureExtractor()
    record = SkillRecord(name="docs-writer", owner="acme", tags=["acme"])
    extractor.enrich(record, SKILL_MD)
    assert record.description == "Writes project documentation"
    assert record.tags == ["acme", "documentation", "markdown"]

    kept = SkillRecord(
        name="docs-writer", description="Catalog text", owner="acme", tags=["acme", "docs"]
    )
    extractor.enrich(kept, SKILL_MD)
    assert kept.description == "Catalog text"
    assert kept.tags == ["acme", "docs"]
