"""Sync orchestration: catalog lookup, content fetch, update checks and conflicts."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import Any, Protocol

from skillsync.analyzers.features import FeatureExtractor
from skillsync.analyzers.references import find_unfetched_references
from skillsync.core.config import Config
from skillsync.core.conflicts import ConflictResolver, Registry, renamed_name
from skillsync.core.decisions import (
    DecisionProvider,
    InteractiveDecisionProvider,
    StaticDecisionProvider,
)
from skillsync.core.models import SkillRecord
from skillsync.core.storage import SkillStore
from skillsync.fetchers.catalog_client import SkillsMPClient
from skillsync.fetchers.github_content_fetcher import FetchedContent, GitHubContentFetcher

LOGGER = logging.getLogger(__name__)


class CatalogSource(Protocol):
    async def search(
        self, query: str, page: int = 1, limit: int = 20, sort_by: str = "stars"
    ) -> list[dict[str, Any]]: ...

    async def semantic_search(self, query: str) -> list[dict[str, Any]]: ...

    async def get_top_skills(
        self, limit: int = 20, sort_by: str = "stars"
    ) -> list[dict[str, Any]]: ...


class ContentSource(Protocol):
    async def fetch(self, source_url: str) -> FetchedContent | None: ...


@dataclass(slots=True)
class SyncStats:
    synced: int = 0
    created: int = 0
    updated: int = 0
    skipped: int = 0
    failed: int = 0
    conflicts: int = 0
    errors: list[dict[str, str]] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    def as_dict(self) -> dict[str, Any]:
        return {
            "synced": self.synced,
            "created": self.created,
            "updated": self.updated,
            "skipped": self.skipped,
            "failed": self.failed,
            "conflicts": self.conflicts,
            "errors": list(self.errors),
            "warnings": list(self.warnings),
        }


def _candidate_source(candidate: dict[str, Any]) -> str:
    for key in ("githubUrl", "repository", "url"):
        value = candidate.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return ""


def _stars(candidate: dict[str, Any]) -> int:
    try:
        return int(candidate.get("stars") or 0)
    except (TypeError, ValueError):
        return 0


class SyncOrchestrator:
    """Drives one sync run; per-item failures never abort the batch."""

    def __init__(
        self,
        catalog: CatalogSource,
        fetcher: ContentSource,
        store: SkillStore,
        decisions: DecisionProvider,
        extractor: FeatureExtractor | None = None,
        search_limit: int = 20,
        force_update: bool = False,
        registry: Registry | None = None,
    ) -> None:
        self.catalog = catalog
        self.fetcher = fetcher
        self.store = store
        self.decisions = decisions
        self.extractor = extractor or FeatureExtractor()
        self.search_limit = search_limit
        self.force_update = force_update
        self.registry = registry if registry is not None else store.load_registry()
        self.resolver = ConflictResolver(decisions)
        self.stats = SyncStats()
        self._results: dict[str, dict[str, Any]] = {}

    def _warn(self, name: str, message: str) -> None:
        LOGGER.warning("%s: %s", name, message)
        self.stats.warnings.append(f"{name}: {message}")

    def _fail(self, name: str, exc: Exception) -> None:
        LOGGER.error("Failed %s: %s", name, exc)
        self.stats.failed += 1
        self.stats.errors.append({"name": name, "error": str(exc)})

    async def _find_candidates(self, name: str, use_semantic_search: bool) -> list[dict[str, Any]]:
        if use_semantic_search:
            results = await self.catalog.semantic_search(name)
        else:
            results = await self.catalog.search(name, limit=self.search_limit)
        matches = [item for item in results if item.get("name") == name]
        return sorted(matches, key=_stars, reverse=True)

    def _select_candidate(
        self, name: str, candidates: list[dict[str, Any]]
    ) -> dict[str, Any] | None:
        sources = {_candidate_source(candidate) for candidate in candidates}
        if len(sources) <= 1:
            return candidates[0] if candidates else None
        return self.decisions.choose_candidate(name, candidates)

    async def _build_record(self, api_data: dict[str, Any]) -> SkillRecord:
        record = self.extractor.extract_from_api_data(api_data)
        if not record.source_url:
            return record

        content = await self.fetcher.fetch(record.source_url)
        if content is None:
            self._warn(record.name, f"SKILL.md not found at {record.source_url}")
            return record

        record.content = content.skill_md
        record.files = dict(content.files)
        self.extractor.enrich(record, content.skill_md)

        missing = find_unfetched_references(content.skill_md, content.files)
        if missing:
            self._warn(
                record.name,
                f"SKILL.md references {len(missing)} auxiliary file(s) that were not fetched "
                f"({', '.join(missing[:5])}); the sync may be partial",
            )
        return record

    def _persist(self, record: SkillRecord, reason: str) -> None:
        result = self.store.save_skill(record, reason)
        self.registry.upsert(record)
        self.stats.synced += 1
        if result.action == "created":
            self.stats.created += 1
        else:
            self.stats.updated += 1
        if result.data is not None:
            self._results[record.name] = result.data

    def _keep_existing(self, name: str) -> None:
        self.stats.skipped += 1
        existing = self.store.read_skill_json(name)
        if existing is not None:
            self._results[name] = existing

    def _kept_copy(self, record: SkillRecord) -> SkillRecord | None:
        """The record renamed onto its keep-both slot, when this owner already holds it."""
        slot = renamed_name(record)
        occupant = self.registry.get(slot)
        if occupant is None or occupant.effective_owner != record.effective_owner:
            return None
        LOGGER.info("%s from %s is tracked as %s", record.name, record.effective_owner, slot)
        return replace(record, name=slot, original_name=record.name)

    async def _process(self, api_data: dict[str, Any]) -> None:
        record = await self._build_record(api_data)
        if not record.name:
            self._warn("<unnamed>", "catalog entry has no name, skipping")
            self.stats.skipped += 1
            return

        existing = self.registry.get(record.name)
        if self.resolver.is_conflict(existing, record):
            assert existing is not None
            kept = self._kept_copy(record)
            if kept is None:
                LOGGER.info(
                    "Queued conflict for %s (%s vs %s)",
                    record.name,
                    existing.effective_owner or "unknown",
                    record.effective_owner or "unknown",
                )
                self.resolver.add_conflict(existing, record)
                self.stats.conflicts += 1
                return
            record = kept

        check = self.store.check_needs_update(record.name, record)
        if not check.needs_update and not self.force_update:
            LOGGER.info("Skipped %s (%s)", record.name, check.reason)
            self._keep_existing(record.name)
            return

        reason = check.reason if check.needs_update else "forced"
        self._persist(record, reason)

    async def sync_by_names(
        self, names: list[str], use_semantic_search: bool = False
    ) -> list[dict[str, Any]]:
        LOGGER.info("Syncing %d named skill(s)", len(names))
        for name in names:
            try:
                candidates = await self._find_candidates(name, use_semantic_search)
                candidate = self._select_candidate(name, candidates)
                if candidate is None:
                    self._warn(name, "not found in catalog")
                    self.stats.skipped += 1
                    continue
                await self._process(candidate)
            except Exception as exc:  # noqa: BLE001
                self._fail(name, exc)
        self.resolve_conflicts()
        return list(self._results.values())

    async def sync_batch(self, limit: int, sort_by: str = "stars") -> list[dict[str, Any]]:
        LOGGER.info("Syncing top %d skill(s) by %s", limit, sort_by)
        skills = await self.catalog.get_top_skills(limit, sort_by)
        LOGGER.info("Catalog returned %d skill(s)", len(skills))
        for api_data in skills:
            name = str(api_data.get("name") or "<unnamed>")
            try:
                await self._process(api_data)
            except Exception as exc:  # noqa: BLE001
                self._fail(name, exc)
        self.resolve_conflicts()
        return list(self._results.values())

    def resolve_conflicts(self) -> None:
        """Resolve queued conflicts in order and persist whatever they put in the registry."""
        if not self.resolver.queue:
            return
        for entry in self.resolver.resolve_all(self.registry):
            name = entry.context.incoming.name
            if entry.result.warning:
                self.stats.warnings.append(entry.result.warning)
            if entry.record is None:
                self._keep_existing(name)
                continue
            try:
                check = self.store.check_needs_update(entry.record.name, entry.record)
                if not check.needs_update and not self.force_update:
                    LOGGER.info("Skipped %s (%s)", entry.record.name, check.reason)
                    self._keep_existing(entry.record.name)
                    continue
                self._persist(entry.record, check.reason if check.needs_update else "forced")
            except Exception as exc:  # noqa: BLE001
                self._fail(entry.record.name, exc)

    def format_stats(self) -> str:
        stats = self.stats
        lines = [
            "Sync summary:",
            f"  synced:    {stats.synced} (created: {stats.created}, updated: {stats.updated})",
            f"  skipped:   {stats.skipped}",
            f"  conflicts: {stats.conflicts}",
            f"  failed:    {stats.failed}",
        ]
        if self.resolver.resolved:
            lines.append("")
            lines.append(self.resolver.format_summary())
        if stats.warnings:
            lines.append("")
            lines.append("Warnings:")
            lines.extend(f"  - {warning}" for warning in stats.warnings)
        if stats.errors:
            lines.append("")
            lines.append("Errors:")
            lines.extend(f"  - {item['name']}: {item['error']}" for item in stats.errors)
        return "\n".join(lines)


def build_decisions(non_interactive: bool, strategy: str) -> DecisionProvider:
    if non_interactive:
        return StaticDecisionProvider(strategy)
    return InteractiveDecisionProvider()


async def run_sync(
    config: Config,
    names: list[str] | None = None,
    limit: int = 20,
    sort_by: str = "stars",
    use_semantic_search: bool = False,
    force_update: bool = False,
    non_interactive: bool = False,
    strategy: str | None = None,
    merge: bool = True,
) -> SyncOrchestrator:
    """Run one sync against the live catalog and GitHub, then rebuild the index."""
    store = SkillStore(config.skills_dir, config.collection_dir, config.skills_index)
    decisions = build_decisions(non_interactive, strategy or config.default_strategy)

    async with SkillsMPClient(
        token=config.api_token,
        base_url=config.api_base_url,
        timeout_seconds=config.timeout_seconds,
    ) as catalog, GitHubContentFetcher(
        github_token=config.github_token,
        timeout_seconds=config.timeout_seconds,
    ) as fetcher:
        orchestrator = SyncOrchestrator(
            catalog=catalog,
            fetcher=fetcher,
            store=store,
            decisions=decisions,
            extractor=FeatureExtractor(max_tags=config.max_tags),
            search_limit=config.search_limit,
            force_update=force_update,
        )
        if names:
            results = await orchestrator.sync_by_names(names, use_semantic_search)
        else:
            results = await orchestrator.sync_batch(limit, sort_by)

    if merge and results:
        merged = store.merge_index()
        LOGGER.info(
            "Rebuilt %s with %d skill(s)", config.skills_index, merged.data["meta"]["total"]
        )
    return orchestrator
