"""Same-name conflict detection and resolution for incoming skills."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, Iterable, Literal

from skillsync.core.models import SkillRecord

if TYPE_CHECKING:
    from skillsync.core.decisions import DecisionProvider

LOGGER = logging.getLogger(__name__)

Resolution = Literal["skip", "replace", "keep-both"]
Action = Literal["skip", "replace", "rename"]

RESOLUTIONS: tuple[Resolution, ...] = ("skip", "replace", "keep-both")


class Registry:
    """Ordered working set of known skills, keyed by name.

    Access is strictly sequential: the resolution loop mutates it one conflict at a
    time. Add a lock before resolving conflicts concurrently.
    """

    def __init__(self, records: Iterable[SkillRecord] = ()) -> None:
        self._records: list[SkillRecord] = []
        self._index: dict[str, int] = {}
        for record in records:
            self.upsert(record)

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, name: object) -> bool:
        return name in self._index

    def get(self, name: str) -> SkillRecord | None:
        position = self._index.get(name)
        if position is None:
            return None
        return self._records[position]

    def add(self, record: SkillRecord) -> None:
        if record.name in self._index:
            raise ValueError(f"Skill name already registered: {record.name}")
        self._index[record.name] = len(self._records)
        self._records.append(record)

    def upsert(self, record: SkillRecord) -> None:
        position = self._index.get(record.name)
        if position is None:
            self.add(record)
            return
        self._records[position] = record


@dataclass(slots=True)
class ConflictContext:
    existing: SkillRecord
    incoming: SkillRecord
    resolution: Resolution | None = None

    def renamed_name(self) -> str:
        return renamed_name(self.incoming)


@dataclass(frozen=True, slots=True)
class ResolutionResult:
    action: Action
    target: str | None = None
    new_name: str | None = None
    original_name: str | None = None
    warning: str | None = None


@dataclass(slots=True)
class ResolvedConflict:
    context: ConflictContext
    result: ResolutionResult
    record: SkillRecord | None = None


@dataclass(slots=True)
class ConflictSummary:
    skipped: int = 0
    replaced: int = 0
    renamed: int = 0
    renames: list[tuple[str, str]] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


def renamed_name(record: SkillRecord) -> str:
    """Keep-both name for a record: `<owner>-<name>`."""
    return f"{record.effective_owner}-{record.name}"


def is_conflict(existing: SkillRecord | None, incoming: SkillRecord) -> bool:
    """Same name from a different owner; same owner is an update, not a conflict."""
    if existing is None:
        return False
    return (
        existing.name == incoming.name
        and existing.effective_owner != incoming.effective_owner
    )


class ConflictResolver:
    """Queue of pending conflicts resolved in FIFO order against a shared registry."""

    def __init__(self, decisions: "DecisionProvider") -> None:
        self.decisions = decisions
        self.queue: list[ConflictContext] = []
        self.resolved: list[ResolvedConflict] = []

    is_conflict = staticmethod(is_conflict)

    def add_conflict(self, existing: SkillRecord, incoming: SkillRecord) -> ConflictContext:
        context = ConflictContext(existing=existing, incoming=incoming)
        self.queue.append(context)
        return context

    def _choose(self, context: ConflictContext, index: int, total: int) -> Resolution:
        choice = self.decisions.choose_resolution(context, index, total)
        if choice not in RESOLUTIONS:
            LOGGER.warning(
                "Unrecognized conflict choice %r for %s, skipping", choice, context.incoming.name
            )
            return "skip"
        return choice

    def resolve(
        self,
        context: ConflictContext,
        registry: Registry,
        index: int = 1,
        total: int = 1,
    ) -> ResolutionResult:
        """Resolve one conflict; the registry is only read here, never mutated."""
        choice = self._choose(context, index, total)
        context.resolution = choice

        if choice == "skip":
            result = ResolutionResult(action="skip")
        elif choice == "replace":
            result = ResolutionResult(action="replace", target=context.existing.name)
        else:
            new_name = context.renamed_name()
            occupant = registry.get(new_name)
            if occupant is None:
                result = ResolutionResult(
                    action="rename",
                    new_name=new_name,
                    original_name=context.incoming.name,
                )
            elif occupant.effective_owner == context.incoming.effective_owner:
                # Slot already holds an earlier keep-both copy from this owner.
                result = ResolutionResult(
                    action="replace",
                    target=new_name,
                    original_name=context.incoming.name,
                )
            else:
                incoming = context.incoming
                warning = (
                    f"Replacing existing skill {new_name}: "
                    f"{occupant.effective_owner}/{occupant.effective_repo or occupant.name} "
                    f"will be replaced by "
                    f"{incoming.effective_owner}/{incoming.effective_repo or incoming.name}"
                )
                LOGGER.warning(warning)
                result = ResolutionResult(
                    action="replace",
                    target=new_name,
                    warning=warning,
                    original_name=incoming.name,
                )

        self.resolved.append(ResolvedConflict(context=context, result=result))
        return result

    def apply_resolution(
        self,
        context: ConflictContext,
        result: ResolutionResult,
        registry: Registry,
    ) -> SkillRecord | None:
        """Apply a result to the registry and return the record that now holds the slot."""
        if result.action == "skip":
            return None
        if result.action == "replace":
            assert result.target is not None
            record = replace(
                context.incoming,
                name=result.target,
                original_name=result.original_name,
            )
            registry.upsert(record)
            return record

        assert result.new_name is not None
        record = replace(
            context.incoming,
            name=result.new_name,
            original_name=result.original_name,
        )
        registry.add(record)
        return record

    def resolve_all(self, registry: Registry) -> list[ResolvedConflict]:
        """Drain the queue; each mutation is visible to the conflicts resolved after it."""
        pending = self.queue
        self.queue = []
        batch: list[ResolvedConflict] = []
        total = len(pending)
        for index, context in enumerate(pending, start=1):
            result = self.resolve(context, registry, index=index, total=total)
            entry = self.resolved[-1]
            entry.record = self.apply_resolution(context, result, registry)
            batch.append(entry)
        return batch

    def summary(self) -> ConflictSummary:
        summary = ConflictSummary()
        for entry in self.resolved:
            action = entry.result.action
            if action == "skip":
                summary.skipped += 1
            elif action == "replace":
                summary.replaced += 1
            else:
                summary.renamed += 1
                summary.renames.append((entry.context.incoming.name, entry.result.new_name or ""))
            if entry.result.warning:
                summary.warnings.append(entry.result.warning)
        return summary

    def stats(self) -> dict[str, int]:
        summary = self.summary()
        return {
            "total": len(self.resolved),
            "skipped": summary.skipped,
            "replaced": summary.replaced,
            "renamed": summary.renamed,
        }

    def format_summary(self) -> str:
        summary = self.summary()
        lines = [
            "=" * 65,
            "Conflict resolution summary",
            "=" * 65,
            f"  skipped:  {summary.skipped}",
            f"  replaced: {summary.replaced}",
            f"  renamed:  {summary.renamed}",
        ]
        if summary.renames:
            lines.append("")
            lines.append("  renamed skills:")
            lines.extend(f"    - {old} -> {new}" for old, new in summary.renames)
        if summary.warnings:
            lines.append("")
            lines.append("  warnings:")
            lines.extend(f"    - {warning}" for warning in summary.warnings)
        return "\n".join(lines)
