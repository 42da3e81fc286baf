"""Decision providers used to settle conflicts and ambiguous catalog matches."""

from __future__ import annotations

import logging
import sys
from datetime import datetime
from typing import Any, Callable, Protocol, TextIO

from skillsync.core.conflicts import RESOLUTIONS, ConflictContext, Resolution

LOGGER = logging.getLogger(__name__)

CHOICE_ALIASES: dict[str, Resolution] = {
    "s": "skip",
    "skip": "skip",
    "r": "replace",
    "replace": "replace",
    "k": "keep-both",
    "keep": "keep-both",
    "keep-both": "keep-both",
}


class DecisionProvider(Protocol):
    def choose_resolution(self, context: ConflictContext, index: int, total: int) -> str: ...

    def choose_candidate(
        self, name: str, candidates: list[dict[str, Any]]
    ) -> dict[str, Any] | None: ...


def format_date(value: str | None) -> str:
    if not value:
        return "unknown"
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00")).date().isoformat()
    except ValueError:
        return value


class StaticDecisionProvider:
    """Non-interactive provider: configured strategy, top-ranked candidate."""

    def __init__(self, default_strategy: str = "skip") -> None:
        if default_strategy not in RESOLUTIONS:
            raise ValueError(
                f"Unknown conflict strategy {default_strategy!r}; "
                f"expected one of {', '.join(RESOLUTIONS)}"
            )
        self.default_strategy = default_strategy

    def choose_resolution(self, context: ConflictContext, index: int, total: int) -> str:
        LOGGER.info(
            "Conflict [%d/%d] %s: applying default strategy %s",
            index,
            total,
            context.incoming.name,
            self.default_strategy,
        )
        return self.default_strategy

    def choose_candidate(
        self, name: str, candidates: list[dict[str, Any]]
    ) -> dict[str, Any] | None:
        return candidates[0] if candidates else None


class InteractiveDecisionProvider:
    """Blocking terminal prompts; one attempt per question."""

    def __init__(
        self,
        input_func: Callable[[str], str] = input,
        output: TextIO | None = None,
    ) -> None:
        self.input_func = input_func
        self.output = output

    def _print(self, text: str = "") -> None:
        print(text, file=self.output or sys.stdout)

    def _describe(self, label: str, context: ConflictContext, incoming: bool) -> None:
        record = context.incoming if incoming else context.existing
        self._print(f"  {label}")
        self._print(f"    name:    {record.name}")
        self._print(f"    origin:  {record.effective_owner}/{record.effective_repo or record.name}")
        self._print(f"    version: {record.version or 'unknown'}")
        self._print(f"    author:  {record.author or 'unknown'}")
        self._print(f"    updated: {format_date(record.updated_at)}")

    def choose_resolution(self, context: ConflictContext, index: int, total: int) -> str:
        self._print()
        self._print("-" * 65)
        if total > 1:
            self._print(f"Skill name conflict [{index}/{total}]")
        else:
            self._print("Skill name conflict")
        self._print("-" * 65)
        self._describe("local", context, incoming=False)
        self._describe("incoming", context, incoming=True)
        self._print()
        self._print("  [s] skip      keep the local skill")
        self._print("  [r] replace   overwrite the local skill")
        self._print(f"  [k] keep both add the incoming skill as {context.renamed_name()}")

        answer = self.input_func("Choice (s/r/k): ").strip().lower()
        choice = CHOICE_ALIASES.get(answer)
        if choice is None:
            LOGGER.warning("Unrecognized choice %r, defaulting to skip", answer)
            return "skip"
        return choice

    def choose_candidate(
        self, name: str, candidates: list[dict[str, Any]]
    ) -> dict[str, Any] | None:
        if not candidates:
            return None
        if len(candidates) == 1:
            return candidates[0]

        self._print()
        self._print(f"Several sources publish a skill named {name}:")
        for position, candidate in enumerate(candidates, start=1):
            source = (
                candidate.get("githubUrl")
                or candidate.get("repository")
                or candidate.get("url")
                or "unknown source"
            )
            self._print(f"  [{position}] {source} ({candidate.get('stars') or 0} stars)")

        answer = self.input_func(f"Select source (1-{len(candidates)}, default 1): ").strip()
        if not answer:
            return candidates[0]
        try:
            position = int(answer)
        except ValueError:
            position = 0
        if not 1 <= position <= len(candidates):
            LOGGER.warning("Invalid selection %r for %s, using top-ranked source", answer, name)
            return candidates[0]
        return candidates[position - 1]
