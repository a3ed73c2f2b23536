"""Dynamic resolver: find and rewrite the literal behind an unmapped class value.

Used when an edited element has no UID (its classes were assembled at
runtime by script code). The passes run in order and the cascade stops at
the first pass that produces an outcome:

1. ``exact_literal``  : ``before`` verbatim as a quoted literal (or quoted
                         inside one, as in markup strings); several
                         matching files go through the ambiguity policy.
2. ``tolerant_markup``: class attributes of markup files with the same
                         token set as ``before``.
3. ``tolerant_literal``: quoted literals in script code, or ``class="..."``
                         inside them, with the same token set.
4. ``base_constant``  : pure removals only: the single assignment literal
                         whose tokens are a subset of ``before`` and contain
                         every removed token loses just those tokens.
5. ``proximity``      : literals near the element's rendered text whose
                         tokens are a superset of ``before``; best one wins.

Every pass is a coroutine ``(ResolutionContext) -> ResolutionOutcome | None``.
Per-file read and parse failures are logged and the file is skipped.
"""
from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Iterable, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Literal

from classlink.ambiguity import AmbiguityResolver, ChoicePrompt, Chooser, Selection
from classlink.annotator import annotate_html
from classlink.config import EngineConfig
from classlink.literals import (
    embedded_class_values,
    embedded_quoted,
    has_class_context,
    is_assignment_literal,
    iter_literals_in,
    iter_string_literals,
    literal_regions,
)
from classlink.offsets import CandidateMatch, SourceRange
from classlink.tokens import drop_tokens, removed_tokens, same_token_set, token_set
from classlink.workspace import aread_source, awrite_source, discover_files

logger = logging.getLogger(__name__)

type ResolutionStatus = Literal[
    "applied",
    "no_match_found",
    "ambiguous",
    "ambiguous_no_selection",
    "write_failed",
]


# ---------------------------------------------------------------------------
# Request / outcome types
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class EditHint:
    """Context the preview host knows about the edited element."""

    nearby_text: str = ""
    tag_name: str = ""
    element_id: str = ""

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any] | None) -> EditHint | None:
        if not payload:
            return None
        return cls(
            nearby_text=str(payload.get("nearbyText") or payload.get("nearby_text") or ""),
            tag_name=str(payload.get("tagName") or payload.get("tag_name") or ""),
            element_id=str(payload.get("elementId") or payload.get("element_id") or ""),
        )


@dataclass(frozen=True, slots=True)
class DynamicEdit:
    before_value: str
    after_value: str
    hint: EditHint | None = None


@dataclass(frozen=True, slots=True)
class ResolutionOutcome:
    status: ResolutionStatus
    changed_files: tuple[Path, ...] = ()
    pass_name: str = ""
    matches: tuple[CandidateMatch, ...] = ()
    prompt: ChoicePrompt | None = None
    failed_files: tuple[Path, ...] = ()

    @property
    def changed_file_count(self) -> int:
        return len(self.changed_files)

    @property
    def last_touched_file(self) -> Path | None:
        return self.changed_files[-1] if self.changed_files else None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "status": self.status,
            "changedFileCount": self.changed_file_count,
            "pass": self.pass_name or None,
            "changedFiles": [str(p) for p in self.changed_files],
        }
        if self.last_touched_file is not None:
            payload["lastTouchedFile"] = str(self.last_touched_file)
        if self.prompt is not None and self.status == "ambiguous":
            payload["prompt"] = self.prompt.to_dict()
        if self.failed_files:
            payload["failedFiles"] = [str(p) for p in self.failed_files]
        return payload


NO_MATCH = ResolutionOutcome(status="no_match_found")


# ---------------------------------------------------------------------------
# Context
# ---------------------------------------------------------------------------


@dataclass(slots=True)
class ResolutionContext:
    """State shared by the passes of one resolution attempt."""

    edit: DynamicEdit
    config: EngineConfig
    files: list[Path]
    ambiguity: AmbiguityResolver
    active: Path | None = None
    restrict_to: Path | None = None
    texts: dict[Path, str | None] = field(default_factory=dict)

    def targets(self) -> list[Path]:
        if self.restrict_to is not None:
            return [self.restrict_to]
        return self.files

    async def read(self, path: Path) -> str | None:
        """File text, read once per attempt. None if unreadable."""
        if path not in self.texts:
            try:
                self.texts[path] = await aread_source(path)
            except (OSError, UnicodeDecodeError) as exc:
                logger.debug("skipping %s: %s", path, exc)
                self.texts[path] = None
        return self.texts[path]

    async def apply(self, matches: Iterable[CandidateMatch], pass_name: str) -> ResolutionOutcome:
        """Write the matches, one file at a time, in first-seen file order."""
        by_file: dict[Path, list[CandidateMatch]] = {}
        for m in matches:
            by_file.setdefault(m.path, []).append(m)

        changed: list[Path] = []
        failed: list[Path] = []
        applied: list[CandidateMatch] = []
        for path, file_matches in by_file.items():
            text = self.texts.get(path)
            if text is None:
                continue
            new_text = text
            last_start: int | None = None
            for m in sorted(file_matches, key=lambda x: x.range.start, reverse=True):
                if last_start is not None and m.range.end > last_start:
                    continue  # overlaps a later match already applied
                new_text = new_text[:m.range.start] + m.replacement + new_text[m.range.end:]
                last_start = m.range.start
                applied.append(m)
            if new_text == text:
                continue
            try:
                await awrite_source(path, new_text)
            except OSError as exc:
                logger.warning("%s: write to %s failed: %s", pass_name, path, exc)
                failed.append(path)
                continue
            self.texts[path] = new_text
            changed.append(path)

        if not changed:
            if failed:
                return ResolutionOutcome(
                    status="write_failed", pass_name=pass_name, failed_files=tuple(failed),
                )
            return NO_MATCH
        return ResolutionOutcome(
            status="applied",
            changed_files=tuple(changed),
            pass_name=pass_name,
            matches=tuple(applied),
            failed_files=tuple(failed),
        )


type ResolverPass = Callable[[ResolutionContext], Awaitable[ResolutionOutcome | None]]


# ---------------------------------------------------------------------------
# Passes
# ---------------------------------------------------------------------------


async def exact_literal_pass(ctx: ResolutionContext) -> ResolutionOutcome | None:
    before = ctx.edit.before_value
    matches: list[CandidateMatch] = []
    for path in ctx.targets():
        kind = ctx.config.kind_of(path) or "script"
        text = await ctx.read(path)
        if text is None:
            continue
        for lit in iter_literals_in(text, literal_regions(kind, text)):
            if lit.value == before:
                spans = [(lit.start, lit.end)]
            else:
                spans = list(embedded_quoted(lit, before))
            for start, end in spans:
                matches.append(CandidateMatch(
                    path=path,
                    range=SourceRange(start, end),
                    quality=1.0,
                    pass_name="exact_literal",
                    replacement=ctx.edit.after_value,
                ))
    if not matches:
        return None

    matched_files = list(dict.fromkeys(m.path for m in matches))
    decision = await ctx.ambiguity.resolve(matched_files, ctx.active)
    if decision.pending:
        logger.info("exact_literal: %d files match; waiting for a selection", len(matched_files))
        return ResolutionOutcome(
            status="ambiguous",
            pass_name="exact_literal",
            matches=tuple(matches),
            prompt=decision.prompt,
        )
    if decision.declined:
        logger.info("exact_literal: selection declined; no changes")
        return ResolutionOutcome(status="ambiguous_no_selection", pass_name="exact_literal")
    if decision.single_file:
        ctx.restrict_to = decision.targets[0]

    chosen = set(decision.targets)
    return await ctx.apply((m for m in matches if m.path in chosen), "exact_literal")


async def tolerant_markup_pass(ctx: ResolutionContext) -> ResolutionOutcome | None:
    before = ctx.edit.before_value
    matches: list[CandidateMatch] = []
    for path in ctx.targets():
        if ctx.config.kind_of(path) != "markup":
            continue
        text = await ctx.read(path)
        if text is None:
            continue
        try:
            annotated = annotate_html(text, marker_attribute=ctx.config.marker_attribute)
        except Exception as exc:
            logger.debug("tolerant_markup: cannot parse %s: %s", path, exc)
            continue
        for d in annotated.table:
            if same_token_set(d.last_known_value, before):
                matches.append(CandidateMatch(
                    path=path,
                    range=d.range,
                    quality=0.8,
                    pass_name="tolerant_markup",
                    replacement=ctx.edit.after_value,
                ))
    if not matches:
        return None
    return await ctx.apply(matches, "tolerant_markup")


async def tolerant_literal_pass(ctx: ResolutionContext) -> ResolutionOutcome | None:
    before = ctx.edit.before_value
    matches: list[CandidateMatch] = []
    for path in ctx.targets():
        kind = ctx.config.kind_of(path) or "script"
        text = await ctx.read(path)
        if text is None:
            continue
        for lit in iter_literals_in(text, literal_regions(kind, text)):
            if same_token_set(lit.value, before):
                spans = [(lit.start, lit.end)]
            else:
                spans = [
                    (start, end) for start, end, value in embedded_class_values(lit)
                    if same_token_set(value, before)
                ]
            for start, end in spans:
                matches.append(CandidateMatch(
                    path=path,
                    range=SourceRange(start, end),
                    quality=0.7,
                    pass_name="tolerant_literal",
                    replacement=ctx.edit.after_value,
                ))
    if not matches:
        return None
    return await ctx.apply(matches, "tolerant_literal")


async def base_constant_pass(ctx: ResolutionContext) -> ResolutionOutcome | None:
    removed = removed_tokens(ctx.edit.before_value, ctx.edit.after_value)
    if not removed:
        return None
    before_tokens = token_set(ctx.edit.before_value)
    matches: list[CandidateMatch] = []
    for path in ctx.targets():
        kind = ctx.config.kind_of(path) or "script"
        text = await ctx.read(path)
        if text is None:
            continue
        for lit in iter_literals_in(text, literal_regions(kind, text)):
            tokens = token_set(lit.value)
            if not tokens or not tokens <= before_tokens or not removed <= tokens:
                continue
            if not is_assignment_literal(text, lit):
                continue
            matches.append(CandidateMatch(
                path=path,
                range=SourceRange(lit.start, lit.end),
                quality=0.6,
                pass_name="base_constant",
                replacement=drop_tokens(lit.value, removed),
            ))
    if len(matches) != 1:
        if matches:
            logger.info(
                "base_constant: %d equally qualified assignments; not guessing", len(matches),
            )
        return None
    return await ctx.apply(matches, "base_constant")


async def proximity_pass(ctx: ResolutionContext) -> ResolutionOutcome | None:
    hint = ctx.edit.hint
    anchor = hint.nearby_text.strip() if hint is not None else ""
    if len(anchor) < ctx.config.min_anchor_chars:
        return None
    before_tokens = token_set(ctx.edit.before_value)
    if not before_tokens:
        return None

    window = ctx.config.proximity_window_chars
    best: tuple[tuple[int, int, int, int], CandidateMatch] | None = None
    for file_idx, path in enumerate(ctx.targets()):
        if ctx.config.kind_of(path) is None:
            continue
        text = await ctx.read(path)
        if text is None:
            continue
        anchors: list[int] = []
        pos = text.find(anchor)
        while pos != -1:
            anchors.append(pos)
            pos = text.find(anchor, pos + 1)
        if not anchors:
            continue

        for lit in iter_string_literals(text):
            if not before_tokens <= token_set(lit.value):
                continue
            distance = min(_gap(lit.start - 1, lit.end + 1, a, a + len(anchor)) for a in anchors)
            if distance > window:
                continue
            in_context = has_class_context(
                text, lit, lookback=ctx.config.context_lookback_chars,
            )
            rank = (0 if in_context else 1, distance, file_idx, lit.start)
            if best is None or rank < best[0]:
                quality = (0.5 if in_context else 0.3) / (1.0 + distance / 100.0)
                best = (rank, CandidateMatch(
                    path=path,
                    range=SourceRange(lit.start, lit.end),
                    quality=quality,
                    pass_name="proximity",
                    replacement=ctx.edit.after_value,
                ))
    if best is None:
        return None
    return await ctx.apply([best[1]], "proximity")


def _gap(a_start: int, a_end: int, b_start: int, b_end: int) -> int:
    """Characters between two ranges (0 when they touch or overlap)."""
    if a_end <= b_start:
        return b_start - a_end
    if b_end <= a_start:
        return a_start - b_end
    return 0


DEFAULT_PASSES: tuple[tuple[str, ResolverPass], ...] = (
    ("exact_literal", exact_literal_pass),
    ("tolerant_markup", tolerant_markup_pass),
    ("tolerant_literal", tolerant_literal_pass),
    ("base_constant", base_constant_pass),
    ("proximity", proximity_pass),
)


# ---------------------------------------------------------------------------
# Resolver
# ---------------------------------------------------------------------------


class DynamicResolver:
    """Runs the pass cascade over the files under ``root``."""

    def __init__(
        self,
        root: Path,
        *,
        config: EngineConfig | None = None,
        chooser: Chooser | None = None,
        passes: tuple[tuple[str, ResolverPass], ...] = DEFAULT_PASSES,
    ) -> None:
        self.root = root
        self.config = config or EngineConfig()
        self.chooser = chooser
        self.passes = passes

    async def resolve(
        self,
        edit: DynamicEdit,
        *,
        active: Path | None = None,
        selection: Selection = None,
        priority_files: Iterable[Path] = (),
    ) -> ResolutionOutcome:
        """Resolve one dynamic edit.

        Args:
            edit: Before/after class values and an optional hint.
            active: The document currently shown in the preview.
            selection: Pre-made answer to an ambiguity prompt.
            priority_files: Files scanned first (e.g. the active document's
                local ``<script src>`` files).

        Returns:
            The outcome of the first pass that produced one, else a
            ``no_match_found`` outcome. No file is written unless the
            outcome is ``applied``.
        """
        before = edit.before_value.strip()
        after = edit.after_value.strip()
        if not before or not after or before == after:
            return NO_MATCH

        priority = [p for p in (active, *priority_files) if p is not None]
        files = await asyncio.to_thread(
            discover_files, self.root, self.config, priority=priority,
        )
        ctx = ResolutionContext(
            edit=DynamicEdit(before, after, edit.hint),
            config=self.config,
            files=files,
            ambiguity=AmbiguityResolver(self.chooser, selection=selection),
            active=active.resolve() if active is not None else None,
        )
        logger.debug("resolving %r -> %r across %d files", before, after, len(files))

        for name, run_pass in self.passes:
            outcome = await run_pass(ctx)
            if outcome is not None and outcome.status != "no_match_found":
                logger.info(
                    "%s: %s (%d file(s) changed)", name, outcome.status, outcome.changed_file_count,
                )
                return outcome
        logger.info("no pass matched %r", before)
        return NO_MATCH
