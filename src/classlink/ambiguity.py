"""Ambiguity policy for exact-literal matches found in several files.

- one matching file: apply there;
- the active document is among several: binary choice (only the active
  document, or everywhere);
- otherwise: pick one file from the list, or everywhere.

A decline (``None``) aborts with zero changes. Choosing a single file is
remembered so later resolver passes stay inside that file.
"""
from __future__ import annotations

from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Literal

ONLY_ACTIVE = "only_active"
EVERYWHERE = "everywhere"

type Selection = Literal["only_active", "everywhere"] | Path | None
type PromptKind = Literal["binary", "pick"]


@dataclass(frozen=True, slots=True)
class ChoicePrompt:
    """What the host should ask the user."""

    kind: PromptKind
    candidates: tuple[Path, ...]
    active: Path | None

    def to_dict(self) -> dict[str, Any]:
        options = [ONLY_ACTIVE, EVERYWHERE] if self.kind == "binary" else [
            *(str(p) for p in self.candidates), EVERYWHERE,
        ]
        return {
            "kind": self.kind,
            "candidates": [str(p) for p in self.candidates],
            "active": str(self.active) if self.active is not None else None,
            "options": options,
        }


# Asks the user; returns the selection, or None when they decline.
type Chooser = Callable[[ChoicePrompt], Awaitable[Selection]]


@dataclass(frozen=True, slots=True)
class Disambiguation:
    """Outcome of applying the policy to one set of matching files."""

    targets: tuple[Path, ...]
    single_file: bool = False
    declined: bool = False
    prompt: ChoicePrompt | None = None  # set when a choice is still pending

    @property
    def pending(self) -> bool:
        return self.prompt is not None and not self.targets and not self.declined


def parse_selection(raw: str | None) -> Selection:
    """Turn a host-supplied selection string into a Selection."""
    if raw is None:
        return None
    raw = raw.strip()
    if not raw:
        return None
    if raw in (ONLY_ACTIVE, EVERYWHERE):
        return raw  # type: ignore[return-value]
    return Path(raw)


def _same_path(a: Path, b: Path) -> bool:
    return a.resolve() == b.resolve()


class AmbiguityResolver:
    """Apply the disambiguation policy, asking a chooser when needed.

    Args:
        chooser: Async callback used when several files match. Without one,
            an ambiguous set yields a pending Disambiguation carrying the
            prompt, which the host answers by resubmitting with a selection.
        selection: A choice made ahead of time (e.g. a resubmitted request).
    """

    def __init__(self, chooser: Chooser | None = None, *, selection: Selection = None) -> None:
        self._chooser = chooser
        self._selection = selection

    def prompt_for(self, matches: Sequence[Path], active: Path | None) -> ChoicePrompt:
        if active is not None and any(_same_path(m, active) for m in matches):
            return ChoicePrompt("binary", tuple(matches), active)
        return ChoicePrompt("pick", tuple(matches), active)

    async def resolve(self, matches: Sequence[Path], active: Path | None) -> Disambiguation:
        if not matches:
            return Disambiguation(targets=())
        if len(matches) == 1:
            return Disambiguation(targets=(matches[0],))

        prompt = self.prompt_for(matches, active)
        selection = self._selection
        if selection is None:
            if self._chooser is None:
                return Disambiguation(targets=(), prompt=prompt)
            selection = await self._chooser(prompt)

        if selection == EVERYWHERE:
            return Disambiguation(targets=tuple(matches))
        if selection == ONLY_ACTIVE:
            if prompt.kind != "binary" or active is None:
                return Disambiguation(targets=(), declined=True, prompt=prompt)
            picked = next(m for m in matches if _same_path(m, active))
            return Disambiguation(targets=(picked,), single_file=True, prompt=prompt)
        if isinstance(selection, Path):
            for m in matches:
                if _same_path(m, selection):
                    return Disambiguation(targets=(m,), single_file=True, prompt=prompt)
        return Disambiguation(targets=(), declined=True, prompt=prompt)
