"""Engine configuration loaded from JSON.

Keeps file-type allow-lists, scan limits and heuristic windows out of the
resolver code. Every field has a default, so an empty JSON object is a
valid configuration.
"""
from __future__ import annotations

from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Literal

import orjson

from classlink.annotator import MARKER_ATTRIBUTE

type FileKind = Literal["markup", "script"]


@dataclass(frozen=True, slots=True)
class EngineConfig:
    """Limits and allow-lists for annotation and dynamic resolution."""

    marker_attribute: str = MARKER_ATTRIBUTE
    markup_extensions: tuple[str, ...] = (".html", ".htm", ".vue", ".svelte", ".astro")
    script_extensions: tuple[str, ...] = (".js", ".jsx", ".ts", ".tsx", ".mjs", ".cjs")
    excluded_dirs: tuple[str, ...] = (
        ".git", ".hg", ".svn", "node_modules", "bower_components", "dist", "build",
        "out", ".next", ".nuxt", ".svelte-kit", ".cache", "coverage", "vendor",
        "__pycache__", ".venv", "venv",
    )
    max_files: int = 5000
    proximity_window_chars: int = 2000
    min_anchor_chars: int = 4
    context_lookback_chars: int = 40

    def __post_init__(self) -> None:
        if self.max_files < 1:
            raise ValueError(f"max_files must be >= 1, got {self.max_files}")
        if self.proximity_window_chars < 0:
            raise ValueError(
                f"proximity_window_chars must be >= 0, got {self.proximity_window_chars}"
            )
        if self.min_anchor_chars < 1:
            raise ValueError(f"min_anchor_chars must be >= 1, got {self.min_anchor_chars}")
        if not self.marker_attribute.strip():
            raise ValueError("marker_attribute cannot be empty")

    def kind_of(self, path: Path) -> FileKind | None:
        """Classify a path by extension (case-insensitive)."""
        suffix = path.suffix.lower()
        if suffix in self.markup_extensions:
            return "markup"
        if suffix in self.script_extensions:
            return "script"
        return None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> EngineConfig:
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ValueError(f"unknown config keys: {', '.join(unknown)}")
        kwargs: dict[str, Any] = {}
        for key, value in data.items():
            if key.endswith("_extensions"):
                kwargs[key] = tuple(str(v).lower() for v in value)
            elif key == "excluded_dirs":
                kwargs[key] = tuple(str(v) for v in value)
            elif key == "marker_attribute":
                kwargs[key] = str(value)
            else:
                kwargs[key] = int(value)
        return cls(**kwargs)

    @classmethod
    def from_json(cls, path: Path) -> EngineConfig:
        """Load from a classlink.json file."""
        data = orjson.loads(path.read_bytes())
        if not isinstance(data, dict):
            raise ValueError(f"{path}: config must be a JSON object")
        return cls.from_dict(data)

    def to_dict(self) -> dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}
