"""Candidate file discovery and whole-file text I/O.

Reads and writes go through bytes so line endings survive untouched: a
rewrite only changes the computed spans. Async wrappers run the blocking
calls in a worker thread; callers await them one file at a time.
"""
from __future__ import annotations

import asyncio
import logging
import os
from collections.abc import Iterable
from pathlib import Path

from classlink.config import EngineConfig

logger = logging.getLogger(__name__)


def read_source(path: Path) -> str:
    """Read a UTF-8 text file without newline translation.

    Raises:
        OSError: the file cannot be read.
        UnicodeDecodeError: the file is not UTF-8.
    """
    return path.read_bytes().decode("utf-8")


def write_source(path: Path, text: str) -> None:
    """Replace a file's contents with ``text`` (UTF-8, newlines verbatim)."""
    path.write_bytes(text.encode("utf-8"))


async def aread_source(path: Path) -> str:
    return await asyncio.to_thread(read_source, path)


async def awrite_source(path: Path, text: str) -> None:
    await asyncio.to_thread(write_source, path, text)


def discover_files(
    root: Path,
    config: EngineConfig,
    *,
    priority: Iterable[Path] = (),
) -> list[Path]:
    """List candidate files under ``root``.

    ``priority`` paths come first (and are kept even if their extension or
    directory would otherwise exclude them, as long as they exist). The rest
    are walked in sorted order, pruning ``config.excluded_dirs`` and keeping
    only allow-listed extensions. The result is capped at ``config.max_files``.
    """
    files: list[Path] = []
    seen: set[Path] = set()

    for path in priority:
        resolved = path.resolve()
        if resolved in seen or not resolved.is_file():
            continue
        seen.add(resolved)
        files.append(resolved)

    excluded = set(config.excluded_dirs)
    for dirpath, dirnames, filenames in os.walk(root):
        dirnames[:] = sorted(d for d in dirnames if d not in excluded)
        for name in sorted(filenames):
            if len(files) >= config.max_files:
                logger.info("file scan capped at %d files under %s", config.max_files, root)
                return files
            path = Path(dirpath, name)
            if config.kind_of(path) is None:
                continue
            resolved = path.resolve()
            if resolved in seen:
                continue
            seen.add(resolved)
            files.append(resolved)
    return files[:config.max_files]
