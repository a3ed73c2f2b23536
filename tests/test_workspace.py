"""Tests for classlink.workspace module."""
import asyncio
from pathlib import Path

import pytest

from classlink.config import EngineConfig
from classlink.workspace import (
    aread_source,
    awrite_source,
    discover_files,
    read_source,
    write_source,
)


def _touch(path: Path, text: str = "") -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path


class TestSourceIO:
    def test_crlf_preserved(self, tmp_path: Path) -> None:
        path = tmp_path / "index.html"
        path.write_bytes(b'<div class="a">\r\n</div>\r\n')
        text = read_source(path)
        assert "\r\n" in text
        write_source(path, text.replace('"a"', '"b"'))
        assert path.read_bytes() == b'<div class="b">\r\n</div>\r\n'

    def test_non_utf8_raises(self, tmp_path: Path) -> None:
        path = tmp_path / "latin.js"
        path.write_bytes(b"const a = '\xe9';")
        with pytest.raises(UnicodeDecodeError):
            read_source(path)

    def test_async_round_trip(self, tmp_path: Path) -> None:
        path = tmp_path / "app.js"

        async def _run() -> str:
            await awrite_source(path, "const x = 'ü';\n")
            return await aread_source(path)

        assert asyncio.run(_run()) == "const x = 'ü';\n"


class TestDiscoverFiles:
    def test_filters_extensions_and_excluded_dirs(self, tmp_path: Path) -> None:
        _touch(tmp_path / "index.html")
        _touch(tmp_path / "src" / "app.js")
        _touch(tmp_path / "src" / "App.TSX")
        _touch(tmp_path / "README.md")
        _touch(tmp_path / "node_modules" / "lib" / "index.js")
        _touch(tmp_path / "dist" / "bundle.js")
        _touch(tmp_path / ".git" / "hooks.js")

        found = discover_files(tmp_path, EngineConfig())
        names = [p.relative_to(tmp_path.resolve()).as_posix() for p in found]
        assert names == ["index.html", "src/App.TSX", "src/app.js"]

    def test_priority_first_and_deduplicated(self, tmp_path: Path) -> None:
        _touch(tmp_path / "a.js")
        _touch(tmp_path / "b.js")
        page = _touch(tmp_path / "z.html")

        found = discover_files(tmp_path, EngineConfig(), priority=[page, tmp_path / "b.js"])
        assert [p.name for p in found] == ["z.html", "b.js", "a.js"]

    def test_missing_priority_ignored(self, tmp_path: Path) -> None:
        _touch(tmp_path / "a.js")
        found = discover_files(tmp_path, EngineConfig(), priority=[tmp_path / "gone.js"])
        assert [p.name for p in found] == ["a.js"]

    def test_capped_at_max_files(self, tmp_path: Path) -> None:
        for i in range(5):
            _touch(tmp_path / f"f{i}.js")
        found = discover_files(tmp_path, EngineConfig(max_files=3))
        assert [p.name for p in found] == ["f0.js", "f1.js", "f2.js"]
