"""Document-level detection helpers for the preview host.

- ``has_tailwind``: does this HTML likely use Tailwind utilities?
  Hosts use it to decide whether to offer the live preview at all.
- ``local_script_sources``: workspace files referenced by ``<script src>``;
  the dynamic resolver scans them first.
"""
from __future__ import annotations

import re
from pathlib import Path

_TAILWIND_ASSET_RE = re.compile(
    r"(?:<link|<script)[^>]+(?:href|src)=[\"'][^\"']*tailwind[^\"']*[\"']",
    re.IGNORECASE,
)
_UTILITY_CLASS_RE = re.compile(
    r"class=[\"'][^\"']*(?:\bflex\b|\bgrid\b|\bp-(?:x|y|t|r|b|l|\d)|\bm-(?:x|y|t|r|b|l|\d)"
    r"|\btext-|\bbg-|\bw-|\bh-|\brounded|\bshadow|\bjustify-|\bitems-|\bgap-|\bspace-[xy]-|\bring-)",
    re.IGNORECASE,
)
_SCRIPT_SRC_RE = re.compile(
    r"<script\b[^>]*\bsrc=([\"'])([^\"']+)\1[^>]*>", re.IGNORECASE,
)
_REMOTE_SRC_RE = re.compile(r"^(?:[a-z][a-z0-9+.-]*:|//)", re.IGNORECASE)


def has_tailwind(html: str) -> bool:
    """Heuristic check whether an HTML document likely uses Tailwind."""
    if "cdn.tailwindcss.com" in html.lower():
        return True
    if _TAILWIND_ASSET_RE.search(html):
        return True
    return _UTILITY_CLASS_RE.search(html) is not None


def local_script_sources(
    html: str,
    document_path: Path,
    workspace_root: Path | None = None,
) -> list[Path]:
    """Resolve local ``<script src>`` references to existing files.

    Remote (``http:``, ``//host``, ``data:``...) sources are ignored.
    Root-relative sources (``/js/app.js``) resolve against
    ``workspace_root``; others against the document's directory. Paths that
    escape the workspace root are dropped.
    """
    root = (workspace_root or document_path.parent).resolve()
    base_dir = document_path.resolve().parent
    found: list[Path] = []
    for m in _SCRIPT_SRC_RE.finditer(html):
        src = m.group(2).strip().split("?", 1)[0].split("#", 1)[0]
        if not src or _REMOTE_SRC_RE.match(src):
            continue
        if src.startswith("/"):
            if workspace_root is None:
                continue
            candidate = (root / src.lstrip("/")).resolve()
        else:
            candidate = (base_dir / src).resolve()
        if not candidate.is_relative_to(root) or not candidate.is_file():
            continue
        if candidate not in found:
            found.append(candidate)
    return found
