"""Preview session: the engine facade the preview host talks to.

One session per open preview. It owns the document's tracker, routes edit
requests (mapped edits to the tracker, unmapped ones to the dynamic
resolver) and answers with plain dict payloads. UI effects are returned as
explicit ``commands`` for the host to perform; the engine never shows
messages, refreshes views, or touches undo history itself.

Edits are serialized per document with an ``asyncio.Lock``.
"""
from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Literal

from classlink.ambiguity import Chooser, parse_selection
from classlink.config import EngineConfig
from classlink.detect import has_tailwind, local_script_sources
from classlink.offsets import Err, Ok
from classlink.resolver import DynamicEdit, DynamicResolver, EditHint
from classlink.tracker import ReconciliationTracker
from classlink.workspace import aread_source, read_source, write_source

logger = logging.getLogger(__name__)

type CommandKind = Literal["show_info", "show_warning", "show_error", "refresh_preview"]

_EDIT_ERROR_MESSAGES: dict[str, tuple[CommandKind, str]] = {
    "unknown_uid": (
        "show_warning",
        "Could not map edited element back to source. Reopen preview.",
    ),
    "source_diverged": (
        "show_warning",
        "Source changed since preview was opened. Please reopen the preview.",
    ),
    "write_failed": ("show_error", "Failed to apply class edit to source."),
}


@dataclass(frozen=True, slots=True)
class HostCommand:
    """Something the host should do in response to an engine outcome."""

    kind: CommandKind
    message: str = ""

    def to_dict(self) -> dict[str, str]:
        return {"command": self.kind, "message": self.message}


class PreviewSession:
    """Engine state for one previewed document.

    Args:
        document_path: The HTML file shown in the preview.
        workspace_root: Root of the file set searched for dynamic edits
            (defaults to the document's directory).
        config: Engine configuration.
        chooser: Async callback for ambiguity prompts. Without one,
            ambiguous dynamic edits come back as ``ambiguous`` outcomes.
    """

    def __init__(
        self,
        document_path: Path,
        *,
        workspace_root: Path | None = None,
        config: EngineConfig | None = None,
        chooser: Chooser | None = None,
    ) -> None:
        self.document_path = document_path.resolve()
        self.workspace_root = (workspace_root or self.document_path.parent).resolve()
        self.config = config or EngineConfig()
        self._lock = asyncio.Lock()
        self._tracker: ReconciliationTracker | None = ReconciliationTracker(
            read_source(self.document_path),
            marker_attribute=self.config.marker_attribute,
            reader=self._read_document,
            writer=self._write_document,
        )
        self._resolver = DynamicResolver(
            self.workspace_root, config=self.config, chooser=chooser,
        )

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def tracker(self) -> ReconciliationTracker:
        if self._tracker is None:
            raise RuntimeError(f"preview for {self.document_path} is closed")
        return self._tracker

    @property
    def closed(self) -> bool:
        return self._tracker is None

    def close(self) -> None:
        """Drop the mapping table; the session cannot be used afterwards."""
        self._tracker = None

    def _read_document(self) -> str:
        return read_source(self.document_path)

    def _write_document(self, text: str) -> None:
        write_source(self.document_path, text)

    def snapshot(self) -> dict[str, Any]:
        """Renderable HTML plus mapping table, as sent to the host."""
        tracker = self.tracker
        annotated = tracker.annotated
        return {
            "path": str(self.document_path),
            "renderable_html": annotated.renderable_html,
            "strategy": annotated.strategy,
            "has_tailwind": has_tailwind(tracker.text),
            **tracker.table.to_dict(),
        }

    # ------------------------------------------------------------------
    # Protocol operations
    # ------------------------------------------------------------------

    async def apply_mapped_edit(self, uid: int, new_value: str) -> dict[str, Any]:
        async with self._lock:
            # apply_edit re-reads and writes the document (blocking I/O).
            result = await asyncio.to_thread(self.tracker.apply_edit, uid, new_value)
            match result:
                case Ok(value=d):
                    return {"ok": True, "descriptor": d.to_dict(), "commands": []}
                case Err(error=e):
                    kind, message = _EDIT_ERROR_MESSAGES[e.reason]
                    return {
                        **e.to_dict(),
                        "commands": [HostCommand(kind, message).to_dict()],
                    }

    async def resolve_dynamic_edit(
        self,
        before: str,
        after: str,
        hint: EditHint | None = None,
        *,
        selection: str | None = None,
    ) -> dict[str, Any]:
        async with self._lock:
            tracker = self.tracker
            outcome = await self._resolver.resolve(
                DynamicEdit(before, after, hint),
                active=self.document_path,
                selection=parse_selection(selection),
                priority_files=local_script_sources(
                    tracker.text, self.document_path, self.workspace_root,
                ),
            )
            commands: list[HostCommand] = []
            if self.document_path in outcome.changed_files:
                # The document itself was rewritten; its old ranges are stale.
                tracker.reannotate(await aread_source(self.document_path))
                commands.append(HostCommand("refresh_preview"))
            match outcome.status:
                case "applied":
                    commands.append(HostCommand(
                        "show_info",
                        f"Updated class template in {outcome.changed_file_count} file(s).",
                    ))
                case "write_failed":
                    commands.append(HostCommand(
                        "show_error", "Failed to update dynamic class template in source.",
                    ))
                case "no_match_found":
                    commands.append(HostCommand(
                        "show_info", "No source literal matched the edited classes.",
                    ))
                case _:
                    pass
            payload = outcome.to_dict()
            payload["commands"] = [c.to_dict() for c in commands]
            return payload

    async def reannotate(self, document_text: str | None = None) -> dict[str, Any]:
        """Re-derive the mapping (from disk unless text is given)."""
        async with self._lock:
            if document_text is None:
                document_text = await aread_source(self.document_path)
            self.tracker.reannotate(document_text)
            return self.snapshot()

    async def handle_message(self, msg: Mapping[str, Any] | None) -> dict[str, Any] | None:
        """Dispatch one host message; malformed messages are ignored.

        Message types:
            ``updateClasses``          {uid, newValue}
            ``updateDynamicTemplate``  {before, after, hint?, selection?}
            ``reannotate``             {documentText?}
        """
        if not msg or not isinstance(msg.get("type"), str):
            return None
        match msg["type"]:
            case "updateClasses":
                uid = _as_uid(msg.get("uid"))
                new_value = msg.get("newValue")
                if uid is None or not isinstance(new_value, str):
                    return None
                return await self.apply_mapped_edit(uid, new_value)
            case "updateDynamicTemplate":
                before = msg.get("before")
                after = msg.get("after")
                if not isinstance(before, str) or not isinstance(after, str):
                    return None
                hint = msg.get("hint")
                selection = msg.get("selection")
                return await self.resolve_dynamic_edit(
                    before,
                    after,
                    EditHint.from_payload(hint if isinstance(hint, Mapping) else None),
                    selection=selection if isinstance(selection, str) else None,
                )
            case "reannotate":
                text = msg.get("documentText")
                return await self.reannotate(text if isinstance(text, str) else None)
            case other:
                logger.debug("ignoring unknown message type %r", other)
                return None


def _as_uid(value: Any) -> int | None:
    try:
        uid = int(value)
    except (TypeError, ValueError):
        return None
    return uid if uid >= 1 else None
