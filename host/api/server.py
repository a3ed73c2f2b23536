"""FastAPI server for the live class-editing preview host.

Exposes the engine protocol (open a document, apply mapped edits, resolve
dynamic edits, re-annotate) as JSON endpoints for a preview frontend.

Usage:
    cd host
    CLASSLINK_WORKSPACE=/path/to/site PYTHONPATH=../src uvicorn api.server:app --port 8010
"""
from __future__ import annotations

import os
import sys
import uuid
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse
from pydantic import BaseModel, Field

# Add classlink src to path so we can import engine modules
_classlink_src = Path(__file__).resolve().parents[2] / "src"
if str(_classlink_src) not in sys.path:
    sys.path.insert(0, str(_classlink_src))

from classlink.config import EngineConfig  # noqa: E402
from classlink.resolver import EditHint  # noqa: E402
from classlink.session import PreviewSession  # noqa: E402

# ---------------------------------------------------------------------------
# Globals
#
# Sessions are mutated only from async endpoints on the single event loop;
# each session serializes its own edits. Run with one uvicorn worker.
# ---------------------------------------------------------------------------
_workspace_root = Path(os.environ.get("CLASSLINK_WORKSPACE", ".")).resolve()
_config_path = _workspace_root / "classlink.json"
_config = EngineConfig()
_sessions: dict[str, PreviewSession] = {}


def _get_session(doc_id: str) -> PreviewSession:
    session = _sessions.get(doc_id)
    if session is None:
        raise HTTPException(status_code=404, detail=f"Document not open: {doc_id}")
    return session


def _resolve_document(raw: str) -> Path:
    """Resolve a requested document path inside the workspace root."""
    path = Path(raw)
    if not path.is_absolute():
        path = _workspace_root / path
    path = path.resolve()
    if not path.is_relative_to(_workspace_root):
        raise HTTPException(status_code=400, detail=f"Path outside workspace: {raw}")
    if not path.is_file():
        raise HTTPException(status_code=404, detail=f"File not found: {raw}")
    if _config.kind_of(path) != "markup":
        raise HTTPException(status_code=400, detail=f"Not a markup document: {raw}")
    return path


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------
@asynccontextmanager
async def lifespan(app: FastAPI):  # noqa: ARG001
    global _config  # noqa: PLW0603
    if _config_path.exists():
        try:
            _config = EngineConfig.from_json(_config_path)
            print(f"[host] Config loaded from {_config_path}")
        except (OSError, ValueError) as e:
            print(f"[host] Warning: could not load config: {e}")
    else:
        print(f"[host] No config at {_config_path}: using defaults")
    print(f"[host] Workspace root: {_workspace_root}")

    yield
    for session in _sessions.values():
        session.close()
    _sessions.clear()


# ---------------------------------------------------------------------------
# App
# ---------------------------------------------------------------------------
app = FastAPI(
    title="classlink preview host API",
    version="0.1.0",
    default_response_class=ORJSONResponse,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ],
    allow_credentials=True,
    allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
    allow_headers=["*"],
)


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------
class OpenDocumentRequest(BaseModel):
    path: str


class ReannotateRequest(BaseModel):
    document_text: str | None = None


class MappedEditRequest(BaseModel):
    uid: int = Field(ge=1)
    new_value: str


class HintModel(BaseModel):
    nearby_text: str = ""
    tag_name: str = ""
    element_id: str = ""


class DynamicEditRequest(BaseModel):
    before: str
    after: str
    hint: HintModel | None = None
    selection: str | None = None  # "only_active" | "everywhere" | file path


# ---------------------------------------------------------------------------
# Routes: Health
# ---------------------------------------------------------------------------
@app.get("/api/health")
async def health():
    return {
        "status": "ok",
        "workspace_root": str(_workspace_root),
        "open_documents": len(_sessions),
    }


# ---------------------------------------------------------------------------
# Routes: Documents
# ---------------------------------------------------------------------------
@app.post("/api/documents")
async def open_document(req: OpenDocumentRequest):
    """Open a preview: annotate the document and return its mapping."""
    path = _resolve_document(req.path)
    try:
        session = PreviewSession(path, workspace_root=_workspace_root, config=_config)
    except UnicodeDecodeError as e:
        raise HTTPException(status_code=400, detail=f"Not UTF-8 text: {req.path}") from e
    doc_id = uuid.uuid4().hex
    _sessions[doc_id] = session
    return {"doc_id": doc_id, **session.snapshot()}


@app.get("/api/documents/{doc_id}")
async def get_document(doc_id: str):
    return {"doc_id": doc_id, **_get_session(doc_id).snapshot()}


@app.post("/api/documents/{doc_id}/reannotate")
async def reannotate_document(doc_id: str, req: ReannotateRequest):
    """Re-derive the mapping (e.g. after an external save)."""
    session = _get_session(doc_id)
    payload = await session.reannotate(req.document_text)
    return {"doc_id": doc_id, **payload}


@app.delete("/api/documents/{doc_id}")
async def close_document(doc_id: str):
    session = _sessions.pop(doc_id, None)
    if session is None:
        raise HTTPException(status_code=404, detail=f"Document not open: {doc_id}")
    session.close()
    return {"doc_id": doc_id, "closed": True}


# ---------------------------------------------------------------------------
# Routes: Edits
# ---------------------------------------------------------------------------
@app.post("/api/documents/{doc_id}/edits/mapped")
async def apply_mapped_edit(doc_id: str, req: MappedEditRequest):
    session = _get_session(doc_id)
    result: dict[str, Any] = await session.apply_mapped_edit(req.uid, req.new_value)
    return result


@app.post("/api/documents/{doc_id}/edits/dynamic")
async def resolve_dynamic_edit(doc_id: str, req: DynamicEditRequest):
    session = _get_session(doc_id)
    hint = None
    if req.hint is not None:
        hint = EditHint(
            nearby_text=req.hint.nearby_text,
            tag_name=req.hint.tag_name,
            element_id=req.hint.element_id,
        )
    result: dict[str, Any] = await session.resolve_dynamic_edit(
        req.before, req.after, hint, selection=req.selection,
    )
    return result
