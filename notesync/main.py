"""NoteSync — FastAPI surface over the remote file store."""

import secrets
from contextlib import asynccontextmanager
from datetime import date

from fastapi import Depends, FastAPI, Header, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from notesync import config, directories, inbox, search
from notesync.config import Settings
from notesync.daily import DEFAULT_RECENT_DAYS, DailyNotes
from notesync.errors import PartialDeleteError, StoreError
from notesync.notes import note_payload
from notesync.pathguard import clean_file, parent_of
from notesync.store import RemoteFileStore
from notesync.tree import TreeCache


def build_store(settings: Settings) -> RemoteFileStore:
    return RemoteFileStore(settings)


# ── Lifespan (startup / shutdown) ────────────────────────────────────────────


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup ── load + validate config (sys.exit on error)
    settings = config.load()
    store = build_store(settings)
    app.state.settings = settings
    app.state.store = store
    app.state.tree = TreeCache(store)
    app.state.daily = DailyNotes(store, settings)
    try:
        yield
    finally:
        await store.aclose()


# ── App ──────────────────────────────────────────────────────────────────────

app = FastAPI(title="NoteSync", lifespan=lifespan)


@app.exception_handler(StoreError)
async def store_error_handler(_request: Request, exc: StoreError) -> JSONResponse:
    content = {"error": exc.code, "detail": exc.detail, "path": exc.path}
    if isinstance(exc, PartialDeleteError):
        # paths already removed remotely
        content["deleted"] = exc.deleted
    return JSONResponse(content, status_code=exc.status_code)


# ── Dependencies ─────────────────────────────────────────────────────────────


def require_auth(request: Request, authorization: str | None = Header(default=None)) -> None:
    """Check the bearer token when NOTESYNC_API_TOKEN is set. Raises 401."""
    expected = request.app.state.settings.api_token
    if not expected:
        return
    scheme, _, token = (authorization or "").partition(" ")
    if scheme.lower() != "bearer" or not secrets.compare_digest(token, expected):
        raise HTTPException(status_code=401, detail="Not authenticated")


def get_store(request: Request) -> RemoteFileStore:
    return request.app.state.store


def get_tree(request: Request) -> TreeCache:
    return request.app.state.tree


def get_daily(request: Request) -> DailyNotes:
    return request.app.state.daily


# ── Request bodies ───────────────────────────────────────────────────────────


class NoteWrite(BaseModel):
    content: str
    sha: str | None = None
    message: str | None = None


class DailyWrite(BaseModel):
    content: str
    sha: str | None = None


class TextEntry(BaseModel):
    text: str


# ── API routes ───────────────────────────────────────────────────────────────


@app.get("/api/healthz", dependencies=[Depends(require_auth)])
async def healthz(request: Request) -> dict:
    """Liveness / health check; reports missing credentials without failing."""
    return {"status": "ok", "missing": request.app.state.settings.missing()}


# ── Tree ─────────────────────────────────────────────────────────────────────


@app.get("/api/tree", dependencies=[Depends(require_auth)])
async def api_tree(tree: TreeCache = Depends(get_tree)) -> dict:
    """Return the cached tree, listing the root on first use."""
    await tree.load_root()
    return tree.view()


@app.post("/api/tree/expand", dependencies=[Depends(require_auth)])
async def api_tree_expand(path: str = "", tree: TreeCache = Depends(get_tree)) -> dict:
    await tree.expand(path)
    return tree.view()


@app.post("/api/tree/reload", dependencies=[Depends(require_auth)])
async def api_tree_reload(path: str = "", tree: TreeCache = Depends(get_tree)) -> dict:
    await tree.reload(path)
    return tree.view()


# ── Search (must be before /api/notes/{path:path}) ───────────────────────────


@app.get("/api/notes/search", dependencies=[Depends(require_auth)])
async def api_search(
    q: str | None = None, store: RemoteFileStore = Depends(get_store)
) -> list[dict]:
    return await search.search_notes(store, q or "")


# ── Notes ────────────────────────────────────────────────────────────────────


@app.get("/api/notes/{path:path}", dependencies=[Depends(require_auth)])
async def api_read_note(path: str, store: RemoteFileStore = Depends(get_store)) -> dict:
    """Read a single note — parsed frontmatter, body and version token."""
    return note_payload(await store.read(path))


@app.put("/api/notes/{path:path}", dependencies=[Depends(require_auth)])
async def api_write_note(
    path: str,
    body: NoteWrite,
    store: RemoteFileStore = Depends(get_store),
    tree: TreeCache = Depends(get_tree),
) -> dict:
    """Create (no sha) or update (with sha) a note."""
    path = clean_file(path)
    message = body.message or (f"Update {path}" if body.sha else f"Create {path}")
    sha = await store.write(path, body.content, message, body.sha)
    tree.invalidate(parent_of(path))
    return {"path": path, "sha": sha}


@app.delete("/api/notes/{path:path}", dependencies=[Depends(require_auth)])
async def api_delete_note(
    path: str,
    sha: str,
    store: RemoteFileStore = Depends(get_store),
    tree: TreeCache = Depends(get_tree),
) -> dict:
    path = clean_file(path)
    await store.remove(path, sha, f"Delete {path}")
    tree.invalidate(parent_of(path))
    return {"path": path}


# ── Directories ──────────────────────────────────────────────────────────────


@app.post("/api/dirs/{path:path}", dependencies=[Depends(require_auth)])
async def api_create_dir(
    path: str,
    store: RemoteFileStore = Depends(get_store),
    tree: TreeCache = Depends(get_tree),
) -> dict:
    path = clean_file(path)
    created = await directories.create_directory(store, path)
    tree.invalidate(parent_of(path))
    return {"path": path, "created": created}


@app.delete("/api/dirs/{path:path}", dependencies=[Depends(require_auth)])
async def api_delete_dir(
    path: str,
    store: RemoteFileStore = Depends(get_store),
    tree: TreeCache = Depends(get_tree),
) -> dict:
    path = clean_file(path)
    try:
        deleted = await directories.delete_subtree(store, path)
    finally:
        # partial deletes change the tree too
        tree.invalidate(parent_of(path))
    return {"path": path, "deleted": deleted}


# ── Daily notes ──────────────────────────────────────────────────────────────


@app.get("/api/daily", dependencies=[Depends(require_auth)])
async def api_daily_recent(
    days: int = DEFAULT_RECENT_DAYS, daily: DailyNotes = Depends(get_daily)
) -> list[dict]:
    if not 1 <= days <= 31:
        raise HTTPException(status_code=400, detail="days must be between 1 and 31")
    return [note.to_dict() for note in await daily.list_recent(days)]


@app.post("/api/daily/append", dependencies=[Depends(require_auth)])
async def api_daily_append(body: TextEntry, daily: DailyNotes = Depends(get_daily)) -> dict:
    try:
        note = await daily.append(body.text)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return note.to_dict()


@app.get("/api/daily/{day}", dependencies=[Depends(require_auth)])
async def api_daily_get(day: date, daily: DailyNotes = Depends(get_daily)) -> dict:
    return (await daily.get_or_create(day)).to_dict()


@app.put("/api/daily/{day}", dependencies=[Depends(require_auth)])
async def api_daily_put(
    day: date, body: DailyWrite, daily: DailyNotes = Depends(get_daily)
) -> dict:
    return (await daily.update(day, body.content, body.sha)).to_dict()


# ── Inbox / attachments ──────────────────────────────────────────────────────


@app.post("/api/inbox", dependencies=[Depends(require_auth)])
async def api_inbox(
    body: TextEntry, request: Request, store: RemoteFileStore = Depends(get_store)
) -> dict:
    try:
        return await inbox.capture(store, request.app.state.settings, body.text)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


@app.post("/api/attachments/{path:path}", dependencies=[Depends(require_auth)])
async def api_upload_attachment(
    path: str, request: Request, store: RemoteFileStore = Depends(get_store)
) -> dict:
    """Binary uploads are not implemented; always answers 415."""
    data = await request.body()
    sha = await store.upload_binary(path, data, f"Upload {path}")
    return {"path": path, "sha": sha}
