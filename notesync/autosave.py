"""Debounced, conflict-aware autosave for the one document being edited.

State machine
-------------
    CLEAN ──edit──▶ DIRTY ──timer──▶ SAVING ──ok──▶ CLEAN
                      ▲                 │
                      └──edit── CONFLICT ◀──stale token

* Every ``edit`` marks the document DIRTY and restarts the debounce timer
  (one pending timer per controller, cancelled and replaced each time).
* When the timer fires the controller re-reads the remote version token
  and only writes if it still matches the token the document was opened
  with.  A mismatch (or a ``Conflict`` from the write itself) moves to
  CONFLICT and notifies ``on_conflict``; the local text is kept.  The next
  edit moves back to DIRTY; ``keep_local`` or ``reload`` resolve it.
* Saves are serialised by a lock: a new attempt never starts before the
  previous one resolved.
* ``close`` saves a DIRTY document first and raises
  ``UnsavedChangesError`` when that is impossible, unless told to discard.
* A save that outlives its document (closed or switched meanwhile) still
  completes remotely, but its result is dropped: each opened document
  gets a new generation number that late results are checked against.

The timer goes through a ``Scheduler`` so tests can drive time by hand.
"""

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass, replace
from enum import Enum
from typing import Protocol

from notesync.config import DEFAULT_AUTOSAVE_DELAY
from notesync.daily import DailyNote
from notesync.errors import Conflict, NotFound, StoreError, UnsavedChangesError
from notesync.pathguard import name_of
from notesync.store import RemoteFileStore

logger = logging.getLogger(__name__)


class SaveState(str, Enum):
    CLEAN = "clean"
    DIRTY = "dirty"
    SAVING = "saving"
    CONFLICT = "conflict"


@dataclass(frozen=True)
class Document:
    """Editable projection of one remote file."""

    path: str
    content: str
    sha: str | None  # None until the file exists remotely
    dirty: bool = False


# ── scheduling ───────────────────────────────────────────────────────────────


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle: ...


class LoopScheduler:
    """Schedules callbacks on the running event loop."""

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        return asyncio.get_running_loop().call_later(delay, callback)


# ── controller ───────────────────────────────────────────────────────────────


class AutosaveController:
    def __init__(
        self,
        store: RemoteFileStore,
        *,
        delay: float = DEFAULT_AUTOSAVE_DELAY,
        scheduler: Scheduler | None = None,
        on_state: Callable[[SaveState], None] | None = None,
        on_conflict: Callable[[Conflict], None] | None = None,
        on_error: Callable[[StoreError], None] | None = None,
    ) -> None:
        self._store = store
        self._delay = delay
        self._scheduler = scheduler or LoopScheduler()
        self._on_state = on_state
        self._on_conflict = on_conflict
        self._on_error = on_error

        self._document: Document | None = None
        self._state = SaveState.CLEAN
        self._generation = 0
        self._timer: TimerHandle | None = None
        self._lock = asyncio.Lock()
        self._tasks: set[asyncio.Task] = set()

    @property
    def document(self) -> Document | None:
        return self._document

    @property
    def state(self) -> SaveState:
        return self._state

    # ── lifecycle ────────────────────────────────────────────────────────

    async def open(self, path: str) -> Document:
        """Release the current document (saving it) and load *path*."""
        await self.close()
        file = await self._store.read(path)
        return self._adopt(Document(path=file.path, content=file.content, sha=file.sha))

    async def open_note(self, note: DailyNote) -> Document:
        """Track a daily note, which may not exist remotely yet."""
        await self.close()
        return self._adopt(Document(path=note.path, content=note.content, sha=note.sha))

    async def close(self, *, discard: bool = False) -> None:
        """Save pending edits, then release the document.

        Raises UnsavedChangesError (keeping the document open) when the
        edits could not be saved and *discard* is False.
        """
        self._cancel_timer()
        doc = self._document
        if doc is None:
            return
        if not discard:
            try:
                await self._save()
            except StoreError as exc:
                raise UnsavedChangesError(
                    f"Could not save {doc.path} before closing: {exc}", path=doc.path
                ) from exc
            if self._state in (SaveState.DIRTY, SaveState.CONFLICT):
                raise UnsavedChangesError(
                    f"{doc.path} has unsaved changes ({self._state.value})",
                    path=doc.path,
                )
        elif doc.dirty:
            logger.warning("Discarding unsaved edits to %s", doc.path)
        self._generation += 1
        self._document = None
        self._set_state(SaveState.CLEAN)

    def _adopt(self, doc: Document) -> Document:
        self._generation += 1
        self._document = doc
        self._set_state(SaveState.CLEAN)
        return doc

    # ── editing ──────────────────────────────────────────────────────────

    def edit(self, text: str) -> None:
        doc = self._require_document()
        if text == doc.content and self._state is SaveState.CLEAN:
            return
        self._document = replace(doc, content=text, dirty=True)
        self._set_state(SaveState.DIRTY)
        self._schedule()

    async def flush(self) -> SaveState:
        """Save now instead of waiting for the debounce timer."""
        self._cancel_timer()
        await self._save()
        return self._state

    async def settle(self) -> None:
        """Wait for background saves started by the timer."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def reload(self) -> Document:
        """Drop local edits and load the remote version."""
        doc = self._require_document()
        self._cancel_timer()
        file = await self._store.read(doc.path)
        return self._adopt(Document(path=file.path, content=file.content, sha=file.sha))

    async def keep_local(self) -> Document:
        """Resolve a conflict in favour of the local text.

        Adopts the current remote token so the next save overwrites the
        remote version deliberately.
        """
        doc = self._require_document()
        if self._state is not SaveState.CONFLICT:
            return doc
        sha = await self._remote_sha(doc.path)
        self._document = replace(self._require_document(), sha=sha, dirty=True)
        self._set_state(SaveState.DIRTY)
        self._schedule()
        return self._document

    # ── internals ────────────────────────────────────────────────────────

    def _require_document(self) -> Document:
        if self._document is None:
            raise RuntimeError("No document is open.")
        return self._document

    def _set_state(self, state: SaveState) -> None:
        if state is self._state:
            return
        self._state = state
        logger.debug("Autosave state -> %s", state.value)
        if self._on_state:
            self._on_state(state)

    def _schedule(self) -> None:
        self._cancel_timer()
        self._timer = self._scheduler.call_later(self._delay, self._on_timer)

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _on_timer(self) -> None:
        self._timer = None
        if self._state is not SaveState.DIRTY:
            return
        task = asyncio.ensure_future(self._autosave())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _autosave(self) -> None:
        try:
            await self._save()
        except StoreError as exc:
            logger.warning("Autosave failed (%s): %s", exc.code, exc)
            if self._on_error:
                self._on_error(exc)

    async def _remote_sha(self, path: str) -> str | None:
        try:
            return (await self._store.read(path)).sha
        except NotFound:
            return None

    async def _save(self) -> None:
        async with self._lock:
            doc = self._document
            if doc is None or self._state is not SaveState.DIRTY:
                return
            generation = self._generation
            self._set_state(SaveState.SAVING)
            try:
                current = await self._remote_sha(doc.path)
                if current != doc.sha:
                    raise Conflict(f"{doc.path} changed remotely", path=doc.path)
                new_sha = await self._store.write(
                    doc.path, doc.content, f"Update {name_of(doc.path)}", doc.sha
                )
            except Conflict as exc:
                if generation == self._generation:
                    logger.warning("Save conflict on %s", doc.path)
                    self._set_state(SaveState.CONFLICT)
                    if self._on_conflict:
                        self._on_conflict(exc)
                return
            except BaseException:
                if generation == self._generation and self._state is SaveState.SAVING:
                    self._set_state(SaveState.DIRTY)
                raise

            if generation != self._generation:
                logger.warning("Dropping late save result for %s", doc.path)
                return
            latest = self._require_document()
            dirty = latest.content != doc.content
            self._document = replace(latest, sha=new_sha, dirty=dirty)
            self._set_state(SaveState.DIRTY if dirty else SaveState.CLEAN)
