"""Lazily populated in-memory mirror of the remote repository tree.

The tree is used by the sidebar UI.  Folders are listed on demand: a
folder starts *unloaded* and ``expand`` fills in its children with one
``list`` call.

Storage
-------
A ``TreeSnapshot`` is an arena keyed by path: ``nodes`` maps every known
path to its ``Node`` and ``children`` maps each *loaded* folder to the
ordered paths of its direct children.  A folder missing from
``children`` is unloaded.  Replacing a folder's children is a single
index update; the nested view is rebuilt from the index on demand.

Snapshots are never modified.  ``TreeCache`` builds a new snapshot for
every change and swaps it in, so readers never see a half-applied update.
Staleness is not detected: callers ``reload`` a folder after writing or
deleting under it.
"""

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType

from notesync.errors import NotFound
from notesync.pathguard import clean_path, parent_of
from notesync.store import Node, NodeKind, RemoteFileStore

logger = logging.getLogger(__name__)

ROOT = Node(path="", name="", kind=NodeKind.FOLDER)

# Root label in the nested view, for a consistent frontend label.
ROOT_LABEL = "notes"


def _freeze(mapping: dict) -> Mapping:
    return MappingProxyType(mapping)


@dataclass(frozen=True)
class TreeSnapshot:
    """Immutable arena of nodes plus the listing state of each folder."""

    nodes: Mapping[str, Node] = field(default_factory=lambda: _freeze({"": ROOT}))
    children: Mapping[str, tuple[str, ...]] = field(default_factory=lambda: _freeze({}))

    def __contains__(self, path: str) -> bool:
        return path in self.nodes

    def node(self, path: str) -> Node:
        try:
            return self.nodes[path]
        except KeyError:
            raise NotFound(f"Not in tree: {path}", path=path) from None

    def is_loaded(self, path: str) -> bool:
        return path in self.children

    def children_of(self, path: str) -> tuple[Node, ...] | None:
        """Direct children of *path*, or None while the folder is unloaded."""
        paths = self.children.get(path)
        if paths is None:
            return None
        return tuple(self.nodes[p] for p in paths)

    # ── derivations (each returns a new snapshot) ───────────────────────

    def _without_descendants(self, path: str) -> tuple[dict, dict]:
        """Copies of both indexes with everything strictly below *path* removed."""
        prefix = path + "/" if path else ""
        doomed = {p for p in self.nodes if p != path and p.startswith(prefix)}
        nodes = {p: n for p, n in self.nodes.items() if p not in doomed}
        children = {
            p: c for p, c in self.children.items() if p not in doomed and p != path
        }
        return nodes, children

    def with_children(self, path: str, listing: list[Node]) -> "TreeSnapshot":
        """Replace the children of loaded-or-unloaded folder *path*.

        Loaded grandchildren survive when their folder is still listed, so
        expanding a folder twice does not collapse the branches below it.
        """
        keep = {
            n.path for n in listing if n.is_folder and n.path in self.nodes
            and self.nodes[n.path].is_folder
        }
        nodes = dict(self.nodes)
        children = dict(self.children)
        for old in self.children.get(path, ()):
            if old in keep:
                continue
            prefix = old + "/"
            for p in [p for p in nodes if p == old or p.startswith(prefix)]:
                del nodes[p]
                children.pop(p, None)
        for node in listing:
            nodes[node.path] = node
        children[path] = tuple(n.path for n in listing)
        return TreeSnapshot(_freeze(nodes), _freeze(children))

    def unloaded(self, path: str) -> "TreeSnapshot":
        """Forget everything below *path* and mark it unloaded."""
        nodes, children = self._without_descendants(path)
        return TreeSnapshot(_freeze(nodes), _freeze(children))

    def without(self, path: str) -> "TreeSnapshot":
        """Drop *path* and its subtree, unlinking it from its parent."""
        nodes, children = self._without_descendants(path)
        nodes.pop(path, None)
        parent = parent_of(path)
        if parent in children:
            children[parent] = tuple(p for p in children[parent] if p != path)
        return TreeSnapshot(_freeze(nodes), _freeze(children))

    # ── nested view ──────────────────────────────────────────────────────

    def view(self, path: str = "") -> dict:
        """Return a nested dict for *path*: directories first, then files."""
        node = self.node(path)
        if not node.is_folder:
            return {"type": "file", "name": node.name, "path": node.path, "sha": node.sha}
        kids = self.children_of(path)
        return {
            "type": "dir",
            "name": node.name or ROOT_LABEL,
            "path": node.path,
            "sha": node.sha,
            "children": None if kids is None else [self.view(k.path) for k in kids],
        }


class TreeCache:
    """Owns the current snapshot and swaps it wholesale on every change."""

    def __init__(self, store: RemoteFileStore) -> None:
        self._store = store
        self._snapshot = TreeSnapshot()

    @property
    def snapshot(self) -> TreeSnapshot:
        return self._snapshot

    def view(self, path: str = "") -> dict:
        return self._snapshot.view(clean_path(path))

    async def load_root(self) -> TreeSnapshot:
        return await self.expand("")

    async def expand(self, path: str) -> TreeSnapshot:
        """List folder *path* unless it is already loaded."""
        path = clean_path(path)
        node = self._snapshot.node(path)
        if not node.is_folder or self._snapshot.is_loaded(path):
            return self._snapshot
        return await self._load(path)

    async def reload(self, path: str = "") -> TreeSnapshot:
        """Re-list folder *path*, discarding whatever was cached below it.

        If the folder no longer exists remotely it is removed from the tree.
        """
        path = clean_path(path)
        if path not in self._snapshot:
            return self._snapshot
        self._snapshot = self._snapshot.unloaded(path)
        return await self._load(path)

    def invalidate(self, path: str) -> TreeSnapshot:
        """Mark the nearest cached folder at or above *path* as unloaded."""
        path = clean_path(path)
        while path and path not in self._snapshot:
            path = parent_of(path)
        self._snapshot = self._snapshot.unloaded(path)
        return self._snapshot

    async def _load(self, path: str) -> TreeSnapshot:
        try:
            listing = await self._store.list(path)
        except NotFound:
            if not path:
                raise
            logger.info("Folder %s vanished remotely; dropping it from the tree", path)
            self._snapshot = self._snapshot.without(path)
            return self._snapshot

        # The tree may have changed while we were waiting on the network.
        current = self._snapshot
        if path not in current:
            logger.debug("Discarding listing of %s: no longer in the tree", path)
            return current
        self._snapshot = current.with_children(path, listing)
        return self._snapshot
