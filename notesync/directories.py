"""Recursive directory operations built on the single-node store.

The backend has no notion of an empty directory: a folder exists while
something lives under it.  ``create_directory`` therefore writes a
zero-byte ``.keep`` placeholder, and ``delete_subtree`` removes every
entry bottom-up (placeholders and non-Markdown files included).

Sibling deletions at one level run concurrently.  The first failure wins,
but deletions already issued are not rolled back: when some entries were
removed before the failure, ``PartialDeleteError`` reports them.
"""

import asyncio
import logging

from notesync.errors import (
    AlreadyExists,
    NotADirectory,
    NotFound,
    PartialDeleteError,
    PathError,
    StoreError,
)
from notesync.pathguard import clean_file, join
from notesync.store import Node, RemoteFileStore

logger = logging.getLogger(__name__)

PLACEHOLDER = ".keep"


async def _delete(store: RemoteFileStore, path: str, deleted: list[str]) -> None:
    try:
        children = await store.list(path, markdown_only=False)
    except NotADirectory:
        raise
    except NotFound:
        return  # already gone

    async def _child(node: Node) -> None:
        if node.is_folder:
            await _delete(store, node.path, deleted)
        else:
            await store.remove(node.path, node.sha, f"Delete {node.path}")
            deleted.append(node.path)

    results = await asyncio.gather(
        *(_child(node) for node in children), return_exceptions=True
    )
    for result in results:
        if isinstance(result, BaseException):
            raise result


async def delete_subtree(store: RemoteFileStore, path: str) -> list[str]:
    """Delete *path* and everything below it; return the removed file paths.

    Deleting a path that does not exist succeeds without doing anything,
    so calling this twice in a row is safe.  A path naming a file raises
    ``PathError``; single files are removed with ``store.remove``.
    """
    path = clean_file(path)
    deleted: list[str] = []
    try:
        await _delete(store, path, deleted)
    except StoreError as exc:
        if not deleted:
            if isinstance(exc, NotADirectory) and exc.path == path:
                raise PathError(f"Not a directory: {path}", path=path) from exc
            raise
        logger.warning(
            "Partial delete of %s: %d entries removed before %s",
            path, len(deleted), exc.code,
        )
        raise PartialDeleteError(path, sorted(deleted), exc) from exc
    logger.info("Deleted %s (%d entries)", path, len(deleted))
    return sorted(deleted)


async def create_directory(store: RemoteFileStore, path: str) -> bool:
    """Materialise folder *path* through a placeholder file.

    Returns True when the placeholder was written, False when it already
    existed (creating an existing directory is a no-op).
    """
    marker = join(clean_file(path), PLACEHOLDER)
    try:
        await store.read(marker)
        return False
    except NotFound:
        pass

    try:
        await store.write(marker, "", f"Create directory {path}")
    except AlreadyExists:
        # created concurrently by someone else
        return False
    return True
