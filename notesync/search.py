"""Full-text search, delegated to the backend.

Ranking is entirely the backend's business.  Search is advisory: any
failure is logged and answered with an empty result instead of an error.
"""

import logging

from notesync.errors import StoreError
from notesync.store import RemoteFileStore

logger = logging.getLogger(__name__)


async def search_notes(store: RemoteFileStore, query: str) -> list[dict]:
    """Return ``[{"name", "path"}]`` for Markdown notes matching *query*."""
    normalized = query.strip()
    if not normalized:
        return []

    try:
        return await store.search_code(normalized)
    except StoreError as exc:
        logger.warning("Search query failed (%s): %s", normalized, exc)
        return []
