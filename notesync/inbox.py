"""Quick capture: drop a thought into the inbox folder as a new note."""

import logging
from collections.abc import Callable
from datetime import datetime

from notesync.config import Settings
from notesync.pathguard import join
from notesync.store import RemoteFileStore

logger = logging.getLogger(__name__)


async def capture(
    store: RemoteFileStore,
    settings: Settings,
    text: str,
    *,
    now: Callable[[], datetime] = datetime.now,
) -> dict:
    """Create ``<INBOX_DIR>/<YYYY-MM-DD-HHMMSS>.md`` holding *text*.

    Always a create: two captures in the same second collide with
    ``AlreadyExists`` instead of overwriting each other.
    """
    body = text.strip()
    if not body:
        raise ValueError("Nothing to capture.")
    path = join(settings.inbox_dir, f"{now().strftime('%Y-%m-%d-%H%M%S')}.md")
    sha = await store.write(path, body + "\n", "Quick capture")
    logger.info("Captured note %s", path)
    return {"path": path, "sha": sha}
