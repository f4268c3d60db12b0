"""Daily notes: one Markdown file per calendar day.

The note for a date lives at ``<DAILY_DIR>/<YYYY-MM-DD>.md``.  A day
without a remote file still has a note: ``get_or_create`` returns an
unpersisted ``DailyNote`` with ``is_new=True`` so there is always a
"today" to write into.  The first write creates the file.

Older revisions of the notes carried YAML front matter, ``date:`` lines
and ``# <date> … 日记`` headings.  ``sanitize`` strips those artefacts
before display and before every write, so appending never stacks up
duplicated headers.
"""

import asyncio
import logging
import re
from collections.abc import Callable
from dataclasses import dataclass
from datetime import date, datetime, timedelta

from notesync.config import Settings
from notesync.errors import NotFound
from notesync.pathguard import join
from notesync.store import RemoteFileStore

logger = logging.getLogger(__name__)

DEFAULT_RECENT_DAYS = 7

_FRONTMATTER = re.compile(r"^---\n.*?\n---\n*", re.DOTALL)
_ANY_DATE_LINE = re.compile(r"^date:\s*\d{4}-\d{2}-\d{2}.*(?:\n|$)", re.MULTILINE)
_DIARY_HEADING = re.compile(r"^#\s*\d{4}-\d{2}-\d{2}.*日记.*(?:\n|$)", re.MULTILINE)


def sanitize(raw: str | None, day: date) -> str:
    """Strip front matter and date headers left by earlier conventions."""
    iso = re.escape(day.isoformat())
    text = raw or ""
    text = _FRONTMATTER.sub("", text, count=1)
    text = re.sub(rf"^date:\s*{iso}.*(?:\n|$)", "", text, count=1, flags=re.MULTILINE)
    text = _ANY_DATE_LINE.sub("", text, count=1)
    text = _DIARY_HEADING.sub("", text, count=1)
    text = re.sub(rf"^#\s*{iso}.*(?:\n|$)", "", text, count=1, flags=re.MULTILINE)
    return text.strip()


@dataclass(frozen=True)
class DailyNote:
    date: date
    path: str
    content: str = ""
    sha: str | None = None
    is_new: bool = True

    @property
    def body(self) -> str:
        """Content as shown to the user (sanitised)."""
        return sanitize(self.content, self.date)

    def to_dict(self) -> dict:
        return {
            "date": self.date.isoformat(),
            "path": self.path,
            "content": self.content,
            "body": self.body,
            "sha": self.sha,
            "is_new": self.is_new,
        }


class DailyNotes:
    """Convention layer mapping calendar dates onto store paths."""

    def __init__(
        self,
        store: RemoteFileStore,
        settings: Settings,
        *,
        now: Callable[[], datetime] = datetime.now,
    ) -> None:
        self._store = store
        self._dir = settings.daily_dir
        self._now = now

    def today(self) -> date:
        return self._now().date()

    def path_for(self, day: date) -> str:
        return join(self._dir, f"{day.isoformat()}.md")

    async def get_or_create(self, day: date) -> DailyNote:
        """Fetch the note for *day*, or an unsaved blank one if none exists."""
        path = self.path_for(day)
        try:
            file = await self._store.read(path)
        except NotFound:
            return DailyNote(date=day, path=path)
        return DailyNote(
            date=day, path=path, content=file.content, sha=file.sha, is_new=False
        )

    async def list_recent(self, days: int = DEFAULT_RECENT_DAYS) -> list[DailyNote]:
        """The last *days* notes ending today, newest first."""
        if days < 1:
            raise ValueError("days must be at least 1")
        today = self.today()
        dates = [today - timedelta(days=offset) for offset in range(days)]
        # gather preserves argument order regardless of completion order
        return list(await asyncio.gather(*(self.get_or_create(d) for d in dates)))

    async def update(self, day: date, content: str, sha: str | None = None) -> DailyNote:
        """Replace the note for *day* with sanitised *content*.

        The latest token is re-read right before writing; *sha* is only a
        fallback for when the note does not exist remotely yet.
        """
        body = sanitize(content, day)
        path = self.path_for(day)
        try:
            latest = await self._store.read(path)
            sha = latest.sha
        except NotFound:
            pass
        new_sha = await self._store.write(
            path, body, f"Update daily note {day.isoformat()}", sha
        )
        return DailyNote(date=day, path=path, content=body, sha=new_sha, is_new=False)

    async def append(self, text: str) -> DailyNote:
        """Add a timestamped entry to the end of today's note."""
        entry = text.strip()
        if not entry:
            raise ValueError("Nothing to append.")

        now = self._now()
        note = await self.get_or_create(now.date())
        stamp = f"**{now.strftime('%H:%M')}** {entry}"
        body = note.body
        content = f"{body}\n\n{stamp}" if body else stamp

        new_sha = await self._store.write(
            note.path,
            content,
            f"Append to daily note {note.date.isoformat()}",
            None if note.is_new else note.sha,
        )
        logger.info("Appended %d chars to %s", len(entry), note.path)
        return DailyNote(
            date=note.date, path=note.path, content=content, sha=new_sha, is_new=False
        )
