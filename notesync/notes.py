"""Note parsing — split frontmatter from body for read responses.

Public API
----------
note_payload(file: FileContent) -> dict
    Returns ``{"path", "name", "sha", "title", "frontmatter", "body",
    "content"}`` for a fetched note.

Frontmatter handling
--------------------
* If the note starts with ``---\\n``, the block up to the next ``---`` is
  parsed as YAML.  On success ``frontmatter`` is the parsed dict; on failure
  (malformed YAML) it falls back to ``None`` and the *entire* note
  becomes the body.
* If there is no opening ``---``, ``frontmatter`` is ``None`` and the whole
  note is the body.
"""

import logging
import re

import yaml

from notesync.pathguard import name_of
from notesync.store import FileContent

logger = logging.getLogger(__name__)

# ── frontmatter splitter ─────────────────────────────────────────────────────

_DELIM = "---"

# "# Title" but not an inline tag such as "#idea"
_HEADING_RE = re.compile(r"#{1,6}\s+(.*)")


def parse_frontmatter(content: str) -> tuple[dict | None, str]:
    """Split *content* into (frontmatter_dict | None, body_string).

    Returns (None, content) when there is no valid frontmatter block.
    """
    # Must start with --- on its own line
    if not content.startswith(_DELIM + "\n"):
        return None, content

    # Find the closing ---
    end = content.find("\n" + _DELIM + "\n", len(_DELIM))
    if end == -1:
        # No closing delimiter — treat as no frontmatter
        return None, content

    raw_yaml = content[len(_DELIM) + 1 : end + 1]  # between the two ---
    body = content[end + 1 + len(_DELIM) + 1 :]  # after closing ---\n

    try:
        parsed = yaml.safe_load(raw_yaml)
    except yaml.YAMLError as exc:
        logger.warning("Malformed YAML frontmatter: %s", exc)
        return None, content

    # yaml.safe_load can return a scalar if the YAML is e.g. just a string
    if not isinstance(parsed, dict):
        logger.warning("Frontmatter is not a mapping — treating as absent")
        return None, content

    return parsed, body


def derive_title(name: str, body: str, frontmatter: dict | None) -> str:
    """Return the note title (frontmatter title, first H1, or filename)."""
    if frontmatter:
        title = frontmatter.get("title")
        if isinstance(title, str) and title.strip():
            return title.strip()
    for line in body.splitlines():
        match = _HEADING_RE.match(line.strip())
        if match and match.group(1).strip():
            return match.group(1).strip().rstrip("#").strip()
    return name[:-3] if name.lower().endswith(".md") else name


# ── public API ───────────────────────────────────────────────────────────────


def note_payload(file: FileContent) -> dict:
    frontmatter, body = parse_frontmatter(file.content)
    name = name_of(file.path)
    return {
        "path": file.path,
        "name": name,
        "sha": file.sha,
        "title": derive_title(name, body, frontmatter),
        "frontmatter": frontmatter,
        "body": body,
        "content": file.content,
    }
