"""Repository path-guard — validates and normalises every remote path.

All store operations **must** pass their path through this module before
it is interpolated into a request URL.

Public helpers
--------------
clean_path(raw)     → str   – normalised slash-delimited path ("" is the root).
clean_file(raw)     → str   – like clean_path, but the root is rejected.
parent_of(path)     → str   – parent folder ("" for top-level entries).
name_of(path)       → str   – last segment.
is_markdown(name)   → bool  – ``.md`` check, case-insensitive.

PathError (400) is raised for malformed input (null byte, backslash,
``.``/``..`` segments).
"""

from notesync.errors import PathError


def clean_path(raw: str) -> str:
    """Validate *raw* and return it without surrounding or doubled slashes.

    Checks (in order)
    -----------------
    1. No null bytes.
    2. No backslashes (rules out Windows-style path tricks).
    3. No ``.`` or ``..`` segments anywhere.
    """
    # 1 – null bytes
    if "\x00" in raw:
        raise PathError("Path must not contain null bytes.", path=raw)

    # 2 – backslashes
    if "\\" in raw:
        raise PathError("Path must not contain backslashes.", path=raw)

    segments = [seg for seg in raw.strip().split("/") if seg]

    # 3 – no "." / ".." anywhere
    if any(seg in (".", "..") for seg in segments):
        raise PathError("Path must not contain '.' or '..' segments.", path=raw)

    return "/".join(segments)


def clean_file(raw: str) -> str:
    """Validate *raw* as a path that names an entry, never the root."""
    path = clean_path(raw)
    if not path:
        raise PathError("Path must name a file, not the repository root.", path=raw)
    return path


def join(*parts: str) -> str:
    return clean_path("/".join(parts))


def parent_of(path: str) -> str:
    head, _, _ = path.rpartition("/")
    return head


def name_of(path: str) -> str:
    return path.rpartition("/")[2]


def is_markdown(name: str) -> bool:
    return name.lower().endswith(".md")
