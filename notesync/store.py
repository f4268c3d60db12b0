"""Remote file store — the GitHub contents API as a mutable file store.

Public API
----------
RemoteFileStore(settings, transport=None)
    list(path, markdown_only=True) -> list[Node]
    read(path)                     -> FileContent
    write(path, content, message, sha=None) -> str   (new version token)
    remove(path, sha, message)     -> None
    upload_binary(path, data, message)      -> never returns (Unsupported)
    search_code(query)             -> list[dict]     (raises; see search.py)

Version tokens are the blob SHAs the backend returns.  A write or delete
that carries a token the backend no longer holds fails with ``Conflict``;
a write without a token is a create and fails with ``AlreadyExists`` when
the path is occupied.  Nothing here retries.

Content travels base64-encoded; ``encode_content``/``decode_content`` are
an exact UTF-8 round trip for any Unicode text.
"""

from __future__ import annotations

import base64
import binascii
import logging
from dataclasses import dataclass
from enum import Enum
from urllib.parse import quote

import httpx

from notesync.config import Settings
from notesync.errors import (
    AlreadyExists,
    Conflict,
    NotADirectory,
    NotFound,
    StoreError,
    Unauthorized,
    Unavailable,
    Unsupported,
)
from notesync.pathguard import clean_file, clean_path, is_markdown

logger = logging.getLogger(__name__)

_ACCEPT = "application/vnd.github.v3+json"
_SEARCH_LIMIT = 20


# ── data model ───────────────────────────────────────────────────────────────


class NodeKind(str, Enum):
    FILE = "file"
    FOLDER = "folder"


@dataclass(frozen=True)
class Node:
    """One remote entry as reported by a directory listing."""

    path: str
    name: str
    kind: NodeKind
    sha: str | None = None

    @property
    def is_folder(self) -> bool:
        return self.kind is NodeKind.FOLDER


@dataclass(frozen=True)
class FileContent:
    path: str
    content: str
    sha: str


# ── content codec ────────────────────────────────────────────────────────────


def encode_content(text: str) -> str:
    """UTF-8 encode *text* and wrap it in base64 for transport."""
    return base64.b64encode(text.encode("utf-8")).decode("ascii")


def decode_content(payload: str, path: str | None = None) -> str:
    """Reverse ``encode_content``.  Non-UTF-8 blobs are ``Unsupported``."""
    try:
        raw = base64.b64decode(payload)
    except (binascii.Error, ValueError) as exc:
        raise Unavailable(f"Malformed content payload: {exc}", path=path) from exc
    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise Unsupported("Binary content cannot be edited as text.", path=path) from exc


def _sort_key(node: Node) -> tuple[int, str]:
    # folders first, then files; each group by name
    return (0 if node.is_folder else 1, node.name)


# ── client ───────────────────────────────────────────────────────────────────


class RemoteFileStore:
    """Stateless path-keyed operations against one configured repository."""

    def __init__(
        self,
        settings: Settings,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.settings = settings
        # Building the client performs no I/O; credentials are checked per call.
        self._client = httpx.AsyncClient(
            base_url=settings.api_url,
            headers={
                "Authorization": f"token {settings.github_token}",
                "Accept": _ACCEPT,
            },
            timeout=settings.timeout,
            transport=transport,
        )

    async def __aenter__(self) -> "RemoteFileStore":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    # ── transport helpers ────────────────────────────────────────────────

    def _contents_url(self, path: str) -> str:
        s = self.settings
        return f"/repos/{quote(s.repo_owner)}/{quote(s.repo_name)}/contents/{quote(path)}"

    async def _request(self, method: str, url: str, **kwargs) -> httpx.Response:
        self.settings.require()
        logger.debug("%s %s", method, url)
        try:
            return await self._client.request(method, url, **kwargs)
        except httpx.TimeoutException as exc:
            raise Unavailable(f"Request timed out: {method} {url}") from exc
        except httpx.HTTPError as exc:
            raise Unavailable(f"Request failed: {method} {url}: {exc}") from exc

    @staticmethod
    def _message(response: httpx.Response) -> str:
        try:
            body = response.json()
        except ValueError:
            return response.text or response.reason_phrase
        if isinstance(body, dict) and body.get("message"):
            return str(body["message"])
        return response.reason_phrase

    def _raise_for_status(
        self, response: httpx.Response, path: str, *, sha: str | None = None
    ) -> None:
        """Map a non-2xx response onto the error taxonomy."""
        if response.is_success:
            return
        status = response.status_code
        detail = f"{status} {self._message(response)}"

        if status == 401:
            raise Unauthorized(detail, path=path)
        if status == 403:
            if response.headers.get("X-RateLimit-Remaining") == "0":
                raise Unavailable(f"Rate limited: {detail}", path=path)
            raise Unauthorized(detail, path=path)
        if status == 404:
            raise NotFound(f"Not found: {path}", path=path)
        if status == 409:
            raise Conflict(f"Stale version token for {path}: {detail}", path=path)
        if status == 422:
            if sha is None:
                raise AlreadyExists(f"Path already exists: {path}", path=path)
            raise Conflict(f"Stale version token for {path}: {detail}", path=path)
        raise Unavailable(detail, path=path)

    @staticmethod
    def _json(response: httpx.Response, path: str):
        try:
            return response.json()
        except ValueError as exc:
            raise Unavailable(f"Malformed response for {path}", path=path) from exc

    # ── operations ───────────────────────────────────────────────────────

    async def list(self, path: str = "", *, markdown_only: bool = True) -> list[Node]:
        """Return the immediate children of *path* ("" is the root).

        Folders and Markdown files only, unless *markdown_only* is False.
        Listing a file raises ``NotADirectory`` (a ``NotFound``).
        """
        path = clean_path(path)
        response = await self._request(
            "GET", self._contents_url(path), params={"ref": self.settings.branch}
        )
        self._raise_for_status(response, path)
        data = self._json(response, path)
        if not isinstance(data, list):
            raise NotADirectory(f"Not a directory: {path}", path=path)

        nodes: list[Node] = []
        for item in data:
            kind = item.get("type")
            name = item.get("name", "")
            if kind == "dir":
                nodes.append(Node(item["path"], name, NodeKind.FOLDER, item.get("sha")))
            elif kind in ("file", "symlink"):
                if markdown_only and not is_markdown(name):
                    continue
                nodes.append(Node(item["path"], name, NodeKind.FILE, item.get("sha")))
            # submodules — skip silently
        nodes.sort(key=_sort_key)
        return nodes

    async def read(self, path: str) -> FileContent:
        """Fetch one file's text and its current version token."""
        path = clean_file(path)
        response = await self._request(
            "GET", self._contents_url(path), params={"ref": self.settings.branch}
        )
        self._raise_for_status(response, path)
        data = self._json(response, path)
        if not isinstance(data, dict) or data.get("type") != "file":
            raise NotFound(f"Not a file: {path}", path=path)
        if data.get("encoding") != "base64":
            raise Unsupported(f"Content of {path} is not available inline.", path=path)
        return FileContent(
            path=path,
            content=decode_content(data.get("content", ""), path),
            sha=data["sha"],
        )

    async def write(
        self, path: str, content: str, message: str, sha: str | None = None
    ) -> str:
        """Create (no *sha*) or update (with *sha*) a file; return the new token."""
        path = clean_file(path)
        if not isinstance(content, str):
            raise Unsupported("Only text content can be written.", path=path)
        if not message.strip():
            raise ValueError("A commit message is required.")

        body = {
            "message": message,
            "content": encode_content(content),
            "branch": self.settings.branch,
        }
        if sha is not None:
            body["sha"] = sha

        response = await self._request("PUT", self._contents_url(path), json=body)
        self._raise_for_status(response, path, sha=sha)
        data = self._json(response, path)
        try:
            new_sha = data["content"]["sha"]
        except (KeyError, TypeError) as exc:
            raise Unavailable(f"Write of {path} returned no version token", path=path) from exc
        logger.info("Wrote %s (%s)", path, new_sha[:7])
        return new_sha

    async def remove(self, path: str, sha: str, message: str) -> None:
        """Delete one file, provided *sha* still matches the remote state."""
        path = clean_file(path)
        body = {"message": message, "sha": sha, "branch": self.settings.branch}
        response = await self._request("DELETE", self._contents_url(path), json=body)
        self._raise_for_status(response, path, sha=sha)
        logger.info("Deleted %s", path)

    async def upload_binary(self, path: str, data: bytes, message: str) -> str:
        """Binary assets are not supported; fail loudly instead of corrupting."""
        raise Unsupported("Binary asset upload is not implemented.", path=path)

    async def search_code(self, query: str) -> list[dict]:
        """Backend full-text search over Markdown files of this repository."""
        s = self.settings
        q = f"{query} repo:{s.repo} extension:md"
        response = await self._request(
            "GET", "/search/code", params={"q": q, "per_page": _SEARCH_LIMIT}
        )
        self._raise_for_status(response, "search")
        data = self._json(response, "search")
        items = data.get("items") if isinstance(data, dict) else None
        if not isinstance(items, list):
            raise Unavailable("Malformed search response", path="search")

        results: list[dict] = []
        for item in items:
            name = item.get("name") if isinstance(item, dict) else None
            path = item.get("path") if isinstance(item, dict) else None
            if not isinstance(name, str) or not isinstance(path, str):
                logger.debug("Skipping malformed search item: %r", item)
                continue
            results.append({"name": name, "path": path})
        return results


__all__ = [
    "FileContent",
    "Node",
    "NodeKind",
    "RemoteFileStore",
    "StoreError",
    "decode_content",
    "encode_content",
]
