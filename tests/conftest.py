"""Shared fixtures: an in-memory GitHub contents API and a manual clock."""

import base64
import hashlib
import json

import httpx
import pytest

from notesync.config import Settings
from notesync.store import RemoteFileStore

OWNER = "octo"
REPO = "notes"
_CONTENTS = f"/repos/{OWNER}/{REPO}/contents"


# ── fake backend ─────────────────────────────────────────────────────────────


class FakeGitHub:
    """Just enough of the contents API to exercise the store end to end.

    Folders exist only while a file lives under them, as on GitHub.
    ``fail[(method, path)] = status`` forces an error response.
    """

    def __init__(self) -> None:
        self.files: dict[str, bytes] = {}
        self.shas: dict[str, str] = {}
        self.requests: list[httpx.Request] = []
        self.fail: dict[tuple[str, str], int] = {}
        self.search_results: list[dict] | None = None
        self._counter = 0

    # ── helpers for tests ────────────────────────────────────────────────

    def seed(self, path: str, text: str) -> str:
        return self._store(path, text.encode("utf-8"))

    def text(self, path: str) -> str:
        return self.files[path].decode("utf-8")

    def calls(self, method: str | None = None) -> list[httpx.Request]:
        return [r for r in self.requests if method is None or r.method == method]

    # ── internals ────────────────────────────────────────────────────────

    def _store(self, path: str, data: bytes) -> str:
        self._counter += 1
        sha = hashlib.sha1(f"{path}:{self._counter}:".encode() + data).hexdigest()
        self.files[path] = data
        self.shas[path] = sha
        return sha

    def _is_dir(self, path: str) -> bool:
        return path == "" or any(p.startswith(path + "/") for p in self.files)

    def _listing(self, path: str) -> list[dict]:
        prefix = path + "/" if path else ""
        entries: dict[str, dict] = {}
        for file_path in self.files:
            if not file_path.startswith(prefix):
                continue
            rest = file_path[len(prefix):]
            name, sep, _ = rest.partition("/")
            child = prefix + name
            if sep:
                entries[child] = {
                    "type": "dir", "name": name, "path": child,
                    "sha": hashlib.sha1(child.encode()).hexdigest(),
                }
            else:
                entries[child] = {
                    "type": "file", "name": name, "path": child,
                    "sha": self.shas[child],
                }
        return [entries[k] for k in sorted(entries)]

    @staticmethod
    def _error(status: int, message: str) -> httpx.Response:
        return httpx.Response(status, json={"message": message})

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        url_path = request.url.path

        if url_path == "/search/code":
            if ("GET", "search") in self.fail:
                return self._error(self.fail[("GET", "search")], "Search failed")
            if self.search_results is not None:
                return httpx.Response(200, json={"items": self.search_results})
            term = request.url.params["q"].split(" repo:")[0].lower()
            items = [
                {"name": p.rsplit("/", 1)[-1], "path": p}
                for p in sorted(self.files)
                if p.endswith(".md") and term in self.text(p).lower()
            ]
            return httpx.Response(200, json={"total_count": len(items), "items": items})

        assert url_path.startswith(_CONTENTS), url_path
        path = url_path[len(_CONTENTS):].strip("/")

        forced = self.fail.get((request.method, path))
        if forced is not None:
            return self._error(forced, "Forced failure")

        if request.method == "GET":
            if path in self.files:
                encoded = base64.b64encode(self.files[path]).decode("ascii")
                # GitHub wraps the payload at 60 columns
                wrapped = "\n".join(encoded[i:i + 60] for i in range(0, len(encoded), 60))
                return httpx.Response(200, json={
                    "type": "file", "encoding": "base64", "path": path,
                    "name": path.rsplit("/", 1)[-1], "sha": self.shas[path],
                    "content": wrapped + "\n",
                })
            if self._is_dir(path):
                return httpx.Response(200, json=self._listing(path))
            return self._error(404, "Not Found")

        body = json.loads(request.content)
        sha = body.get("sha")

        if request.method == "PUT":
            if path in self.files:
                if sha is None:
                    return self._error(422, 'Invalid request.\n\n"sha" wasn\'t supplied.')
                if sha != self.shas[path]:
                    return self._error(409, f"{path} does not match {sha}")
            elif sha is not None:
                return self._error(409, f"{path} does not match {sha}")
            existed = path in self.files
            new_sha = self._store(path, base64.b64decode(body["content"]))
            return httpx.Response(200 if existed else 201, json={
                "content": {"path": path, "sha": new_sha},
                "commit": {"message": body["message"]},
            })

        if request.method == "DELETE":
            if path not in self.files:
                return self._error(404, "Not Found")
            if sha != self.shas[path]:
                return self._error(409, f"{path} does not match {sha}")
            del self.files[path]
            del self.shas[path]
            return httpx.Response(200, json={"content": None, "commit": {}})

        return self._error(405, "Method Not Allowed")


# ── manual scheduler ─────────────────────────────────────────────────────────


class ManualTimer:
    def __init__(self, when: float, callback) -> None:
        self.when = when
        self.callback = callback
        self.cancelled = False
        self.fired = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler:
    """Virtual clock: timers fire only when the test calls ``advance``."""

    def __init__(self) -> None:
        self.now = 0.0
        self.timers: list[ManualTimer] = []

    def call_later(self, delay: float, callback) -> ManualTimer:
        timer = ManualTimer(self.now + delay, callback)
        self.timers.append(timer)
        return timer

    @property
    def pending(self) -> list[ManualTimer]:
        return [t for t in self.timers if not t.cancelled and not t.fired]

    def advance(self, seconds: float) -> None:
        self.now += seconds
        for timer in sorted(self.pending, key=lambda t: t.when):
            if timer.when <= self.now:
                timer.fired = True
                timer.callback()


# ── fixtures ─────────────────────────────────────────────────────────────────


@pytest.fixture()
def settings() -> Settings:
    return Settings(
        github_token="ghp_test",
        repo_owner=OWNER,
        repo_name=REPO,
        api_url="https://api.github.test",
    )


@pytest.fixture()
def github() -> FakeGitHub:
    return FakeGitHub()


@pytest.fixture()
def store(settings: Settings, github: FakeGitHub) -> RemoteFileStore:
    return RemoteFileStore(settings, transport=httpx.MockTransport(github.handler))


@pytest.fixture()
def scheduler() -> ManualScheduler:
    return ManualScheduler()
