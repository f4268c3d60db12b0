"""Centralised runtime configuration with fail-fast validation.

Usage
-----
    from notesync import config

    # once, at startup:
    settings = config.load()   # prints diagnostics, sys.exit(1) on error

    # anywhere else in the app:
    settings = config.get()    # returns cached Settings; raises if not loaded

Core classes never call ``get()`` themselves: the ``Settings`` value is
passed into the store client explicitly.
"""

import os
import sys
from dataclasses import dataclass

# honour a .env file in the project root (local-dev convenience)
from dotenv import load_dotenv

from notesync.errors import MissingConfiguration

load_dotenv()  # no-op when .env doesn't exist

DEFAULT_API_URL = "https://api.github.com"
DEFAULT_BRANCH = "main"
DEFAULT_TIMEOUT = 15.0
DEFAULT_AUTOSAVE_DELAY = 2.0

# Debounce window accepted for AUTOSAVE_DELAY (seconds, inclusive).
AUTOSAVE_DELAY_RANGE: tuple[float, float] = (1.0, 3.0)


# ── public data class ────────────────────────────────────────────────────────


@dataclass(frozen=True)
class Settings:
    """Immutable, app-wide settings."""

    github_token: str = ""
    repo_owner: str = ""
    repo_name: str = ""
    branch: str = DEFAULT_BRANCH
    api_url: str = DEFAULT_API_URL
    timeout: float = DEFAULT_TIMEOUT
    daily_dir: str = "Daily"
    inbox_dir: str = "00_Inbox"
    autosave_delay: float = DEFAULT_AUTOSAVE_DELAY
    api_token: str = ""  # guards the HTTP API when set

    @property
    def repo(self) -> str:
        return f"{self.repo_owner}/{self.repo_name}"

    def missing(self) -> list[str]:
        """Names of the credential variables that are not set."""
        pairs = (
            ("GITHUB_TOKEN", self.github_token),
            ("REPO_OWNER", self.repo_owner),
            ("REPO_NAME", self.repo_name),
            ("REPO_BRANCH", self.branch),
        )
        return [name for name, value in pairs if not value]

    def require(self) -> None:
        """Raise MissingConfiguration unless every credential is present."""
        missing = self.missing()
        if missing:
            raise MissingConfiguration(
                f"Repository credentials not configured: {', '.join(missing)}"
            )


# ── module-level singleton ───────────────────────────────────────────────────

_settings: Settings | None = None


def _env(name: str, default: str = "") -> str:
    return os.environ.get(name, default).strip()


def _float(name: str, default: float, errors: list[str]) -> float:
    raw = _env(name)
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError:
        errors.append(f"{name}={raw} is not a number.")
        return default
    if value <= 0:
        errors.append(f"{name}={raw} must be greater than zero.")
        return default
    return value


def load() -> Settings:
    """Read env vars, validate, cache, and return Settings.

    * Missing credentials only print a warning: every store operation
      then fails with ``MissingConfiguration`` before touching the network.
    * Malformed numbers or an out-of-range autosave delay print errors and
      call sys.exit(1): the app should never start with a bad config.
    * Idempotent: returns the cached singleton on subsequent calls.
    """
    global _settings
    if _settings is not None:
        return _settings

    errors: list[str] = []

    timeout = _float("HTTP_TIMEOUT", DEFAULT_TIMEOUT, errors)

    # ── AUTOSAVE_DELAY ───────────────────────────────────────────────────
    delay = _float("AUTOSAVE_DELAY", DEFAULT_AUTOSAVE_DELAY, errors)
    low, high = AUTOSAVE_DELAY_RANGE
    if not low <= delay <= high:
        errors.append(
            f"AUTOSAVE_DELAY={delay:g} is outside the supported range "
            f"({low:g}-{high:g} seconds)."
        )

    # ── folders ──────────────────────────────────────────────────────────
    daily_dir = _env("DAILY_DIR", "Daily").strip("/")
    inbox_dir = _env("INBOX_DIR", "00_Inbox").strip("/")
    if not daily_dir:
        errors.append("DAILY_DIR must name a folder inside the repository.")
    if not inbox_dir:
        errors.append("INBOX_DIR must name a folder inside the repository.")

    # ── Abort on any error ───────────────────────────────────────────────
    if errors:
        print("\n❌  NoteSync — configuration error\n", file=sys.stderr)
        for e in errors:
            print(f"     • {e}", file=sys.stderr)
        print("", file=sys.stderr)
        sys.exit(1)

    _settings = Settings(
        github_token=_env("GITHUB_TOKEN"),
        repo_owner=_env("REPO_OWNER"),
        repo_name=_env("REPO_NAME"),
        branch=_env("REPO_BRANCH", DEFAULT_BRANCH),
        api_url=_env("GITHUB_API_URL", DEFAULT_API_URL).rstrip("/"),
        timeout=timeout,
        daily_dir=daily_dir,
        inbox_dir=inbox_dir,
        autosave_delay=delay,
        api_token=_env("NOTESYNC_API_TOKEN"),
    )

    missing = _settings.missing()
    if missing:
        print(
            f"  ⚠  {', '.join(missing)} not set — repository operations will fail"
        )
    else:
        print("✅  NoteSync — config loaded")
        print(f"     REPO   = {_settings.repo}@{_settings.branch}")
        print(f"     API    = {_settings.api_url}")
    return _settings


def get() -> Settings:
    """Return the already-loaded Settings.  Raises if load() hasn't run."""
    if _settings is None:
        raise RuntimeError("Config not initialised — call config.load() at startup.")
    return _settings
