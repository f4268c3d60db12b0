"""Error taxonomy shared by the store, its helpers and the HTTP layer.

Every error carries the HTTP status the API answers with, so FastAPI can
translate any ``StoreError`` with a single exception handler.

MissingConfiguration (503) – credentials absent; fix the environment.
Unauthorized         (401) – the backend rejected the credentials.
NotFound             (404) – the path does not exist remotely.
NotADirectory        (404) – a folder operation was given a file path.
AlreadyExists        (409) – create-only write hit an occupied path.
Conflict             (409) – stale version token; reload before retrying.
Unavailable          (502) – transport failure, timeout or backend error.
Unsupported          (415) – binary content or an unimplemented feature.
PathError            (400) – the repository path itself is malformed.
"""


class StoreError(Exception):
    """Base class for every failure surfaced by the sync layer."""

    status_code: int = 500
    code: str = "store_error"

    def __init__(self, detail: str, *, path: str | None = None) -> None:
        super().__init__(detail)
        self.detail = detail
        self.path = path


class MissingConfiguration(StoreError):
    status_code = 503
    code = "missing_configuration"


class Unauthorized(StoreError):
    status_code = 401
    code = "unauthorized"


class NotFound(StoreError):
    status_code = 404
    code = "not_found"


class NotADirectory(NotFound):
    """The path exists but names a file where a folder was expected."""

    code = "not_a_directory"


class AlreadyExists(StoreError):
    status_code = 409
    code = "already_exists"


class Conflict(StoreError):
    status_code = 409
    code = "conflict"


class Unavailable(StoreError):
    status_code = 502
    code = "unavailable"


class Unsupported(StoreError):
    status_code = 415
    code = "unsupported"


class PathError(StoreError):
    status_code = 400
    code = "invalid_path"


class PartialDeleteError(StoreError):
    """A recursive delete failed after some entries were already removed.

    ``deleted`` lists the paths that are gone; ``error`` is the first
    failure observed (also chained as ``__cause__``).
    """

    code = "partial_delete"

    def __init__(self, path: str, deleted: list[str], error: StoreError) -> None:
        super().__init__(
            f"Deleting {path} stopped after removing {len(deleted)} entries: {error}",
            path=path,
        )
        self.deleted = deleted
        self.error = error
        self.status_code = error.status_code


class UnsavedChangesError(StoreError):
    """A document could not be saved before it was closed."""

    status_code = 409
    code = "unsaved_changes"
