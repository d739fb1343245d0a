"""Error taxonomy for the editor.

Every error carries a `kind` so that worker-side failures can be turned
into a single terminal Error event and rebuilt on the controller side.
"""

from enum import Enum


class ErrorKind(str, Enum):
    NOT_READY = "not_ready"
    ENGINE_FAILURE = "engine_failure"
    STORAGE_EXHAUSTED = "storage_exhausted"
    READ_PERMISSION_LOST = "read_permission_lost"
    NOT_FOUND = "not_found"


class LuminaError(Exception):
    """Base exception for all editor failures."""

    kind = ErrorKind.ENGINE_FAILURE


class NotReadyError(LuminaError):
    """An operation was attempted before its prerequisite state.

    Example: adding an asset to the timeline before its duration is known.
    The operation is refused and nothing changes.
    """

    kind = ErrorKind.NOT_READY


class EngineFailure(LuminaError):
    """The transcode engine returned a non-zero result or raised."""

    kind = ErrorKind.ENGINE_FAILURE
    exit_code = None

    def __init__(self, message: str, exit_code: int | None = None):
        self.exit_code = exit_code
        super().__init__(message)


class StorageExhausted(LuminaError):
    """The asset store rejected a write (quota or disk full)."""

    kind = ErrorKind.STORAGE_EXHAUSTED
    name = ""
    needed = None

    def __init__(self, name: str, needed: int | None = None):
        self.name = name
        self.needed = needed
        msg = (
            f"Storage limit reached while saving '{name}'. "
            "Delete old assets or free some space and try again."
        )
        super().__init__(msg)


class ReadPermissionLost(LuminaError):
    """Source bytes became unreadable while an operation was running.

    This is a problem with the external file (moved, deleted, access
    revoked), not with its format.
    """

    kind = ErrorKind.READ_PERMISSION_LOST
    name = ""

    def __init__(self, name: str, reason: str = ""):
        self.name = name
        detail = f": {reason}" if reason else ""
        super().__init__(
            f"Lost read access to '{name}'{detail}. "
            "The original file may have been moved or its permissions changed."
        )


class AssetNotFoundError(LuminaError):
    """Raised when an asset id or stored name is unknown."""

    kind = ErrorKind.NOT_FOUND
    key = ""

    def __init__(self, key: str):
        self.key = key
        super().__init__(f"Asset not found: {key}")


_BY_KIND = {
    ErrorKind.NOT_READY: NotReadyError,
    ErrorKind.STORAGE_EXHAUSTED: StorageExhausted,
    ErrorKind.READ_PERMISSION_LOST: ReadPermissionLost,
    ErrorKind.NOT_FOUND: AssetNotFoundError,
}


def error_from_kind(kind: ErrorKind, message: str) -> LuminaError:
    """Rebuild an exception from an Error event's kind and message.

    The message is kept verbatim; subclass constructors are bypassed so
    the text produced on the worker side is not reformatted.
    """
    cls = _BY_KIND.get(kind, EngineFailure)
    err = cls.__new__(cls)
    Exception.__init__(err, message)
    return err
