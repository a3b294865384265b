"""
Custom exceptions for notes sync.

Stores, remote sources and the paging layer raise these exceptions
for consistent error handling across implementations.
"""


class NotesSyncError(Exception):
    """Base exception for all notes sync errors."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class FetchError(NotesSyncError):
    """Raised when the remote source fails to deliver a page."""

    def __init__(self, page: int, cause: Exception | None = None, reason: str | None = None):
        details: dict = {"page": page}
        if cause:
            details["cause"] = str(cause)
        if reason:
            details["reason"] = reason
        message = f"Failed to fetch page {page}"
        if reason:
            message += f": {reason}"
        elif cause:
            message += f": {cause}"
        super().__init__(message, details)
        self.page = page
        self.cause = cause
        self.reason = reason


class StoreError(NotesSyncError):
    """Raised when a local store operation fails.

    Writes that fail inside an atomic scope are rolled back before this is raised.
    """

    def __init__(self, operation: str, cause: Exception | None = None):
        details = {"operation": operation}
        if cause:
            details["cause"] = str(cause)
        message = f"Store error during {operation}"
        if cause:
            message += f": {cause}"
        super().__init__(message, details)
        self.operation = operation
        self.cause = cause


class StorageConnectionError(NotesSyncError):
    """Raised when the local database cannot be opened or initialized.

    Note: Named StorageConnectionError to avoid shadowing the builtin ConnectionError.
    """

    def __init__(self, path: str, cause: Exception | None = None):
        details = {"path": path}
        if cause:
            details["cause"] = str(cause)
        super().__init__(f"Could not open store at {path}", details)
        self.path = path
        self.cause = cause


class ValidationError(NotesSyncError):
    """Raised when data or configuration validation fails."""

    def __init__(self, field: str, reason: str, value: str | None = None):
        details = {"field": field, "reason": reason}
        if value is not None:
            details["value"] = value
        super().__init__(f"Validation failed for {field}: {reason}", details)
        self.field = field
        self.reason = reason
        self.value = value


class InvalidatedError(NotesSyncError):
    """Raised when loading from a reader whose store generation has moved on."""

    def __init__(self, generation: int, current_generation: int):
        super().__init__(
            f"Reader for generation {generation} is invalid (store is at {current_generation})",
            {"generation": generation, "current_generation": current_generation},
        )
        self.generation = generation
        self.current_generation = current_generation


class StreamClosedError(NotesSyncError):
    """Raised when a paging stream is used after close()."""

    def __init__(self, stream_id: str):
        super().__init__(f"Paging stream {stream_id} is closed", {"stream_id": stream_id})
        self.stream_id = stream_id
