"""Domain errors raised by the synchronization layer."""


class SyncError(Exception):
    """Base class for store, queue and remote failures."""

    error_code = "SYNC_ERROR"


class NotInitializedError(SyncError):
    """Raised when an operation needs a loaded store."""

    error_code = "NOT_INITIALIZED"


class InvalidRecordError(SyncError):
    """Raised when a record fails validation before entering the store."""

    error_code = "INVALID_RECORD"


class InvalidInterestZoneError(InvalidRecordError):
    error_code = "INVALID_INTEREST_ZONE"


class InvalidPayloadError(SyncError):
    """Raised when the write queue refuses a payload."""

    error_code = "INVALID_PAYLOAD"


class NotFoundError(SyncError):
    """Raised when an update targets an unknown record id."""

    error_code = "NOT_FOUND"


class NoValidDataError(SyncError):
    """Raised when a load produced zero valid records."""

    error_code = "NO_VALID_DATA"


class WriteFailedError(SyncError):
    """Raised through a write future once the retry budget is exhausted."""

    error_code = "WRITE_FAILED"

    def __init__(self, record_id: str, attempts: int, cause: BaseException | None = None) -> None:
        message = f"Write for record '{record_id}' dropped after {attempts} attempt(s)"
        if cause is not None:
            message = f"{message}: {cause}"
        super().__init__(message)
        self.record_id = record_id
        self.attempts = attempts
        self.cause = cause


class RemoteStoreError(SyncError):
    """Raised when the spreadsheet API cannot be read or written."""

    error_code = "REMOTE_STORE_ERROR"
