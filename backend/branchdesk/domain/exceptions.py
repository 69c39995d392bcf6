"""Domain-specific exceptions: framework-independent."""


class BranchDeskError(Exception):
    """Base class for every error raised by the record-access core."""


class InvalidTable(BranchDeskError):
    """Raised when a table name is not in the allow-list."""

    def __init__(self, table: str):
        self.table = table
        super().__init__(f"Invalid table name: '{table}'")


class ValidationFailed(BranchDeskError):
    """Raised when a payload is missing required fields or is malformed."""

    def __init__(self, message: str, fields: list[str] | None = None):
        self.message = message
        self.fields = fields or []
        super().__init__(message)


class ScopeViolation(BranchDeskError):
    """Raised when an operation would cross the caller's branch boundary."""

    def __init__(self, table: str, message: str):
        self.table = table
        self.message = message
        super().__init__(f"[{table}] {message}")


class BackendError(BranchDeskError):
    """Raised when the record store call fails.

    Carries the operation and table so callers can report where it happened.
    """

    def __init__(
        self,
        operation: str,
        table: str,
        message: str,
        status_code: int | None = None,
    ):
        self.operation = operation
        self.table = table
        self.message = message
        self.status_code = status_code
        super().__init__(f"{operation} on '{table}' failed: {message}")


class BackendUnavailable(BackendError):
    """The record store is unreachable, timed out, or is throttling."""


class BackendRejected(BackendError):
    """The record store refused the request (bad field, unknown record, ...)."""


class RecordNotFound(BackendRejected):
    """The record store has no record with the requested id."""

    def __init__(self, operation: str, table: str, record_id: str, message: str | None = None):
        self.record_id = record_id
        super().__init__(
            operation,
            table,
            message or f"record '{record_id}' not found",
            status_code=404,
        )
