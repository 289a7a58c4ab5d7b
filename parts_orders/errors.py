from __future__ import annotations


class SyncError(RuntimeError):
    """Base class for failures that abort a sync unit or a whole sync pass."""


class SyncConfigError(SyncError):
    pass


class RowStoreError(SyncError):
    pass


class MissingColumnsError(RowStoreError):
    def __init__(self, table: str, missing: list[str]) -> None:
        self.table = table
        self.missing = missing
        super().__init__(f"Required columns not found in {table}: {', '.join(missing)}")


class MondayApiError(SyncError):
    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        self.status_code = status_code
        super().__init__(message)


class MondayRateLimitError(MondayApiError):
    pass


class RetryExhaustedError(MondayApiError):
    def __init__(self, operation: str, attempts: int, last_error: BaseException) -> None:
        self.operation = operation
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(
            f'{operation} failed after {attempts} attempts: {last_error}',
            status_code=getattr(last_error, 'status_code', None),
        )
