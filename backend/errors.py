"""Application errors and the status codes the API reports them with."""
from typing import Any, Optional


class AppError(Exception):
    """Base error. ``status_code`` is the HTTP status the API answers with."""

    status_code = 500

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        super().__init__(message)

    def payload(self) -> dict[str, Any]:
        return {"error": self.message}


class RequestValidationFailed(AppError):
    """Missing or malformed request fields. Nothing was written."""

    status_code = 400


class NotFound(AppError):
    status_code = 404

    def __init__(self, resource: str, name: str):
        super().__init__(f"{resource} not found: {name}")


class UnsupportedFormat(AppError):
    status_code = 400

    def __init__(self, value: str):
        super().__init__(f"Invalid format: {value!r} (expected csv or xlsx)")


class SchemaCreationFailed(AppError):
    """Table creation failed; no batch was attempted."""


class IngestionFailed(AppError):
    """A batch insert failed. Earlier batches are committed."""

    def __init__(self, message: str, result):
        super().__init__(message)
        self.result = result

    def payload(self) -> dict[str, Any]:
        return {
            "error": self.message,
            "rowsAttempted": self.result.rows_attempted,
            "rowsAccepted": self.result.rows_accepted,
        }
