"""Exceptions raised by ticketvault services."""
from __future__ import annotations


class TicketVaultError(Exception):
    """Base exception for errors surfaced to API callers."""

    status_code = 500
    default_message = "Internal Server Error"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.default_message)

    @property
    def message(self) -> str:
        return str(self)


class ValidationError(TicketVaultError):
    """Raised when a request carries a malformed identifier or payload."""

    status_code = 400
    default_message = "Invalid request"


class InvalidBlobPath(ValidationError):
    """Raised when a blob reference points outside the upload root."""

    default_message = "Invalid attachment path"


class NotFoundError(TicketVaultError):
    status_code = 404
    default_message = "Not found"


class TicketNotFound(NotFoundError):
    default_message = "Ticket not found"


class AttachmentNotFound(NotFoundError):
    default_message = "Attachment not found"


class AttachmentFileMissing(TicketVaultError):
    """Raised when attachment metadata exists but its file is gone from disk."""

    status_code = 404
    default_message = "File not found"


class StorageIOError(TicketVaultError):
    """Raised when the upload directory cannot be written or read."""

    default_message = "Storage error"


class BackendFailure(TicketVaultError):
    """Raised when the database rejects or cannot complete an operation."""

    default_message = "Database error"
