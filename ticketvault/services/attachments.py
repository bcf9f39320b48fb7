"""Attachment lifecycle: storing files, recording metadata, serving and removing them."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..errors import (
    AttachmentFileMissing,
    AttachmentNotFound,
    InvalidBlobPath,
    TicketNotFound,
    ValidationError,
)
from ..models import DEFAULT_MIMETYPE, MAX_ROW_ID, Attachment, Ticket
from ..storage import BlobDeletion, BlobDeletionOutcome, BlobStore
from .transactions import backend_errors, commit

logger = logging.getLogger(__name__)

MAX_FILENAME_LENGTH = 255
MAX_MIMETYPE_LENGTH = 128


@dataclass(frozen=True)
class UploadedBlob:
    """A file written to the upload directory but not yet linked to a ticket."""

    path: str
    filename: str
    mimetype: str
    size: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "filename": self.filename,
            "originalFilename": self.filename,
            "mimetype": self.mimetype,
            "size": self.size,
            "path": self.path,
        }


@dataclass(frozen=True)
class AttachmentContent:
    data: bytes
    mimetype: str
    filename: str


def log_blob_deletion(deletion: BlobDeletion, attachment_id: int | None) -> None:
    """Record the outcome of a best-effort file removal."""

    if deletion.outcome is BlobDeletionOutcome.DELETED:
        logger.info("Deleted file %s for attachment %s", deletion.path, attachment_id)
    elif deletion.outcome is BlobDeletionOutcome.MISSING:
        logger.warning(
            "File %s for attachment %s was already missing", deletion.path, attachment_id
        )
    else:
        logger.warning(
            "Unable to delete file %s for attachment %s, leaving an orphaned file: %s",
            deletion.path,
            attachment_id,
            deletion.error,
        )


def _clean_filename(value: Any) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError("filename is required")
    filename = value.strip()
    if len(filename) > MAX_FILENAME_LENGTH:
        raise ValidationError(f"filename must be at most {MAX_FILENAME_LENGTH} characters")
    return filename


def _clean_mimetype(value: Any) -> str:
    if value is None:
        return DEFAULT_MIMETYPE
    if not isinstance(value, str):
        raise ValidationError("mimetype must be a string")
    mimetype = value.strip()
    if len(mimetype) > MAX_MIMETYPE_LENGTH:
        raise ValidationError(f"mimetype must be at most {MAX_MIMETYPE_LENGTH} characters")
    return mimetype or DEFAULT_MIMETYPE


class AttachmentService:
    """Keeps attachment rows and the files they reference consistent."""

    def __init__(self, session: Session, blob_store: BlobStore) -> None:
        self.session = session
        self.blob_store = blob_store

    def _get_ticket(self, ticket_id: int) -> Ticket:
        if ticket_id > MAX_ROW_ID:
            raise TicketNotFound()
        with backend_errors(self.session, "load ticket"):
            ticket = self.session.get(Ticket, ticket_id)
        if ticket is None:
            raise TicketNotFound()
        return ticket

    def get(self, attachment_id: int) -> Attachment:
        if attachment_id > MAX_ROW_ID:
            raise AttachmentNotFound()
        with backend_errors(self.session, "load attachment"):
            attachment = self.session.get(Attachment, attachment_id)
        if attachment is None:
            raise AttachmentNotFound()
        return attachment

    def upload(self, data: bytes, filename: str, mimetype: str | None = None) -> UploadedBlob:
        """Write an uploaded file without recording it against a ticket.

        The returned path must be passed to :meth:`register` afterwards; files
        that never get registered are picked up by the orphan scan.
        """

        original_name = _clean_filename(filename)
        path = self.blob_store.write(data, original_name)
        return UploadedBlob(
            path=path,
            filename=original_name,
            mimetype=_clean_mimetype(mimetype),
            size=len(data),
        )

    def register(
        self,
        ticket_id: int,
        *,
        filename: Any,
        path: Any,
        mimetype: Any = None,
        size: Any = None,
    ) -> Attachment:
        """Record metadata for a file previously stored with :meth:`upload`."""

        ticket = self._get_ticket(ticket_id)
        original_name = _clean_filename(filename)
        content_type = _clean_mimetype(mimetype)
        if not isinstance(path, str):
            raise ValidationError("path is required")
        if size is not None and (isinstance(size, bool) or not isinstance(size, int) or size < 0):
            raise ValidationError("size must be a non-negative integer")

        reference = self.blob_store.reference_for(self.blob_store.resolve(path))
        if not self.blob_store.exists(reference):
            raise ValidationError(f"No uploaded file found at {path}")

        with backend_errors(self.session, "check attachment path"):
            already_linked = self.session.scalar(
                select(Attachment.id).where(Attachment.path == reference).limit(1)
            )
        if already_linked is not None:
            raise ValidationError(f"{path} is already attached to another record")

        stored_size = self.blob_store.size(reference)
        if size is None:
            size = stored_size
        elif size != stored_size:
            raise ValidationError(
                f"size {size} does not match the uploaded file ({stored_size} bytes)"
            )

        attachment = Attachment(
            ticket=ticket,
            filename=original_name,
            path=reference,
            mimetype=content_type,
            size=size,
        )
        self.session.add(attachment)
        commit(self.session, "create attachment")
        return attachment

    def attach(
        self, ticket_id: int, data: bytes, filename: str, mimetype: str | None = None
    ) -> Attachment:
        """Store a file and its metadata as one unit.

        If the metadata cannot be recorded the file is removed again, so a
        failed request leaves neither a row nor a file behind.
        """

        self._get_ticket(ticket_id)
        uploaded = self.upload(data, filename, mimetype)
        try:
            return self.register(
                ticket_id,
                filename=uploaded.filename,
                path=uploaded.path,
                mimetype=uploaded.mimetype,
                size=uploaded.size,
            )
        except Exception:
            log_blob_deletion(self.blob_store.delete(uploaded.path), attachment_id=None)
            raise

    def retrieve(self, attachment_id: int) -> AttachmentContent:
        attachment = self.get(attachment_id)
        try:
            data = self.blob_store.read(attachment.path)
        except AttachmentFileMissing as exc:
            logger.warning(
                "Attachment %s exists but its file %s is missing from disk",
                attachment.id,
                attachment.path,
            )
            raise AttachmentFileMissing() from exc
        except InvalidBlobPath as exc:
            logger.error("Attachment %s has an unusable path %r", attachment.id, attachment.path)
            raise AttachmentFileMissing() from exc

        return AttachmentContent(
            data=data,
            mimetype=attachment.mimetype or DEFAULT_MIMETYPE,
            filename=attachment.filename,
        )

    def delete(self, attachment_id: int) -> BlobDeletion:
        """Remove an attachment row, attempting to remove its file first.

        File removal never blocks the row deletion; the returned outcome tells
        the caller whether a file was left behind.
        """

        attachment = self.get(attachment_id)
        deletion = self.blob_store.delete(attachment.path)
        log_blob_deletion(deletion, attachment.id)

        with backend_errors(self.session, "delete attachment"):
            self.session.delete(attachment)
        commit(self.session, "delete attachment")
        return deletion
