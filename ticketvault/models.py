"""Database models for ticketvault."""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Collection, Dict, List, Optional, Tuple

from sqlalchemy.orm import Mapped, mapped_column, relationship

from .extensions import db


PRIORITIES: Tuple[str, ...] = ("LOW", "MEDIUM", "HIGH", "CRITICAL")
DEFAULT_PRIORITY = "MEDIUM"
DEFAULT_MIMETYPE = "application/octet-stream"
# Largest value a signed 64-bit INTEGER primary key can hold.
MAX_ROW_ID = 2**63 - 1


def utcnow() -> datetime:
    """Return the current UTC time as a naive datetime for storage."""

    return datetime.now(timezone.utc).replace(tzinfo=None)


def _isoformat(value: datetime | None) -> str | None:
    if value is None:
        return None
    return value.isoformat() + "Z"


class Ticket(db.Model):
    """Primary ticket object representing a support request."""

    __tablename__ = "tickets"

    id: Mapped[int] = mapped_column(primary_key=True)
    ticket_number: Mapped[str] = mapped_column(db.String(32), unique=True, nullable=False)
    title: Mapped[str] = mapped_column(db.String(255), nullable=False)
    description: Mapped[str] = mapped_column(db.Text, nullable=False)
    priority: Mapped[str] = mapped_column(db.String(16), nullable=False, default=DEFAULT_PRIORITY)
    owner: Mapped[str] = mapped_column(db.String(120), nullable=False)
    created_at: Mapped[datetime] = mapped_column(db.DateTime, default=utcnow, nullable=False, index=True)
    updated_at: Mapped[datetime] = mapped_column(
        db.DateTime, default=utcnow, onupdate=utcnow, nullable=False
    )

    attachments: Mapped[List["Attachment"]] = relationship(
        "Attachment",
        back_populates="ticket",
        cascade="all, delete-orphan",
        order_by="Attachment.id",
    )

    def to_dict(self, matched_attachment_ids: Optional[Collection[int]] = None) -> Dict[str, Any]:
        """Serialize the ticket; when search matches are given, flag each attachment."""

        attachments = []
        for attachment in self.attachments:
            payload = attachment.to_dict()
            if matched_attachment_ids is not None:
                payload["isMatch"] = attachment.id in matched_attachment_ids
            attachments.append(payload)

        return {
            "id": self.id,
            "ticketNumber": self.ticket_number,
            "title": self.title,
            "description": self.description,
            "priority": self.priority,
            "owner": self.owner,
            "createdAt": _isoformat(self.created_at),
            "updatedAt": _isoformat(self.updated_at),
            "attachments": attachments,
        }


class Attachment(db.Model):
    """Uploaded file stored on disk and linked to a ticket."""

    __tablename__ = "attachments"

    id: Mapped[int] = mapped_column(primary_key=True)
    ticket_id: Mapped[int] = mapped_column(
        db.Integer, db.ForeignKey("tickets.id", ondelete="CASCADE"), nullable=False, index=True
    )
    filename: Mapped[str] = mapped_column(db.String(255), nullable=False)
    path: Mapped[str] = mapped_column(db.String(512), nullable=False)
    mimetype: Mapped[str] = mapped_column(db.String(128), nullable=False, default=DEFAULT_MIMETYPE)
    size: Mapped[int] = mapped_column(db.Integer, nullable=False, default=0)
    uploaded_at: Mapped[datetime] = mapped_column(db.DateTime, default=utcnow, nullable=False)

    ticket: Mapped[Ticket] = relationship("Ticket", back_populates="attachments")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "ticketId": self.ticket_id,
            "filename": self.filename,
            "path": self.path,
            "mimetype": self.mimetype,
            "size": self.size,
            "uploadedAt": _isoformat(self.uploaded_at),
        }


class TicketCounter(db.Model):
    """Named counter handing out sequential ticket numbers."""

    __tablename__ = "ticket_counters"

    name: Mapped[str] = mapped_column(db.String(32), primary_key=True)
    value: Mapped[int] = mapped_column(db.Integer, nullable=False, default=0)
