"""Ticket creation, search, editing and removal."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, List, Mapping

from sqlalchemy import or_, select
from sqlalchemy.orm import Session, selectinload

from ..errors import TicketNotFound, ValidationError
from ..models import DEFAULT_PRIORITY, MAX_ROW_ID, PRIORITIES, Attachment, Ticket
from ..storage import BlobDeletion, BlobStore
from .attachments import log_blob_deletion
from .numbering import next_ticket_number
from .transactions import backend_errors, commit

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = ("title", "description", "priority", "owner")
MAX_LENGTHS: Dict[str, int] = {"title": 255, "owner": 120}
LIKE_ESCAPE = "\\"


@dataclass
class TicketMatch:
    """A ticket returned by a search, with the attachments that matched the query."""

    ticket: Ticket
    matched_attachment_ids: FrozenSet[int] = field(default_factory=frozenset)
    searched: bool = False

    def to_dict(self) -> Dict[str, Any]:
        if not self.searched:
            return self.ticket.to_dict()
        return self.ticket.to_dict(matched_attachment_ids=self.matched_attachment_ids)


def _clean_text(name: str, value: Any) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{name} is required")
    text = value.strip()
    limit = MAX_LENGTHS.get(name)
    if limit is not None and len(text) > limit:
        raise ValidationError(f"{name} must be at most {limit} characters")
    return text


def _clean_priority(value: Any) -> str:
    if not isinstance(value, str):
        raise ValidationError(f"priority must be one of {', '.join(PRIORITIES)}")
    priority = value.strip().upper()
    if priority not in PRIORITIES:
        raise ValidationError(f"priority must be one of {', '.join(PRIORITIES)}")
    return priority


def _clean_field(name: str, value: Any) -> str:
    if name == "priority":
        return _clean_priority(value)
    return _clean_text(name, value)


def _like_pattern(term: str) -> str:
    escaped = (
        term.replace(LIKE_ESCAPE, LIKE_ESCAPE * 2)
        .replace("%", LIKE_ESCAPE + "%")
        .replace("_", LIKE_ESCAPE + "_")
    )
    return f"%{escaped}%"


def filename_matches(filename: str | None, term: str) -> bool:
    """Case-insensitive containment test mirroring the database ``ILIKE`` filter."""

    return term.lower() in (filename or "").lower()


class TicketService:
    """Ticket operations that keep attachments and numbering consistent."""

    def __init__(self, session: Session, blob_store: BlobStore) -> None:
        self.session = session
        self.blob_store = blob_store

    def get(self, ticket_id: int) -> Ticket:
        if ticket_id > MAX_ROW_ID:
            raise TicketNotFound()
        with backend_errors(self.session, "load ticket"):
            ticket = self.session.get(Ticket, ticket_id)
        if ticket is None:
            raise TicketNotFound()
        return ticket

    def create(
        self,
        *,
        title: Any,
        description: Any,
        owner: Any,
        priority: Any = None,
    ) -> Ticket:
        ticket = Ticket(
            title=_clean_text("title", title),
            description=_clean_text("description", description),
            owner=_clean_text("owner", owner),
            priority=DEFAULT_PRIORITY if priority is None else _clean_priority(priority),
        )

        with backend_errors(self.session, "create ticket"):
            ticket.ticket_number = next_ticket_number(self.session)
            self.session.add(ticket)
        commit(self.session, "create ticket")
        logger.info("Created %s (id %s)", ticket.ticket_number, ticket.id)
        return ticket

    def search(self, query: str | None = None) -> List[TicketMatch]:
        """Return tickets newest first, optionally filtered by a substring.

        The term is matched case-insensitively against title, description,
        owner, ticket number and attachment filenames. Every attachment of a
        returned ticket is included; the ones whose filename contains the term
        are reported in ``matched_attachment_ids``.
        """

        term = (query or "").strip()
        statement = select(Ticket).options(selectinload(Ticket.attachments))

        if term:
            pattern = _like_pattern(term)
            statement = statement.where(
                or_(
                    Ticket.title.ilike(pattern, escape=LIKE_ESCAPE),
                    Ticket.description.ilike(pattern, escape=LIKE_ESCAPE),
                    Ticket.owner.ilike(pattern, escape=LIKE_ESCAPE),
                    Ticket.ticket_number.ilike(pattern, escape=LIKE_ESCAPE),
                    Ticket.attachments.any(Attachment.filename.ilike(pattern, escape=LIKE_ESCAPE)),
                )
            )

        statement = statement.order_by(Ticket.created_at.desc(), Ticket.id.desc())

        with backend_errors(self.session, "list tickets"):
            tickets = list(self.session.scalars(statement))

        if not term:
            return [TicketMatch(ticket) for ticket in tickets]

        return [
            TicketMatch(
                ticket,
                matched_attachment_ids=frozenset(
                    attachment.id
                    for attachment in ticket.attachments
                    if filename_matches(attachment.filename, term)
                ),
                searched=True,
            )
            for ticket in tickets
        ]

    def update(self, ticket_id: int, changes: Mapping[str, Any]) -> Ticket:
        """Apply a partial update; only title, description, priority and owner change."""

        cleaned = {
            name: _clean_field(name, changes[name])
            for name in EDITABLE_FIELDS
            if name in changes and changes[name] is not None
        }

        ticket = self.get(ticket_id)
        for name, value in cleaned.items():
            setattr(ticket, name, value)
        commit(self.session, "update ticket")
        return ticket

    def delete(self, ticket_id: int) -> List[BlobDeletion]:
        """Delete a ticket and its attachments.

        Files are removed first, one at a time, continuing past failures; the
        ticket row goes last and takes the attachment rows with it.
        """

        ticket = self.get(ticket_id)
        ticket_number = ticket.ticket_number

        deletions: List[BlobDeletion] = []
        for attachment in list(ticket.attachments):
            deletion = self.blob_store.delete(attachment.path)
            log_blob_deletion(deletion, attachment.id)
            deletions.append(deletion)

        with backend_errors(self.session, "delete ticket"):
            self.session.delete(ticket)
        commit(self.session, "delete ticket")
        logger.info("Deleted %s with %d attachment(s)", ticket_number, len(deletions))
        return deletions
