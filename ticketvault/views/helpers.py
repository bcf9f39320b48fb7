"""Request helpers shared by the API blueprints."""
from __future__ import annotations

import re
from typing import Any, Dict

from flask import current_app, request

from ..errors import ValidationError
from ..extensions import db
from ..services.attachments import AttachmentService
from ..services.tickets import TicketService
from ..storage import BlobStore

BLOB_STORE_EXTENSION = "ticketvault.blob_store"
_ID_PATTERN = re.compile(r"[0-9]+")


def blob_store() -> BlobStore:
    return current_app.extensions[BLOB_STORE_EXTENSION]


def ticket_service() -> TicketService:
    return TicketService(db.session, blob_store())


def attachment_service() -> AttachmentService:
    return AttachmentService(db.session, blob_store())


def parse_id(raw_id: str, label: str) -> int:
    """Return ``raw_id`` as a positive integer or raise a validation error."""

    text = (raw_id or "").strip()
    if not _ID_PATTERN.fullmatch(text):
        raise ValidationError(f"Invalid {label} ID")
    return int(text)


def json_body() -> Dict[str, Any]:
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        raise ValidationError("Request body must be a JSON object")
    return payload
