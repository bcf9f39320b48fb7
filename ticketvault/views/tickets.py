"""Ticket API views."""
from __future__ import annotations

from flask import Blueprint, jsonify, request

from ..errors import ValidationError
from .helpers import attachment_service, json_body, parse_id, ticket_service

tickets_bp = Blueprint("tickets", __name__, url_prefix="/tickets")


@tickets_bp.get("")
def list_tickets():
    matches = ticket_service().search(request.args.get("q"))
    return jsonify({"tickets": [match.to_dict() for match in matches]})


@tickets_bp.post("")
def create_ticket():
    payload = json_body()
    ticket = ticket_service().create(
        title=payload.get("title"),
        description=payload.get("description"),
        owner=payload.get("owner"),
        priority=payload.get("priority"),
    )
    return jsonify(ticket.to_dict()), 201


@tickets_bp.get("/<ticket_id>")
def ticket_detail(ticket_id: str):
    ticket = ticket_service().get(parse_id(ticket_id, "ticket"))
    return jsonify(ticket.to_dict())


@tickets_bp.patch("/<ticket_id>")
def update_ticket(ticket_id: str):
    identifier = parse_id(ticket_id, "ticket")
    ticket = ticket_service().update(identifier, json_body())
    return jsonify(ticket.to_dict())


@tickets_bp.delete("/<ticket_id>")
def delete_ticket(ticket_id: str):
    ticket_service().delete(parse_id(ticket_id, "ticket"))
    return "", 204


@tickets_bp.post("/<ticket_id>/attachments")
def add_attachment(ticket_id: str):
    """Link a file to a ticket.

    A multipart request with a ``file`` field stores and records the file in
    one step. A JSON body registers a file previously sent to ``/upload``.
    """

    identifier = parse_id(ticket_id, "ticket")
    service = attachment_service()

    if request.files:
        upload = request.files.get("file")
        if upload is None or not upload.filename:
            raise ValidationError("No file uploaded")
        attachment = service.attach(
            identifier,
            upload.read(),
            upload.filename,
            upload.mimetype or None,
        )
        return jsonify(attachment.to_dict()), 201

    payload = json_body()
    attachment = service.register(
        identifier,
        filename=payload.get("filename"),
        path=payload.get("path"),
        mimetype=payload.get("mimetype"),
        size=payload.get("size"),
    )
    return jsonify(attachment.to_dict()), 201
