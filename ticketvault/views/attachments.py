"""Attachment upload, download and removal views."""
from __future__ import annotations

import io

from flask import Blueprint, jsonify, request, send_file

from ..errors import AttachmentNotFound, ValidationError
from .helpers import attachment_service, parse_id

attachments_bp = Blueprint("attachments", __name__)


def _is_inline_request() -> bool:
    value = (request.args.get("inline") or "").strip().lower()
    return value in {"1", "true", "yes", "on"}


@attachments_bp.post("/upload")
def upload_file():
    upload = request.files.get("file")
    if upload is None or not upload.filename:
        raise ValidationError("No file uploaded")

    uploaded = attachment_service().upload(upload.read(), upload.filename, upload.mimetype or None)
    return jsonify(uploaded.to_dict())


@attachments_bp.get("/attachments/<attachment_id>")
def download_attachment(attachment_id: str):
    try:
        identifier = parse_id(attachment_id, "attachment")
    except ValidationError:
        raise AttachmentNotFound() from None

    content = attachment_service().retrieve(identifier)
    return send_file(
        io.BytesIO(content.data),
        mimetype=content.mimetype,
        as_attachment=not _is_inline_request(),
        download_name=content.filename,
    )


@attachments_bp.delete("/attachments/<attachment_id>")
def delete_attachment(attachment_id: str):
    attachment_service().delete(parse_id(attachment_id, "attachment"))
    return "", 204
