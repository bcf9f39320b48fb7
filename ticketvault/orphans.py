"""Reconciliation between attachment rows and files in the upload directory."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Dict, List

from sqlalchemy import select
from sqlalchemy.orm import Session

from .errors import InvalidBlobPath
from .models import Attachment
from .storage import BlobDeletion, BlobStore

logger = logging.getLogger(__name__)


@dataclass
class OrphanReport:
    """Files without attachment rows, and attachment rows without files."""

    orphaned_blobs: List[str] = field(default_factory=list)
    missing_blobs: Dict[int, str] = field(default_factory=dict)

    @property
    def is_clean(self) -> bool:
        return not self.orphaned_blobs and not self.missing_blobs


def scan_orphans(session: Session, blob_store: BlobStore) -> OrphanReport:
    """Compare stored files with attachment rows and report any divergence."""

    report = OrphanReport()
    referenced: set[str] = set()

    for attachment_id, path in session.execute(
        select(Attachment.id, Attachment.path).order_by(Attachment.id.asc())
    ):
        try:
            reference = blob_store.reference_for(blob_store.resolve(path))
        except InvalidBlobPath:
            report.missing_blobs[attachment_id] = path
            continue
        referenced.add(reference)
        if not blob_store.exists(reference):
            report.missing_blobs[attachment_id] = path

    for reference in blob_store.iter_references():
        if reference not in referenced:
            report.orphaned_blobs.append(reference)

    logger.info(
        "Orphan scan found %d unreferenced file(s) and %d attachment(s) without a file",
        len(report.orphaned_blobs),
        len(report.missing_blobs),
    )
    return report


def remove_orphaned_blobs(
    report: OrphanReport,
    blob_store: BlobStore,
    *,
    min_age: timedelta,
    now: datetime | None = None,
) -> List[BlobDeletion]:
    """Delete unreferenced files older than ``min_age``.

    Younger files are skipped because an upload may still be waiting for its
    attachment to be registered.
    """

    current = now or datetime.now(timezone.utc)
    deletions: List[BlobDeletion] = []
    for reference in report.orphaned_blobs:
        try:
            modified = blob_store.modified_at(reference)
        except OSError as exc:
            logger.debug("Skipping %s, no longer readable: %s", reference, exc)
            continue
        if current - modified < min_age:
            logger.debug("Skipping recent upload %s", reference)
            continue
        deletion = blob_store.delete(reference)
        if not deletion.succeeded:
            logger.warning("Unable to remove orphaned file %s: %s", reference, deletion.error)
        deletions.append(deletion)
    return deletions
