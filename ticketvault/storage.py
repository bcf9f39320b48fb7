"""Local filesystem storage for attachment files."""
from __future__ import annotations

import enum
import logging
import os
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path, PurePosixPath
from typing import Iterator

from .errors import AttachmentFileMissing, InvalidBlobPath, StorageIOError
from .utils.uploads import generate_stored_name

logger = logging.getLogger(__name__)

SEPARATOR = "/"


class BlobDeletionOutcome(str, enum.Enum):
    DELETED = "deleted"
    MISSING = "missing"
    FAILED = "failed"


@dataclass(frozen=True)
class BlobDeletion:
    """Result of a best-effort blob removal."""

    path: str
    outcome: BlobDeletionOutcome
    error: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.outcome is BlobDeletionOutcome.DELETED

    @property
    def left_orphan(self) -> bool:
        return self.outcome is BlobDeletionOutcome.FAILED


class BlobStore:
    """Directory tree holding uploaded file bytes.

    Files are addressed by references relative to ``root`` that start with a
    separator, e.g. ``/2026/10/1760870400000-9f2c4a1b7e03-report.pdf``. The
    same reference is stored on the attachment row and resolved against
    ``root`` for every read and delete.
    """

    def __init__(self, root: os.PathLike[str] | str) -> None:
        self.root = Path(root).resolve()

    def ensure_root(self) -> None:
        self.root.mkdir(parents=True, exist_ok=True)

    def resolve(self, reference: str) -> Path:
        """Return the absolute path for ``reference``, refusing escapes from the root."""

        relative = (reference or "").lstrip(SEPARATOR)
        if not relative or "\x00" in relative:
            raise InvalidBlobPath(f"Invalid attachment path: {reference!r}")

        candidate = (self.root / relative).resolve()
        try:
            candidate.relative_to(self.root)
        except ValueError:
            raise InvalidBlobPath(f"Attachment path escapes the upload directory: {reference!r}") from None
        if candidate == self.root:
            raise InvalidBlobPath(f"Invalid attachment path: {reference!r}")
        return candidate

    def reference_for(self, path: Path) -> str:
        relative = path.resolve().relative_to(self.root)
        return SEPARATOR + PurePosixPath(*relative.parts).as_posix()

    def write(self, data: bytes, original_filename: str) -> str:
        """Persist ``data`` under a freshly generated name and return its reference."""

        now = datetime.now(timezone.utc)
        directory = self.root / f"{now:%Y}" / f"{now:%m}"
        target = directory / generate_stored_name(original_filename)

        try:
            directory.mkdir(parents=True, exist_ok=True)
            # "xb" refuses to overwrite should two uploads ever produce the same name.
            with target.open("xb") as handle:
                handle.write(data)
                handle.flush()
                os.fsync(handle.fileno())
        except OSError as exc:
            logger.error("Unable to write upload %s: %s", target, exc)
            raise StorageIOError(f"Unable to store uploaded file: {exc.strerror or exc}") from exc

        reference = self.reference_for(target)
        logger.debug("Stored %d bytes for %r at %s", len(data), original_filename, reference)
        return reference

    def read(self, reference: str) -> bytes:
        path = self.resolve(reference)
        try:
            return path.read_bytes()
        except (FileNotFoundError, IsADirectoryError) as exc:
            raise AttachmentFileMissing(f"File not found: {reference}") from exc
        except OSError as exc:
            raise StorageIOError(f"Unable to read stored file: {exc.strerror or exc}") from exc

    def exists(self, reference: str) -> bool:
        return self.resolve(reference).is_file()

    def size(self, reference: str) -> int:
        try:
            return self.resolve(reference).stat().st_size
        except FileNotFoundError as exc:
            raise AttachmentFileMissing(f"File not found: {reference}") from exc
        except OSError as exc:
            raise StorageIOError(f"Unable to inspect stored file: {exc.strerror or exc}") from exc

    def modified_at(self, reference: str) -> datetime:
        stat = self.resolve(reference).stat()
        return datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc)

    def delete(self, reference: str) -> BlobDeletion:
        """Remove the file behind ``reference`` without raising on I/O errors."""

        try:
            path = self.resolve(reference)
            path.unlink()
        except FileNotFoundError:
            return BlobDeletion(reference, BlobDeletionOutcome.MISSING)
        except (OSError, InvalidBlobPath) as exc:
            return BlobDeletion(reference, BlobDeletionOutcome.FAILED, error=str(exc))
        return BlobDeletion(reference, BlobDeletionOutcome.DELETED)

    def iter_references(self) -> Iterator[str]:
        """Yield a reference for every file currently stored."""

        if not self.root.is_dir():
            return
        for dirpath, _dirnames, filenames in os.walk(self.root):
            for filename in sorted(filenames):
                yield self.reference_for(Path(dirpath) / filename)
