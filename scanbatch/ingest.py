"""Registration of new scan files."""

import hashlib
from pathlib import Path

from scanbatch.errors import DuplicateScan
from scanbatch.imaging.page_source import ImageProvider
from scanbatch.models import Scan
from scanbatch.store import RecordStore
from scanbatch.utils.logger import get_logger

logger = get_logger(__name__)

_CHUNK_SIZE = 1 << 20


def file_hash(path: Path) -> str:
    """SHA-256 hex digest of a file's contents."""
    digest = hashlib.sha256()
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(_CHUNK_SIZE), b""):
            digest.update(chunk)
    return digest.hexdigest()


def register_scan(
    store: RecordStore, provider: ImageProvider, path: Path, location: str
) -> Scan:
    """Record a scan file as pending with its true page count.

    Raises:
        DuplicateScan: If a top-level scan with the same content exists.
        PageSourceError: If the file cannot be read.
    """
    content_hash = file_hash(path)
    for existing in store.find_scans(parentless=True):
        if existing.content_hash == content_hash:
            raise DuplicateScan(
                f"{path.name} duplicates scan {existing.id} ({existing.file_path})"
            )

    scan = Scan(id=0, location=location, file_path=str(path), content_hash=content_hash)
    scan.page_count = provider.page_count(scan)
    scan = store.add_scan(scan)
    logger.info(
        "Registered scan %d: %s (%d pages, location %s)",
        scan.id,
        path.name,
        scan.page_count,
        location,
    )
    return scan
