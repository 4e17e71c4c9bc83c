"""Records produced and consumed by the scan processing pipeline."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

UNCLASSIFIED = "UNCLASSIFIED"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ScanStatus(str, Enum):
    """Lifecycle of an uploaded scan."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class DocumentStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"


@dataclass
class Scan:
    """One uploaded multi-page image.

    ``page_count`` is the true decoded page count of the source file.
    ``parent_id`` is set only on derived scans; startup recovery ignores them.
    """

    id: int
    location: str
    file_path: str
    content_hash: str
    page_count: int = 0
    batch_type: str | None = None
    status: ScanStatus = ScanStatus.PENDING
    error_message: str | None = None
    created_at: datetime = field(default_factory=utcnow)
    processed_at: datetime | None = None
    parent_id: int | None = None


@dataclass
class Section:
    """Contiguous pages of a scan sharing one batch-type code."""

    batch_type_code: str
    pages: list[int]
    raw_barcode: str = ""

    @property
    def first_page(self) -> int:
        return self.pages[0]

    @property
    def last_page(self) -> int:
        return self.pages[-1]

    @property
    def is_unclassified(self) -> bool:
        return self.batch_type_code == UNCLASSIFIED


@dataclass
class PageDocument:
    """Page-level record; exactly one per (scan, page) once processed."""

    id: int
    scan_id: int
    page_number: int
    document_type: str | None = None
    is_coversheet: bool = False
    status: DocumentStatus = DocumentStatus.PENDING
    reference: str = ""


@dataclass
class PageExtraction:
    """Parsed payload for one page document."""

    id: int
    document_id: int
    page_number: int
    confidence: float
    raw_text: str
    fields: dict[str, Any] = field(default_factory=dict)


@dataclass
class DocumentType:
    """Content classification of a page (invoice, manifest, ...)."""

    code: str
    name: str
    description: str = ""
    is_active: bool = True
