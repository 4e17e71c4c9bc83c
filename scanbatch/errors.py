"""Exception hierarchy for scan processing.

Scan-level errors (``EmptyScan``, ``PersistenceFailure`` and anything
unexpected) fail the scan and propagate. Page-level errors
(``ExtractionFailure``) are absorbed by the orchestrator, and
``NormalizationFailure`` never leaves the image normalizer.
"""


class ScanBatchError(Exception):
    """Base exception for all scan processing errors."""


class EmptyScan(ScanBatchError):
    """Raised when a scan decodes to zero pages."""


class AlreadyProcessing(ScanBatchError):
    """Raised when processing is requested for a scan already in progress."""


class ScanNotReprocessable(ScanBatchError):
    """Raised when a manual reprocess targets a scan that has not failed."""


class DuplicateScan(ScanBatchError):
    """Raised when a file with the same content hash was already registered."""


class ExtractionFailure(ScanBatchError):
    """Raised when recognition or field extraction fails for a single page."""

    def __init__(self, page_number: int | None, reason: str) -> None:
        self.page_number = page_number
        self.reason = reason
        where = f"page {page_number}" if page_number is not None else "page"
        super().__init__(f"Extraction failed for {where}: {reason}")


class NormalizationFailure(ScanBatchError):
    """Raised internally when orientation or skew correction cannot run."""


class PersistenceFailure(ScanBatchError):
    """Raised when the record store cannot complete an operation."""


class PageSourceError(ScanBatchError):
    """Raised when a scan file is unreadable or a page index is out of range."""
