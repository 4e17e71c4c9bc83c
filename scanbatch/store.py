"""Structured record store for scans, page documents and extractions.

:class:`RecordStore` is the contract the orchestrator depends on.
:class:`InMemoryRecordStore` backs the CLI and the tests.
"""

import itertools
from abc import ABC, abstractmethod
from dataclasses import replace
from typing import Any

from scanbatch.errors import PersistenceFailure
from scanbatch.models import (
    DocumentType,
    PageDocument,
    PageExtraction,
    Scan,
    ScanStatus,
)
from scanbatch.utils.logger import get_logger

logger = get_logger(__name__)

DEFAULT_DOCUMENT_TYPES: list[DocumentType] = [
    DocumentType("INVOICE", "Invoice", "Sales ticket, detail or invoice page"),
    DocumentType("FINANCING", "Financing", "Finance agreement or financed sale"),
    DocumentType("MANIFEST", "Manifest", "Delivery manifest or order summary list"),
    DocumentType("RECEIPT", "Receipt", "Transaction receipt"),
    DocumentType("CDR_REPORT", "Cash Drawer Report", "Daily cash drawer report"),
    DocumentType("DEPOSIT_TICKET", "Deposit Ticket", "Bank deposit ticket"),
    DocumentType("UNKNOWN", "Unknown", "Content could not be classified"),
]


class RecordStore(ABC):
    """Persistence contract for scan processing records."""

    @abstractmethod
    def add_scan(self, scan: Scan) -> Scan:
        """Store a new scan and return it with its assigned id."""

    @abstractmethod
    def get_scan(self, scan_id: int) -> Scan:
        """Return a scan. Raises PersistenceFailure if it does not exist."""

    @abstractmethod
    def update_scan(self, scan_id: int, **changes: Any) -> Scan:
        """Apply field changes to a scan and return the updated record."""

    @abstractmethod
    def find_scans(
        self,
        status: ScanStatus | None = None,
        parentless: bool = False,
        parent_id: int | None = None,
    ) -> list[Scan]:
        """Return scans matching every given filter."""

    @abstractmethod
    def delete_scan(self, scan_id: int) -> None:
        """Delete a scan together with its documents and extractions."""

    @abstractmethod
    def create_document(
        self,
        scan_id: int,
        page_number: int,
        document_type: str | None = None,
        is_coversheet: bool = False,
    ) -> PageDocument: ...

    @abstractmethod
    def update_document(self, document_id: int, **changes: Any) -> PageDocument: ...

    @abstractmethod
    def list_documents(self, scan_id: int) -> list[PageDocument]: ...

    @abstractmethod
    def upsert_extraction(
        self,
        document_id: int,
        page_number: int,
        confidence: float,
        raw_text: str,
        fields: dict[str, Any],
    ) -> PageExtraction:
        """Create or replace the extraction for ``(document_id, page_number)``."""

    @abstractmethod
    def list_extractions(self, scan_id: int) -> list[PageExtraction]: ...

    @abstractmethod
    def delete_scan_documents(self, scan_id: int) -> int:
        """Delete every document and extraction of a scan; return documents removed."""

    @abstractmethod
    def get_document_type(self, code: str) -> DocumentType | None: ...


class InMemoryRecordStore(RecordStore):
    """Dict-backed store with incrementing ids."""

    def __init__(self, document_types: list[DocumentType] | None = None) -> None:
        self._scans: dict[int, Scan] = {}
        self._documents: dict[int, PageDocument] = {}
        self._extractions: dict[tuple[int, int], PageExtraction] = {}
        self._document_types = {
            t.code: t for t in (document_types or DEFAULT_DOCUMENT_TYPES)
        }
        self._scan_ids = itertools.count(1)
        self._document_ids = itertools.count(1)
        self._extraction_ids = itertools.count(1)

    def add_scan(self, scan: Scan) -> Scan:
        stored = replace(scan, id=next(self._scan_ids))
        self._scans[stored.id] = stored
        return stored

    def get_scan(self, scan_id: int) -> Scan:
        try:
            return self._scans[scan_id]
        except KeyError:
            raise PersistenceFailure(f"Scan {scan_id} not found") from None

    def update_scan(self, scan_id: int, **changes: Any) -> Scan:
        scan = self.get_scan(scan_id)
        _apply(scan, changes)
        return scan

    def find_scans(
        self,
        status: ScanStatus | None = None,
        parentless: bool = False,
        parent_id: int | None = None,
    ) -> list[Scan]:
        return [
            scan
            for scan in self._scans.values()
            if (status is None or scan.status == status)
            and (not parentless or scan.parent_id is None)
            and (parent_id is None or scan.parent_id == parent_id)
        ]

    def delete_scan(self, scan_id: int) -> None:
        self.get_scan(scan_id)
        self.delete_scan_documents(scan_id)
        del self._scans[scan_id]

    def create_document(
        self,
        scan_id: int,
        page_number: int,
        document_type: str | None = None,
        is_coversheet: bool = False,
    ) -> PageDocument:
        scan = self.get_scan(scan_id)
        doc_id = next(self._document_ids)
        document = PageDocument(
            id=doc_id,
            scan_id=scan_id,
            page_number=page_number,
            document_type=document_type,
            is_coversheet=is_coversheet,
            reference=f"{scan.location}-{doc_id}",
        )
        self._documents[doc_id] = document
        return document

    def update_document(self, document_id: int, **changes: Any) -> PageDocument:
        document = self._get_document(document_id)
        _apply(document, changes)
        return document

    def list_documents(self, scan_id: int) -> list[PageDocument]:
        docs = [d for d in self._documents.values() if d.scan_id == scan_id]
        return sorted(docs, key=lambda d: d.page_number)

    def upsert_extraction(
        self,
        document_id: int,
        page_number: int,
        confidence: float,
        raw_text: str,
        fields: dict[str, Any],
    ) -> PageExtraction:
        self._get_document(document_id)
        key = (document_id, page_number)
        existing = self._extractions.get(key)
        extraction = PageExtraction(
            id=existing.id if existing else next(self._extraction_ids),
            document_id=document_id,
            page_number=page_number,
            confidence=confidence,
            raw_text=raw_text,
            fields=dict(fields),
        )
        self._extractions[key] = extraction
        return extraction

    def list_extractions(self, scan_id: int) -> list[PageExtraction]:
        doc_ids = {d.id for d in self._documents.values() if d.scan_id == scan_id}
        found = [e for e in self._extractions.values() if e.document_id in doc_ids]
        return sorted(found, key=lambda e: (e.page_number, e.document_id))

    def delete_scan_documents(self, scan_id: int) -> int:
        doc_ids = {d.id for d in self._documents.values() if d.scan_id == scan_id}
        for key in [k for k in self._extractions if k[0] in doc_ids]:
            del self._extractions[key]
        for doc_id in doc_ids:
            del self._documents[doc_id]
        logger.debug("Deleted %d documents of scan %d", len(doc_ids), scan_id)
        return len(doc_ids)

    def get_document_type(self, code: str) -> DocumentType | None:
        return self._document_types.get(code)

    def _get_document(self, document_id: int) -> PageDocument:
        try:
            return self._documents[document_id]
        except KeyError:
            raise PersistenceFailure(f"Document {document_id} not found") from None


def _apply(record: Any, changes: dict[str, Any]) -> None:
    for name, value in changes.items():
        if not hasattr(record, name):
            raise PersistenceFailure(
                f"{type(record).__name__} has no field {name!r}"
            )
        setattr(record, name, value)
