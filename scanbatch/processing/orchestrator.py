"""Scan processing state machine.

A scan moves ``pending -> processing -> completed | failed``. Page-level
extraction problems cost only that page; anything else fails the scan,
records the message, and propagates to the caller.
"""

import asyncio

import numpy as np

from scanbatch.errors import AlreadyProcessing, ExtractionFailure
from scanbatch.extraction.engine import FieldExtractionEngine
from scanbatch.imaging.page_source import ImageProvider
from scanbatch.models import DocumentStatus, PageDocument, Scan, ScanStatus, Section, utcnow
from scanbatch.preprocessing.normalizer import ImageNormalizer
from scanbatch.segmentation.segmenter import Segmenter
from scanbatch.store import RecordStore
from scanbatch.utils.config import ExtractionConfig
from scanbatch.utils.logger import ScanLogAdapter, get_logger, scan_logger

from .classifier import ContentClassifier
from .limiter import ScanSlotLimiter

logger = get_logger(__name__)


class BatchOrchestrator:
    """Drives segmentation, extraction and persistence for one scan at a time.

    Args:
        store: Record store holding scans, documents and extractions.
        provider: Decodes scan pages.
        segmenter: Splits scans into sections.
        normalizer: Corrects page orientation and skew.
        engine: Extracts fields from content pages.
        classifier: Secondary content classification pass.
        limiter: Bounds scans processed concurrently by :meth:`submit`.
        config: Extraction settings (batch-type to document-type defaults).
    """

    def __init__(
        self,
        store: RecordStore,
        provider: ImageProvider,
        segmenter: Segmenter,
        normalizer: ImageNormalizer,
        engine: FieldExtractionEngine,
        classifier: ContentClassifier,
        limiter: ScanSlotLimiter,
        config: ExtractionConfig | None = None,
    ) -> None:
        self.store = store
        self.provider = provider
        self.segmenter = segmenter
        self.normalizer = normalizer
        self.engine = engine
        self.classifier = classifier
        self.limiter = limiter
        self.config = config or ExtractionConfig()
        self._tasks: set[asyncio.Task] = set()

    async def process(self, scan_id: int) -> Scan:
        """Process a scan end to end, replacing the records of any earlier run.

        Raises:
            AlreadyProcessing: If the scan is already being processed.
                The scan is left untouched.
        """
        scan = self.store.get_scan(scan_id)
        if scan.status == ScanStatus.PROCESSING:
            raise AlreadyProcessing(f"Scan {scan_id} is already processing")

        log = scan_logger(logger, scan_id)
        scan = self.store.update_scan(
            scan_id, status=ScanStatus.PROCESSING, error_message=None
        )
        log.info("Processing started: %s", scan.file_path)

        try:
            await self._run(scan, log)
        except Exception as exc:
            log.error("Processing failed: %s", exc)
            self.store.update_scan(
                scan_id, status=ScanStatus.FAILED, error_message=str(exc)
            )
            raise

        return self.store.update_scan(
            scan_id, status=ScanStatus.COMPLETED, processed_at=utcnow()
        )

    def submit(self, scan_id: int) -> asyncio.Task:
        """Process a scan in the background once a slot is free.

        Failures are logged; the scan record carries the error.
        """
        task = asyncio.create_task(self._process_limited(scan_id), name=f"scan-{scan_id}")
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _process_limited(self, scan_id: int) -> None:
        async with self.limiter:
            try:
                await self.process(scan_id)
            except Exception as exc:
                logger.error("Background processing of scan %d failed: %s", scan_id, exc)

    async def _run(self, scan: Scan, log: ScanLogAdapter) -> None:
        # a rerun replaces everything an earlier attempt stored
        removed = self.store.delete_scan_documents(scan.id)
        if removed:
            log.info("Removed %d documents from a previous run", removed)

        result = await self.segmenter.segment(scan)

        if not result.sections:
            log.info("No sections found, completing with %d pages", result.total_pages)
            self.store.update_scan(scan.id, page_count=result.total_pages)
            return

        batch_type = result.sections[0].batch_type_code
        self.store.update_scan(
            scan.id, batch_type=batch_type, page_count=result.total_pages
        )
        log.info(
            "%d sections over %d pages, batch type %s",
            len(result.sections),
            result.total_pages,
            batch_type,
        )

        for section in result.sections:
            await self._process_section(scan, section, log)

    async def _process_section(
        self, scan: Scan, section: Section, log: ScanLogAdapter
    ) -> None:
        initial_type = self.config.batch_type_defaults.get(section.batch_type_code)

        for page in section.pages:
            if page == section.first_page and not section.is_unclassified:
                self._store_coversheet(scan, section)
                log.info("Page %d: coversheet %s", page, section.batch_type_code)
                continue

            document = self.store.create_document(
                scan.id, page, document_type=initial_type
            )
            await self._process_page(scan, document, log)
            self.store.update_document(document.id, status=DocumentStatus.COMPLETED)

    def _store_coversheet(self, scan: Scan, section: Section) -> None:
        document = self.store.create_document(
            scan.id, section.first_page, is_coversheet=True
        )
        self.store.upsert_extraction(
            document.id,
            section.first_page,
            confidence=1.0,
            raw_text="",
            fields={"document_type": section.batch_type_code},
        )
        self.store.update_document(document.id, status=DocumentStatus.COMPLETED)

    async def _process_page(
        self, scan: Scan, document: PageDocument, log: ScanLogAdapter
    ) -> None:
        page = document.page_number
        image = await asyncio.to_thread(self.provider.decode_page, scan, page)
        image = await self.normalizer.correct(image)

        try:
            outcome = await self.engine.extract_page(
                image, document.document_type, page_number=page
            )
        except ExtractionFailure as exc:
            log.warning("%s", exc)
            outcome = None
        else:
            self._set_type(document, outcome.document_type, log)

        await self._reclassify(image, document, log)
        if outcome is None:
            return

        # the extraction records the page's final type
        fields = outcome.record_fields()
        fields["document_type"] = document.document_type or outcome.document_type
        self.store.upsert_extraction(
            document.id,
            page,
            confidence=outcome.confidence,
            raw_text=outcome.raw_text,
            fields=fields,
        )
        log.info(
            "Page %d: %s (%s) confidence %.2f",
            page,
            fields["document_type"],
            outcome.fields.kind,
            outcome.confidence,
        )

    async def _reclassify(
        self, image: np.ndarray, document: PageDocument, log: ScanLogAdapter
    ) -> None:
        try:
            found = await self.classifier.reclassify(image, document.document_type)
        except Exception as exc:
            log.warning("Page %d: content classification failed: %s", document.page_number, exc)
            return
        if found is not None:
            self._set_type(document, found, log)

    def _set_type(
        self, document: PageDocument, code: str | None, log: ScanLogAdapter
    ) -> None:
        if not code or code == document.document_type:
            return
        if self.store.get_document_type(code) is None:
            log.warning("Page %d: unknown document type %s", document.page_number, code)
            return
        self.store.update_document(document.id, document_type=code)
        document.document_type = code
