"""Composition root for the scan processing pipeline.

Builds the single OCR pool and hands it by reference to every component
that recognizes text. The pipeline owns the pool and shuts it down.
"""

from collections.abc import Callable
from dataclasses import dataclass

from scanbatch.extraction.engine import FieldExtractionEngine
from scanbatch.imaging.page_source import ImageProvider
from scanbatch.ocr.barcode import BarcodeReader
from scanbatch.ocr.pool import OCRPool, Recognizer
from scanbatch.ocr.tesseract_engine import TesseractEngine
from scanbatch.preprocessing.normalizer import ImageNormalizer
from scanbatch.processing.classifier import ContentClassifier
from scanbatch.processing.limiter import ScanSlotLimiter
from scanbatch.processing.orchestrator import BatchOrchestrator
from scanbatch.segmentation.segmenter import Segmenter
from scanbatch.store import RecordStore
from scanbatch.utils.config import AppConfig
from scanbatch.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass
class Pipeline:
    """Wired pipeline components sharing one OCR pool."""

    config: AppConfig
    store: RecordStore
    provider: ImageProvider
    pool: OCRPool
    reader: BarcodeReader
    normalizer: ImageNormalizer
    segmenter: Segmenter
    engine: FieldExtractionEngine
    limiter: ScanSlotLimiter
    orchestrator: BatchOrchestrator

    async def shutdown(self) -> None:
        await self.pool.shutdown()


def build_pipeline(
    config: AppConfig,
    store: RecordStore,
    provider: ImageProvider,
    engine_factory: Callable[[], Recognizer] | None = None,
) -> Pipeline:
    """Construct every pipeline component from configuration.

    Args:
        config: Application configuration.
        store: Record store for scans, documents and extractions.
        provider: Page image provider for scan files.
        engine_factory: Creates one recognizer per OCR worker.
            Defaults to a configured :class:`TesseractEngine`.

    Returns:
        The wired pipeline. The OCR pool starts lazily on first use.
    """
    ocr_cfg = config.ocr
    if engine_factory is None:

        def engine_factory() -> Recognizer:
            return TesseractEngine(
                tesseract_cmd=ocr_cfg.tesseract_cmd,
                lang=ocr_cfg.default_lang,
                psm=ocr_cfg.psm,
            )

    seg_cfg = config.segmentation
    known_codes = frozenset(seg_cfg.known_batch_types)

    pool = OCRPool(engine_factory, workers=ocr_cfg.workers)
    reader = BarcodeReader(
        pool,
        barcode_band=seg_cfg.barcode_band,
        label_band=seg_cfg.label_band,
        wrapper=seg_cfg.barcode_wrapper,
    )
    normalizer = ImageNormalizer(pool, config.normalizer)
    segmenter = Segmenter(
        provider,
        reader,
        is_known=known_codes.__contains__,
        fanout=seg_cfg.barcode_fanout,
        wrapper=seg_cfg.barcode_wrapper,
    )
    engine = FieldExtractionEngine(pool, reader, config.extraction, ocr_cfg)
    limiter = ScanSlotLimiter(config.processing.max_concurrent_scans)
    orchestrator = BatchOrchestrator(
        store=store,
        provider=provider,
        segmenter=segmenter,
        normalizer=normalizer,
        engine=engine,
        classifier=ContentClassifier(pool),
        limiter=limiter,
        config=config.extraction,
    )
    logger.info(
        "Pipeline built: %d OCR workers, %d scan slots",
        ocr_cfg.workers,
        config.processing.max_concurrent_scans,
    )
    return Pipeline(
        config=config,
        store=store,
        provider=provider,
        pool=pool,
        reader=reader,
        normalizer=normalizer,
        segmenter=segmenter,
        engine=engine,
        limiter=limiter,
        orchestrator=orchestrator,
    )
