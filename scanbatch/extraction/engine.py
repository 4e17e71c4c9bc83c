"""Per-page field extraction.

Recognizes a page (retrying upside-down pages), checks for sideways
delivery manifests, then hands the text to the first matching parser.
"""

import cv2
import numpy as np

from scanbatch.errors import ExtractionFailure
from scanbatch.ocr.barcode import BarcodeReader, normalize_barcode
from scanbatch.ocr.pool import OCRPool
from scanbatch.ocr.tesseract_engine import OCRResult
from scanbatch.preprocessing.normalizer import rotate_180
from scanbatch.utils.config import ExtractionConfig, OCRConfig
from scanbatch.utils.logger import get_logger

from .dispatch import MANIFEST, PARSERS, UNKNOWN, select_parser
from .fields import ExtractionOutcome, TicketFields
from .manifest import count_order_ids, looks_like_manifest, parse_manifest

logger = get_logger(__name__)


class FieldExtractionEngine:
    """Turns page images into typed field sets with a confidence score.

    Args:
        pool: Shared OCR pool.
        reader: Barcode reader used to recover ticket order ids.
        config: Extraction settings.
        ocr_config: Low-confidence retry thresholds.
    """

    def __init__(
        self,
        pool: OCRPool,
        reader: BarcodeReader,
        config: ExtractionConfig | None = None,
        ocr_config: OCRConfig | None = None,
    ) -> None:
        self.pool = pool
        self.reader = reader
        self.config = config or ExtractionConfig()
        self.ocr_config = ocr_config or OCRConfig()

    async def recognize_page(self, image: np.ndarray) -> OCRResult:
        """OCR a page, retrying once at 180 degrees when confidence is low."""
        _, result = await self._recognize_upright(image)
        return result

    async def _recognize_upright(
        self, image: np.ndarray
    ) -> tuple[np.ndarray, OCRResult]:
        result = await self.pool.recognize(image)
        if result.confidence >= self.ocr_config.low_confidence_threshold:
            return image, result

        flipped = rotate_180(image)
        retry = await self.pool.recognize(flipped)
        if retry.confidence > result.confidence + self.ocr_config.rotation_margin:
            logger.info(
                "Low OCR confidence %.1f, rotated page reads at %.1f",
                result.confidence,
                retry.confidence,
            )
            return flipped, retry
        return image, result

    async def detect_manifest(
        self, image: np.ndarray, ocr: OCRResult
    ) -> ExtractionOutcome | None:
        """Treat the page as a manifest if it, or its 90-degree rotation, looks like one.

        The rotation is only tried when the recognized text is weak or
        already hints at order ids, and it is kept when it reads better.
        """
        min_orders = self.config.manifest_min_orders
        candidates: list[tuple[OCRResult, bool]] = [(ocr, False)]

        low_confidence = ocr.confidence < self.ocr_config.low_confidence_threshold
        if low_confidence or count_order_ids(ocr.text) >= min_orders:
            sideways = cv2.rotate(image, cv2.ROTATE_90_COUNTERCLOCKWISE)
            rotated = await self.pool.recognize(sideways)
            candidates.append((rotated, True))

        matches = [c for c in candidates if looks_like_manifest(c[0].text, min_orders)]
        if not matches:
            return None

        best, rotated = max(matches, key=lambda c: c[0].confidence)
        fields = parse_manifest(
            best.text,
            rotated=rotated,
            full_confidence_orders=self.config.manifest_full_confidence_orders,
        )
        return ExtractionOutcome(
            fields=fields,
            confidence=fields.confidence(),
            raw_text=best.text,
            document_type=MANIFEST,
        )

    async def extract(
        self,
        page_image: np.ndarray,
        recognized_text: str,
        document_type_hint: str | None = None,
    ) -> ExtractionOutcome:
        """Parse recognized page text with the first matching parser.

        Args:
            page_image: The page the text came from, used for barcode lookup.
            recognized_text: OCR output for the page.
            document_type_hint: Type to fall back on when the content is
                not recognizable on its own.

        Raises:
            ExtractionFailure: If the selected parser fails.
        """
        parser = select_parser(recognized_text)
        try:
            fields = parser.parse(recognized_text)
        except Exception as exc:
            raise ExtractionFailure(None, f"{parser.name} parser error: {exc}") from exc

        if isinstance(fields, TicketFields):
            barcode = await self.reader.scan_region(
                page_image, self.config.ticket_barcode_region
            )
            if barcode:
                order_id = normalize_barcode(barcode)
                if order_id != fields.order_id:
                    logger.info(
                        "Ticket order id from barcode: %s (text read %s)",
                        order_id,
                        fields.order_id,
                    )
                fields.order_id = order_id

        document_type = parser.document_type(recognized_text)
        if document_type == UNKNOWN and document_type_hint:
            document_type = document_type_hint

        return ExtractionOutcome(
            fields=fields,
            confidence=fields.confidence(),
            raw_text=recognized_text,
            document_type=document_type,
        )

    async def extract_page(
        self,
        image: np.ndarray,
        document_type_hint: str | None = None,
        page_number: int | None = None,
    ) -> ExtractionOutcome:
        """Recognize and parse one page.

        Raises:
            ExtractionFailure: On any recognition or parsing error.
        """
        try:
            upright, ocr = await self._recognize_upright(image)
            # Titled pages are never manifests; only untitled ones get the check.
            if select_parser(ocr.text) is PARSERS[-1]:
                manifest = await self.detect_manifest(upright, ocr)
                if manifest is not None:
                    return manifest
            return await self.extract(upright, ocr.text, document_type_hint)
        except ExtractionFailure as exc:
            raise ExtractionFailure(page_number, exc.reason) from exc
        except Exception as exc:
            raise ExtractionFailure(page_number, str(exc)) from exc
