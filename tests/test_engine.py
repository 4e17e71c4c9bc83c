"""Tests for the per-page field extraction engine."""

import asyncio
from unittest.mock import patch

import numpy as np
import pytest

from scanbatch.errors import ExtractionFailure
from scanbatch.extraction.dispatch import PageParser
from scanbatch.extraction.engine import FieldExtractionEngine
from scanbatch.extraction.fields import CdrReportFields, ManifestFields, TicketFields
from scanbatch.ocr.tesseract_engine import OCRResult
from scanbatch.preprocessing.normalizer import rotate_180
from scanbatch.utils.config import ExtractionConfig
from tests.fakes import FakePool, FakeReader
from tests.samples import CDR_TEXT, DETAIL_TEXT, MANIFEST_TEXT, TICKET_TEXT


@pytest.fixture
def image() -> np.ndarray:
    image = np.zeros((40, 30, 3), dtype=np.uint8)
    image[0, 0] = 9
    return image


def _engine(pool: FakePool, reader: FakeReader | None = None) -> FieldExtractionEngine:
    return FieldExtractionEngine(pool, reader or FakeReader())


class TestRecognizePage:
    """Tests for low-confidence rotation retry."""

    def test_confident_page_read_once(self, image: np.ndarray) -> None:
        pool = FakePool(responses=[OCRResult("TEXT", 80.0)])
        result = asyncio.run(_engine(pool).recognize_page(image))
        assert result.text == "TEXT"
        assert len(pool.calls) == 1

    def test_rotated_retry_wins(self, image: np.ndarray) -> None:
        pool = FakePool(responses=[OCRResult("#@!", 30.0), OCRResult("TEXT", 75.0)])
        result = asyncio.run(_engine(pool).recognize_page(image))
        assert result.text == "TEXT"
        np.testing.assert_array_equal(pool.calls[1], rotate_180(image))

    def test_retry_needs_margin(self, image: np.ndarray) -> None:
        pool = FakePool(responses=[OCRResult("FIRST", 45.0), OCRResult("SECOND", 55.0)])
        result = asyncio.run(_engine(pool).recognize_page(image))
        assert result.text == "FIRST"
        assert len(pool.calls) == 2


class TestDetectManifest:
    """Tests for manifest detection with the sideways retry."""

    def test_upright_manifest(self, image: np.ndarray) -> None:
        pool = FakePool()
        ocr = OCRResult(MANIFEST_TEXT, 80.0)
        outcome = asyncio.run(_engine(pool).detect_manifest(image, ocr))

        assert outcome is not None
        assert outcome.document_type == "MANIFEST"
        assert isinstance(outcome.fields, ManifestFields)
        assert outcome.fields.rotated is False
        assert outcome.confidence == pytest.approx(0.4)
        # order-id hints trigger the sideways attempt
        assert len(pool.calls) == 1

    def test_sideways_manifest(self, image: np.ndarray) -> None:
        pool = FakePool(responses=[OCRResult(MANIFEST_TEXT, 70.0)])
        ocr = OCRResult("l1l|| ::", 20.0)
        outcome = asyncio.run(_engine(pool).detect_manifest(image, ocr))

        assert outcome is not None
        assert outcome.fields.rotated is True
        assert outcome.raw_text == MANIFEST_TEXT
        assert pool.calls[0].shape == (30, 40, 3)

    def test_not_a_manifest(self, image: np.ndarray) -> None:
        pool = FakePool()
        outcome = asyncio.run(
            _engine(pool).detect_manifest(image, OCRResult("HELLO WORLD", 90.0))
        )
        assert outcome is None
        assert pool.calls == []

    def test_confidence_caps_at_one(self, image: np.ndarray) -> None:
        lines = "\n".join(f"0302578{i}AB CUSTOMER NAME SAL" for i in range(7))
        outcome = asyncio.run(
            _engine(FakePool()).detect_manifest(image, OCRResult(lines, 90.0))
        )
        assert outcome.fields.order_count == 7
        assert outcome.confidence == 1.0

    def test_full_confidence_orders_from_config(self, image: np.ndarray) -> None:
        config = ExtractionConfig(manifest_full_confidence_orders=2)
        engine = FieldExtractionEngine(FakePool(), FakeReader(), config)

        outcome = asyncio.run(engine.detect_manifest(image, OCRResult(MANIFEST_TEXT, 80.0)))

        assert outcome.fields.order_count == 2
        assert outcome.confidence == 1.0
        assert "full_confidence_orders" not in outcome.record_fields()


class TestExtract:
    """Tests for FieldExtractionEngine.extract."""

    def test_ticket_order_id_from_barcode(self, image: np.ndarray) -> None:
        reader = FakeReader(region_code="*0999888RT*")
        outcome = asyncio.run(_engine(FakePool(), reader).extract(image, TICKET_TEXT))

        assert isinstance(outcome.fields, TicketFields)
        assert outcome.fields.order_id == "0999888RT"
        assert outcome.document_type == "INVOICE"
        assert reader.region_calls == 1

    def test_ticket_keeps_text_order_id_without_barcode(self, image: np.ndarray) -> None:
        outcome = asyncio.run(_engine(FakePool()).extract(image, TICKET_TEXT))
        assert outcome.fields.order_id == "03025781ND"

    def test_non_ticket_skips_barcode(self, image: np.ndarray) -> None:
        reader = FakeReader(region_code="*X*")
        asyncio.run(_engine(FakePool(), reader).extract(image, CDR_TEXT))
        assert reader.region_calls == 0

    def test_content_beats_hint(self, image: np.ndarray) -> None:
        outcome = asyncio.run(
            _engine(FakePool()).extract(image, DETAIL_TEXT, "CDR_REPORT")
        )
        assert outcome.document_type == "INVOICE"
        assert outcome.raw_text == DETAIL_TEXT
        assert 0.0 <= outcome.confidence <= 1.0

    def test_hint_used_for_unrecognized_content(self, image: np.ndarray) -> None:
        outcome = asyncio.run(
            _engine(FakePool()).extract(image, "smudged page", "FINANCING")
        )
        assert outcome.document_type == "FINANCING"

    def test_unknown_without_hint(self, image: np.ndarray) -> None:
        outcome = asyncio.run(_engine(FakePool()).extract(image, "smudged page"))
        assert outcome.document_type == "UNKNOWN"

    def test_record_fields(self, image: np.ndarray) -> None:
        outcome = asyncio.run(_engine(FakePool()).extract(image, CDR_TEXT))
        record = outcome.record_fields()
        assert record["document_type"] == "CDR_REPORT"
        assert record["kind"] == "CDR_REPORT"
        assert record["grand_total"] == "350.00"

    def test_parser_error_wrapped(self, image: np.ndarray) -> None:
        def explode(text: str):
            raise ValueError("bad layout")

        broken = PageParser("broken", lambda t: True, explode, lambda t: "UNKNOWN")
        with patch("scanbatch.extraction.engine.select_parser", return_value=broken):
            with pytest.raises(ExtractionFailure, match="bad layout"):
                asyncio.run(_engine(FakePool()).extract(image, "anything"))


class TestExtractPage:
    """Tests for the full recognize-and-parse path."""

    def test_titled_page_skips_manifest_check(self, image: np.ndarray) -> None:
        pool = FakePool(responses=[OCRResult(CDR_TEXT, 90.0)])
        outcome = asyncio.run(_engine(pool).extract_page(image, "CDR_REPORT"))

        assert isinstance(outcome.fields, CdrReportFields)
        assert outcome.document_type == "CDR_REPORT"
        assert len(pool.calls) == 1

    def test_manifest_page(self, image: np.ndarray) -> None:
        pool = FakePool(responses=[OCRResult(MANIFEST_TEXT, 85.0)])
        outcome = asyncio.run(_engine(pool).extract_page(image, "INVOICE"))
        assert outcome.document_type == "MANIFEST"

    def test_errors_wrapped_with_page_number(self, image: np.ndarray) -> None:
        def boom(img):
            raise RuntimeError("engine crashed")

        pool = FakePool(responder=boom)
        with pytest.raises(ExtractionFailure) as excinfo:
            asyncio.run(_engine(pool).extract_page(image, None, page_number=3))

        assert excinfo.value.page_number == 3
        assert "engine crashed" in str(excinfo.value)
