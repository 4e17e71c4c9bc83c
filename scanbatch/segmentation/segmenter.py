"""Barcode-driven splitting of a scan into sections.

Pages are pre-scanned for coversheet barcodes a few at a time, then the
ordered results are folded into contiguous sections. Only the pre-scan
is concurrent; the fold always sees pages in order.
"""

import asyncio
from collections.abc import Callable, Iterable
from dataclasses import dataclass

from scanbatch.errors import EmptyScan
from scanbatch.imaging.page_source import ImageProvider
from scanbatch.models import UNCLASSIFIED, Scan, Section
from scanbatch.ocr.barcode import BarcodeReader, normalize_barcode
from scanbatch.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass
class SegmentationResult:
    """Ordered sections of a scan plus its true page count."""

    sections: list[Section]
    total_pages: int


def fold_sections(
    page_codes: Iterable[tuple[int, str | None]],
    is_known: Callable[[str], bool],
    wrapper: str = "*",
) -> list[Section]:
    """Fold ordered ``(page_number, raw_barcode)`` pairs into sections.

    A known code closes the open section and starts a new one. An unknown
    code or a missing barcode continues the open section. When nothing is
    open yet, the page starts an UNCLASSIFIED section so every page lands
    in exactly one section.
    """
    sections: list[Section] = []
    current: Section | None = None

    for page, raw in page_codes:
        code = normalize_barcode(raw, wrapper) if raw else None

        if code and is_known(code):
            if current is not None:
                sections.append(current)
                logger.info(
                    "Closed %s (pages %d-%d)",
                    current.batch_type_code,
                    current.first_page,
                    current.last_page,
                )
            current = Section(batch_type_code=code, pages=[page], raw_barcode=raw or "")
            logger.info("Page %d: coversheet detected -> %s", page, code)
            continue

        if code:
            logger.info("Page %d: barcode read %r but not a known batch type", page, code)
        if current is None:
            current = Section(batch_type_code=UNCLASSIFIED, pages=[page])
            logger.info("Page %d: no coversheet, starting as %s", page, UNCLASSIFIED)
        else:
            current.pages.append(page)

    if current is not None:
        sections.append(current)
    return sections


class Segmenter:
    """Splits scans into sections by coversheet barcode.

    Args:
        provider: Decodes scan pages.
        reader: Detects barcodes on a page image.
        is_known: Whether a normalized code is a recognized batch type.
        fanout: Number of pages pre-scanned concurrently.
        wrapper: Code 39 wrapper character stripped during normalization.
    """

    def __init__(
        self,
        provider: ImageProvider,
        reader: BarcodeReader,
        is_known: Callable[[str], bool],
        fanout: int = 4,
        wrapper: str = "*",
    ) -> None:
        self.provider = provider
        self.reader = reader
        self.is_known = is_known
        self.fanout = max(1, fanout)
        self.wrapper = wrapper

    async def segment(self, scan: Scan) -> SegmentationResult:
        """Segment a scan into ordered sections.

        Raises:
            EmptyScan: If the scan decodes to zero pages.
        """
        total = await asyncio.to_thread(self.provider.page_count, scan)
        if total == 0:
            raise EmptyScan(f"Scan {scan.id} has no pages")

        logger.info("Analyzing scan %d with %d pages: %s", scan.id, total, scan.file_path)
        page_codes = await self.prescan(scan, total)
        sections = fold_sections(page_codes, self.is_known, self.wrapper)

        summary = ", ".join(
            f"{s.batch_type_code}[{s.first_page}-{s.last_page}]" for s in sections
        )
        logger.info("Split result: %d sections -> %s", len(sections), summary)
        return SegmentationResult(sections=sections, total_pages=total)

    async def prescan(self, scan: Scan, total: int) -> list[tuple[int, str | None]]:
        """Read barcodes for all pages, ``fanout`` pages at a time, in page order."""
        results: list[tuple[int, str | None]] = []
        pages = list(range(1, total + 1))
        for start in range(0, total, self.fanout):
            chunk = pages[start : start + self.fanout]
            codes = await asyncio.gather(*(self._scan_page(scan, p) for p in chunk))
            results.extend(zip(chunk, codes))
        return results

    async def _scan_page(self, scan: Scan, page: int) -> str | None:
        image = await asyncio.to_thread(self.provider.decode_page, scan, page)
        return await self.reader.detect(image)
