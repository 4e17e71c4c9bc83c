"""Page image providers for multi-page scans.

Decodes individual pages of TIFF or PDF scans into numpy arrays on
demand, so a scan never has to be fully rasterized in memory.
"""

from abc import ABC, abstractmethod
from pathlib import Path

import numpy as np
from PIL import Image, UnidentifiedImageError
from pdf2image import convert_from_path
from pdf2image.pdf2image import pdfinfo_from_path

from scanbatch.errors import PageSourceError
from scanbatch.models import Scan
from scanbatch.utils.logger import get_logger

logger = get_logger(__name__)


class ImageProvider(ABC):
    """Contract for decoding pages of a stored scan."""

    @abstractmethod
    def page_count(self, scan: Scan) -> int:
        """Return the true number of pages in the scan file.

        Raises:
            PageSourceError: If the file cannot be read.
        """

    @abstractmethod
    def decode_page(self, scan: Scan, page_number: int) -> np.ndarray:
        """Decode a single 1-based page as an RGB numpy array.

        Raises:
            PageSourceError: If the file cannot be read or the page is
                out of range.
        """

    def _check_range(self, page_number: int, total: int) -> None:
        if page_number < 1 or page_number > total:
            raise PageSourceError(f"Page {page_number} out of range (1-{total})")


class TiffImageProvider(ImageProvider):
    """Reads pages from multi-page TIFF files with Pillow."""

    def page_count(self, scan: Scan) -> int:
        try:
            with Image.open(scan.file_path) as img:
                return getattr(img, "n_frames", 1)
        except (OSError, UnidentifiedImageError) as exc:
            raise PageSourceError(
                f"Failed to read TIFF file: {scan.file_path}"
            ) from exc

    def decode_page(self, scan: Scan, page_number: int) -> np.ndarray:
        try:
            with Image.open(scan.file_path) as img:
                total = getattr(img, "n_frames", 1)
                self._check_range(page_number, total)
                img.seek(page_number - 1)
                return np.array(img.convert("RGB"))
        except (OSError, UnidentifiedImageError) as exc:
            logger.error(
                "Error extracting page %d from %s: %s",
                page_number,
                scan.file_path,
                exc,
            )
            raise PageSourceError(
                f"Failed to decode page {page_number} of {scan.file_path}"
            ) from exc


class PdfImageProvider(ImageProvider):
    """Renders pages from PDF scans with pdf2image.

    Args:
        dpi: Resolution for PDF rendering. Higher values produce
            better OCR results but use more memory.
    """

    def __init__(self, dpi: int = 300) -> None:
        self.dpi = dpi

    def page_count(self, scan: Scan) -> int:
        path = Path(scan.file_path)
        if not path.exists():
            raise PageSourceError(f"PDF file not found: {path}")
        try:
            info = pdfinfo_from_path(str(path))
        except Exception as exc:
            raise PageSourceError(f"Failed to read PDF file: {path}") from exc
        count = int(info["Pages"])
        logger.debug("PDF %s has %d pages", path, count)
        return count

    def decode_page(self, scan: Scan, page_number: int) -> np.ndarray:
        self._check_range(page_number, self.page_count(scan))
        try:
            pages = convert_from_path(
                scan.file_path,
                dpi=self.dpi,
                first_page=page_number,
                last_page=page_number,
            )
        except Exception as exc:
            raise PageSourceError(
                f"PDF conversion failed for page {page_number}: {exc}"
            ) from exc
        if not pages:
            raise PageSourceError(f"PDF page {page_number} rendered no image")
        return np.array(pages[0].convert("RGB"))


def provider_for(path: Path | str, pdf_dpi: int = 300) -> ImageProvider:
    """Pick a page provider by file suffix."""
    if Path(path).suffix.lower() == ".pdf":
        return PdfImageProvider(dpi=pdf_dpi)
    return TiffImageProvider()
