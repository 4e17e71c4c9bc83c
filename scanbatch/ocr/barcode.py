"""Coversheet barcode detection.

Decodes Code 39 coversheet barcodes with zbar, falling back to reading
the human-readable label under the bars with OCR when the symbol itself
is too damaged to decode.
"""

import asyncio
import re

import cv2
import numpy as np
from pyzbar import pyzbar

from scanbatch.utils.logger import get_logger

from .pool import OCRPool

logger = get_logger(__name__)

# OCR misreads the "*" delimiters as ~, ), ", etc. and adds noise
# characters inside the code that are stripped afterwards.
_LABEL_PATTERN = re.compile(r"""[*"'+]([A-Z0-9][A-Z0-9?!.,;: ]{1,11})[*"'~?)\]|]""")
_LABEL_NOISE = re.compile(r"[^A-Z0-9]")


def normalize_barcode(raw: str, wrapper: str = "*") -> str:
    """Strip the Code 39 wrapper character from both ends and uppercase."""
    value = raw.strip()
    if wrapper:
        if value.startswith(wrapper):
            value = value[len(wrapper):]
        if value.endswith(wrapper):
            value = value[: -len(wrapper)]
    return value.upper()


def crop_band(image: np.ndarray, top: float, bottom: float) -> np.ndarray:
    """Crop a full-width horizontal band given as fractions of the height."""
    height = image.shape[0]
    start = int(height * top)
    end = max(start + 1, min(height, int(height * bottom)))
    return image[start:end]


def crop_region(
    image: np.ndarray, region: tuple[float, float, float, float]
) -> np.ndarray:
    """Crop ``(left, top, width, height)`` fractions out of an image."""
    h, w = image.shape[:2]
    left, top, width, height = region
    x0, y0 = int(w * left), int(h * top)
    x1 = min(w, x0 + max(1, int(w * width)))
    y1 = min(h, y0 + max(1, int(h * height)))
    return image[y0:y1, x0:x1]


def decode_symbols(image: np.ndarray) -> str | None:
    """Decode the first linear barcode in ``image`` with zbar."""
    try:
        results = pyzbar.decode(image)
    except Exception as exc:
        logger.debug("zbar decode failed: %s", exc)
        return None
    for symbol in results:
        data = symbol.data.decode("ascii", errors="ignore").strip()
        if data:
            return data
    return None


def match_label_text(text: str) -> str | None:
    """Recover a barcode value from OCR of its printed label."""
    match = _LABEL_PATTERN.search(text.strip())
    if not match:
        return None
    cleaned = _LABEL_NOISE.sub("", match.group(1))
    if len(cleaned) < 2:
        logger.info("OCR label %r cleaned too short: %r", match.group(0), cleaned)
        return None
    logger.info("OCR barcode match: raw=%r -> cleaned=%r", match.group(0), cleaned)
    return cleaned


class BarcodeReader:
    """Finds coversheet barcodes on page images.

    Args:
        pool: OCR pool used by the label-reading fallback.
        barcode_band: Vertical band (fractions) searched by zbar.
        label_band: Vertical band (fractions) holding the printed label.
        wrapper: Code 39 start/stop character added around results.
    """

    def __init__(
        self,
        pool: OCRPool,
        barcode_band: tuple[float, float] = (0.25, 0.50),
        label_band: tuple[float, float] = (0.35, 0.50),
        wrapper: str = "*",
    ) -> None:
        self.pool = pool
        self.barcode_band = barcode_band
        self.label_band = label_band
        self.wrapper = wrapper

    async def detect(self, image: np.ndarray) -> str | None:
        """Detect a coversheet barcode in either page orientation.

        Returns:
            The raw barcode wrapped in the Code 39 delimiter, or ``None``.
        """
        rotated = cv2.rotate(image, cv2.ROTATE_180)

        for candidate, label in ((image, "0"), (rotated, "180")):
            band = crop_band(candidate, *self.barcode_band)
            value = await asyncio.to_thread(decode_symbols, band)
            if value:
                logger.info("zbar detected barcode (%s deg): %s", label, value)
                return self._wrap(value)

        for candidate, label in ((image, "0"), (rotated, "180")):
            value = await self._read_label(candidate)
            if value:
                logger.info("OCR read barcode label (%s deg): %s", label, value)
                return self._wrap(value)

        return None

    async def scan_region(
        self, image: np.ndarray, region: tuple[float, float, float, float]
    ) -> str | None:
        """Decode a barcode inside a fractional sub-region of the page."""
        try:
            cropped = crop_region(image, region)
        except (ValueError, IndexError):
            return None
        return await asyncio.to_thread(decode_symbols, cropped)

    async def _read_label(self, image: np.ndarray) -> str | None:
        band = crop_band(image, *self.label_band)
        if band.ndim == 3:
            band = cv2.cvtColor(band, cv2.COLOR_RGB2GRAY)
        band = cv2.normalize(band, None, 0, 255, cv2.NORM_MINMAX)
        try:
            result = await self.pool.recognize(band)
        except Exception as exc:
            logger.warning("OCR barcode detection failed: %s", exc)
            return None
        return match_label_text(result.text)

    def _wrap(self, value: str) -> str:
        return f"{self.wrapper}{value}{self.wrapper}"
