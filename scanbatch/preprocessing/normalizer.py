"""Orientation and skew correction for scanned pages.

Uses the OCR engine as a probe: an upside-down sample reads with much
lower confidence than its 180-degree rotation, and the baselines of the
recognized text lines give the page's skew angle.
"""

import math

import cv2
import numpy as np

from scanbatch.errors import NormalizationFailure
from scanbatch.ocr.pool import OCRPool
from scanbatch.ocr.tesseract_engine import OCRLine, OCRResult
from scanbatch.utils.config import NormalizerConfig
from scanbatch.utils.logger import get_logger

logger = get_logger(__name__)


def sample_band(image: np.ndarray, top: float, bottom: float) -> np.ndarray:
    """Crop a full-width header band, convert to grayscale and stretch contrast.

    Args:
        image: Page image (RGB or grayscale).
        top: Upper edge of the band as a fraction of the page height.
        bottom: Lower edge of the band as a fraction of the page height.

    Returns:
        Contrast-normalized grayscale sample.
    """
    height = image.shape[0]
    start = int(height * top)
    end = int(height * bottom)
    if end <= start:
        raise NormalizationFailure(f"Empty sample band for page height {height}")
    band = image[start:end]
    gray = cv2.cvtColor(band, cv2.COLOR_RGB2GRAY) if band.ndim == 3 else band
    return cv2.normalize(gray, None, 0, 255, cv2.NORM_MINMAX)


def estimate_skew(
    lines: list[OCRLine], min_span: int = 100, max_angle: float = 10.0
) -> float:
    """Estimate page skew from text line baselines.

    Lines shorter than ``min_span`` pixels are unreliable and lines steeper
    than ``max_angle`` degrees are noise rather than global skew; both are
    discarded. The remaining angles are averaged weighted by span.

    Returns:
        Skew angle in degrees (positive means the text slopes downward).
    """
    weighted = 0.0
    total = 0.0
    for line in lines:
        dx = line.baseline.x1 - line.baseline.x0
        dy = line.baseline.y1 - line.baseline.y0
        if abs(dx) < min_span:
            continue
        angle = math.degrees(math.atan2(dy, dx))
        if abs(angle) > max_angle:
            continue
        weighted += angle * abs(dx)
        total += abs(dx)
    return weighted / total if total else 0.0


def rotate_180(image: np.ndarray) -> np.ndarray:
    return cv2.rotate(image, cv2.ROTATE_180)


def rotate_degrees(image: np.ndarray, angle: float) -> np.ndarray:
    """Rotate counter-clockwise by ``angle`` degrees, filling corners with white."""
    h, w = image.shape[:2]
    center = (w / 2, h / 2)
    rotation_matrix = cv2.getRotationMatrix2D(center, angle, 1.0)
    white = (255, 255, 255) if image.ndim == 3 else 255
    return cv2.warpAffine(
        image,
        rotation_matrix,
        (w, h),
        flags=cv2.INTER_CUBIC,
        borderMode=cv2.BORDER_CONSTANT,
        borderValue=white,
    )


class ImageNormalizer:
    """Best-effort page orientation and deskew.

    Args:
        pool: OCR pool used to probe the header sample.
        config: Normalizer thresholds.
    """

    def __init__(self, pool: OCRPool, config: NormalizerConfig | None = None) -> None:
        self.pool = pool
        self.config = config or NormalizerConfig()

    async def correct(self, image: np.ndarray) -> np.ndarray:
        """Return ``image`` upright and deskewed.

        Never raises: on any internal error the original image is returned.
        """
        if not self.config.enabled:
            return image
        try:
            return await self._correct(image)
        except Exception as exc:
            logger.debug("Page correction failed, using original image: %s", exc)
            return image

    async def _correct(self, image: np.ndarray) -> np.ndarray:
        cfg = self.config
        sample = sample_band(image, cfg.sample_top, cfg.sample_bottom)
        probe = await self.pool.recognize(sample)
        corrected = image

        if probe.confidence <= cfg.orientation_confidence:
            flipped = await self.pool.recognize(rotate_180(sample))
            if flipped.confidence > probe.confidence + cfg.orientation_margin:
                logger.info(
                    "Page upside-down: conf %.1f vs rotated %.1f",
                    probe.confidence,
                    flipped.confidence,
                )
                corrected = rotate_180(image)
                probe = flipped

        return self._deskew(corrected, probe)

    def _deskew(self, image: np.ndarray, probe: OCRResult) -> np.ndarray:
        cfg = self.config
        skew = estimate_skew(probe.lines, cfg.min_line_span, cfg.max_skew_angle)
        if abs(skew) <= cfg.skew_threshold:
            return image
        logger.info("Skew detected: %.2f degrees", skew)
        # cv2 angles are counter-clockwise in image coordinates, so rotating
        # by the measured angle levels a downward-sloping baseline.
        return rotate_degrees(image, skew)
