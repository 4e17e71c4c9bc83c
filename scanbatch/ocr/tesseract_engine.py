"""Tesseract OCR engine wrapper.

Returns recognized text, a 0-100 engine confidence, and per-line
baselines that the image normalizer uses to estimate skew.
"""

from dataclasses import dataclass, field

import numpy as np
import pytesseract
from PIL import Image

from scanbatch.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass
class Baseline:
    """Endpoints of a text line's baseline in image coordinates."""

    x0: int
    y0: int
    x1: int
    y1: int

    @property
    def span(self) -> int:
        return abs(self.x1 - self.x0)


@dataclass
class OCRLine:
    """A recognized text line."""

    text: str
    baseline: Baseline


@dataclass
class OCRResult:
    """Recognition result for one image.

    ``confidence`` is on Tesseract's 0-100 scale.
    """

    text: str
    confidence: float
    lines: list[OCRLine] = field(default_factory=list)


class TesseractEngine:
    """Wrapper around Tesseract OCR for page text extraction.

    Args:
        tesseract_cmd: Path to the Tesseract executable.
            If ``None``, uses the system default.
        lang: OCR language code.
        psm: Tesseract page segmentation mode.
    """

    def __init__(
        self,
        tesseract_cmd: str | None = None,
        lang: str = "eng",
        psm: int = 3,
    ) -> None:
        if tesseract_cmd:
            pytesseract.pytesseract.tesseract_cmd = tesseract_cmd
        self.lang = lang
        self.psm = psm

    def recognize(self, image: np.ndarray) -> OCRResult:
        """Recognize text in an image.

        Args:
            image: Input image as a numpy array (RGB or grayscale).

        Returns:
            OCRResult with full text, mean word confidence and line baselines.
        """
        config = f"--psm {self.psm}"
        pil_image = Image.fromarray(image)
        text = pytesseract.image_to_string(pil_image, lang=self.lang, config=config)

        data = pytesseract.image_to_data(
            pil_image,
            lang=self.lang,
            config=config,
            output_type=pytesseract.Output.DICT,
        )

        total_conf = 0.0
        word_count = 0
        grouped: dict[tuple[int, int, int], list[int]] = {}

        for i in range(len(data["text"])):
            conf = float(data["conf"][i])
            word_text = str(data["text"][i]).strip()
            if conf > 0 and word_text:
                total_conf += conf
                word_count += 1
                key = (data["block_num"][i], data["par_num"][i], data["line_num"][i])
                grouped.setdefault(key, []).append(i)

        lines = [_build_line(data, indexes) for indexes in grouped.values()]
        avg_conf = total_conf / word_count if word_count > 0 else 0.0

        logger.debug(
            "OCR recognized %d words in %d lines, confidence %.1f",
            word_count,
            len(lines),
            avg_conf,
        )
        return OCRResult(text=text, confidence=avg_conf, lines=lines)


def _build_line(data: dict, indexes: list[int]) -> OCRLine:
    """Build a line from its word indexes in ``image_to_data`` output.

    The baseline runs from the bottom-left of the first word to the
    bottom-right of the last word.
    """
    indexes = sorted(indexes, key=lambda i: data["left"][i])
    first, last = indexes[0], indexes[-1]
    baseline = Baseline(
        x0=int(data["left"][first]),
        y0=int(data["top"][first] + data["height"][first]),
        x1=int(data["left"][last] + data["width"][last]),
        y1=int(data["top"][last] + data["height"][last]),
    )
    text = " ".join(str(data["text"][i]).strip() for i in indexes)
    return OCRLine(text=text, baseline=baseline)
