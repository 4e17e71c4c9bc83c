"""Secondary content classification of extracted pages.

Coversheets declare where a section came from, not what each page is.
A fresh OCR pass over the page decides whether its content clearly
belongs to a different document type.
"""

import numpy as np

from scanbatch.extraction.dispatch import classify_content
from scanbatch.ocr.pool import OCRPool
from scanbatch.utils.logger import get_logger

logger = get_logger(__name__)


class ContentClassifier:
    """Re-OCRs a page and classifies it by content patterns."""

    def __init__(self, pool: OCRPool) -> None:
        self.pool = pool

    async def classify(self, image: np.ndarray) -> str | None:
        result = await self.pool.recognize(image)
        return classify_content(result.text)

    async def reclassify(
        self, image: np.ndarray, current_type: str | None
    ) -> str | None:
        """Return the content type if it differs from ``current_type``, else ``None``."""
        found = await self.classify(image)
        if found is None or found == current_type:
            return None
        logger.info("Content reclassified %s -> %s", current_type, found)
        return found
