"""Configuration management for the scan processing pipeline.

Loads and validates YAML configuration with sensible defaults for
page normalization, OCR, segmentation, extraction, and scan scheduling.
"""

import logging
from pathlib import Path

import yaml
from pydantic import BaseModel, Field, field_validator

logger = logging.getLogger(__name__)

DEFAULT_BATCH_TYPES: list[str] = [
    "CDR",
    "APINV",
    "ATOMRCV",
    "MTOZRCV",
    "LBRCV",
    "REFUND",
    "EXPENSE",
    "FINSALES",
    "FINTRAN",
    "LOFTFIN",
    "WFDEP",
    "OTHER",
]


class NormalizerConfig(BaseModel):
    """Configuration for orientation and skew correction."""

    enabled: bool = True
    sample_top: float = 0.20
    sample_bottom: float = 0.55
    orientation_confidence: float = 70.0
    orientation_margin: float = 10.0
    min_line_span: int = 100
    max_skew_angle: float = 10.0
    skew_threshold: float = 0.5


class OCRConfig(BaseModel):
    """Configuration for the Tesseract worker pool."""

    tesseract_cmd: str | None = None
    default_lang: str = "eng"
    psm: int = 3
    workers: int = Field(default=4, ge=1)
    low_confidence_threshold: float = 50.0
    rotation_margin: float = 10.0
    pdf_dpi: int = 300


class SegmentationConfig(BaseModel):
    """Configuration for barcode-driven scan segmentation."""

    barcode_fanout: int = Field(default=4, ge=1)
    barcode_wrapper: str = "*"
    known_batch_types: list[str] = Field(
        default_factory=lambda: list(DEFAULT_BATCH_TYPES)
    )
    barcode_band: tuple[float, float] = (0.25, 0.50)
    label_band: tuple[float, float] = (0.35, 0.50)

    @field_validator("known_batch_types")
    @classmethod
    def _uppercase_codes(cls, value: list[str]) -> list[str]:
        return [code.strip().upper() for code in value]


class ExtractionConfig(BaseModel):
    """Configuration for per-page field extraction."""

    ticket_barcode_region: tuple[float, float, float, float] = (0.5, 0.5, 0.5, 0.5)
    manifest_min_orders: int = 2
    manifest_full_confidence_orders: int = 5
    batch_type_defaults: dict[str, str] = Field(
        default_factory=lambda: {
            "FINSALES": "INVOICE",
            "FINTRAN": "FINANCING",
            "LOFTFIN": "FINANCING",
            "CDR": "CDR_REPORT",
            "WFDEP": "DEPOSIT_TICKET",
        }
    )


class ProcessingConfig(BaseModel):
    """Configuration for whole-scan scheduling."""

    max_concurrent_scans: int = Field(default=4, ge=1)


class AppConfig(BaseModel):
    """Top-level application configuration."""

    normalizer: NormalizerConfig = Field(default_factory=NormalizerConfig)
    ocr: OCRConfig = Field(default_factory=OCRConfig)
    segmentation: SegmentationConfig = Field(default_factory=SegmentationConfig)
    extraction: ExtractionConfig = Field(default_factory=ExtractionConfig)
    processing: ProcessingConfig = Field(default_factory=ProcessingConfig)
    log_level: str = "INFO"


def load_config(path: Path | None = None) -> AppConfig:
    """Load configuration from a YAML file.

    Args:
        path: Path to the YAML configuration file.
            Defaults to configs/config.yaml.

    Returns:
        Validated application configuration.
    """
    if path is None:
        path = Path("configs/config.yaml")

    if path.exists():
        logger.info("Loading configuration from %s", path)
        with open(path) as f:
            raw = yaml.safe_load(f) or {}
        return AppConfig(**raw)

    logger.info("No config file found at %s, using defaults", path)
    return AppConfig()
