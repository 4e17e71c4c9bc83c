"""Tests for configuration loading and validation."""

from pathlib import Path

import pytest
import yaml
from pydantic import ValidationError

from scanbatch.utils.config import (
    DEFAULT_BATCH_TYPES,
    AppConfig,
    ExtractionConfig,
    NormalizerConfig,
    OCRConfig,
    ProcessingConfig,
    SegmentationConfig,
    load_config,
)


class TestNormalizerConfig:
    """Tests for NormalizerConfig defaults and overrides."""

    def test_defaults(self) -> None:
        cfg = NormalizerConfig()
        assert cfg.enabled is True
        assert cfg.sample_top == 0.20
        assert cfg.sample_bottom == 0.55
        assert cfg.orientation_confidence == 70.0
        assert cfg.orientation_margin == 10.0
        assert cfg.min_line_span == 100
        assert cfg.max_skew_angle == 10.0
        assert cfg.skew_threshold == 0.5

    def test_override(self) -> None:
        cfg = NormalizerConfig(enabled=False, skew_threshold=1.0)
        assert cfg.enabled is False
        assert cfg.skew_threshold == 1.0


class TestOCRConfig:
    """Tests for OCRConfig defaults and overrides."""

    def test_defaults(self) -> None:
        cfg = OCRConfig()
        assert cfg.default_lang == "eng"
        assert cfg.psm == 3
        assert cfg.workers == 4
        assert cfg.low_confidence_threshold == 50.0
        assert cfg.rotation_margin == 10.0
        assert cfg.pdf_dpi == 300
        assert cfg.tesseract_cmd is None

    def test_workers_must_be_positive(self) -> None:
        with pytest.raises(ValidationError):
            OCRConfig(workers=0)


class TestSegmentationConfig:
    """Tests for SegmentationConfig defaults."""

    def test_defaults(self) -> None:
        cfg = SegmentationConfig()
        assert cfg.barcode_fanout == 4
        assert cfg.barcode_wrapper == "*"
        assert cfg.known_batch_types == DEFAULT_BATCH_TYPES
        assert "FINSALES" in cfg.known_batch_types

    def test_codes_are_uppercased(self) -> None:
        cfg = SegmentationConfig(known_batch_types=["finsales", " cdr "])
        assert cfg.known_batch_types == ["FINSALES", "CDR"]


class TestExtractionConfig:
    """Tests for ExtractionConfig defaults."""

    def test_defaults(self) -> None:
        cfg = ExtractionConfig()
        assert cfg.ticket_barcode_region == (0.5, 0.5, 0.5, 0.5)
        assert cfg.manifest_min_orders == 2
        assert cfg.manifest_full_confidence_orders == 5
        assert cfg.batch_type_defaults["FINSALES"] == "INVOICE"
        assert cfg.batch_type_defaults["FINTRAN"] == "FINANCING"


class TestAppConfig:
    """Tests for the top-level AppConfig."""

    def test_defaults(self) -> None:
        cfg = AppConfig()
        assert isinstance(cfg.normalizer, NormalizerConfig)
        assert isinstance(cfg.ocr, OCRConfig)
        assert isinstance(cfg.segmentation, SegmentationConfig)
        assert isinstance(cfg.extraction, ExtractionConfig)
        assert isinstance(cfg.processing, ProcessingConfig)
        assert cfg.processing.max_concurrent_scans == 4
        assert cfg.log_level == "INFO"

    def test_nested_override(self) -> None:
        cfg = AppConfig(
            normalizer=NormalizerConfig(enabled=False),
            log_level="DEBUG",
        )
        assert cfg.normalizer.enabled is False
        assert cfg.log_level == "DEBUG"


class TestLoadConfig:
    """Tests for the load_config function."""

    def test_load_shipped_config(self, config_dir: Path) -> None:
        cfg = load_config(config_dir / "config.yaml")
        assert isinstance(cfg, AppConfig)
        assert cfg.ocr.default_lang == "eng"
        assert cfg.segmentation.known_batch_types == DEFAULT_BATCH_TYPES
        assert cfg.extraction.ticket_barcode_region == (0.5, 0.5, 0.5, 0.5)

    def test_load_missing_file_returns_defaults(self) -> None:
        cfg = load_config(Path("/nonexistent/path/config.yaml"))
        assert isinstance(cfg, AppConfig)
        assert cfg.ocr.workers == 4

    def test_load_custom_yaml(self, tmp_path: Path) -> None:
        config_data = {
            "normalizer": {"enabled": False},
            "ocr": {"workers": 2, "psm": 6},
            "processing": {"max_concurrent_scans": 1},
            "log_level": "DEBUG",
        }
        config_file = tmp_path / "config.yaml"
        with open(config_file, "w") as f:
            yaml.dump(config_data, f)

        cfg = load_config(config_file)
        assert cfg.normalizer.enabled is False
        assert cfg.ocr.workers == 2
        assert cfg.ocr.psm == 6
        assert cfg.processing.max_concurrent_scans == 1
        assert cfg.log_level == "DEBUG"

    def test_load_empty_yaml(self, tmp_path: Path) -> None:
        config_file = tmp_path / "empty.yaml"
        config_file.write_text("")
        cfg = load_config(config_file)
        assert isinstance(cfg, AppConfig)

    def test_load_none_defaults_to_standard_path(self) -> None:
        cfg = load_config()
        assert isinstance(cfg, AppConfig)
