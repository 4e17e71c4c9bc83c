"""Tests for the scan processing CLI."""

import asyncio
import json
from pathlib import Path
from unittest.mock import AsyncMock, patch

import numpy as np
import pytest
from PIL import Image

from scanbatch.cli import main, process_file, segment_file
from scanbatch.errors import ScanBatchError
from scanbatch.models import ScanStatus
from scanbatch.ocr.tesseract_engine import OCRResult
from scanbatch.pipeline import build_pipeline
from scanbatch.utils.config import AppConfig, NormalizerConfig
from tests.fakes import page_of
from tests.samples import RECEIPT_TEXT


def _make_tiff(path: Path) -> None:
    """Three-page TIFF whose pages are filled with 10, 20 and 30."""
    frames = [
        Image.fromarray(np.full((120, 90, 3), value, dtype=np.uint8))
        for value in (10, 20, 30)
    ]
    frames[0].save(path, save_all=True, append_images=frames[1:])


class _Recognizer:
    def recognize(self, image: np.ndarray) -> OCRResult:
        text = RECEIPT_TEXT if page_of(image) == 20 else ""
        return OCRResult(text, 90.0)


def _build_with_stub(config, store, provider):
    return build_pipeline(config, store, provider, engine_factory=_Recognizer)


@pytest.fixture
def tiff_file(tmp_path: Path) -> Path:
    path = tmp_path / "batch.tif"
    _make_tiff(path)
    return path


@pytest.fixture
def config() -> AppConfig:
    return AppConfig(normalizer=NormalizerConfig(enabled=False))


class TestProcessFile:
    """Tests for process_file and segment_file against a real TIFF."""

    @patch("scanbatch.cli.build_pipeline", side_effect=_build_with_stub)
    @patch("scanbatch.ocr.barcode.decode_symbols")
    def test_process_file(self, mock_decode, mock_build, tiff_file: Path, config) -> None:
        mock_decode.side_effect = lambda band: "FINSALES" if page_of(band) == 10 else None

        result = asyncio.run(process_file(tiff_file, "STORE2", config))

        assert result["scan"]["status"] == ScanStatus.COMPLETED
        assert result["scan"]["batch_type"] == "FINSALES"
        assert result["scan"]["page_count"] == 3
        assert [d["reference"] for d in result["documents"]] == [
            "STORE2-1",
            "STORE2-2",
            "STORE2-3",
        ]
        assert [d["document_type"] for d in result["documents"]] == [
            None,
            "RECEIPT",
            "INVOICE",
        ]
        assert len(result["extractions"]) == 3

    @patch("scanbatch.cli.build_pipeline", side_effect=_build_with_stub)
    @patch("scanbatch.ocr.barcode.decode_symbols")
    def test_segment_file(self, mock_decode, mock_build, tiff_file: Path, config) -> None:
        mock_decode.side_effect = lambda band: "CDR" if page_of(band) == 20 else None

        result = asyncio.run(segment_file(tiff_file, config))

        assert result["total_pages"] == 3
        assert [(s["batch_type_code"], s["pages"]) for s in result["sections"]] == [
            ("UNCLASSIFIED", [1]),
            ("CDR", [2, 3]),
        ]


class TestMain:
    """Tests for the main() entry point."""

    def test_no_command_prints_help(self) -> None:
        with pytest.raises(SystemExit) as exc_info:
            main([])
        assert exc_info.value.code == 0

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(SystemExit) as exc_info:
            main(["process", str(tmp_path / "missing.tif")])
        assert exc_info.value.code == 1

    @patch("scanbatch.cli.process_file", new_callable=AsyncMock)
    def test_process_writes_output(
        self, mock_process: AsyncMock, tiff_file: Path, tmp_path: Path
    ) -> None:
        mock_process.return_value = {
            "scan": {"id": 1, "status": ScanStatus.COMPLETED},
            "documents": [],
            "extractions": [],
        }
        output = tmp_path / "out" / "result.json"

        main(["process", str(tiff_file), "-l", "STORE5", "-o", str(output)])

        assert mock_process.await_args.args[1] == "STORE5"
        data = json.loads(output.read_text())
        assert data["scan"]["status"] == "completed"

    @patch("scanbatch.cli.process_file", new_callable=AsyncMock)
    def test_failed_scan_exits_nonzero(
        self, mock_process: AsyncMock, tiff_file: Path, capsys
    ) -> None:
        mock_process.return_value = {
            "scan": {"id": 1, "status": ScanStatus.FAILED},
            "documents": [],
            "extractions": [],
        }
        with pytest.raises(SystemExit) as exc_info:
            main(["process", str(tiff_file)])

        assert exc_info.value.code == 1
        assert '"failed"' in capsys.readouterr().out

    @patch("scanbatch.cli.segment_file", new_callable=AsyncMock)
    def test_segment_prints_json(
        self, mock_segment: AsyncMock, tiff_file: Path, capsys
    ) -> None:
        mock_segment.return_value = {"file": "batch.tif", "total_pages": 3, "sections": []}
        main(["segment", str(tiff_file)])
        assert json.loads(capsys.readouterr().out)["total_pages"] == 3

    @patch("scanbatch.cli.process_file", new_callable=AsyncMock)
    def test_scan_error_reported(
        self, mock_process: AsyncMock, tiff_file: Path, capsys
    ) -> None:
        mock_process.side_effect = ScanBatchError("unreadable")
        with pytest.raises(SystemExit) as exc_info:
            main(["process", str(tiff_file)])

        assert exc_info.value.code == 1
        assert "Error: unreadable" in capsys.readouterr().err
