"""Shared test fixtures for the scan processing test suite."""

from pathlib import Path

import numpy as np
import pytest

from scanbatch.models import Scan
from scanbatch.store import InMemoryRecordStore


@pytest.fixture
def sample_image() -> np.ndarray:
    """Create a simple synthetic grayscale test image."""
    image = np.zeros((200, 300), dtype=np.uint8)
    image[50:150, 50:250] = 255
    return image


@pytest.fixture
def sample_color_image() -> np.ndarray:
    """Create a simple synthetic RGB test image."""
    image = np.zeros((200, 300, 3), dtype=np.uint8)
    image[50:150, 50:250] = (255, 255, 255)
    return image


@pytest.fixture
def store() -> InMemoryRecordStore:
    return InMemoryRecordStore()


@pytest.fixture
def pending_scan(store: InMemoryRecordStore) -> Scan:
    """A registered five-page scan awaiting processing."""
    return store.add_scan(
        Scan(
            id=0,
            location="STORE7",
            file_path="/scans/batch.tif",
            content_hash="abc123",
            page_count=5,
        )
    )


@pytest.fixture
def project_root() -> Path:
    """Return the project root directory."""
    return Path(__file__).parent.parent


@pytest.fixture
def config_dir(project_root: Path) -> Path:
    """Return the configs directory path."""
    return project_root / "configs"
