"""Startup recovery and manual reprocessing of scans."""

import asyncio

from scanbatch.errors import ScanNotReprocessable
from scanbatch.models import ScanStatus
from scanbatch.store import RecordStore
from scanbatch.utils.logger import get_logger

from .orchestrator import BatchOrchestrator

logger = get_logger(__name__)


def reset_scan(store: RecordStore, scan_id: int) -> None:
    """Return a scan to pending, deleting its documents, extractions and derived scans."""
    for child in store.find_scans(parent_id=scan_id):
        store.delete_scan(child.id)
        logger.info("Deleted scan %d derived from scan %d", child.id, scan_id)

    removed = store.delete_scan_documents(scan_id)
    store.update_scan(
        scan_id,
        status=ScanStatus.PENDING,
        batch_type=None,
        error_message=None,
        processed_at=None,
    )
    logger.info("Scan %d reset to pending (%d documents removed)", scan_id, removed)


def recover_stuck_scans(
    store: RecordStore, orchestrator: BatchOrchestrator
) -> list[asyncio.Task]:
    """Reset and resubmit top-level scans left in ``processing`` by a crash.

    Must be called from a running event loop.
    """
    stuck = store.find_scans(status=ScanStatus.PROCESSING, parentless=True)
    if not stuck:
        return []

    logger.warning("Found %d scans stuck in processing, recovering", len(stuck))
    tasks = []
    for scan in stuck:
        reset_scan(store, scan.id)
        tasks.append(orchestrator.submit(scan.id))
    return tasks


def reprocess_scan(
    store: RecordStore, orchestrator: BatchOrchestrator, scan_id: int
) -> asyncio.Task:
    """Reset a failed scan and resubmit it.

    Raises:
        ScanNotReprocessable: If the scan is not in ``failed`` status.
    """
    scan = store.get_scan(scan_id)
    if scan.status != ScanStatus.FAILED:
        raise ScanNotReprocessable(
            f"Scan {scan_id} is {scan.status.value}; only failed scans can be reprocessed"
        )
    reset_scan(store, scan_id)
    return orchestrator.submit(scan_id)
