"""Command-line interface for processing scan files.

Provides subcommands for running a scan through the full pipeline and
for previewing how a scan splits into sections.
"""

import argparse
import asyncio
import json
import sys
from dataclasses import asdict
from pathlib import Path

from scanbatch.errors import ScanBatchError
from scanbatch.imaging.page_source import provider_for
from scanbatch.ingest import register_scan
from scanbatch.models import ScanStatus
from scanbatch.pipeline import build_pipeline
from scanbatch.store import InMemoryRecordStore
from scanbatch.utils.config import AppConfig, load_config
from scanbatch.utils.logger import get_logger, setup_logging

logger = get_logger(__name__)


async def process_file(
    file_path: Path, location: str, config: AppConfig
) -> dict[str, object]:
    """Register and process one scan file.

    Args:
        file_path: Path to the TIFF or PDF scan.
        location: Store or location code owning the scan.
        config: Application configuration.

    Returns:
        Dictionary with the scan record, its documents and extractions.
    """
    store = InMemoryRecordStore()
    provider = provider_for(file_path, config.ocr.pdf_dpi)
    pipeline = build_pipeline(config, store, provider)

    try:
        scan = register_scan(store, provider, file_path, location)
        try:
            await pipeline.orchestrator.process(scan.id)
        except Exception as exc:
            logger.error("Failed to process %s: %s", file_path.name, exc)
    finally:
        await pipeline.shutdown()

    return {
        "scan": asdict(store.get_scan(scan.id)),
        "documents": [asdict(d) for d in store.list_documents(scan.id)],
        "extractions": [asdict(e) for e in store.list_extractions(scan.id)],
    }


async def segment_file(file_path: Path, config: AppConfig) -> dict[str, object]:
    """Split a scan into sections without extracting any fields.

    Args:
        file_path: Path to the TIFF or PDF scan.
        config: Application configuration.

    Returns:
        Dictionary with the total page count and the ordered sections.
    """
    store = InMemoryRecordStore()
    provider = provider_for(file_path, config.ocr.pdf_dpi)
    pipeline = build_pipeline(config, store, provider)

    try:
        scan = register_scan(store, provider, file_path, location="CLI")
        result = await pipeline.segmenter.segment(scan)
    finally:
        await pipeline.shutdown()

    return {
        "file": file_path.name,
        "total_pages": result.total_pages,
        "sections": [asdict(s) for s in result.sections],
    }


def _emit(result: dict[str, object], output: Path | None) -> None:
    output_str = json.dumps(result, indent=2, default=str)
    if output:
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_text(output_str)
        print(f"Output written to {output}")
    else:
        print(output_str)


def main(argv: list[str] | None = None) -> None:
    """Parse CLI arguments and dispatch to the appropriate command.

    Args:
        argv: Command-line arguments (defaults to sys.argv).
    """
    parser = argparse.ArgumentParser(
        description="Scanned paperwork batch processor",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "-c", "--config", type=Path, default=None, help="YAML configuration file"
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    process_parser = subparsers.add_parser(
        "process", parents=[common], help="Segment and extract a scan file"
    )
    process_parser.add_argument("file", type=Path, help="TIFF or PDF scan")
    process_parser.add_argument(
        "-l",
        "--location",
        default="000",
        help="Location code owning the scan (default: 000)",
    )
    process_parser.add_argument("-o", "--output", type=Path, help="Output JSON file")

    segment_parser = subparsers.add_parser(
        "segment", parents=[common], help="Show how a scan splits into sections"
    )
    segment_parser.add_argument("file", type=Path, help="TIFF or PDF scan")
    segment_parser.add_argument("-o", "--output", type=Path, help="Output JSON file")

    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(0)

    config = load_config(args.config)
    setup_logging(config.log_level)

    if not args.file.exists():
        print(f"Error: {args.file} does not exist", file=sys.stderr)
        sys.exit(1)

    try:
        if args.command == "process":
            result = asyncio.run(process_file(args.file, args.location, config))
        else:
            result = asyncio.run(segment_file(args.file, config))
    except ScanBatchError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(1)

    _emit(result, args.output)
    if args.command == "process" and result["scan"]["status"] == ScanStatus.FAILED:
        sys.exit(1)


if __name__ == "__main__":
    main()
