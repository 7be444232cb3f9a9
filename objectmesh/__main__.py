#!/usr/bin/env python3
"""
objectmesh command line

Resumable multipart transfers against an S3-compatible bucket.

Usage:
    python -m objectmesh download videos/a.mp4 ./a.mp4 --routines 8
    python -m objectmesh upload ./a.mp4 videos/a.mp4 --part-size 16777216

    # Connection settings come from the environment
    S3_BUCKET=media S3_ENDPOINT_URL=http://localhost:9000 python -m objectmesh ...

    # Prometheus text dump of the transfer metrics (OBJECTMESH_METRICS=true)
    python -m objectmesh --metrics-out ./transfer.prom download videos/a.mp4 ./a.mp4

Exit code is 0 on success and 1 on any error.
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from dataclasses import replace
from pathlib import Path
from typing import Optional, Sequence

from objectmesh.core.config import ObjectMeshConfig
from objectmesh.core.types import ByteRange, Result, Ok, Err
from objectmesh.observability.logging import LogLevel, setup_logging
from objectmesh.observability.metrics import MetricsCollector, collector_for
from objectmesh.observability.progress import ProgressEvent, ProgressEventType
from objectmesh.storage.config import S3Config
from objectmesh.storage.s3_store import S3ObjectStore
from objectmesh.transfer.base import TransferSummary
from objectmesh.transfer.download import Downloader
from objectmesh.transfer.upload import Uploader


class ConsoleProgress:
    """Single updating progress line on stdout."""

    __slots__ = ("_stream",)

    def __init__(self, stream=None) -> None:
        self._stream = stream or sys.stdout

    def progress_changed(self, event: ProgressEvent) -> None:
        pct = event.fraction * 100
        self._stream.write(
            f"\r{event.event_type.value:<9} {event.consumed_bytes}/{event.total_bytes} bytes ({pct:5.1f}%)"
        )
        if event.event_type in (ProgressEventType.COMPLETED, ProgressEventType.FAILED):
            self._stream.write("\n")
        self._stream.flush()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="objectmesh",
        description="Resumable multipart transfers for S3-compatible object storage",
    )
    parser.add_argument("--log-level", default=None, help="DEBUG, INFO, WARNING or ERROR")
    parser.add_argument("--json-logs", action="store_true", help="Emit JSON log records")
    parser.add_argument(
        "--metrics-out",
        type=Path,
        default=None,
        help="Write Prometheus metrics here when metrics are enabled",
    )

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--part-size", type=int, default=None, help="Bytes per part")
    common.add_argument("--routines", type=int, default=None, help="Concurrent part workers")
    common.add_argument(
        "--checkpoint",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Persist progress so an interrupted transfer can resume",
    )
    common.add_argument("--checkpoint-dir", type=Path, default=None, help="Directory for checkpoints")
    common.add_argument(
        "--verify-checksum",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Check downloads against the object's CRC32C",
    )

    sub = parser.add_subparsers(dest="command", required=True)

    download = sub.add_parser("download", parents=[common], help="Download an object")
    download.add_argument("key", help="Object key")
    download.add_argument("path", help="Destination file")
    download.add_argument("--range", dest="byte_range", default=None, help="e.g. bytes=0-1023")

    upload = sub.add_parser("upload", parents=[common], help="Upload a file")
    upload.add_argument("path", help="Source file")
    upload.add_argument("key", help="Object key")
    upload.add_argument("--content-type", default=None)

    return parser


def resolve_config(args: argparse.Namespace) -> Result[ObjectMeshConfig, str]:
    """Environment configuration with command line overrides applied."""
    loaded = ObjectMeshConfig.from_env()
    if loaded.is_err():
        return loaded
    config = loaded.unwrap()

    overrides = {}
    if args.routines is not None:
        overrides["routines"] = args.routines
    if args.checkpoint is not None:
        overrides["checkpoint_enabled"] = args.checkpoint
    if args.checkpoint_dir is not None:
        overrides["checkpoint_dir"] = args.checkpoint_dir
    if args.verify_checksum is not None:
        overrides["verify_checksum"] = args.verify_checksum
    try:
        transfer = replace(config.transfer, **overrides)
    except ValueError as e:
        return Err(f"Configuration error: {e}")

    observability = config.observability
    if args.log_level is not None or args.json_logs:
        observability = replace(
            observability,
            log_level=(args.log_level or observability.log_level).upper(),
            log_json=args.json_logs or observability.log_json,
        )

    config = replace(config, transfer=transfer, observability=observability)
    validation = config.validate()
    if validation.is_err():
        return validation
    return Ok(config)


def write_metrics(collector: MetricsCollector, path: Path) -> None:
    path.write_text(collector.export_prometheus() + "\n", encoding="utf-8")


def _report(summary: TransferSummary) -> None:
    resumed = " (resumed)" if summary.resumed else ""
    print(
        f"{summary.direction} {summary.object_key} <-> {summary.file_path}: "
        f"{summary.transferred_bytes}/{summary.total_bytes} bytes, "
        f"{summary.parts_transferred}/{summary.parts_total} parts in "
        f"{summary.elapsed_seconds:.2f}s{resumed}"
    )


async def run_command(args: argparse.Namespace, config: ObjectMeshConfig) -> int:
    try:
        s3_config = S3Config.from_env()
    except ValueError as e:
        print(f"S3 configuration error: {e}", file=sys.stderr)
        return 1

    metrics = collector_for(config.observability.metrics_enabled)
    store = S3ObjectStore(s3_config)
    connected = await store.connect()
    if connected.is_err():
        print(f"Error: {connected.error}", file=sys.stderr)
        return 1

    try:
        progress = ConsoleProgress()
        if args.command == "download":
            byte_range: Optional[ByteRange] = None
            if args.byte_range:
                parsed = ByteRange.from_http_header(args.byte_range)
                if parsed.is_err():
                    print(f"Error: {parsed.error}", file=sys.stderr)
                    return 1
                byte_range = parsed.unwrap()
            result = await Downloader(store, config.transfer, metrics).download_file(
                args.key,
                args.path,
                part_size=args.part_size,
                byte_range=byte_range,
                progress=progress,
            )
        else:
            result = await Uploader(store, config.transfer, metrics).upload_file(
                args.path,
                args.key,
                part_size=args.part_size,
                progress=progress,
                content_type=args.content_type,
            )
    finally:
        await store.close()

    if args.metrics_out is not None and config.observability.metrics_enabled:
        try:
            write_metrics(metrics, args.metrics_out)
        except OSError as e:
            print(f"Could not write metrics: {e}", file=sys.stderr)

    match result:
        case Ok(summary):
            _report(summary)
            return 0
        case Err(error):
            print(f"Error: {error}", file=sys.stderr)
            return 1


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)

    config_result = resolve_config(args)
    if config_result.is_err():
        print(f"Configuration error: {config_result.error}", file=sys.stderr)
        return 1
    config = config_result.unwrap()

    setup_logging(
        LogLevel.from_name(config.observability.log_level),
        json_output=config.observability.log_json,
    )

    try:
        return asyncio.run(run_command(args, config))
    except KeyboardInterrupt:
        print("\nInterrupted", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
