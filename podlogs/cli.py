#!/usr/bin/env python3
"""Collect and archive the container logs of Kubernetes workloads.

Usage:
    podlogs-collect deploy.yaml                      # Archive logs of every pod in the manifest
    podlogs-collect deploy.yaml -o ./logs --previous # Logs of the previous container instances
    podlogs-collect a.yaml b.yaml --since-seconds 3600 --timeout 120
    podlogs-collect - < rendered.yaml                # Read the manifest from stdin
"""

import argparse
import asyncio
import sys
from pathlib import Path

import structlog

from .config import load_config
from .errors import ArchiveError, DiscoveryError, ManifestError
from .log_collector import LogCollector
from .logging_setup import configure_logging
from .storage import LocalStorageClient

logger = structlog.get_logger(__name__)

EXIT_OK = 0
EXIT_ARCHIVE_FAILED = 1
EXIT_DISCOVERY_FAILED = 2


def positive_int(value: str) -> int:
    number = int(value)
    if number < 1:
        raise argparse.ArgumentTypeError(f"must be at least 1, got {value}")
    return number


def positive_float(value: str) -> float:
    number = float(value)
    if not number > 0:
        raise argparse.ArgumentTypeError(f"must be greater than 0, got {value}")
    return number


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="podlogs-collect",
        description="Archive the container logs of the workloads in Kubernetes manifests",
    )
    parser.add_argument("manifests", nargs="+", help="Manifest files, '-' reads stdin")
    parser.add_argument("--config", help="Path to the podlogs YAML configuration")
    parser.add_argument("-o", "--output", help="Directory for archived logs")
    parser.add_argument("--follow", action="store_true", help="Follow log streams until the timeout")
    parser.add_argument("--previous", action="store_true", help="Logs of the previous container instance")
    parser.add_argument("--timestamps", action="store_true", help="Prefix log lines with timestamps")
    parser.add_argument("--since-seconds", type=int, help="Only lines newer than this many seconds")
    parser.add_argument("--tail", type=int, dest="tail_lines", help="Only the last N lines per container")
    parser.add_argument("--timeout", type=positive_float, help="Deadline for the whole collection in seconds")
    parser.add_argument("--max-concurrency", type=positive_int, help="Limit the number of concurrent streams")
    return parser


def read_manifests(paths: list[str]) -> list[str]:
    texts = []
    for path in paths:
        if path == "-":
            texts.append(sys.stdin.read())
        else:
            texts.append(Path(path).read_text())
    return texts


async def run(args: argparse.Namespace) -> int:
    config = load_config(args.config)
    configure_logging(config.log_level)

    # Command line flags win over the configuration file
    if args.output:
        config.output_directory = args.output
    if args.max_concurrency is not None:
        config.max_concurrency = args.max_concurrency
    if args.timeout is not None:
        config.timeout_seconds = args.timeout
    for flag in ("follow", "previous", "timestamps"):
        if getattr(args, flag):
            setattr(config.log_options, flag, True)
    if args.since_seconds is not None:
        config.log_options.since_seconds = args.since_seconds
    if args.tail_lines is not None:
        config.log_options.tail_lines = args.tail_lines

    if config.log_options.follow and config.timeout_seconds is None:
        logger.warning("Following logs without a timeout; interrupt to stop")

    try:
        collector = LogCollector.default(config)
        requests = await collector.requests_from_manifests(read_manifests(args.manifests))
    except (DiscoveryError, ManifestError, OSError) as e:
        logger.error("Log discovery failed", error=str(e))
        return EXIT_DISCOVERY_FAILED

    storage = LocalStorageClient(chunk_size=config.chunk_size)
    try:
        report = await collector.collect_and_save(
            storage, config.output_directory, requests, timeout=config.timeout_seconds
        )
    except ArchiveError as e:
        report = e.report

    print_summary(report)
    return EXIT_OK if report.ok else EXIT_ARCHIVE_FAILED


def print_summary(report) -> None:
    print("\n" + "=" * 50)
    print("LOG ARCHIVE SUMMARY")
    print("=" * 50)
    print(f"Location: {report.location}")
    print(f"Containers: {len(report.outcomes)}")
    print(f"Archived: {len(report.saved)}")
    print(f"Failed: {len(report.failed)}")

    if report.failed:
        print("\nFailures:")
        for outcome in report.failed:
            print(f"  {outcome.resource_id} [{outcome.state.value}]: {outcome.error}")


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        return asyncio.run(run(args))
    except KeyboardInterrupt:
        return EXIT_ARCHIVE_FAILED


if __name__ == "__main__":
    sys.exit(main())
