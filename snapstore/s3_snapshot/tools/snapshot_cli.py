"""
Operator CLI for the S3 snapshot store.

Inspects and removes snapshots of one entity using the same configuration
(environment variables) as the application.

Usage:
    s3-snapshot list   --persistence-id <id> [criteria]
    s3-snapshot load   --persistence-id <id> [criteria]
    s3-snapshot delete --persistence-id <id> --sequence-number <n> [--timestamp <ms>]
    s3-snapshot delete --persistence-id <id> --matching [criteria]

Criteria flags: --min-sequence-number, --max-sequence-number,
--min-timestamp, --max-timestamp (all inclusive).

Invariants:
    - Read-only commands never write to the bucket
    - delete without --timestamp removes every snapshot at that sequence number
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from dataclasses import replace
from typing import List, Optional

from ..config import StoreConfig
from ..errors import SnapshotStoreError
from ..logging_setup import setup_logging
from ..model import MAX_VALUE, SnapshotMetadata, SnapshotSelectionCriteria
from ..objectstore import S3ObjectStore
from ..snapshot import S3SnapshotStore, create_snapshot_store

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="s3-snapshot",
        description="Inspect and delete entity snapshots stored in S3",
    )
    parser.add_argument("--bucket", help="Bucket name (overrides SNAPSHOT_BUCKET_NAME)")
    parser.add_argument("--endpoint", help="S3 endpoint URL (for MinIO)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Verbose output")

    commands = parser.add_subparsers(dest="command", required=True)

    def add_common(sub: argparse.ArgumentParser) -> None:
        sub.add_argument("--persistence-id", required=True, help="Entity persistence id")
        sub.add_argument("--min-sequence-number", type=int, default=0)
        sub.add_argument("--max-sequence-number", type=int, default=MAX_VALUE)
        sub.add_argument("--min-timestamp", type=int, default=0)
        sub.add_argument("--max-timestamp", type=int, default=MAX_VALUE)

    add_common(commands.add_parser("list", help="List snapshots"))
    add_common(commands.add_parser("load", help="Load the newest readable snapshot"))

    delete = commands.add_parser("delete", help="Delete snapshots")
    add_common(delete)
    target = delete.add_mutually_exclusive_group(required=True)
    target.add_argument("--sequence-number", type=int, help="Sequence number to delete")
    target.add_argument(
        "--matching", action="store_true", help="Delete every snapshot matching the criteria"
    )
    delete.add_argument(
        "--timestamp",
        type=int,
        default=0,
        help="Timestamp of the snapshot to delete (default: all at the sequence number)",
    )
    return parser


def criteria_from_args(args: argparse.Namespace) -> SnapshotSelectionCriteria:
    return SnapshotSelectionCriteria(
        max_sequence_number=args.max_sequence_number,
        max_timestamp=args.max_timestamp,
        min_sequence_number=args.min_sequence_number,
        min_timestamp=args.min_timestamp,
    )


async def run_command(args: argparse.Namespace, store: S3SnapshotStore) -> int:
    """Run one parsed command against ``store``. Returns the exit code."""
    criteria = criteria_from_args(args)

    if args.command == "list":
        metadatas = await store.list_async(args.persistence_id, criteria)
        for metadata in metadatas:
            print(f"{metadata.sequence_number}\t{metadata.timestamp}\t{store.convert_to_key(metadata)}")
        print(f"{len(metadatas)} snapshot(s)")
        return 0

    if args.command == "load":
        selected = await store.load_async(args.persistence_id, criteria)
        if selected is None:
            print("No snapshot found")
            return 1
        print(f"Sequence number: {selected.metadata.sequence_number}")
        print(f"Timestamp: {selected.metadata.timestamp}")
        if isinstance(selected.snapshot, (bytes, bytearray)):
            print(f"Snapshot: {len(selected.snapshot)} bytes")
        else:
            print(f"Snapshot: {json.dumps(selected.snapshot, indent=2, sort_keys=True)}")
        return 0

    if args.matching:
        await store.delete_by_criteria_async(args.persistence_id, criteria)
    else:
        await store.delete_async(
            SnapshotMetadata(args.persistence_id, args.sequence_number, args.timestamp)
        )
    print("Deleted")
    return 0


async def _main(args: argparse.Namespace, config: StoreConfig) -> int:
    async with S3ObjectStore(config.s3) as object_store:
        store = create_snapshot_store(config, object_store)
        return await run_command(args, store)


def main(argv: Optional[List[str]] = None) -> None:
    """CLI entry point."""
    args = build_parser().parse_args(argv)

    try:
        config = StoreConfig.from_env()
    except SnapshotStoreError as e:
        print(f"Invalid configuration: {e}")
        sys.exit(2)

    if args.verbose:
        config = replace(config, observability=replace(config.observability, log_level="DEBUG"))
    if args.bucket:
        config = replace(config, snapshot=replace(config.snapshot, bucket_name=args.bucket))
    if args.endpoint:
        config = replace(config, s3=replace(config.s3, endpoint_url=args.endpoint))

    setup_logging(config.observability)
    config.log_config()

    try:
        exit_code = asyncio.run(_main(args, config))
    except SnapshotStoreError as e:
        logger.error(f"{args.command} failed: {e}", extra=e.details)
        print(f"{args.command} failed: {e}")
        sys.exit(1)
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
