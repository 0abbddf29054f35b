#!/usr/bin/env python3
"""Upload one object to S3 as a multipart upload.

Usage:
  mpupload my-bucket path/to/object eu-west-1 5242880 5242880 1024
  mpupload my-bucket big.bin us-east-1 8388608 8388608 --source ./big.bin

One part is uploaded per size, in the order given. Part content is random
unless --source names a file to read it from. Exit status is 0 when the
object was completed, 1 when the upload failed (the multipart session is
aborted in that case) and 2 when the arguments or --source are unusable.
"""

from __future__ import annotations

import argparse
import logging
import os
import sys
from contextlib import ExitStack
from dataclasses import replace
from typing import Sequence

from mpupload.app.services import (
    ContentSource,
    FileContentSource,
    InvalidUploadRequestError,
    UploadOrchestrator,
    UploadOutcome,
    UploadTarget,
    random_content,
)
from mpupload.common.config import LOG_FORMATS, Settings, get_settings
from mpupload.common.logging import setup_logging
from mpupload.infra.observability.metrics import export_textfile
from mpupload.infra.storage.client import StorageClient, StorageError
from mpupload.infra.storage.s3_client import S3StorageClient

logger = logging.getLogger("mpupload.main")

EXIT_OK = 0
EXIT_UPLOAD_FAILED = 1


def _positive_int(value: str) -> int:
    try:
        parsed = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid part size: {value!r}") from None
    if parsed <= 0:
        raise argparse.ArgumentTypeError(f"part size must be positive: {value!r}")
    return parsed


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="mpupload",
        description="Upload an object to S3 as a multipart upload, one part per size",
    )
    parser.add_argument("bucket", help="Destination bucket")
    parser.add_argument("key", help="Destination object key")
    parser.add_argument("region", help="S3 region, e.g. us-east-1")
    parser.add_argument(
        "sizes",
        nargs="+",
        type=_positive_int,
        metavar="SIZE",
        help="Part sizes in bytes, in upload order",
    )
    parser.add_argument(
        "--endpoint-url",
        default=None,
        help="S3-compatible endpoint (default: AWS, or S3_ENDPOINT_URL)",
    )
    parser.add_argument(
        "--content-type", default=None, help="Content-Type of the assembled object"
    )
    parser.add_argument(
        "--source",
        default=None,
        help="Read part content sequentially from this file instead of random bytes",
    )
    parser.add_argument(
        "--log-format",
        choices=LOG_FORMATS,
        default=None,
        help="Log output format (default: LOG_FORMAT or plain)",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        type=str.upper,
        default=None,
        help="Log level (default: LOG_LEVEL or INFO)",
    )
    parser.add_argument(
        "--metrics-textfile",
        default=None,
        help="Write upload metrics to this file in Prometheus text format",
    )
    return parser


def resolve_settings(args: argparse.Namespace, base: Settings) -> Settings:
    """Apply command-line overrides on top of environment settings."""
    return replace(
        base,
        S3_REGION=args.region,
        S3_ENDPOINT_URL=args.endpoint_url or base.S3_ENDPOINT_URL,
        LOG_LEVEL=args.log_level or base.LOG_LEVEL,
        LOG_FORMAT=args.log_format or base.LOG_FORMAT,
        METRICS_TEXTFILE=args.metrics_textfile or base.METRICS_TEXTFILE,
    )


def build_storage_client(settings: Settings) -> StorageClient:
    return S3StorageClient(settings=settings)


def run_upload(
    args: argparse.Namespace,
    storage: StorageClient,
    content_source: ContentSource = random_content,
) -> UploadOutcome:
    target = UploadTarget(bucket=args.bucket, object_key=args.key)
    orchestrator = UploadOrchestrator(
        storage,
        content_source=content_source,
        content_type=args.content_type,
    )
    return orchestrator.run(target, args.sizes)


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    with ExitStack() as stack:
        content_source: ContentSource = random_content
        if args.source:
            try:
                stream = stack.enter_context(open(args.source, "rb"))
                available = os.fstat(stream.fileno()).st_size
            except OSError as exc:
                parser.error(f"cannot read --source {args.source!r}: {exc}")
            if available < sum(args.sizes):
                parser.error(
                    f"--source holds {available} bytes, part sizes add up to {sum(args.sizes)}"
                )
            content_source = FileContentSource(stream)

        try:
            settings = resolve_settings(args, get_settings())
        except ValueError as exc:
            parser.error(str(exc))
        setup_logging(settings.LOG_LEVEL, settings.LOG_FORMAT)

        try:
            storage = build_storage_client(settings)
        except StorageError as exc:
            print(
                f"Upload to bucket {args.bucket!r}, key {args.key!r} failed: {exc}",
                file=sys.stderr,
            )
            return EXIT_UPLOAD_FAILED

        try:
            outcome = run_upload(args, storage, content_source)
        except InvalidUploadRequestError as exc:
            parser.error(str(exc))
        finally:
            if settings.METRICS_TEXTFILE:
                try:
                    export_textfile(settings.METRICS_TEXTFILE)
                except OSError:
                    logger.exception(
                        "Could not write metrics to %s", settings.METRICS_TEXTFILE
                    )

    if outcome.success:
        print(
            f"Uploaded s3://{args.bucket}/{args.key} in {len(outcome.parts)} parts"
        )
        return EXIT_OK

    # The error message already names bucket and key
    print(f"Upload failed: {outcome.error}", file=sys.stderr)
    return EXIT_UPLOAD_FAILED


if __name__ == "__main__":
    raise SystemExit(main())
