"""
Command-line entry point: run one request through the pipeline.

Usage:
    # GET a JSON endpoint
    python -m request_pipeline https://api.example.test/items

    # POST a JSON body with an extra header
    python -m request_pipeline https://api.example.test/items -X POST \\
        -H "Authorization: Bearer ..." --data '{"name": "widget"}'

    # Download anything, reporting progress on stderr
    python -m request_pipeline https://files.example.test/big.bin --any-content-type --progress

Environment:
    SIMULATE_NO_NETWORK, IGNORE_REQUEST_CACHE, REQUEST_TIMEOUT_SECONDS and the
    other PipelineConfig variables apply.
"""

import argparse
import asyncio
import logging
import os
import sys
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

from request_pipeline.config import PipelineConfig
from request_pipeline.logging.setup import setup_logging
from request_pipeline.logging.utilities import get_logger
from request_pipeline.pipeline.orchestrator import RequestPipeline
from request_pipeline.request.codec import RawCodec
from request_pipeline.request.descriptor import JSON_CONTENT_TYPE, RequestDescriptor
from request_pipeline.tracking.progress import Progress, ProgressChannel

logger = logging.getLogger(__name__)


def parse_header(value: str) -> Tuple[str, str]:
    name, sep, content = value.partition(":")
    if not sep or not name.strip():
        raise argparse.ArgumentTypeError(f"Header must look like 'Name: value', got {value!r}")
    return name.strip(), content.strip()


def parse_query_item(value: str) -> Tuple[str, Optional[str]]:
    name, sep, content = value.partition("=")
    if not name:
        raise argparse.ArgumentTypeError(f"Query item must look like 'name=value', got {value!r}")
    return name, content if sep else None


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        prog="request_pipeline",
        description="Run one HTTP request through the request pipeline",
    )
    parser.add_argument("url", help="Absolute request URL")
    parser.add_argument(
        "-X",
        "--method",
        choices=["GET", "POST", "PUT", "DELETE"],
        type=str.upper,
        default="GET",
        help="HTTP method (default: GET)",
    )
    parser.add_argument(
        "-H",
        "--header",
        dest="headers",
        action="append",
        type=parse_header,
        default=[],
        help="Request header 'Name: value' (repeatable)",
    )
    parser.add_argument(
        "-q",
        "--query",
        dest="query_items",
        action="append",
        type=parse_query_item,
        default=[],
        help="Query item 'name=value' (repeatable)",
    )
    parser.add_argument("--data", default=None, help="Request body (sent as application/json)")

    content_type = parser.add_mutually_exclusive_group()
    content_type.add_argument(
        "--accept",
        default=JSON_CONTENT_TYPE,
        help=f"Expected response content type (default: {JSON_CONTENT_TYPE})",
    )
    content_type.add_argument(
        "--any-content-type",
        action="store_true",
        help="Skip response content type validation",
    )

    parser.add_argument(
        "--progress",
        action="store_true",
        help="Stream the response and report progress on stderr",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="WARNING",
        help="Logging level (default: WARNING)",
    )
    parser.add_argument(
        "--log-dir",
        type=str,
        default=None,
        help="Log directory path (default: LOG_DIR env var, or console only)",
    )
    return parser.parse_args(argv)


def build_descriptor(args: argparse.Namespace) -> RequestDescriptor:
    """Translate CLI arguments into a descriptor."""
    return RequestDescriptor(
        name="cli",
        method=args.method,
        base_url=args.url,
        query_items=args.query_items,
        headers=dict(args.headers),
        body=args.data.encode("utf-8") if args.data is not None else None,
        expected_content_type=None if args.any_content_type else args.accept,
        codec=RawCodec(),
        progressive=args.progress,
    )


def _print_progress(update: Progress) -> None:
    if update.fraction is None:
        print(f"{update.received} bytes", file=sys.stderr)
    else:
        print(f"{update.received}/{update.total} bytes ({update.fraction:.0%})", file=sys.stderr)


async def run(args: argparse.Namespace, config: PipelineConfig) -> bytes:
    """Execute the request described by args and return the raw body."""
    descriptor = build_descriptor(args)
    async with RequestPipeline.create(config) as pipeline:
        progress = None
        if descriptor.progressive:
            progress = ProgressChannel()
            progress.subscribe(_print_progress)
        return await pipeline.start(descriptor, progress=progress)


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    global logger
    args = parse_args(argv)

    log_dir_str = args.log_dir or os.getenv("LOG_DIR")
    setup_logging(
        name="request_pipeline",
        log_dir=Path(log_dir_str) if log_dir_str else None,
        json_format=os.getenv("JSON_LOGS", "true").lower() in ("true", "1", "yes"),
        console_level=getattr(logging, args.log_level),
        stream=sys.stderr,
    )
    logger = get_logger(__name__)

    try:
        config = PipelineConfig.from_env()
        body = asyncio.run(run(args, config))
    except Exception as e:
        logger.error(f"Request failed: {e}", extra={"url": args.url})
        return 1

    sys.stdout.write(body.decode("utf-8", errors="replace"))
    if body and not body.endswith(b"\n"):
        sys.stdout.write("\n")
    return 0


if __name__ == "__main__":
    sys.exit(main())
