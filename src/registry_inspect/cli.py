"""Main CLI entry point for registry-inspect."""

import argparse
import asyncio
import json
import logging
import sys
from typing import Any, Optional, Sequence

from . import registry
from .config import Settings
from .core.types import Platform
from .exceptions import RegistryError
from .reference import parse_reference
from .utils.digest import validate_digest
from .utils.logger import setup_logging
from .utils.platform import local_platform

logger = logging.getLogger(__name__)

OPERATIONS = (
    "tags",
    "manifestlist",
    "digestlist",
    "digest",
    "manifest",
    "id",
    "config",
    "labels",
    "history",
    "downloadlayer",
    "verifytool",
)


def format_document(raw: bytes, raw_output: bool) -> str:
    """Render a registry JSON document, verbatim or indented."""
    if raw_output:
        return raw.decode("utf-8")
    return json.dumps(json.loads(raw), indent=2)


def format_value(value: Any, raw_output: bool) -> str:
    """Render a JSON value extracted from a document."""
    if raw_output:
        return json.dumps(value, separators=(",", ":"))
    return json.dumps(value, indent=2)


def parse_layer(value: str) -> str | int:
    """argparse type for ``--layer``: a digest or a zero-based index."""
    if value.isdigit():
        return int(value)
    if not validate_digest(value):
        raise argparse.ArgumentTypeError(
            f"expected a layer index or sha256 digest, got {value!r}"
        )
    return value


def target_platform(args: argparse.Namespace) -> Platform:
    """Target platform from ``--os/--arch/--variant``, defaulting to this host."""
    local = local_platform()
    if args.os is None and args.arch is None:
        return Platform(local.os, local.architecture, args.variant or local.variant)
    return Platform(
        args.os or local.os,
        args.arch or local.architecture,
        args.variant,
    )


async def execute(args: argparse.Namespace, settings: Settings) -> list[str]:
    """Run one operation and return the lines to print.

    Nothing is printed here so that a failure never leaves partial output.
    """
    ref = parse_reference(args.image)
    credentials = settings.credentials(args.username, args.password)
    timeout = args.timeout or settings.timeout
    platform = target_platform(args)
    raw_output = args.raw
    op = args.operation

    logger.debug("%s %s for %s", op, ref, platform)

    if op == "tags":
        return await registry.list_tags(ref, credentials, timeout)

    if op == "manifestlist":
        manifest_list = await registry.get_manifest_list(ref, credentials, timeout)
        return [format_document(manifest_list.raw, raw_output)]

    if op == "digestlist":
        entries = await registry.get_digest_list(ref, credentials, timeout)
        return [f"{entry.digest}\t{entry.platform}" for entry in entries]

    if op == "digest":
        return [await registry.get_digest(ref, platform, credentials, timeout)]

    if op == "manifest":
        manifest = await registry.get_manifest(ref, platform, credentials, timeout)
        return [format_document(manifest.raw, raw_output)]

    if op == "id":
        return [await registry.get_image_id(ref, platform, credentials, timeout)]

    if op == "config":
        config = await registry.get_config(ref, platform, credentials, timeout)
        return [format_document(config.raw, raw_output)]

    if op == "labels":
        labels = await registry.get_labels(ref, platform, credentials, timeout)
        return [format_value(labels, raw_output)]

    if op == "history":
        history = await registry.get_history(ref, platform, credentials, timeout)
        return [format_value(history, raw_output)]

    if op == "downloadlayer":
        path = await registry.download_layer(
            ref, args.layer, args.output_dir, platform, credentials, timeout
        )
        return [str(path)]

    if op == "verifytool":
        checks = await registry.verify_image(ref, platform, credentials, timeout)
        return [
            f"{'PASS' if check.passed else 'FAIL'} {check.name} "
            f"{check.expected} {check.actual}"
            for check in checks
        ]

    raise ValueError(f"Unknown operation: {op}")


async def run(args: argparse.Namespace, settings: Optional[Settings] = None) -> int:
    """Execute the parsed command line and print its result.

    Returns:
        Process exit code
    """
    try:
        settings = settings or Settings()
        lines = await execute(args, settings)
    except RegistryError as e:
        logger.debug("%s failed", args.operation, exc_info=True)
        print(f"error: {e}", file=sys.stderr)
        return 1
    except ValueError as e:
        print(f"error: {e}", file=sys.stderr)
        return 1

    for line in lines:
        print(line)

    if args.operation == "verifytool" and any(
        line.startswith("FAIL") for line in lines
    ):
        return 1
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="registry-inspect",
        description="Inspect a remote container image through the registry HTTP API "
        "without pulling it.",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=None,
        help="Set logging level (default: $REGISTRY_INSPECT_LOG_LEVEL or WARNING)",
    )
    parser.add_argument("--log-file", help="Log to file in addition to stderr")

    parser.add_argument("operation", choices=OPERATIONS, help="What to retrieve")
    parser.add_argument(
        "image", help="Image reference: [REGISTRY/]REPOSITORY[:TAG|@DIGEST]"
    )
    parser.add_argument("--os", help="Target OS (default: this host)")
    parser.add_argument("--arch", help="Target architecture (default: this host)")
    parser.add_argument("--variant", help="Target architecture variant, e.g. v7")
    parser.add_argument(
        "--username", help="Registry username (default: $REGISTRY_USERNAME)"
    )
    parser.add_argument(
        "--password", help="Registry password (default: $REGISTRY_PASSWORD)"
    )
    parser.add_argument(
        "--raw",
        action="store_true",
        help="Print documents exactly as the registry sent them",
    )
    parser.add_argument(
        "--timeout",
        type=int,
        default=None,
        help="Request timeout in seconds (default: $REGISTRY_TIMEOUT or 30)",
    )
    parser.add_argument(
        "--layer",
        type=parse_layer,
        help="Layer digest or zero-based index (downloadlayer)",
    )
    parser.add_argument(
        "--output-dir",
        default=".",
        help="Directory for downloaded layers (default: current directory)",
    )
    return parser


def main(argv: Optional[Sequence[str]] = None) -> None:
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.operation == "downloadlayer" and args.layer is None:
        parser.error("downloadlayer requires --layer")

    try:
        settings = Settings()
    except ValueError as e:
        parser.error(str(e))

    setup_logging(args.log_level or settings.log_level, args.log_file)

    sys.exit(asyncio.run(run(args, settings)))


if __name__ == "__main__":
    main()
