"""
CLI main entry point.
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import Optional

from ..cache import MemoryTTLCache
from ..config import ConfigValidationError, create_default_config, load_config
from ..errors import SevdeskImporterError
from ..importer import VoucherImporter

logger = logging.getLogger(__name__)


def setup_logging(verbose: bool = False) -> None:
    """Configure logging."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    # urllib3 logs full URLs at DEBUG
    logging.getLogger("urllib3").setLevel(logging.WARNING)


def create_cli() -> argparse.ArgumentParser:
    """Create CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="sevdesk-import",
        description="Import scanned documents into sevDesk as draft vouchers",
    )

    parser.add_argument(
        "-c",
        "--config",
        type=Path,
        default=Path("config.yaml"),
        help="Path to config file (default: config.yaml)",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )
    parser.add_argument(
        "--write-default-config",
        type=Path,
        metavar="PATH",
        help="Write a default config file to PATH and exit",
    )
    parser.add_argument(
        "files",
        nargs="*",
        type=Path,
        help="Documents to import",
    )

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    """Main entry point."""
    parser = create_cli()
    args = parser.parse_args(argv)

    setup_logging(args.verbose)

    if args.write_default_config:
        create_default_config(args.write_default_config)
        print(f"Wrote default config to {args.write_default_config}")
        return 0

    if not args.files:
        parser.print_help()
        return 1

    try:
        config = load_config(args.config)
    except ConfigValidationError as e:
        print(f"❌ Invalid configuration: {e}", file=sys.stderr)
        return 1

    errors = config.validate()
    if errors:
        for error in errors:
            print(f"❌ {error}", file=sys.stderr)
        return 1

    # One cache for the whole run so contacts are fetched once per client
    cache = MemoryTTLCache()
    exit_code = 0

    for file_path in args.files:
        importer = VoucherImporter(config.sevdesk.token, config=config, cache=cache)
        try:
            result = importer.import_local_file(file_path)
        except SevdeskImporterError as e:
            logger.error(f"Import of {file_path} failed: {e}")
            print(f"❌ {file_path}: {e}", file=sys.stderr)
            exit_code = 1
            continue

        issuer = result.issuer
        issuer_text = f"{issuer.name} (#{issuer.id})" if issuer else "unresolved"
        print(f"✅ {file_path}: voucher {result.document_id}, issuer {issuer_text}")
        if result.classification:
            print(f"   accounting type #{result.classification.id} ({result.classification.name})")

    return exit_code


if __name__ == "__main__":
    sys.exit(main())
