# File: drxgen/cli.py
"""
drxgen - Command-Line Interface
================================

CLI built on the standard-library ``argparse`` module.

Usage examples::

    # Live backend, static token
    python -m drxgen -u https://cms.example.com -t $DIRECTUS_TOKEN -o ./src/schemas

    # Offline, from a schema snapshot
    python -m drxgen --snapshot snapshot.yaml -o ./generated --clean

    # Only two collections, types only, verbose
    python -m drxgen --config drxgen.yaml -c posts,authors --no-schemas -v

    # Render everything without writing
    python -m drxgen --snapshot snapshot.yaml --dry-run

Exit codes:
    0 — success
    2 — generation error
    3 — export error
    4 — input/argument error
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, NoReturn, Optional, Sequence

# ---------------------------------------------------------------------------
# Logger (configured in _setup_logging)
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("drxgen")


# ---------------------------------------------------------------------------
# Exit codes
# ---------------------------------------------------------------------------

EXIT_SUCCESS: int = 0
EXIT_GENERATION_ERROR: int = 2
EXIT_EXPORT_ERROR: int = 3
EXIT_INPUT_ERROR: int = 4


# ---------------------------------------------------------------------------
# Logging setup
# ---------------------------------------------------------------------------


def _setup_logging(verbosity: int) -> None:
    """
    Configure the ``drxgen`` logger.

    Args:
        verbosity: 0 = WARNING, 1 = INFO, 2+ = DEBUG.
    """
    if verbosity >= 2:
        level = logging.DEBUG
    elif verbosity >= 1:
        level = logging.INFO
    else:
        level = logging.WARNING

    handler: logging.StreamHandler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)

    fmt: str = "%(asctime)s │ %(levelname)-8s │ %(name)s │ %(message)s"
    datefmt: str = "%H:%M:%S"
    handler.setFormatter(logging.Formatter(fmt, datefmt=datefmt))

    root_logger: logging.Logger = logging.getLogger("drxgen")
    root_logger.setLevel(level)
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.propagate = False


# ---------------------------------------------------------------------------
# Argument parser
# ---------------------------------------------------------------------------


def _build_parser() -> argparse.ArgumentParser:
    """Build and return the argument parser."""
    from drxgen import __version__

    parser: argparse.ArgumentParser = argparse.ArgumentParser(
        prog="drxgen",
        description=(
            "drxgen — Zod schema & TypeScript type generator for Directus.\n\n"
            "Reads collection, field and relation metadata from a Directus "
            "backend (or a schema snapshot) and writes one module per "
            "collection."
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=(
            "Examples:\n"
            "  %(prog)s -u https://cms.example.com -t TOKEN -o ./schemas\n"
            "  %(prog)s --snapshot snapshot.yaml -o ./out --clean\n"
            "  %(prog)s --config drxgen.yaml -c posts,authors --no-schemas\n"
        ),
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"drxgen v{__version__}",
    )

    # --- Metadata source ---
    source_group = parser.add_argument_group("metadata source")
    source_group.add_argument(
        "-u", "--url",
        type=str,
        default=None,
        metavar="URL",
        help="Directus base URL.",
    )
    source_group.add_argument(
        "-t", "--token",
        type=str,
        default=None,
        help="Static access token.",
    )
    source_group.add_argument(
        "-e", "--email",
        type=str,
        default=None,
        help="Login email (used with --password when no token is given).",
    )
    source_group.add_argument(
        "-p", "--password",
        type=str,
        default=None,
        help="Login password.",
    )
    source_group.add_argument(
        "--additional-headers",
        type=str,
        default=None,
        metavar="JSON",
        help='Extra HTTP headers as a JSON object, e.g. \'{"X-Env": "stage"}\'.',
    )
    source_group.add_argument(
        "-H", "--header",
        nargs=2,
        action="append",
        default=None,
        metavar=("KEY", "VALUE"),
        help="Extra HTTP header (repeatable).",
    )
    source_group.add_argument(
        "--snapshot",
        type=str,
        default=None,
        metavar="PATH",
        help="Read metadata from a schema snapshot file instead of HTTP.",
    )
    source_group.add_argument(
        "--config",
        type=str,
        default=None,
        metavar="PATH",
        help="YAML/JSON configuration file; flags override its values.",
    )

    # --- Selection ---
    selection_group = parser.add_argument_group("collection selection")
    selection_group.add_argument(
        "-c", "--collections",
        type=str,
        default=None,
        metavar="A,B",
        help="Only generate these collections (comma-separated).",
    )
    selection_group.add_argument(
        "--exclude",
        type=str,
        default=None,
        metavar="A,B",
        help="Never generate these collections (comma-separated).",
    )
    selection_group.add_argument(
        "--system",
        action="store_true",
        default=None,
        help="Include directus_* system collections.",
    )

    # --- Output ---
    output_group = parser.add_argument_group("output")
    output_group.add_argument(
        "-o", "--output",
        type=str,
        default=None,
        metavar="DIR",
        help="Output directory (default: ./generated).",
    )
    output_group.add_argument(
        "--schemas",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Emit Zod schemas (default: on).",
    )
    output_group.add_argument(
        "--types",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Emit TypeScript types (default: on).",
    )
    output_group.add_argument(
        "--clean",
        action="store_true",
        default=None,
        help="Clean output directory before writing.",
    )
    output_group.add_argument(
        "--no-manifest",
        action="store_true",
        default=False,
        help="Don't write manifest.json.",
    )
    output_group.add_argument(
        "--dry-run",
        action="store_true",
        default=False,
        help="Run the full pipeline but don't write files to disk.",
    )
    output_group.add_argument(
        "--workers",
        type=int,
        default=None,
        metavar="N",
        help="Fetch and emit up to N collections in parallel.",
    )

    # --- Verbosity ---
    verbosity_group = parser.add_argument_group("verbosity")
    verbosity_group.add_argument(
        "-v", "--verbose",
        action="count",
        default=0,
        help="Increase verbosity (-v for INFO, -vv for DEBUG).",
    )
    verbosity_group.add_argument(
        "-q", "--quiet",
        action="store_true",
        default=False,
        help="Suppress all output except the report.",
    )

    return parser


# ---------------------------------------------------------------------------
# Config override builder
# ---------------------------------------------------------------------------


def _split_list(value: Optional[str]) -> Optional[List[str]]:
    if value is None:
        return None
    return [item.strip() for item in value.split(",") if item.strip()]


def _build_headers(args: argparse.Namespace) -> Optional[Dict[str, str]]:
    """
    Merge ``--additional-headers`` and ``-H`` pairs; pairs win.

    Raises:
        ValueError: If the JSON is malformed or not an object.
    """
    headers: Dict[str, str] = {}
    if args.additional_headers:
        try:
            parsed: Any = json.loads(args.additional_headers)
        except json.JSONDecodeError as exc:
            raise ValueError(f"--additional-headers is not valid JSON: {exc}") from exc
        if not isinstance(parsed, dict):
            raise ValueError("--additional-headers must be a JSON object.")
        headers.update({str(k): str(v) for k, v in parsed.items()})
    for key, value in args.header or []:
        headers[key] = value
    return headers or None


def _build_config_overrides(args: argparse.Namespace) -> Dict[str, Any]:
    """Config override dictionary from CLI arguments; ``None`` means unset."""
    overrides: Dict[str, Any] = {
        "directus_url": args.url,
        "token": args.token,
        "email": args.email,
        "password": args.password,
        "additional_headers": _build_headers(args),
        "snapshot_path": args.snapshot,
        "collections": _split_list(args.collections),
        "exclude_collections": _split_list(args.exclude),
        "include_system_collections": args.system,
        "output_dir": args.output,
        "generate_schemas": args.schemas,
        "generate_types": args.types,
        "clean_output": args.clean,
        "max_workers": args.workers,
    }
    if args.no_manifest:
        overrides["write_manifest"] = False
    return overrides


# ---------------------------------------------------------------------------
# Generation
# ---------------------------------------------------------------------------


def _run_generation(args: argparse.Namespace) -> int:
    """Build the config, run the pipeline and return the exit code."""
    from drxgen.generator import (
        GenerationReport,
        SchemaGenerator,
        build_config,
        load_config_file,
    )
    from drxgen.models import GenerationConfig

    try:
        overrides: Dict[str, Any] = _build_config_overrides(args)
        if args.config:
            config: GenerationConfig = load_config_file(Path(args.config), overrides)
        else:
            config = build_config(None, overrides)
    except (FileNotFoundError, ValueError) as exc:
        logger.error("Invalid configuration: %s", exc)
        return EXIT_INPUT_ERROR

    logger.info("Source:  %s", config.snapshot_path or config.directus_url)
    logger.info("Output:  %s", Path(config.output_dir).resolve())
    logger.info("Clean:   %s", config.clean_output)

    generator: SchemaGenerator = SchemaGenerator(config, dry_run=args.dry_run)
    report: GenerationReport = generator.generate()

    print(report.summary())

    if not report.success:
        if report.validation_errors:
            return EXIT_INPUT_ERROR
        if report.export_errors and not report.generation_errors:
            return EXIT_EXPORT_ERROR
        return EXIT_GENERATION_ERROR
    return EXIT_SUCCESS


# ---------------------------------------------------------------------------
# Main entry point
# ---------------------------------------------------------------------------


def cli_main(argv: Optional[Sequence[str]] = None) -> NoReturn:
    """
    Main CLI entry point.

    Can be called from ``__main__.py`` or directly for testing.

    Args:
        argv: Optional argument list (defaults to sys.argv[1:]).
    """
    parser: argparse.ArgumentParser = _build_parser()
    args: argparse.Namespace = parser.parse_args(argv)

    if args.quiet:
        verbosity: int = -1
        logging.disable(logging.CRITICAL)
    else:
        verbosity = args.verbose

    _setup_logging(verbosity)

    if not (args.url or args.snapshot or args.config):
        logger.error("No metadata source. Use -u/--url, --snapshot or --config.")
        parser.print_usage(sys.stderr)
        sys.exit(EXIT_INPUT_ERROR)

    exit_code: int = _run_generation(args)

    if exit_code == EXIT_SUCCESS:
        logger.info("Generation completed successfully.")
    else:
        logger.error("Generation failed with exit code %d.", exit_code)

    sys.exit(exit_code)


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "cli_main",
    "EXIT_SUCCESS",
    "EXIT_GENERATION_ERROR",
    "EXIT_EXPORT_ERROR",
    "EXIT_INPUT_ERROR",
]

logger.debug("drxgen.cli loaded.")
