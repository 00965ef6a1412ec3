"""swbuild - Precaching service worker generator for static site builds."""

import argparse
import asyncio
import json
import logging
import sys
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .config import GenerateSWConfig

__version__ = "0.1.0"

logger = logging.getLogger(__name__)


def _setup_logging(verbose: bool = False) -> None:
    """Configure logging for the application.

    Logs go to stderr so stdout carries only the build summary or manifest.
    """
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stderr,
    )


def _load_config_or_exit(config_path: str | None) -> "GenerateSWConfig":
    from .config import ConfigError, load_config

    try:
        config = load_config(config_path)
    except ConfigError as e:
        logger.error("Configuration error: %s", e)
        sys.exit(1)

    if config_path is not None:
        logger.info("Configuration loaded from %s", config_path)
    return config


def _cmd_generate(args: argparse.Namespace) -> None:
    """Execute the generate command - write the service worker."""
    _setup_logging(args.verbose)

    # Import here to allow logging setup first
    from .build import build

    config = _load_config_or_exit(args.config)
    logger.debug("Precaching %s from %s", config.glob_patterns, config.glob_directory)

    # Generation errors propagate: the build step must fail loudly
    asyncio.run(build(config))


def _cmd_manifest(args: argparse.Namespace) -> None:
    """Execute the manifest command - print the precache manifest as JSON."""
    _setup_logging(args.verbose)

    from .generator import get_manifest

    config = _load_config_or_exit(args.config)
    result = asyncio.run(get_manifest(config))

    for warning in result.warnings:
        print(warning, file=sys.stderr)

    print(json.dumps([entry.to_dict() for entry in result.entries], indent=2, sort_keys=True))
    logger.info("Manifest has %d entries, totaling %d bytes", result.count, result.size)


def _add_common_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "-c", "--config",
        default=None,
        help="Path to an optional YAML configuration file (default: built-in dist/ settings)",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose (debug) logging",
    )


def main(argv: list[str] | None = None) -> None:
    """Main entry point for the swbuild package."""
    parser = argparse.ArgumentParser(
        description="swbuild - Generate a precaching service worker for a static site build"
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"swbuild {__version__}",
    )

    subparsers = parser.add_subparsers(dest="command")

    # Generate subcommand (default behavior)
    generate_parser = subparsers.add_parser(
        "generate",
        help="Write the service worker (default)",
    )
    _add_common_arguments(generate_parser)
    generate_parser.set_defaults(func=_cmd_generate)

    # Manifest subcommand
    manifest_parser = subparsers.add_parser(
        "manifest",
        help="Print the precache manifest without writing the service worker",
    )
    _add_common_arguments(manifest_parser)
    manifest_parser.set_defaults(func=_cmd_manifest)

    args = parser.parse_args(argv)

    # Default to 'generate' if no command specified
    if args.command is None:
        args.config = None
        args.verbose = False
        args.func = _cmd_generate

    args.func(args)
