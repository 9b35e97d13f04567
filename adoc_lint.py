#!/usr/bin/env python3
"""AsciiDoc structure linter command line."""

import argparse
import logging
import sys
from pathlib import Path
from typing import Dict, List, Optional

import yaml

from config_loader import DEFAULT_CONFIG_FILE, config_to_dict, load_config
from config_model import DocumentConfig, SectionConfig
from linter import DEFAULT_PATTERN, Linter
from report_formatter import FORMATTERS, get_formatter, write_report
from rule_primitives import ConfigurationError
from validation_result import Severity, ValidationResult

__version__ = "1.0.0"

logger = logging.getLogger(__name__)

EXIT_SUCCESS = 0
EXIT_VALIDATION_FAILED = 1
EXIT_ERROR = 2

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")


def _setup_logging(log_level: str) -> None:
    """Configure logging based on level.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
    """
    logging.basicConfig(
        level=getattr(logging, log_level),
        format="%(levelname)s:%(name)s:%(message)s",
    )


def _load(config_path: str) -> Optional[DocumentConfig]:
    """Load a configuration, printing a one-line error and returning None on failure."""
    try:
        return load_config(Path(config_path))
    except ConfigurationError as e:
        print(f"[ERROR] Invalid configuration {config_path}: {e}", file=sys.stderr)
    except OSError as e:
        print(f"[ERROR] Cannot read configuration {config_path}: {e}", file=sys.stderr)
    return None


def _count_sections(sections: List[SectionConfig]) -> Dict[str, int]:
    counts = {"sections": 0, "blocks": 0}
    for section in sections:
        counts["sections"] += 1
        counts["blocks"] += len(section.blocks)
        nested = _count_sections(list(section.subsections))
        counts["sections"] += nested["sections"]
        counts["blocks"] += nested["blocks"]
    return counts


def validate_command(args) -> int:
    """Validate documents against a configuration.

    Args:
        args: Command-line arguments from argparse

    Returns:
        Exit code: 0 if no message reaches the fail level, 1 if one does,
        2 on configuration or I/O errors
    """
    config = _load(args.config)
    if config is None:
        return EXIT_ERROR

    linter = Linter()
    try:
        files = linter.discover_files(args.paths, args.pattern, recursive=not args.no_recursive)
    except FileNotFoundError as e:
        print(f"[ERROR] {e}", file=sys.stderr)
        return EXIT_ERROR
    if not files:
        print(f"[ERROR] No files found matching {args.pattern}", file=sys.stderr)
        return EXIT_ERROR

    results = linter.validate_files(files, config)
    result = ValidationResult.merge(results.values())

    try:
        write_report(result, get_formatter(args.format, use_colors=args.color), args.output)
    except OSError as e:
        print(f"[ERROR] Cannot write report {args.output}: {e}", file=sys.stderr)
        return EXIT_ERROR

    if any(message.rule_id == "io-error" for message in result.messages):
        return EXIT_ERROR
    if result.at_or_above(Severity.parse(args.fail_level)):
        return EXIT_VALIDATION_FAILED
    return EXIT_SUCCESS


def check_config_command(args) -> int:
    """Load a configuration and report whether it is valid."""
    config = _load(args.config)
    if config is None:
        return EXIT_ERROR
    counts = _count_sections(list(config.sections))
    print(
        f"Configuration valid: {args.config} "
        f"({len(config.metadata.attributes)} attribute rules, "
        f"{counts['sections']} section rules, {counts['blocks']} block rules)"
    )
    return EXIT_SUCCESS


def show_config_command(args) -> int:
    """Print the loaded rule tree with every default resolved."""
    config = _load(args.config)
    if config is None:
        return EXIT_ERROR
    print(f"=== Effective Rules: {args.config} ===")
    print(yaml.dump(config_to_dict(config), default_flow_style=False, sort_keys=False))
    return EXIT_SUCCESS


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the linter."""
    parser = argparse.ArgumentParser(
        prog="adoc-lint",
        description="Validate the structure of AsciiDoc documents",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s validate docs/
  %(prog)s validate guide.adoc -c rules.yaml -f json -o report.json
  %(prog)s check-config rules.yaml
        """
    )
    parser.add_argument(
        '--log-level',
        default='WARNING',
        choices=LOG_LEVELS,
        help='Logging level (default: WARNING)'
    )
    parser.add_argument(
        '--version',
        action='version',
        version=f"%(prog)s {__version__}"
    )

    subparsers = parser.add_subparsers(
        dest='command',
        required=True,
        help='Command to run'
    )

    # validate subcommand
    parser_validate = subparsers.add_parser(
        'validate',
        help='Validate documents against a configuration'
    )
    parser_validate.add_argument(
        'paths',
        nargs='+',
        help='Files or directories to validate'
    )
    parser_validate.add_argument(
        '-c', '--config',
        default=DEFAULT_CONFIG_FILE,
        help=f'Configuration file (default: {DEFAULT_CONFIG_FILE})'
    )
    parser_validate.add_argument(
        '-f', '--format',
        default='console',
        choices=list(FORMATTERS),
        help='Report format (default: console)'
    )
    parser_validate.add_argument(
        '-o', '--output',
        help='Write the report to a file instead of stdout'
    )
    parser_validate.add_argument(
        '-p', '--pattern',
        default=DEFAULT_PATTERN,
        help=f'Glob pattern for files in directories (default: {DEFAULT_PATTERN})'
    )
    parser_validate.add_argument(
        '--no-recursive',
        action='store_true',
        help='Do not search directories recursively'
    )
    parser_validate.add_argument(
        '-l', '--fail-level',
        default='error',
        choices=[severity.value for severity in Severity],
        help='Lowest severity that makes the run fail (default: error)'
    )
    parser_validate.add_argument(
        '--color',
        action='store_true',
        help='Colour console output'
    )

    # check-config subcommand
    parser_check = subparsers.add_parser(
        'check-config',
        help='Validate a configuration file'
    )
    parser_check.add_argument('config', help='Configuration file')

    # show-config subcommand
    parser_show = subparsers.add_parser(
        'show-config',
        help='Show the effective rules of a configuration file'
    )
    parser_show.add_argument('config', help='Configuration file')

    # Parse arguments
    args = parser.parse_args(argv)
    _setup_logging(args.log_level)

    # Dispatch to handler functions
    handlers: Dict[str, callable] = {
        'validate': validate_command,
        'check-config': check_config_command,
        'show-config': show_config_command,
    }

    handler = handlers.get(args.command)
    if handler is None:
        print(f"Error: Unknown command '{args.command}'", file=sys.stderr)
        return EXIT_ERROR

    logger.debug("Running %s", args.command)
    return handler(args)


if __name__ == "__main__":
    sys.exit(main())
