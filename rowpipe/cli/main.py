"""Main CLI entry point for rowpipe."""

import argparse
import sys
from typing import Optional

from .commands import run_batch, scaffold_config


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser for the rowpipe CLI."""
    parser = argparse.ArgumentParser(
        prog='rowpipe',
        description='Send CSV rows to an HTTP API as sequences of dependent requests'
    )

    subparsers = parser.add_subparsers(dest='command', help='Commands')

    # Run command
    run_parser = subparsers.add_parser('run', help='Send requests for every CSV row')
    run_parser.add_argument(
        '--csv', '-c',
        type=str,
        required=True,
        help='Path to the CSV file'
    )
    run_parser.add_argument(
        '--config', '-f',
        type=str,
        required=True,
        help='Path to the request configuration file (JSON or YAML)'
    )
    run_parser.add_argument(
        '--apikey', '-k',
        type=str,
        help='API key for authentication (default: $ROWPIPE_API_KEY)'
    )
    run_parser.add_argument(
        '--endpoint', '-e',
        type=str,
        help='Endpoint template overriding every request endpoint (default: $ROWPIPE_ENDPOINT)'
    )
    run_parser.add_argument(
        '--delay', '-d',
        type=int,
        default=0,
        help='Delay between rows in milliseconds'
    )
    run_parser.add_argument(
        '--secondary-csv', '-s',
        type=str,
        help='CSV file whose rows are looped over by forEachSecondaryRow requests'
    )
    run_parser.add_argument(
        '--array-field',
        action='append',
        metavar='NAME',
        help='Column parsed as an embedded array literal (can be specified multiple times)'
    )
    run_parser.add_argument(
        '--error-log',
        type=str,
        metavar='PATH',
        help='Append one JSON line per failed row to this file'
    )
    run_parser.add_argument(
        '--interactive', '-i',
        action='store_true',
        help='Confirm each request and each next row'
    )
    run_parser.add_argument(
        '--timeout',
        type=float,
        help='Per-request timeout in seconds'
    )
    run_parser.add_argument(
        '--dry-run',
        action='store_true',
        help='Validate and log resolved requests without sending them'
    )
    run_parser.add_argument(
        '--debug',
        action='store_true',
        help='Enable debug logging'
    )
    run_parser.add_argument(
        '--quiet',
        action='store_true',
        help='Suppress non-error output'
    )
    run_parser.add_argument(
        '--verbose',
        action='store_true',
        help='Enable verbose output (payloads and response bodies)'
    )
    run_parser.add_argument(
        '--log-level',
        choices=['debug', 'info', 'warn', 'error'],
        default='info',
        help='Set log level'
    )

    # Init command
    init_parser = subparsers.add_parser('init', help='Generate a request configuration from CSV headers')
    init_parser.add_argument(
        'csv',
        type=str,
        help='CSV file whose headers become payload placeholders'
    )
    init_parser.add_argument(
        '--output', '-o',
        type=str,
        default='config.json',
        help='Configuration file to write (.json, .yaml or .yml)'
    )
    init_parser.add_argument(
        '--endpoint', '-e',
        type=str,
        default='',
        help='Endpoint to put in the generated request'
    )
    init_parser.add_argument(
        '--force',
        action='store_true',
        help='Overwrite an existing configuration file'
    )

    return parser


def main(args: Optional[list] = None) -> int:
    """Main entry point for the CLI."""
    parser = create_parser()
    parsed_args = parser.parse_args(args)

    if not parsed_args.command:
        parser.print_help()
        return 1

    if parsed_args.command == 'run':
        return run_batch(parsed_args)
    elif parsed_args.command == 'init':
        return scaffold_config(parsed_args)
    else:
        parser.print_help()
        return 1


if __name__ == '__main__':
    sys.exit(main())
