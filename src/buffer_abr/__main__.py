"""
Command-line interface for the buffer-based ABR engine.
"""

import sys
import json
import argparse
from typing import Dict, Any, List, Optional

from .simulation import load_trace, simulate_trace
from .utils.config import (
    get_default_config, save_config, get_config_schema, validate_config,
    load_config_from_args
)
from .utils.logging import configure_from_config
from .utils.statistics import format_latency_report


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command-line arguments.

    Args:
        argv: Argument list (defaults to sys.argv)

    Returns:
        Parsed arguments
    """
    parser = argparse.ArgumentParser(
        description="Buffer-based adaptive bitrate engine",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter
    )

    parser.add_argument(
        '-c', '--config',
        help="Path to configuration file",
        type=str
    )

    parser.add_argument(
        '-v', '--verbose',
        help="Increase output verbosity",
        action='store_true'
    )

    subparsers = parser.add_subparsers(
        title='commands',
        dest='command',
        help='Command to run'
    )

    simulate_parser = subparsers.add_parser(
        'simulate',
        help='Replay a playback trace through the ABR engine'
    )

    simulate_parser.add_argument(
        'trace',
        help="Path to a JSON or YAML trace file",
        type=str
    )

    simulate_parser.add_argument(
        '--low',
        help="Low buffer threshold override",
        type=float
    )

    simulate_parser.add_argument(
        '--high',
        help="High buffer threshold override",
        type=float
    )

    simulate_parser.add_argument(
        '--json',
        help="Print the full result as JSON",
        action='store_true'
    )

    config_parser = subparsers.add_parser(
        'config',
        help='Generate default configuration file'
    )

    config_parser.add_argument(
        '-o', '--output',
        help="Output file path",
        type=str,
        required=True
    )

    config_parser.add_argument(
        '--format',
        help="Output file format",
        choices=['json', 'yaml'],
        default='json'
    )

    return parser.parse_args(argv)


def load_config(args: argparse.Namespace) -> Dict[str, Any]:
    """Load and validate configuration, exiting on errors.

    Args:
        args: Command-line arguments

    Returns:
        Configuration dictionary
    """
    try:
        config = load_config_from_args(args)
    except (OSError, ValueError) as e:
        print(f"Error loading configuration: {e}")
        sys.exit(1)

    schema = get_config_schema()
    errors = validate_config(config, schema)
    if errors:
        print("Configuration validation errors:")
        for error in errors:
            print(f"  - {error}")
        sys.exit(1)

    return config


def run_simulation(args: argparse.Namespace, config: Dict[str, Any]) -> None:
    """Run simulate command.

    Args:
        args: Command-line arguments
        config: Configuration dictionary
    """
    try:
        trace = load_trace(args.trace)
        result = simulate_trace(trace, config)
    except (OSError, ValueError) as e:
        print(f"Error running simulation: {e}")
        sys.exit(1)

    if args.json:
        print(json.dumps(result, indent=2, default=str))
        return

    for decision in result['decisions']:
        print(f"{decision['time']:>10.0f} ms  quality={decision['quality_index']}  "
              f"bandwidth={decision['bandwidth']}")

    summary = result['summary']
    print("")
    print(f"Final quality index: {result['final_quality_index']}")
    print(f"Max bandwidth: {result['max_bandwidth']}")
    print(f"Switches: {summary['increases']} up, {summary['decreases']} down")
    if result['reports']:
        print(format_latency_report(result['reports'][-1]))


def generate_config(args: argparse.Namespace) -> None:
    """Generate default configuration file.

    Args:
        args: Command-line arguments
    """
    try:
        save_config(get_default_config(), args.output, args.format)
        print(f"Default configuration saved to {args.output}")
    except (OSError, ValueError) as e:
        print(f"Error saving configuration: {e}")
        sys.exit(1)


def main(argv: Optional[List[str]] = None) -> None:
    """Main entry point."""
    args = parse_args(argv)

    if args.command is None:
        print("No command specified")
        print("Use --help for command usage")
        sys.exit(1)

    if args.command == 'config':
        generate_config(args)
        return

    config = load_config(args)
    configure_from_config(config)

    if args.command == 'simulate':
        run_simulation(args, config)
    else:
        print(f"Unknown command: {args.command}")
        sys.exit(1)


if __name__ == '__main__':
    main()
