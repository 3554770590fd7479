"""
mqtt-levels CLI - Main entry point.

Publishes one leveled message and waits for the broker acknowledgement.
"""

import argparse
import sys
from concurrent.futures import TimeoutError
from dataclasses import replace
from pathlib import Path
from typing import List, Optional

from mqtt_levels import LevelPublisher, PublisherConfig, Severity


def load_config(args: argparse.Namespace) -> PublisherConfig:
    """
    Build the publisher configuration from YAML or the environment,
    then apply command-line overrides.

    Raises:
        FileNotFoundError: If the config file doesn't exist
        ValueError: If the configuration is invalid
    """
    if args.config:
        path = Path(args.config)
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {args.config}")
        config = PublisherConfig.from_yaml(path)
    else:
        config = PublisherConfig.from_env()

    overrides = {}
    if args.env:
        overrides['environment'] = args.env
    if args.host:
        overrides['host'] = args.host
    if args.port:
        overrides['port'] = args.port

    return replace(config, **overrides) if overrides else config


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="mqtt-levels",
        description="Publish a leveled message to the MQTT broker",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Publish to dev-info (broker from MQTT_* environment variables)
  mqtt-levels info "service started"

  # Publish to prod-error with QoS 1
  mqtt-levels --env prod error "disk full" --qos 1

  # Broker settings from YAML
  mqtt-levels --config config/publisher.yaml usage "42 requests"
"""
    )

    # Global arguments
    parser.add_argument("--config", help="Path to publisher config YAML")
    parser.add_argument("--env", help="Environment label (overrides MQTT_ENV)")
    parser.add_argument("--host", help="MQTT broker host (overrides MQTT_HOST)")
    parser.add_argument("--port", type=int, help="MQTT broker port (overrides MQTT_PORT)")
    parser.add_argument(
        "--timeout",
        type=float,
        default=10.0,
        help=(
            "Seconds to wait for the outcome (default: 10). A publish still in "
            "flight keeps the process alive until it settles, at most the "
            "connect timeout plus the publish timeout"
        )
    )

    # One subcommand per severity
    subparsers = parser.add_subparsers(dest='severity', help='Message severity')
    for severity in Severity:
        sub = subparsers.add_parser(
            severity.value,
            help=f"Publish to the <env>-{severity.value} topic"
        )
        sub.add_argument('message', help='Message payload')
        sub.add_argument(
            '--qos',
            type=int,
            choices=[0, 1, 2],
            default=0,
            help='Quality of Service (default: 0)'
        )
        sub.add_argument('--retain', action='store_true', help='Set the retain flag')

    return parser


def main(argv: Optional[List[str]] = None) -> None:
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.severity:
        parser.print_help()
        sys.exit(2)

    try:
        config = load_config(args)
    except (OSError, ValueError, TypeError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(2)

    publisher = LevelPublisher(config)
    timed_out = False
    try:
        future = publisher.log(Severity(args.severity), args.message, qos=args.qos, retain=args.retain)
        try:
            delivered = future.result(timeout=args.timeout)
        except TimeoutError:
            print(f"Error: no outcome within {args.timeout}s", file=sys.stderr)
            timed_out = True
            delivered = False
    finally:
        # Do not wait for a publish that already missed the deadline
        publisher.close(wait=not timed_out)

    sys.exit(0 if delivered else 1)


if __name__ == '__main__':
    main()
