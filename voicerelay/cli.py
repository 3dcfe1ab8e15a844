"""VoiceRelay CLI entry point.

Usage:
    voicerelay run [--port 1313] [--host 0.0.0.0] [--config relay.yaml]
    voicerelay init [--output relay.yaml]
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

from loguru import logger
from pydantic import ValidationError

DEFAULT_PORT = 1313


def cmd_run(args: argparse.Namespace) -> None:
    """Run the VoiceRelay server."""
    from voicerelay.config import BridgeConfig, ConfigError, load_config

    try:
        if args.config:
            config = load_config(args.config)
        else:
            config = BridgeConfig.from_env(default_port=DEFAULT_PORT)
    except (ConfigError, ValidationError) as e:
        logger.error(f"Invalid configuration: {e}")
        sys.exit(1)

    updates = {}
    if args.port:
        updates["port"] = args.port
    if args.host:
        updates["host"] = args.host
    if updates:
        config = config.model_copy(update=updates)

    # Configure logging
    logger.remove()
    logger.add(sys.stderr, level=config.logging.level)

    logger.info(f"VoiceRelay starting on {config.host}:{config.port}")
    logger.info(f"Realtime model: {config.realtime.model}")
    logger.info(f"Webhook URL: {config.webhook_url}")

    from voicerelay.server import run_server

    run_server(config)


def cmd_init(args: argparse.Namespace) -> None:
    """Generate a starter configuration file."""
    output = Path(args.output)

    if output.exists() and not args.force:
        logger.error(f"File already exists: {output}. Use --force to overwrite.")
        sys.exit(1)

    from voicerelay.config import DEFAULT_CONFIG_YAML

    output.write_text(DEFAULT_CONFIG_YAML)
    print(f"Configuration written to: {output}")
    print(f"\nEdit the file and run: voicerelay run --config {output}")


def main(argv: list[str] | None = None) -> None:
    """CLI entry point."""
    parser = argparse.ArgumentParser(
        prog="voicerelay",
        description="VoiceRelay - Twilio media streams bridged to the OpenAI realtime API",
    )
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # `voicerelay run`
    run_parser = subparsers.add_parser("run", help="Run the VoiceRelay server")
    run_parser.add_argument(
        "--port", "-p",
        type=int,
        default=None,
        help=f"Port to listen on (default: $PORT or {DEFAULT_PORT})",
    )
    run_parser.add_argument(
        "--host",
        default=None,
        help="Host to bind (default: $HOST or 0.0.0.0)",
    )
    run_parser.add_argument(
        "--config", "-c",
        default=None,
        help="Path to a YAML config file (default: read the environment)",
    )

    # `voicerelay init`
    init_parser = subparsers.add_parser("init", help="Generate a starter config file")
    init_parser.add_argument(
        "--output", "-o",
        default="relay.yaml",
        help="Output file path (default: relay.yaml)",
    )
    init_parser.add_argument(
        "--force", "-f",
        action="store_true",
        help="Overwrite existing file",
    )

    args = parser.parse_args(argv)

    if args.command == "run":
        cmd_run(args)
    elif args.command == "init":
        cmd_init(args)
    else:
        parser.print_help()


if __name__ == "__main__":
    main()
