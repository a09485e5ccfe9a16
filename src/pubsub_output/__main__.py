"""Replay msgpack flush buffers through the Pub/Sub output plugin. Use --help for usage.

Exit status: 0 when every buffer was accepted, 75 (EX_TEMPFAIL) when the
host would have been asked to retry, 1 on a fatal outcome or bad config.
"""

import argparse
import asyncio
import logging
import os
import sys
from pathlib import Path

from dotenv import load_dotenv
from prometheus_client import start_http_server

from core.errors.exceptions import ConfigurationError
from core.logging.setup import setup_logging
from core.logging.utilities import log_exception
from pubsub_output.config import load_config
from pubsub_output.plugin import OutputPlugin
from pubsub_output.types import Disposition

logger = logging.getLogger(__name__)

EXIT_CODES = {
    Disposition.ACCEPTED: 0,
    Disposition.RETRY: 75,
    Disposition.FATAL: 1,
}


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="pubsub_output",
        description="Publish Fluent Bit msgpack chunks to Google Cloud Pub/Sub",
    )
    parser.add_argument(
        "buffers",
        nargs="+",
        help="msgpack chunk files, one flush each ('-' reads stdin)",
    )
    parser.add_argument("--config", type=Path, required=True, help="plugin YAML config")
    parser.add_argument("--tag", required=True, help="routing tag for the records")
    parser.add_argument("--debug", action="store_true", help="enable debug logging")
    parser.add_argument(
        "--json-logs",
        action="store_true",
        help="emit JSON log lines (also enabled by JSON_LOGS=true)",
    )
    parser.add_argument(
        "--env-file",
        type=Path,
        default=Path(".env"),
        help="dotenv file loaded before the config is read (default: ./.env)",
    )
    parser.add_argument(
        "--metrics-port",
        type=int,
        default=0,
        help="expose Prometheus metrics on this port (default: disabled)",
    )
    return parser.parse_args(argv)


def read_buffer(source: str) -> bytes:
    if source == "-":
        return sys.stdin.buffer.read()
    return Path(source).read_bytes()


async def replay(plugin: OutputPlugin, sources: list[str], tag: str) -> Disposition:
    outcomes = []
    for source in sources:
        disposition = await plugin.flush(read_buffer(source), tag)
        logger.info(f"{source}: {disposition.name}", extra={"disposition": disposition.name})
        outcomes.append(disposition)
    return Disposition.worst(outcomes)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    load_dotenv(args.env_file)

    json_logs = args.json_logs or os.getenv("JSON_LOGS", "false").lower() in ("true", "1", "yes")
    setup_logging(debug=args.debug, json_format=json_logs)

    try:
        config = load_config(args.config)
    except ConfigurationError as e:
        log_exception(logger, e, "Invalid configuration", include_traceback=False)
        return EXIT_CODES[Disposition.FATAL]
    if args.debug:
        config.debug = True

    if args.metrics_port:
        start_http_server(args.metrics_port)
        logger.info(f"Metrics server listening on port {args.metrics_port}")

    try:
        plugin = OutputPlugin.from_config(config)
    except ConfigurationError as e:
        log_exception(logger, e, "Unable to initialize plugin", include_traceback=False)
        return EXIT_CODES[Disposition.FATAL]

    try:
        disposition = asyncio.run(replay(plugin, args.buffers, args.tag))
    finally:
        plugin.close()
    return EXIT_CODES[disposition]


if __name__ == "__main__":
    sys.exit(main())
