from __future__ import annotations

import argparse
import asyncio
import json
import sys
from collections.abc import Iterable
from pathlib import Path
from typing import Any

import structlog

from kvcache.domain.exceptions import CacheError
from kvcache.domain.ports.cache import CachePort
from kvcache.infrastructure.cache import create_cache
from kvcache.infrastructure.config import load_config
from kvcache.infrastructure.logging.setup import configure_logging

log = structlog.get_logger(__name__)


def _parse_json_arg(raw: str) -> Any:
    """Use the argument as JSON when it parses, otherwise as a plain string."""
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        return raw


def _parse_args(argv: Iterable[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="kvcache")

    # Config wiring flags (no business logic)
    parser.add_argument(
        "--config",
        default=None,
        help="Path to YAML config file.",
    )
    parser.add_argument(
        "--dotenv",
        default=None,
        help="Path to .env file.",
    )
    parser.add_argument(
        "--backend",
        default=None,
        choices=["memory", "redis", "database"],
        help="Override cache backend.",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Override log level.",
    )
    parser.add_argument(
        "--log-format",
        default=None,
        choices=["json", "console"],
        help="Override log format.",
    )

    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("get", help="Print the value stored under KEY.")
    p.add_argument("key")

    p = sub.add_parser("set", help="Store VALUE under KEY.")
    p.add_argument("key")
    p.add_argument("value")
    p.add_argument("--ttl", type=int, default=None, help="TTL in seconds.")

    p = sub.add_parser("del", help="Delete KEY.")
    p.add_argument("key")

    sub.add_parser("keys", help="List live keys.")
    sub.add_parser("list", help="List live key/value pairs.")

    p = sub.add_parser("mget", help="Print values for several keys.")
    p.add_argument("keys", nargs="+")

    p = sub.add_parser("ttl", help="Refresh the TTL of KEY.")
    p.add_argument("key")
    p.add_argument("--ttl", type=int, default=None, help="TTL in seconds.")

    p = sub.add_parser("get-ttl", help="Print remaining seconds of KEY.")
    p.add_argument("key")

    p = sub.add_parser("take", help="Print and delete the value of KEY.")
    p.add_argument("key")

    sub.add_parser("clear", help="Remove every entry.")

    return parser.parse_args(argv)


async def run_command(cache: CachePort, args: argparse.Namespace) -> Any:
    """Execute one command against `cache` and return a JSON-serializable result."""
    cmd = args.command

    if cmd == "get":
        return await cache.get(_parse_json_arg(args.key))
    if cmd == "set":
        return await cache.set(
            _parse_json_arg(args.key), _parse_json_arg(args.value), args.ttl
        )
    if cmd == "del":
        return await cache.delete(_parse_json_arg(args.key))
    if cmd == "keys":
        return await cache.keys()
    if cmd == "list":
        return [[k, v] for k, v in (await cache.entries()).items()]
    if cmd == "mget":
        keys = [_parse_json_arg(k) for k in args.keys]
        return [[k, v] for k, v in (await cache.mget(keys)).items()]
    if cmd == "ttl":
        return await cache.ttl(_parse_json_arg(args.key), args.ttl)
    if cmd == "get-ttl":
        return await cache.get_ttl(_parse_json_arg(args.key))
    if cmd == "take":
        return await cache.take(_parse_json_arg(args.key))
    if cmd == "clear":
        return await cache.clear()
    raise ValueError(f"Unknown command: {cmd!r}")


async def _run(cache: CachePort, args: argparse.Namespace) -> Any:
    async with cache:
        return await run_command(cache, args)


def start(argv: Iterable[str] | None = None) -> int:
    """
    Process entrypoint.

    Loads config exactly once, builds the configured backend and runs one command.
    """
    if argv is None:
        argv = sys.argv[1:]

    args = _parse_args(argv)

    config_path = Path(args.config) if args.config else None
    dotenv_path = Path(args.dotenv) if args.dotenv else None

    cli_overrides: dict[str, Any] = {}
    if args.backend:
        cli_overrides["backend"] = args.backend
    if args.log_level:
        cli_overrides["log_level"] = args.log_level
    if args.log_format:
        cli_overrides["log_format"] = args.log_format

    config = load_config(
        config_path=config_path,
        dotenv_path=dotenv_path,
        cli_overrides=cli_overrides,
    )

    configure_logging(config)

    cache = create_cache(config)
    try:
        result = asyncio.run(_run(cache, args))
    except CacheError as e:
        log.error("command_failed", command=args.command, error=str(e))
        print(json.dumps({"error": str(e)}), file=sys.stderr)
        return 1

    print(json.dumps(result, ensure_ascii=False))
    return 0


if __name__ == "__main__":
    raise SystemExit(start())
