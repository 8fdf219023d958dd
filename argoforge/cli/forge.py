"""
argoforge CLI: rewrite one cached manifest entry in the repo-server's Redis.

Usage examples:
    python -m argoforge.cli.forge --key key.txt --pod pod.json
    argoforge --key key.txt --pod pod.json --redis-addr 10.0.0.5:6379 --compression none
"""

from __future__ import annotations

import argparse
import asyncio
import dataclasses
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

from forgecore.base.config import (
    LOG_LEVELS,
    ForgeConfig,
    get_config,
    parse_log_level,
    set_config,
    setup_logging,
)
from forgecore.cache.compression import CompressionType
from forgecore.cache.store import RedisCacheStore
from forgecore.errors import ForgeError, InputError
from forgecore.forge.orchestrator import ForgeOrchestrator, ForgeResult
from forgecore.forge.spinner import Spinner

logger = logging.getLogger("argoforge")

BANNER = r"""
  __ _ _ __ __ _  ___  / _| ___  _ __ __ _  ___
 / _` | '__/ _` |/ _ \| |_ / _ \| '__/ _` |/ _ \
| (_| | | | (_| | (_) |  _| (_) | | | (_| |  __/
 \__,_|_|  \__, |\___/|_|  \___/|_|  \__, |\___|
           |___/                     |___/
 repo-server manifest cache rewriter
"""


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="argoforge",
        description="Replace a manifest in a cached repo-server entry and reseal its hash",
    )
    parser.add_argument("--key", required=True, type=Path, help="Path to file holding the Redis key name")
    parser.add_argument("--pod", required=True, type=Path, help="Path to replacement manifest (JSON, one line)")
    parser.add_argument("--redis-addr", help="Redis address host:port (default localhost:6379)")
    parser.add_argument("--redis-password", help="Redis password")
    parser.add_argument("--redis-db", type=int, help="Redis database number")
    parser.add_argument(
        "--compression",
        choices=[c.value for c in CompressionType],
        help="Compression mode the repo-server uses (default gzip)",
    )
    parser.add_argument("--index", type=int, help="Manifest index to replace (default 0)")
    parser.add_argument("--ttl", type=float, help="Expiry of the rewritten entry in seconds (default 3600)")
    parser.add_argument("--no-spinner", action="store_true", help="Disable the progress indicator")
    parser.add_argument(
        "--log-level",
        type=str.upper,
        choices=LOG_LEVELS,
        help="Logging level (default INFO)",
    )
    return parser


def apply_overrides(config: ForgeConfig, args: argparse.Namespace) -> ForgeConfig:
    """Layer explicit flags over the environment-derived config."""
    redis = config.redis
    if args.redis_addr is not None:
        redis = dataclasses.replace(redis, addr=args.redis_addr)
    if args.redis_password is not None:
        redis = dataclasses.replace(redis, password=args.redis_password)
    if args.redis_db is not None:
        redis = dataclasses.replace(redis, db=args.redis_db)

    cache = config.cache
    if args.compression is not None:
        cache = dataclasses.replace(cache, compression=CompressionType.parse(args.compression))
    if args.ttl is not None:
        cache = dataclasses.replace(cache, expiration_seconds=args.ttl)

    log = config.log
    if args.log_level is not None:
        log = dataclasses.replace(log, level=args.log_level)

    return dataclasses.replace(
        config,
        redis=redis,
        cache=cache,
        log=log,
        fragment_index=config.fragment_index if args.index is None else args.index,
        spinner_enabled=config.spinner_enabled and not args.no_spinner,
    )


def read_key(path: Path) -> str:
    try:
        key = path.read_text(encoding="utf-8").strip()
    except OSError as e:
        raise InputError(f"Error reading key file: {e}", details={"path": str(path)}) from e
    if not key:
        raise InputError(f"Key file {path} is empty", details={"path": str(path)})
    return key


def read_replacement(path: Path) -> str:
    """Load the replacement manifest; it is stored verbatim, but must be JSON."""
    try:
        manifest = path.read_text(encoding="utf-8").strip()
    except OSError as e:
        raise InputError(f"Error reading pod file: {e}", details={"path": str(path)}) from e
    try:
        json.loads(manifest)
    except json.JSONDecodeError as e:
        raise InputError(f"Pod file {path} is not valid JSON: {e}", details={"path": str(path)}) from e
    return manifest


async def forge(config: ForgeConfig, key: str, replacement: str) -> ForgeResult:
    spinner = Spinner(delay=config.spinner_delay) if config.spinner_enabled else None
    async with RedisCacheStore.from_config(config.redis, config.cache) as store:
        orchestrator = ForgeOrchestrator(store, fragment_index=config.fragment_index, spinner=spinner)
        return await orchestrator.run(key, replacement)


def main(argv: Optional[List[str]] = None) -> int:
    print(BANNER)
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        config = apply_overrides(get_config(), args)
        config.redis.port  # validates the address
        parse_log_level(config.log.level)
    except ValueError as e:
        print(f"❌ Invalid configuration: {e}")
        return InputError.exit_code
    set_config(config)
    setup_logging(config)

    try:
        key = read_key(args.key)
        replacement = read_replacement(args.pod)
        result = asyncio.run(forge(config, key, replacement))
    except ForgeError as e:
        logger.debug(f"Forge aborted: {e.to_dict()}", exc_info=True)
        print(f"\n❌ {e.message}")
        return e.exit_code
    except KeyboardInterrupt:
        print("\n❌ Interrupted")
        return 130

    print(f"\n✅ Key set successfully: {result.physical_key}")
    print(f"   manifest[{result.fragment_index}] replaced, hash {result.previous_hash} -> {result.new_hash}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
