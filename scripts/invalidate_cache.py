#!/usr/bin/env python3
"""
Invalidate cached upstream responses in the gateway's Redis store.

Entries are addressed the same way the gateway addresses them: by HTTP method,
upstream endpoint path and query parameters, or by a raw cache key.
"""

import argparse
import asyncio
import json
import os
from typing import List, Optional, Tuple

from market_gateway.app.caching import CacheManager, RedisCacheStore
from market_gateway.app.domain.descriptor import build_cache_key


def _parse_param(raw: str) -> Tuple[str, str]:
    name, sep, value = raw.partition("=")
    if not sep or not name:
        raise argparse.ArgumentTypeError(f"expected NAME=VALUE, got {raw!r}")
    return name, value


async def invalidate(
    *,
    redis_url: str,
    token: Optional[str],
    keys: List[str],
    dry_run: bool,
) -> dict:
    """Invalidate each key and return a summary."""
    summary = {"requested": len(keys), "invalidated": [], "failed": [], "dry_run": dry_run}
    if dry_run:
        summary["invalidated"] = list(keys)
        return summary

    store = RedisCacheStore(redis_url, token)
    manager = CacheManager(store)
    try:
        for key in keys:
            if await manager.invalidate(key):
                summary["invalidated"].append(key)
            else:
                summary["failed"].append(key)
    finally:
        await store.close()
    return summary


def _parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Invalidate cached market data responses.")
    parser.add_argument("--redis-url", default=os.getenv("MARKET_CACHE_REDIS_URL", "redis://localhost:6379/0"), help="Redis connection URL")
    parser.add_argument("--token", default=os.getenv("MARKET_CACHE_REDIS_TOKEN"), help="Redis password/token")
    parser.add_argument("--endpoint", help="Upstream endpoint path, e.g. token/mcap")
    parser.add_argument("--param", action="append", type=_parse_param, default=[], help="Query parameter NAME=VALUE (repeatable)")
    parser.add_argument("--method", default="GET", help="HTTP method of the cached call")
    parser.add_argument("--key", action="append", default=[], help="Raw cache key (repeatable)")
    parser.add_argument("--dry-run", action="store_true", help="Print the keys without touching Redis")
    args = parser.parse_args(argv)
    if not args.endpoint and not args.key:
        parser.error("one of --endpoint or --key is required")
    return args


def main(argv: Optional[List[str]] = None) -> int:
    args = _parse_args(argv)
    keys = list(args.key)
    if args.endpoint:
        keys.append(build_cache_key(args.method, args.endpoint, args.param))

    try:
        summary = asyncio.run(
            invalidate(
                redis_url=args.redis_url,
                token=args.token,
                keys=keys,
                dry_run=args.dry_run,
            )
        )
    except KeyboardInterrupt:
        return 130

    if args.dry_run:
        print("[cache-invalidate] DRY RUN - no Redis deletes executed")
    print(json.dumps(summary, indent=2))
    return 0 if not summary["failed"] else 1


if __name__ == "__main__":
    raise SystemExit(main())
