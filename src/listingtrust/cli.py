# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Listing Trust CLI: classify a saved search page, resolve a seller.

Usage:
    listingtrust classify PAGE.html [--level N] [--trusted-brands F] [--patterns F]
                                    [--cache F] [--mode MODE] [--output OUT.html] [--json]
    listingtrust check-seller REF [--cache F] [--timeout SECONDS]
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

import httpx
import lxml.html

from . import FilterOutcome
from .config import load_trust_config
from .display_mode import BannerAction, DisplayMode, DisplayModeController
from .errors import ListingTrustError
from .logging_config import configure
from .product_filter import DEFAULT_FILTER_LEVEL, FilterPipeline, outcome_of
from .seller_cache import JsonFileCacheStore, SellerLocaleCache
from .seller_checker import SellerLocaleResolver, httpx_fetcher

logger = logging.getLogger("listingtrust.cli")

_MODE_ACTIONS = {
    DisplayMode.TRUSTED_ONLY: BannerAction.SHOW_TRUSTED_ONLY,
    DisplayMode.SHOW_ALL: BannerAction.SHOW_ALL,
}


def _load_cache(path: str | None) -> SellerLocaleCache:
    if not path:
        return SellerLocaleCache()
    cache = SellerLocaleCache(JsonFileCacheStore(path))
    asyncio.run(cache.load())
    return cache


def cmd_classify(args: argparse.Namespace) -> int:
    page = Path(args.page)
    if not page.is_file():
        print(f"Error: no such file: {page}", file=sys.stderr)
        return 1

    config = load_trust_config(args.trusted_brands, args.patterns)
    root = lxml.html.document_fromstring(page.read_bytes())
    pipeline = FilterPipeline(root, seller_cache=_load_cache(args.cache))
    controller = DisplayModeController(pipeline)

    stats = pipeline.run_full_pass(config, args.level)
    mode = DisplayMode(args.mode)
    if mode in _MODE_ACTIONS:
        controller.dispatch(_MODE_ACTIONS[mode])

    if args.output:
        out = Path(args.output)
        out.parent.mkdir(parents=True, exist_ok=True)
        out.write_bytes(lxml.html.tostring(root, encoding="utf-8", doctype="<!DOCTYPE html>"))

    listings = [
        {"asin": el.get("data-asin", ""), "outcome": (outcome_of(el) or FilterOutcome.NONE).value}
        for el in pipeline.listings()
    ]
    if args.json:
        payload = {
            "level": args.level,
            "mode": controller.mode.value,
            "stats": stats.to_dict(),
            "listings": listings,
        }
        print(json.dumps(payload, ensure_ascii=False, indent=2))
    else:
        print(f"Listings: {stats.total}")
        print(f"  Hidden:  {stats.hidden}")
        print(f"  Warned:  {stats.warned}")
        print(f"  Trusted: {stats.trusted}")
        if controller.mode is DisplayMode.TRUSTED_ONLY:
            print(f"  Visible trusted: {controller.visible_trusted_count()}")
        if args.output:
            print(f"\nAnnotated page saved to {args.output}")
    return 0


async def _check_seller(ref: str, cache_path: str | None, timeout: float) -> dict:
    store = JsonFileCacheStore(cache_path) if cache_path else None
    cache = SellerLocaleCache(store)
    await cache.load()
    async with httpx.AsyncClient(timeout=timeout, follow_redirects=True) as client:
        resolver = SellerLocaleResolver(httpx_fetcher(client), cache)
        result = await resolver.resolve(ref)
    await cache.flush()
    out = result.to_dict()
    out["fromCache"] = result.from_cache
    return out


def cmd_check_seller(args: argparse.Namespace) -> int:
    result = asyncio.run(_check_seller(args.ref, args.cache, args.timeout))
    print(json.dumps(result, ensure_ascii=False, indent=2))
    return 1 if "error" in result else 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Listing Trust CLI",
        prog="listingtrust",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    parser.add_argument("--log-json", action="store_true", help="Emit logs as JSON lines on stderr")
    subparsers = parser.add_subparsers(dest="command", required=True)

    p_classify = subparsers.add_parser(
        "classify",
        help="Run a filter pass over a saved search-result page",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""\
examples:
  %(prog)s search.html                                  Summary at the standard level
  %(prog)s search.html --level 4 --json                 Strictest level, JSON output
  %(prog)s search.html --mode showAll -o annotated.html Save the marked-up page""",
    )
    p_classify.add_argument("page", metavar="PAGE.html", help="Saved search-result HTML")
    p_classify.add_argument(
        "--level",
        type=int,
        default=DEFAULT_FILTER_LEVEL,
        choices=range(0, 5),
        help=f"Filter level 0-4 (default: {DEFAULT_FILTER_LEVEL})",
    )
    p_classify.add_argument("--trusted-brands", metavar="FILE", help="Trusted brands JSON")
    p_classify.add_argument("--patterns", metavar="FILE", help="Suspicious patterns JSON")
    p_classify.add_argument("--cache", metavar="FILE", help="Seller cache JSON (read only)")
    p_classify.add_argument(
        "--mode",
        choices=[m.value for m in DisplayMode],
        default=DisplayMode.FILTERED.value,
        help="Display mode applied after the pass",
    )
    p_classify.add_argument("-o", "--output", metavar="OUT.html", help="Write the annotated page")
    p_classify.add_argument("--json", action="store_true", help="Print stats and outcomes as JSON")

    p_seller = subparsers.add_parser("check-seller", help="Resolve whether a seller is domestic")
    p_seller.add_argument("ref", metavar="REF", help="Seller page URL, relative path, or 'amazon-official'")
    p_seller.add_argument("--cache", metavar="FILE", help="Seller cache JSON (read and updated)")
    p_seller.add_argument("--timeout", type=float, default=15.0, help="Request timeout in seconds (default: 15)")

    return parser


def main(argv: list[str] | None = None) -> None:
    """CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)
    configure(json_output=args.log_json, level=logging.DEBUG if args.verbose else logging.INFO)

    commands = {"classify": cmd_classify, "check-seller": cmd_check_seller}
    try:
        code = commands[args.command](args)
    except KeyboardInterrupt:
        print("\nInterrupted.", file=sys.stderr)
        sys.exit(130)
    except ListingTrustError as e:
        print(f"Error: {e}", file=sys.stderr)
        if args.verbose:
            logger.exception("Command failed")
        sys.exit(1)
    sys.exit(code)


if __name__ == "__main__":
    main()
