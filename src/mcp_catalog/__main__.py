"""CLI entrypoint — python -m mcp_catalog."""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys

from mcp_catalog import config


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="mcp-catalog",
        description="Discover MCP servers on GitHub and npm",
    )
    parser.add_argument("--db", default=None, help="SQLite catalog path (default: ./data/catalog.db)")
    parser.add_argument("--cache", default=None, help="Cache file path (default: ./data/cache.json)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    discover = sub.add_parser("discover", help="Run a discovery job and write results")
    discover.add_argument("query", nargs="?", default=None, help=f'Search text (default: "{config.DEFAULT_QUERY}")')
    discover.add_argument("--max-results", type=int, default=config.DEFAULT_MAX_RESULTS)
    discover.add_argument("--min-popularity", type=int, default=config.DEFAULT_MIN_POPULARITY)
    discover.add_argument("--include-forks", action="store_true")
    discover.add_argument("-o", "--output", default=None, help="Output directory (default: ./output)")

    analyze = sub.add_parser("analyze", help="Analyze a single GitHub repository")
    analyze.add_argument("url")

    sub.add_parser("status", help="Show provider availability and rate limits")

    listing = sub.add_parser("list", help="List stored catalog entries")
    listing.add_argument("--tag", default=None)
    listing.add_argument("--limit", type=int, default=25)

    return parser


async def _dispatch(args: argparse.Namespace) -> int:
    from mcp_catalog.errors import CatalogError
    from mcp_catalog.output.models import DiscoverOptions
    from mcp_catalog.pipeline import (
        build_service,
        print_status,
        run_analyze,
        run_discovery,
        run_list,
    )

    service = build_service(args.db, args.cache)
    try:
        if args.command == "discover":
            options = DiscoverOptions(
                query=args.query,
                max_results=max(1, min(args.max_results, config.MAX_RESULTS_CEILING)),
                min_popularity=max(0, args.min_popularity),
                include_forks=args.include_forks,
            )
            ok = await run_discovery(service, options, output_dir=args.output)
        elif args.command == "analyze":
            ok = await run_analyze(service, args.url)
        elif args.command == "status":
            print_status(service)
            ok = True
        else:
            await run_list(service, tag=args.tag, limit=args.limit)
            ok = True
    except CatalogError as exc:
        print(f"Error: {exc.message}", file=sys.stderr)
        ok = False
    finally:
        await service.aclose()
    return 0 if ok else 1


def main() -> None:
    args = _build_parser().parse_args()

    level = "DEBUG" if args.verbose else os.environ.get("MCP_CATALOG_LOG_LEVEL", "INFO")
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s - %(levelname)s - %(message)s",
    )

    try:
        code = asyncio.run(_dispatch(args))
    except KeyboardInterrupt:
        print("\nAborted.")
        sys.exit(1)
    sys.exit(code)


if __name__ == "__main__":
    main()
