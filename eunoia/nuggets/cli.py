# -*- coding: utf-8 -*-
"""
CLI tool for the shared nugget pool.

Usage:
    python -m eunoia.nuggets.cli init [--count N] [--provider openai|deepseek]
    python -m eunoia.nuggets.cli generate <category> [--count N] [--provider openai|deepseek]
    python -m eunoia.nuggets.cli migrate
    python -m eunoia.nuggets.cli stats
    python -m eunoia.nuggets.cli token <user_id>
"""

from __future__ import annotations

import argparse
import json
import logging
import sys

from ..config import settings
from ..errors import NuggetServiceError


def _positive_int(value: str) -> int:
    try:
        number = int(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"not an integer: {value}") from exc
    if number < 1:
        raise argparse.ArgumentTypeError(f"must be at least 1: {value}")
    return number


def cmd_init(args: argparse.Namespace) -> int:
    """Seed every empty category."""
    from .service import build_sqlite_service

    service = build_sqlite_service()
    generated, failed = service.initialize_database(count=args.count, provider=args.provider)
    for category, count in generated.items():
        print(f"{category}: {count} generated")
    for category, message in failed.items():
        print(f"{category}: FAILED ({message})")
    print(f"Total generated: {sum(generated.values())}")
    return 1 if failed else 0


def cmd_generate(args: argparse.Namespace) -> int:
    """Generate one batch for a single category."""
    from .service import build_sqlite_service

    service = build_sqlite_service()
    stored = service.generate_nuggets(args.category, count=args.count, provider=args.provider)
    print(f"{args.category}: {len(stored)} generated")
    return 0


def cmd_migrate(args: argparse.Namespace) -> int:
    """Fold legacy per-user nuggets into the shared pool."""
    from .service import build_sqlite_service

    service = build_sqlite_service()
    report = service.migrate_existing_nuggets()
    print(json.dumps(report.model_dump(), indent=2, ensure_ascii=False))
    return 0


def cmd_stats(args: argparse.Namespace) -> int:
    """Show nugget counts per category."""
    from .service import build_sqlite_service

    service = build_sqlite_service()
    counts = service.statistics()
    for category, count in counts.items():
        print(f"{category:<15} {count}")
    print("-" * 20)
    print(f"{'Total':<15} {sum(counts.values())}")
    return 0


def cmd_token(args: argparse.Namespace) -> int:
    """Issue a bearer token for local testing."""
    from ..auth.security import create_access_token

    print(create_access_token(user_id=args.user_id, ttl_days=args.ttl_days))
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        description="Manage the shared learning nugget pool",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--log-level", default=settings.log_level, help="Logging level")
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    init_parser = subparsers.add_parser("init", help="Generate nuggets for empty categories")
    init_parser.add_argument("--count", type=_positive_int, default=None, help="Nuggets per category")
    init_parser.add_argument("--provider", choices=["openai", "deepseek"], default=None, help="LLM provider")
    init_parser.set_defaults(func=cmd_init)

    generate_parser = subparsers.add_parser("generate", help="Generate one batch for a category")
    generate_parser.add_argument("category", help="Category, e.g. Growth")
    generate_parser.add_argument("--count", type=_positive_int, default=None, help="Nuggets to generate")
    generate_parser.add_argument("--provider", choices=["openai", "deepseek"], default=None, help="LLM provider")
    generate_parser.set_defaults(func=cmd_generate)

    migrate_parser = subparsers.add_parser("migrate", help="Migrate legacy per-user nuggets")
    migrate_parser.set_defaults(func=cmd_migrate)

    stats_parser = subparsers.add_parser("stats", help="Show nugget counts")
    stats_parser.set_defaults(func=cmd_stats)

    token_parser = subparsers.add_parser("token", help="Issue a bearer token")
    token_parser.add_argument("user_id", help="User id placed in the token subject")
    token_parser.add_argument("--ttl-days", type=int, default=None, help="Token lifetime in days")
    token_parser.set_defaults(func=cmd_token)

    args = parser.parse_args(argv)
    if not args.command:
        parser.print_help()
        return 1

    logging.basicConfig(
        level=args.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        return args.func(args)
    except NuggetServiceError as exc:
        print(f"Error: {exc.message}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
