"""
Command line entry point.

    python -m cartsync init-db --url sqlite+aiosqlite:///cart.db
    python -m cartsync totals cart.json [--discount 1000]
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from pydantic import TypeAdapter, ValidationError

from cartsync import pricing
from cartsync.config import settings
from cartsync.model import CartLine
from cartsync.remote import create_database

logger = logging.getLogger("cartsync")


def _money(minor: int) -> str:
    return f"{minor / 100:.2f}"


async def init_db(url: str) -> None:
    _, engine = await create_database(url)
    await engine.dispose()
    logger.info("schema created at %s", url)


def print_totals(path: Path, discount: int) -> int:
    try:
        lines = TypeAdapter(list[CartLine]).validate_json(path.read_bytes())
    except (OSError, ValidationError) as e:
        logger.error("could not read cart from %s: %s", path, e)
        return 1

    t = pricing.summarize(lines, discount, pricing.PricingRules.from_settings(settings))
    print(f"items     {t.item_count}")
    print(f"subtotal  {_money(t.subtotal)}")
    print(f"savings   {_money(t.savings)}")
    print(f"shipping  {_money(t.shipping)}")
    print(f"tax       {_money(t.tax)}")
    print(f"discount  {_money(t.discount)}")
    print(f"total     {_money(t.total)}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="cartsync")
    sub = parser.add_subparsers(dest="command", required=True)

    init = sub.add_parser("init-db", help="create the remote schema")
    init.add_argument("--url", default=settings.database_url)

    totals = sub.add_parser("totals", help="print totals for a JSON cart")
    totals.add_argument("file", type=Path)
    totals.add_argument("--discount", type=int, default=0, help="amount off, minor units")
    return parser


def main(argv: list[str] | None = None) -> int:
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    )
    args = build_parser().parse_args(argv)

    match args.command:
        case "init-db":
            asyncio.run(init_db(args.url))
            return 0
        case "totals":
            return print_totals(args.file, args.discount)
        case _:
            return 2


if __name__ == "__main__":
    sys.exit(main())
