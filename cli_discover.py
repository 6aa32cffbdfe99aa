"""Terminal client that reuses the in-process discovery pipeline."""
from __future__ import annotations

import argparse
import asyncio
import json
from pathlib import Path
from typing import Iterable, List

from brand_discovery.config import settings
from brand_discovery.discovery import discover_products
from brand_discovery.errors import DiscoveryError
from brand_discovery.keepa_client import get_client
from brand_discovery.models import EnrichedProduct

GREEN = "\033[92m"
RED = "\033[91m"
RESET = "\033[0m"


async def perform_discovery(keyword: str, limit: int) -> List[EnrichedProduct]:
    return await discover_products(get_client(), keyword, batch_size=limit)


def run_keyword(keyword: str, limit: int, as_json: bool) -> bool:
    try:
        products = asyncio.run(perform_discovery(keyword, limit))
    except DiscoveryError as exc:
        print(f"{RED}Error:{RESET} {exc}")
        if exc.hint:
            print(f"  hint: {exc.hint}")
        return False
    if as_json:
        print(json.dumps([p.model_dump() for p in products], indent=2))
    else:
        pretty_print_products(keyword, products)
    return True


def pretty_print_products(keyword: str, products: List[EnrichedProduct]) -> None:
    color = GREEN if products else RED
    print(f"Keyword: {keyword} | {color}{len(products)} products{RESET}")
    for idx, product in enumerate(products, start=1):
        print(f"  {idx:02d}. {product.title}")
        print(f"      Brand: {product.brand} | Manufacturer: {product.manufacturer} | ASIN: {product.asin}")


def interactive_shell(limit: int, as_json: bool) -> None:
    print("Interactive Keepa brand discovery. Type 'exit' to quit.")
    while True:
        try:
            keyword = input("> ").strip()
        except (EOFError, KeyboardInterrupt):
            print()
            return
        if not keyword:
            continue
        if keyword.lower() in {"exit", "quit"}:
            return
        run_keyword(keyword, limit, as_json)


def batch_mode(file_path: Path, limit: int, as_json: bool) -> bool:
    ok = True
    with file_path.open("r", encoding="utf-8") as fh:
        for line in fh:
            keyword = line.strip()
            if not keyword:
                continue
            ok = run_keyword(keyword, limit, as_json) and ok
    return ok


def main(argv: Iterable[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Discover Amazon products by keyword through Keepa")
    parser.add_argument("keyword", nargs="?", help="Search keyword. If omitted, starts REPL mode.")
    parser.add_argument("--batch", type=Path, help="File with keywords to run line by line")
    parser.add_argument("--limit", type=int, default=settings.batch_size, help="ASINs to hydrate per keyword")
    parser.add_argument("--json", action="store_true", help="Print raw JSON instead of a table")
    args = parser.parse_args(list(argv) if argv is not None else None)

    if args.limit < 1:
        parser.error("--limit must be at least 1")
    if args.batch:
        return 0 if batch_mode(args.batch, args.limit, args.json) else 1
    if args.keyword:
        return 0 if run_keyword(args.keyword, args.limit, args.json) else 1
    interactive_shell(args.limit, args.json)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
