#!/usr/bin/env python3
"""
Manual Tuning Tool for DNI Lookup heuristics

Runs the block classifier and the extractor cascade over a saved HTML file
(e.g. a page captured from the target site) and prints what each step sees.

Usage:
    python3 scripts/extract_file.py page.html
    python3 scripts/extract_file.py page.html --base-url https://dniperu.com/buscar/ --all-tiers
    python3 scripts/extract_file.py page.html --output results.json
"""

import argparse
import json
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from selectolax.parser import HTMLParser

from dnilookup.config import DEFAULT_TARGET_URL
from dnilookup.pipeline.blocking import detect_block
from dnilookup.pipeline.extractors import ResultExtractor


def print_section(title):
    """Print a formatted section header."""
    print(f"\n{'-'*40}")
    print(f" {title}")
    print(f"{'-'*40}")


def format_item(item, index):
    print(f"\n🪪 Record #{index + 1}")
    print(f"   DNI: {item.dni}")
    print(f"   Nombre: {item.nombre_completo}")
    print(f"   Enlace: {item.enlace}")
    if item.extra:
        print(f"   Extra: {item.extra[:120]}")


def main():
    parser = argparse.ArgumentParser(description="Run DNI extraction heuristics on a saved HTML file")
    parser.add_argument("html_file", help="Path to an HTML file")
    parser.add_argument("--base-url", default=DEFAULT_TARGET_URL, help="Base URL for resolving links")
    parser.add_argument("--all-tiers", action="store_true", help="Show every tier's output, not just the winner")
    parser.add_argument("--block-limit", type=int, default=12)
    parser.add_argument("--bare-limit", type=int, default=25)
    parser.add_argument("--output", "-o", help="Write records to this JSON file")
    args = parser.parse_args()

    path = Path(args.html_file)
    if not path.is_file():
        print(f"❌ File not found: {path}", file=sys.stderr)
        sys.exit(2)
    html = path.read_text(encoding="utf-8", errors="replace")

    print_section("Block Check")
    decision = detect_block(html)
    print(f"Blocked: {'🛑' if decision.blocked else '✅'} {decision.blocked}")
    if decision.reasons:
        print(f"Reasons: {', '.join(decision.reasons)}")

    extractor = ResultExtractor(block_limit=args.block_limit, bare_limit=args.bare_limit)

    if args.all_tiers:
        dom = HTMLParser(html)
        for name, tier in extractor.tiers:
            items = tier(dom, args.base_url)
            print_section(f"Tier '{name}': {len(items)} raw records")
            for i, item in enumerate(items):
                format_item(item, i)

    tier_name, items = extractor.extract_with_tier(html, args.base_url)
    print_section(f"Cascade Result (tier={tier_name}, records={len(items)})")
    for i, item in enumerate(items):
        format_item(item, i)

    if args.output:
        Path(args.output).write_text(
            json.dumps([it.to_wire() for it in items], indent=2, ensure_ascii=False) + "\n",
            encoding="utf-8",
        )
        print(f"\n💾 Records saved to: {args.output}")


if __name__ == "__main__":
    main()
