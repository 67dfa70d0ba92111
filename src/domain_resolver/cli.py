"""
Command line entry point.

Usage:
    domain-resolver example.com example.org
    domain-resolver --file domains.txt --workers 8 --output data/lookups.duckdb
    domain-resolver --file domains.txt --no-fallback --json
"""

import argparse
import asyncio
import json
import logging
import sys
import time
from dataclasses import replace
from pathlib import Path
from typing import Optional

from .config import ConfigError, config_from_env
from .database import ResultStore
from .engine import DomainEngine
from .result import LookupResult

try:
    import uvloop
    UVLOOP = True
except ImportError:
    UVLOOP = False


STATUS_ICONS = {"registered": "[R]", "available": "[A]", "error": "[E]", "unresolved": "[?]"}


def classify(result: Optional[LookupResult]) -> str:
    if result is None:
        return "unresolved"
    if result.error:
        return "error"
    return "registered" if result.is_registered else "available"


def load_domains(names: list[str], file: Optional[Path]) -> list[str]:
    """Positional names plus one name per line of `file` ('#' comments allowed)."""
    domains = list(names)
    if file:
        with open(file) as f:
            for line in f:
                line = line.split("#", 1)[0].strip()
                if line:
                    domains.append(line)
    return domains


async def run(args: argparse.Namespace, engine: DomainEngine, domains: list[str]) -> dict:
    if args.no_fallback:
        if args.workers > 1:
            return await engine.fetch_batch_multiprocess(domains, args.workers)
        return await engine.fetch_batch(domains)
    return await engine.resolve(domains, workers=args.workers)


def print_results(results: dict):
    for domain, result in sorted(results.items()):
        status = classify(result)
        detail = ""
        if result is not None and result.is_registered:
            detail = f"expires {result.expiry_date or 'unknown'}"
            if result.registrar:
                detail += f" | {result.registrar}"
        elif result is not None and result.error:
            detail = result.error
        print(f"  {STATUS_ICONS[status]} {domain:40} {detail}")


def print_summary(results: dict, elapsed: float, engine: DomainEngine):
    counts = {status: 0 for status in STATUS_ICONS}
    for result in results.values():
        counts[classify(result)] += 1

    stats = engine.fetcher.stats

    print("\n" + "=" * 60)
    print("RESULTS")
    print("=" * 60)
    print(f"Total domains:    {len(results):,}")
    print(f"Registered:       {counts['registered']:,}")
    print(f"Available:        {counts['available']:,}")
    print(f"Errors:           {counts['error']:,}")
    print(f"Unresolved:       {counts['unresolved']:,}")
    print()
    print(f"Time:             {elapsed:.2f}s")
    print(f"Throughput:       {len(results) / elapsed:.1f} domains/sec" if elapsed > 0 else "Throughput:       N/A")
    print()
    print(f"Peak in flight:   {stats.peak_in_flight}")
    print(f"RDAP timeouts:    {stats.timeouts}")
    print(f"Discovery calls:  {engine.routing.discovery_calls}")
    print(f"Fallback tiers:   {dict(engine.fallback.tier_hits) or '-'}")
    print(f"uvloop:           {'enabled' if UVLOOP else 'not available'}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Resolve domain registration status via RDAP with WHOIS fallback")
    parser.add_argument("domains", nargs="*", help="Domain names to look up")
    parser.add_argument("--file", type=Path, help="File with one domain per line")
    parser.add_argument("--concurrency", type=int, help="Simultaneous RDAP requests per process")
    parser.add_argument("--workers", type=int, default=1, help="Worker processes (default: 1)")
    parser.add_argument("--no-fallback", action="store_true", help="RDAP only, leave failures unresolved")
    parser.add_argument("--fallback-limit", type=int, help="Max domains sent through the WHOIS fallback")
    parser.add_argument("--output", type=Path, help="DuckDB file to store results in")
    parser.add_argument("--json", action="store_true", help="Print results as JSON")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    return parser


def main(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    domains = load_domains(args.domains, args.file)
    if not domains:
        parser.error("no domains given")

    try:
        config = config_from_env()
        if args.concurrency is not None:
            config = replace(config, concurrency=args.concurrency)
        if args.fallback_limit is not None:
            config = replace(config, fallback_limit=args.fallback_limit)
        engine = DomainEngine(config.validate())
    except ConfigError as e:
        parser.error(str(e))

    runner = uvloop.run if UVLOOP else asyncio.run

    start = time.perf_counter()
    results = runner(run(args, engine, domains))
    elapsed = time.perf_counter() - start

    if args.json:
        payload = {d: (r.to_dict() if r else None) for d, r in results.items()}
        print(json.dumps(payload, indent=2))
    else:
        print_results(results)
        print_summary(results, elapsed, engine)

    if args.output:
        args.output.parent.mkdir(parents=True, exist_ok=True)
        with ResultStore(args.output) as store:
            written = store.save_results(results)
        if not args.json:
            print(f"\nSaved {written:,} results to {args.output}")

    return 0


if __name__ == "__main__":
    sys.exit(main())
