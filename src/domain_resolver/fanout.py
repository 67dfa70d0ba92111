"""
Multi-process fan-out for large batches.

Splits the domain list into contiguous chunks and runs one child process
per chunk. Each child builds its own BatchFetcher and RoutingTable (no
shared state, so bootstrap discovery may run once per child) and writes
its results as JSON to a unique temp file. The parent waits for all
children, merges the files and deletes them.

Single process:  `concurrency` RDAP requests in flight
Multi-process:   workers x concurrency
"""

import asyncio
import contextlib
import json
import logging
import math
import multiprocessing
import os
import tempfile
from typing import Iterable, Optional

import httpx

from .config import EngineConfig
from .rdap_checker import BatchFetcher
from .result import LookupResult, normalize_domain

logger = logging.getLogger(__name__)


def split_chunks(domains: list[str], workers: int) -> list[list[str]]:
    """Contiguous chunks of ceil(n / workers) domains."""
    if not domains:
        return []
    size = math.ceil(len(domains) / workers)
    return [domains[i:i + size] for i in range(0, len(domains), size)]


def should_fan_out(count: int, workers: int, config: EngineConfig) -> bool:
    """Only worth the process start-up cost for big enough batches."""
    if workers <= 1:
        return False
    if count < workers * config.min_domains_per_worker:
        return False
    return config.start_method in multiprocessing.get_all_start_methods()


def _worker_main(
    chunk: list[str],
    path: str,
    config: EngineConfig,
    transport: Optional[httpx.AsyncBaseTransport] = None,
):
    """Child process entry point: run one chunk, dump it to `path`."""
    fetcher = BatchFetcher(config, transport=transport)
    results = asyncio.run(fetcher.fetch_batch(chunk))
    payload = {domain: (r.to_dict() if r else None) for domain, r in results.items()}
    with open(path, "w") as f:
        json.dump(payload, f)


def read_chunk_results(path: str) -> dict[str, Optional[LookupResult]]:
    """Load one worker's file. Missing or corrupt files yield nothing."""
    try:
        with open(path) as f:
            data = json.load(f)
    except (OSError, ValueError) as e:
        logger.warning("Lost worker results %s: %s", path, e)
        return {}

    if not isinstance(data, dict):
        logger.warning("Lost worker results %s: unexpected payload", path)
        return {}

    results: dict[str, Optional[LookupResult]] = {}
    for domain, item in data.items():
        if item is None:
            results[domain] = None
            continue
        try:
            results[domain] = LookupResult.from_dict(item)
        except (KeyError, TypeError):
            logger.warning("Skipping corrupt entry for %s in %s", domain, path)
    return results


def fetch_batch_multiprocess(
    domains: Iterable[str],
    workers: Optional[int] = None,
    config: Optional[EngineConfig] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> dict[str, Optional[LookupResult]]:
    """
    Blocking multi-process variant of BatchFetcher.fetch_batch.

    Must be called from synchronous code (it runs its own event loop when
    it falls back to a single process). Domains of a chunk whose worker
    died are absent from the result; callers treat absent keys as
    unresolved.
    """
    config = (config or EngineConfig()).validate()
    workers = workers or config.workers

    names = list(dict.fromkeys(normalize_domain(d) for d in domains))

    if not should_fan_out(len(names), workers, config):
        # Not enough domains or no usable start method: single process
        return asyncio.run(BatchFetcher(config, transport=transport).fetch_batch(names))

    ctx = multiprocessing.get_context(config.start_method)
    chunks = split_chunks(names, workers)
    jobs: list[tuple[Optional[multiprocessing.process.BaseProcess], str]] = []
    paths: list[str] = []

    logger.info("Fanning out %d domains across %d workers", len(names), len(chunks))

    try:
        for i, chunk in enumerate(chunks):
            fd, path = tempfile.mkstemp(prefix=f"rdap_worker_{i}_{os.getpid()}_", suffix=".json")
            os.close(fd)
            paths.append(path)

            proc = ctx.Process(
                target=_worker_main,
                args=(chunk, path, config, transport),
                name=f"rdap-worker-{i}",
            )
            try:
                proc.start()
            except OSError as e:
                # Could not start a worker, process the chunk here
                logger.warning("Worker %d failed to start (%s), running inline", i, e)
                _worker_main(chunk, path, config, transport)
                proc = None
            jobs.append((proc, path))

        # Wait for all children
        for proc, _ in jobs:
            if proc is not None:
                proc.join()

        merged: dict[str, Optional[LookupResult]] = {}
        for proc, path in jobs:
            if proc is not None and proc.exitcode != 0:
                logger.warning("%s exited with code %s", proc.name, proc.exitcode)
            merged.update(read_chunk_results(path))
    finally:
        for path in paths:
            with contextlib.suppress(FileNotFoundError):
                os.unlink(path)

    return merged
