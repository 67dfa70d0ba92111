"""
Domain resolution engine.

Integrates:
- Routing table + IANA bootstrap discovery
- Sliding-window RDAP batch fetcher
- Multi-process fan-out
- WHOIS fallback chain

The engine only answers questions. Persisting results and reacting to
changes (notifications, UI) is up to the caller.
"""

import asyncio
import logging
from typing import Iterable, Optional

import httpx

from .config import EngineConfig
from .fanout import fetch_batch_multiprocess, should_fan_out
from .rdap_checker import BatchFetcher
from .result import LookupResult, normalize_domain
from .routing import RoutingTable
from .whois_checker import FallbackChain

logger = logging.getLogger(__name__)


class DomainEngine:
    """RDAP-first domain lookups with WHOIS fallback."""

    def __init__(
        self,
        config: Optional[EngineConfig] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.config = (config or EngineConfig()).validate()
        self._transport = transport

        self.routing = RoutingTable(self.config, transport=transport)
        self.fetcher = BatchFetcher(self.config, routing=self.routing, transport=transport)
        self.fallback = FallbackChain(self.config, transport=transport)

    async def resolve_endpoint(self, tld: str) -> Optional[str]:
        """RDAP endpoint template for a TLD (diagnostics)."""
        return await self.routing.resolve_endpoint(tld)

    async def fetch_batch(self, domains: Iterable[str]) -> dict[str, Optional[LookupResult]]:
        """RDAP only. None values need the fallback chain."""
        return await self.fetcher.fetch_batch(domains)

    async def fetch_batch_multiprocess(
        self,
        domains: Iterable[str],
        workers: Optional[int] = None,
    ) -> dict[str, Optional[LookupResult]]:
        """
        RDAP only, spread over worker processes.

        Small batches stay in this process and reuse its routing table.
        """
        names = list(dict.fromkeys(normalize_domain(d) for d in domains))
        workers = workers or self.config.workers

        if not should_fan_out(len(names), workers, self.config):
            return await self.fetch_batch(names)

        return await asyncio.to_thread(
            fetch_batch_multiprocess, names, workers, self.config, self._transport
        )

    async def run_fallback(self, domain: str) -> LookupResult:
        """WHOIS tiers for one domain, e.g. an on-demand single check."""
        return await self.fallback.run(domain)

    async def resolve(
        self,
        domains: Iterable[str],
        workers: int = 1,
    ) -> dict[str, Optional[LookupResult]]:
        """
        Full pipeline: RDAP batch, then the fallback chain for every
        domain RDAP could not answer.

        With config.fallback_limit set, only that many domains go through
        the fallback per call; the rest stay None for a later run.
        """
        names = list(dict.fromkeys(normalize_domain(d) for d in domains))

        if workers > 1:
            results = await self.fetch_batch_multiprocess(names, workers)
        else:
            results = await self.fetch_batch(names)

        # Domains of a lost worker chunk are unresolved, not missing
        for name in names:
            results.setdefault(name, None)

        pending = [domain for domain, result in results.items() if result is None]
        limit = self.config.fallback_limit
        if limit is not None and len(pending) > limit:
            logger.info("Fallback limited to %d of %d domains", limit, len(pending))
            pending = pending[:limit]

        if not pending:
            return results

        sem = asyncio.Semaphore(self.config.fallback_concurrency)

        async def fallback_with_sem(domain: str) -> tuple[str, LookupResult]:
            async with sem:
                return domain, await self.fallback.run(domain)

        for domain, result in await asyncio.gather(*(fallback_with_sem(d) for d in pending)):
            results[domain] = result

        logger.info(
            "Resolved %d domains (%d via fallback: %s)",
            len(results), len(pending), dict(self.fallback.tier_hits),
        )
        return results

    async def is_available(self, domain: str) -> bool:
        """True only for a confirmed unregistered verdict."""
        name = normalize_domain(domain)
        result = (await self.resolve([name])).get(name)
        return bool(result and result.is_available)
