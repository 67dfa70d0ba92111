"""
Concurrent RDAP batch fetcher.

Uses a rolling window instead of batching (wait for all N to finish):
as soon as one request completes, the next one starts immediately.
This keeps all `concurrency` slots busy at all times, so a single slow
RDAP server cannot stall the rest of the window.

No retries here. A failed or timed-out request maps the domain to None
and the caller decides whether to run the fallback chain.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Iterable, Optional

import httpx

from .config import RDAP_ACCEPT, EngineConfig
from .metrics import RequestMetrics
from .normalizer import normalize_rdap
from .result import LookupResult, is_valid_domain, normalize_domain
from .routing import RoutingTable

logger = logging.getLogger(__name__)


@dataclass
class BatchStats:
    total: int = 0
    routeless: int = 0
    registered: int = 0
    unregistered: int = 0
    needs_fallback: int = 0
    timeouts: int = 0
    errors: int = 0
    peak_in_flight: int = 0


class BatchFetcher:
    """RDAP lookups for many domains under a fixed concurrency ceiling."""

    def __init__(
        self,
        config: Optional[EngineConfig] = None,
        routing: Optional[RoutingTable] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.config = (config or EngineConfig()).validate()
        self.routing = routing or RoutingTable(self.config, transport=transport)
        self._transport = transport

        self.stats = BatchStats()
        self.metrics = RequestMetrics()

    def _create_client(self) -> httpx.AsyncClient:
        """Client shared by every request of one batch (keep-alive pool)."""
        width = self.config.concurrency
        return httpx.AsyncClient(
            transport=self._transport,
            timeout=httpx.Timeout(self.config.timeout, connect=self.config.connect_timeout),
            limits=httpx.Limits(max_connections=width, max_keepalive_connections=width),
            headers={"Accept": RDAP_ACCEPT, "User-Agent": self.config.user_agent},
            follow_redirects=True,
            max_redirects=self.config.max_redirects,
        )

    async def partition(self, domains: Iterable[str]) -> tuple[list[tuple[str, str]], list[str]]:
        """
        Split input into (domain, request URL) pairs and routeless domains.

        Names are normalized and de-duplicated, first occurrence wins.
        """
        routed: list[tuple[str, str]] = []
        routeless: list[str] = []
        seen: set[str] = set()

        for name in domains:
            domain = normalize_domain(name)
            if domain in seen:
                continue
            seen.add(domain)

            if not is_valid_domain(domain):
                routeless.append(domain)
                continue

            endpoint = await self.routing.resolve_endpoint(self.routing.tld_for(domain))
            if endpoint:
                routed.append((domain, endpoint + domain))
            else:
                routeless.append(domain)

        return routed, routeless

    async def _fetch_one(self, client: httpx.AsyncClient, domain: str, url: str) -> Optional[LookupResult]:
        """Single RDAP request, normalized. Never raises for network trouble."""
        start = time.perf_counter()
        try:
            response = await asyncio.wait_for(client.get(url), timeout=self.config.timeout)
        except (asyncio.TimeoutError, httpx.TimeoutException):
            self.stats.timeouts += 1
            self.metrics.record((time.perf_counter() - start) * 1000, is_timeout=True)
            logger.debug("%s: RDAP timeout", domain)
            return None
        except httpx.HTTPError as e:
            self.stats.errors += 1
            self.metrics.record((time.perf_counter() - start) * 1000)
            logger.debug("%s: RDAP transport error: %s", domain, type(e).__name__)
            return None

        self.metrics.record((time.perf_counter() - start) * 1000, response.status_code)
        return normalize_rdap(response.status_code, response.text, domain)

    def _count(self, result: Optional[LookupResult]):
        self.stats.total += 1
        if result is None:
            self.stats.needs_fallback += 1
        elif result.is_registered:
            self.stats.registered += 1
        else:
            self.stats.unregistered += 1

    async def fetch_batch(self, domains: Iterable[str]) -> dict[str, Optional[LookupResult]]:
        """
        Look up many domains in parallel with a sliding window.

        Returns {domain: LookupResult | None}; None means "needs fallback".
        Keys are exactly the normalized input names.
        """
        results: dict[str, Optional[LookupResult]] = {}
        routed, routeless = await self.partition(domains)

        for domain in routeless:
            results[domain] = None
            self.stats.routeless += 1
            self._count(None)

        if not routed:
            return results

        width = self.config.concurrency
        queue = iter(routed)
        in_flight: dict[asyncio.Task, str] = {}
        batch_start = time.perf_counter()

        async with self._create_client() as client:

            def launch_next() -> bool:
                item = next(queue, None)
                if item is None:
                    return False
                domain, url = item
                task = asyncio.create_task(self._fetch_one(client, domain, url))
                in_flight[task] = domain
                self.stats.peak_in_flight = max(self.stats.peak_in_flight, len(in_flight))
                return True

            # Fill initial window
            while len(in_flight) < width and launch_next():
                pass

            # Process with rolling window
            while in_flight:
                done, _ = await asyncio.wait(in_flight.keys(), return_when=asyncio.FIRST_COMPLETED)
                for task in done:
                    domain = in_flight.pop(task)
                    try:
                        result = task.result()
                    except Exception:
                        logger.exception("%s: unexpected error in RDAP request", domain)
                        result = None
                    results[domain] = result
                    self._count(result)

                    # Add next from queue
                    if len(in_flight) < width:
                        launch_next()

        elapsed = time.perf_counter() - batch_start
        logger.info(
            "RDAP batch: %d routed, %d routeless in %.2fs (%.0f/sec) | %s",
            len(routed), len(routeless), elapsed,
            len(routed) / elapsed if elapsed > 0 else 0, self.metrics,
        )
        return results
