"""
RDAP routing table with IANA bootstrap discovery.

Known RDAP servers are seeded statically (direct, no bootstrap lookup
needed). A miss triggers one fetch of the IANA bootstrap file, which
registers every TLD it lists so later misses never hit the network.
Failed lookups are cached as negatives for the lifetime of the table.

Bootstrap format:
{
    "services": [
        [["com", "net"], ["https://rdap.verisign.com/com/v1/"]],
        [["org"], ["https://rdap.publicinterestregistry.org/rdap/"]],
        ...
    ]
}
"""

import logging
from typing import Optional

import httpx

from .config import EngineConfig

logger = logging.getLogger(__name__)


RDAP_SERVERS = {
    "com": "https://rdap.verisign.com/com/v1/domain/",
    "net": "https://rdap.verisign.com/net/v1/domain/",
    "org": "https://rdap.publicinterestregistry.org/rdap/domain/",
    "io": "https://rdap.nic.io/domain/",
    "pl": "https://rdap.dns.pl/domain/",
    "de": "https://rdap.denic.de/domain/",
    "eu": "https://rdap.eurid.eu/domain/",
    "uk": "https://rdap.nominet.uk/uk/domain/",
    "co.uk": "https://rdap.nominet.uk/uk/domain/",
    "fr": "https://rdap.nic.fr/domain/",
    "nl": "https://rdap.sidn.nl/domain/",
    "xyz": "https://rdap.nic.xyz/domain/",
    "app": "https://rdap.nic.google/domain/",
    "dev": "https://rdap.nic.google/domain/",
    "page": "https://rdap.nic.google/domain/",
    "co": "https://rdap.nic.co/domain/",
    "me": "https://rdap.nic.me/domain/",
    "info": "https://rdap.afilias.net/rdap/info/domain/",
    "biz": "https://rdap.nic.biz/domain/",
    "online": "https://rdap.centralnic.com/online/domain/",
    "site": "https://rdap.centralnic.com/site/domain/",
    "store": "https://rdap.centralnic.com/store/domain/",
    "tech": "https://rdap.centralnic.com/tech/domain/",
    "space": "https://rdap.centralnic.com/space/domain/",
    "fun": "https://rdap.centralnic.com/fun/domain/",
    "website": "https://rdap.centralnic.com/website/domain/",
    "shop": "https://rdap.centralnic.com/shop/domain/",
    "cloud": "https://rdap.centralnic.com/cloud/domain/",
    "club": "https://rdap.centralnic.com/club/domain/",
    "live": "https://rdap.centralnic.com/live/domain/",
    "pro": "https://rdap.centralnic.com/pro/domain/",
    "ru": "https://rdap.ripn.net/domain/",
    "su": "https://rdap.ripn.net/domain/",
    "se": "https://rdap.iis.se/domain/",
    "nu": "https://rdap.iis.se/domain/",
    "be": "https://rdap.dns.be/domain/",
    "cz": "https://rdap.nic.cz/domain/",
    "sk": "https://rdap.sk-nic.sk/domain/",
    "at": "https://rdap.nic.at/domain/",
    "ch": "https://rdap.nic.ch/domain/",
    "li": "https://rdap.nic.ch/domain/",
    "it": "https://rdap.nic.it/domain/",
    "es": "https://rdap.nic.es/domain/",
    "pt": "https://rdap.dns.pt/domain/",
    "fi": "https://rdap.fi/domain/",
    "dk": "https://rdap.dk-hostmaster.dk/domain/",
    "no": "https://rdap.norid.no/domain/",
    "lt": "https://rdap.domreg.lt/domain/",
    "lv": "https://rdap.nic.lv/domain/",
    "ee": "https://rdap.tld.ee/domain/",
    "au": "https://rdap.auda.org.au/domain/",
    "nz": "https://rdap.irs.net.nz/domain/",
    "ca": "https://rdap.ca/domain/",
    "us": "https://rdap.nic.us/domain/",
    "br": "https://rdap.registro.br/domain/",
    "mx": "https://rdap.mx/domain/",
    "ar": "https://rdap.nic.ar/domain/",
    "cl": "https://rdap.nic.cl/domain/",
    "jp": "https://rdap.jprs.jp/domain/",
    "kr": "https://rdap.kr/domain/",
    "cn": "https://rdap.cnnic.cn/domain/",
    "tw": "https://rdap.twnic.tw/domain/",
    "in": "https://rdap.registry.in/domain/",
    "sg": "https://rdap.sgnic.sg/domain/",
    "hk": "https://rdap.hkirc.hk/domain/",
    "za": "https://rdap.nic.za/domain/",
    "ke": "https://rdap.kenic.or.ke/domain/",
    "ng": "https://rdap.nic.net.ng/domain/",
    "top": "https://rdap.nic.top/domain/",
    "vip": "https://rdap.nic.vip/domain/",
    "icu": "https://rdap.centralnic.com/icu/domain/",
    "cc": "https://rdap.verisign.com/cc/v1/domain/",
    "tv": "https://rdap.verisign.com/tv/v1/domain/",
    "name": "https://rdap.verisign.com/name/v1/domain/",
    "mobi": "https://rdap.nic.mobi/domain/",
    "asia": "https://rdap.nic.asia/domain/",
    "tel": "https://rdap.nic.tel/domain/",
    "travel": "https://rdap.nic.travel/domain/",
    "museum": "https://rdap.nic.museum/domain/",
    "coop": "https://rdap.nic.coop/domain/",
    "aero": "https://rdap.nic.aero/domain/",
}


def parse_bootstrap(data: dict) -> dict[str, str]:
    """
    Parse IANA bootstrap JSON into a TLD -> endpoint template mapping.

    Uses the first URL listed for each service.
    """
    routes: dict[str, str] = {}
    services = data.get("services") if isinstance(data, dict) else None
    if not isinstance(services, list):
        return routes

    for service in services:
        if not isinstance(service, list) or len(service) < 2:
            continue
        tlds, urls = service[0], service[1]
        if not urls or not isinstance(urls[0], str):
            continue
        endpoint = urls[0].rstrip("/") + "/domain/"
        for tld in tlds:
            routes[str(tld).lower()] = endpoint
    return routes


class RoutingTable:
    """
    TLD -> RDAP endpoint map owned by one engine instance.

    Not shared between processes: every fan-out worker builds its own
    table and runs its own discovery.
    """

    def __init__(
        self,
        config: Optional[EngineConfig] = None,
        seed: Optional[dict[str, str]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.config = config or EngineConfig()
        self._routes: dict[str, str] = dict(RDAP_SERVERS if seed is None else seed)
        self._negative: set[str] = set()
        self._discovery_attempted = False
        self._transport = transport

        # Diagnostics
        self.discovery_calls = 0
        self.discovered = 0

    def __contains__(self, tld: str) -> bool:
        return tld.lower() in self._routes

    def __len__(self) -> int:
        return len(self._routes)

    def register(self, tld: str, endpoint: str):
        """Add or replace a route at runtime."""
        tld = tld.lower()
        self._routes[tld] = endpoint
        self._negative.discard(tld)

    def lookup(self, tld: str) -> Optional[str]:
        """Known endpoint for a TLD, without any network activity."""
        return self._routes.get(tld.lower())

    def tld_for(self, domain: str) -> str:
        """
        TLD used for routing. Compound suffixes (co.uk) win over the last
        label when the table knows them.
        """
        parts = domain.lower().split(".")
        if len(parts) >= 3:
            two_level = f"{parts[-2]}.{parts[-1]}"
            if two_level in self._routes:
                return two_level
        return parts[-1]

    async def resolve_endpoint(self, tld: str) -> Optional[str]:
        """Endpoint template for a TLD, discovering it on first miss."""
        tld = tld.lower()

        # Known server
        if tld in self._routes:
            return self._routes[tld]

        # Already tried and failed
        if tld in self._negative:
            return None

        if not self._discovery_attempted:
            await self._discover()

        endpoint = self._routes.get(tld)
        if endpoint is None:
            self._negative.add(tld)
        return endpoint

    async def _discover(self):
        """Fetch the bootstrap file once and register every TLD it lists."""
        self._discovery_attempted = True
        self.discovery_calls += 1

        timeout = httpx.Timeout(
            self.config.bootstrap_timeout,
            connect=self.config.bootstrap_connect_timeout,
        )
        headers = {"Accept": "application/json", "User-Agent": self.config.user_agent}

        try:
            async with httpx.AsyncClient(
                transport=self._transport,
                timeout=timeout,
                headers=headers,
                follow_redirects=True,
            ) as client:
                response = await client.get(self.config.bootstrap_url)
        except httpx.HTTPError as e:
            logger.warning("RDAP bootstrap fetch failed: %s", e)
            return

        if response.status_code != 200:
            logger.warning("RDAP bootstrap returned HTTP %d", response.status_code)
            return

        try:
            data = response.json()
        except ValueError:
            logger.warning("RDAP bootstrap body is not valid JSON")
            return

        discovered = parse_bootstrap(data)
        if not discovered:
            logger.warning("RDAP bootstrap listed no services")
            return

        # Static seeds stay authoritative
        for tld, endpoint in discovered.items():
            if tld not in self._routes:
                self._routes[tld] = endpoint
                self.discovered += 1

        logger.info(
            "RDAP bootstrap: %d services, %d new routes (%d total)",
            len(discovered), self.discovered, len(self._routes),
        )
