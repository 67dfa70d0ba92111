"""
WHOIS fallback chain.

Used for domains without an RDAP route or whose RDAP request failed.
Tiers are tried in strict order and the first non-empty payload wins:

1. Socket WHOIS on port 43 (one referral hop for Verisign-style registries)
2. Local `whois` client
3. External JSON WHOIS API, flattened back into "key: value" text

Whatever tier answers, the text goes through the same WHOIS parser.
"""

import asyncio
import logging
import re
import shutil
from collections import Counter
from typing import Optional

import httpx

from .config import EngineConfig
from .normalizer import parse_whois_text
from .result import LookupResult, is_valid_domain, normalize_domain

logger = logging.getLogger(__name__)


WHOIS_SERVERS = {
    "com": "whois.verisign-grs.com",
    "net": "whois.verisign-grs.com",
    "org": "whois.pir.org",
    "info": "whois.afilias.net",
    "biz": "whois.biz",
    "io": "whois.nic.io",
    "co": "whois.nic.co",
    "me": "whois.nic.me",
    "pl": "whois.dns.pl",
    "de": "whois.denic.de",
    "uk": "whois.nic.uk",
    "co.uk": "whois.nic.uk",
    "eu": "whois.eu",
    "fr": "whois.nic.fr",
    "nl": "whois.domain-registry.nl",
    "ru": "whois.tcinet.ru",
    "xyz": "whois.nic.xyz",
    "online": "whois.nic.online",
    "site": "whois.nic.site",
    "app": "whois.nic.google",
    "dev": "whois.nic.google",
}

# Registries that need a query prefix and whose replies point at the
# registrar's own WHOIS server for the full record.
REGISTRY_QUERY_PREFIX = {
    "whois.verisign-grs.com": "=",
}

REFERRAL_PATTERN = re.compile(r"(?:whois server|refer):[ \t]*([A-Za-z0-9.\-]+)", re.I)
REFERRAL_SEPARATOR = "\n\n--- Registrar WHOIS ---\n"

# Replies are read until EOF but never beyond this many bytes
MAX_WHOIS_REPLY = 256 * 1024

EXHAUSTED_ERROR = "all lookup tiers failed"


def whois_server_for(domain: str) -> str:
    """Static server, or the conventional whois.nic.<tld> guess."""
    parts = domain.lower().split(".")
    if len(parts) >= 3:
        two_level = f"{parts[-2]}.{parts[-1]}"
        if two_level in WHOIS_SERVERS:
            return WHOIS_SERVERS[two_level]
    tld = parts[-1]
    return WHOIS_SERVERS.get(tld, f"whois.nic.{tld}")


def find_referral(response: str, server: str) -> Optional[str]:
    """Registrar WHOIS server named in a registry reply, if it differs."""
    match = REFERRAL_PATTERN.search(response)
    if not match:
        return None
    referral = match.group(1).strip().rstrip(".").lower()
    if not referral or referral == server:
        return None
    return referral


async def read_reply(reader: asyncio.StreamReader) -> bytes:
    """Read until EOF, stopping at MAX_WHOIS_REPLY bytes."""
    chunks = []
    size = 0
    while size < MAX_WHOIS_REPLY:
        chunk = await reader.read(8192)
        if not chunk:
            break
        chunks.append(chunk)
        size += len(chunk)
    return b"".join(chunks)[:MAX_WHOIS_REPLY]


class FallbackChain:
    """Tiered WHOIS lookup for a single domain."""

    def __init__(
        self,
        config: Optional[EngineConfig] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.config = config or EngineConfig()
        self._transport = transport
        self.tier_hits: Counter[str] = Counter()

    async def query_whois(self, server: str, domain: str) -> str:
        """
        One port-43 query, read until the server closes the connection.

        Raises OSError / asyncio.TimeoutError on network failure, ValueError
        (UnicodeError) for host names that cannot be encoded.
        """
        timeout = self.config.whois_timeout
        reader, writer = await asyncio.wait_for(
            asyncio.open_connection(server, self.config.whois_port),
            timeout=timeout,
        )

        try:
            query = f"{REGISTRY_QUERY_PREFIX.get(server, '')}{domain}\r\n"
            writer.write(query.encode())
            await writer.drain()
            response = await asyncio.wait_for(read_reply(reader), timeout=timeout)
        finally:
            writer.close()
            try:
                await writer.wait_closed()
            except OSError:
                pass

        return response.decode("utf-8", errors="replace")

    async def socket_whois(self, domain: str) -> str:
        """Tier 1. Registry query plus at most one registrar referral hop."""
        server = whois_server_for(domain)
        try:
            response = await self.query_whois(server, domain)
        except (OSError, ValueError, asyncio.TimeoutError) as e:
            logger.debug("%s: WHOIS %s failed: %s", domain, server, e or type(e).__name__)
            return ""

        if server not in REGISTRY_QUERY_PREFIX:
            return response

        referral = find_referral(response, server)
        if referral:
            try:
                detailed = await self.query_whois(referral, domain)
            except (OSError, ValueError, asyncio.TimeoutError) as e:
                # Ignore secondary lookup errors
                logger.debug("%s: registrar WHOIS %s failed: %s", domain, referral, e or type(e).__name__)
            else:
                response += REFERRAL_SEPARATOR + detailed

        return response

    async def local_whois(self, domain: str) -> str:
        """Tier 2. Shell out to the installed whois client, if any."""
        binary = shutil.which(self.config.whois_binary)
        if not binary:
            return ""

        try:
            proc = await asyncio.create_subprocess_exec(
                binary, "--", domain,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.DEVNULL,
            )
        except OSError as e:
            logger.debug("%s: cannot run %s: %s", domain, binary, e)
            return ""

        try:
            stdout, _ = await asyncio.wait_for(proc.communicate(), timeout=self.config.whois_timeout)
        except asyncio.TimeoutError:
            proc.kill()
            await proc.wait()
            logger.debug("%s: local whois timed out", domain)
            return ""

        return stdout.decode("utf-8", errors="replace")

    async def external_api(self, domain: str) -> str:
        """Tier 3. Flat JSON object from the API, rebuilt as WHOIS text."""
        try:
            async with httpx.AsyncClient(
                transport=self._transport,
                timeout=self.config.whois_api_timeout,
                headers={"Accept": "application/json", "User-Agent": self.config.user_agent},
            ) as client:
                response = await client.get(self.config.whois_api_url, params={"domain": domain})
        except httpx.HTTPError as e:
            logger.debug("%s: WHOIS API failed: %s", domain, type(e).__name__)
            return ""

        if response.status_code != 200:
            return ""

        try:
            data = response.json()
        except ValueError:
            return ""

        if not isinstance(data, dict):
            return ""

        return "".join(f"{key}: {value}\n" for key, value in data.items() if isinstance(value, str))

    async def run(self, domain: str) -> LookupResult:
        """Try every tier in order; parse the first non-empty reply."""
        domain = normalize_domain(domain)
        if not is_valid_domain(domain):
            return LookupResult.failed(domain, f"invalid domain name: {domain!r}")

        tiers = (
            ("socket", self.socket_whois),
            ("local", self.local_whois),
            ("api", self.external_api),
        )
        for name, tier in tiers:
            try:
                text = await tier(domain)
            except Exception:
                logger.exception("%s: %s tier raised", domain, name)
                text = ""
            if text.strip():
                self.tier_hits[name] += 1
                logger.debug("%s: resolved by %s tier", domain, name)
                return parse_whois_text(domain, text)

        self.tier_hits["exhausted"] += 1
        logger.info("%s: no WHOIS tier answered", domain)
        return LookupResult.failed(domain, EXHAUSTED_ERROR)
