"""
Engine configuration.

Defaults match the production settings of the RDAP engine:
200 concurrent requests per process, 8s total / 4s connect timeout,
8 worker processes when fanning out.

Environment Variables (read by config_from_env):
    RESOLVER_CONCURRENCY, RESOLVER_TIMEOUT, RESOLVER_CONNECT_TIMEOUT,
    RESOLVER_WORKERS, RESOLVER_MIN_DOMAINS_PER_WORKER, RESOLVER_START_METHOD,
    RESOLVER_WHOIS_TIMEOUT, RESOLVER_WHOIS_BINARY, RESOLVER_WHOIS_API_URL,
    RESOLVER_FALLBACK_CONCURRENCY, RESOLVER_FALLBACK_LIMIT
"""

import os
from dataclasses import dataclass
from typing import Optional


IANA_BOOTSTRAP_URL = "https://data.iana.org/rdap/dns.json"
WHOIS_API_URL = "https://whoisjson.com/api/v1/whois"
RDAP_ACCEPT = "application/rdap+json"
USER_AGENT = "domain-resolver/0.3"


class ConfigError(ValueError):
    """Raised for configuration values the engine cannot run with."""


@dataclass
class EngineConfig:
    """Configuration shared by the fetcher, fallback chain and fan-out."""
    # RDAP sliding window
    concurrency: int = 200
    timeout: float = 8.0
    connect_timeout: float = 4.0
    max_redirects: int = 3

    # Bootstrap discovery
    bootstrap_url: str = IANA_BOOTSTRAP_URL
    bootstrap_timeout: float = 10.0
    bootstrap_connect_timeout: float = 5.0

    # Fallback chain
    whois_port: int = 43
    whois_timeout: float = 10.0
    whois_binary: str = "whois"
    whois_api_url: str = WHOIS_API_URL
    whois_api_timeout: float = 15.0
    fallback_concurrency: int = 10
    fallback_limit: Optional[int] = None  # None = no cap per resolve() call

    # Process fan-out
    workers: int = 8
    min_domains_per_worker: int = 10
    start_method: str = "spawn"

    user_agent: str = USER_AGENT

    def validate(self) -> "EngineConfig":
        """Check value ranges, returning self for chaining."""
        if self.concurrency < 1:
            raise ConfigError(f"concurrency must be >= 1, got {self.concurrency}")
        if self.fallback_concurrency < 1:
            raise ConfigError(f"fallback_concurrency must be >= 1, got {self.fallback_concurrency}")
        if self.timeout <= 0 or self.connect_timeout <= 0:
            raise ConfigError("timeouts must be positive")
        if self.connect_timeout > self.timeout:
            raise ConfigError(
                f"connect_timeout ({self.connect_timeout}) exceeds timeout ({self.timeout})"
            )
        if self.max_redirects < 0:
            raise ConfigError(f"max_redirects must be >= 0, got {self.max_redirects}")
        if self.workers < 1:
            raise ConfigError(f"workers must be >= 1, got {self.workers}")
        if self.min_domains_per_worker < 1:
            raise ConfigError(f"min_domains_per_worker must be >= 1, got {self.min_domains_per_worker}")
        if self.fallback_limit is not None and self.fallback_limit < 0:
            raise ConfigError(f"fallback_limit must be >= 0, got {self.fallback_limit}")
        return self


def config_from_env() -> EngineConfig:
    """Create config with overrides from environment variables."""
    fallback_limit = os.environ.get("RESOLVER_FALLBACK_LIMIT")

    try:
        config = EngineConfig(
            concurrency=int(os.environ.get("RESOLVER_CONCURRENCY", 200)),
            timeout=float(os.environ.get("RESOLVER_TIMEOUT", 8.0)),
            connect_timeout=float(os.environ.get("RESOLVER_CONNECT_TIMEOUT", 4.0)),
            workers=int(os.environ.get("RESOLVER_WORKERS", 8)),
            min_domains_per_worker=int(os.environ.get("RESOLVER_MIN_DOMAINS_PER_WORKER", 10)),
            start_method=os.environ.get("RESOLVER_START_METHOD", "spawn"),
            whois_timeout=float(os.environ.get("RESOLVER_WHOIS_TIMEOUT", 10.0)),
            whois_binary=os.environ.get("RESOLVER_WHOIS_BINARY", "whois"),
            whois_api_url=os.environ.get("RESOLVER_WHOIS_API_URL", WHOIS_API_URL),
            fallback_concurrency=int(os.environ.get("RESOLVER_FALLBACK_CONCURRENCY", 10)),
            fallback_limit=int(fallback_limit) if fallback_limit else None,
        )
    except ValueError as e:
        raise ConfigError(f"invalid RESOLVER_* environment value: {e}") from e

    return config.validate()
