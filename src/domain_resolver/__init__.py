# Domain Resolver - Core Components
from .config import ConfigError, EngineConfig, config_from_env
from .database import ResultStore
from .engine import DomainEngine
from .fanout import fetch_batch_multiprocess
from .metrics import RequestMetrics
from .rdap_checker import BatchFetcher, BatchStats
from .result import LookupResult, normalize_domain
from .routing import RoutingTable
from .whois_checker import FallbackChain

__version__ = "0.3.0"

__all__ = [
    'ConfigError',
    'EngineConfig',
    'config_from_env',
    'ResultStore',
    'DomainEngine',
    'fetch_batch_multiprocess',
    'RequestMetrics',
    'BatchFetcher',
    'BatchStats',
    'LookupResult',
    'normalize_domain',
    'RoutingTable',
    'FallbackChain',
]
