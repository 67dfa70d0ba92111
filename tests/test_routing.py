"""Tests for the RDAP routing table and bootstrap discovery."""

import httpx
import pytest

from domain_resolver.config import IANA_BOOTSTRAP_URL
from domain_resolver.routing import RDAP_SERVERS, RoutingTable, parse_bootstrap


BOOTSTRAP = {
    "services": [
        [["shop", "CLUB"], ["https://rdap.centralnic.test/"]],
        [["kg"], ["http://rdap.cctld.kg/", "https://rdap.cctld.kg/"]],
        [["com"], ["https://rdap.elsewhere.test/com/v1/"]],
    ]
}


def bootstrap_transport(calls, status=200, payload=BOOTSTRAP):
    def handler(request: httpx.Request) -> httpx.Response:
        assert str(request.url) == IANA_BOOTSTRAP_URL
        calls.append(request)
        return httpx.Response(status, json=payload)

    return httpx.MockTransport(handler)


# --- Bootstrap parsing ---

def test_parse_bootstrap_builds_domain_endpoints():
    routes = parse_bootstrap(BOOTSTRAP)
    assert routes["shop"] == "https://rdap.centralnic.test/domain/"
    assert routes["club"] == "https://rdap.centralnic.test/domain/"


def test_parse_bootstrap_uses_first_listed_url():
    assert parse_bootstrap(BOOTSTRAP)["kg"] == "http://rdap.cctld.kg/domain/"


def test_parse_bootstrap_malformed():
    assert parse_bootstrap({}) == {}
    assert parse_bootstrap({"services": "nope"}) == {}
    assert parse_bootstrap({"services": [[["io"], []], ["bad"]]}) == {}


# --- Static lookups ---

def test_seeded_routes_need_no_network():
    table = RoutingTable()
    assert table.lookup("com") == RDAP_SERVERS["com"]
    assert table.lookup("COM") == RDAP_SERVERS["com"]
    assert "pl" in table
    assert table.lookup("nosuchtld") is None


def test_tld_for_compound_suffix():
    table = RoutingTable()
    assert table.tld_for("example.co.uk") == "co.uk"
    assert table.tld_for("example.uk") == "uk"
    assert table.tld_for("sub.example.com") == "com"


def test_tld_for_unknown_compound_uses_last_label():
    table = RoutingTable(seed={"uk": "https://rdap.nominet.uk/uk/domain/"})
    assert table.tld_for("example.co.uk") == "uk"


@pytest.mark.asyncio
async def test_seed_hit_skips_discovery():
    calls = []
    table = RoutingTable(transport=bootstrap_transport(calls))
    assert await table.resolve_endpoint("com") == RDAP_SERVERS["com"]
    assert calls == []
    assert table.discovery_calls == 0


# --- Discovery ---

@pytest.mark.asyncio
async def test_discovery_runs_once_for_all_tlds():
    calls = []
    table = RoutingTable(seed={}, transport=bootstrap_transport(calls))

    assert await table.resolve_endpoint("shop") == "https://rdap.centralnic.test/domain/"
    assert await table.resolve_endpoint("club") == "https://rdap.centralnic.test/domain/"
    assert await table.resolve_endpoint("kg") == "http://rdap.cctld.kg/domain/"

    assert len(calls) == 1
    assert table.discovery_calls == 1
    assert table.discovered == 4


@pytest.mark.asyncio
async def test_unknown_tld_is_cached_negative():
    calls = []
    table = RoutingTable(seed={}, transport=bootstrap_transport(calls))

    assert await table.resolve_endpoint("nosuchtld") is None
    assert await table.resolve_endpoint("nosuchtld") is None
    assert await table.resolve_endpoint("othermissing") is None
    assert len(calls) == 1


@pytest.mark.asyncio
async def test_static_seed_wins_over_discovery():
    calls = []
    table = RoutingTable(transport=bootstrap_transport(calls))

    assert await table.resolve_endpoint("kg") == "http://rdap.cctld.kg/domain/"
    assert len(calls) == 1
    assert table.lookup("com") == RDAP_SERVERS["com"]


@pytest.mark.asyncio
async def test_discovery_http_error_status():
    calls = []
    table = RoutingTable(seed={}, transport=bootstrap_transport(calls, status=503))

    assert await table.resolve_endpoint("shop") is None
    assert await table.resolve_endpoint("club") is None
    assert len(calls) == 1
    assert table.discovered == 0


@pytest.mark.asyncio
async def test_discovery_network_failure():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    table = RoutingTable(seed={}, transport=httpx.MockTransport(handler))
    assert await table.resolve_endpoint("shop") is None
    assert table.discovery_calls == 1


@pytest.mark.asyncio
async def test_register_clears_negative():
    calls = []
    table = RoutingTable(seed={}, transport=bootstrap_transport(calls, status=500))
    assert await table.resolve_endpoint("test") is None

    table.register("test", "https://rdap.example.test/domain/")
    assert await table.resolve_endpoint("test") == "https://rdap.example.test/domain/"
