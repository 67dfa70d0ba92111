"""Tests for RDAP / WHOIS response normalization."""

import json

import pytest

from domain_resolver.normalizer import (
    extract_registrar,
    extract_whois_expiry,
    is_not_found,
    normalize_rdap,
    parse_date,
    parse_whois_text,
)


# --- Dates ---

@pytest.mark.parametrize("value,expected", [
    ("2030-01-15T04:00:00Z", "2030-01-15"),
    ("2030-01-15", "2030-01-15"),
    ("2030/01/15", "2030-01-15"),
    ("2030.01.15", "2030-01-15"),
    ("15.01.2030", "2030-01-15"),
    ("15/01/2030", "2030-01-15"),
    ("15-Jan-2030", "2030-01-15"),
    ("14 Sep 2028", "2028-09-14"),
    ("2029-03-01 14:22:05", "2029-03-01"),
])
def test_parse_date_formats(value, expected):
    assert parse_date(value) == expected


def test_parse_date_ambiguous_is_month_first():
    assert parse_date("03/04/2030") == "2030-03-04"


def test_whois_ambiguous_expiry_is_month_first():
    result = parse_whois_text("example.com", "Expiration Date: 03/04/2030\n")
    assert result.expiry_date == "2030-03-04"


@pytest.mark.parametrize("value", ["", None, "garbage", "2030-13-45", "  "])
def test_parse_date_unparsable(value):
    assert parse_date(value) is None


# --- RDAP ---

def test_rdap_404_is_unregistered():
    result = normalize_rdap(404, "", "free-name.com")
    assert result.domain == "free-name.com"
    assert result.is_registered is False
    assert result.error is None
    assert result.raw == ""
    assert result.is_available


def test_rdap_404_ignores_body():
    result = normalize_rdap(404, '{"errorCode": 404}', "free-name.com")
    assert result.is_registered is False
    assert result.raw == ""


def test_rdap_registered(rdap_json):
    body = rdap_json("example.com")
    result = normalize_rdap(200, body, "example.com")
    assert result.is_registered is True
    assert result.expiry_date == "2030-01-15"
    assert result.registrar == "Example Registrar, Inc."
    assert result.raw == body
    assert result.error is None


def test_rdap_registered_without_expiry(rdap_json):
    result = normalize_rdap(200, rdap_json("example.com", expiry=None, registrar=None), "example.com")
    assert result.is_registered is True
    assert result.expiry_date is None
    assert result.registrar is None


def test_rdap_first_expiration_event_wins():
    body = json.dumps({"events": [
        {"eventAction": "last changed", "eventDate": "2020-01-01T00:00:00Z"},
        {"eventAction": "expiration", "eventDate": "2031-06-30T00:00:00Z"},
        {"eventAction": "expiration", "eventDate": "2040-01-01T00:00:00Z"},
    ]})
    assert normalize_rdap(200, body, "example.com").expiry_date == "2031-06-30"


@pytest.mark.parametrize("status,body", [
    (500, "{}"),
    (503, ""),
    (429, '{"errorCode": 429}'),
    (200, ""),
    (200, "<html>not json</html>"),
    (200, "[]"),
])
def test_rdap_without_verdict_needs_fallback(status, body):
    assert normalize_rdap(status, body, "example.com") is None


def test_registrar_falls_back_to_handle():
    data = {"entities": [
        {"roles": ["technical"], "handle": "TECH-1"},
        {"roles": ["registrar"], "handle": "REG-42", "vcardArray": ["vcard", [["version", {}, "text", "4.0"]]]},
    ]}
    assert extract_registrar(data) == "REG-42"


def test_registrar_missing():
    assert extract_registrar({"entities": [{"roles": ["registrant"], "handle": "X"}]}) is None
    assert extract_registrar({}) is None


# --- WHOIS text ---

@pytest.mark.parametrize("text", [
    "Status: free",
    "No match for \"FREE-NAME.COM\".",
    "NOT FOUND",
    "%% No entries found for the selected source(s).",
    "Domain example.pl is available for registration",
])
def test_whois_not_found_phrases(text):
    assert is_not_found(text)
    result = parse_whois_text("free-name.pl", text)
    assert result.is_registered is False
    assert result.raw == ""
    assert result.error is None


def test_whois_registered_com():
    text = (
        "   Domain Name: EXAMPLE.COM\n"
        "   Registrar WHOIS Server: whois.example-registrar.test\n"
        "   Registrar: Example Registrar, Inc.\n"
        "   Registry Expiry Date: 2030-01-15T04:00:00Z\n"
    )
    result = parse_whois_text("example.com", text)
    assert result.is_registered is True
    assert result.expiry_date == "2030-01-15"
    assert result.registrar == "Example Registrar, Inc."
    assert result.raw == text


@pytest.mark.parametrize("text,expected", [
    ("paid-till:     2029.03.01\n", "2029-03-01"),
    ("Expiration Date: 15.01.2030\n", "2030-01-15"),
    ("renewal date:  14-Sep-2028\n", "2028-09-14"),
    ("Valid Until: 2027-11-30\n", "2027-11-30"),
    ("option expiration date: 2026.08.01 13:00:00\n", "2026-08-01"),
])
def test_whois_expiry_patterns(text, expected):
    assert extract_whois_expiry(text) == expected


def test_whois_registered_without_expiry():
    result = parse_whois_text("example.io", "Domain Name: example.io\nStatus: active\n")
    assert result.is_registered is True
    assert result.expiry_date is None
    assert result.registrar is None
