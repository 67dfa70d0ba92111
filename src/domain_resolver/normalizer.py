"""
Response normalization.

Turns an RDAP HTTP response (status + JSON body) or a free-text WHOIS
reply into a LookupResult. The WHOIS rules are ordered tables: the
first matching "not found" phrase wins, and the first expiry pattern
whose capture parses as a date wins.
"""

import json
import logging
import re
from typing import Callable, Optional

from dateutil.parser import parse as parse_datetime

from .result import LookupResult

logger = logging.getLogger(__name__)


def parse_date(value: Optional[str]) -> Optional[str]:
    """
    Canonicalize a registry date to YYYY-MM-DD.

    Ambiguous numeric dates are read month-first ("03/04/2030" is
    March 4th). Returns None if the value does not parse.
    """
    if not value or not value.strip():
        return None
    try:
        return parse_datetime(value.strip()).date().isoformat()
    except (ValueError, OverflowError):
        return None


# =============================================================================
# RDAP
# =============================================================================

def _vcard_name(entity: dict) -> Optional[str]:
    """Extract the 'fn' (formatted name) property from a jCard."""
    vcard = entity.get("vcardArray")
    if not isinstance(vcard, list) or len(vcard) < 2 or not isinstance(vcard[1], list):
        return None
    for prop in vcard[1]:
        if (
            isinstance(prop, list)
            and len(prop) >= 4
            and prop[0] == "fn"
            and isinstance(prop[3], str)
            and prop[3].strip()
        ):
            return prop[3].strip()
    return None


def extract_expiry(data: dict) -> Optional[str]:
    """Date of the 'expiration' event, if any."""
    for event in data.get("events") or []:
        if not isinstance(event, dict):
            continue
        if event.get("eventAction") == "expiration" and event.get("eventDate"):
            return parse_date(str(event["eventDate"]))
    return None


def extract_registrar(data: dict) -> Optional[str]:
    """Name of the entity holding the 'registrar' role, else its handle."""
    for entity in data.get("entities") or []:
        if not isinstance(entity, dict):
            continue
        if "registrar" not in (entity.get("roles") or []):
            continue
        return (
            _vcard_name(entity)
            or entity.get("handle")
            or entity.get("legalRepresentative")
        )
    return None


def normalize_rdap(status: int, body: Optional[str], domain: str) -> Optional[LookupResult]:
    """
    Normalize one RDAP response.

    Returns None when the response gives no verdict and a later tier
    must decide (non-2xx other than 404, empty or non-JSON body).
    """
    if status == 404:
        return LookupResult.unregistered(domain)

    if not 200 <= status < 300 or not body:
        return None

    try:
        data = json.loads(body)
    except ValueError:
        logger.debug("%s: unparsable RDAP body (%d bytes)", domain, len(body))
        return None

    if not isinstance(data, dict):
        return None

    return LookupResult(
        domain=domain,
        is_registered=True,
        expiry_date=extract_expiry(data),
        registrar=extract_registrar(data),
        raw=body,
    )


# =============================================================================
# WHOIS text
# =============================================================================

NOT_FOUND_PHRASES = (
    "no match",
    "not found",
    "no data found",
    "no entries found",
    "domain not found",
    "status: free",
    "status: available",
    "is free",
    "no object found",
    "available for registration",
)

_DATE_YMD = r"(\d{4}[-/.]\d{2}[-/.]\d{2})"
_DATE_DMY = r"(\d{2}[-/.]\d{2}[-/.]\d{4})"
_DATE_DMONY = r"(\d{2}[-.]\w{3}[-.]\d{4})"

# (pattern, extractor) pairs evaluated in order; first parseable capture wins.
EXPIRY_PATTERNS: list[tuple[re.Pattern, Callable[[str], Optional[str]]]] = [
    (re.compile(r"expir(?:y|ation|es?)[^:\n]*:\s*" + _DATE_YMD, re.I), parse_date),
    (re.compile(r"expir(?:y|ation|es?)[^:\n]*:\s*" + _DATE_DMY, re.I), parse_date),
    (re.compile(r"expir(?:y|ation|es?)[^:\n]*:\s*" + _DATE_DMONY, re.I), parse_date),
    (re.compile(r"paid-till:\s*(\d{4}[.\-]\d{2}[.\-]\d{2})", re.I), parse_date),
    (re.compile(r"registry expiry date:\s*(\d{4}-\d{2}-\d{2})", re.I), parse_date),
    (re.compile(r"registrar registration expiration date:\s*(\d{4}-\d{2}-\d{2})", re.I), parse_date),
    (re.compile(r"renewal date:\s*(\d{2}-\w{3}-\d{4})", re.I), parse_date),
    (re.compile(r"expiry date:\s*(\d{4}-\d{2}-\d{2})", re.I), parse_date),
    (re.compile(r"expiration:\s*(\d{4}-\d{2}-\d{2})", re.I), parse_date),
    (re.compile(r"valid until:\s*(\d{4}[-.]\d{2}[-.]\d{2})", re.I), parse_date),
]

REGISTRAR_PATTERN = re.compile(r"registrar:[ \t]*(\S[^\r\n]*)", re.I)


def is_not_found(text: str) -> bool:
    lowered = text.lower()
    return any(phrase in lowered for phrase in NOT_FOUND_PHRASES)


def extract_whois_expiry(text: str) -> Optional[str]:
    for pattern, extractor in EXPIRY_PATTERNS:
        match = pattern.search(text)
        if not match:
            continue
        date = extractor(match.group(1))
        if date:
            return date
    return None


def parse_whois_text(domain: str, text: str) -> LookupResult:
    """Classify a raw WHOIS reply and pull out expiry and registrar."""
    if is_not_found(text):
        return LookupResult.unregistered(domain)

    match = REGISTRAR_PATTERN.search(text)
    return LookupResult(
        domain=domain,
        is_registered=True,
        expiry_date=extract_whois_expiry(text),
        registrar=match.group(1).strip() if match else None,
        raw=text,
    )
