"""Lookup result record and domain name normalization."""

import re
from dataclasses import asdict, dataclass
from typing import Optional


_SCHEME_WWW = re.compile(r"^(https?://)?(www\.)?", re.IGNORECASE)


def normalize_domain(name: str) -> str:
    """
    Normalize user input to a bare domain name.

    "HTTPS://www.Example.com/" -> "example.com"
    """
    domain = name.strip().lower()
    domain = _SCHEME_WWW.sub("", domain, count=1)
    return domain.rstrip("/")


def is_valid_domain(domain: str) -> bool:
    """A name is only worth looking up if it has a label and a TLD."""
    if not domain or "." not in domain:
        return False
    return all(domain.split("."))


@dataclass
class LookupResult:
    """Outcome of resolving one domain."""
    domain: str
    is_registered: bool
    expiry_date: Optional[str] = None  # YYYY-MM-DD
    registrar: Optional[str] = None
    raw: str = ""
    error: Optional[str] = None

    @classmethod
    def unregistered(cls, domain: str) -> "LookupResult":
        return cls(domain=domain, is_registered=False)

    @classmethod
    def failed(cls, domain: str, error: str) -> "LookupResult":
        """No tier produced a verdict. Not the same as 'available'."""
        return cls(domain=domain, is_registered=False, error=error)

    @property
    def is_available(self) -> bool:
        """True only for a confirmed, error-free unregistered verdict."""
        return not self.is_registered and self.error is None

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "LookupResult":
        return cls(
            domain=data["domain"],
            is_registered=bool(data["is_registered"]),
            expiry_date=data.get("expiry_date"),
            registrar=data.get("registrar"),
            raw=data.get("raw") or "",
            error=data.get("error"),
        )
