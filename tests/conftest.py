import json

import pytest


@pytest.fixture
def rdap_json():
    """Build an RDAP domain object the way registries return it."""

    def build(domain, expiry="2030-01-15T04:00:00Z", registrar="Example Registrar, Inc."):
        data = {
            "objectClassName": "domain",
            "ldhName": domain.upper(),
            "status": ["client transfer prohibited"],
            "events": [
                {"eventAction": "registration", "eventDate": "2001-03-02T10:00:00Z"},
            ],
            "entities": [],
        }
        if expiry:
            data["events"].append({"eventAction": "expiration", "eventDate": expiry})
        if registrar:
            data["entities"].append({
                "objectClassName": "entity",
                "handle": "292",
                "roles": ["registrar"],
                "vcardArray": ["vcard", [["version", {}, "text", "4.0"], ["fn", {}, "text", registrar]]],
            })
        return json.dumps(data)

    return build
