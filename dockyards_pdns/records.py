"""Zone naming, SOA formatting and record-set/workload payload builders."""

from datetime import datetime
from typing import Any, Dict

from .consts import (
    PDNS_API_PORT,
    SOA_EXPIRE_TIME,
    SOA_NEGATIVE_CACHE,
    SOA_REFRESH_INTERVAL,
    SOA_RETRY_INTERVAL,
    SOA_TTL,
    ZONE_KIND_NATIVE,
    ZONE_TTL,
)

# Serial sequence within a day; always the first revision
SOA_SERIAL_SEQUENCE = "01"


def zone_name(cluster_uid: str, management_domain: str) -> str:
    """Name of the zone serving a cluster, e.g. ``abc123.test.com``."""
    return f"{cluster_uid}.{management_domain}"


def nameserver_name(zone: str) -> str:
    return f"ns1.{zone}"


def soa_rrset_name(zone: str) -> str:
    return f"soa.{zone}"


def soa_serial(now: datetime) -> str:
    """SOA serial in ``YYYYMMDDnn`` form."""
    return now.strftime("%Y%m%d") + SOA_SERIAL_SEQUENCE


def soa_record(zone: str, now: datetime) -> str:
    """Format the SOA record content for ``zone``.

    Args:
        zone: Zone name without trailing dot.
        now: Current time, the serial is derived from its date.

    Returns:
        Space separated primary nameserver, admin mailbox, serial, refresh,
        retry, expire and negative cache TTL.
    """
    fields = [
        nameserver_name(zone) + ".",
        f"hostmaster.{zone}.",
        soa_serial(now),
        str(SOA_REFRESH_INTERVAL),
        str(SOA_RETRY_INTERVAL),
        str(SOA_EXPIRE_TIME),
        str(SOA_NEGATIVE_CACHE),
    ]
    return " ".join(fields)


def zone_spec(zone: str) -> Dict[str, Any]:
    return {
        "kind": ZONE_KIND_NATIVE,
        "nameservers": [nameserver_name(zone)],
    }


def _zone_ref(zone: str, zone_kind: str) -> Dict[str, str]:
    return {"name": zone, "kind": zone_kind}


def soa_rrset_spec(zone: str, zone_kind: str, now: datetime) -> Dict[str, Any]:
    return {
        "type": "SOA",
        "ttl": SOA_TTL,
        "name": zone + ".",
        "records": [soa_record(zone, now)],
        "zoneRef": _zone_ref(zone, zone_kind),
    }


def ns_rrset_spec(zone: str, zone_kind: str, dns_ip: str) -> Dict[str, Any]:
    return {
        "type": "A",
        "ttl": ZONE_TTL,
        "name": "ns1",
        "records": [dns_ip],
        "zoneRef": _zone_ref(zone, zone_kind),
    }


def external_dns_input(api_key: str, api_ip: str, zone: str) -> Dict[str, Any]:
    """Input of the external-dns workload template.

    Args:
        api_key: PowerDNS API key.
        api_ip: Internal address of the PowerDNS API service.
        zone: Zone external-dns is allowed to manage.
    """
    return {
        "provider": "pdns",
        "sources": ["ingress"],
        "credentials": {
            "pdnsApiKey": api_key,
        },
        "env": {
            "EXTERNAL_DNS_PDNS_SERVER": f"http://{api_ip}:{PDNS_API_PORT}",
            "EXTERNAL_DNS_DOMAIN_FILTER": zone,
        },
    }
