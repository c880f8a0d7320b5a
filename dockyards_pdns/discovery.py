"""PowerDNS service address discovery."""

from typing import Any, Dict, List

from .config import ConfigReader, require
from .consts import KEY_PDNS_NAME, KEY_PDNS_NAMESPACE, SERVICE
from .errors import ResourceNotFoundError
from .logging_config import get_logger, log_function_entry, log_function_exit
from .models import ProviderAddresses

logger = get_logger(__name__)


def _load_balancer_ip(service: Dict[str, Any]) -> str:
    ingress = (((service.get("status") or {}).get("loadBalancer") or {}).get("ingress")) or []
    for entry in ingress:
        if entry.get("ip"):
            return entry["ip"]
    return ""


def _cluster_ips(service: Dict[str, Any]) -> List[str]:
    spec = service.get("spec") or {}
    ips = spec.get("clusterIPs") or []
    if not ips and spec.get("clusterIP"):
        ips = [spec["clusterIP"]]
    # headless services report "None"
    return [ip for ip in ips if ip and ip != "None"]


async def discover_provider_addresses(store, config: ConfigReader) -> ProviderAddresses:
    """Look up the addresses PowerDNS currently exposes.

    The DNS address is the LoadBalancer ingress IP of ``<pdnsName>-dns`` and
    the API addresses are the ClusterIPs of ``<pdnsName>-api``, both in
    ``pdnsNamespace``. Either may come back empty while the services are
    still being provisioned; callers decide how to treat that.

    Args:
        store: ResourceStore to read the services from.
        config: Dockyards configuration.

    Returns:
        The discovered addresses.

    Raises:
        ConfigKeyMissingError: If pdnsName or pdnsNamespace is not configured.
        ResourceNotFoundError: If either service does not exist.
    """
    pdns_name = require(config, KEY_PDNS_NAME)
    pdns_namespace = require(config, KEY_PDNS_NAMESPACE)

    log_function_entry(logger, "discover_provider_addresses", pdns_name=pdns_name, namespace=pdns_namespace)

    dns_service_name = f"{pdns_name}-dns"
    dns_service = await store.get(SERVICE, pdns_namespace, dns_service_name)
    if dns_service is None:
        raise ResourceNotFoundError(SERVICE.kind, pdns_namespace, dns_service_name)

    api_service_name = f"{pdns_name}-api"
    api_service = await store.get(SERVICE, pdns_namespace, api_service_name)
    if api_service is None:
        raise ResourceNotFoundError(SERVICE.kind, pdns_namespace, api_service_name)

    addresses = ProviderAddresses(dns_ip=_load_balancer_ip(dns_service), api_ips=_cluster_ips(api_service))

    log_function_exit(logger, "discover_provider_addresses",
                      dns_ip=addresses.dns_ip, api_ips=addresses.api_ips)
    return addresses
