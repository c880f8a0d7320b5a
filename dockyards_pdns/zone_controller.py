"""Reconciler publishing records and an external-dns workload for provisioned zones."""

import base64
import binascii
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Tuple

from .config import ConfigReader, require
from .consts import (
    ANNOTATION_SKIP_REMEDIATION,
    CLUSTER,
    KEY_PDNS_NAME,
    KEY_PDNS_NAMESPACE,
    KEY_PUBLIC_NAMESPACE,
    LABEL_CLUSTER_NAME,
    PROVENIENCE_DOCKYARDS,
    RRSET,
    SECRET,
    SECRET_PDNS_API_KEY,
    WORKLOAD,
    WORKLOAD_NAME_SUFFIX,
    WORKLOAD_TARGET_NAMESPACE,
    WORKLOAD_TEMPLATE_KIND,
    ZONE,
    ZONE_STATUS_SUCCEEDED,
)
from .discovery import discover_provider_addresses
from .errors import AddressDiscoveryError, CredentialError, ResourceNotFoundError
from .logging_config import get_logger, log_upsert_result
from .models import OperationResult, OwnerReference, Request, Result, ZoneStatus
from .records import external_dns_input, nameserver_name, ns_rrset_spec, soa_rrset_name, soa_rrset_spec

logger = get_logger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _skip_remediation(obj: Dict[str, Any]) -> bool:
    annotations = (obj.get("metadata") or {}).get("annotations") or {}
    return ANNOTATION_SKIP_REMEDIATION in annotations


def _decode_secret_value(secret: Dict[str, Any], key: str) -> str:
    encoded = (secret.get("data") or {}).get(key)
    if not encoded:
        raise CredentialError(f"{key} missing from secret")

    try:
        value = base64.b64decode(encoded, validate=True).decode()
    except (binascii.Error, UnicodeDecodeError) as e:
        raise CredentialError(f"{key} in secret is not valid base64: {e}") from e

    if not value:
        raise CredentialError(f"{key} missing from secret")
    return value


class ZoneReconciler:
    """Synchronizes RRsets and the external-dns workload once a zone is provisioned.

    Args:
        store: ResourceStore used for every read and write.
        config: Dockyards configuration.
        clock: Returns the current time; the SOA serial is derived from it.
    """

    def __init__(self, store, config: ConfigReader, clock: Optional[Callable[[], datetime]] = None):
        self.store = store
        self.config = config
        self.clock = clock or _utcnow

    async def reconcile(self, request: Request) -> Result:
        """Converge records and workload of the zone identified by ``request``.

        Zones that are gone, being deleted, not yet Succeeded or not linked
        to a cluster are left alone. No record or workload is written unless
        both PowerDNS addresses were discovered.

        Raises:
            StoreError: On read or write failures, including a missing cluster, service or secret.
            AddressDiscoveryError: If PowerDNS has no DNS or no API address yet.
            ConfigKeyMissingError: If PowerDNS or public namespace configuration is missing.
            CredentialError: If the PowerDNS secret holds no API key.
        """
        log = logger.bind(zone=request.name, namespace=request.namespace)

        zone = await self.store.get(ZONE, request.namespace, request.name)
        if zone is None:
            log.debug("Zone not found")
            return Result()

        if zone["metadata"].get("deletionTimestamp"):
            return Result()

        status = ZoneStatus.model_validate(zone.get("status") or {})
        if not status.is_in_expected_status(1, ZONE_STATUS_SUCCEEDED):
            log.info("Ignoring zone in non-Succeeded status", sync_status=status.sync_status)
            return Result()

        cluster_name = (zone["metadata"].get("labels") or {}).get(LABEL_CLUSTER_NAME)
        if not cluster_name:
            return Result()

        cluster = await self.store.get(CLUSTER, request.namespace, cluster_name)
        if cluster is None:
            raise ResourceNotFoundError(CLUSTER.kind, request.namespace, cluster_name)

        if cluster["metadata"].get("deletionTimestamp"):
            log.debug("Ignoring zone of cluster being deleted", cluster=cluster_name)
            return Result()

        addresses = await discover_provider_addresses(self.store, self.config)
        if not addresses.dns_ip:
            raise AddressDiscoveryError("no available DNS addresses for PowerDNS")
        if not addresses.api_ips:
            raise AddressDiscoveryError("no available API addresses for PowerDNS")

        await self.reconcile_rrsets(zone, addresses.dns_ip)
        await self.reconcile_external_dns(zone, cluster, addresses.api_ips)

        return Result()

    async def reconcile_rrsets(self, zone: Dict[str, Any], external_ip: str) -> Tuple[OperationResult, OperationResult]:
        """Ensure the SOA and ``ns1`` A records of ``zone`` exist and are current.

        Returns:
            Operation results of the SOA and A record sets.
        """
        name = zone["metadata"]["name"]
        namespace = zone["metadata"]["namespace"]
        zone_kind = zone.get("kind") or ZONE.kind
        owner = OwnerReference.for_object(zone, ZONE)
        now = self.clock()

        def mutate_soa(rrset: Dict[str, Any]) -> None:
            if _skip_remediation(rrset):
                return
            rrset["metadata"]["ownerReferences"] = [owner.to_dict()]
            rrset["spec"] = soa_rrset_spec(name, zone_kind, now)

        soa_result = await self.store.create_or_patch(RRSET, namespace, soa_rrset_name(name), mutate_soa)
        log_upsert_result(logger, "Reconciled Zone SOA RRSet", soa_result, zone=name)

        def mutate_ns(rrset: Dict[str, Any]) -> None:
            if _skip_remediation(rrset):
                return
            rrset["metadata"]["ownerReferences"] = [owner.to_dict()]
            rrset["spec"] = ns_rrset_spec(name, zone_kind, external_ip)

        ns_result = await self.store.create_or_patch(RRSET, namespace, nameserver_name(name), mutate_ns)
        log_upsert_result(logger, "Reconciled Zone A RRSet", ns_result, zone=name)

        return soa_result, ns_result

    async def reconcile_external_dns(self,
                                     zone: Dict[str, Any],
                                     cluster: Dict[str, Any],
                                     internal_ips: List[str]) -> OperationResult:
        """Ensure the external-dns workload of ``cluster`` targets ``zone``."""
        pdns_name = require(self.config, KEY_PDNS_NAME)
        pdns_namespace = require(self.config, KEY_PDNS_NAMESPACE)

        secret = await self.store.get(SECRET, pdns_namespace, pdns_name)
        if secret is None:
            raise ResourceNotFoundError(SECRET.kind, pdns_namespace, pdns_name)

        public_namespace = require(self.config, KEY_PUBLIC_NAMESPACE)

        zone_name = zone["metadata"]["name"]
        cluster_name = cluster["metadata"]["name"]
        owner = OwnerReference.for_object(cluster, CLUSTER)

        def mutate(workload: Dict[str, Any]) -> None:
            if _skip_remediation(workload):
                return

            workload["metadata"]["labels"] = {LABEL_CLUSTER_NAME: cluster_name}
            workload["metadata"]["ownerReferences"] = [owner.to_dict()]

            spec = workload.setdefault("spec", {})
            spec["provenience"] = PROVENIENCE_DOCKYARDS
            spec["clusterComponent"] = True
            spec["targetNamespace"] = WORKLOAD_TARGET_NAMESPACE
            spec["workloadTemplateRef"] = {
                "kind": WORKLOAD_TEMPLATE_KIND,
                "name": WORKLOAD_TARGET_NAMESPACE,
                "namespace": public_namespace,
            }

            api_key = _decode_secret_value(secret, SECRET_PDNS_API_KEY)
            spec["input"] = external_dns_input(api_key, internal_ips[0], zone_name)

        workload_name = cluster_name + WORKLOAD_NAME_SUFFIX
        operation_result = await self.store.create_or_patch(
            WORKLOAD, cluster["metadata"]["namespace"], workload_name, mutate
        )

        log_upsert_result(logger, "Reconciled Workload", operation_result, cluster=cluster_name, workload=workload_name)
        return operation_result
