"""Reconciler deriving a PowerDNS zone for every owned Dockyards cluster."""

from typing import Any, Dict

from .config import ConfigReader, require
from .consts import CLUSTER, KEY_MANAGEMENT_DOMAIN, LABEL_CLUSTER_NAME, ZONE
from .logging_config import get_logger, log_upsert_result
from .models import OperationResult, OwnerReference, Request, Result
from .records import zone_name, zone_spec

logger = get_logger(__name__)


class ClusterReconciler:
    """Ensures a DNS zone exists for each cluster that is not being deleted."""

    def __init__(self, store, config: ConfigReader):
        self.store = store
        self.config = config

    async def reconcile(self, request: Request) -> Result:
        """Converge the zone of the cluster identified by ``request``.

        Args:
            request: Namespace and name of the cluster.

        Returns:
            A finished result; clusters that are gone, being deleted or not
            yet owned by an organization are left alone.

        Raises:
            StoreError: If reading the cluster or organization, or writing the zone, fails.
            ConfigKeyMissingError: If no management domain is configured.
        """
        log = logger.bind(cluster=request.name, namespace=request.namespace)

        cluster = await self.store.get(CLUSTER, request.namespace, request.name)
        if cluster is None:
            log.debug("Cluster not found")
            return Result()

        if cluster["metadata"].get("deletionTimestamp"):
            log.debug("Ignoring cluster being deleted")
            return Result()

        owner_organization = await self.store.get_owner_organization(cluster)
        if owner_organization is None:
            log.info("Ignoring cluster without owner organization")
            return Result()

        await self.reconcile_dns_zone(cluster)

        return Result()

    async def reconcile_dns_zone(self, cluster: Dict[str, Any]) -> OperationResult:
        """Create or patch the zone tied to ``cluster``."""
        management_domain = require(self.config, KEY_MANAGEMENT_DOMAIN)

        metadata = cluster["metadata"]
        name = zone_name(metadata["uid"], management_domain)
        owner = OwnerReference.for_object(cluster, CLUSTER)

        def mutate(zone: Dict[str, Any]) -> None:
            zone["metadata"]["labels"] = {LABEL_CLUSTER_NAME: metadata["name"]}
            zone["metadata"]["ownerReferences"] = [owner.to_dict()]
            zone["spec"] = zone_spec(name)

        operation_result = await self.store.create_or_patch(ZONE, metadata["namespace"], name, mutate)

        log_upsert_result(logger, "Reconciled DNS Zone", operation_result, cluster=metadata["name"], zone=name)
        return operation_result
