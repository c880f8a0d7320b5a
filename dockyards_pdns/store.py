"""Kubernetes-backed resource store used by the reconcilers."""

import asyncio
import copy
import re
from typing import Any, Callable, Dict, Optional

from kubernetes import client, config
from kubernetes.client.rest import ApiException

from .consts import DOCKYARDS_GROUP, ORGANIZATION
from .errors import ConflictError, StoreError
from .logging_config import get_logger, log_function_entry, log_function_exit, log_k8s_operation
from .models import ControllerSettings, OperationResult, ResourceKind

logger = get_logger(__name__)

Mutator = Callable[[Dict[str, Any]], None]

MERGE_PATCH = "application/merge-patch+json"

_MISSING = object()


def merge_patch(original: Dict[str, Any], modified: Dict[str, Any]) -> Dict[str, Any]:
    """Compute the RFC 7386 merge patch that turns ``original`` into ``modified``."""
    patch: Dict[str, Any] = {}

    for key in original:
        if key not in modified:
            patch[key] = None

    for key, value in modified.items():
        old = original.get(key, _MISSING)
        if isinstance(value, dict) and isinstance(old, dict):
            nested = merge_patch(old, value)
            if nested:
                patch[key] = nested
        elif old is _MISSING or old != value:
            patch[key] = value

    return patch


def _snake_case(name: str) -> str:
    return re.sub(r"(?<!^)(?=[A-Z])", "_", name).lower()


def _group_of(api_version: str) -> str:
    if "/" not in api_version:
        return ""
    return api_version.split("/", 1)[0]


class ResourceStore:
    """Typed get/upsert access to Dockyards, PowerDNS and core resources.

    Every blocking Kubernetes client call runs in a worker thread so that
    reconciliations of different objects never block each other.
    """

    def __init__(self,
                 api_client: Optional[client.ApiClient] = None,
                 custom_objects: Optional[client.CustomObjectsApi] = None,
                 core_v1: Optional[client.CoreV1Api] = None):
        self.api_client = api_client or client.ApiClient()
        self.custom_objects = custom_objects or client.CustomObjectsApi(self.api_client)
        self.core_v1 = core_v1 or client.CoreV1Api(self.api_client)

    @classmethod
    def connect(cls, settings: ControllerSettings) -> "ResourceStore":
        """Load Kubernetes credentials and build a store.

        Args:
            settings: Controller settings holding the optional kubeconfig path and context.

        Returns:
            A store bound to the configured cluster.

        Raises:
            StoreError: If no usable kubeconfig or in-cluster configuration is found.
        """
        log_function_entry(logger, "connect",
                           kubeconfig_path=settings.kubeconfig_path,
                           context=settings.context)

        try:
            if settings.kubeconfig_path:
                logger.debug("Loading kubeconfig from file",
                             kubeconfig_path=settings.kubeconfig_path,
                             context=settings.context)
                config.load_kube_config(config_file=settings.kubeconfig_path, context=settings.context)
            else:
                logger.debug("Loading in-cluster config")
                config.load_incluster_config()
        except Exception as e:
            logger.error("Failed to load Kubernetes configuration",
                         error=str(e),
                         kubeconfig_path=settings.kubeconfig_path,
                         context=settings.context)
            raise StoreError(f"loading Kubernetes configuration: {e}") from e

        log_function_exit(logger, "connect", status="success")
        return cls(client.ApiClient())

    def close(self) -> None:
        self.api_client.close()

    async def get(self, kind: ResourceKind, namespace: Optional[str], name: str) -> Optional[Dict[str, Any]]:
        """Read an object.

        Returns:
            The object as a dict in its wire (camelCase) form, or None when it does not exist.

        Raises:
            StoreError: For any API failure other than not found.
        """
        return await asyncio.to_thread(self._get, kind, namespace, name)

    def _get(self, kind: ResourceKind, namespace: Optional[str], name: str) -> Optional[Dict[str, Any]]:
        log_k8s_operation(logger, "get", kind.kind, namespace=namespace, name=name)

        try:
            if kind.is_core:
                reader = getattr(self.core_v1, f"read_namespaced_{_snake_case(kind.kind)}")
                obj = reader(name, namespace)
            elif kind.namespaced:
                obj = self.custom_objects.get_namespaced_custom_object(
                    kind.group, kind.version, namespace, kind.plural, name
                )
            else:
                obj = self.custom_objects.get_cluster_custom_object(
                    kind.group, kind.version, kind.plural, name
                )
        except ApiException as e:
            if e.status == 404:
                return None
            raise StoreError(f"get {kind.kind} {namespace}/{name}: {e.reason}", status=e.status) from e

        if isinstance(obj, dict):
            return obj
        return self.api_client.sanitize_for_serialization(obj)

    async def create_or_patch(self,
                              kind: ResourceKind,
                              namespace: str,
                              name: str,
                              mutate: Mutator) -> OperationResult:
        """Create the object, or patch it when ``mutate`` changes it.

        ``mutate`` receives the current object (or a skeleton holding only the
        identity when it does not exist) and edits it in place. No write is
        sent when the mutated object equals the stored one. Patches carry the
        stored resourceVersion, so a concurrent write makes this call fail
        with ConflictError instead of overwriting it.

        Args:
            kind: Resource kind of the object.
            namespace: Object namespace.
            name: Object name.
            mutate: Callback bringing the object to its desired state.

        Returns:
            Whether the object was created, left unchanged or updated.

        Raises:
            ConflictError: If the object changed or appeared concurrently.
            StoreError: For other API failures.
            ValueError: If ``mutate`` changed the object name or namespace.
        """
        if kind.is_core:
            raise ValueError(f"create_or_patch does not support core kind {kind.kind}")

        current = await self.get(kind, namespace, name)

        if current is None:
            desired = {
                "apiVersion": kind.api_version,
                "kind": kind.kind,
                "metadata": {"name": name, "namespace": namespace},
            }
            mutate(desired)
            self._check_identity(desired, namespace, name)
            await asyncio.to_thread(self._create, kind, namespace, desired)
            return OperationResult.CREATED

        desired = copy.deepcopy(current)
        mutate(desired)
        self._check_identity(desired, namespace, name)

        if desired == current:
            return OperationResult.UNCHANGED

        patch = merge_patch(current, desired)
        patch.setdefault("metadata", {})["resourceVersion"] = current["metadata"].get("resourceVersion")

        await asyncio.to_thread(self._patch, kind, namespace, name, patch)
        return OperationResult.UPDATED

    @staticmethod
    def _check_identity(obj: Dict[str, Any], namespace: str, name: str) -> None:
        metadata = obj.get("metadata") or {}
        if metadata.get("name") != name or metadata.get("namespace") != namespace:
            raise ValueError(
                f"mutate changed object identity from {namespace}/{name} "
                f"to {metadata.get('namespace')}/{metadata.get('name')}"
            )

    def _create(self, kind: ResourceKind, namespace: str, body: Dict[str, Any]) -> None:
        log_k8s_operation(logger, "create", kind.kind, namespace=namespace, name=body["metadata"]["name"])

        try:
            self.custom_objects.create_namespaced_custom_object(
                kind.group, kind.version, namespace, kind.plural, body
            )
        except ApiException as e:
            if e.status == 409:
                raise ConflictError(f"create {kind.kind} {namespace}/{body['metadata']['name']}: already exists",
                                    status=e.status) from e
            raise StoreError(f"create {kind.kind} {namespace}/{body['metadata']['name']}: {e.reason}",
                             status=e.status) from e

    def _patch(self, kind: ResourceKind, namespace: str, name: str, patch: Dict[str, Any]) -> None:
        log_k8s_operation(logger, "patch", kind.kind, namespace=namespace, name=name, fields=sorted(patch))

        try:
            self.custom_objects.patch_namespaced_custom_object(
                kind.group, kind.version, namespace, kind.plural, name, patch,
                _content_type=MERGE_PATCH,
            )
        except ApiException as e:
            if e.status == 409:
                raise ConflictError(f"patch {kind.kind} {namespace}/{name}: object has been modified",
                                    status=e.status) from e
            raise StoreError(f"patch {kind.kind} {namespace}/{name}: {e.reason}", status=e.status) from e

    async def get_owner_organization(self, obj: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """Resolve the Organization owning ``obj``.

        Returns:
            The organization, or None when ``obj`` has no organization owner or it no longer exists.
        """
        for reference in (obj.get("metadata") or {}).get("ownerReferences") or []:
            if reference.get("kind") != ORGANIZATION.kind:
                continue
            if _group_of(reference.get("apiVersion", "")) != DOCKYARDS_GROUP:
                continue

            return await self.get(ORGANIZATION, None, reference["name"])

        return None
