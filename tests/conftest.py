"""Shared fixtures: an in-memory Kubernetes API and Dockyards/PowerDNS objects."""

import base64
import copy
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple
from unittest.mock import MagicMock

import pytest
from kubernetes.client.rest import ApiException

from dockyards_pdns.config import DockyardsConfig
from dockyards_pdns.consts import (
    CLUSTER,
    LABEL_CLUSTER_NAME,
    ORGANIZATION,
    SECRET,
    SERVICE,
    ZONE,
)
from dockyards_pdns.models import ResourceKind
from dockyards_pdns.store import ResourceStore


def _apply_merge_patch(target: Dict[str, Any], patch: Dict[str, Any]) -> Dict[str, Any]:
    result = copy.deepcopy(target)
    for key, value in patch.items():
        if value is None:
            result.pop(key, None)
        elif isinstance(value, dict) and isinstance(result.get(key), dict):
            result[key] = _apply_merge_patch(result[key], value)
        else:
            result[key] = copy.deepcopy(value)
    return result


class FakeKubernetes:
    """In-memory stand-in for both CustomObjectsApi and CoreV1Api.

    Objects are returned in wire form, resourceVersion increases on every
    write and patches carrying a stale resourceVersion fail with 409.
    """

    def __init__(self):
        self.objects: Dict[Tuple[str, Optional[str], str], Dict[str, Any]] = {}
        self.writes: List[Tuple[str, str, Optional[str], str]] = []
        self.patches: List[Dict[str, Any]] = []
        self._resource_version = 0

    def _next_version(self) -> str:
        self._resource_version += 1
        return str(self._resource_version)

    def add(self, kind: ResourceKind, obj: Dict[str, Any]) -> Dict[str, Any]:
        obj = copy.deepcopy(obj)
        obj.setdefault("apiVersion", kind.api_version)
        obj.setdefault("kind", kind.kind)
        metadata = obj["metadata"]
        metadata.setdefault("uid", f"uid-{metadata['name']}")
        metadata["resourceVersion"] = self._next_version()
        self.objects[(kind.plural, metadata.get("namespace"), metadata["name"])] = obj
        return obj

    def object(self, kind: ResourceKind, namespace: Optional[str], name: str) -> Optional[Dict[str, Any]]:
        return self.objects.get((kind.plural, namespace, name))

    def writes_of(self, kind: ResourceKind) -> List[Tuple[str, str, Optional[str], str]]:
        return [write for write in self.writes if write[1] == kind.plural]

    def _read(self, plural: str, namespace: Optional[str], name: str) -> Dict[str, Any]:
        obj = self.objects.get((plural, namespace, name))
        if obj is None:
            raise ApiException(status=404, reason="Not Found")
        return copy.deepcopy(obj)

    # CustomObjectsApi

    def get_namespaced_custom_object(self, group, version, namespace, plural, name):
        return self._read(plural, namespace, name)

    def get_cluster_custom_object(self, group, version, plural, name):
        return self._read(plural, None, name)

    def create_namespaced_custom_object(self, group, version, namespace, plural, body):
        name = body["metadata"]["name"]
        if (plural, namespace, name) in self.objects:
            raise ApiException(status=409, reason="AlreadyExists")

        obj = copy.deepcopy(body)
        obj["metadata"]["uid"] = f"uid-{name}"
        obj["metadata"]["resourceVersion"] = self._next_version()
        self.objects[(plural, namespace, name)] = obj
        self.writes.append(("create", plural, namespace, name))
        return copy.deepcopy(obj)

    def patch_namespaced_custom_object(self, group, version, namespace, plural, name, body, **kwargs):
        current = self._read(plural, namespace, name)
        expected_version = (body.get("metadata") or {}).get("resourceVersion")
        if expected_version is not None and expected_version != current["metadata"]["resourceVersion"]:
            raise ApiException(status=409, reason="Conflict")

        obj = _apply_merge_patch(current, body)
        obj["metadata"]["resourceVersion"] = self._next_version()
        self.objects[(plural, namespace, name)] = obj
        self.writes.append(("patch", plural, namespace, name))
        self.patches.append(body)
        return copy.deepcopy(obj)

    # CoreV1Api

    def read_namespaced_service(self, name, namespace):
        return self._read(SERVICE.plural, namespace, name)

    def read_namespaced_secret(self, name, namespace):
        return self._read(SECRET.plural, namespace, name)

    def read_namespaced_config_map(self, name, namespace):
        return self._read("configmaps", namespace, name)


@pytest.fixture
def fake_kube():
    """Create an empty in-memory Kubernetes API."""
    return FakeKubernetes()


@pytest.fixture
def store(fake_kube):
    """Create a ResourceStore backed by the in-memory API."""
    return ResourceStore(api_client=MagicMock(), custom_objects=fake_kube, core_v1=fake_kube)


@pytest.fixture
def dockyards_config():
    """Dockyards configuration used throughout the tests."""
    return DockyardsConfig({
        "managementDomain": "test.com",
        "pdnsName": "test-pdns",
        "pdnsNamespace": "test-ns",
        "publicNamespace": "public-ns",
    })


@pytest.fixture
def now():
    return datetime(2025, 3, 14, 9, 26, 53, tzinfo=timezone.utc)


def make_organization(fake: FakeKubernetes, name: str = "test-org") -> Dict[str, Any]:
    return fake.add(ORGANIZATION, {"metadata": {"name": name, "uid": f"org-{name}"}})


def make_cluster(fake: FakeKubernetes,
                 name: str = "test-cluster",
                 namespace: str = "test-org-ns",
                 uid: str = "abc123",
                 organization: Optional[str] = "test-org",
                 deleting: bool = False) -> Dict[str, Any]:
    metadata: Dict[str, Any] = {"name": name, "namespace": namespace, "uid": uid}
    if organization:
        metadata["ownerReferences"] = [{
            "apiVersion": ORGANIZATION.api_version,
            "kind": ORGANIZATION.kind,
            "name": organization,
            "uid": f"org-{organization}",
        }]
    if deleting:
        metadata["deletionTimestamp"] = "2025-03-14T00:00:00Z"
        metadata["finalizers"] = ["dockyards.io/backend-controller"]
    return fake.add(CLUSTER, {"metadata": metadata, "spec": {}})


def make_zone(fake: FakeKubernetes,
              name: str = "abc123.test.com",
              namespace: str = "test-org-ns",
              cluster_name: Optional[str] = "test-cluster",
              sync_status: Optional[str] = "Succeeded",
              observed_generation: Optional[int] = 1,
              deleting: bool = False) -> Dict[str, Any]:
    metadata: Dict[str, Any] = {"name": name, "namespace": namespace, "uid": "zone-uid"}
    if cluster_name:
        metadata["labels"] = {LABEL_CLUSTER_NAME: cluster_name}
    if deleting:
        metadata["deletionTimestamp"] = "2025-03-14T00:00:00Z"
        metadata["finalizers"] = ["zone.dns.cav.enablers.ob/finalizer"]

    status: Dict[str, Any] = {}
    if sync_status is not None:
        status["syncStatus"] = sync_status
    if observed_generation is not None:
        status["observedGeneration"] = observed_generation

    return fake.add(ZONE, {
        "metadata": metadata,
        "spec": {"kind": "Native", "nameservers": [f"ns1.{name}"]},
        "status": status,
    })


def make_pdns_services(fake: FakeKubernetes,
                       dns_ip: Optional[str] = "1.2.3.4",
                       api_ips: Optional[List[str]] = None,
                       namespace: str = "test-ns",
                       name: str = "test-pdns") -> None:
    load_balancer: Dict[str, Any] = {}
    if dns_ip:
        load_balancer["ingress"] = [{"ip": dns_ip}]
    fake.add(SERVICE, {
        "metadata": {"name": f"{name}-dns", "namespace": namespace},
        "spec": {"type": "LoadBalancer", "clusterIP": "10.0.0.10", "clusterIPs": ["10.0.0.10"]},
        "status": {"loadBalancer": load_balancer},
    })

    if api_ips is None:
        api_ips = ["5.6.7.8"]
    fake.add(SERVICE, {
        "metadata": {"name": f"{name}-api", "namespace": namespace},
        "spec": {"type": "ClusterIP", "clusterIPs": api_ips},
        "status": {"loadBalancer": {}},
    })


def make_pdns_secret(fake: FakeKubernetes,
                     api_key: Optional[str] = "secret-api-key",
                     namespace: str = "test-ns",
                     name: str = "test-pdns") -> Dict[str, Any]:
    data = {}
    if api_key is not None:
        data["PDNS_API_KEY"] = base64.b64encode(api_key.encode()).decode()
    return fake.add(SECRET, {"metadata": {"name": name, "namespace": namespace}, "type": "Opaque", "data": data})
