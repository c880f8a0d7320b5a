"""Data models for dockyards-pdns."""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class ResourceKind(BaseModel):
    """Identity of a Kubernetes resource type the controller reads or writes."""

    model_config = ConfigDict(frozen=True)

    kind: str = Field(..., description="Resource kind, e.g. Zone")
    group: str = Field("", description="API group, empty for the core group")
    version: str = Field(..., description="API version")
    plural: str = Field(..., description="Plural resource name")
    namespaced: bool = Field(True, description="Whether the resource is namespace scoped")

    @property
    def api_version(self) -> str:
        if self.group:
            return f"{self.group}/{self.version}"
        return self.version

    @property
    def is_core(self) -> bool:
        return self.group == ""


class OwnerReference(BaseModel):
    """A typed pointer from a child object to the parent responsible for it."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    api_version: str = Field(..., alias="apiVersion", min_length=1)
    kind: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    uid: str = Field(..., min_length=1)

    @classmethod
    def for_object(cls, obj: Dict[str, Any], kind: ResourceKind) -> "OwnerReference":
        """Build a reference to ``obj``, which must be an object of ``kind``."""
        metadata = obj.get("metadata") or {}
        return cls(
            api_version=kind.api_version,
            kind=kind.kind,
            name=metadata.get("name") or "",
            uid=metadata.get("uid") or "",
        )

    def to_dict(self) -> Dict[str, str]:
        return self.model_dump(by_alias=True)


class ZoneStatus(BaseModel):
    """Status reported by the PowerDNS operator on a Zone."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    sync_status: Optional[str] = Field(None, alias="syncStatus")
    observed_generation: Optional[int] = Field(None, alias="observedGeneration")
    sync_errors: Optional[int] = Field(None, alias="syncErrors")

    def is_in_expected_status(self, minimum_generation: int, expected_status: str) -> bool:
        return (
            self.observed_generation is not None
            and self.observed_generation >= minimum_generation
            and self.sync_status == expected_status
        )


class ProviderAddresses(BaseModel):
    """PowerDNS service addresses discovered during a single reconcile."""

    dns_ip: str = Field("", description="External LoadBalancer address serving DNS")
    api_ips: List[str] = Field(default_factory=list, description="ClusterIPs serving the PowerDNS API")


class Request(BaseModel):
    """Identifier of the object a reconciler should converge."""

    model_config = ConfigDict(frozen=True)

    namespace: Optional[str] = None
    name: str

    def __str__(self) -> str:
        if self.namespace:
            return f"{self.namespace}/{self.name}"
        return self.name


class Result(BaseModel):
    """Outcome of a successful reconcile."""

    requeue: bool = False
    requeue_after: Optional[float] = Field(None, description="Seconds before the request is retried")


class OperationResult(str, Enum):
    """What create_or_patch did to the object."""

    CREATED = "created"
    UNCHANGED = "unchanged"
    UPDATED = "updated"


class ControllerSettings(BaseModel):
    """Process level settings for the controller manager."""

    config_map: str = Field("dockyards-system", description="Name of the Dockyards ConfigMap")
    dockyards_namespace: str = Field("dockyards-system", description="Namespace of the Dockyards ConfigMap")
    kubeconfig_path: Optional[str] = Field(None, description="Path to kubeconfig file, in-cluster config when unset")
    context: Optional[str] = Field(None, description="Kubernetes context name")
    workers: Optional[int] = Field(None, ge=1, description="Objects handled concurrently, unlimited when unset")
    watch_timeout_seconds: int = Field(60, ge=1, description="Server side timeout of a single watch call")
    resync_seconds: float = Field(60.0, gt=0, description="Interval of the periodic reconcile of every object")
    backoff_base_seconds: float = Field(0.005, gt=0, description="First retry delay of a failing reconcile")
    backoff_max_seconds: float = Field(1000.0, gt=0, description="Upper bound of the retry delay")
    health_host: str = Field("0.0.0.0", description="Health server bind address")
    health_port: int = Field(8080, description="Health server port")


class ControllerStatus(BaseModel):
    """Counters for one controller, served by the health API."""

    name: str
    kind: str
    reconciles: int = 0
    errors: int = 0
    last_error: Optional[str] = None
    last_reconcile: Optional[datetime] = None


class ManagerStatus(BaseModel):
    """Overall manager state."""

    started: bool = False
    controllers: List[ControllerStatus] = Field(default_factory=list)
