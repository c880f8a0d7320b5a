"""Resource kinds, configuration keys and DNS constants shared by the controllers."""

from .models import ResourceKind

# Dockyards configuration keys
KEY_MANAGEMENT_DOMAIN = "managementDomain"
KEY_PDNS_NAME = "pdnsName"
KEY_PDNS_NAMESPACE = "pdnsNamespace"
KEY_PUBLIC_NAMESPACE = "publicNamespace"

DOCKYARDS_GROUP = "dockyards.io"
PDNS_GROUP = "dns.cav.enablers.ob"

CLUSTER = ResourceKind(kind="Cluster", group=DOCKYARDS_GROUP, version="v1alpha3", plural="clusters")
ORGANIZATION = ResourceKind(
    kind="Organization", group=DOCKYARDS_GROUP, version="v1alpha3", plural="organizations", namespaced=False
)
WORKLOAD = ResourceKind(kind="Workload", group=DOCKYARDS_GROUP, version="v1alpha3", plural="workloads")
ZONE = ResourceKind(kind="Zone", group=PDNS_GROUP, version="v1alpha2", plural="zones")
RRSET = ResourceKind(kind="RRset", group=PDNS_GROUP, version="v1alpha2", plural="rrsets")
SERVICE = ResourceKind(kind="Service", version="v1", plural="services")
SECRET = ResourceKind(kind="Secret", version="v1", plural="secrets")
CONFIG_MAP = ResourceKind(kind="ConfigMap", version="v1", plural="configmaps")

WORKLOAD_TEMPLATE_KIND = "WorkloadTemplate"

LABEL_CLUSTER_NAME = "dockyards.io/cluster-name"
ANNOTATION_SKIP_REMEDIATION = "dockyards.io/skip-remediation"
PROVENIENCE_DOCKYARDS = "Dockyards"

ZONE_KIND_NATIVE = "Native"
ZONE_STATUS_SUCCEEDED = "Succeeded"

WORKLOAD_TARGET_NAMESPACE = "external-dns"
WORKLOAD_NAME_SUFFIX = "-external-dns"
SECRET_PDNS_API_KEY = "PDNS_API_KEY"
PDNS_API_PORT = 8081

# TTLs and SOA timers, in seconds
ZONE_TTL = 300
SOA_TTL = 3600
SOA_REFRESH_INTERVAL = 10800
SOA_RETRY_INTERVAL = 3600
SOA_EXPIRE_TIME = 604800
SOA_NEGATIVE_CACHE = 3600
