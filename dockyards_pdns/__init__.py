"""dockyards-pdns: PowerDNS zones, records and external-dns workloads for Dockyards clusters."""

__version__ = "0.1.0"

# Lazy imports to avoid loading the Kubernetes client for CLI usage
__all__ = [
    "ClusterReconciler",
    "ZoneReconciler",
    "ResourceStore",
    "DockyardsConfig",
]

def __getattr__(name):
    if name == "ClusterReconciler":
        from .cluster_controller import ClusterReconciler
        return ClusterReconciler
    elif name == "ZoneReconciler":
        from .zone_controller import ZoneReconciler
        return ZoneReconciler
    elif name == "ResourceStore":
        from .store import ResourceStore
        return ResourceStore
    elif name == "DockyardsConfig":
        from .config import DockyardsConfig
        return DockyardsConfig
    raise AttributeError(f"module '{__name__}' has no attribute '{name}'")
