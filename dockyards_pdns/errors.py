"""Exceptions raised by the dockyards-pdns reconcilers.

Every exception here is retryable: the controller runtime requeues the
request with backoff. Conditions that only mean "not ready yet" are not
exceptions; the reconcilers return a finished result for those.
"""

from typing import Optional


class ReconcileError(Exception):
    """Base class for reconciliation failures."""


class ConfigKeyMissingError(ReconcileError):
    """A required Dockyards configuration key has no value."""

    def __init__(self, key: str):
        self.key = key
        super().__init__(f"no value for config key `{key}`")


class AddressDiscoveryError(ReconcileError):
    """PowerDNS services do not expose the addresses we need yet."""


class CredentialError(ReconcileError):
    """The PowerDNS credential secret is missing the API key."""


class StoreError(ReconcileError):
    """A read or write against the Kubernetes API failed."""

    def __init__(self, message: str, status: Optional[int] = None):
        self.status = status
        super().__init__(message)


class ResourceNotFoundError(StoreError):
    """A resource the reconciler depends on does not exist."""

    def __init__(self, kind: str, namespace: Optional[str], name: str):
        self.kind = kind
        self.namespace = namespace
        self.name = name
        location = f"{namespace}/{name}" if namespace else name
        super().__init__(f"{kind} {location} not found", status=404)


class ConflictError(StoreError):
    """A concurrent writer changed the object between read and patch."""
