"""Tests for data models."""

import pytest
from pydantic import ValidationError

from dockyards_pdns.consts import CLUSTER, SERVICE, ZONE
from dockyards_pdns.models import (
    ControllerSettings,
    OwnerReference,
    Request,
    ResourceKind,
    ZoneStatus,
)


class TestResourceKind:
    """Tests for ResourceKind model."""

    def test_api_version(self):
        """Test group qualified and core API versions."""
        assert CLUSTER.api_version == "dockyards.io/v1alpha3"
        assert ZONE.api_version == "dns.cav.enablers.ob/v1alpha2"
        assert SERVICE.api_version == "v1"
        assert SERVICE.is_core
        assert not ZONE.is_core

    def test_frozen(self):
        """Test kinds are immutable."""
        with pytest.raises(ValidationError):
            ZONE.plural = "other"

    def test_hashable(self):
        """Test kinds can be used as keys."""
        kind = ResourceKind(kind="Zone", group="dns.cav.enablers.ob", version="v1alpha2", plural="zones")
        assert {kind: 1}[ZONE] == 1


class TestOwnerReference:
    """Tests for OwnerReference model."""

    def test_for_object(self):
        """Test a reference is built from object metadata."""
        cluster = {"metadata": {"name": "test-cluster", "namespace": "ns", "uid": "abc123"}}

        reference = OwnerReference.for_object(cluster, CLUSTER)

        assert reference.to_dict() == {
            "apiVersion": "dockyards.io/v1alpha3",
            "kind": "Cluster",
            "name": "test-cluster",
            "uid": "abc123",
        }

    def test_missing_uid_rejected(self):
        """Test a reference without a uid is invalid."""
        with pytest.raises(ValidationError):
            OwnerReference.for_object({"metadata": {"name": "test-cluster"}}, CLUSTER)


class TestZoneStatus:
    """Tests for ZoneStatus model."""

    @pytest.mark.parametrize("status,expected", [
        ({"syncStatus": "Succeeded", "observedGeneration": 1}, True),
        ({"syncStatus": "Succeeded", "observedGeneration": 3}, True),
        ({"syncStatus": "Succeeded", "observedGeneration": 0}, False),
        ({"syncStatus": "Succeeded"}, False),
        ({"syncStatus": "Failed", "observedGeneration": 1}, False),
        ({}, False),
    ])
    def test_is_in_expected_status(self, status, expected):
        """Test the zone is synced only at generation one or later with status Succeeded."""
        assert ZoneStatus.model_validate(status).is_in_expected_status(1, "Succeeded") is expected

    def test_ignores_unknown_fields(self):
        """Test extra status fields from the operator are ignored."""
        status = ZoneStatus.model_validate({"syncStatus": "Succeeded", "syncErrors": 0, "serial": 2025031401})
        assert status.sync_errors == 0


class TestRequest:
    """Tests for Request model."""

    def test_str(self):
        """Test namespaced and cluster scoped requests render as keys."""
        assert str(Request(namespace="ns", name="zone")) == "ns/zone"
        assert str(Request(name="org")) == "org"

    def test_equality(self):
        """Test requests compare by value."""
        assert Request(namespace="ns", name="zone") == Request(namespace="ns", name="zone")
        assert len({Request(namespace="ns", name="zone"), Request(namespace="ns", name="zone")}) == 1


class TestControllerSettings:
    """Tests for ControllerSettings model."""

    def test_defaults(self):
        """Test default settings."""
        settings = ControllerSettings()
        assert settings.config_map == "dockyards-system"
        assert settings.dockyards_namespace == "dockyards-system"
        assert settings.kubeconfig_path is None
        assert settings.workers is None
        assert settings.resync_seconds == 60.0
        assert settings.health_port == 8080

    def test_workers_must_be_positive(self):
        """Test a controller needs at least one worker."""
        with pytest.raises(ValidationError):
            ControllerSettings(workers=0)
