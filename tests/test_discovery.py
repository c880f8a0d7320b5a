"""Tests for PowerDNS address discovery."""

import pytest

from dockyards_pdns.config import DockyardsConfig
from dockyards_pdns.consts import SERVICE
from dockyards_pdns.discovery import discover_provider_addresses
from dockyards_pdns.errors import ConfigKeyMissingError, ResourceNotFoundError

from conftest import make_pdns_services


class TestDiscoverProviderAddresses:
    """Tests for discover_provider_addresses."""

    @pytest.mark.asyncio
    async def test_discovers_addresses(self, store, fake_kube, dockyards_config):
        """Test DNS and API addresses are read from the PowerDNS services."""
        make_pdns_services(fake_kube, dns_ip="1.2.3.4", api_ips=["5.6.7.8", "fd00::8"])

        addresses = await discover_provider_addresses(store, dockyards_config)

        assert addresses.dns_ip == "1.2.3.4"
        assert addresses.api_ips == ["5.6.7.8", "fd00::8"]

    @pytest.mark.asyncio
    async def test_unassigned_load_balancer(self, store, fake_kube, dockyards_config):
        """Test a LoadBalancer without ingress yields an empty DNS address."""
        make_pdns_services(fake_kube, dns_ip=None)

        addresses = await discover_provider_addresses(store, dockyards_config)

        assert addresses.dns_ip == ""
        assert addresses.api_ips == ["5.6.7.8"]

    @pytest.mark.asyncio
    async def test_hostname_only_ingress(self, store, fake_kube, dockyards_config):
        """Test ingress entries without an IP are skipped."""
        make_pdns_services(fake_kube)
        dns_service = fake_kube.object(SERVICE, "test-ns", "test-pdns-dns")
        dns_service["status"]["loadBalancer"]["ingress"] = [{"hostname": "lb.example.com"}]

        addresses = await discover_provider_addresses(store, dockyards_config)

        assert addresses.dns_ip == ""

    @pytest.mark.asyncio
    async def test_cluster_ip_fallback(self, store, fake_kube, dockyards_config):
        """Test clusterIP is used when clusterIPs is absent."""
        make_pdns_services(fake_kube)
        api_service = fake_kube.object(SERVICE, "test-ns", "test-pdns-api")
        api_service["spec"] = {"clusterIP": "10.96.0.20"}

        addresses = await discover_provider_addresses(store, dockyards_config)

        assert addresses.api_ips == ["10.96.0.20"]

    @pytest.mark.asyncio
    async def test_headless_api_service(self, store, fake_kube, dockyards_config):
        """Test a headless API service yields no API addresses."""
        make_pdns_services(fake_kube, api_ips=["None"])

        addresses = await discover_provider_addresses(store, dockyards_config)

        assert addresses.api_ips == []

    @pytest.mark.asyncio
    async def test_missing_service(self, store, dockyards_config):
        """Test a missing service is reported."""
        with pytest.raises(ResourceNotFoundError, match="test-pdns-dns"):
            await discover_provider_addresses(store, dockyards_config)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("missing_key", ["pdnsName", "pdnsNamespace"])
    async def test_missing_config(self, store, fake_kube, missing_key):
        """Test discovery needs the PowerDNS name and namespace."""
        make_pdns_services(fake_kube)
        values = {"pdnsName": "test-pdns", "pdnsNamespace": "test-ns"}
        values[missing_key] = ""

        with pytest.raises(ConfigKeyMissingError, match=missing_key):
            await discover_provider_addresses(store, DockyardsConfig(values))
