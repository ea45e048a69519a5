"""
Tests for the Compute Engine provider with mocked API clients.
"""

import threading
import time
from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pytest
from google.api_core import exceptions as gcp_exceptions

from reaper.cleanup.models import ResourceKind
from reaper.config import ReaperConfig
from reaper.errors import DeleteFailed, ProviderUnavailable
from reaper.providers.gcp import GCPComputeProvider, disk_status, instance_filter


def make_provider(**clients):
    return GCPComputeProvider(
        "test-project",
        zones_client=clients.get("zones", MagicMock()),
        instances_client=clients.get("instances", MagicMock()),
        disks_client=clients.get("disks", MagicMock()),
    )


class TestListing:
    """Test zone, instance and disk listing."""
    
    def test_list_zones(self):
        zones = MagicMock()
        zones.list.return_value = [SimpleNamespace(name="us-central1-a"), SimpleNamespace(name="europe-west1-b")]
        provider = make_provider(zones=zones)
        
        assert provider.list_zones(timeout=10) == ["us-central1-a", "europe-west1-b"]
        request = zones.list.call_args.kwargs["request"]
        assert request.project == "test-project"
        assert zones.list.call_args.kwargs["timeout"] == 10
    
    def test_list_zones_failure(self):
        zones = MagicMock()
        zones.list.side_effect = gcp_exceptions.ServiceUnavailable("backend down")
        
        with pytest.raises(ProviderUnavailable, match="Could not list zones"):
            make_provider(zones=zones).list_zones()
    
    def test_list_instances_pushes_status_filter(self):
        instances = MagicMock()
        instances.list.return_value = [SimpleNamespace(
            name="vm-1",
            labels={"name": "cluster1"},
            status="RUNNING",
            disks=[SimpleNamespace(source="https://www.googleapis.com/compute/v1/projects/p/zones/z1/disks/vm-1-boot")],
        )]
        provider = make_provider(instances=instances)
        
        found = list(provider.list_instances("z1", "running", timeout=5))
        
        assert len(found) == 1
        assert found[0].id == "vm-1"
        assert found[0].zone == "z1"
        assert found[0].labels == {"name": "cluster1"}
        assert found[0].attached_disks == ("vm-1-boot",)
        assert found[0].kind is ResourceKind.INSTANCE
        request = instances.list.call_args.kwargs["request"]
        assert request.zone == "z1"
        assert request.filter == "status = RUNNING"
    
    def test_list_instances_failure_names_zone(self):
        instances = MagicMock()
        instances.list.side_effect = gcp_exceptions.Forbidden("no access")
        
        with pytest.raises(ProviderUnavailable) as exc_info:
            list(make_provider(instances=instances).list_instances("z9", "RUNNING"))
        assert exc_info.value.zone == "z9"
    
    def test_list_disks_derives_availability(self):
        disks = MagicMock()
        disks.list.return_value = [
            SimpleNamespace(name="d1", labels={"name": "cluster1"}, users=[]),
            SimpleNamespace(name="d2", labels={"name": "cluster1"}, users=["projects/p/zones/z1/instances/vm"]),
        ]
        
        found = list(make_provider(disks=disks).list_disks("z1", "available"))
        
        assert [(d.id, d.status) for d in found] == [("d1", "available"), ("d2", "in-use")]
        assert all(d.kind is ResourceKind.DISK for d in found)


class TestDeletes:
    """Test idempotent deletes."""
    
    def test_delete_instance_returns_operation_name(self):
        instances = MagicMock()
        instances.delete.return_value = SimpleNamespace(name="operation-123")
        
        ack = make_provider(instances=instances).delete_instance("vm-1", "z1", timeout=7)
        
        assert ack == "operation-123"
        instances.delete.assert_called_once_with(project="test-project", zone="z1", instance="vm-1", timeout=7)
    
    def test_delete_missing_instance_is_noop(self):
        instances = MagicMock()
        instances.delete.side_effect = gcp_exceptions.NotFound("gone")
        
        assert make_provider(instances=instances).delete_instance("vm-1", "z1") is None
    
    def test_delete_disk_rejected(self):
        disks = MagicMock()
        disks.delete.side_effect = gcp_exceptions.BadRequest("disk in use")
        
        with pytest.raises(DeleteFailed) as exc_info:
            make_provider(disks=disks).delete_disk("d1", "z1")
        assert exc_info.value.resource_id == "d1"
        assert isinstance(exc_info.value.cause, gcp_exceptions.BadRequest)


class TestStatus:
    """Test single resource status lookups."""
    
    def test_instance_status(self):
        instances = MagicMock()
        instances.get.return_value = SimpleNamespace(status="STOPPING")
        
        assert make_provider(instances=instances).get_status(ResourceKind.INSTANCE, "vm-1", "z1") == "STOPPING"
    
    def test_missing_disk_status_is_none(self):
        disks = MagicMock()
        disks.get.side_effect = gcp_exceptions.NotFound("gone")
        
        assert make_provider(disks=disks).get_status(ResourceKind.DISK, "d1", "z1") is None


class TestHelpers:
    """Test filter and credential helpers."""
    
    def test_instance_filter(self):
        assert instance_filter("running") == "status = RUNNING"
        assert instance_filter(None) is None
        assert instance_filter("") is None
    
    def test_disk_status(self):
        assert disk_status(SimpleNamespace(users=None)) == "available"
        assert disk_status(SimpleNamespace(users=["vm"])) == "in-use"
    
    @patch("reaper.providers.gcp.service_account.Credentials.from_service_account_file")
    def test_from_config_loads_service_account(self, mock_from_file):
        mock_from_file.return_value = "creds"
        config = ReaperConfig(project_id="p", credentials_file="/tmp/key.json")
        
        provider = GCPComputeProvider.from_config(config)
        
        mock_from_file.assert_called_once_with("/tmp/key.json")
        assert provider.project_id == "p"
        assert provider._credentials == "creds"
    
    @patch("reaper.providers.gcp.service_account.Credentials.from_service_account_file")
    def test_from_config_missing_file(self, mock_from_file):
        mock_from_file.side_effect = FileNotFoundError("no such file")
        config = ReaperConfig(project_id="p", credentials_file="/nope.json")
        
        with pytest.raises(ProviderUnavailable, match="Could not load credentials"):
            GCPComputeProvider.from_config(config)


class TestClientCreation:
    """Test lazy client construction."""
    
    @patch("reaper.providers.gcp.compute_v1.InstancesClient")
    def test_concurrent_lookups_build_one_client(self, mock_client_cls):
        def slow_client(**kwargs):
            time.sleep(0.05)
            return MagicMock()
        
        mock_client_cls.side_effect = slow_client
        provider = GCPComputeProvider("test-project", credentials="creds")
        clients = []
        
        threads = [threading.Thread(target=lambda: clients.append(provider._get_instances_client())) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()
        
        mock_client_cls.assert_called_once_with(credentials="creds")
        assert all(client is clients[0] for client in clients)
