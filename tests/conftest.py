"""
Shared fixtures: an in-memory compute provider standing in for Compute Engine.
"""

from typing import Dict, List, Optional

import pytest

from reaper.cleanup.models import ResourceDescriptor, ResourceKind
from reaper.config import ReaperConfig
from reaper.errors import DeleteFailed, ProviderUnavailable
from reaper.providers.base import CloudComputeProvider


class FakeProvider(CloudComputeProvider):
    """Zone-partitioned inventory held in dicts; records every call."""

    def __init__(self, instances: Optional[Dict[str, List[ResourceDescriptor]]] = None,
                 disks: Optional[Dict[str, List[ResourceDescriptor]]] = None,
                 zones: Optional[List[str]] = None):
        self.instances = {zone: list(items) for zone, items in (instances or {}).items()}
        self.disks = {zone: list(items) for zone, items in (disks or {}).items()}
        self.zones = zones if zones is not None else sorted(set(self.instances) | set(self.disks))
        self.failing_zones = set()
        self.zones_unavailable = False
        self.rejected_deletes = set()
        self.deleted = []
        self.list_calls = []
        self.timeouts = []

    def list_zones(self, timeout=None):
        self.timeouts.append(timeout)
        if self.zones_unavailable:
            raise ProviderUnavailable("zones API down")
        return list(self.zones)

    def _list(self, store, zone, status_filter, timeout):
        self.list_calls.append((zone, status_filter))
        self.timeouts.append(timeout)
        if zone in self.failing_zones:
            raise ProviderUnavailable(f"listing {zone} failed", zone=zone)
        for item in store.get(zone, []):
            yield item

    def list_instances(self, zone, status_filter=None, timeout=None):
        return self._list(self.instances, zone, status_filter, timeout)

    def list_disks(self, zone, status_filter=None, timeout=None):
        return self._list(self.disks, zone, status_filter, timeout)

    def _delete(self, store, resource_id, zone, timeout):
        self.timeouts.append(timeout)
        self.deleted.append((resource_id, zone))
        if resource_id in self.rejected_deletes or (resource_id, zone) in self.rejected_deletes:
            raise DeleteFailed(resource_id, RuntimeError("quota exceeded"))
        before = len(store.get(zone, []))
        store[zone] = [r for r in store.get(zone, []) if r.id != resource_id]
        if len(store[zone]) == before:
            return None  # already gone
        return f"operation-delete-{resource_id}"

    def delete_instance(self, resource_id, zone, timeout=None):
        return self._delete(self.instances, resource_id, zone, timeout)

    def delete_disk(self, resource_id, zone, timeout=None):
        return self._delete(self.disks, resource_id, zone, timeout)

    def get_status(self, kind, resource_id, zone, timeout=None):
        store = self.instances if kind is ResourceKind.INSTANCE else self.disks
        for item in store.get(zone, []):
            if item.id == resource_id:
                return item.status
        return None


def make_instance(resource_id, zone, labels, status="RUNNING", attached_disks=()):
    return ResourceDescriptor(
        id=resource_id,
        zone=zone,
        labels=dict(labels),
        status=status,
        kind=ResourceKind.INSTANCE,
        attached_disks=tuple(attached_disks),
    )


def make_disk(resource_id, zone, labels, status="available"):
    return ResourceDescriptor(
        id=resource_id,
        zone=zone,
        labels=dict(labels),
        status=status,
        kind=ResourceKind.DISK,
    )


@pytest.fixture
def config():
    return ReaperConfig(project_id="test-project", call_timeout=30.0)


@pytest.fixture
def two_zone_provider():
    """The two-zone scenario: a and c belong to cluster1, b does not."""
    return FakeProvider(instances={
        "z1": [
            make_instance("a", "z1", {"name": "cluster1"}),
            make_instance("b", "z1", {"name": "other"}),
        ],
        "z2": [
            make_instance("c", "z2", {"name": "cluster1"}),
        ],
    })
