"""
Google Compute Engine provider.
"""

import logging
import threading
from typing import Iterator, List, Optional

from google.api_core import exceptions as gcp_exceptions
from google.auth import exceptions as auth_exceptions
from google.cloud import compute_v1
from google.oauth2 import service_account

from ..cleanup.models import ResourceDescriptor, ResourceKind
from ..config import ReaperConfig
from ..errors import DeleteFailed, ProviderUnavailable
from ..labels import normalize_labels
from .base import CloudComputeProvider

logger = logging.getLogger(__name__)

DISK_AVAILABLE = "available"
DISK_IN_USE = "in-use"

# Failures that mean "the API could not answer", as opposed to a bad request.
PROVIDER_ERRORS = (
    gcp_exceptions.GoogleAPICallError,
    gcp_exceptions.RetryError,
    auth_exceptions.GoogleAuthError,
)


def _short_name(url: str) -> str:
    """Extract the resource name from a full Compute Engine URL."""
    return url.rsplit("/", 1)[-1] if url else url


def instance_filter(status_filter: Optional[str]) -> Optional[str]:
    """Build the server-side list filter for instances."""
    if not status_filter:
        return None
    return f"status = {status_filter.upper()}"


def disk_status(disk) -> str:
    """Derive availability from the instances that reference a disk."""
    return DISK_IN_USE if list(disk.users or []) else DISK_AVAILABLE


class GCPComputeProvider(CloudComputeProvider):
    """
    CloudComputeProvider backed by the Compute Engine API.
    
    All clients share one credentials object; clients are created on first
    use unless injected, under a lock since zone listings may run on a pool.
    """

    def __init__(self, project_id: str, credentials=None,
                 zones_client: Optional[compute_v1.ZonesClient] = None,
                 instances_client: Optional[compute_v1.InstancesClient] = None,
                 disks_client: Optional[compute_v1.DisksClient] = None):
        self.project_id = project_id
        self._credentials = credentials
        self._zones_client = zones_client
        self._instances_client = instances_client
        self._disks_client = disks_client
        self._clients_lock = threading.Lock()

    @classmethod
    def from_config(cls, config: ReaperConfig) -> "GCPComputeProvider":
        """
        Create a provider from reaper configuration.
        
        Uses the service account file when one is configured, application
        default credentials otherwise.
        """
        credentials = None
        if config.credentials_file:
            try:
                credentials = service_account.Credentials.from_service_account_file(config.credentials_file)
            except (OSError, ValueError) as e:
                raise ProviderUnavailable(f"Could not load credentials from {config.credentials_file}: {e}")
        return cls(config.project_id, credentials=credentials)

    def _get_zones_client(self) -> compute_v1.ZonesClient:
        """Get or create Zones client."""
        with self._clients_lock:
            if self._zones_client is None:
                self._zones_client = compute_v1.ZonesClient(credentials=self._credentials)
        return self._zones_client

    def _get_instances_client(self) -> compute_v1.InstancesClient:
        """Get or create Instances client."""
        with self._clients_lock:
            if self._instances_client is None:
                self._instances_client = compute_v1.InstancesClient(credentials=self._credentials)
        return self._instances_client

    def _get_disks_client(self) -> compute_v1.DisksClient:
        """Get or create Disks client."""
        with self._clients_lock:
            if self._disks_client is None:
                self._disks_client = compute_v1.DisksClient(credentials=self._credentials)
        return self._disks_client

    def list_zones(self, timeout: Optional[float] = None) -> List[str]:
        try:
            request = compute_v1.ListZonesRequest(project=self.project_id)
            return [zone.name for zone in self._get_zones_client().list(request=request, timeout=timeout)]
        except PROVIDER_ERRORS as e:
            raise ProviderUnavailable(f"Could not list zones for project {self.project_id}: {e}")

    def list_instances(self, zone: str, status_filter: Optional[str] = None,
                       timeout: Optional[float] = None) -> Iterator[ResourceDescriptor]:
        request = compute_v1.ListInstancesRequest(project=self.project_id, zone=zone)
        server_filter = instance_filter(status_filter)
        if server_filter:
            request.filter = server_filter
        
        try:
            for instance in self._get_instances_client().list(request=request, timeout=timeout):
                yield ResourceDescriptor(
                    id=instance.name,
                    zone=zone,
                    labels=normalize_labels(instance.labels),
                    status=instance.status,
                    kind=ResourceKind.INSTANCE,
                    attached_disks=tuple(_short_name(d.source) for d in instance.disks),
                )
        except PROVIDER_ERRORS as e:
            raise ProviderUnavailable(f"Could not list instances in {zone}: {e}", zone=zone)

    def list_disks(self, zone: str, status_filter: Optional[str] = None,
                   timeout: Optional[float] = None) -> Iterator[ResourceDescriptor]:
        # Attachment is not expressible as a list filter; status is derived
        # from ``users`` and checked by the caller.
        request = compute_v1.ListDisksRequest(project=self.project_id, zone=zone)
        
        try:
            for disk in self._get_disks_client().list(request=request, timeout=timeout):
                yield ResourceDescriptor(
                    id=disk.name,
                    zone=zone,
                    labels=normalize_labels(disk.labels),
                    status=disk_status(disk),
                    kind=ResourceKind.DISK,
                )
        except PROVIDER_ERRORS as e:
            raise ProviderUnavailable(f"Could not list disks in {zone}: {e}", zone=zone)

    def delete_instance(self, resource_id: str, zone: str,
                        timeout: Optional[float] = None) -> Optional[str]:
        try:
            operation = self._get_instances_client().delete(
                project=self.project_id, zone=zone, instance=resource_id, timeout=timeout
            )
        except gcp_exceptions.NotFound:
            logger.debug(f"Instance {resource_id} in {zone} already gone")
            return None
        except PROVIDER_ERRORS as e:
            raise DeleteFailed(resource_id, e)
        return operation.name

    def delete_disk(self, resource_id: str, zone: str,
                    timeout: Optional[float] = None) -> Optional[str]:
        try:
            operation = self._get_disks_client().delete(
                project=self.project_id, zone=zone, disk=resource_id, timeout=timeout
            )
        except gcp_exceptions.NotFound:
            logger.debug(f"Disk {resource_id} in {zone} already gone")
            return None
        except PROVIDER_ERRORS as e:
            raise DeleteFailed(resource_id, e)
        return operation.name

    def get_status(self, kind: ResourceKind, resource_id: str, zone: str,
                   timeout: Optional[float] = None) -> Optional[str]:
        try:
            if kind is ResourceKind.INSTANCE:
                instance = self._get_instances_client().get(
                    project=self.project_id, zone=zone, instance=resource_id, timeout=timeout
                )
                return instance.status
            disk = self._get_disks_client().get(
                project=self.project_id, zone=zone, disk=resource_id, timeout=timeout
            )
            return disk_status(disk)
        except gcp_exceptions.NotFound:
            return None
        except PROVIDER_ERRORS as e:
            raise ProviderUnavailable(f"Could not look up {kind.value} {resource_id} in {zone}: {e}", zone=zone)
