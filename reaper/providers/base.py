"""
Provider interface the reaper sweeps through.
"""

from abc import ABC, abstractmethod
from typing import Iterable, List, Optional

from ..cleanup.models import ResourceDescriptor, ResourceKind


class CloudComputeProvider(ABC):
    """
    An already-authenticated handle on a zone-partitioned compute inventory.
    
    Listings are paginated internally; callers see a flat iterable that may
    fetch pages lazily. Deletes are idempotent: removing a resource that no
    longer exists is not an error.
    """

    @abstractmethod
    def list_zones(self, timeout: Optional[float] = None) -> List[str]:
        """
        List every zone known to the provider.
        
        Raises:
            ProviderUnavailable: If zones cannot be enumerated
        """
        pass

    @abstractmethod
    def list_instances(self, zone: str, status_filter: Optional[str] = None,
                       timeout: Optional[float] = None) -> Iterable[ResourceDescriptor]:
        """
        List instances in a zone, optionally narrowed server-side by status.
        
        Raises:
            ProviderUnavailable: If the zone cannot be listed
        """
        pass

    @abstractmethod
    def list_disks(self, zone: str, status_filter: Optional[str] = None,
                   timeout: Optional[float] = None) -> Iterable[ResourceDescriptor]:
        """Same as list_instances, for disks."""
        pass

    @abstractmethod
    def delete_instance(self, resource_id: str, zone: str,
                        timeout: Optional[float] = None) -> Optional[str]:
        """
        Request deletion of an instance.
        
        Returns:
            Acknowledgment token, or None if the instance was already gone
            
        Raises:
            DeleteFailed: If the provider rejected the request
        """
        pass

    @abstractmethod
    def delete_disk(self, resource_id: str, zone: str,
                    timeout: Optional[float] = None) -> Optional[str]:
        """Same as delete_instance, for disks."""
        pass

    @abstractmethod
    def get_status(self, kind: ResourceKind, resource_id: str, zone: str,
                   timeout: Optional[float] = None) -> Optional[str]:
        """
        Look up a single resource's current status.
        
        Returns:
            Status string, or None if the resource does not exist
        """
        pass
