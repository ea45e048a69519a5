"""
Resource sweep: find labelled resources in every zone and delete them.
"""

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from contextlib import closing
from typing import TYPE_CHECKING, Callable, Iterator, List, Optional, Tuple

from ..config import ReaperConfig
from ..errors import Cancelled, DeleteFailed, ProviderUnavailable
from ..labels import format_labels
from .models import ResourceDescriptor, ResourceKind, SweepCriteria, SweepResult, SweepStatus

if TYPE_CHECKING:
    from ..providers.base import CloudComputeProvider

logger = logging.getLogger(__name__)

ZoneListing = Tuple[str, List[ResourceDescriptor], Optional[ProviderUnavailable]]


class ResourceReaper:
    """
    Deletes instances and disks that carry a given label.
    
    A sweep lists every zone, keeps resources whose label (and status)
    match, and issues one delete request per match. Deletes are
    acknowledged, not awaited; use ``wait_for_deletion`` to confirm.
    """

    def __init__(self, provider: "CloudComputeProvider", config: ReaperConfig):
        self.provider = provider
        self.config = config

    def sweep_instances(self, criteria: SweepCriteria,
                        cancel_event: Optional[threading.Event] = None) -> SweepResult:
        """
        Delete every instance matching the criteria.
        
        Args:
            criteria: Label and optional status to match (status defaults to RUNNING)
            cancel_event: Set by the caller to stop the sweep early
            
        Returns:
            SweepResult with matched ids, acknowledged deletes and skipped zones
            
        Raises:
            ProviderUnavailable: If zones cannot be enumerated, or a zone
                listing fails while continue_on_zone_failure is off
        """
        return self._sweep(ResourceKind.INSTANCE, criteria, cancel_event)

    def sweep_disks(self, criteria: SweepCriteria,
                    cancel_event: Optional[threading.Event] = None) -> SweepResult:
        """Delete every disk matching the criteria (status defaults to unattached)."""
        return self._sweep(ResourceKind.DISK, criteria, cancel_event)

    def terminate(self, resource_id: str, zone: str) -> Optional[str]:
        """
        Request deletion of an instance.
        
        Returns:
            Provider acknowledgment, or None if the instance was already gone
            
        Raises:
            DeleteFailed: If the request was rejected
        """
        return self._request_delete(self.provider.delete_instance, resource_id, zone)

    def delete_volume(self, resource_id: str, zone: str) -> Optional[str]:
        """Request deletion of a disk. Same contract as terminate."""
        return self._request_delete(self.provider.delete_disk, resource_id, zone)

    def wait_for_deletion(self, kind: ResourceKind, resource_id: str, zone: str,
                          timeout: float = 300.0, poll_interval: float = 5.0) -> bool:
        """
        Poll until a resource no longer exists.
        
        Args:
            kind: Resource kind
            resource_id: Resource name
            zone: Zone the resource lives in
            timeout: Seconds to wait in total
            poll_interval: Seconds between status checks
            
        Returns:
            True if the resource is gone, False if it still exists at the deadline
        """
        deadline = time.monotonic() + timeout
        
        while True:
            status = self.provider.get_status(kind, resource_id, zone, timeout=self.config.call_timeout)
            if status is None:
                logger.info(f"{kind.value} {resource_id} in {zone} is gone")
                return True
            
            if time.monotonic() >= deadline:
                logger.warning(f"{kind.value} {resource_id} in {zone} still {status} after {timeout}s")
                return False
            
            logger.debug(f"{kind.value} {resource_id} in {zone} is {status}, waiting...")
            time.sleep(poll_interval)

    def _request_delete(self, delete: Callable[..., Optional[str]], resource_id: str, zone: str) -> Optional[str]:
        try:
            return delete(resource_id, zone, timeout=self.config.call_timeout)
        except DeleteFailed:
            raise
        except Exception as e:
            raise DeleteFailed(resource_id, e) from e

    def _default_status(self, kind: ResourceKind) -> Optional[str]:
        if kind is ResourceKind.INSTANCE:
            return self.config.instance_status_filter
        return self.config.disk_status_filter

    def _sweep(self, kind: ResourceKind, criteria: SweepCriteria,
               cancel_event: Optional[threading.Event]) -> SweepResult:
        default_status = self._default_status(kind)
        status_filter = criteria.effective_status(default_status)
        result = SweepResult(kind=kind)
        
        logger.info(
            f"Sweeping {kind.value}s with {criteria.label_key}={criteria.label_value}"
            f" (status: {status_filter or 'any'}) in project {self.config.project_id}"
        )
        
        zones = self.provider.list_zones(timeout=self.config.call_timeout)
        seen = set()
        
        try:
            with closing(self._zone_listings(kind, zones, status_filter, cancel_event)) as listings:
                for zone, resources, error in listings:
                    result.zones_scanned += 1
                    
                    if error is not None:
                        if not self.config.continue_on_zone_failure:
                            raise error
                        logger.warning(f"Skipping zone {zone}: {error}")
                        result.skipped_zones.append(zone)
                        continue
                    
                    for resource in resources:
                        if not criteria.matches(resource, default_status):
                            continue
                        if resource.qualified_id in seen:
                            continue
                        
                        _check_cancelled(cancel_event)
                        seen.add(resource.qualified_id)
                        result.record_match(resource.qualified_id)
                        self._delete_match(resource, result)
        except Cancelled:
            logger.warning(f"{kind.value} sweep cancelled after {result.matched_count} matches")
            result.status = SweepStatus.CANCELLED
        
        result.finish()
        logger.info(result.summary())
        return result

    def _delete_match(self, resource: ResourceDescriptor, result: SweepResult) -> None:
        logger.info(f"Matched {resource.kind.value} {resource.id} in {resource.zone} [{format_labels(resource.labels)}]")
        if resource.attached_disks:
            logger.info(f"Instance {resource.id} has attached disks: {', '.join(resource.attached_disks)}")
        
        try:
            if resource.kind is ResourceKind.DISK:
                ack = self.delete_volume(resource.id, resource.zone)
            else:
                ack = self.terminate(resource.id, resource.zone)
        except DeleteFailed as e:
            result.failed[resource.qualified_id] = str(e.cause)
            logger.error(f"Failed to delete {resource.kind.value} {resource.id} in {resource.zone}: {e.cause}")
            return
        
        result.acknowledged.append(resource.qualified_id)
        logger.info(f"Requested deletion of {resource.kind.value} {resource.id} in {resource.zone} (ack: {ack})")

    def _list_zone(self, kind: ResourceKind, zone: str, status_filter: Optional[str]) -> ZoneListing:
        if kind is ResourceKind.INSTANCE:
            lister = self.provider.list_instances
        else:
            lister = self.provider.list_disks
        
        try:
            return zone, list(lister(zone, status_filter, timeout=self.config.call_timeout)), None
        except ProviderUnavailable as e:
            return zone, [], e

    def _zone_listings(self, kind: ResourceKind, zones: List[str], status_filter: Optional[str],
                       cancel_event: Optional[threading.Event]) -> Iterator[ZoneListing]:
        """Yield listings in zone order, fetching them concurrently when configured."""
        workers = min(self.config.listing_workers, len(zones))
        
        if workers <= 1:
            for zone in zones:
                _check_cancelled(cancel_event)
                yield self._list_zone(kind, zone, status_filter)
            return
        
        executor = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="reaper-list")
        try:
            futures = [executor.submit(self._list_zone, kind, zone, status_filter) for zone in zones]
            for future in futures:
                _check_cancelled(cancel_event)
                yield future.result()
        finally:
            executor.shutdown(wait=True, cancel_futures=True)


def _check_cancelled(cancel_event: Optional[threading.Event]) -> None:
    if cancel_event is not None and cancel_event.is_set():
        raise Cancelled("Sweep cancelled by caller")
