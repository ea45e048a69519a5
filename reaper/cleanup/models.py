"""
Data models for resource sweeps.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterator, List, Optional, Tuple

from ..labels import label_matches


def qualified_id(zone: str, name: str) -> str:
    """Zone-qualified identifier; Compute Engine names are only unique per zone."""
    return f"{zone}/{name}"


def split_qualified_id(resource_id: str) -> Tuple[str, str]:
    """Inverse of qualified_id: returns (zone, name)."""
    zone, _, name = resource_id.partition("/")
    return zone, name


class ResourceKind(Enum):
    """Kinds of resources a sweep can target."""
    INSTANCE = "instance"
    DISK = "disk"


class SweepStatus(Enum):
    """How a sweep ended."""
    COMPLETE = "complete"
    PARTIAL = "partial"  # zones skipped or deletes rejected
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class ResourceDescriptor:
    """Snapshot of a VM or disk as returned by a listing call."""
    id: str
    zone: str
    labels: Dict[str, str]
    status: str
    kind: ResourceKind = ResourceKind.INSTANCE
    attached_disks: Tuple[str, ...] = ()

    @property
    def qualified_id(self) -> str:
        return qualified_id(self.zone, self.id)


@dataclass(frozen=True)
class SweepCriteria:
    """What qualifies a resource for deletion."""
    label_key: str
    label_value: str
    status_filter: Optional[str] = None

    def __post_init__(self):
        if not self.label_key or not self.label_key.strip():
            raise ValueError("label_key must not be empty")
        if not self.label_value or not self.label_value.strip():
            raise ValueError("label_value must not be empty")

    def effective_status(self, default: Optional[str]) -> Optional[str]:
        """Status filter to apply, falling back to the kind's default."""
        return self.status_filter if self.status_filter is not None else default

    def matches(self, resource: ResourceDescriptor, default_status: Optional[str] = None) -> bool:
        """
        Check a resource against the label and status filters.
        
        Args:
            resource: Listed resource
            default_status: Status filter used when the criteria carry none
            
        Returns:
            True if the resource should be deleted
        """
        if not label_matches(resource.labels, self.label_key, self.label_value):
            return False
        
        status = self.effective_status(default_status)
        if status and resource.status.lower() != status.lower():
            return False
        
        return True


@dataclass
class SweepResult:
    """
    Outcome of one sweep.
    
    ``resource_ids`` holds every matched resource as a zone-qualified
    ``zone/name`` id, in discovery order, for which a delete was requested.
    ``acknowledged`` is the subset the provider accepted; ``failed`` maps
    the rest to the rejection cause.
    """
    kind: ResourceKind
    resource_ids: List[str] = field(default_factory=list)
    acknowledged: List[str] = field(default_factory=list)
    failed: Dict[str, str] = field(default_factory=dict)
    skipped_zones: List[str] = field(default_factory=list)
    zones_scanned: int = 0
    status: SweepStatus = SweepStatus.COMPLETE

    def __iter__(self) -> Iterator[str]:
        return iter(self.resource_ids)

    def __len__(self) -> int:
        return len(self.resource_ids)

    @property
    def names(self) -> List[str]:
        """Bare resource names, in discovery order."""
        return [split_qualified_id(rid)[1] for rid in self.resource_ids]

    @property
    def matched_count(self) -> int:
        return len(self.resource_ids)

    @property
    def deleted_count(self) -> int:
        return len(self.acknowledged)

    @property
    def skipped_zone_count(self) -> int:
        return len(self.skipped_zones)

    def record_match(self, resource_id: str) -> None:
        self.resource_ids.append(resource_id)

    def finish(self) -> "SweepResult":
        """Settle the final status unless the sweep was cancelled."""
        if self.status is not SweepStatus.CANCELLED:
            if self.skipped_zones or self.failed:
                self.status = SweepStatus.PARTIAL
            else:
                self.status = SweepStatus.COMPLETE
        return self

    def summary(self) -> str:
        """One line human-readable summary."""
        return (
            f"{self.kind.value}s: {self.matched_count} matched, "
            f"{self.deleted_count} delete requests acknowledged, "
            f"{len(self.failed)} failed, "
            f"{self.skipped_zone_count} zones skipped "
            f"({self.zones_scanned} scanned) [{self.status.value}]"
        )
