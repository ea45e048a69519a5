"""
Sweep utilities for finding and deleting orphaned labelled resources.
"""

from .models import ResourceDescriptor, ResourceKind, SweepCriteria, SweepResult, SweepStatus
from .sweep import ResourceReaper

__all__ = [
    "ResourceReaper",
    "ResourceDescriptor",
    "ResourceKind",
    "SweepCriteria",
    "SweepResult",
    "SweepStatus",
]
