"""
Cloud compute providers the reaper can sweep.
"""

from .base import CloudComputeProvider
from .gcp import GCPComputeProvider

__all__ = [
    "CloudComputeProvider",
    "GCPComputeProvider",
]
