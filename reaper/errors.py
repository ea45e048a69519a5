"""
Exceptions raised while sweeping cloud resources.
"""

from typing import Optional


class ReaperError(Exception):
    """Base class for all reaper errors."""


class ProviderUnavailable(ReaperError):
    """The provider could not enumerate zones or resources."""

    def __init__(self, message: str, zone: Optional[str] = None):
        super().__init__(message)
        self.zone = zone


class DeleteFailed(ReaperError):
    """A delete request for a specific resource was rejected."""

    def __init__(self, resource_id: str, cause: Exception):
        super().__init__(f"Failed to delete {resource_id}: {cause}")
        self.resource_id = resource_id
        self.cause = cause


class Cancelled(ReaperError):
    """The caller aborted a sweep before it finished."""
