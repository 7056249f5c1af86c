"""
Finalizer lifecycle for tracked Services.

The finalizer keeps a Service from disappearing until its endpoint service
has been cleaned up:

    UNTRACKED --track--> TRACKED --deletion requested--> CLEANING --release--> RELEASED

The transitions only mutate the in-memory object; callers persist it.
"""

import logging
from enum import Enum

from service import ServiceResource

logger = logging.getLogger(__name__)


class FinalizerState(Enum):
    """Where a Service is in its finalizer lifecycle."""

    UNTRACKED = "untracked"
    TRACKED = "tracked"
    CLEANING = "cleaning"
    RELEASED = "released"


class FinalizerLifecycle:
    """State machine over a Service's finalizer set for a single marker."""

    def __init__(self, marker: str):
        self.marker = marker

    def state(self, service: ServiceResource) -> FinalizerState:
        present = service.has_finalizer(self.marker)
        if service.is_deleting:
            return FinalizerState.CLEANING if present else FinalizerState.RELEASED
        return FinalizerState.TRACKED if present else FinalizerState.UNTRACKED

    def track(self, service: ServiceResource) -> bool:
        """
        Register the finalizer on a Service that is not being deleted.

        Returns:
            True if the Service changed and must be persisted.

        Raises:
            ValueError: If the Service is already being deleted
        """
        if service.is_deleting:
            raise ValueError(f"cannot track {service.key}: deletion in progress")
        changed = service.add_finalizer(self.marker)
        if changed:
            logger.info(f"Added finalizer {self.marker} to {service.key}")
        return changed

    def release(self, service: ServiceResource) -> bool:
        """
        Drop the finalizer once cleanup has run.

        Returns:
            True if the Service changed and must be persisted.
        """
        changed = service.remove_finalizer(self.marker)
        if changed:
            logger.info(f"Removed finalizer {self.marker} from {service.key}")
        return changed
