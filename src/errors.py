"""
Error types raised during reconciliation.

The reconciler raises these and never swallows them; the controller logs
the failure against the affected service and requeues it with backoff.
"""

from typing import Optional


class ReconcileError(Exception):
    """Base class for all reconciliation failures."""


class EndpointSpecError(ReconcileError):
    """The service annotations do not describe a valid endpoint service."""


class AmbiguousEndpointServiceError(ReconcileError):
    """More than one endpoint service carries the same correlation tags."""

    def __init__(self, service_key: str, service_ids: list):
        self.service_key = service_key
        self.service_ids = service_ids
        super().__init__(
            f"multiple endpoint services found for service {service_key}: "
            f"{', '.join(service_ids)}"
        )


class ArcherAPIError(ReconcileError):
    """The Archer API returned an unexpected response."""

    def __init__(self, status: int, message: str, method: Optional[str] = None):
        self.status = status
        self.message = message
        self.method = method
        prefix = f"{method} failed" if method else "Archer request failed"
        super().__init__(f"{prefix}: {status} - {message}")


class EndpointServiceNotFound(ArcherAPIError):
    """The referenced endpoint service does not exist."""


class ServicePersistenceError(ReconcileError):
    """Writing the Service object back to the cluster failed."""
