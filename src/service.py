"""
Local view of a Kubernetes Service.

Only the fields the controller reads or writes are kept. Annotations and
finalizers are mutated in place and persisted through a ServiceStore.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional


@dataclass
class ServiceResource:
    """A Service object as seen by the controller."""

    namespace: str
    name: str
    uid: str
    annotations: Dict[str, str] = field(default_factory=dict)
    finalizers: List[str] = field(default_factory=list)
    deletion_timestamp: Optional[datetime] = None
    cluster_ip: str = ""
    ports: List[int] = field(default_factory=list)
    resource_version: Optional[str] = None

    @property
    def key(self) -> str:
        return f"{self.namespace}/{self.name}"

    @property
    def is_deleting(self) -> bool:
        return self.deletion_timestamp is not None

    def has_finalizer(self, finalizer: str) -> bool:
        return finalizer in self.finalizers

    def add_finalizer(self, finalizer: str) -> bool:
        """Add a finalizer, returning False if it was already present."""
        if finalizer in self.finalizers:
            return False
        self.finalizers.append(finalizer)
        return True

    def remove_finalizer(self, finalizer: str) -> bool:
        """Remove every occurrence of a finalizer, returning whether any was found."""
        if finalizer not in self.finalizers:
            return False
        self.finalizers = [f for f in self.finalizers if f != finalizer]
        return True

    @classmethod
    def from_k8s(cls, obj: Any) -> "ServiceResource":
        """
        Build a ServiceResource from a kubernetes client V1Service.

        Args:
            obj: A ``kubernetes.client.V1Service`` instance.

        Returns:
            The converted ServiceResource.
        """
        metadata = obj.metadata
        spec = obj.spec
        ports = [p.port for p in (spec.ports or [])] if spec else []
        return cls(
            namespace=metadata.namespace,
            name=metadata.name,
            uid=metadata.uid,
            annotations=dict(metadata.annotations or {}),
            finalizers=list(metadata.finalizers or []),
            deletion_timestamp=metadata.deletion_timestamp,
            cluster_ip=(spec.cluster_ip or "") if spec else "",
            ports=ports,
            resource_version=metadata.resource_version,
        )
