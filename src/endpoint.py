"""
Endpoint service models and desired-state extraction.

The desired endpoint service is recomputed from the Service annotations on
every reconcile and is never persisted. Optional fields use ``None`` for
"unset" so the diff can tell an omitted field from an explicit ``False``.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from annotations import (
    ANNOTATION_AVAILABILITY_ZONE,
    ANNOTATION_NETWORK_ID,
    ANNOTATION_PORT,
    ANNOTATION_PROXY_PROTOCOL,
    ANNOTATION_REQUIRE_APPROVAL,
    ANNOTATION_SERVICE_NAME,
    ANNOTATION_TAGS,
    ANNOTATION_VISIBILITY,
    DEFAULT_VISIBILITY,
    get_annotation_boolean,
    get_annotation_string,
    make_annotation,
)
from errors import EndpointSpecError
from service import ServiceResource

# Marks endpoint services owned by this controller
SYSTEM_TAG = "kubernetes"

UPDATABLE_FIELDS = (
    "description",
    "enabled",
    "ip_addresses",
    "name",
    "port",
    "proxy_protocol",
    "require_approval",
    "tags",
    "visibility",
)


def correlation_tags(uid: str) -> List[str]:
    """Tags that tie an endpoint service to exactly one Service object."""
    return [SYSTEM_TAG, uid]


@dataclass
class EndpointServiceSpec:
    """Desired endpoint service, derived from a Service."""

    name: str
    description: str
    port: int
    ip_addresses: List[str] = field(default_factory=list)
    tags: List[str] = field(default_factory=list)
    network_id: Optional[str] = None
    visibility: Optional[str] = DEFAULT_VISIBILITY
    proxy_protocol: Optional[bool] = None
    require_approval: Optional[bool] = None
    availability_zone: Optional[str] = None
    enabled: Optional[bool] = None

    def to_dict(self) -> Dict[str, Any]:
        """Request body for creating the endpoint service."""
        body = {
            "name": self.name,
            "description": self.description,
            "port": self.port,
            "ip_addresses": list(self.ip_addresses),
            "tags": list(self.tags),
            "network_id": self.network_id,
            "visibility": self.visibility,
            "proxy_protocol": self.proxy_protocol,
            "require_approval": self.require_approval,
            "availability_zone": self.availability_zone,
            "enabled": self.enabled,
        }
        return {k: v for k, v in body.items() if v is not None}

    def updatable(self) -> Dict[str, Any]:
        """Request body for updating, restricted to the updatable fields."""
        body = self.to_dict()
        return {k: v for k, v in body.items() if k in UPDATABLE_FIELDS}


@dataclass
class RemoteEndpointService:
    """An endpoint service as returned by the Archer API."""

    id: str
    name: str = ""
    description: str = ""
    port: int = 0
    ip_addresses: List[str] = field(default_factory=list)
    tags: List[str] = field(default_factory=list)
    network_id: Optional[str] = None
    visibility: Optional[str] = None
    proxy_protocol: Optional[bool] = None
    require_approval: Optional[bool] = None
    availability_zone: Optional[str] = None
    enabled: Optional[bool] = None
    status: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RemoteEndpointService":
        return cls(
            id=data["id"],
            name=data.get("name") or "",
            description=data.get("description") or "",
            port=data.get("port") or 0,
            ip_addresses=list(data.get("ip_addresses") or []),
            tags=list(data.get("tags") or []),
            network_id=data.get("network_id"),
            visibility=data.get("visibility"),
            proxy_protocol=data.get("proxy_protocol"),
            require_approval=data.get("require_approval"),
            availability_zone=data.get("availability_zone"),
            enabled=data.get("enabled"),
            status=data.get("status"),
        )


def _desired_port(service: ServiceResource, prefix: str) -> int:
    port, ok = get_annotation_string(service, make_annotation(prefix, ANNOTATION_PORT))
    if ok:
        try:
            return int(port)
        except ValueError:
            raise EndpointSpecError(
                f"service {service.key} has invalid port annotation {port!r}"
            ) from None
    if service.ports:
        return service.ports[0]
    raise EndpointSpecError(f"service {service.key} has no ports")


def build_desired_spec(
    service: ServiceResource, prefix: str, default_network_id: Optional[str]
) -> EndpointServiceSpec:
    """
    Compute the desired endpoint service from a Service's annotations.

    Args:
        service: The Service to derive the endpoint service from
        prefix: Annotation key prefix, e.g. "cloud.sap"
        default_network_id: Network used when no network annotation is set

    Returns:
        The desired EndpointServiceSpec

    Raises:
        EndpointSpecError: If no valid port can be determined
    """
    spec = EndpointServiceSpec(
        name=f"{service.namespace}-{service.name}",
        description=f"Kubernetes service {service.namespace}/{service.name}",
        port=_desired_port(service, prefix),
        ip_addresses=[service.cluster_ip],
        tags=correlation_tags(service.uid),
        network_id=default_network_id,
    )

    name, ok = get_annotation_string(
        service, make_annotation(prefix, ANNOTATION_SERVICE_NAME)
    )
    if ok:
        spec.name = name

    network_id, ok = get_annotation_string(
        service, make_annotation(prefix, ANNOTATION_NETWORK_ID)
    )
    if ok:
        spec.network_id = network_id

    if get_annotation_boolean(
        service, make_annotation(prefix, ANNOTATION_PROXY_PROTOCOL)
    ):
        spec.proxy_protocol = True
    if get_annotation_boolean(
        service, make_annotation(prefix, ANNOTATION_REQUIRE_APPROVAL)
    ):
        spec.require_approval = True

    tags, ok = get_annotation_string(service, make_annotation(prefix, ANNOTATION_TAGS))
    if ok:
        spec.tags.extend(tags.split())

    zone, ok = get_annotation_string(
        service, make_annotation(prefix, ANNOTATION_AVAILABILITY_ZONE)
    )
    if ok:
        spec.availability_zone = zone

    visibility, ok = get_annotation_string(
        service, make_annotation(prefix, ANNOTATION_VISIBILITY)
    )
    if ok:
        spec.visibility = visibility

    return spec
