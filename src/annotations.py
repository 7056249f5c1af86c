"""
Service annotations understood by the controller.

Every key is qualified by a configurable prefix, e.g. ``cloud.sap/archer-create``.
"""

from typing import Tuple

from service import ServiceResource

# Boolean indicating whether an endpoint service needs to be created. Required.
ANNOTATION_CREATE = "archer-create"

# Network id for the endpoint service. Defaults to the configured network.
ANNOTATION_NETWORK_ID = "archer-network-id"

# Name of the endpoint service. Defaults to "<namespace>-<name>".
ANNOTATION_SERVICE_NAME = "archer-service-name"

# Boolean enabling the TCP PROXY protocol. Defaults to "false".
ANNOTATION_PROXY_PROTOCOL = "archer-proxy-protocol"

# Visibility of the endpoint service, "public" or "private". Defaults to "public".
ANNOTATION_VISIBILITY = "archer-visibility"

# Boolean requiring explicit project approval. Defaults to "false".
ANNOTATION_REQUIRE_APPROVAL = "archer-require-approval"

# Space separated list of additional tags.
ANNOTATION_TAGS = "archer-tags"

# Pins the endpoint service to an availability zone.
ANNOTATION_AVAILABILITY_ZONE = "archer-availability-zone"

# Service port. Defaults to the first port of the service.
ANNOTATION_PORT = "archer-port"

# Written by the controller after creation, read back on deletion.
ANNOTATION_ID = "archer-id"

# Suffix of the finalizer marker token.
FINALIZER = "finalizer"

DEFAULT_VISIBILITY = "public"


def make_annotation(prefix: str, key: str) -> str:
    """Build the fully qualified annotation key for a prefix."""
    return f"{prefix}/{key}"


def get_annotation_string(service: ServiceResource, key: str) -> Tuple[str, bool]:
    """Return the annotation value and whether it is present."""
    if not service.annotations or key not in service.annotations:
        return "", False
    return service.annotations[key], True


def get_annotation_boolean(
    service: ServiceResource, key: str, default: bool = False
) -> bool:
    """Return True only if the annotation is set to "true"."""
    value, ok = get_annotation_string(service, key)
    if not ok:
        return default
    return value == "true"
