"""
Structural comparison of a desired endpoint service with the remote one.

Optional fields are only compared when set, so fields the broker fills in
with its own defaults do not cause an update on every reconcile. The same
rule means drift on a field the desired side never sets goes unnoticed.
"""

from typing import Optional

from endpoint import EndpointServiceSpec, RemoteEndpointService


def _strip_host_prefix(address: str) -> str:
    if address.endswith("/32"):
        return address[: -len("/32")]
    return address


def _ip_matches(desired: str, remote: str) -> bool:
    if desired == remote:
        return True
    # Archer may store plain addresses as /32 networks. Strip on both sides so
    # a /32 in the annotation also matches a plain remote address.
    return _strip_host_prefix(desired) == _strip_host_prefix(remote)


def _both_set_and_differ(a: Optional[object], b: Optional[object]) -> bool:
    return a is not None and b is not None and a != b


def endpoint_service_equal(
    desired: EndpointServiceSpec, remote: RemoteEndpointService
) -> bool:
    """Return True if the remote endpoint service needs no update."""
    if desired.name != remote.name:
        return False
    if desired.description != remote.description:
        return False
    if desired.enabled is not None and desired.enabled != remote.enabled:
        return False

    if len(desired.ip_addresses) != len(remote.ip_addresses):
        return False
    for ip in desired.ip_addresses:
        if not any(_ip_matches(ip, other) for other in remote.ip_addresses):
            return False

    if _both_set_and_differ(desired.network_id, remote.network_id):
        return False
    if desired.port != remote.port:
        return False
    if _both_set_and_differ(desired.proxy_protocol, remote.proxy_protocol):
        return False
    if _both_set_and_differ(desired.require_approval, remote.require_approval):
        return False

    if len(desired.tags) != len(remote.tags):
        return False
    remote_tags = set(remote.tags)
    for tag in desired.tags:
        if tag not in remote_tags:
            return False

    if _both_set_and_differ(desired.visibility, remote.visibility):
        return False
    return True
