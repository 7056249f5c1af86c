"""Pytest configuration and fixtures."""

import copy
from datetime import datetime, timezone
from typing import Dict, List, Optional

import pytest

from archer import EndpointServiceBroker
from endpoint import EndpointServiceSpec, RemoteEndpointService
from errors import EndpointServiceNotFound, ServicePersistenceError
from kube import ServiceStore
from service import ServiceResource

PREFIX = "cloud.sap"
NETWORK_ID = "3f1b3b0e-7f4c-4c8e-9a55-2d1b0b5f9a10"


class FakeServiceStore(ServiceStore):
    """In-memory ServiceStore that records every write."""

    def __init__(self):
        self.services: Dict[str, ServiceResource] = {}
        self.updates: List[ServiceResource] = []
        self.fail_updates = 0

    def add(self, service: ServiceResource) -> None:
        self.services[service.key] = copy.deepcopy(service)

    async def get_service(self, namespace, name) -> Optional[ServiceResource]:
        service = self.services.get(f"{namespace}/{name}")
        return copy.deepcopy(service) if service else None

    async def list_services(self) -> List[ServiceResource]:
        return [copy.deepcopy(s) for s in self.services.values()]

    async def update_service(self, service: ServiceResource) -> ServiceResource:
        if self.fail_updates:
            self.fail_updates -= 1
            raise ServicePersistenceError(f"conflict updating {service.key}")
        stored = copy.deepcopy(service)
        stored.resource_version = str(int(service.resource_version or "0") + 1)
        self.updates.append(copy.deepcopy(stored))
        # The API server drops the object once the last finalizer is gone
        if stored.is_deleting and not stored.finalizers:
            self.services.pop(stored.key, None)
        else:
            self.services[stored.key] = stored
        return copy.deepcopy(stored)


class FakeBroker(EndpointServiceBroker):
    """In-memory endpoint service broker that records every write."""

    def __init__(self):
        self.services: Dict[str, RemoteEndpointService] = {}
        self.created: List[EndpointServiceSpec] = []
        self.updated: List[tuple] = []
        self.deleted: List[str] = []
        self._next_id = 1

    @property
    def write_count(self) -> int:
        return len(self.created) + len(self.updated) + len(self.deleted)

    def add(self, remote: RemoteEndpointService) -> None:
        self.services[remote.id] = remote

    async def list_services(self, tags):
        return [
            copy.deepcopy(s) for s in self.services.values() if set(tags) <= set(s.tags)
        ]

    async def create_service(self, spec):
        service_id = f"es-{self._next_id}"
        self._next_id += 1
        self.created.append(spec)
        data = spec.to_dict()
        data["id"] = service_id
        # Archer stores plain addresses as host networks
        data["ip_addresses"] = [f"{ip}/32" for ip in spec.ip_addresses]
        data.setdefault("enabled", True)
        data.setdefault("proxy_protocol", False)
        data.setdefault("require_approval", False)
        remote = RemoteEndpointService.from_dict(data)
        self.services[service_id] = remote
        return copy.deepcopy(remote)

    async def update_service(self, service_id, body):
        self.updated.append((service_id, body))
        remote = self.services[service_id]
        for key, value in body.items():
            setattr(remote, key, value)
        return copy.deepcopy(remote)

    async def delete_service(self, service_id):
        if service_id not in self.services:
            raise EndpointServiceNotFound(404, "not found", method="delete")
        self.deleted.append(service_id)
        del self.services[service_id]


@pytest.fixture
def store():
    return FakeServiceStore()


@pytest.fixture
def broker():
    return FakeBroker()


@pytest.fixture
def make_service():
    """Factory for ServiceResource objects with sensible defaults."""

    def _make(
        namespace="default",
        name="web",
        uid="u1",
        annotations=None,
        finalizers=None,
        deleting=False,
        cluster_ip="10.0.0.1",
        ports=None,
    ) -> ServiceResource:
        return ServiceResource(
            namespace=namespace,
            name=name,
            uid=uid,
            annotations=dict(annotations or {}),
            finalizers=list(finalizers or []),
            deletion_timestamp=(
                datetime(2024, 1, 15, 10, 30, tzinfo=timezone.utc) if deleting else None
            ),
            cluster_ip=cluster_ip,
            ports=[80, 443] if ports is None else list(ports),
            resource_version="1",
        )

    return _make


@pytest.fixture
def tracked_annotations():
    return {f"{PREFIX}/archer-create": "true"}
