"""
Kubernetes access for Service objects.

The kubernetes client is synchronous, so its calls run in a worker thread
to keep the event loop responsive.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Any, List, Optional

from kubernetes import client, config
from kubernetes.client.rest import ApiException

from errors import ServicePersistenceError
from service import ServiceResource

logger = logging.getLogger(__name__)


class ServiceStore(ABC):
    """Abstract interface for loading and persisting Services."""

    @abstractmethod
    async def get_service(self, namespace: str, name: str) -> Optional[ServiceResource]:
        """
        Load a Service.

        Returns:
            The Service, or None if it does not exist.
        """
        pass

    @abstractmethod
    async def list_services(self) -> List[ServiceResource]:
        """List Services in all namespaces."""
        pass

    @abstractmethod
    async def update_service(self, service: ServiceResource) -> ServiceResource:
        """
        Persist the annotations and finalizers of a Service.

        Returns:
            The Service as stored after the write.

        Raises:
            ServicePersistenceError: If the write was rejected
        """
        pass


def load_kube_config() -> None:
    """Load in-cluster config, falling back to the local kubeconfig."""
    try:
        config.load_incluster_config()
        logger.info("Loaded in-cluster Kubernetes config")
    except config.ConfigException:
        config.load_kube_config()
        logger.info("Loaded local Kubernetes config")


class KubernetesServiceStore(ServiceStore):
    """ServiceStore backed by the Kubernetes core/v1 API."""

    def __init__(self, core_api: Optional[Any] = None):
        if core_api is None:
            load_kube_config()
            core_api = client.CoreV1Api()
        self.core_api = core_api

    async def get_service(self, namespace: str, name: str) -> Optional[ServiceResource]:
        try:
            obj = await asyncio.to_thread(
                self.core_api.read_namespaced_service, name, namespace
            )
        except ApiException as e:
            if e.status == 404:
                return None
            raise
        return ServiceResource.from_k8s(obj)

    async def list_services(self) -> List[ServiceResource]:
        result = await asyncio.to_thread(self.core_api.list_service_for_all_namespaces)
        return [ServiceResource.from_k8s(obj) for obj in result.items]

    async def update_service(self, service: ServiceResource) -> ServiceResource:
        # Merge patch replaces the finalizers list and merges annotations;
        # resourceVersion makes the write fail on concurrent modification.
        metadata = {
            "annotations": dict(service.annotations),
            "finalizers": list(service.finalizers),
        }
        if service.resource_version:
            metadata["resourceVersion"] = service.resource_version
        body = {"metadata": metadata}
        try:
            obj = await asyncio.to_thread(
                self.core_api.patch_namespaced_service,
                service.name,
                service.namespace,
                body,
                _content_type="application/merge-patch+json",
            )
        except ApiException as e:
            raise ServicePersistenceError(
                f"failed to update service {service.key}: {e.status} {e.reason}"
            ) from e
        return ServiceResource.from_k8s(obj)
