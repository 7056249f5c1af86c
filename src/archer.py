"""
Archer endpoint service API client.

Implements the EndpointServiceBroker interface against the Archer v1 REST API
using aiohttp.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

import aiohttp

from endpoint import EndpointServiceSpec, RemoteEndpointService
from errors import ArcherAPIError, EndpointServiceNotFound

logger = logging.getLogger(__name__)


class EndpointServiceBroker(ABC):
    """
    Abstract interface to the remote endpoint service broker.

    Implementations talk to the broker; the reconciler only depends on
    this interface so it can be tested with fakes.
    """

    @abstractmethod
    async def list_services(self, tags: List[str]) -> List[RemoteEndpointService]:
        """
        List endpoint services carrying all of the given tags.

        Args:
            tags: Tags every returned endpoint service must have

        Returns:
            The complete list of matching endpoint services.
        """
        pass

    @abstractmethod
    async def create_service(self, spec: EndpointServiceSpec) -> RemoteEndpointService:
        """Create an endpoint service and return it as stored by the broker."""
        pass

    @abstractmethod
    async def update_service(
        self, service_id: str, body: Dict[str, Any]
    ) -> RemoteEndpointService:
        """
        Update an endpoint service.

        Args:
            service_id: Id of the endpoint service
            body: Partial set of updatable fields
        """
        pass

    @abstractmethod
    async def delete_service(self, service_id: str) -> None:
        """
        Delete an endpoint service.

        Raises:
            EndpointServiceNotFound: If no endpoint service has this id
        """
        pass


class ArcherClient(EndpointServiceBroker):
    """Endpoint service broker backed by the Archer REST API."""

    def __init__(
        self,
        endpoint: str,
        token: Optional[str] = None,
        timeout: int = 30,
    ):
        self.endpoint = endpoint.rstrip("/")
        self.token = token
        self.timeout = timeout

        if not self.token:
            logger.warning(
                "Archer token not configured. Set OS_AUTH_TOKEN environment variable."
            )

    def _get_headers(self) -> Dict[str, str]:
        """Get HTTP headers for Archer API requests."""
        headers = {"Accept": "application/json"}
        if self.token:
            headers["X-Auth-Token"] = self.token
        return headers

    def _session(self) -> aiohttp.ClientSession:
        return aiohttp.ClientSession(
            headers=self._get_headers(),
            timeout=aiohttp.ClientTimeout(total=self.timeout),
        )

    async def _raise_for_status(
        self, response: aiohttp.ClientResponse, method: str
    ) -> None:
        if response.status < 400:
            return
        text = await response.text()
        if response.status == 404:
            raise EndpointServiceNotFound(response.status, text, method=method)
        raise ArcherAPIError(response.status, text, method=method)

    async def list_services(self, tags: List[str]) -> List[RemoteEndpointService]:
        url = f"{self.endpoint}/service"
        params = {"tags": ",".join(tags)}

        async with self._session() as session:
            async with session.get(url, params=params) as response:
                await self._raise_for_status(response, "list endpoint services")
                data = await response.json()

        items = data.get("items") or []
        logger.debug(f"Found {len(items)} endpoint services with tags {tags}")
        return [RemoteEndpointService.from_dict(item) for item in items]

    async def create_service(self, spec: EndpointServiceSpec) -> RemoteEndpointService:
        url = f"{self.endpoint}/service"

        async with self._session() as session:
            async with session.post(url, json=spec.to_dict()) as response:
                await self._raise_for_status(response, "create endpoint service")
                data = await response.json()

        created = RemoteEndpointService.from_dict(data)
        logger.info(f"Created endpoint service {created.id} ({spec.name})")
        return created

    async def update_service(
        self, service_id: str, body: Dict[str, Any]
    ) -> RemoteEndpointService:
        url = f"{self.endpoint}/service/{service_id}"

        async with self._session() as session:
            async with session.put(url, json=body) as response:
                await self._raise_for_status(response, "update endpoint service")
                data = await response.json()

        logger.info(f"Updated endpoint service {service_id}")
        return RemoteEndpointService.from_dict(data)

    async def delete_service(self, service_id: str) -> None:
        url = f"{self.endpoint}/service/{service_id}"

        async with self._session() as session:
            async with session.delete(url) as response:
                await self._raise_for_status(response, "delete endpoint service")

        logger.info(f"Deleted endpoint service {service_id}")
