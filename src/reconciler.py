"""
Service Reconciler - keeps one Archer endpoint service per tracked Service.

Each call handles a single Service and runs to completion. Desired state is
derived from the Service annotations and remote state is fetched from Archer
on every call; nothing is cached between calls, so running the same
reconcile twice is safe.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from annotations import (
    ANNOTATION_CREATE,
    ANNOTATION_ID,
    FINALIZER,
    get_annotation_boolean,
    get_annotation_string,
    make_annotation,
)
from archer import EndpointServiceBroker
from diff import endpoint_service_equal
from endpoint import (
    EndpointServiceSpec,
    RemoteEndpointService,
    build_desired_spec,
    correlation_tags,
)
from errors import AmbiguousEndpointServiceError, EndpointServiceNotFound
from finalizers import FinalizerLifecycle, FinalizerState
from kube import ServiceStore
from service import ServiceResource

logger = logging.getLogger(__name__)


class ReconcileAction(Enum):
    """What a reconcile did."""

    NOT_FOUND = "not_found"
    IGNORED = "ignored"
    CREATED = "created"
    UPDATED = "updated"
    IN_SYNC = "in_sync"
    DELETED = "deleted"
    RELEASED = "released"


@dataclass
class ReconcileResult:
    """Result from a reconcile() call."""

    action: ReconcileAction
    service_key: str
    endpoint_service_id: Optional[str] = None


class ServiceReconciler:
    """
    Reconciles Services against Archer endpoint services.

    Services opt in with the ``<prefix>/archer-create: "true"`` annotation.
    Tracked Services get a finalizer so the endpoint service is deleted
    before the Service goes away.
    """

    def __init__(
        self,
        store: ServiceStore,
        broker: EndpointServiceBroker,
        network_id: Optional[str],
        annotation_prefix: str,
    ):
        if not annotation_prefix:
            raise ValueError("annotation prefix for service resources not provided")
        self.store = store
        self.broker = broker
        self.network_id = network_id
        self.annotation_prefix = annotation_prefix
        self.create_annotation = make_annotation(annotation_prefix, ANNOTATION_CREATE)
        self.id_annotation = make_annotation(annotation_prefix, ANNOTATION_ID)
        self.finalizer = FinalizerLifecycle(
            make_annotation(annotation_prefix, FINALIZER)
        )

    def is_candidate(self, service: ServiceResource) -> bool:
        """Whether a Service might need any work from this reconciler."""
        return get_annotation_boolean(
            service, self.create_annotation
        ) or service.has_finalizer(self.finalizer.marker)

    async def reconcile(self, namespace: str, name: str) -> ReconcileResult:
        """
        Reconcile a single Service.

        Args:
            namespace: Namespace of the Service
            name: Name of the Service

        Returns:
            ReconcileResult describing the action taken.

        Raises:
            ReconcileError: On invalid annotations, ambiguous remote state,
                Archer API failures or failed Service writes
        """
        key = f"{namespace}/{name}"
        service = await self.store.get_service(namespace, name)
        if service is None:
            logger.debug(f"Service {key} not found, nothing to do")
            return ReconcileResult(ReconcileAction.NOT_FOUND, key)

        if not get_annotation_boolean(service, self.create_annotation):
            logger.debug(
                f"Ignoring service {key} without annotation {self.create_annotation}"
            )
            return ReconcileResult(ReconcileAction.IGNORED, key)

        state = self.finalizer.state(service)
        if state == FinalizerState.CLEANING:
            return await self._finalize(service)
        if state == FinalizerState.RELEASED:
            logger.debug(f"Service {key} is being deleted and already released")
            return ReconcileResult(ReconcileAction.RELEASED, key)

        if self.finalizer.track(service):
            service = await self.store.update_service(service)

        return await self._sync(service)

    async def _sync(self, service: ServiceResource) -> ReconcileResult:
        """Create or update the endpoint service for a tracked Service."""
        logger.info(f"Reconcile service {service.key}")
        desired = build_desired_spec(service, self.annotation_prefix, self.network_id)
        existing = await self.broker.list_services(correlation_tags(service.uid))

        if not existing:
            return await self._create(service, desired)
        if len(existing) > 1:
            raise AmbiguousEndpointServiceError(
                service.key, [remote.id for remote in existing]
            )

        remote = existing[0]
        logger.debug(
            f"Found endpoint service {remote.id} ({remote.status}) "
            f"for service {service.key}"
        )
        action = ReconcileAction.IN_SYNC
        if not endpoint_service_equal(desired, remote):
            logger.info(
                f"Updating endpoint service {remote.id} for service {service.key}"
            )
            await self.broker.update_service(remote.id, desired.updatable())
            action = ReconcileAction.UPDATED

        await self._record_id(service, remote.id)
        return ReconcileResult(action, service.key, remote.id)

    async def _create(
        self, service: ServiceResource, desired: EndpointServiceSpec
    ) -> ReconcileResult:
        logger.info(f"Creating endpoint service for service {service.key}")
        created: RemoteEndpointService = await self.broker.create_service(desired)
        await self._record_id(service, created.id)
        return ReconcileResult(ReconcileAction.CREATED, service.key, created.id)

    async def _record_id(self, service: ServiceResource, service_id: str) -> None:
        """Write the endpoint service id to the Service if it is not there yet."""
        recorded, _ = get_annotation_string(service, self.id_annotation)
        if recorded == service_id:
            return
        service.annotations[self.id_annotation] = service_id
        await self.store.update_service(service)

    async def _finalize(self, service: ServiceResource) -> ReconcileResult:
        """Delete the endpoint service, then release the finalizer."""
        logger.info(f"Delete endpoint service for service {service.key}")
        service_id, ok = get_annotation_string(service, self.id_annotation)
        if ok and service_id:
            try:
                await self.broker.delete_service(service_id)
            except EndpointServiceNotFound:
                logger.info(
                    f"Endpoint service {service_id} for {service.key} already gone"
                )
        else:
            logger.info(f"No endpoint service recorded for {service.key}")
            service_id = None

        if self.finalizer.release(service):
            await self.store.update_service(service)
        return ReconcileResult(ReconcileAction.DELETED, service.key, service_id)
