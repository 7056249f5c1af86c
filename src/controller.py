"""
Operator Controller - Main reconciliation loop.

Periodically lists Services and hands tracked ones to the ServiceReconciler.
Failed Services are retried with exponential backoff. A Service is never
reconciled twice at the same time.
"""

import asyncio
import logging
import random
import time
from dataclasses import dataclass
from typing import Dict, List, Optional, Set

from events import EventBus, EventType, ReconcileEvent
from kube import ServiceStore
from reconciler import ReconcileAction, ReconcileResult, ServiceReconciler

logger = logging.getLogger(__name__)

_EVENT_TYPES = {
    ReconcileAction.CREATED: EventType.CREATED,
    ReconcileAction.UPDATED: EventType.UPDATED,
    ReconcileAction.DELETED: EventType.DELETED,
    ReconcileAction.IN_SYNC: EventType.RECONCILED,
}


@dataclass
class ControllerConfig:
    """Configuration for the controller."""

    reconcile_interval: int = 60
    max_concurrent_reconciles: int = 5
    requeue_check_interval: float = 1.0

    # Exponential backoff configuration
    backoff_base_delay: int = 5  # base delay in seconds
    backoff_max_delay: int = 300  # max delay in seconds
    backoff_jitter_factor: float = 0.1  # ±10% jitter


@dataclass
class RetryState:
    """Backoff bookkeeping for a Service whose last reconcile failed."""

    retry_count: int
    next_attempt: float
    last_error: str


def compute_backoff(
    retry_count: int,
    base_delay: float,
    max_delay: float,
    jitter_factor: float,
) -> float:
    """
    Delay before the next retry, exponential and capped, with jitter.

    Args:
        retry_count: Number of failures so far, starting at 0
        base_delay: Delay after the first failure in seconds
        max_delay: Upper bound before jitter in seconds
        jitter_factor: Jitter factor ±X (0.1 = ±10%)
    """
    delay = min(base_delay * (2 ** min(retry_count, 10)), max_delay)
    return delay * (1 + (random.random() * 2 - 1) * jitter_factor)


class Controller:
    """
    Main controller that implements the reconciliation loop.

    Watches Services and dispatches tracked ones to the reconciler.
    """

    def __init__(
        self,
        store: ServiceStore,
        reconciler: ServiceReconciler,
        config: Optional[ControllerConfig] = None,
        event_bus: Optional[EventBus] = None,
    ):
        self.store = store
        self.reconciler = reconciler
        self.config = config or ControllerConfig()
        self.reconcile_interval = self.config.reconcile_interval
        self.max_concurrent_reconciles = self.config.max_concurrent_reconciles
        self.semaphore = asyncio.Semaphore(self.max_concurrent_reconciles)
        self.running = False
        self._event_bus = event_bus

        self._in_flight: Set[str] = set()
        self._retries: Dict[str, RetryState] = {}
        self._tasks: List[asyncio.Task] = []

    async def start(self):
        """Start the reconciliation and requeue loops."""
        logger.info("Starting Operator Controller")
        self.running = True

        self._tasks = [
            asyncio.create_task(self._reconciliation_loop()),
            asyncio.create_task(self._requeue_loop()),
        ]

        try:
            await asyncio.gather(*self._tasks)
        except Exception as e:
            logger.error(f"Controller error: {e}")
            raise

    async def stop(self):
        """Stop the controller loops."""
        logger.info("Stopping Operator Controller")
        self.running = False

        for task in self._tasks:
            if not task.done():
                task.cancel()
        self._tasks.clear()

    async def _reconciliation_loop(self):
        """Main reconciliation loop - lists Services and reconciles candidates."""
        while self.running:
            try:
                keys = await self._list_candidate_keys()
                if keys:
                    logger.info(f"Found {len(keys)} services to reconcile")
                    await asyncio.gather(
                        *(self._reconcile_key(key) for key in keys),
                        return_exceptions=True,
                    )

                await asyncio.sleep(self.reconcile_interval)

            except Exception as e:
                logger.error(f"Error in reconciliation loop: {e}", exc_info=True)
                await asyncio.sleep(10)  # Brief pause on error

    async def _requeue_loop(self):
        """Retries failed Services once their backoff has expired."""
        while self.running:
            due = self._due_retries(time.monotonic())
            if due:
                await asyncio.gather(
                    *(self._reconcile_key(key) for key in due),
                    return_exceptions=True,
                )
            await asyncio.sleep(self.config.requeue_check_interval)

    async def _list_candidate_keys(self) -> List[str]:
        services = await self.store.list_services()
        now = time.monotonic()
        keys = []
        for service in services:
            if not self.reconciler.is_candidate(service):
                continue
            retry = self._retries.get(service.key)
            if retry is not None and retry.next_attempt > now:
                continue
            keys.append(service.key)
        return keys

    def _due_retries(self, now: float) -> List[str]:
        return [
            key
            for key, retry in self._retries.items()
            if retry.next_attempt <= now and key not in self._in_flight
        ]

    def _record_failure(self, key: str, error: Exception) -> RetryState:
        previous = self._retries.get(key)
        retry_count = previous.retry_count + 1 if previous else 0
        delay = compute_backoff(
            retry_count,
            self.config.backoff_base_delay,
            self.config.backoff_max_delay,
            self.config.backoff_jitter_factor,
        )
        state = RetryState(
            retry_count=retry_count,
            next_attempt=time.monotonic() + delay,
            last_error=str(error),
        )
        self._retries[key] = state
        return state

    async def _reconcile_key(self, key: str) -> Optional[ReconcileResult]:
        """
        Reconcile a single Service by key.

        Skips the key when a reconcile of the same Service is already running.
        Errors are logged and requeued with backoff rather than raised.
        """
        if key in self._in_flight:
            logger.debug(f"Reconcile of {key} already in progress, skipping")
            return None

        self._in_flight.add(key)
        try:
            async with self.semaphore:
                namespace, _, name = key.partition("/")
                try:
                    result = await self.reconciler.reconcile(namespace, name)
                except Exception as e:
                    retry = self._record_failure(key, e)
                    logger.error(
                        f"Failed to reconcile service {key} "
                        f"(attempt {retry.retry_count + 1}): {e}"
                    )
                    await self._publish(
                        ReconcileEvent.create(EventType.FAILED, key, message=str(e))
                    )
                    return None

                self._retries.pop(key, None)
                event_type = _EVENT_TYPES.get(result.action)
                if event_type is not None:
                    await self._publish(
                        ReconcileEvent.create(
                            event_type,
                            key,
                            endpoint_service_id=result.endpoint_service_id,
                            message=result.action.value,
                        )
                    )
                return result
        finally:
            self._in_flight.discard(key)

    async def _publish(self, event: ReconcileEvent) -> None:
        if self._event_bus:
            await self._event_bus.publish(event)

    async def trigger_reconciliation(
        self, namespace: str, name: str
    ) -> Optional[ReconcileResult]:
        """Manually trigger reconciliation for a specific Service."""
        key = f"{namespace}/{name}"
        logger.info(f"Manually triggering reconciliation for service {key}")
        return await self._reconcile_key(key)
