"""
Main entry point for the Archer Service Controller.

Wires the Kubernetes store, the Archer client, the reconciler and the
controller loop together and serves the health endpoints.
"""

import asyncio
import logging
import signal
from typing import Optional

from archer import ArcherClient
from config import get_config
from controller import Controller, ControllerConfig
from events import EventBus
from health import HealthServer
from kube import KubernetesServiceStore
from reconciler import ServiceReconciler

logger = logging.getLogger(__name__)


class Application:
    """Main application that runs the controller and the health server."""

    def __init__(self):
        self.config = get_config()
        self.controller: Optional[Controller] = None
        self.event_bus: Optional[EventBus] = None
        self.health_server: Optional[HealthServer] = None
        self.running = False

    def initialize(self):
        """Initialize all components."""
        logger.info("Initializing Archer Service Controller")

        archer_config = self.config.archer
        broker = ArcherClient(
            endpoint=archer_config.endpoint,
            token=archer_config.token,
            timeout=archer_config.timeout,
        )
        store = KubernetesServiceStore()

        ctrl_config = self.config.controller
        reconciler = ServiceReconciler(
            store=store,
            broker=broker,
            network_id=archer_config.network_id,
            annotation_prefix=ctrl_config.annotation_prefix,
        )

        self.event_bus = EventBus()
        self.controller = Controller(
            store=store,
            reconciler=reconciler,
            config=ControllerConfig(
                reconcile_interval=ctrl_config.reconcile_interval,
                max_concurrent_reconciles=ctrl_config.max_concurrent_reconciles,
                backoff_base_delay=ctrl_config.backoff_base_delay,
                backoff_max_delay=ctrl_config.backoff_max_delay,
                backoff_jitter_factor=ctrl_config.backoff_jitter_factor,
            ),
            event_bus=self.event_bus,
        )

        health_config = self.config.health
        self.health_server = HealthServer(
            controller=self.controller,
            event_bus=self.event_bus,
            host=health_config.host,
            port=health_config.port,
            log_level=health_config.log_level.lower(),
        )
        logger.info(
            f"All components initialized (annotation prefix: "
            f"{ctrl_config.annotation_prefix}, network: {archer_config.network_id})"
        )

    async def start(self):
        """Start the application."""
        if not self.controller:
            self.initialize()

        self.running = True
        logger.info("Starting Archer Service Controller")

        tasks = [
            asyncio.create_task(self.controller.start()),
            asyncio.create_task(self.health_server.start()),
        ]
        try:
            await asyncio.gather(*tasks)
        except asyncio.CancelledError:
            logger.info("Application tasks cancelled")

    async def stop(self):
        """Stop the application gracefully."""
        if not self.running:
            return
        logger.info("Stopping Archer Service Controller")
        self.running = False

        if self.controller:
            await self.controller.stop()
        if self.health_server:
            await self.health_server.stop()

        logger.info("Archer Service Controller stopped")


async def main():
    """Main entry point."""
    app = Application()
    logging.basicConfig(
        level=app.config.health.log_level.upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    loop = asyncio.get_running_loop()

    def signal_handler():
        logger.info("Received shutdown signal")
        asyncio.create_task(app.stop())

    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, signal_handler)

    try:
        await app.start()
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
    finally:
        await app.stop()


def run():
    asyncio.run(main())


if __name__ == "__main__":
    run()
