"""
Provisioner-iPXE main entry point.

Starts the HTTP boot server and manages its lifecycle.
"""

import asyncio
import logging
import signal
import sys
from pathlib import Path

import structlog
from prometheus_client import start_http_server

from provisioner.config import ProvisionerConfig
from provisioner.services.http_server import HTTPBootServer

# Configure structured logging
structlog.configure(
    processors=[
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.add_log_level,
        structlog.processors.JSONRenderer(),
    ],
    wrapper_class=structlog.make_filtering_bound_logger(logging.INFO),
    context_class=dict,
    logger_factory=structlog.PrintLoggerFactory(),
    cache_logger_on_first_use=True,
)

logger = structlog.get_logger()


class Provisioner:
    """Main application coordinator."""

    def __init__(self, config: ProvisionerConfig):
        self.config = config
        self.http_server: HTTPBootServer = None
        self.running = False
        self.tasks = []

    def check_layout(self) -> bool:
        """
        Verify the filesystem layout before serving.

        Creates the session and state directories if missing; the
        templates root must already exist.
        """
        config_path = self.config.config_path
        if not config_path.is_dir():
            logger.error("config_dir_missing", config_dir=str(config_path))
            return False

        default_dir = config_path / self.config.default_template
        if not default_dir.is_dir():
            logger.warning("default_template_missing", path=str(default_dir))

        for directory in (self.config.session_path, Path(self.config.state_file).parent):
            try:
                directory.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                logger.error("directory_create_failed", path=str(directory), error=str(e))
                return False

        return True

    async def start(self):
        """Start all services."""
        logger.info(
            "provisioner_starting",
            server_ip=self.config.server_ip,
            state_file=self.config.state_file,
            config_dir=self.config.config_dir,
            session_dir=self.config.session_dir,
        )

        if not self.check_layout():
            logger.error("filesystem_layout_invalid_exiting")
            sys.exit(1)

        # Start Prometheus metrics server
        if self.config.metrics_enabled:
            start_http_server(self.config.metrics_port)
            logger.info("prometheus_metrics_enabled", port=self.config.metrics_port)

        # Start HTTP boot server
        self.http_server = HTTPBootServer(self.config)
        http_task = asyncio.create_task(self.http_server.start())
        self.tasks.append(http_task)
        logger.info(
            "http_boot_server_started",
            port=self.config.http_port,
            serve_sessions=self.config.serve_sessions,
        )

        self.running = True
        logger.info("provisioner_started")

    async def stop(self):
        """Stop all services."""
        logger.info("provisioner_stopping")
        self.running = False

        if self.http_server:
            await self.http_server.stop()

        # Cancel all tasks
        for task in self.tasks:
            task.cancel()

        await asyncio.gather(*self.tasks, return_exceptions=True)

        logger.info("provisioner_stopped")

    async def run(self):
        """Run until shutdown signal."""
        await self.start()

        # Wait for shutdown signal
        stop_event = asyncio.Event()

        def signal_handler():
            logger.info("shutdown_signal_received")
            stop_event.set()

        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, signal_handler)

        await stop_event.wait()

        await self.stop()


async def main():
    """Main entry point."""
    # Load configuration
    try:
        config = ProvisionerConfig.from_env()
    except ValueError as e:
        logger.error("configuration_error", error=str(e))
        sys.exit(1)

    # Set log level
    log_level = getattr(logging, config.log_level.upper(), logging.INFO)
    structlog.configure(
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
    )

    provisioner = Provisioner(config)
    try:
        await provisioner.run()
    except Exception as e:
        logger.error("provisioner_fatal_error", error=str(e))
        sys.exit(1)


def run():
    """Console script entry point."""
    asyncio.run(main())


if __name__ == "__main__":
    run()
