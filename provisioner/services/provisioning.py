"""
Boot request orchestration.

Drives the per-machine lifecycle NEW -> INSTALLING -> DONE. The boot path
only ever writes INSTALLING; any other status arrives through callbacks.
"""

import structlog

from provisioner.errors import ConfigurationError, PersistenceInconsistency, ResourceError
from provisioner.mac import normalize_mac
from provisioner.metrics import BOOT_DIRECTIVES
from provisioner.services.directives import BootDirective, BootError, BootTarget, Install, LocalBoot
from provisioner.services.session_builder import SessionBuilder
from provisioner.services.template_resolver import TemplateResolver
from provisioner.state_store import StateStore
from provisioner.status import STATUS_INSTALLING, MachineStatus

logger = structlog.get_logger()


class ProvisioningController:
    """Decides what a booting machine should do and prepares its session."""

    def __init__(
        self,
        store: StateStore,
        resolver: TemplateResolver,
        builder: SessionBuilder,
        target: BootTarget,
    ):
        self.store = store
        self.resolver = resolver
        self.builder = builder
        self.target = target

    def handle_boot(self, mac: str) -> BootDirective:
        """
        Handle one boot request for an already validated MAC.

        Returns:
            LocalBoot for finished machines, Install when a session was
            prepared, BootError when it could not be.
        """
        mac = normalize_mac(mac)
        status = MachineStatus.parse(self.store.get_status(mac))

        if status.is_done:
            logger.info("boot_local_disk", mac=mac)
            directive: BootDirective = LocalBoot(mac=mac)
        else:
            directive = self._prepare_install(mac, status)

        BOOT_DIRECTIVES.labels(kind=directive.kind).inc()
        return directive

    def _prepare_install(self, mac: str, status: MachineStatus) -> BootDirective:
        try:
            source = self.resolver.resolve(mac)
            self.builder.build(mac, source)
        except ConfigurationError as e:
            logger.error("session_config_missing", mac=mac, status=str(status), error=str(e))
            return BootError(mac=mac, reason=f"Could not prepare installation session for {mac}.")
        except ResourceError as e:
            logger.error(
                "session_build_failed",
                mac=mac,
                status=str(status),
                operation=e.operation,
                error=str(e),
            )
            return BootError(mac=mac, reason=f"Could not prepare installation session for {mac}.")

        if not self.store.set_status(mac, STATUS_INSTALLING):
            inconsistency = PersistenceInconsistency(
                f"Session ready but status for {mac} is still {status}", mac=mac
            )
            logger.warning(
                "persistence_inconsistency",
                mac=mac,
                previous_status=str(status),
                error=str(inconsistency),
            )

        logger.info("install_session_ready", mac=mac, previous_status=str(status))
        return Install.for_target(mac, self.target)
