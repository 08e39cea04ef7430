"""
Completion callbacks from installed machines.
"""

from dataclasses import dataclass
from typing import Optional

import structlog

from provisioner.errors import ProvisioningError, ResourceError, ValidationError
from provisioner.mac import is_valid_mac, normalize_mac
from provisioner.metrics import CALLBACKS
from provisioner.state_store import StateStore

logger = structlog.get_logger()


@dataclass(frozen=True)
class CallbackResult:
    """Ack when ``error`` is None, otherwise the typed failure."""

    mac: str
    status: str
    error: Optional[ProvisioningError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class CallbackHandler:
    """Stores the status an installed machine reports."""

    def __init__(self, store: StateStore):
        self.store = store

    def handle_callback(self, mac: Optional[str], status: Optional[str]) -> CallbackResult:
        mac = normalize_mac(mac or "")
        status = status or ""

        if not mac or not status or not is_valid_mac(mac):
            CALLBACKS.labels(outcome="invalid").inc()
            logger.warning("callback_rejected", mac=mac, status=status)
            return CallbackResult(
                mac=mac,
                status=status,
                error=ValidationError("MAC and status parameters are required.", mac=mac),
            )

        if not self.store.set_status(mac, status):
            CALLBACKS.labels(outcome="failed").inc()
            return CallbackResult(
                mac=mac,
                status=status,
                error=ResourceError(
                    f"Failed to update status for {mac}.", mac=mac, operation="set_status"
                ),
            )

        CALLBACKS.labels(outcome="ok").inc()
        logger.info("callback_recorded", mac=mac, status=status)
        return CallbackResult(mac=mac, status=status)
