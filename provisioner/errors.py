"""
Exception hierarchy for the provisioning core.

Every failure the core reports is one of these types, either raised to
the immediate caller or carried in a result object.
"""

from typing import Optional


class ProvisioningError(Exception):
    """Base exception for provisioning errors."""

    def __init__(self, message: str, mac: Optional[str] = None) -> None:
        self.mac = mac
        super().__init__(message)


class ValidationError(ProvisioningError):
    """Malformed MAC or missing required field (client fault)."""

    pass


class ConfigurationError(ProvisioningError):
    """Server-side configuration problem. Never retried."""

    pass


class NoTemplateFound(ConfigurationError):
    """Raised when neither a MAC-specific nor a default template exists."""

    def __init__(self, mac: str, searched: tuple[str, ...] = ()) -> None:
        self.searched = searched
        msg = f"No config source directory found for MAC {mac}"
        if searched:
            msg += f" (searched: {', '.join(searched)})"
        super().__init__(msg, mac=mac)


class ResourceError(ProvisioningError):
    """Filesystem or lock failure while serving a request."""

    def __init__(
        self, message: str, mac: Optional[str] = None, operation: str = ""
    ) -> None:
        self.operation = operation
        super().__init__(message, mac=mac)


class LockTimeoutError(ResourceError):
    """Raised when the state lock could not be acquired in time."""

    def __init__(self, path: str, timeout: float, mac: Optional[str] = None) -> None:
        self.path = path
        self.timeout = timeout
        super().__init__(
            f"Failed to acquire lock on state file: {path} after {timeout:.1f}s",
            mac=mac,
            operation="lock",
        )


class PersistenceInconsistency(ProvisioningError):
    """State write failed after a session was already built.

    Logged, not raised: the boot directive is still valid and the next
    boot request retries the state write.
    """

    pass
