"""
Boot directives.

The abstract decision the controller makes for a booting machine,
independent of how it is rendered into a boot-loader script.
"""

from dataclasses import dataclass
from typing import Union


@dataclass(frozen=True, slots=True)
class BootTarget:
    """Where the installer kernel, media and seed sessions are served from."""

    iso_base_url: str
    iso_name: str
    seed_base_url: str
    kernel_extra_params: str = ""

    @property
    def kernel_url(self) -> str:
        return f"{self.iso_base_url}/casper/vmlinuz"

    @property
    def initrd_url(self) -> str:
        return f"{self.iso_base_url}/casper/initrd"

    def seed_url(self, mac: str) -> str:
        return f"{self.seed_base_url}/{mac}/"

    def kernel_params(self, mac: str) -> str:
        params = [
            self.kernel_extra_params,
            "autoinstall",
            "ip=dhcp",
            f"url={self.iso_base_url}/{self.iso_name}",
            f"ds=nocloud;seedfrom={self.seed_url(mac)}",
        ]
        return " ".join(p for p in params if p)


@dataclass(frozen=True, slots=True)
class LocalBoot:
    """Installation is done: boot from local disk."""

    mac: str
    kind: str = "local"


@dataclass(frozen=True, slots=True)
class Install:
    """Boot the installer against a freshly built seed session."""

    mac: str
    seed_url: str
    kernel_url: str
    initrd_url: str
    kernel_params: str
    kind: str = "install"

    @classmethod
    def for_target(cls, mac: str, target: BootTarget) -> "Install":
        return cls(
            mac=mac,
            seed_url=target.seed_url(mac),
            kernel_url=target.kernel_url,
            initrd_url=target.initrd_url,
            kernel_params=target.kernel_params(mac),
        )


@dataclass(frozen=True, slots=True)
class BootError:
    """Session could not be prepared: show the reason and reboot."""

    mac: str
    reason: str
    kind: str = "error"


BootDirective = Union[LocalBoot, Install, BootError]
