"""
iPXE script rendering.

Turns boot directives into the literal scripts served to booting machines.
"""

from provisioner.services.directives import BootDirective, BootError, Install, LocalBoot

ERROR_REBOOT_DELAY = 10  # seconds


class IPXEHandler:
    """Renders boot directives as iPXE scripts."""

    def __init__(self, reboot_delay: int = ERROR_REBOOT_DELAY):
        self.reboot_delay = reboot_delay

    def render(self, directive: BootDirective) -> str:
        """Render a directive as an iPXE script."""
        if isinstance(directive, LocalBoot):
            return self._generate_local_boot_script(directive)
        if isinstance(directive, Install):
            return self._generate_install_script(directive)
        if isinstance(directive, BootError):
            return self._generate_error_script(directive)
        raise TypeError(f"Unknown boot directive: {directive!r}")

    def _generate_local_boot_script(self, directive: LocalBoot) -> str:
        return f"""#!ipxe
echo Installation is DONE for {directive.mac}. Booting from local disk.
exit
"""

    def _generate_install_script(self, directive: Install) -> str:
        """
        Generate the installer boot script.

        Falls through to a delayed reboot if the kernel fails to boot.
        """
        return f"""#!ipxe
echo Starting Ubuntu installation for {directive.mac}...
kernel {directive.kernel_url} {directive.kernel_params}
initrd {directive.initrd_url}
boot || goto error
:error
echo Critical boot error. Please check server logs. Rebooting in {self.reboot_delay}s.
sleep {self.reboot_delay}
reboot
"""

    def _generate_error_script(self, directive: BootError) -> str:
        return f"""#!ipxe
echo ERROR: {directive.reason} Check server logs.
sleep {self.reboot_delay}
reboot
"""
