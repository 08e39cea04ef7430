"""
Provisioner-iPXE - Unattended Install Boot Server

Serves iPXE boot scripts to network-booting machines, prepares per-machine
cloud-init seed sessions, and tracks each machine's install lifecycle
from first boot until the installed system reports back.
"""

__version__ = "1.0.0"
__author__ = "Penguin Tech Inc"
