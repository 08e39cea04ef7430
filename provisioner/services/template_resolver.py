"""
Seed template source selection.

A MAC-specific template directory wins over the default one.
"""

from pathlib import Path

import structlog

from provisioner.errors import NoTemplateFound, ResourceError
from provisioner.mac import normalize_mac

logger = structlog.get_logger()


class TemplateResolver:
    """Picks the template directory a session is built from."""

    def __init__(self, config_dir: str | Path, default_name: str = "default"):
        self.config_dir = Path(config_dir)
        self.default_name = default_name

    def resolve(self, mac: str) -> Path:
        """
        Resolve the template source directory for a machine.

        Returns:
            ``<config_dir>/<mac>`` if it is a directory, else
            ``<config_dir>/<default_name>``.

        Raises:
            NoTemplateFound: If neither directory exists.
            ResourceError: If the templates tree cannot be inspected.
        """
        mac = normalize_mac(mac)
        candidates = (self.config_dir / mac, self.config_dir / self.default_name)

        for candidate in candidates:
            try:
                found = candidate.is_dir()
            except OSError as e:
                raise ResourceError(
                    f"Failed to inspect template directory: {candidate}: {e}",
                    mac=mac,
                    operation="resolve",
                ) from e
            if found:
                logger.debug(
                    "template_source_resolved",
                    mac=mac,
                    source=str(candidate),
                    mac_specific=candidate == candidates[0],
                )
                return candidate

        raise NoTemplateFound(mac, searched=tuple(str(c) for c in candidates))
