"""
Seed session preparation.

Builds ``<session_dir>/<mac>/`` from a template source: user-data with the
MAC placeholder substituted, meta-data copied verbatim, and vendor-data
copied or synthesized so that it is always present.
"""

import shutil
import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterator

import structlog

from provisioner.errors import ResourceError
from provisioner.mac import normalize_mac
from provisioner.metrics import SESSION_BUILD_SECONDS

logger = structlog.get_logger()

USER_DATA = "user-data"
META_DATA = "meta-data"
VENDOR_DATA = "vendor-data"
SEED_ARTIFACTS = (USER_DATA, META_DATA, VENDOR_DATA)

EMPTY_VENDOR_DATA = "#cloud-config\n# This file was intentionally generated empty.\n"


@dataclass
class SessionResult:
    """Outcome of a successful directory rebuild."""

    mac: str
    path: Path
    written: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)

    @property
    def complete(self) -> bool:
        return not self.failed


class SessionBuilder:
    """Creates fresh per-machine seed directories."""

    def __init__(
        self,
        session_dir: str | Path,
        placeholder: str = "__MAC_ADDRESS__",
        strict: bool = False,
    ):
        self.session_dir = Path(session_dir)
        self.placeholder = placeholder
        self.strict = strict
        # mac -> [lock, number of builds holding or waiting on it]
        self._locks: dict[str, list] = {}
        self._locks_guard = threading.Lock()

    def session_path(self, mac: str) -> Path:
        return self.session_dir / normalize_mac(mac)

    def build(self, mac: str, source: str | Path) -> SessionResult:
        """
        Rebuild the session directory for a machine from scratch.

        Artifact failures are logged and reported in the result; with
        ``strict`` enabled they abort the build instead.

        Raises:
            ResourceError: If the old session cannot be removed, the new
                directory cannot be created, or (strict) an artifact fails.
        """
        mac = normalize_mac(mac)
        source = Path(source)
        session_path = self.session_dir / mac

        with self._mac_lock(mac), SESSION_BUILD_SECONDS.time():
            self._reset_directory(mac, session_path)

            result = SessionResult(mac=mac, path=session_path)
            steps = (
                (USER_DATA, self._render_user_data),
                (META_DATA, self._copy_meta_data),
                (VENDOR_DATA, self._provide_vendor_data),
            )
            for artifact, step in steps:
                try:
                    if step(mac, source, session_path):
                        result.written.append(artifact)
                except OSError as e:
                    result.failed.append(artifact)
                    logger.error(
                        "session_artifact_failed",
                        mac=mac,
                        artifact=artifact,
                        source=str(source),
                        error=str(e),
                    )

        if result.failed and self.strict:
            raise ResourceError(
                f"Incomplete session for {mac}: {', '.join(result.failed)}",
                mac=mac,
                operation="artifact",
            )

        logger.info(
            "session_prepared",
            mac=mac,
            path=str(session_path),
            source=str(source),
            written=result.written,
            failed=result.failed,
        )
        return result

    @contextmanager
    def _mac_lock(self, mac: str) -> Iterator[None]:
        """Serialize rebuilds of one MAC; entries live only while in use."""
        with self._locks_guard:
            entry = self._locks.get(mac)
            if entry is None:
                entry = self._locks[mac] = [threading.Lock(), 0]
            entry[1] += 1

        try:
            with entry[0]:
                yield
        finally:
            with self._locks_guard:
                entry[1] -= 1
                if entry[1] == 0:
                    del self._locks[mac]

    def _reset_directory(self, mac: str, session_path: Path) -> None:
        try:
            if session_path.is_dir() and not session_path.is_symlink():
                shutil.rmtree(session_path)
                logger.debug("stale_session_removed", mac=mac, path=str(session_path))
            elif session_path.exists() or session_path.is_symlink():
                session_path.unlink()
        except OSError as e:
            raise ResourceError(
                f"Failed to remove old session directory: {session_path}: {e}",
                mac=mac,
                operation="remove",
            ) from e

        try:
            session_path.mkdir(mode=0o755, parents=True)
        except OSError as e:
            raise ResourceError(
                f"Failed to create session directory: {session_path}: {e}",
                mac=mac,
                operation="create",
            ) from e

    def _render_user_data(self, mac: str, source: Path, session_path: Path) -> bool:
        template = source / USER_DATA
        if not template.is_file():
            return False
        content = template.read_bytes().replace(
            self.placeholder.encode("utf-8"), mac.encode("utf-8")
        )
        (session_path / USER_DATA).write_bytes(content)
        return True

    def _copy_meta_data(self, mac: str, source: Path, session_path: Path) -> bool:
        template = source / META_DATA
        if not template.is_file():
            return False
        shutil.copyfile(template, session_path / META_DATA)
        return True

    def _provide_vendor_data(self, mac: str, source: Path, session_path: Path) -> bool:
        template = source / VENDOR_DATA
        destination = session_path / VENDOR_DATA
        if template.is_file():
            shutil.copyfile(template, destination)
        else:
            destination.write_text(EMPTY_VENDOR_DATA, encoding="utf-8")
        return True
