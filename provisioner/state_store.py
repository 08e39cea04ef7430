"""
Durable MAC address to lifecycle status store.

The state database is a single JSON document mapping normalized MAC
addresses to {status, updated_at}. Writers serialize through an exclusive
flock and replace the document atomically, so readers never observe a
partially written file.
"""

import fcntl
import json
import os
import tempfile
import time
from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterator, Optional

import structlog

from provisioner.errors import LockTimeoutError, ResourceError
from provisioner.mac import normalize_mac
from provisioner.metrics import STATE_WRITE_FAILURES
from provisioner.status import STATUS_NEW

logger = structlog.get_logger()


@dataclass(slots=True)
class MachineRecord:
    """Persisted lifecycle entry for one machine."""

    status: str
    updated_at: str

    @classmethod
    def from_dict(cls, data: Any) -> Optional["MachineRecord"]:
        """Parse a stored entry, returning None for malformed ones.

        Entries written by older deployments use ``timestamp`` instead of
        ``updated_at``.
        """
        if not isinstance(data, dict) or not data.get("status"):
            return None
        updated_at = data.get("updated_at") or data.get("timestamp") or ""
        return cls(status=str(data["status"]), updated_at=str(updated_at))

    def to_dict(self) -> dict[str, str]:
        return {"status": self.status, "updated_at": self.updated_at}


class StateStore(ABC):
    """Abstract interface for machine lifecycle persistence.

    Implementations must make set_status an atomic read-merge-write
    against the latest persisted snapshot.
    """

    @abstractmethod
    def get_record(self, mac: str) -> Optional[MachineRecord]:
        """Get the record for a MAC, or None if it has never been written."""

    @abstractmethod
    def set_status(self, mac: str, status: str) -> bool:
        """Upsert the status for a MAC.

        Returns:
            True if the write was persisted, False otherwise.
        """

    @abstractmethod
    def list_records(self) -> dict[str, MachineRecord]:
        """Get all records keyed by normalized MAC."""

    def get_status(self, mac: str) -> str:
        """Get the stored status for a MAC, ``NEW`` when absent."""
        record = self.get_record(mac)
        return record.status if record else STATUS_NEW


class JsonFileStateStore(StateStore):
    """StateStore backed by one JSON file on local disk."""

    def __init__(
        self,
        path: str | Path,
        lock_timeout: float = 10.0,
        poll_interval: float = 0.05,
    ):
        self.path = Path(path)
        # The document inode changes on every replace, so lock a sidecar file.
        self.lock_path = self.path.with_name(self.path.name + ".lock")
        self.lock_timeout = lock_timeout
        self.poll_interval = poll_interval

    def get_record(self, mac: str) -> Optional[MachineRecord]:
        mac = normalize_mac(mac)
        db = self._load_or_empty(mac, operation="get_status")
        return MachineRecord.from_dict(db.get(mac))

    def list_records(self) -> dict[str, MachineRecord]:
        db = self._load_or_empty(None, operation="list_records")
        records = {}
        for mac, entry in db.items():
            record = MachineRecord.from_dict(entry)
            if record is not None:
                records[mac] = record
        return records

    def set_status(self, mac: str, status: str) -> bool:
        mac = normalize_mac(mac)
        try:
            self.update(mac, status)
        except ResourceError as e:
            STATE_WRITE_FAILURES.inc()
            logger.error(
                "state_write_failed",
                mac=mac,
                status=status,
                operation=e.operation or "set_status",
                state_file=str(self.path),
                error=str(e),
            )
            return False
        return True

    def update(self, mac: str, status: str) -> MachineRecord:
        """
        Atomically merge one record into the persisted database.

        Raises:
            LockTimeoutError: If the exclusive lock is not acquired in time.
            ResourceError: If the document cannot be written.
        """
        mac = normalize_mac(mac)
        with self._exclusive_lock(mac):
            db = self._load_or_empty(mac, operation="set_status")
            record = MachineRecord(status=status, updated_at=self._now())
            db[mac] = record.to_dict()
            self._write_document(db, mac)

        logger.info("machine_status_updated", mac=mac, status=status)
        return record

    def _now(self) -> str:
        return datetime.now(timezone.utc).isoformat(timespec="seconds")

    def _read_document(self) -> dict[str, Any]:
        if not self.path.exists():
            return {}
        raw = self.path.read_text(encoding="utf-8")
        if not raw.strip():
            return {}
        data = json.loads(raw)
        if not isinstance(data, dict):
            raise ValueError(f"State file must be an object, got {type(data).__name__}")
        return data

    def _load_or_empty(self, mac: Optional[str], operation: str) -> dict[str, Any]:
        """Read the database, treating a missing or corrupt file as empty."""
        try:
            return self._read_document()
        except (OSError, ValueError) as e:
            logger.warning(
                "state_file_unreadable",
                mac=mac,
                operation=operation,
                state_file=str(self.path),
                error=str(e),
            )
            return {}

    @contextmanager
    def _exclusive_lock(self, mac: str) -> Iterator[None]:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd = os.open(self.lock_path, os.O_RDWR | os.O_CREAT, 0o644)
        except OSError as e:
            raise ResourceError(
                f"Failed to open state lock file: {self.lock_path}: {e}",
                mac=mac,
                operation="lock",
            ) from e

        try:
            deadline = time.monotonic() + self.lock_timeout
            while True:
                try:
                    fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
                    break
                except BlockingIOError:
                    if time.monotonic() >= deadline:
                        raise LockTimeoutError(str(self.path), self.lock_timeout, mac=mac)
                    time.sleep(self.poll_interval)

            try:
                yield
            finally:
                fcntl.flock(fd, fcntl.LOCK_UN)
        finally:
            os.close(fd)

    def _write_document(self, db: dict[str, Any], mac: str) -> None:
        tmp_path: Optional[str] = None
        try:
            fd, tmp_path = tempfile.mkstemp(
                prefix=f".{self.path.name}.", suffix=".tmp", dir=self.path.parent
            )
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(db, fh, indent=2, sort_keys=True)
                fh.write("\n")
                fh.flush()
                os.fsync(fh.fileno())
            os.chmod(tmp_path, 0o644)
            os.replace(tmp_path, self.path)
        except OSError as e:
            if tmp_path is not None and os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise ResourceError(
                f"Failed to write state file: {self.path}: {e}",
                mac=mac,
                operation="write",
            ) from e
