"""
Machine lifecycle status.

Status tokens are an open string space: callbacks may store any value.
Only NEW, INSTALLING and DONE carry meaning for the boot flow, everything
else is kept verbatim and treated as "not done".
"""

from dataclasses import dataclass
from enum import Enum


class StatusKind(Enum):
    """Distinguished lifecycle states."""

    NEW = "NEW"
    INSTALLING = "INSTALLING"
    DONE = "DONE"
    OTHER = "OTHER"


STATUS_NEW = StatusKind.NEW.value
STATUS_INSTALLING = StatusKind.INSTALLING.value


@dataclass(frozen=True, slots=True)
class MachineStatus:
    """A raw status token tagged with its lifecycle kind."""

    kind: StatusKind
    raw: str

    @classmethod
    def parse(cls, raw: str | None) -> "MachineStatus":
        if not raw:
            return cls(StatusKind.NEW, STATUS_NEW)
        for kind in (StatusKind.NEW, StatusKind.INSTALLING, StatusKind.DONE):
            if raw == kind.value:
                return cls(kind, raw)
        return cls(StatusKind.OTHER, raw)

    @property
    def is_done(self) -> bool:
        return self.kind is StatusKind.DONE

    def __str__(self) -> str:
        return self.raw
