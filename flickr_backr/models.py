"""Plain data containers shared by the backup pipeline."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from flickr_backr.failure_ledger import FailureLedger
    from flickr_backr.remote_state import RemoteState

# Remote ID given to synthesized entries for files known to be unrecoverable.
SENTINEL_ID = "-2"


@dataclass(frozen=True)
class RemoteItem:
    remote_id: str
    timestamp: int | None

    @property
    def is_sentinel(self) -> bool:
        return self.remote_id == SENTINEL_ID


@dataclass(frozen=True)
class FailureRecord:
    """A file whose upload was judged unrecoverable on some earlier run."""

    path: str
    timestamp: int

    def to_json(self) -> dict:
        return {"path": self.path, "timestamp": self.timestamp}


@dataclass(frozen=True)
class FileInfo:
    name: str
    mtime: int
    size: int = 0


@dataclass
class Collection:
    """One local directory backed up as one Flickr photoset."""

    title: str
    directory: Path
    state: RemoteState
    ledger: FailureLedger
    remote_id: str | None = None


@dataclass
class UploadJob:
    path: Path
    name: str
    mtime: int
    collection: Collection
    photo_id: str | None = None


class TicketState(enum.Enum):
    PENDING = 0
    SUCCEEDED = 1
    FAILED = 2


@dataclass(frozen=True)
class TicketStatus:
    ticket_id: str
    state: TicketState
    photo_id: str | None = None


@dataclass
class RunResult:
    """Aggregated counters for a backup run."""

    collections: list[str] = field(default_factory=list)
    scanned: int = 0
    skipped: int = 0
    unsupported: int = 0
    submitted: int = 0
    uploaded: int = 0
    failed: list[str] = field(default_factory=list)
    out_of_time: bool = False

    @property
    def all_ok(self) -> bool:
        return len(self.failed) == 0

    def summary(self) -> str:
        lines = [
            f"Collections : {len(self.collections)}",
            f"Scanned     : {self.scanned}",
            f"Present     : {self.skipped}",
            f"Unsupported : {self.unsupported}",
            f"Submitted   : {self.submitted}",
            f"Uploaded    : {self.uploaded}",
            f"Failed      : {len(self.failed)}",
        ]
        if self.out_of_time:
            lines.append("Stopped early: time budget exhausted")
        return "\n".join(lines)
