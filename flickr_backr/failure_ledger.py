"""Per-directory record of files that should never be uploaded again."""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path

from flickr_backr.models import FailureRecord
from flickr_backr.remote_state import RemoteState

logger = logging.getLogger(__name__)

LEDGER_FILENAME = ".failed_files"
# Ledger name used by the earlier Go tool, read when no current ledger exists.
LEGACY_FILENAME = ".flickr_failed"


def _parse_records(data) -> list[FailureRecord]:
    # Current layout is a bare list; older runs wrote {"Files": [{"Path", "Date"}]}.
    if isinstance(data, dict):
        return [FailureRecord(str(entry["Path"]), int(entry["Date"])) for entry in data.get("Files") or []]
    return [FailureRecord(str(entry["path"]), int(entry["timestamp"])) for entry in data]


class FailureLedger:
    """Failed files of one directory, mirrored to ``<directory>/.failed_files``."""

    def __init__(self, directory: str | Path, filename: str = LEDGER_FILENAME):
        self.path = Path(directory) / filename
        self.legacy_path = Path(directory) / LEGACY_FILENAME
        self.records: list[FailureRecord] = []

    def __len__(self) -> int:
        return len(self.records)

    def load(self, state: RemoteState) -> None:
        """Read the ledger, if any, and merge each record into *state*."""
        source = self._source()
        if source is None:
            return
        try:
            with open(source, encoding="utf-8") as fh:
                records = _parse_records(json.load(fh))
        except (OSError, ValueError, KeyError, TypeError) as exc:
            logger.warning("Ignoring unreadable failure ledger %s: %s", source, exc)
            return

        for record in records:
            self.records.append(record)
            state.merge(record)
        logger.info("Loaded %d failed file(s) from %s", len(records), source)

    def _source(self) -> Path | None:
        for candidate in (self.path, self.legacy_path):
            if candidate.exists():
                return candidate
        return None

    def append(self, path: str, timestamp: int) -> None:
        self.records.append(FailureRecord(path, timestamp))

    def save(self) -> None:
        """Overwrite the ledger with every known record. Does nothing when empty."""
        if not self.records:
            return
        tmp = self.path.with_name(self.path.name + ".tmp")
        try:
            with open(tmp, "w", encoding="utf-8") as fh:
                json.dump([record.to_json() for record in self.records], fh, indent=2)
            os.replace(tmp, self.path)
        except OSError as exc:
            logger.warning("Could not write failure ledger %s: %s", self.path, exc)
            return
        logger.debug("Saved %d failed file(s) to %s", len(self.records), self.path)
