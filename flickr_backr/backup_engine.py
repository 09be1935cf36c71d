"""Backup engine – walks local directories and backs each one up to its own Flickr photoset."""

from __future__ import annotations

import logging
import os
import time
from collections.abc import Callable
from pathlib import Path

from flickr_backr.config import Settings
from flickr_backr.errors import FatalError
from flickr_backr.failure_ledger import FailureLedger
from flickr_backr.media import is_supported, logical_name
from flickr_backr.models import Collection, RunResult, UploadJob
from flickr_backr.remote_state import RemoteState
from flickr_backr.scheduler import UploadScheduler
from flickr_backr.walker import walk

logger = logging.getLogger(__name__)


class BackupEngine:
    """Reconciles local directories against Flickr and uploads what is missing.

    *service* is the remote session (normally a :class:`FlickrClient`). It is
    passed in rather than created here so that authentication stays under the
    caller's control.
    """

    def __init__(
        self,
        service,
        settings: Settings | None = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self._service = service
        self._settings = settings or Settings()
        self._clock = clock
        self._sleep = sleep
        self._started = 0.0

    # ── public API ───────────────────────────────────────────────────

    def run(self, directory: str | Path = ".", single: bool = False) -> RunResult:
        """Back up *directory*.

        With *single* the directory itself is one photoset named after it;
        otherwise every immediate subdirectory is its own photoset.
        """
        result = RunResult()
        self._started = self._clock()
        root = Path(os.path.abspath(directory))
        targets = [(root.name, root)] if single else self._subdirectories(root)

        photosets = self._service.list_photosets()
        logger.info("Found %d photoset(s) on Flickr", len(photosets))

        with UploadScheduler(self._service, self._settings, result, sleep=self._sleep) as scheduler:
            for title, path in targets:
                collection = self._open_collection(title, path, photosets)
                result.collections.append(title)
                finished = self._process(collection, scheduler, result)
                self._release(collection, scheduler)
                if not finished:
                    logger.warning("Out of time, stopping after %s", title)
                    result.out_of_time = True
                    break

        return result

    # ── collections ──────────────────────────────────────────────────

    @staticmethod
    def _subdirectories(root: Path) -> list[tuple[str, Path]]:
        try:
            with os.scandir(root) as it:
                dirs = sorted(entry.name for entry in it if entry.is_dir())
        except OSError as exc:
            raise FatalError(f"Cannot read {root}: {exc}") from exc
        return [(name, root / name) for name in dirs]

    def _open_collection(self, title: str, path: Path, photosets: dict[str, str]) -> Collection:
        logger.info("%s", path)
        remote_id = photosets.get(title)
        state = RemoteState().initialize(self._service, remote_id, page_size=self._settings.page_size)
        ledger = FailureLedger(path, self._settings.ledger_filename)
        ledger.load(state)
        return Collection(title=title, directory=path, state=state, ledger=ledger, remote_id=remote_id)

    def _release(self, collection: Collection, scheduler: UploadScheduler) -> None:
        scheduler.drain()
        if not self._settings.dry_run:
            collection.ledger.save()

    # ── traversal ────────────────────────────────────────────────────

    def _out_of_time(self) -> bool:
        return self._clock() - self._started >= self._settings.time_budget_seconds

    def _process(self, collection: Collection, scheduler: UploadScheduler, result: RunResult) -> bool:
        """Walk one collection. Returns False when the time budget ran out."""
        for path, info in walk(collection.directory):
            if self._out_of_time():
                return False

            result.scanned += 1
            if not is_supported(info.name):
                result.unsupported += 1
                continue

            name = logical_name(info.name)
            if collection.state.exists(name, info.mtime):
                result.skipped += 1
                continue

            if self._settings.dry_run:
                logger.info("missed %d in %s", info.mtime, collection.state.matches(name))
            scheduler.submit(UploadJob(path=path, name=name, mtime=info.mtime, collection=collection))

        return True
