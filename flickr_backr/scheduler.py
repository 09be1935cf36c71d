"""Upload scheduler – submits asynchronous uploads and tracks their tickets.

Flickr answers an ``async=1`` upload with a ticket ID and finishes the work
later. A single :class:`TicketPoller` thread asks Flickr about every
outstanding ticket at most once per poll interval and publishes resolved
tickets on a queue. The controller thread is the only consumer of that queue,
so photoset updates, :class:`RemoteState` and :class:`FailureLedger` are never
touched from the poller.
"""

from __future__ import annotations

import logging
import queue
import threading
import time
from collections.abc import Callable

from flickr_backr.config import Settings
from flickr_backr.errors import ErrorClass, FatalError, FatalRemoteError, RemoteCallError, classify_upload_error
from flickr_backr.models import RunResult, TicketState, TicketStatus, UploadJob
from flickr_backr.remote_state import timestamp_tag

logger = logging.getLogger(__name__)

TAG_PREFIX = "flickrbackr"
# How long a consumer waits on the queue before checking the poller is alive.
_LIVENESS_TIMEOUT = 1.0


class TicketPoller(threading.Thread):
    """Background thread resolving upload tickets in batches."""

    def __init__(self, service, interval: float, completions: queue.Queue):
        super().__init__(name="ticket-poller", daemon=True)
        self._service = service
        self._interval = interval
        self._completions = completions
        self._lock = threading.Lock()
        self._outstanding: dict[str, None] = {}
        self._stopped = threading.Event()

    def watch(self, ticket_id: str) -> None:
        with self._lock:
            self._outstanding[ticket_id] = None

    def stop(self) -> None:
        self._stopped.set()

    def run(self) -> None:
        while not self._stopped.wait(self._interval):
            with self._lock:
                ticket_ids = list(self._outstanding)
            if not ticket_ids:
                continue

            try:
                statuses = self._service.check_tickets(ticket_ids)
            except Exception as exc:
                # Handed to the controller thread, which aborts the run.
                self._completions.put(exc)
                return

            for status in statuses:
                if status.state is TicketState.PENDING:
                    continue
                with self._lock:
                    if status.ticket_id not in self._outstanding:
                        logger.debug("Ignoring unknown ticket %s", status.ticket_id)
                        continue
                    del self._outstanding[status.ticket_id]
                self._completions.put(status)


class UploadScheduler:
    """Bounded pipeline of asynchronous uploads for one backup run."""

    def __init__(
        self,
        service,
        settings: Settings,
        result: RunResult | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self._service = service
        self._settings = settings
        self._result = result if result is not None else RunResult()
        self._sleep = sleep
        self._inflight: dict[str, UploadJob] = {}
        self._completions: queue.Queue = queue.Queue()
        self._poller = TicketPoller(service, settings.poll_interval, self._completions)
        self.peak_in_flight = 0

    def __enter__(self) -> "UploadScheduler":
        self.start()
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    # ── lifecycle ────────────────────────────────────────────────────

    def start(self) -> None:
        if not self._settings.dry_run and not self._poller.is_alive():
            self._poller.start()

    def close(self) -> None:
        self._poller.stop()
        if self._poller.is_alive():
            self._poller.join(timeout=self._settings.poll_interval + _LIVENESS_TIMEOUT)

    @property
    def in_flight(self) -> int:
        return len(self._inflight)

    # ── public API ───────────────────────────────────────────────────

    def submit(self, job: UploadJob) -> bool:
        """Upload *job* asynchronously. Returns False when it ended as a failure."""
        if self._settings.dry_run:
            logger.info("%s (%d) -> %s", job.path, job.mtime, job.collection.title)
            self._result.submitted += 1
            return True

        self._collect()
        self._wait_for_slot()

        ticket_id = self._submit_with_retry(job)
        if ticket_id is None:
            return False

        self._inflight[ticket_id] = job
        self.peak_in_flight = max(self.peak_in_flight, len(self._inflight))
        self._poller.watch(ticket_id)
        self._result.submitted += 1
        return True

    def drain(self) -> None:
        """Block until every outstanding ticket has been resolved."""
        if self._inflight:
            logger.info("Waiting for %d upload(s) to finish processing...", len(self._inflight))
        while self._inflight:
            self._apply(self._next_completion())

    # ── submission ───────────────────────────────────────────────────

    def _submit_with_retry(self, job: UploadJob) -> str | None:
        attempts = self._settings.upload_attempts
        for attempt in range(1, attempts + 1):
            try:
                return self._service.upload_async(
                    job.path,
                    title=job.name,
                    tags=f"{TAG_PREFIX} {timestamp_tag(job.mtime)}",
                    is_public=False,
                    is_friend=True,
                    is_family=True,
                )
            except RemoteCallError as exc:
                kind = classify_upload_error(exc.code)
                if kind is ErrorClass.FATAL:
                    raise FatalRemoteError(f"Upload of {job.path} refused: {exc}") from exc
                if kind is ErrorClass.TERMINAL:
                    logger.error("Flickr rejected %s: %s", job.path, exc)
                    break
                logger.warning("Upload of %s interrupted (%s), attempt %d/%d", job.path, exc, attempt, attempts)
                if attempt < attempts:
                    self._sleep(self._settings.retry_delay)
        else:
            logger.error("Giving up on %s after %d attempts", job.path, attempts)

        self._record_failure(job)
        return None

    # ── completions ──────────────────────────────────────────────────

    def _wait_for_slot(self) -> None:
        while len(self._inflight) >= self._settings.max_in_flight:
            self._apply(self._next_completion())

    def _collect(self) -> None:
        """Apply every completion that is already available, without blocking."""
        while True:
            try:
                item = self._completions.get_nowait()
            except queue.Empty:
                return
            self._apply(item)

    def _next_completion(self) -> TicketStatus | BaseException:
        while True:
            try:
                return self._completions.get(timeout=_LIVENESS_TIMEOUT)
            except queue.Empty:
                if not self._poller.is_alive():
                    raise FatalError(f"Ticket poller stopped with {len(self._inflight)} upload(s) outstanding")

    def _apply(self, item: TicketStatus | BaseException) -> None:
        if isinstance(item, FatalError):
            raise item
        if isinstance(item, BaseException):
            raise FatalRemoteError(f"Checking upload tickets failed: {item}") from item

        job = self._inflight.pop(item.ticket_id, None)
        if job is None:
            return

        if item.state is TicketState.SUCCEEDED:
            job.photo_id = item.photo_id
            self._add_to_collection(job)
        else:
            logger.error("Flickr could not process %s", job.path)
            self._record_failure(job)

    def _add_to_collection(self, job: UploadJob) -> None:
        collection = job.collection
        if collection.remote_id is None:
            collection.remote_id = self._service.create_photoset(collection.title, job.photo_id)
        else:
            self._service.add_to_photoset(collection.remote_id, job.photo_id)

        logger.info("%s -> %s", job.path, collection.title)
        collection.state.record(job.name, job.photo_id, job.mtime)
        self._result.uploaded += 1

    def _record_failure(self, job: UploadJob) -> None:
        collection = job.collection
        rel_path = job.path.relative_to(collection.directory.parent).as_posix()
        collection.ledger.append(rel_path, job.mtime)
        self._result.failed.append(str(job.path))
