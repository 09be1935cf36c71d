from __future__ import annotations

import logging
import math
import os
import threading
from pathlib import Path

import pytest

from flickr_backr.config import Settings
from flickr_backr.errors import RemoteCallError
from flickr_backr.failure_ledger import FailureLedger
from flickr_backr.models import Collection, TicketState, TicketStatus
from flickr_backr.remote_state import RemoteState


class FakeFlickr:
    """In-memory stand-in for FlickrClient.

    Uploads become tickets; ``check_tickets`` resolves them after
    ``pending_rounds`` polls, failing those whose title is in ``failing_titles``.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._next_id = 0
        self.photosets: dict[str, dict] = {}
        self.photos: dict[str, dict] = {}
        self.tickets: dict[str, dict] = {}
        self.uploads: list[dict] = []
        self.created: list[str] = []
        self.added: list[tuple[str, str]] = []
        self.check_calls: list[list[str]] = []
        self.upload_attempts = 0
        self.upload_errors: list[int] = []
        self.failing_titles: set[str] = set()
        self.pending_rounds = 0
        self.check_error: Exception | None = None
        self.max_unresolved = 0

    def _new_id(self, prefix: str) -> str:
        self._next_id += 1
        return f"{prefix}-{self._next_id}"

    # ── test setup ──────────────────────────────────────────────────

    def add_photoset(self, title: str, photos=(), machine_tags: bool = True) -> str:
        """Create a photoset holding ``(name, timestamp)`` pairs."""
        photoset_id = self._new_id("set")
        items = []
        for name, timestamp in photos:
            photo = {"id": self._new_id("photo"), "title": name, "tags": "", "machine_tags": ""}
            if timestamp is not None:
                photo["tags"] = f"flickrbackr visionlwt{timestamp}"
                if machine_tags:
                    photo["machine_tags"] = f"vision:lwt={timestamp}"
            self.photos[photo["id"]] = photo
            items.append(photo)
        self.photosets[photoset_id] = {"title": title, "photos": items}
        return photoset_id

    def titles_in(self, title: str) -> list[str]:
        for photoset in self.photosets.values():
            if photoset["title"] == title:
                return [photo["title"] for photo in photoset["photos"]]
        return []

    # ── service API ─────────────────────────────────────────────────

    def list_photosets(self) -> dict[str, str]:
        return {photoset["title"]: photoset_id for photoset_id, photoset in self.photosets.items()}

    def list_photoset_photos(self, photoset_id: str, page: int = 1, per_page: int = 500):
        photos = self.photosets[photoset_id]["photos"]
        pages = max(1, math.ceil(len(photos) / per_page))
        start = (page - 1) * per_page
        return [dict(photo) for photo in photos[start:start + per_page]], pages

    def create_photoset(self, title: str, primary_photo_id: str) -> str:
        photoset_id = self._new_id("set")
        self.photosets[photoset_id] = {"title": title, "photos": [self.photos[primary_photo_id]]}
        self.created.append(title)
        return photoset_id

    def add_to_photoset(self, photoset_id: str, photo_id: str) -> None:
        self.photosets[photoset_id]["photos"].append(self.photos[photo_id])
        self.added.append((photoset_id, photo_id))

    def upload_async(self, path, title, tags, is_public=False, is_friend=True, is_family=True) -> str:
        with self._lock:
            self.upload_attempts += 1
            if self.upload_errors:
                raise RemoteCallError(self.upload_errors.pop(0), "injected")

            ticket_id = self._new_id("ticket")
            photo_id = self._new_id("photo")
            machine = [tag for tag in tags.split() if ":" in tag]
            self.photos[photo_id] = {
                "id": photo_id,
                "title": title,
                "tags": tags.replace(":", "").replace("=", ""),
                "machine_tags": " ".join(machine),
            }
            self.tickets[ticket_id] = {"photo_id": photo_id, "title": title, "polls": 0}
            self.uploads.append({"path": Path(path), "title": title, "tags": tags, "is_public": is_public})
            self.max_unresolved = max(self.max_unresolved, len(self.tickets))
            return ticket_id

    def check_tickets(self, ticket_ids: list[str]) -> list[TicketStatus]:
        with self._lock:
            self.check_calls.append(list(ticket_ids))
            if self.check_error is not None:
                raise self.check_error

            statuses = []
            for ticket_id in ticket_ids:
                ticket = self.tickets.get(ticket_id)
                if ticket is None:
                    continue
                ticket["polls"] += 1
                if ticket["polls"] <= self.pending_rounds:
                    statuses.append(TicketStatus(ticket_id, TicketState.PENDING))
                    continue
                del self.tickets[ticket_id]
                if ticket["title"] in self.failing_titles:
                    statuses.append(TicketStatus(ticket_id, TicketState.FAILED))
                else:
                    statuses.append(TicketStatus(ticket_id, TicketState.SUCCEEDED, ticket["photo_id"]))
            return statuses


@pytest.fixture
def fake_flickr() -> FakeFlickr:
    return FakeFlickr()


@pytest.fixture
def settings() -> Settings:
    return Settings(time_budget_minutes=10, poll_interval=0.01)


@pytest.fixture
def make_file():
    def _make(path: Path, mtime: int, content: bytes = b"\xff\xd8\xff\xe0fake") -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(content)
        os.utime(path, (mtime, mtime))
        return path

    return _make


@pytest.fixture
def collection(tmp_path: Path) -> Collection:
    directory = tmp_path / "vacation"
    directory.mkdir()
    return Collection(
        title="vacation",
        directory=directory,
        state=RemoteState(),
        ledger=FailureLedger(directory),
    )


@pytest.fixture(autouse=True)
def _reset_root_logging():
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield
    for handler in list(root.handlers):
        if handler not in handlers:
            root.removeHandler(handler)
            handler.close()
    root.setLevel(level)
