"""Flickr client – authenticates via OAuth, manages photosets, submits asynchronous uploads and checks tickets."""

from __future__ import annotations

import logging
import os
import re
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from xml.etree.ElementTree import ParseError

import flickrapi
import requests
from flickrapi.exceptions import FlickrError

from flickr_backr.config import Credentials
from flickr_backr.errors import UNREADABLE_FILE, FatalRemoteError, RemoteCallError
from flickr_backr.models import TicketState, TicketStatus

logger = logging.getLogger(__name__)

PERMS = "write"
# Status used when the connection dropped before Flickr answered.
CONNECTION_CLOSED = 502

_STATUS_CODE_RE = re.compile(r"[Ss]tatus code (\d+)")


def _error_code(exc: FlickrError) -> int:
    code = getattr(exc, "code", None)
    if code is not None:
        try:
            return int(code)
        except (TypeError, ValueError):
            pass
    # flickrapi reports HTTP failures of the upload endpoint only in the message.
    match = _STATUS_CODE_RE.search(str(exc))
    return int(match.group(1)) if match else 0


@contextmanager
def _fatal_on_error(what: str) -> Iterator[None]:
    try:
        yield
    except (FlickrError, requests.RequestException, ParseError) as exc:
        raise FatalRemoteError(f"{what} failed: {exc}") from exc


class FlickrClient:
    """Wraps the Flickr API for the calls a backup run needs.

    The OAuth session is created on first use, so building a client is cheap
    and never opens a browser by itself.
    """

    def __init__(self, credentials: Credentials):
        self._credentials = credentials
        self._flickr: flickrapi.FlickrAPI | None = None

    # ── authentication ──────────────────────────────────────────────

    @property
    def api(self) -> flickrapi.FlickrAPI:
        if self._flickr is None:
            self._flickr = self._authenticate()
        return self._flickr

    def _authenticate(self) -> flickrapi.FlickrAPI:
        os.makedirs(self._credentials.token_cache, exist_ok=True)
        flickr = flickrapi.FlickrAPI(
            self._credentials.api_key,
            self._credentials.api_secret,
            format="parsed-json",
            token_cache_location=self._credentials.token_cache,
        )
        with _fatal_on_error("Authentication"):
            if not flickr.token_valid(perms=PERMS):
                logger.info("No valid Flickr token cached, starting browser authorization.")
                flickr.authenticate_via_browser(perms=PERMS)
        return flickr

    # ── photosets ───────────────────────────────────────────────────

    def list_photosets(self) -> dict[str, str]:
        """Return a mapping of photoset title to photoset ID."""
        photosets: dict[str, str] = {}
        page = 1
        while True:
            with _fatal_on_error("photosets.getList"):
                resp = self.api.photosets.getList(page=page)
            body = resp["photosets"]
            for item in body.get("photoset", []):
                photosets[item["title"]["_content"]] = str(item["id"])
            if page >= int(body.get("pages", 1)):
                break
            page += 1
        return photosets

    def list_photoset_photos(self, photoset_id: str, page: int = 1, per_page: int = 500) -> tuple[list[dict], int]:
        """Return one page of photos (with tags) and the total page count."""
        with _fatal_on_error("photosets.getPhotos"):
            resp = self.api.photosets.getPhotos(
                photoset_id=photoset_id,
                extras="tags,machine_tags",
                page=page,
                per_page=per_page,
            )
        body = resp["photoset"]
        return list(body.get("photo", [])), int(body.get("pages", 1))

    def create_photoset(self, title: str, primary_photo_id: str) -> str:
        with _fatal_on_error("photosets.create"):
            resp = self.api.photosets.create(title=title, primary_photo_id=primary_photo_id)
        photoset_id = str(resp["photoset"]["id"])
        logger.info("Created photoset %s (id=%s)", title, photoset_id)
        return photoset_id

    def add_to_photoset(self, photoset_id: str, photo_id: str) -> None:
        with _fatal_on_error("photosets.addPhoto"):
            self.api.photosets.addPhoto(photoset_id=photoset_id, photo_id=photo_id)

    # ── upload ──────────────────────────────────────────────────────

    def upload_async(
        self,
        path: Path,
        title: str,
        tags: str,
        is_public: bool = False,
        is_friend: bool = True,
        is_family: bool = True,
    ) -> str:
        """Submit *path* for asynchronous upload and return the ticket ID.

        Raises :class:`RemoteCallError` carrying Flickr's error code (or the HTTP
        status) when the submission is refused. A file that cannot be opened is
        reported as ``UNREADABLE_FILE``, any transport failure as
        ``CONNECTION_CLOSED``.
        """
        params = {
            "title": title,
            "tags": tags,
            "is_public": str(int(is_public)),
            "is_friend": str(int(is_friend)),
            "is_family": str(int(is_family)),
            "async": "1",
        }
        try:
            fh = open(path, "rb")
        except OSError as exc:
            raise RemoteCallError(UNREADABLE_FILE, str(exc)) from exc

        with fh:
            try:
                rsp = self.api.upload(filename=str(path), fileobj=fh, format="etree", **params)
            except FlickrError as exc:
                raise RemoteCallError(_error_code(exc), str(exc)) from exc
            except (requests.RequestException, ParseError) as exc:
                raise RemoteCallError(CONNECTION_CLOSED, str(exc)) from exc

        ticket_id = rsp.findtext("ticketid")
        if not ticket_id:
            raise RemoteCallError(0, "upload response carried no ticket")
        logger.debug("Submitted %s (ticket=%s)", path.name, ticket_id)
        return ticket_id

    def check_tickets(self, ticket_ids: list[str]) -> list[TicketStatus]:
        """Return the status of every ticket in *ticket_ids* with one call."""
        if not ticket_ids:
            return []
        with _fatal_on_error("photos.upload.checkTickets"):
            resp = self.api.photos.upload.checkTickets(tickets=",".join(ticket_ids))

        statuses = []
        for ticket in resp.get("uploader", {}).get("ticket", []):
            if int(ticket.get("invalid", 0)):
                state = TicketState.FAILED
            else:
                state = TicketState(int(ticket.get("complete", 0)))
            statuses.append(TicketStatus(str(ticket["id"]), state, ticket.get("photoid")))
        return statuses
