"""Per-photoset index of items already on Flickr, keyed by logical name."""

from __future__ import annotations

import logging
import re
from collections import defaultdict
from dataclasses import dataclass

from flickr_backr.media import logical_name
from flickr_backr.models import SENTINEL_ID, FailureRecord, RemoteItem

logger = logging.getLogger(__name__)

TAG_NAMESPACE = "vision"
TAG_KEY = "lwt"
DEFAULT_PAGE_SIZE = 500


def timestamp_tag(mtime: int) -> str:
    """Machine tag written on upload so a later run can recognise the file."""
    return f"{TAG_NAMESPACE}:{TAG_KEY}={mtime}"


@dataclass(frozen=True)
class TagParser:
    """One historical encoding of the modification-time tag."""

    label: str
    pattern: re.Pattern

    def parse(self, tags: str) -> int | None:
        match = self.pattern.search(tags)
        return int(match.group(1)) if match else None


# Ordered, first match wins. Items uploaded long ago only carry the
# normalised form, so both must stay.
TAG_PARSERS: tuple[TagParser, ...] = (
    TagParser("machine", re.compile(rf"\b{TAG_NAMESPACE}:{TAG_KEY}=([0-9]+)")),
    TagParser("normalised", re.compile(rf"\b{TAG_NAMESPACE}{TAG_KEY}([0-9]+)\b")),
)


def parse_timestamp(tags: str, parsers: tuple[TagParser, ...] = TAG_PARSERS) -> int | None:
    for parser in parsers:
        value = parser.parse(tags)
        if value is not None:
            return value
    return None


class RemoteState:
    """Remote items of one photoset. Entries are only ever added."""

    def __init__(self) -> None:
        self._items: dict[str, list[RemoteItem]] = defaultdict(list)

    def __len__(self) -> int:
        return sum(len(items) for items in self._items.values())

    # ── building ────────────────────────────────────────────────────

    def initialize(self, service, photoset_id: str | None, page_size: int = DEFAULT_PAGE_SIZE) -> "RemoteState":
        """Index every photo of *photoset_id*, one page at a time."""
        if photoset_id is None:
            return self

        page = 1
        while True:
            photos, pages = service.list_photoset_photos(photoset_id, page=page, per_page=page_size)
            for photo in photos:
                self._index_photo(photo)
            if page >= pages:
                break
            page += 1

        logger.debug("Indexed %d item(s) of photoset %s", len(self), photoset_id)
        return self

    def _index_photo(self, photo: dict) -> None:
        tags = " ".join(filter(None, (photo.get("machine_tags"), photo.get("tags"))))
        timestamp = parse_timestamp(tags)
        if timestamp is None:
            logger.warning("No timestamp tag on %r (tags: %r)", photo.get("title"), tags)
        self._items[photo.get("title", "")].append(RemoteItem(str(photo["id"]), timestamp))

    # ── queries ─────────────────────────────────────────────────────

    def exists(self, name: str, timestamp: int) -> bool:
        return any(item.timestamp == timestamp for item in self._items.get(name, ()))

    def items(self, name: str) -> tuple[RemoteItem, ...]:
        return tuple(self._items.get(name, ()))

    def matches(self, name: str) -> tuple[int | None, ...]:
        return tuple(item.timestamp for item in self.items(name))

    # ── updates ─────────────────────────────────────────────────────

    def merge(self, record: FailureRecord) -> None:
        self._items[logical_name(record.path)].append(RemoteItem(SENTINEL_ID, record.timestamp))

    def record(self, name: str, remote_id: str, timestamp: int) -> None:
        self._items[name].append(RemoteItem(remote_id, timestamp))
