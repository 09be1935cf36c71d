"""Media type classification and logical-name helpers."""

from __future__ import annotations

import mimetypes
from pathlib import PurePath

# Types missing from the interpreter's default table on some platforms.
for _ext, _mime in (
    (".heic", "image/heic"),
    (".heif", "image/heif"),
    (".webp", "image/webp"),
    (".mts", "video/mp2t"),
    (".m4v", "video/x-m4v"),
):
    mimetypes.add_type(_mime, _ext)

SUPPORTED_PREFIXES = ("image/", "video/")


def guess_mime(name: str) -> str | None:
    mime_type, _ = mimetypes.guess_type(name.lower(), strict=False)
    return mime_type


def is_supported(name: str) -> bool:
    """Return True when *name* looks like an image or a video."""
    mime_type = guess_mime(name)
    return bool(mime_type) and mime_type.startswith(SUPPORTED_PREFIXES)


def logical_name(path: str | PurePath) -> str:
    """Return the file name without directories or extension ("a/b/img1.jpg" -> "img1")."""
    return PurePath(path).stem
