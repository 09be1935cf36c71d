"""Error taxonomy for the backup pipeline.

Only :class:`FatalError` (and its subclass :class:`FatalRemoteError`) and
:class:`ConfigError` are meant to reach the CLI. Transient and per-file upload
errors are absorbed by the scheduler, and local best-effort failures are
logged where they happen.
"""

from __future__ import annotations

import enum

# Upload status treated as "service closed connection".
TRANSIENT_CODES = frozenset({502})
# Local file could not be opened for upload (vanished or unreadable).
UNREADABLE_FILE = -1
# Flickr upload API: 4 = filesize was zero, 5 = filetype was not recognised.
TERMINAL_CODES = frozenset({UNREADABLE_FILE, 4, 5})


class ErrorClass(enum.Enum):
    TRANSIENT = "transient"
    TERMINAL = "terminal"
    FATAL = "fatal"


class BackrError(Exception):
    """Base class for every error raised by flickr_backr."""


class ConfigError(BackrError):
    """Required configuration (API key, secret) is missing."""


class FatalError(BackrError):
    """The run cannot continue; progress already persisted stands."""


class FatalRemoteError(FatalError):
    """The remote service answered in a way the run cannot recover from."""


class RemoteCallError(BackrError):
    """An upload submission was refused with an error code."""

    def __init__(self, code: int, message: str = ""):
        super().__init__(f"{code}: {message}" if message else str(code))
        self.code = code
        self.message = message


def classify_upload_error(code: int) -> ErrorClass:
    if code in TRANSIENT_CODES:
        return ErrorClass.TRANSIENT
    if code in TERMINAL_CODES:
        return ErrorClass.TERMINAL
    return ErrorClass.FATAL
