"""Run settings and credential lookup."""

from __future__ import annotations

import os
from dataclasses import dataclass

from flickr_backr.errors import ConfigError
from flickr_backr.failure_ledger import LEDGER_FILENAME
from flickr_backr.remote_state import DEFAULT_PAGE_SIZE

DEFAULT_TOKEN_CACHE = "~/.flickr"
LOG_FILENAME = "flickr_backr.log"


@dataclass(frozen=True)
class Credentials:
    api_key: str
    api_secret: str
    token_cache: str


@dataclass(frozen=True)
class Settings:
    time_budget_minutes: float = 1
    dry_run: bool = False
    max_in_flight: int = 10
    poll_interval: float = 1.0
    upload_attempts: int = 5
    retry_delay: float = 5.0
    page_size: int = DEFAULT_PAGE_SIZE
    ledger_filename: str = LEDGER_FILENAME

    @property
    def time_budget_seconds(self) -> float:
        return self.time_budget_minutes * 60


def load_credentials() -> Credentials:
    """Read Flickr API credentials from the environment."""
    api_key = os.getenv("FLICKR_API_KEY")
    api_secret = os.getenv("FLICKR_API_SECRET")

    missing = [name for name, value in (("FLICKR_API_KEY", api_key), ("FLICKR_API_SECRET", api_secret)) if not value]
    if missing:
        raise ConfigError(f"Missing env: {', '.join(missing)}")

    token_cache = os.path.expanduser(os.getenv("FLICKR_TOKEN_CACHE", DEFAULT_TOKEN_CACHE))
    return Credentials(api_key=api_key, api_secret=api_secret, token_cache=token_cache)  # type: ignore[arg-type]
