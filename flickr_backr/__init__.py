"""flickr_backr – incremental, idempotent backups of local photo directories to Flickr photosets."""

from .backup_engine import BackupEngine
from .config import Settings
from .errors import FatalError, FatalRemoteError
from .flickr_client import FlickrClient

__all__ = ["BackupEngine", "Settings", "FatalError", "FatalRemoteError", "FlickrClient"]
