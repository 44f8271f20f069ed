"""
Library cache

Persists reconciled track and playlist collections together with their
watermarks, so an incremental update can continue in a later process instead
of starting over with a full fetch.

Each collection is one JSON file:

    {"version": 1, "last_updated": "<ISO-8601 or null>", "items": [<feed items>]}

Items are stored in the same shape the JSON feeds deliver, so loading goes
through the regular `from_feed` factories.
"""

import json
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Union

from ..config.settings import Settings, get_settings
from ..library.collections import ItemList, PlaylistEntrylist, Playlists, Tracklist
from ..library.models import Playlist, PlaylistEntry, Track
from ..utils.helpers import as_utc
from ..utils.logger import get_logger

CACHE_VERSION = 1
TRACKS_FILE = "tracks.json"
PLAYLISTS_FILE = "playlists.json"


def _playlist_from_cache(data: Dict[str, Any]) -> Playlist:
    playlist = Playlist.from_feed(data)
    entries = PlaylistEntrylist(PlaylistEntry.from_feed(entry) for entry in data.get('entries') or [])
    return playlist.with_entries(entries)


class LibraryCache:
    """
    JSON file cache for library collections

    Attributes:
        directory: Folder holding the cache files
        enabled: When False, saves are skipped and loads return None
    """

    def __init__(self, directory: Optional[Union[str, Path]] = None, settings: Optional[Settings] = None):
        """
        Initialize cache

        Args:
            directory: Cache folder; defaults to the configured cache directory
            settings: Library settings, the global instance when omitted
        """
        settings = settings or get_settings()
        self.directory = Path(directory).expanduser() if directory else settings.get_cache_directory()
        self.enabled = settings.cache.enabled
        self.logger = get_logger(__name__)

    def _path(self, name: str) -> Path:
        return self.directory / name

    def _save(self, name: str, collection: ItemList, render: Callable[[Any], Dict[str, Any]]) -> bool:
        if not self.enabled:
            return False

        document = {
            'version': CACHE_VERSION,
            'last_updated': as_utc(collection.last_updated).isoformat() if collection.last_updated else None,
            'items': [render(item) for item in collection],
        }

        path = self._path(name)
        path.parent.mkdir(parents=True, exist_ok=True)
        # Write next to the target and rename, so a crash never leaves half a file
        temp_path = path.with_suffix(path.suffix + '.tmp')
        with open(temp_path, 'w', encoding='utf-8') as f:
            json.dump(document, f, indent=2)
        temp_path.replace(path)

        self.logger.debug(f"Cached {len(collection)} items to {path}")
        return True

    def _load(self, name: str, factory: Callable[[Dict[str, Any]], Any],
              collection_type: type) -> Optional[ItemList]:
        if not self.enabled:
            return None

        path = self._path(name)
        if not path.exists():
            return None

        try:
            with open(path, 'r', encoding='utf-8') as f:
                document = json.load(f)

            if document.get('version') != CACHE_VERSION:
                self.logger.warning(f"Ignoring cache {path}: unsupported version {document.get('version')}")
                return None

            last_updated = document.get('last_updated')
            return collection_type(
                (factory(item) for item in document.get('items') or []),
                last_updated=datetime.fromisoformat(last_updated) if last_updated else None
            )
        except (OSError, ValueError, TypeError, AttributeError) as e:
            self.logger.warning(f"Ignoring corrupt cache {path}: {e}")
            return None

    def save_tracks(self, tracks: Tracklist) -> bool:
        """
        Persist a track collection

        Returns:
            True if written, False when the cache is disabled

        Raises:
            OSError: If the file cannot be written
        """
        return self._save(TRACKS_FILE, tracks, lambda track: track.to_feed())

    def load_tracks(self) -> Optional[Tracklist]:
        """
        Restore the cached track collection

        Returns:
            Tracklist with its watermark, or None if missing, disabled or corrupt
        """
        return self._load(TRACKS_FILE, Track.from_feed, Tracklist)

    def save_playlists(self, playlists: Playlists) -> bool:
        """
        Persist playlists including their entries

        Raises:
            OSError: If the file cannot be written
        """
        return self._save(PLAYLISTS_FILE, playlists, lambda playlist: playlist.to_feed(include_entries=True))

    def load_playlists(self) -> Optional[Playlists]:
        """
        Restore the cached playlists with their entries

        Returns:
            Playlists with their watermark, or None if missing, disabled or corrupt
        """
        return self._load(PLAYLISTS_FILE, _playlist_from_cache, Playlists)

    def clear(self) -> None:
        """Remove all cache files"""
        for name in (TRACKS_FILE, PLAYLISTS_FILE):
            path = self._path(name)
            if path.exists():
                path.unlink()
                self.logger.debug(f"Removed cache file {path}")
