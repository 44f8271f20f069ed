"""
gmusic: incremental client for a personal cloud music library

gmusic keeps a local copy of a music library (tracks, playlists and the
entries joining them) in step with the remote service. After one full fetch
every later update asks only for what changed since the collection's
watermark and merges that delta into the known collection in place.

## Core Architecture

**Configuration (`gmusic/config/`)**
- Settings sections loaded from defaults, YAML and environment variables
- SessionHandle: explicit credential value shared between clients

**Library model (`gmusic/library/`)**
- Immutable Track, Playlist and PlaylistEntry records
- Watermark-carrying collections (Tracklist, Playlists, PlaylistEntrylist)
- Album and album-artist views with punctuation-insensitive ordering

**Service access (`gmusic/service/`)**
- Request boundary, JSON and bracketed-array decoders
- Paginated delta fetcher and the public MusicClient
- Signed stream URLs and parallel multi-part audio retrieval

**Synchronization (`gmusic/sync/`)**
- Delta reconciliation (last write wins, tombstone purge)
- Playlist entry assembly with batched shared-playlist lookups
- On-disk cache of collections and their watermarks

**Utilities (`gmusic/utils/`)**
- Logging setup with colored console output and rotating log files
- Timestamp conversions and argument validation

## Error Handling

Public client operations never raise service failures: authentication,
transport and decode errors are logged, passed to the optional error sink
and turned into a failure value. Missing required arguments raise
ArgumentError before any request is made.

## Usage

    from gmusic import MusicClient, SessionHandle

    client = MusicClient(SessionHandle(auth_token=token, xt=xt))
    tracks = client.get_all_tracks()
    client.update_tracks(tracks)
"""

__version__ = "0.9.0"

from .config import SessionHandle, Settings, get_settings
from .core import (
    ArgumentError, AuthenticationError, ErrorHandler, GMusicError,
    ProtocolDecodeError, ServiceError
)
from .library import (
    Album, AlbumArtist, MetaKey, Playlist, PlaylistEntry, PlaylistEntrylist,
    Playlists, StreamUrl, Track, Tracklist, group_by_album, group_by_album_artist
)
from .service import MusicClient, RemoteCollectionFetcher
from .sync import ItemReconciler, LibraryCache, PlaylistEntryAssembler

__all__ = [
    '__version__',
    'SessionHandle', 'Settings', 'get_settings',
    'GMusicError', 'AuthenticationError', 'ServiceError', 'ProtocolDecodeError',
    'ArgumentError', 'ErrorHandler',
    'Track', 'Playlist', 'PlaylistEntry', 'StreamUrl', 'MetaKey',
    'Tracklist', 'Playlists', 'PlaylistEntrylist',
    'Album', 'AlbumArtist', 'group_by_album', 'group_by_album_artist',
    'MusicClient', 'RemoteCollectionFetcher',
    'ItemReconciler', 'PlaylistEntryAssembler', 'LibraryCache',
]
