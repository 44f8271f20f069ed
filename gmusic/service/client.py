"""
Music library client

This module exposes the caller-facing operations of the library: full and
incremental retrieval of tracks and playlists, in-place updates of already
known collections, playlist and track mutations, library status and account
settings, and stream retrieval.

Architecture Overview:

1. **Fetch layer**: RemoteCollectionFetcher issues the paginated delta
   requests through the ServiceCall boundary.

2. **Merge layer**: ItemReconciler folds a delta into a baseline collection
   (last write wins, tombstones purged) and assigns the new watermark.

3. **Assembly layer**: PlaylistEntryAssembler turns the flat entry feed into
   ordered per-playlist entry lists and resolves shared playlists in one
   batched lookup.

4. **Operation boundary**: every public method is wrapped so that service,
   authentication and decode failures are logged, handed to the registered
   error sink and turned into a failure value (None, False, 0 or b"").
   Argument errors are raised before any request and are never swallowed.

Usage Examples:

    session = SessionHandle(auth_token=token, xt=xt_cookie)
    client = MusicClient(session, error_handler=lambda msg, exc: print(msg))

    tracks = client.get_all_tracks()
    ...
    if client.update_tracks(tracks):
        print(f"Library changed, {len(tracks)} tracks")

    playlist_id = client.create_playlist("Road trip")
    client.add_to_playlist(playlist_id, [track.id for track in tracks[:10]])
"""

import functools
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Optional

from ..config.session import SessionHandle
from ..config.settings import Settings, get_settings
from ..core.exceptions import RECOVERABLE_ERRORS, AuthenticationError, ErrorHandler
from ..library.collections import PlaylistEntrylist, Playlists, Tracklist
from ..library.models import AccountSettings, MetaKey, Status, StreamUrl
from ..library.views import AlbumArtistlist, Albumlist, group_by_album, group_by_album_artist
from ..sync.assembler import PlaylistEntryAssembler
from ..sync.reconciler import ItemReconciler
from ..utils.helpers import to_bool, utcnow
from ..utils.logger import get_logger
from ..utils.validation import is_blank, require_argument, require_ids
from . import decoder
from .fetcher import CollectionKind, RemoteCollectionFetcher
from .stream import StreamDownloader, StreamUrlDeriver
from .transport import HttpServiceCall, ServiceCall


def service_operation(default: Any = None):
    """
    Decorator recovering service failures at the operation boundary

    AuthenticationError, ServiceError and ProtocolDecodeError raised by the
    wrapped method are reported through the client's error sink and replaced
    by `default` (called first when it is callable). Every other exception,
    ArgumentError included, propagates.
    """
    def decorator(func):
        @functools.wraps(func)
        def wrapper(self, *args, **kwargs):
            try:
                return func(self, *args, **kwargs)
            except RECOVERABLE_ERRORS as e:
                self._report(f"{func.__name__} failed: {e}", e)
                return default() if callable(default) else default
        return wrapper
    return decorator


class MusicClient:
    """
    Client for one authenticated music library

    The client never logs in by itself: it is handed a SessionHandle that
    another component (or another client) obtained, and uses it for every
    request. Operations are synchronous and the client holds no collection
    state; collections live with the caller and are updated in place.

    Attributes:
        session: Credentials used for every request
        transport: Service call boundary
        error_handler: Optional sink receiving (message, exception) for every
            recovered failure; may be assigned after construction
        fetcher: Paginated delta fetches
        reconciler: Delta merge and watermark assignment
        assembler: Playlist entry assembly
    """

    def __init__(self, session: SessionHandle, transport: Optional[ServiceCall] = None,
                 error_handler: Optional[ErrorHandler] = None, settings: Optional[Settings] = None,
                 stream_deriver: Optional[StreamUrlDeriver] = None,
                 stream_fetch: Optional[Callable[[str], bytes]] = None,
                 clock: Callable[[], datetime] = utcnow):
        """
        Initialize client

        Args:
            session: Already-validated session handle
            transport: Service call boundary; an HttpServiceCall on `session` when omitted
            error_handler: Sink for recovered failures
            settings: Library settings, the global instance when omitted
            stream_deriver: Source of signed stream URLs; streaming is unavailable without one
            stream_fetch: Downloads one stream URL to bytes; defaults to the transport's `download`
            clock: Source of fetch-completion times for watermarks
        """
        self.session = session
        self.settings = settings or get_settings()
        self.transport = transport or HttpServiceCall(session, self.settings)
        self.error_handler = error_handler
        self.stream_deriver = stream_deriver
        self.stream_fetch = stream_fetch
        self.logger = get_logger(__name__)

        self.fetcher = RemoteCollectionFetcher(self.transport, self.settings, session.session_id)
        self.reconciler = ItemReconciler(clock)
        self.assembler = PlaylistEntryAssembler(self.fetcher, self.reconciler)

    def _report(self, message: str, error: Optional[Exception] = None) -> None:
        """Log a recovered failure and pass it to the error sink"""
        self.logger.warning(message)
        if self.error_handler:
            self.error_handler(message, error)

    def _require_login(self, operation: str) -> None:
        if not self.session.is_authenticated:
            raise AuthenticationError(
                f"Not logged in: {operation} failed!",
                details={'operation': operation}
            )

    def _call(self, service: str, payload: Any = None) -> str:
        self._require_login(service)
        return self.transport.call(service, payload)

    # Tracks

    @service_operation()
    def get_all_tracks(self) -> Optional[Tracklist]:
        """
        Fetch the complete track library

        Returns:
            Tracklist without tombstones, stamped with the fetch-completion
            time; None if the fetch failed
        """
        self._require_login('get_all_tracks')
        delta = self.fetcher.fetch_all(CollectionKind.TRACKS, None, self._report)
        baseline = Tracklist()
        merged = self.reconciler.merge(baseline, delta)
        if merged is None:
            return Tracklist(last_updated=self.reconciler.stamp(baseline))
        return merged

    @service_operation()
    def get_tracks(self, since: Optional[datetime] = None) -> Optional[Tracklist]:
        """
        Fetch the tracks changed since a watermark

        Args:
            since: Lower bound; None fetches everything

        Returns:
            The raw delta in fetch order, tombstones included, stamped with the
            fetch-completion time; None if the fetch failed
        """
        self._require_login('get_tracks')
        delta = self.fetcher.fetch_all(CollectionKind.TRACKS, since, self._report)
        delta.last_updated = self.reconciler.stamp(delta)
        return delta

    @service_operation(default=False)
    def update_tracks(self, tracks: Tracklist) -> bool:
        """
        Bring a known track collection up to date in place

        The collection's watermark bounds the fetch. Whether or not anything
        changed, a successful update advances the watermark. On failure the
        collection is left untouched.

        Args:
            tracks: Collection previously returned by this client (or restored from cache)

        Returns:
            True if any track was added, changed or removed

        Raises:
            ArgumentError: If tracks is None
        """
        require_argument(tracks, 'tracks', 'update_tracks')
        self._require_login('update_tracks')

        delta = self.fetcher.fetch_all(CollectionKind.TRACKS, tracks.last_updated, self._report)
        merged = self.reconciler.merge(tracks, delta)
        if merged is None:
            tracks.last_updated = self.reconciler.stamp(tracks)
            return False

        tracks[:] = merged
        tracks.last_updated = merged.last_updated
        self.logger.info(f"Applied {len(delta)} track changes, {len(tracks)} tracks")
        return True

    # Playlists

    @service_operation()
    def get_all_playlists(self) -> Optional[Playlists]:
        """
        Fetch every playlist with its ordered entries

        Returns:
            Resolved Playlists without tombstones, stamped with the
            fetch-completion time; None if the fetch failed
        """
        self._require_login('get_all_playlists')
        playlist_delta = self.fetcher.fetch_all(CollectionKind.PLAYLISTS, None, self._report)
        entries = self.fetcher.fetch_all(CollectionKind.ENTRIES, None, self._report)

        baseline = Playlists()
        playlists = self.reconciler.merge(baseline, playlist_delta)
        if playlists is None:
            playlists = Playlists(last_updated=self.reconciler.stamp(baseline))
        return self.assembler.attach(playlists, entries, self._report)

    @service_operation()
    def get_playlists(self, since: Optional[datetime] = None) -> Optional[Playlists]:
        """
        Fetch the playlists changed since a watermark

        Each returned playlist carries the entries of the entry delta that
        belong to it; shared playlists carry their complete entry list.

        Returns:
            The raw playlist delta, tombstones included, stamped with the
            fetch-completion time; None if the fetch failed
        """
        self._require_login('get_playlists')
        playlist_delta = self.fetcher.fetch_all(CollectionKind.PLAYLISTS, since, self._report)
        entry_delta = self.fetcher.fetch_all(CollectionKind.ENTRIES, since, self._report)

        playlist_delta.last_updated = self.reconciler.stamp(playlist_delta)
        return self.assembler.attach(playlist_delta, entry_delta, self._report)

    @service_operation(default=False)
    def update_playlists(self, playlists: Playlists) -> bool:
        """
        Bring known playlists, including their entries, up to date in place

        Playlist and entry deltas are fetched from the collection's watermark.
        Playlists changed in the delta keep their known entries; the entry
        delta is then merged into each playlist it touches, and shared
        playlists are resolved again in one batched lookup.

        Args:
            playlists: Collection previously returned by this client (or restored from cache)

        Returns:
            True if any playlist or entry changed

        Raises:
            ArgumentError: If playlists is None
        """
        require_argument(playlists, 'playlists', 'update_playlists')
        self._require_login('update_playlists')

        since = playlists.last_updated
        playlist_delta = self.fetcher.fetch_all(CollectionKind.PLAYLISTS, since, self._report)
        entry_delta = self.fetcher.fetch_all(CollectionKind.ENTRIES, since, self._report)

        merged = self.reconciler.merge(playlists, playlist_delta)
        changed = merged is not None
        if merged is None:
            merged = playlists.copy()
        else:
            # Playlist records from the delta arrive without entries
            known = {playlist.id: playlist for playlist in playlists}
            for index, playlist in enumerate(merged):
                old = known.get(playlist.id)
                if old is not None and playlist is not old:
                    merged[index] = playlist.with_entries(old.entries)

        updated, entries_changed = self.assembler.apply_delta(merged, entry_delta, self._report)

        watermark = self.reconciler.stamp(playlists)
        playlists[:] = updated
        playlists.last_updated = watermark
        return changed or entries_changed

    @service_operation()
    def get_playlist_entries(self, since: Optional[datetime] = None) -> Optional[Dict[str, PlaylistEntrylist]]:
        """
        Fetch playlist entries grouped by playlist

        Shared playlists are not part of the entry feed and do not appear.

        Returns:
            Mapping playlist id -> entries ordered by position; None on failure
        """
        self._require_login('get_playlist_entries')
        entries = self.fetcher.fetch_all(CollectionKind.ENTRIES, since, self._report)
        return self.assembler.assemble(entries)

    # Derived views

    def get_albums(self, tracks: Iterable) -> Albumlist:
        """Group tracks into albums (see library.views.group_by_album)"""
        require_argument(tracks, 'tracks', 'get_albums')
        return group_by_album(tracks)

    def get_album_artists(self, tracks: Iterable) -> AlbumArtistlist:
        """Group tracks by album artist (see library.views.group_by_album_artist)"""
        require_argument(tracks, 'tracks', 'get_album_artists')
        return group_by_album_artist(tracks)

    # Status and settings

    @service_operation()
    def get_status(self) -> Optional[Status]:
        """Library status; None for an empty answer or on failure"""
        body = self._call('getstatus')
        if is_blank(body):
            return None
        return Status.from_response(decoder.decode_object(body, 'getstatus'))

    def get_track_count(self) -> int:
        """Number of available tracks, 0 if the status is unavailable"""
        status = self.get_status()
        return status.available_tracks if status is not None else 0

    @service_operation()
    def get_account_settings(self) -> Optional[AccountSettings]:
        """Account settings and registered devices; None for an empty answer or on failure"""
        body = self._call('loadsettings')
        if is_blank(body):
            return None
        document = decoder.decode_object(body, 'loadsettings')
        return AccountSettings.from_response(document.get('settings') or {})

    # Playlist mutations

    @service_operation()
    def create_playlist(self, name: str = "New Playlist") -> Optional[str]:
        """
        Create an empty user playlist

        Returns:
            Id of the new playlist, None on failure
        """
        body = self._call('createplaylist', {'name': name})
        if is_blank(body):
            return None
        playlist_id = decoder.decode_object(body, 'createplaylist').get('id')
        if playlist_id:
            self.logger.info(f"Created playlist '{name}' ({playlist_id})")
        return playlist_id

    @service_operation(default=False)
    def delete_playlist(self, playlist_id: str) -> bool:
        """Delete a playlist; False for a blank id (no request is made)"""
        if is_blank(playlist_id):
            return False
        return not is_blank(self._call('deleteplaylist', {'id': playlist_id}))

    @service_operation(default=False)
    def rename_playlist(self, playlist_id: str, new_name: str) -> bool:
        """Rename a playlist; False for a blank id or name (no request is made)"""
        if is_blank(playlist_id) or is_blank(new_name):
            return False
        return not is_blank(self._call('editplaylist', {'id': playlist_id, 'name': new_name}))

    @service_operation(default=False)
    def add_to_playlist(self, playlist_id: str, track_ids: Iterable[str]) -> bool:
        """
        Append tracks to a playlist

        Args:
            playlist_id: Target playlist
            track_ids: Tracks to append, in order; empty ids are skipped

        Returns:
            True if the service accepted the request

        Raises:
            ArgumentError: If track_ids is None or a plain string
        """
        ids = require_ids(track_ids, 'track_ids', 'add_to_playlist')
        if is_blank(playlist_id):
            return False

        payload = {
            'playlistId': playlist_id,
            'songRefs': [{'id': track_id, 'type': 1} for track_id in ids],
        }
        return not is_blank(self._call('addtoplaylist', payload))

    @service_operation(default=False)
    def change_playlist_order(self, playlist_id: str, track_ids_moving: Iterable[str],
                              entry_ids_moving: Iterable[str], after_entry_id: str = "",
                              before_entry_id: str = "") -> bool:
        """
        Move entries within a playlist

        The moved entries are placed between `after_entry_id` and
        `before_entry_id`; an empty neighbour means the start or end of the
        playlist.

        Raises:
            ArgumentError: If either id collection is None
        """
        track_ids = require_ids(track_ids_moving, 'track_ids_moving', 'change_playlist_order')
        entry_ids = require_ids(entry_ids_moving, 'entry_ids_moving', 'change_playlist_order')
        if is_blank(playlist_id):
            return False

        payload = {
            'playlistId': playlist_id,
            'movedSongIds': track_ids,
            'movedEntryIds': entry_ids,
            'afterEntryId': after_entry_id or "",
            'beforeEntryId': before_entry_id or "",
        }
        return not is_blank(self._call('changeplaylistorder', payload))

    @service_operation(default=False)
    def delete_tracks(self, track_ids: Iterable[str], playlist_id: str = "all",
                      entry_ids: Iterable[str] = ()) -> bool:
        """
        Remove tracks from a playlist, or from the library

        Args:
            track_ids: Tracks to remove
            playlist_id: Playlist to remove them from; "all" deletes them from the library
            entry_ids: Entries to remove, when removing from a playlist

        Raises:
            ArgumentError: If track_ids or entry_ids is None
        """
        ids = require_ids(track_ids, 'track_ids', 'delete_tracks')
        entries = require_ids(entry_ids, 'entry_ids', 'delete_tracks')
        if is_blank(playlist_id):
            return False

        payload = {'songIds': ids, 'entryIds': entries, 'listId': playlist_id}
        return not is_blank(self._call('deletesong', payload))

    # Track mutations

    @service_operation(default=False)
    def change_track_metadata(self, track_id: str, metadata: Dict[MetaKey, Any]) -> bool:
        """
        Edit metadata fields of a track

        Only values whose type matches the field's declared type are sent;
        the others are skipped with a warning. When none is left, nothing is
        sent and the call fails.

        Args:
            track_id: Track to edit
            metadata: New values keyed by field

        Returns:
            The service's success flag

        Raises:
            ArgumentError: If metadata is None
        """
        require_argument(metadata, 'metadata', 'change_track_metadata')
        if is_blank(track_id):
            return False

        entry: Dict[str, Any] = {'id': track_id}
        for key, value in metadata.items():
            if isinstance(key, MetaKey) and key.accepts(value):
                entry[key.wire_name] = value
            else:
                self.logger.warning(f"Skipping metadata {key}: {value!r} has the wrong type")

        if len(entry) == 1:
            self._report(f"change_track_metadata: no valid metadata for track {track_id}")
            return False

        body = self._call('modifyentries', {'entries': [entry]})
        if is_blank(body):
            return False
        return to_bool(decoder.decode_object(body, 'modifyentries').get('success'))

    # Streaming

    @service_operation()
    def get_stream_urls(self, track_id: str) -> Optional[List[StreamUrl]]:
        """
        Signed stream URLs of a track

        Returns:
            One URL for the whole file or one per byte-range part; None for a
            blank id, without a configured deriver, or on failure
        """
        if is_blank(track_id):
            return None
        if self.stream_deriver is None:
            self._report("get_stream_urls: no stream URL deriver configured")
            return None
        self._require_login('get_stream_urls')
        return self.stream_deriver.derive(track_id, self.session)

    @service_operation(default=b"")
    def get_stream_audio(self, stream_urls: Iterable[StreamUrl]) -> bytes:
        """
        Download the audio behind stream URLs

        Several byte-range parts are fetched in parallel into one buffer.

        Returns:
            The audio bytes; b"" if any part failed

        Raises:
            ArgumentError: If stream_urls is None
        """
        require_argument(stream_urls, 'stream_urls', 'get_stream_audio')
        fetch = self.stream_fetch or self.transport.download
        downloader = StreamDownloader(fetch, self.settings.stream.max_workers)
        return downloader.download(stream_urls)
