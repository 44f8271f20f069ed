"""
Data models for the music library

This module defines the records the library is built from: tracks, playlists
and the playlist entries joining the two, plus the small value types returned
by the status, settings and streaming operations.

Architecture Overview:

1. **Item records**: Track, Playlist and PlaylistEntry share the item
   capability: a stable `id` and a `deleted` tombstone flag. Two items with
   the same id are the same logical entity; the later-fetched one wins.

2. **Value types**: StreamUrl, Status/UploadStatus, AccountSettings and
   Device are read-only snapshots of single service responses.

3. **Metadata keys**: MetaKey enumerates the track fields that may be edited
   and the Python type each one accepts.

Design Patterns Implemented:

- **Immutable records**: every model is a frozen dataclass. Normalized names
  and collation keys are computed once in `__post_init__` at ingestion time,
  never lazily on first read.
- **Factory Method**: `from_feed()` builds a record from a JSON feed item and
  `to_feed()` renders it back into the same shape for the library cache.
- **Value copies**: a PlaylistEntry embeds its own Track snapshot rather than
  a reference into a master track collection.
"""

import re
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Protocol, Tuple

from ..utils.helpers import (
    datetime_to_micros, ensure_http_scheme, micros_to_datetime,
    millis_to_datetime, seconds_to_datetime, to_bool, to_int
)
from .collections import PlaylistEntrylist
from .sorting import collation_key, rearrange_article


PLAYLIST_TYPE_USER = "USER_GENERATED"
PLAYLIST_TYPE_SHARED = "SHARED"
PLAYLIST_TYPE_MAGIC = "MAGIC"

_EXPIRE_PATTERN = re.compile(r'expire=(?P<epoch>\d+)')
_RANGE_PATTERN = re.compile(r'range=(?P<start>\d+)-(?P<stop>\d+)')


class Item(Protocol):
    """Capability shared by every record held in a library collection"""
    id: str
    deleted: bool


def art_urls_from_refs(refs: Any) -> Tuple[str, ...]:
    """Extract art URLs from a feed list of {"url": ...} references"""
    urls = []
    for ref in refs or []:
        url = ref.get('url') if isinstance(ref, dict) else ref
        if url:
            urls.append(ensure_http_scheme(url))
    return tuple(urls)


def _micros(value: Optional[datetime]) -> str:
    """Render a timestamp the way the feeds send it: microseconds as a string"""
    return str(datetime_to_micros(value))


class MetaKey(Enum):
    """
    Editable track metadata fields

    Each member carries the wire name of the field and the Python type a new
    value must have. Values of any other type are not sent to the service.
    """
    ALBUM = ('album', str)
    ALBUM_ARTIST = ('albumArtist', str)
    ARTIST = ('artist', str)
    COMPOSER = ('composer', str)
    DISC = ('disc', int)
    GENRE = ('genre', str)
    NAME = ('name', str)
    PLAY_COUNT = ('playCount', int)
    RATING = ('rating', int)
    TOTAL_DISCS = ('totalDiscs', int)
    TOTAL_TRACKS = ('totalTracks', int)
    TRACK = ('track', int)
    YEAR = ('year', int)

    def __init__(self, wire_name: str, value_type: type):
        self.wire_name = wire_name
        self.value_type = value_type

    def accepts(self, value: Any) -> bool:
        """Check whether `value` has the type this field requires"""
        # bool is an int subclass but never a valid track number or rating
        if self.value_type is int and isinstance(value, bool):
            return False
        return isinstance(value, self.value_type)


@dataclass(frozen=True)
class Track:
    """
    A track in the user's library

    Holds the descriptive metadata of a media item together with the
    normalized names and precomputed collation keys used for ordering.

    Attributes:
        id: Library id; falls back to `store_id` until the service assigns one
        title, artist, album, album_artist, composer, genre, comment: Display metadata
        year, track, total_tracks, disc, total_discs: Numbering metadata
        duration_millis: Track length in milliseconds
        play_count, rating: Usage metadata
        store_id, nid, album_id, artist_ids: Catalog references
        album_art_urls, artist_art_urls: Art URLs, always with an explicit scheme
        deleted: Tombstone flag delivered by delta fetches
        title_norm, artist_norm, album_norm, album_artist_norm: Lower-cased
            names as sent by the service
        title_sort, artist_sort, album_sort, album_artist_sort: Collation keys
            derived from the normalized names, with a leading article of the
            artist names moved to the end (computed, not settable)

    Note:
        Normalized names sent by the service are kept unchanged, so a track
        written to the cache and read back has the same collation keys;
        missing ones are derived from the display values.
    """
    id: str = ""
    title: str = ""
    artist: str = ""
    album: str = ""
    album_artist: str = ""
    composer: str = ""
    genre: str = ""
    comment: str = ""
    year: int = 0
    track: int = 0
    total_tracks: int = 0
    disc: int = 0
    total_discs: int = 0
    duration_millis: int = 0
    beats_per_minute: int = 0
    play_count: int = 0
    rating: int = 0
    bitrate: int = 0
    estimated_size: int = 0
    type: int = 0
    explicit_type: int = 0
    subject_to_curation: bool = False
    deleted: bool = False
    client_id: Optional[str] = None
    store_id: Optional[str] = None
    nid: Optional[str] = None
    album_id: Optional[str] = None
    artist_ids: Tuple[str, ...] = ()
    album_art_urls: Tuple[str, ...] = ()
    artist_art_urls: Tuple[str, ...] = ()
    creation_timestamp: Optional[datetime] = None
    last_modified_timestamp: Optional[datetime] = None
    recent_timestamp: Optional[datetime] = None
    title_norm: str = ""
    artist_norm: str = ""
    album_norm: str = ""
    album_artist_norm: str = ""
    title_sort: str = field(default="", init=False, repr=False, compare=False)
    artist_sort: str = field(default="", init=False, repr=False, compare=False)
    album_sort: str = field(default="", init=False, repr=False, compare=False)
    album_artist_sort: str = field(default="", init=False, repr=False, compare=False)

    def __post_init__(self):
        if not self.id and self.store_id:
            object.__setattr__(self, 'id', self.store_id)

        title_norm = self.title_norm or (self.title or "").lower()
        artist_norm = self.artist_norm or (self.artist_unified or "").lower()
        album_norm = self.album_norm or (self.album or "").lower()
        album_artist_norm = self.album_artist_norm or (self.album_artist_unified or "").lower()

        object.__setattr__(self, 'title_norm', title_norm)
        object.__setattr__(self, 'artist_norm', artist_norm)
        object.__setattr__(self, 'album_norm', album_norm)
        object.__setattr__(self, 'album_artist_norm', album_artist_norm)
        object.__setattr__(self, 'title_sort', collation_key(title_norm))
        object.__setattr__(self, 'artist_sort', collation_key(rearrange_article(artist_norm)))
        object.__setattr__(self, 'album_sort', collation_key(album_norm))
        object.__setattr__(self, 'album_artist_sort', collation_key(rearrange_article(album_artist_norm)))

    def __hash__(self):
        return hash(self.id)

    def __str__(self):
        return self.title or self.id

    @property
    def artist_unified(self) -> str:
        """Artist, or the album artist when the artist is empty"""
        return self.artist or self.album_artist

    @property
    def album_artist_unified(self) -> str:
        """Album artist, or the artist when the album artist is empty"""
        return self.album_artist or self.artist

    @property
    def album_art_url(self) -> Optional[str]:
        return self.album_art_urls[0] if self.album_art_urls else None

    @classmethod
    def synthetic(cls, track_id: str) -> 'Track':
        """
        Placeholder for a track the service did not describe

        Playlist entries sometimes arrive without embedded track data; the
        placeholder carries only the id so matching by id keeps working.
        """
        return cls(id=track_id)

    @classmethod
    def from_feed(cls, data: Dict[str, Any]) -> 'Track':
        """
        Factory method to construct a Track from a JSON feed item

        Numbers arrive either as JSON numbers or as numeric strings and are
        converted leniently; missing values fall back to the field defaults.

        Args:
            data: One element of `data.items` of the track feed

        Returns:
            Track instance with normalized names and collation keys computed
        """
        return cls(
            id=data.get('id') or "",
            client_id=data.get('clientId'),
            title=data.get('title') or "",
            artist=data.get('artist') or "",
            album=data.get('album') or "",
            album_artist=data.get('albumArtist') or "",
            composer=data.get('composer') or "",
            genre=data.get('genre') or "",
            comment=data.get('comment') or "",
            year=to_int(data.get('year')),
            track=to_int(data.get('trackNumber')),
            total_tracks=to_int(data.get('totalTrackCount')),
            disc=to_int(data.get('discNumber')),
            total_discs=to_int(data.get('totalDiscCount')),
            duration_millis=to_int(data.get('durationMillis')),
            beats_per_minute=to_int(data.get('beatsPerMinute')),
            play_count=to_int(data.get('playCount')),
            rating=to_int(data.get('rating')),
            bitrate=to_int(data.get('bitrate')),
            estimated_size=to_int(data.get('estimatedSize')),
            type=to_int(data.get('trackType', data.get('type'))),
            explicit_type=to_int(data.get('explicitType')),
            subject_to_curation=to_bool(data.get('subjectToCuration')),
            deleted=to_bool(data.get('deleted')),
            store_id=data.get('storeId'),
            nid=data.get('nid'),
            album_id=data.get('albumId'),
            artist_ids=tuple(data.get('artistId') or ()),
            album_art_urls=art_urls_from_refs(data.get('albumArtRef')),
            artist_art_urls=art_urls_from_refs(data.get('artistArtRef')),
            creation_timestamp=micros_to_datetime(data.get('creationTimestamp')),
            last_modified_timestamp=micros_to_datetime(data.get('lastModifiedTimestamp')),
            recent_timestamp=micros_to_datetime(data.get('recentTimestamp')),
            title_norm=data.get('titleNorm') or "",
            artist_norm=data.get('artistNorm') or "",
            album_norm=data.get('albumNorm') or "",
            album_artist_norm=data.get('albumArtistNorm') or "",
        )

    def to_feed(self) -> Dict[str, Any]:
        """Render the track in the JSON feed item shape accepted by `from_feed`"""
        return {
            'kind': 'sj#track',
            'id': self.id,
            'clientId': self.client_id,
            'title': self.title,
            'artist': self.artist,
            'album': self.album,
            'albumArtist': self.album_artist,
            'composer': self.composer,
            'genre': self.genre,
            'comment': self.comment,
            'year': self.year,
            'trackNumber': self.track,
            'totalTrackCount': self.total_tracks,
            'discNumber': self.disc,
            'totalDiscCount': self.total_discs,
            'durationMillis': str(self.duration_millis),
            'beatsPerMinute': self.beats_per_minute,
            'playCount': self.play_count,
            'rating': str(self.rating),
            'bitrate': self.bitrate,
            'estimatedSize': str(self.estimated_size),
            'trackType': self.type,
            'explicitType': self.explicit_type,
            'subjectToCuration': self.subject_to_curation,
            'deleted': self.deleted,
            'storeId': self.store_id,
            'nid': self.nid,
            'albumId': self.album_id,
            'artistId': list(self.artist_ids),
            'albumArtRef': [{'url': url} for url in self.album_art_urls],
            'artistArtRef': [{'url': url} for url in self.artist_art_urls],
            'creationTimestamp': _micros(self.creation_timestamp),
            'lastModifiedTimestamp': _micros(self.last_modified_timestamp),
            'recentTimestamp': _micros(self.recent_timestamp),
            'titleNorm': self.title_norm,
            'artistNorm': self.artist_norm,
            'albumNorm': self.album_norm,
            'albumArtistNorm': self.album_artist_norm,
        }


@dataclass(frozen=True)
class PlaylistEntry:
    """
    Join record binding a track to a position in a playlist

    Attributes:
        id: Entry id, unique across all playlists
        playlist_id: Owning playlist
        track_id: Referenced track
        absolute_position: Ordering key within the playlist
        track: Embedded track snapshot, None when the service omitted it
        deleted: Tombstone flag
    """
    id: str = ""
    playlist_id: str = ""
    track_id: str = ""
    absolute_position: int = 0
    client_id: Optional[str] = None
    source: int = 0
    deleted: bool = False
    creation_timestamp: Optional[datetime] = None
    last_modified_timestamp: Optional[datetime] = None
    track: Optional[Track] = None

    def __hash__(self):
        return hash(self.id)

    def __str__(self):
        return str(self.track) if self.track is not None else self.id

    def with_track(self, track: Track) -> 'PlaylistEntry':
        """Copy of this entry embedding `track`"""
        return replace(self, track=track)

    @classmethod
    def from_feed(cls, data: Dict[str, Any], playlist_id: Optional[str] = None) -> 'PlaylistEntry':
        """
        Factory method to construct a PlaylistEntry from a JSON feed item

        Args:
            data: One playlist entry document
            playlist_id: Owning playlist when the document does not name one
                (entries of shared playlists are keyed by share token instead)

        Returns:
            PlaylistEntry instance, with an embedded Track when one was sent
        """
        track_data = data.get('track')
        return cls(
            id=data.get('id') or "",
            playlist_id=playlist_id or data.get('playlistId') or "",
            track_id=data.get('trackId') or "",
            absolute_position=to_int(data.get('absolutePosition')),
            client_id=data.get('clientId'),
            source=to_int(data.get('source')),
            deleted=to_bool(data.get('deleted')),
            creation_timestamp=micros_to_datetime(data.get('creationTimestamp')),
            last_modified_timestamp=micros_to_datetime(data.get('lastModifiedTimestamp')),
            track=Track.from_feed(track_data) if isinstance(track_data, dict) else None,
        )

    def to_feed(self) -> Dict[str, Any]:
        """Render the entry in the JSON feed item shape accepted by `from_feed`"""
        data = {
            'kind': 'sj#playlistEntry',
            'id': self.id,
            'playlistId': self.playlist_id,
            'trackId': self.track_id,
            'absolutePosition': str(self.absolute_position),
            'clientId': self.client_id,
            'source': str(self.source),
            'deleted': self.deleted,
            'creationTimestamp': _micros(self.creation_timestamp),
            'lastModifiedTimestamp': _micros(self.last_modified_timestamp),
        }
        if self.track is not None:
            data['track'] = self.track.to_feed()
        return data


@dataclass(frozen=True)
class Playlist:
    """
    A named, ordered container of playlist entries

    Attributes:
        id: Playlist id
        name: Display name
        type: USER_GENERATED, SHARED or MAGIC
        share_token: Token identifying a shared playlist across users
        owner_name, owner_profile_photo_url: Owner details for shared playlists
        entries: Entries ordered by position once the playlist is resolved
        deleted: Tombstone flag
    """
    id: str = ""
    name: str = ""
    type: str = PLAYLIST_TYPE_USER
    share_token: Optional[str] = None
    owner_name: Optional[str] = None
    owner_profile_photo_url: Optional[str] = None
    access_controlled: bool = False
    deleted: bool = False
    creation_timestamp: Optional[datetime] = None
    last_modified_timestamp: Optional[datetime] = None
    recent_timestamp: Optional[datetime] = None
    entries: PlaylistEntrylist = field(default_factory=PlaylistEntrylist, compare=False, repr=False)

    def __hash__(self):
        return hash(self.id)

    def __str__(self):
        return self.name or self.id

    @property
    def is_shared(self) -> bool:
        return self.type == PLAYLIST_TYPE_SHARED

    @property
    def tracks(self) -> List[Track]:
        """Embedded tracks of the entries, in entry order"""
        return [entry.track for entry in self.entries if entry.track is not None]

    def with_entries(self, entries: PlaylistEntrylist) -> 'Playlist':
        """Copy of this playlist owning `entries`"""
        return replace(self, entries=entries)

    @classmethod
    def from_feed(cls, data: Dict[str, Any]) -> 'Playlist':
        """
        Factory method to construct a Playlist from a JSON feed item

        Entries are not part of the playlist feed; they are attached later by
        the entry assembler.
        """
        return cls(
            id=data.get('id') or "",
            name=data.get('name') or "",
            type=data.get('type') or PLAYLIST_TYPE_USER,
            share_token=data.get('shareToken'),
            owner_name=data.get('ownerName'),
            owner_profile_photo_url=data.get('ownerProfilePhotoUrl'),
            access_controlled=to_bool(data.get('accessControlled')),
            deleted=to_bool(data.get('deleted')),
            creation_timestamp=micros_to_datetime(data.get('creationTimestamp')),
            last_modified_timestamp=micros_to_datetime(data.get('lastModifiedTimestamp')),
            recent_timestamp=micros_to_datetime(data.get('recentTimestamp')),
        )

    def to_feed(self, include_entries: bool = False) -> Dict[str, Any]:
        """
        Render the playlist in the JSON feed item shape accepted by `from_feed`

        Args:
            include_entries: Also render the owned entries under "entries"
        """
        data = {
            'kind': 'sj#playlist',
            'id': self.id,
            'name': self.name,
            'type': self.type,
            'shareToken': self.share_token,
            'ownerName': self.owner_name,
            'ownerProfilePhotoUrl': self.owner_profile_photo_url,
            'accessControlled': self.access_controlled,
            'deleted': self.deleted,
            'creationTimestamp': _micros(self.creation_timestamp),
            'lastModifiedTimestamp': _micros(self.last_modified_timestamp),
            'recentTimestamp': _micros(self.recent_timestamp),
        }
        if include_entries:
            data['entries'] = [entry.to_feed() for entry in self.entries]
        return data


@dataclass(frozen=True)
class StreamUrl:
    """
    Time-limited streaming URL

    A track may be split into several byte-range parts, each with its own URL
    carrying a `range=start-stop` parameter.
    """
    url: str
    expires: Optional[datetime] = None

    @classmethod
    def from_url(cls, url: str) -> 'StreamUrl':
        """Build a StreamUrl, reading the expiry from its `expire=<epoch>` parameter"""
        match = _EXPIRE_PATTERN.search(url)
        expires = seconds_to_datetime(match.group('epoch')) if match else None
        return cls(url=url, expires=expires)

    @property
    def byte_range(self) -> Optional[Tuple[int, int]]:
        """Inclusive (start, stop) byte range of this part, None for a whole-file URL"""
        match = _RANGE_PATTERN.search(self.url)
        if not match:
            return None
        return int(match.group('start')), int(match.group('stop'))


@dataclass(frozen=True)
class UploadStatus:
    """Upload progress reported for one uploading client"""
    client_name: str = ""
    client_total_song_count: int = 0
    current_total_uploaded_count: int = 0
    current_uploading_track: Optional[str] = None

    @classmethod
    def from_response(cls, data: Dict[str, Any]) -> 'UploadStatus':
        return cls(
            client_name=data.get('client_name', data.get('clientName')) or "",
            client_total_song_count=to_int(
                data.get('client_total_song_count', data.get('clientTotalSongCount'))),
            current_total_uploaded_count=to_int(
                data.get('current_total_uploaded_count', data.get('currentTotalUploadedCount'))),
            current_uploading_track=data.get(
                'current_uploading_track', data.get('currentUploadingTrack')),
        )


@dataclass(frozen=True)
class Status:
    """Library status: available track count and per-client upload progress"""
    available_tracks: int = 0
    upload_status: Tuple[UploadStatus, ...] = ()

    @classmethod
    def from_response(cls, data: Dict[str, Any]) -> 'Status':
        return cls(
            available_tracks=to_int(data.get('availableTracks')),
            upload_status=tuple(
                UploadStatus.from_response(item) for item in data.get('uploadStatus') or ()
            ),
        )


@dataclass(frozen=True)
class Device:
    """A device registered to the account"""
    id: str = ""
    name: str = ""
    type: int = 0
    model: str = ""
    manufacturer: str = ""
    carrier: str = ""
    last_accessed: Optional[datetime] = None

    def __str__(self):
        description = f"{self.manufacturer} {self.model} {self.name}".strip()
        return description or self.id

    @classmethod
    def from_response(cls, data: Dict[str, Any]) -> 'Device':
        return cls(
            id=data.get('id') or "",
            name=data.get('name') or "",
            type=to_int(data.get('type')),
            model=data.get('model') or "",
            manufacturer=data.get('manufacturer') or "",
            carrier=data.get('carrier') or "",
            last_accessed=millis_to_datetime(
                data.get('lastAccessedTimeMillis', data.get('lastAccessed'))),
        )


@dataclass(frozen=True)
class AccountSettings:
    """
    Account-level settings

    Attributes:
        is_subscription: Account has an active subscription
        is_canceled: Subscription was canceled
        is_trial: Subscription is a trial
        newsletter_subscription: Newsletter opt-in
        max_tracks: Maximum number of tracks the library may hold
        expiration: Subscription expiry
        devices: Registered devices
    """
    is_subscription: bool = False
    is_canceled: bool = False
    is_trial: bool = False
    newsletter_subscription: bool = False
    max_tracks: int = 0
    expiration: Optional[datetime] = None
    devices: Tuple[Device, ...] = ()

    @classmethod
    def from_response(cls, data: Dict[str, Any]) -> 'AccountSettings':
        return cls(
            is_subscription=to_bool(data.get('isSubscription')),
            is_canceled=to_bool(data.get('isCanceled')),
            is_trial=to_bool(data.get('isTrial')),
            newsletter_subscription=to_bool(
                data.get('subscriptionNewsletter', data.get('newsletterSubscription'))),
            max_tracks=to_int(data.get('maxTracks')),
            expiration=millis_to_datetime(data.get('expirationMillis')),
            devices=tuple(Device.from_response(item) for item in data.get('devices') or ()),
        )
