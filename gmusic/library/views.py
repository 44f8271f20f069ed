"""
Derived album and album-artist views

Albums and album artists are not stored anywhere. They are regenerated on
demand by grouping a track collection, so they can never drift from it.

- group_by_album: ordered by album artist, album, then disc/track position;
  grouped by the pair (album title, album artist collation key) because two
  artists may release albums with the same title.
- group_by_album_artist: ordered by album artist, title, album; grouped by
  the collation key of the normalized album artist, so "The Beatles" and
  "Beatles, The" land in one group while "Beatles, John" does not.
"""

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Tuple

from .collections import ItemList, Tracklist
from .models import Track
from . import sorting


@dataclass(frozen=True)
class Album:
    """
    Tracks sharing an album title and album artist

    Attributes:
        album: Album title as displayed
        album_artist: Album artist as displayed (taken from the first track)
        album_artist_sort: Collation key of the album artist the album is grouped under
        tracks: Tracks in disc/track order
    """
    album: str
    album_artist: str
    album_artist_sort: str
    tracks: Tracklist = field(default_factory=Tracklist, compare=False)
    deleted: bool = False

    @property
    def id(self) -> str:
        return f"{self.album_artist_sort}\x1f{self.album}"

    def __hash__(self):
        return hash(self.id)

    def __str__(self):
        return self.album


@dataclass(frozen=True)
class AlbumArtist:
    """
    Tracks sharing an album artist

    Attributes:
        album_artist: Album artist as displayed (taken from the first track)
        album_artist_sort: Collation key shared by every track of the group
        tracks: Tracks ordered by title, then album
    """
    album_artist: str
    album_artist_sort: str
    tracks: Tracklist = field(default_factory=Tracklist, compare=False)
    deleted: bool = False

    @property
    def id(self) -> str:
        return self.album_artist_sort

    def __hash__(self):
        return hash(self.id)

    def __str__(self):
        return self.album_artist


class Albumlist(ItemList):
    """Collection of albums"""


class AlbumArtistlist(ItemList):
    """Collection of album artists"""


def _source_watermark(tracks: Iterable[Track]):
    return tracks.last_updated if isinstance(tracks, ItemList) else None


def group_by_album(tracks: Iterable[Track]) -> Albumlist:
    """
    Group tracks into albums

    Args:
        tracks: Any iterable of tracks; a Tracklist also passes on its watermark

    Returns:
        Albumlist in album-artist/album order, each album's tracks in
        disc/track order
    """
    ordered = sorted(tracks, key=sorting.by_album_artist_album)

    groups: Dict[Tuple[str, str], List[Track]] = {}
    for track in ordered:
        groups.setdefault((track.album, track.album_artist_sort), []).append(track)

    albums = Albumlist(last_updated=_source_watermark(tracks))
    for (album, album_artist_sort), members in groups.items():
        albums.append(Album(
            album=album,
            album_artist=members[0].album_artist_unified,
            album_artist_sort=album_artist_sort,
            tracks=Tracklist(members),
        ))
    return albums


def group_by_album_artist(tracks: Iterable[Track]) -> AlbumArtistlist:
    """
    Group tracks by album artist

    Names compare case-, punctuation- and article-insensitively; two artists
    only share a group when their collation keys are equal.

    Args:
        tracks: Any iterable of tracks; a Tracklist also passes on its watermark

    Returns:
        AlbumArtistlist in album-artist order, each group's tracks ordered by
        title and album
    """
    ordered = sorted(tracks, key=sorting.by_album_artist)

    groups: Dict[str, List[Track]] = {}
    for track in ordered:
        groups.setdefault(track.album_artist_sort, []).append(track)

    artists = AlbumArtistlist(last_updated=_source_watermark(tracks))
    for members in groups.values():
        first = members[0]
        artists.append(AlbumArtist(
            album_artist=first.album_artist_unified,
            album_artist_sort=first.album_artist_sort,
            tracks=Tracklist(members),
        ))
    return artists
