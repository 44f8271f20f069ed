"""Library data model: records, collections and derived views"""

from .collections import ItemList, Tracklist, Playlists, PlaylistEntrylist
from .models import (
    Track, PlaylistEntry, Playlist, StreamUrl, Status, UploadStatus,
    AccountSettings, Device, MetaKey, PLAYLIST_TYPE_SHARED, PLAYLIST_TYPE_USER
)
from .views import Album, AlbumArtist, Albumlist, AlbumArtistlist, group_by_album, group_by_album_artist

__all__ = [
    'ItemList', 'Tracklist', 'Playlists', 'PlaylistEntrylist',
    'Track', 'PlaylistEntry', 'Playlist', 'StreamUrl', 'Status', 'UploadStatus',
    'AccountSettings', 'Device', 'MetaKey', 'PLAYLIST_TYPE_SHARED', 'PLAYLIST_TYPE_USER',
    'Album', 'AlbumArtist', 'Albumlist', 'AlbumArtistlist',
    'group_by_album', 'group_by_album_artist',
]
