"""Test the library cache"""

import json

from gmusic.library.collections import PlaylistEntrylist, Playlists, Tracklist
from gmusic.library.models import Playlist, PlaylistEntry, Track
from gmusic.library.views import group_by_album_artist
from gmusic.sync.cache import LibraryCache

from conftest import T0


class TestLibraryCache:
    """Test LibraryCache"""

    def test_tracks_restore_with_watermark(self, temp_dir, settings):
        cache = LibraryCache(temp_dir, settings)
        tracks = Tracklist([Track(id="a", title="One", artist="The Band"), Track(id="b", title="Two")],
                           last_updated=T0)

        assert cache.save_tracks(tracks) is True
        restored = cache.load_tracks()

        assert restored.ids() == ["a", "b"]
        assert restored.last_updated == T0
        assert restored.get("a").artist_norm == "the band"
        assert restored.get("a").artist_sort == "bandthe"

    def test_restored_tracks_keep_sort_keys(self, temp_dir, settings):
        cache = LibraryCache(temp_dir, settings)
        fresh = Track(id="a", title="Song", artist="The The Band", album_artist="The The Band")
        cache.save_tracks(Tracklist([fresh], last_updated=T0))

        restored = cache.load_tracks().get("a")

        assert restored.artist_norm == fresh.artist_norm == "the the band"
        assert restored.artist_sort == fresh.artist_sort == "thebandthe"
        assert restored.album_artist_sort == fresh.album_artist_sort
        assert len(group_by_album_artist([fresh, restored])) == 1

    def test_playlists_restore_with_entries(self, temp_dir, settings):
        cache = LibraryCache(temp_dir, settings)
        entries = PlaylistEntrylist([
            PlaylistEntry(id="e1", playlist_id="p1", track_id="t1", absolute_position=3,
                          track=Track(id="t1", title="Song")),
        ])
        playlists = Playlists([Playlist(id="p1", name="Mine", entries=entries)], last_updated=T0)

        cache.save_playlists(playlists)
        restored = cache.load_playlists()

        assert restored.get("p1").name == "Mine"
        assert restored.get("p1").entries.ids() == ["e1"]
        assert restored.get("p1").entries[0].track.title == "Song"
        assert restored.last_updated == T0

    def test_missing_cache(self, temp_dir, settings):
        assert LibraryCache(temp_dir, settings).load_tracks() is None

    def test_corrupt_cache_is_ignored(self, temp_dir, settings):
        (temp_dir / "tracks.json").write_text("{ not json", encoding="utf-8")
        assert LibraryCache(temp_dir, settings).load_tracks() is None

    def test_other_version_is_ignored(self, temp_dir, settings):
        (temp_dir / "tracks.json").write_text(json.dumps({'version': 99, 'items': []}), encoding="utf-8")
        assert LibraryCache(temp_dir, settings).load_tracks() is None

    def test_disabled_cache(self, temp_dir, settings):
        settings.cache.enabled = False
        cache = LibraryCache(temp_dir, settings)

        assert cache.save_tracks(Tracklist([Track(id="a")])) is False
        assert not (temp_dir / "tracks.json").exists()
        assert cache.load_tracks() is None

    def test_default_directory_from_settings(self, settings):
        assert LibraryCache(settings=settings).directory == settings.get_cache_directory()

    def test_clear(self, temp_dir, settings):
        cache = LibraryCache(temp_dir, settings)
        cache.save_tracks(Tracklist([Track(id="a")]))

        cache.clear()

        assert cache.load_tracks() is None
