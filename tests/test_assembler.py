"""Test playlist entry assembly"""

from unittest.mock import Mock

from gmusic.library.collections import PlaylistEntrylist, Playlists
from gmusic.library.models import Playlist, PlaylistEntry, Track, PLAYLIST_TYPE_SHARED
from gmusic.sync.assembler import PlaylistEntryAssembler
from gmusic.sync.reconciler import ItemReconciler

from conftest import T0, T1


def entry(entry_id, playlist_id, position, track_id=None, deleted=False, with_track=True):
    track_id = track_id or f"track-{entry_id}"
    return PlaylistEntry(
        id=entry_id,
        playlist_id=playlist_id,
        track_id=track_id,
        absolute_position=position,
        deleted=deleted,
        track=Track(id=track_id, title=f"Song {entry_id}") if with_track else None,
    )


class TestAssemble:
    """Test grouping and ordering of the flat entry feed"""

    def test_groups_and_orders_by_position(self):
        raw = [
            entry("e3", "p1", 300),
            entry("e1", "p1", 100),
            entry("x1", "p2", 5),
            entry("e2", "p1", 200),
        ]

        assembled = PlaylistEntryAssembler().assemble(raw)

        assert set(assembled) == {"p1", "p2"}
        assert assembled["p1"].ids() == ["e1", "e2", "e3"]
        assert assembled["p2"].ids() == ["x1"]

    def test_tombstones_are_dropped(self):
        raw = [entry("e1", "p1", 1), entry("e2", "p1", 2, deleted=True)]

        assembled = PlaylistEntryAssembler().assemble(raw)

        assert assembled["p1"].ids() == ["e1"]

    def test_equal_positions_keep_fetch_order(self):
        raw = [entry("b", "p1", 7), entry("a", "p1", 7), entry("c", "p1", 3)]

        assembled = PlaylistEntryAssembler().assemble(raw)

        assert assembled["p1"].ids() == ["c", "b", "a"]

    def test_missing_track_gets_placeholder(self):
        raw = [entry("e1", "p1", 0, track_id="abc", with_track=False)]

        placeholder = PlaylistEntryAssembler().assemble(raw)["p1"][0].track

        assert placeholder is not None
        assert placeholder.id == "abc"
        assert placeholder.title == ""


class TestAttach:
    """Test attaching entries to playlists"""

    def test_shared_playlist_uses_batched_lookup(self):
        fetcher = Mock()
        fetcher.fetch_shared_entries.return_value = {
            "s1": [entry("se2", "s1", 2), entry("se1", "s1", 1)],
            "s2": [],
        }
        playlists = Playlists([
            Playlist(id="p1", name="Mine"),
            Playlist(id="s1", type=PLAYLIST_TYPE_SHARED, share_token="tokA"),
            Playlist(id="s2", type=PLAYLIST_TYPE_SHARED, share_token="tokB"),
        ], last_updated=T0)
        raw = [entry("e1", "p1", 0), entry("stray", "s1", 0)]

        resolved = PlaylistEntryAssembler(fetcher).attach(playlists, raw)

        fetcher.fetch_shared_entries.assert_called_once()
        shared_arg = fetcher.fetch_shared_entries.call_args[0][0]
        assert [playlist.id for playlist in shared_arg] == ["s1", "s2"]
        assert resolved.get("p1").entries.ids() == ["e1"]
        assert resolved.get("s1").entries.ids() == ["se1", "se2"]
        assert resolved.get("s2").entries.ids() == []
        assert resolved.last_updated == T0

    def test_playlist_without_entries_gets_empty_list(self):
        playlists = Playlists([Playlist(id="lonely")])

        resolved = PlaylistEntryAssembler().attach(playlists, [entry("e1", "other", 0)])

        assert isinstance(resolved[0].entries, PlaylistEntrylist)
        assert len(resolved[0].entries) == 0

    def test_no_shared_playlists_skips_lookup(self):
        fetcher = Mock()

        PlaylistEntryAssembler(fetcher).attach(Playlists([Playlist(id="p1")]), [])

        fetcher.fetch_shared_entries.assert_not_called()


class TestApplyDelta:
    """Test merging entry deltas into resolved playlists"""

    def resolved(self):
        return Playlists([
            Playlist(id="p1", entries=PlaylistEntrylist([entry("e1", "p1", 10), entry("e2", "p1", 20)])),
            Playlist(id="p2", entries=PlaylistEntrylist([entry("x1", "p2", 10)])),
        ], last_updated=T0)

    def test_delta_rows_are_merged_and_ordered(self, clock):
        assembler = PlaylistEntryAssembler(reconciler=ItemReconciler(clock))
        playlists = self.resolved()
        delta = [entry("e2", "p1", 20, deleted=True), entry("e0", "p1", 5)]

        updated, changed = assembler.apply_delta(playlists, delta)

        assert changed is True
        assert updated.get("p1").entries.ids() == ["e0", "e1"]
        assert updated.get("p1").entries.last_updated == T1
        assert updated.get("p2") is playlists.get("p2")
        assert playlists.get("p1").entries.ids() == ["e1", "e2"]

    def test_empty_delta_changes_nothing(self):
        playlists = self.resolved()

        updated, changed = PlaylistEntryAssembler().apply_delta(playlists, [])

        assert changed is False
        assert [p.entries.ids() for p in updated] == [["e1", "e2"], ["x1"]]

    def test_shared_playlist_change_is_detected(self):
        fetcher = Mock()
        fetcher.fetch_shared_entries.return_value = {"s1": [entry("se1", "s1", 1), entry("se2", "s1", 2)]}
        playlists = Playlists([
            Playlist(id="s1", type=PLAYLIST_TYPE_SHARED, share_token="tokA",
                     entries=PlaylistEntrylist([entry("se1", "s1", 1)])),
        ])

        updated, changed = PlaylistEntryAssembler(fetcher).apply_delta(playlists, [])

        assert changed is True
        assert updated.get("s1").entries.ids() == ["se1", "se2"]

    def test_unchanged_shared_playlist(self):
        fetcher = Mock()
        fetcher.fetch_shared_entries.return_value = {"s1": [entry("se1", "s1", 1)]}
        playlists = Playlists([
            Playlist(id="s1", type=PLAYLIST_TYPE_SHARED, share_token="tokA",
                     entries=PlaylistEntrylist([entry("se1", "s1", 1)])),
        ])

        _, changed = PlaylistEntryAssembler(fetcher).apply_delta(playlists, [])

        assert changed is False

    def test_failed_shared_lookup_keeps_known_entries(self):
        fetcher = Mock()
        fetcher.fetch_shared_entries.return_value = {}
        known = PlaylistEntrylist([entry("se1", "s1", 1), entry("se2", "s1", 2)])
        playlists = Playlists([
            Playlist(id="s1", type=PLAYLIST_TYPE_SHARED, share_token="tokA", entries=known),
        ])

        updated, changed = PlaylistEntryAssembler(fetcher).apply_delta(playlists, [])

        assert changed is False
        assert updated.get("s1").entries.ids() == ["se1", "se2"]

    def test_failed_shared_lookup_attaches_empty_list(self):
        fetcher = Mock()
        fetcher.fetch_shared_entries.return_value = {}
        playlists = Playlists([Playlist(id="s1", type=PLAYLIST_TYPE_SHARED, share_token="tokA")])

        resolved = PlaylistEntryAssembler(fetcher).attach(playlists, [])

        assert resolved.get("s1").entries.ids() == []

    def test_tombstone_of_unknown_entry_changes_nothing(self):
        playlists = self.resolved()

        updated, changed = PlaylistEntryAssembler().apply_delta(
            playlists, [entry("never-seen", "p1", 15, deleted=True)]
        )

        assert changed is False
        assert updated.get("p1").entries.ids() == ["e1", "e2"]

    def test_resent_entry_changes_nothing(self):
        playlists = self.resolved()

        _, changed = PlaylistEntryAssembler().apply_delta(playlists, [entry("e1", "p1", 10)])

        assert changed is False
