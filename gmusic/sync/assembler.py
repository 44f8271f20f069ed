"""
Playlist entry assembly

The entry feed is one flat list covering every playlist. Assembly turns it
into per-playlist ordered entry lists:

1. tombstoned entries are dropped,
2. the rest is grouped by playlist id,
3. each group is ordered by absolute position (stable, so equal positions
   keep their fetch order).

Entries of shared playlists never appear in the generic feed. They are
resolved through one batched lookup keyed by share token that covers every
shared playlist at once. A playlist found in neither source gets an empty
entry list, and an entry without embedded track data gets a placeholder
track carrying only its track id.
"""

from datetime import datetime
from typing import Dict, Iterable, List, Optional, Tuple

from ..core.exceptions import ErrorHandler
from ..library.collections import PlaylistEntrylist, Playlists
from ..library.models import PlaylistEntry, Track
from ..service.fetcher import RemoteCollectionFetcher
from ..utils.logger import get_logger
from .reconciler import ItemReconciler


def with_track(entry: PlaylistEntry) -> PlaylistEntry:
    """Entry guaranteed to embed a track (a placeholder when none was sent)"""
    if entry.track is not None:
        return entry
    return entry.with_track(Track.synthetic(entry.track_id))


def group_by_playlist(entries: Iterable[PlaylistEntry]) -> Dict[str, List[PlaylistEntry]]:
    """Group entries by playlist id, keeping fetch order inside each group"""
    groups: Dict[str, List[PlaylistEntry]] = {}
    for entry in entries:
        groups.setdefault(entry.playlist_id, []).append(entry)
    return groups


def _signature(entries: Iterable[PlaylistEntry]) -> List[Tuple[str, int]]:
    return [(entry.id, entry.absolute_position) for entry in entries]


class PlaylistEntryAssembler:
    """
    Builds resolved playlists from playlists and a flat entry feed

    Attributes:
        fetcher: Used for the batched shared-playlist lookup; without one,
            shared playlists resolve to empty entry lists
    """

    def __init__(self, fetcher: Optional[RemoteCollectionFetcher] = None,
                 reconciler: Optional[ItemReconciler] = None):
        self.fetcher = fetcher
        self.reconciler = reconciler or ItemReconciler()
        self.logger = get_logger(__name__)

    def assemble(self, raw_entries: Iterable[PlaylistEntry]) -> Dict[str, PlaylistEntrylist]:
        """
        Group a flat entry list into ordered per-playlist lists

        Args:
            raw_entries: Entries as fetched, tombstones included

        Returns:
            Mapping playlist id -> entries ordered by absolute position
        """
        live = (with_track(entry) for entry in raw_entries if not entry.deleted)

        assembled: Dict[str, PlaylistEntrylist] = {}
        for playlist_id, entries in group_by_playlist(live).items():
            ordered = PlaylistEntrylist(entries)
            ordered.order_by_position()
            assembled[playlist_id] = ordered
        return assembled

    def resolve_shared(self, playlists: Iterable, since: Optional[datetime] = None,
                       report: Optional[ErrorHandler] = None) -> Dict[str, PlaylistEntrylist]:
        """
        Entries of every shared playlist from one batched lookup

        Returns:
            Mapping playlist id -> ordered entries, for the shared playlists
            whose lookup succeeded; failed ones are absent
        """
        shared = [playlist for playlist in playlists if playlist.is_shared]
        if not shared:
            return {}
        if self.fetcher is None:
            return {playlist.id: PlaylistEntrylist() for playlist in shared}

        fetched = self.fetcher.fetch_shared_entries(shared, since, report)
        resolved = {}
        for playlist in shared:
            if playlist.id not in fetched:
                continue
            group = self.assemble(fetched[playlist.id])
            resolved[playlist.id] = group.get(playlist.id, PlaylistEntrylist())
        self.logger.debug(f"Resolved {len(resolved)} of {len(shared)} shared playlist(s) in one batch")
        return resolved

    def attach(self, playlists: Playlists, raw_entries: Iterable[PlaylistEntry],
               report: Optional[ErrorHandler] = None) -> Playlists:
        """
        Give every playlist its ordered entries

        Shared playlists receive exclusively the entries of the batched lookup;
        one whose lookup failed gets an empty list.

        Args:
            playlists: Playlists without entries
            raw_entries: Flat entry feed
            report: Receives failures of the shared lookup

        Returns:
            New Playlists collection, same order and watermark
        """
        groups = self.assemble(raw_entries)
        groups.update(self.resolve_shared(playlists, None, report))

        resolved = Playlists(last_updated=playlists.last_updated)
        for playlist in playlists:
            entries = groups.get(playlist.id, PlaylistEntrylist())
            entries.last_updated = playlists.last_updated
            resolved.append(playlist.with_entries(entries))
        return resolved

    def apply_delta(self, playlists: Playlists, entry_delta: Iterable[PlaylistEntry],
                    report: Optional[ErrorHandler] = None) -> Tuple[Playlists, bool]:
        """
        Apply an entry delta to already resolved playlists

        Each playlist's entries are merged with the delta rows of that
        playlist (tombstones remove entries) and re-ordered by position.
        Shared playlists are resolved again in full through the batched lookup.
        A shared playlist whose lookup failed keeps its current entries.

        Args:
            playlists: Playlists with their current entries
            entry_delta: Entry rows fetched since the last update
            report: Receives failures of the shared lookup

        Returns:
            The updated collection and whether any playlist's entries changed
        """
        groups = group_by_playlist(with_track(entry) for entry in entry_delta)
        shared = self.resolve_shared(playlists, None, report)

        changed = False
        updated = Playlists(last_updated=playlists.last_updated)
        for playlist in playlists:
            entries = playlist.entries
            if playlist.id in shared:
                new_entries = shared[playlist.id]
                new_entries.last_updated = self.reconciler.stamp(entries)
                if _signature(new_entries) != _signature(entries):
                    changed = True
            elif playlist.id in groups and not playlist.is_shared:
                new_entries = self.reconciler.merge(entries, PlaylistEntrylist(groups[playlist.id]))
                new_entries.order_by_position()
                if list(new_entries) != list(entries):
                    changed = True
            else:
                updated.append(playlist)
                continue

            updated.append(playlist.with_entries(new_entries))

        return updated, changed
