"""
Watermarked item collections

A collection is an ordered list of items whose ids are unique, plus a
`last_updated` watermark telling how current it is. The watermark is the
lower bound for the next incremental fetch; None means the collection has
never been fetched and the next fetch must be a full one.

Collections are only changed by the reconciler, which always works on a copy.
"""

from datetime import datetime
from typing import Iterable, List, Optional

from . import sorting


class ItemList(list):
    """
    Ordered list of items with unique ids and a watermark

    Attributes:
        last_updated: Watermark of the collection, None if never fetched
    """

    def __init__(self, items: Iterable = (), last_updated: Optional[datetime] = None):
        super().__init__(items)
        self.last_updated = last_updated

    def get(self, item_id: str):
        """
        Look up an item by id

        Args:
            item_id: Id to search for

        Returns:
            The item, or None if the collection holds no item with that id
        """
        for item in self:
            if item.id == item_id:
                return item
        return None

    def index_of(self, item_id: str) -> int:
        """Position of the item with `item_id`, -1 if absent"""
        for position, item in enumerate(self):
            if item.id == item_id:
                return position
        return -1

    def ids(self) -> List[str]:
        return [item.id for item in self]

    def copy(self):
        """Shallow copy of the same collection type carrying the same watermark"""
        return type(self)(self, last_updated=self.last_updated)

    def __repr__(self):
        return f"{type(self).__name__}({len(self)} items, last_updated={self.last_updated})"


class Tracklist(ItemList):
    """Collection of tracks with the library's standard orderings"""

    def sort(self, *, key=None, reverse: bool = False) -> None:
        """Sort in place by title, artist and album unless another key is given"""
        super().sort(key=key or sorting.by_title, reverse=reverse)

    def sort_by_artist(self) -> None:
        super().sort(key=sorting.by_artist)

    def sort_by_album_artist(self) -> None:
        super().sort(key=sorting.by_album_artist)

    def sort_by_album(self) -> None:
        super().sort(key=sorting.by_album)


class Playlists(ItemList):
    """Collection of playlists"""

    def shared(self) -> list:
        """Playlists of type SHARED, in collection order"""
        return [playlist for playlist in self if playlist.is_shared]


class PlaylistEntrylist(ItemList):
    """Entries of one playlist"""

    def order_by_position(self) -> None:
        """Stable in-place ordering by absolute position"""
        super().sort(key=lambda entry: entry.absolute_position)

    def track_ids(self) -> List[str]:
        return [entry.track_id for entry in self]
