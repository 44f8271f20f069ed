"""
Item reconciliation

Merges a freshly fetched delta into a previously known collection. The delta
holds changed, added and deleted (tombstoned) items since the baseline's
watermark; the merge replaces items by id, drops tombstoned ones and stamps
the result with the fetch-completion time.

The watermark is taken from the client clock, not from server timestamps.
The next incremental fetch therefore overlaps slightly with this one, which
may re-deliver a few items but never misses an update made during the fetch.
"""

from datetime import datetime
from typing import Callable, Generic, Optional, TypeVar

from ..library.collections import ItemList
from ..utils.helpers import as_utc, utcnow
from ..utils.logger import get_logger, log_timing

C = TypeVar('C', bound=ItemList)


class ItemReconciler(Generic[C]):
    """
    Last-write-wins merge of item collections

    The reconciler holds no state between calls. Inputs are never modified:
    every merge works on a copy of the baseline. Callers must not run two
    merges against the same baseline concurrently.
    """

    def __init__(self, clock: Callable[[], datetime] = utcnow):
        """
        Initialize reconciler

        Args:
            clock: Source of the fetch-completion time (injectable for tests)
        """
        self.clock = clock
        self.logger = get_logger(__name__)

    def stamp(self, baseline: C) -> datetime:
        """
        Watermark for a collection that was just brought up to date

        Never earlier than the baseline's own watermark, so watermarks only
        move forward even if the client clock steps back.
        """
        now = as_utc(self.clock())
        if baseline.last_updated is not None and as_utc(baseline.last_updated) > now:
            return as_utc(baseline.last_updated)
        return now

    @log_timing
    def merge(self, baseline: C, delta: ItemList) -> Optional[C]:
        """
        Merge a delta into a baseline

        Every delta item, in delta order, first removes the item with the same
        id from the working copy and is then inserted unless it is a tombstone.
        Later duplicates in the delta therefore win, and tombstoned items are
        purged rather than kept.

        Args:
            baseline: Previously known collection, possibly empty
            delta: Items fetched since the baseline's watermark

        Returns:
            New collection of the baseline's type with a fresh watermark, or
            None if the delta is empty (nothing changed; the caller still
            refreshes the baseline's watermark)
        """
        if not delta:
            return None

        # Dicts keep insertion order: pop + reinsert moves an item to the end,
        # exactly like removing it from the list and appending it again
        working = {item.id: item for item in baseline}
        removed = added = 0
        for item in delta:
            if working.pop(item.id, None) is not None:
                removed += 1
            if not item.deleted:
                working[item.id] = item
                added += 1

        merged = type(baseline)(working.values(), last_updated=self.stamp(baseline))
        self.logger.debug(
            f"Merged {len(delta)} delta items into {len(baseline)}: "
            f"{removed} removed, {added} inserted, {len(merged)} total"
        )
        return merged
