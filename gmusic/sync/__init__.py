"""
Synchronization package - incremental updates of library collections

1. **Reconciler (reconciler.py)**: merges a fetched delta into a known
   collection, last write wins, tombstones purged, fresh watermark.

2. **Assembler (assembler.py)**: turns the flat entry feed into ordered
   per-playlist entry lists and substitutes batched shared-playlist lookups.

3. **Cache (cache.py)**: persists collections with their watermarks so an
   incremental update can continue in a later process.
"""

from .assembler import PlaylistEntryAssembler
from .cache import LibraryCache
from .reconciler import ItemReconciler

__all__ = [
    'ItemReconciler',
    'PlaylistEntryAssembler',
    'LibraryCache',
]
