"""
Service package - everything that talks to the remote music service

This package holds the request boundary, the two wire-format decoders, the
paginated fetcher, stream retrieval and the caller-facing client.

Architecture Overview:

1. Transport (transport.py):
   - ServiceCall protocol: `call(service, payload, params) -> body`
   - HttpServiceCall: requests-based implementation with request spacing
     and error mapping onto the library's exceptions

2. Decoders (decoder.py, jsarray.py):
   - JSON feed pages with continuation tokens
   - Bracketed-array rows mapped to fields through explicit index tables

3. Fetcher (fetcher.py):
   - RemoteCollectionFetcher: delta fetches bounded by a watermark,
     pagination driven by cursors, batched shared-playlist lookups

4. Streaming (stream.py):
   - StreamUrlDeriver boundary and parallel multi-part downloads

5. Client (client.py):
   - MusicClient: the public operations, recovering service failures at
     the operation boundary

Usage Example:

    from gmusic.service import MusicClient

    client = MusicClient(session)
    playlists = client.get_all_playlists()
"""

# Public client and its collaborators
from .client import MusicClient, service_operation
from .fetcher import CollectionKind, FetchCursor, Page, RemoteCollectionFetcher
from .stream import PlayServiceDeriver, StreamDownloader, StreamSigner, StreamUrlDeriver
from .transport import HttpServiceCall, ServiceCall

__all__ = [
    # === CLIENT ===
    'MusicClient',
    'service_operation',

    # === FETCHING ===
    'CollectionKind',
    'FetchCursor',
    'Page',
    'RemoteCollectionFetcher',

    # === STREAMING ===
    'PlayServiceDeriver',
    'StreamDownloader',
    'StreamSigner',
    'StreamUrlDeriver',

    # === TRANSPORT ===
    'HttpServiceCall',
    'ServiceCall',
]
