"""
Remote collection fetching

The fetcher issues paginated delta requests for one collection kind and hands
back decoded records page by page. A watermark of None (or one at or before
the epoch) asks for the complete collection, tombstones included; any other
watermark asks only for items changed since then.

Pagination is caller-driven: `fetch_delta` returns the first page and a
cursor, `continue_fetch` takes a cursor and returns the next page, and the
fetch is complete when a page comes back without a cursor. `fetch_all` drives
that loop and collects the records into a collection.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, Iterable, Iterator, List, Optional

from ..config.settings import Settings, get_settings
from ..core.exceptions import ErrorHandler, GMusicError, ProtocolDecodeError
from ..library.collections import ItemList, PlaylistEntrylist, Playlists, Tracklist
from ..library.models import Playlist, PlaylistEntry, Track
from ..utils.helpers import datetime_to_micros, random_alnum
from ..utils.logger import get_logger, track_fetch
from . import decoder, jsarray
from .transport import ServiceCall


class CollectionKind(Enum):
    """
    Remote collections that can be fetched incrementally

    Each member carries the feed service name, the record factory for one
    feed item and the collection type the items are gathered into.
    """
    TRACKS = ('trackfeed', Track.from_feed, Tracklist)
    PLAYLISTS = ('playlistfeed', Playlist.from_feed, Playlists)
    ENTRIES = ('plentryfeed', PlaylistEntry.from_feed, PlaylistEntrylist)

    def __init__(self, service: str, factory: Callable[[Dict[str, Any]], Any], collection_type: type):
        self.service = service
        self.factory = factory
        self.collection_type = collection_type


@dataclass(frozen=True)
class FetchCursor:
    """Opaque position inside a multi-page fetch"""
    kind: CollectionKind
    since: Optional[datetime]
    token: str


@dataclass
class Page:
    """Records of one page and the cursor of the next one (None on the last page)"""
    items: List[Any] = field(default_factory=list)
    next_cursor: Optional[FetchCursor] = None


class RemoteCollectionFetcher:
    """
    Paginated delta fetches against the service boundary

    The fetcher holds no collection state; every fetch is independent.
    Errors from the boundary (AuthenticationError, ServiceError) propagate
    unchanged. Decode failures propagate from the first page; on later pages
    `fetch_all` reports them and keeps what was already collected.
    """

    def __init__(self, transport: ServiceCall, settings: Optional[Settings] = None,
                 session_id: Optional[str] = None):
        """
        Initialize fetcher

        Args:
            transport: Service call boundary
            settings: Library settings, the global instance when omitted
            session_id: Client session id used by bracketed-array requests
        """
        self.transport = transport
        self.settings = settings or get_settings()
        self.session_id = session_id or random_alnum()
        self.logger = get_logger(__name__)

    def _params(self, since: Optional[datetime]) -> Dict[str, Any]:
        params = {
            'alt': 'json',
            'include-tracks': 'true',
            'updated-min': datetime_to_micros(since),
        }
        if self.settings.service.page_size:
            params['max-results'] = self.settings.service.page_size
        return params

    def _request_page(self, kind: CollectionKind, since: Optional[datetime],
                      token: Optional[str]) -> Page:
        payload = {'start-token': token} if token else None
        body = self.transport.call(kind.service, payload, self._params(since))
        feed_page = decoder.decode_feed_page(body, kind.factory, kind.service)

        next_cursor = None
        if feed_page.next_page_token:
            next_cursor = FetchCursor(kind=kind, since=since, token=feed_page.next_page_token)
        return Page(items=feed_page.items, next_cursor=next_cursor)

    def fetch_delta(self, kind: CollectionKind, since: Optional[datetime] = None) -> Page:
        """
        Fetch the first page of items changed since a watermark

        Args:
            kind: Collection to fetch
            since: Watermark; None fetches everything including tombstones

        Returns:
            First page and the cursor of the next one

        Raises:
            AuthenticationError: Not authenticated (no request is made)
            ServiceError: Non-success response
            ProtocolDecodeError: Body could not be decoded
        """
        return self._request_page(kind, since, None)

    def continue_fetch(self, cursor: FetchCursor) -> Page:
        """
        Fetch the page a cursor points at

        Raises:
            AuthenticationError, ServiceError, ProtocolDecodeError: As for fetch_delta
        """
        return self._request_page(cursor.kind, cursor.since, cursor.token)

    def iter_pages(self, kind: CollectionKind, since: Optional[datetime] = None) -> Iterator[Page]:
        """
        Lazily walk every page of a fetch

        Yields:
            Pages in order until one arrives without a cursor
        """
        page = self.fetch_delta(kind, since)
        yield page
        while page.next_cursor is not None:
            page = self.continue_fetch(page.next_cursor)
            yield page

    def fetch_all(self, kind: CollectionKind, since: Optional[datetime] = None,
                  report: Optional[ErrorHandler] = None) -> ItemList:
        """
        Fetch a complete delta into a collection

        A decode failure on a continuation page ends the fetch with the items
        collected so far; the failure is logged and passed to `report`.

        Args:
            kind: Collection to fetch
            since: Watermark; None fetches everything including tombstones
            report: Receives truncation and unmatched-field reports

        Returns:
            Collection of the kind's type in fetch order (tombstones included);
            its watermark is left unset for the reconciler to assign

        Raises:
            AuthenticationError, ServiceError: From any page
            ProtocolDecodeError: From the first page
        """
        if since is None and self._uses_jsarray(kind):
            return self._fetch_all_jsarray(kind, report)

        operation = track_fetch(__name__, f"Fetching {kind.service}", self.settings.logging.show_progress)
        operation.start(f"Fetching {kind.service} (updated-min {datetime_to_micros(since)})")

        items = kind.collection_type()
        try:
            page = self.fetch_delta(kind, since)
            while True:
                items.extend(page.items)
                operation.page(len(items))
                if page.next_cursor is None:
                    break
                try:
                    page = self.continue_fetch(page.next_cursor)
                except ProtocolDecodeError as e:
                    message = (f"{kind.service}: page {operation.pages + 1} could not be decoded, "
                               f"keeping {len(items)} items")
                    operation.failed(message, e)
                    if report:
                        report(message, e)
                    return items
        except GMusicError as e:
            operation.failed("fetch aborted", e)
            raise
        finally:
            operation.close()

        operation.done(f"{len(items)} items in {operation.pages} page(s)")
        return items

    def _uses_jsarray(self, kind: CollectionKind) -> bool:
        return (self.settings.service.wire_format == 'jsarray'
                and kind in (CollectionKind.TRACKS, CollectionKind.PLAYLISTS))

    def _fetch_all_jsarray(self, kind: CollectionKind, report: Optional[ErrorHandler]) -> ItemList:
        """
        Full fetch through the bracketed-array web services

        These services have no watermark parameter, so they only serve full
        fetches.
        """
        def report_field(message: str) -> None:
            self.logger.debug(message)
            if report:
                report(message, None)

        params = {'format': 'jsarray'}
        if kind is CollectionKind.TRACKS:
            body = self.transport.call('streamingloadalltracks', None, params)
            records = jsarray.decode_track_rows(body, report_field)
        else:
            payload = jsarray.playlists_payload(self.session_id)
            body = self.transport.call('loadplaylists', payload, params)
            records = jsarray.decode_playlist_rows(body, report_field)

        self.logger.info(f"Fetched {len(records)} {kind.name.lower()} as bracketed arrays")
        return kind.collection_type(records)

    def fetch_shared_entries(self, playlists: Iterable[Playlist], since: Optional[datetime] = None,
                             report: Optional[ErrorHandler] = None) -> Dict[str, List[PlaylistEntry]]:
        """
        Resolve the entries of shared playlists in batched lookups

        All share tokens go into one request. Tokens whose answer carries a
        continuation token are requested again together in one follow-up
        batch, until no token has more pages.

        Args:
            playlists: Shared playlists to resolve (others are ignored)
            since: Watermark for the lookup
            report: Receives per-token failures and decode truncations

        Returns:
            Mapping playlist id -> entries in fetch order (tombstones included);
            playlists whose token failed are left out, so callers can tell a
            failed lookup from an empty playlist

        Raises:
            AuthenticationError, ServiceError: From any batch
            ProtocolDecodeError: From the first batch
        """
        by_token = {p.share_token: p.id for p in playlists if p.is_shared and p.share_token}
        results: Dict[str, List[PlaylistEntry]] = {playlist_id: [] for playlist_id in by_token.values()}
        if not by_token:
            return results

        updated_min = datetime_to_micros(since)
        pending = {token: None for token in by_token}
        first_batch = True
        failed = set()

        while pending:
            request = []
            for token, cursor in pending.items():
                lookup = {'shareToken': token, 'updated-min': updated_min}
                if cursor:
                    lookup['start-token'] = cursor
                request.append(lookup)

            try:
                body = self.transport.call('plentries/shared', {'entries': request}, {'alt': 'json'})
                pages = decoder.decode_shared_entries(body)
            except ProtocolDecodeError as e:
                if first_batch:
                    raise
                message = "plentries/shared: follow-up batch could not be decoded"
                self.logger.warning(f"{message}: {e}")
                if report:
                    report(message, e)
                break
            first_batch = False

            requested = set(pending)
            pending = {}
            for page in pages:
                playlist_id = by_token.get(page.share_token)
                if playlist_id is None:
                    continue
                requested.discard(page.share_token)
                if not page.ok:
                    message = f"Shared playlist '{page.share_token}' failed with {page.response_code}"
                    self.logger.warning(message)
                    if report:
                        report(message, None)
                    failed.add(playlist_id)
                    continue
                results[playlist_id].extend(decoder.map_shared_entries(page, playlist_id))
                if page.next_page_token:
                    pending[page.share_token] = page.next_page_token
            for token in requested:
                message = f"Shared playlist '{token}' missing from the answer"
                self.logger.warning(message)
                if report:
                    report(message, None)
                failed.add(by_token[token])

        for playlist_id in failed:
            del results[playlist_id]
        return results
