"""
JSON response decoding

Feed responses look like

    {"kind": "sj#trackList", "nextPageToken": "...", "data": {"items": [...]}}

When nothing changed since the requested watermark the service answers with
an empty body or an envelope without "data"; both decode to a page with zero
items and are not errors. Anything that is not valid JSON, or valid JSON of
the wrong shape, raises ProtocolDecodeError.
"""

import json
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from ..core.exceptions import ProtocolDecodeError
from ..library.models import PlaylistEntry


@dataclass
class FeedPage:
    """One decoded page of a feed"""
    items: List[Any] = field(default_factory=list)
    next_page_token: Optional[str] = None


@dataclass
class SharedEntriesPage:
    """Entries returned for one share token of a batched shared-entry lookup"""
    share_token: str
    response_code: str = "OK"
    entries: List[Dict[str, Any]] = field(default_factory=list)
    next_page_token: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.response_code == "OK"


def decode_json(body: Optional[str], service: str = "") -> Optional[Any]:
    """
    Parse a JSON body

    Args:
        body: Raw response text
        service: Service name for error messages

    Returns:
        Parsed document, or None for an empty or whitespace-only body

    Raises:
        ProtocolDecodeError: If the body is not valid JSON
    """
    if body is None or not body.strip():
        return None
    try:
        return json.loads(body)
    except ValueError as e:
        raise ProtocolDecodeError(
            f"Response of '{service}' is not valid JSON: {e}",
            details={'service': service}
        ) from e


def decode_object(body: Optional[str], service: str = "") -> Dict[str, Any]:
    """
    Parse a JSON body that must be an object

    Returns:
        The object, an empty dict for an empty body

    Raises:
        ProtocolDecodeError: For invalid JSON or a non-object document
    """
    document = decode_json(body, service)
    if document is None:
        return {}
    if not isinstance(document, dict):
        raise ProtocolDecodeError(
            f"Response of '{service}' is not a JSON object",
            details={'service': service}
        )
    return document


def decode_feed_page(body: Optional[str], item_factory: Callable[[Dict[str, Any]], Any],
                     service: str = "") -> FeedPage:
    """
    Decode one feed page into records

    Args:
        body: Raw response text
        item_factory: Builds a record from one item document (e.g. Track.from_feed)
        service: Service name for error messages

    Returns:
        FeedPage with the records and the continuation token, if any

    Raises:
        ProtocolDecodeError: For invalid JSON, a wrong envelope shape or an
            item the factory cannot map
    """
    document = decode_object(body, service)
    token = document.get('nextPageToken') or None

    data = document.get('data')
    if data is None:
        return FeedPage(items=[], next_page_token=token)
    if not isinstance(data, dict):
        raise ProtocolDecodeError(f"Unexpected 'data' envelope in '{service}'", details={'service': service})

    raw_items = data.get('items') or []
    if not isinstance(raw_items, list):
        raise ProtocolDecodeError(f"'data.items' of '{service}' is not a list", details={'service': service})

    items = []
    for index, raw in enumerate(raw_items):
        if not isinstance(raw, dict):
            raise ProtocolDecodeError(
                f"Item {index} of '{service}' is not an object",
                details={'service': service, 'index': index}
            )
        try:
            items.append(item_factory(raw))
        except (TypeError, ValueError, AttributeError) as e:
            raise ProtocolDecodeError(
                f"Item {index} of '{service}' could not be mapped: {e}",
                details={'service': service, 'index': index}
            ) from e

    return FeedPage(items=items, next_page_token=token)


def decode_shared_entries(body: Optional[str], service: str = "plentries/shared") -> List[SharedEntriesPage]:
    """
    Decode the batched shared-playlist entry response

    The response holds one element per requested share token:

        {"entries": [{"shareToken": "...", "responseCode": "OK",
                      "nextPageToken": "...", "playlistEntry": [...]}]}

    Raises:
        ProtocolDecodeError: For invalid JSON or a wrong shape
    """
    document = decode_object(body, service)
    results = []
    for raw in document.get('entries') or []:
        if not isinstance(raw, dict) or not raw.get('shareToken'):
            raise ProtocolDecodeError(f"Malformed element in '{service}'", details={'service': service})
        entries = raw.get('playlistEntry') or []
        if not isinstance(entries, list):
            raise ProtocolDecodeError(f"'playlistEntry' of '{service}' is not a list", details={'service': service})
        results.append(SharedEntriesPage(
            share_token=raw['shareToken'],
            response_code=raw.get('responseCode') or "OK",
            entries=entries,
            next_page_token=raw.get('nextPageToken') or None,
        ))
    return results


def map_shared_entries(page: SharedEntriesPage, playlist_id: str) -> List[PlaylistEntry]:
    """
    Build entries of a shared playlist

    Shared entries identify their playlist by share token only; the owning
    playlist id is filled in from the caller's playlist.

    Raises:
        ProtocolDecodeError: If an entry cannot be mapped
    """
    try:
        return [PlaylistEntry.from_feed(raw, playlist_id=playlist_id) for raw in page.entries]
    except (TypeError, ValueError, AttributeError) as e:
        raise ProtocolDecodeError(
            f"Shared entries of '{page.share_token}' could not be mapped: {e}",
            details={'share_token': page.share_token}
        ) from e
