"""
Bracketed-array wire format

Some web services answer with nested JavaScript array literals instead of
JSON objects. The literals differ from JSON arrays in one way: elements may
be elided (`[1,,2]`, `[1,]`), and an elided element means null.

Records are mapped from array rows positionally. Each entity kind has a fixed
slot table: one entry per row index, naming the record field filled from that
index and the converter applied to the raw value. `None` marks an index the
library does not use.
"""

import json
import re
from dataclasses import dataclass, fields
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from ..core.exceptions import ProtocolDecodeError
from ..library.models import Playlist, Track, art_urls_from_refs
from ..utils.helpers import micros_to_datetime, to_bool, to_int

_WHITESPACE = re.compile(r'\s*')
_DECODER = json.JSONDecoder()
_SCALAR_START = frozenset('"-0123456789tfn')

TRACKS_BEGIN = "['slat_process']"


# Parsing

def _skip_space(text: str, index: int) -> int:
    return _WHITESPACE.match(text, index).end()


def _error(message: str, text: str, index: int) -> ProtocolDecodeError:
    found = repr(text[index]) if index < len(text) else 'EOF'
    return ProtocolDecodeError(f"{message} at {index} (found: {found})", details={'position': index})


def _parse_value(text: str, index: int) -> Tuple[Any, int]:
    index = _skip_space(text, index)
    if index >= len(text):
        raise _error("Value expected", text, index)
    if text[index] == '[':
        return _parse_array(text, index)
    if text[index] not in _SCALAR_START:
        raise _error("Bad value", text, index)
    try:
        return _DECODER.raw_decode(text, index)
    except ValueError as e:
        raise _error(f"Bad value ({e.args[0] if e.args else e})", text, index) from e


def _parse_array(text: str, index: int) -> Tuple[List[Any], int]:
    """Parse the array starting at `text[index] == '['`; return it and the index after `]`"""
    items: List[Any] = []
    index = _skip_space(text, index + 1)
    if index < len(text) and text[index] == ']':
        return items, index + 1

    while index < len(text):
        if text[index] == ',':
            items.append(None)
        else:
            value, index = _parse_value(text, index)
            items.append(value)
            index = _skip_space(text, index)
            if index < len(text) and text[index] == ']':
                return items, index + 1
            if index >= len(text) or text[index] != ',':
                raise _error("Unexpected character", text, index)

        index = _skip_space(text, index + 1)
        if index < len(text) and text[index] == ']':
            # Trailing comma elides one last element
            items.append(None)
            return items, index + 1

    raise _error("Bad array", text, index)


def parse_at(text: str, index: int = 0) -> Tuple[List[Any], int]:
    """
    Parse the first array literal at or after `index`

    Args:
        text: Response text
        index: Position to start scanning from

    Returns:
        The parsed array and the position just after it

    Raises:
        ProtocolDecodeError: If no well-formed array starts there
    """
    index = _skip_space(text, index)
    if index >= len(text) or text[index] != '[':
        raise _error("Array expected", text, index)
    return _parse_array(text, index)


def parse(text: str) -> List[Any]:
    """Parse a response consisting of one array literal"""
    array, _ = parse_at(text)
    return array


# Positional field mapping

@dataclass(frozen=True)
class Slot:
    """Target field of one row index and the converter for its raw value"""
    name: str
    convert: Callable[[Any], Any]


def _text(value: Any) -> str:
    return value if isinstance(value, str) else str(value)


def _art(value: Any) -> Tuple[str, ...]:
    return art_urls_from_refs([value])


def _ids(value: Any) -> Tuple[str, ...]:
    if isinstance(value, list):
        return tuple(_text(item) for item in value if item)
    return (_text(value),)


TRACK_SLOTS: Tuple[Optional[Slot], ...] = (
    Slot('id', _text),                                  # 0
    Slot('title', _text),
    Slot('album_art_urls', _art),
    Slot('artist', _text),
    Slot('album', _text),
    Slot('album_artist', _text),                        # 5
    Slot('title_norm', _text),
    Slot('artist_norm', _text),
    Slot('album_norm', _text),
    Slot('album_artist_norm', _text),
    Slot('composer', _text),                            # 10
    Slot('genre', _text),
    None,
    Slot('duration_millis', to_int),
    Slot('track', to_int),
    Slot('total_tracks', to_int),                       # 15
    Slot('disc', to_int),
    Slot('total_discs', to_int),
    Slot('year', to_int),
    Slot('deleted', to_bool),
    None,                                               # 20
    None,
    Slot('play_count', to_int),
    Slot('rating', to_int),
    Slot('creation_timestamp', micros_to_datetime),
    Slot('last_modified_timestamp', micros_to_datetime),  # 25
    Slot('subject_to_curation', to_bool),
    Slot('store_id', _text),
    Slot('nid', _text),
    Slot('type', to_int),
    Slot('comment', _text),                             # 30
    None,
    Slot('album_id', _text),
    Slot('artist_ids', _ids),
    Slot('bitrate', to_int),
    Slot('recent_timestamp', micros_to_datetime),       # 35
    Slot('artist_art_urls', _art),
    None,
    Slot('explicit_type', to_int),
)

PLAYLIST_SLOTS: Tuple[Optional[Slot], ...] = (
    Slot('id', _text),                                  # 0
    Slot('name', _text),
    Slot('creation_timestamp', micros_to_datetime),
    Slot('last_modified_timestamp', micros_to_datetime),
    Slot('type', _text),
    Slot('share_token', _text),                         # 5
    None,
    None,
    Slot('owner_name', _text),
    None,
    Slot('owner_profile_photo_url', _text),             # 10
)


def unknown_slots(slots: Sequence[Optional[Slot]], record_type: type) -> List[str]:
    """Slot names that are not init fields of `record_type` (empty when the table is sound)"""
    names = {f.name for f in fields(record_type) if f.init}
    return [slot.name for slot in slots if slot is not None and slot.name not in names]


def map_row(row: Any, slots: Sequence[Optional[Slot]], factory: Callable[..., Any],
            report: Optional[Callable[[str], None]] = None):
    """
    Build one record from a positional row

    Null values leave the field at its default. A row shorter than the slot
    table also leaves the trailing fields at their defaults and reports each
    field that had no value to map from.

    Args:
        row: Array row from the response
        slots: Slot table of the entity kind
        factory: Record constructor accepting the slot names as keywords
        report: Receives a message for every unmatched field

    Returns:
        The constructed record

    Raises:
        ProtocolDecodeError: If the row is not an array or a value cannot be converted
    """
    if not isinstance(row, list):
        raise ProtocolDecodeError(f"Row expected, found {type(row).__name__}")

    values: Dict[str, Any] = {}
    for index, slot in enumerate(slots):
        if slot is None:
            continue
        if index >= len(row):
            if report:
                report(f"{factory.__name__} property '{slot.name}' not matched!")
            continue
        raw = row[index]
        if raw is None:
            continue
        try:
            values[slot.name] = slot.convert(raw)
        except (TypeError, ValueError) as e:
            raise ProtocolDecodeError(
                f"{factory.__name__} property '{slot.name}' has unexpected value {raw!r}",
                details={'index': index}
            ) from e

    return factory(**values)


# Response shapes

def decode_track_rows(body: Optional[str], report: Optional[Callable[[str], None]] = None) -> List[Track]:
    """
    Decode a streaming track listing

    The body is a script in which each batch of rows is wrapped between a
    `['slat_process']` and a `['slat_progress']` marker; the first element of
    every batch array is the list of track rows.

    Raises:
        ProtocolDecodeError: If a batch is malformed
    """
    tracks: List[Track] = []
    if not body:
        return tracks

    position = body.find(TRACKS_BEGIN)
    while position >= 0:
        start = body.find('[', position + len(TRACKS_BEGIN))
        if start < 0:
            raise ProtocolDecodeError("Track batch without rows", details={'position': position})
        batch, end = parse_at(body, start)
        if not batch or not isinstance(batch[0], list):
            raise ProtocolDecodeError("Track batch without row list", details={'position': start})
        for row in batch[0]:
            tracks.append(map_row(row, TRACK_SLOTS, Track, report))
        position = body.find(TRACKS_BEGIN, end)

    return tracks


def decode_playlist_rows(body: Optional[str],
                         report: Optional[Callable[[str], None]] = None) -> List[Playlist]:
    """
    Decode a playlist listing; rows live at `[1][0]` of the response array

    Raises:
        ProtocolDecodeError: If the response does not have that shape
    """
    if not body or not body.strip():
        return []
    document = parse(body)
    try:
        rows = document[1][0]
    except (IndexError, TypeError) as e:
        raise ProtocolDecodeError("Playlist rows not found at [1][0]") from e
    if rows is None:
        return []
    if not isinstance(rows, list):
        raise ProtocolDecodeError("Playlist rows are not an array")
    return [map_row(row, PLAYLIST_SLOTS, Playlist, report) for row in rows]


def playlists_payload(session_id: str, selector: str = "all") -> List[Any]:
    """Request body for the playlist listing: `[["<session id>",1],["all"]]`"""
    return [[session_id, 1], [selector]]
