"""
Sort keys for library records

Ordering in the library is symbol-insensitive: punctuation and whitespace
are ignored, case is folded, and accented letters compare like their base
letter. A leading definite article is moved to the end ("The Band" sorts
as "Band, The"), for sorting only. Display values are never rewritten.
"""

import re
import unicodedata
from typing import Optional, Tuple

_ARTICLE_PATTERN = re.compile(r'^(?P<article>[Tt]he)\s+(?P<body>.+)', re.DOTALL)


def rearrange_article(value: Optional[str]) -> str:
    """
    Move a leading "The"/"the" behind the rest of the string

    Args:
        value: Name such as an artist or album artist

    Returns:
        "Band, The" for "The Band"; other values unchanged, None becomes ""
    """
    if not value:
        return ""
    match = _ARTICLE_PATTERN.match(value)
    if match:
        return f"{match.group('body')}, {match.group('article')}"
    return value


def collation_key(value: Optional[str]) -> str:
    """
    Comparison key ignoring symbols, whitespace, case and diacritics

    Two strings with equal collation keys are considered equal for ordering
    and for album-artist grouping.

    Args:
        value: Any display string

    Returns:
        Casefolded string holding only the alphanumeric characters
    """
    if not value:
        return ""
    decomposed = unicodedata.normalize('NFKD', value.casefold())
    return ''.join(ch for ch in decomposed if ch.isalnum())


def position_key(disc: int, track: int) -> int:
    """Single ordering number for a disc/track pair"""
    return disc * 1000 + track


# Track orderings. Every track precomputes its collation keys at construction,
# so these only assemble tuples.

def by_title(track) -> Tuple[str, str, str]:
    """Default order: title, artist, album"""
    return (track.title_sort, track.artist_sort, track.album_sort)


def by_artist(track) -> Tuple[str, str, str]:
    return (track.artist_sort, track.title_sort, track.album_sort)


def by_album_artist(track) -> Tuple[str, str, str]:
    return (track.album_artist_sort, track.title_sort, track.album_sort)


def by_album(track) -> Tuple[str, str, int]:
    return (track.album_sort, track.album_artist_sort, position_key(track.disc, track.track))


def by_album_artist_album(track) -> Tuple[str, str, int]:
    """Album view order: album artist, album, then disc and track position"""
    return (track.album_artist_sort, track.album_sort, position_key(track.disc, track.track))
