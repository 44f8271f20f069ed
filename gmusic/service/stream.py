"""
Streaming URLs and audio retrieval

Stream URLs are signed by a scheme the library does not implement itself:
callers supply a signer (or a complete StreamUrlDeriver). The play service
answers a signed lookup with one URL for a whole file, or several URLs each
covering a byte range of the track (`range=start-stop`).

A multi-part track is downloaded in parallel, with a bounded worker pool,
into one pre-sized buffer. Every part writes its own disjoint slice; the lock
only guards growing the buffer when a part ends beyond its current size.
"""

import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Callable, Iterable, List, Optional, Protocol

from ..config.session import SessionHandle
from ..config.settings import MAX_STREAM_WORKERS, Settings, get_settings
from ..core.exceptions import ProtocolDecodeError
from ..library.models import StreamUrl
from ..utils.helpers import is_guid
from ..utils.logger import get_logger
from . import decoder

# (track id, session id) -> signature
StreamSigner = Callable[[str, str], str]


class StreamUrlDeriver(Protocol):
    """Produces the signed, time-limited stream URLs of a track"""

    def derive(self, track_id: str, session: SessionHandle) -> List[StreamUrl]:
        ...


class PlayServiceDeriver:
    """
    StreamUrlDeriver backed by the play service

    Uploaded tracks (GUID ids) are requested with `songid`, catalog tracks
    with `mjck`. The signature itself comes from the injected signer.
    """

    def __init__(self, transport, signer: StreamSigner, settings: Optional[Settings] = None):
        """
        Initialize deriver

        Args:
            transport: Object with `get(url, params) -> str` (e.g. HttpServiceCall)
            signer: Signature function of the streaming scheme
            settings: Library settings, the global instance when omitted
        """
        self.transport = transport
        self.signer = signer
        self.settings = settings or get_settings()

    def derive(self, track_id: str, session: SessionHandle) -> List[StreamUrl]:
        """
        Look up the stream URLs of a track

        Returns:
            One StreamUrl per part, expiry parsed from each URL

        Raises:
            AuthenticationError, ServiceError: From the lookup request
            ProtocolDecodeError: If the answer holds no URL list
        """
        id_param = 'songid' if is_guid(track_id) else 'mjck'
        params = {
            'u': 0,
            'slt': session.session_id,
            id_param: track_id,
            'sig': self.signer(track_id, session.session_id),
            'pt': 'e',
        }
        body = self.transport.get(self.settings.service.play_url, params, service='play')
        document = decoder.decode_object(body, 'play')

        urls = document.get('urls')
        if urls is None and document.get('url'):
            urls = [document['url']]
        if not isinstance(urls, list):
            raise ProtocolDecodeError("Stream lookup returned no URLs", details={'track_id': track_id})
        return [StreamUrl.from_url(url) for url in urls if url]


class StreamDownloader:
    """
    Retrieves the audio bytes behind stream URLs

    Attributes:
        fetch: Function downloading one URL to bytes (e.g. HttpServiceCall.download)
        max_workers: Parallel part downloads, capped at MAX_STREAM_WORKERS
    """

    def __init__(self, fetch: Callable[[str], bytes], max_workers: int = MAX_STREAM_WORKERS):
        self.fetch = fetch
        self.max_workers = max(1, min(max_workers, MAX_STREAM_WORKERS))
        self.logger = get_logger(__name__)

    def download(self, stream_urls: Iterable[StreamUrl]) -> bytes:
        """
        Download and assemble a track

        Args:
            stream_urls: One whole-file URL, or the byte-range parts of a track

        Returns:
            The audio bytes; empty for an empty URL list

        Raises:
            ServiceError: If any part fails to download
            ProtocolDecodeError: If a part URL carries no byte range
        """
        urls = list(stream_urls)
        if not urls:
            return b""
        if len(urls) == 1:
            return self.fetch(urls[0].url)
        return self._download_parts(urls)

    def _download_parts(self, urls: List[StreamUrl]) -> bytes:
        ranges = []
        for url in urls:
            byte_range = url.byte_range
            if byte_range is None:
                raise ProtocolDecodeError("Stream part without byte range", details={'url': url.url})
            ranges.append(byte_range)

        # The last part ends at the final byte of the track
        buffer = bytearray(ranges[-1][1] + 1)
        lock = threading.Lock()

        def download_part(index: int) -> int:
            part = self.fetch(urls[index].url)
            start, stop = ranges[index]
            end = start + len(part)
            with lock:
                if len(buffer) < max(end, stop + 1):
                    buffer.extend(bytes(max(end, stop + 1) - len(buffer)))
            buffer[start:end] = part
            return len(part)

        workers = min(self.max_workers, len(urls))
        self.logger.debug(f"Downloading {len(urls)} stream parts with {workers} workers")

        with ThreadPoolExecutor(max_workers=workers) as executor:
            future_to_index = {executor.submit(download_part, i): i for i in range(len(urls))}
            for future in as_completed(future_to_index):
                index = future_to_index[future]
                size = future.result()
                self.logger.debug(f"Stream part {index + 1}/{len(urls)}: {size} bytes")

        return bytes(buffer)
