"""Test stream URL derivation and multi-part audio retrieval"""

import threading

import pytest
from unittest.mock import Mock

from gmusic.core.exceptions import ProtocolDecodeError, ServiceError
from gmusic.library.models import StreamUrl
from gmusic.service.stream import PlayServiceDeriver, StreamDownloader


def part(start, stop):
    return StreamUrl.from_url(f"https://stream.example.com/audio?range={start}-{stop}&expire=1700000000")


class TestStreamDownloader:
    """Test StreamDownloader"""

    def test_multi_part_assembly(self):
        parts = [part(0, 3), part(4, 7), part(8, 9)]
        payloads = {parts[0].url: b"abcd", parts[1].url: b"efgh", parts[2].url: b"ij"}

        audio = StreamDownloader(payloads.__getitem__).download(parts)

        assert audio == b"abcdefghij"

    def test_parts_are_fetched_in_parallel(self):
        parts = [part(i * 2, i * 2 + 1) for i in range(5)]
        barrier = threading.Barrier(5, timeout=5)

        def fetch(url):
            barrier.wait()
            return b"xy"

        assert StreamDownloader(fetch).download(parts) == b"xy" * 5

    def test_single_url_is_downloaded_whole(self):
        fetch = Mock(return_value=b"whole file")

        audio = StreamDownloader(fetch).download([StreamUrl("https://stream.example.com/audio")])

        assert audio == b"whole file"
        fetch.assert_called_once_with("https://stream.example.com/audio")

    def test_empty_url_list(self):
        fetch = Mock()
        assert StreamDownloader(fetch).download([]) == b""
        fetch.assert_not_called()

    def test_part_without_range(self):
        urls = [part(0, 3), StreamUrl("https://stream.example.com/norange")]
        with pytest.raises(ProtocolDecodeError):
            StreamDownloader(Mock(return_value=b"")).download(urls)

    def test_failed_part_propagates(self):
        def fetch(url):
            if "range=4-7" in url:
                raise ServiceError("gone", service='download', status_code=410)
            return b"abcd"

        with pytest.raises(ServiceError):
            StreamDownloader(fetch).download([part(0, 3), part(4, 7)])

    def test_worker_count_is_bounded(self):
        assert StreamDownloader(Mock(), max_workers=20).max_workers == 5
        assert StreamDownloader(Mock(), max_workers=0).max_workers == 1


class TestPlayServiceDeriver:
    """Test PlayServiceDeriver"""

    def test_uploaded_track_uses_songid(self, session, settings):
        transport = Mock()
        transport.get.return_value = '{"urls": ["https://s/a?range=0-9&expire=1700000000"]}'
        signer = Mock(return_value="signature")
        track_id = "0123456789abcdef0123456789abcdef"

        urls = PlayServiceDeriver(transport, signer, settings).derive(track_id, session)

        assert urls[0].byte_range == (0, 9)
        signer.assert_called_once_with(track_id, session.session_id)
        url, params = transport.get.call_args[0]
        assert url == settings.service.play_url
        assert params['songid'] == track_id
        assert params['sig'] == "signature"
        assert params['slt'] == session.session_id
        assert 'mjck' not in params

    def test_catalog_track_uses_mjck(self, session, settings):
        transport = Mock()
        transport.get.return_value = '{"url": "https://s/whole?expire=1700000000"}'

        urls = PlayServiceDeriver(transport, Mock(return_value="sig"), settings).derive("Tcatalog", session)

        assert len(urls) == 1
        assert transport.get.call_args[0][1]['mjck'] == "Tcatalog"

    def test_answer_without_urls(self, session, settings):
        transport = Mock()
        transport.get.return_value = '{"error": "nope"}'

        with pytest.raises(ProtocolDecodeError):
            PlayServiceDeriver(transport, Mock(return_value="sig"), settings).derive("T1", session)
