"""Test configuration and fixtures"""

import json
import tempfile
from datetime import datetime, timedelta, timezone
from pathlib import Path
from unittest.mock import Mock

import pytest

from gmusic.config.session import SessionHandle
from gmusic.config.settings import Settings


T0 = datetime(2024, 3, 1, 12, 0, 0, tzinfo=timezone.utc)
T1 = T0 + timedelta(minutes=5)


class FakeServiceCall:
    """
    In-memory ServiceCall

    Bodies (or exceptions to raise) are queued per service name and handed
    out in order; a service with nothing queued answers with an empty body.
    Every call is recorded as (service, payload, params).
    """

    def __init__(self):
        self.responses = {}
        self.calls = []
        self.downloads = {}

    def queue(self, service, *bodies):
        self.responses.setdefault(service, []).extend(bodies)
        return self

    def call(self, service, payload=None, params=None):
        self.calls.append((service, payload, params))
        pending = self.responses.get(service)
        if not pending:
            return ""
        body = pending.pop(0)
        if isinstance(body, Exception):
            raise body
        return body

    def download(self, url):
        return self.downloads[url]

    @property
    def services(self):
        return [service for service, _, _ in self.calls]

    def calls_to(self, service):
        return [(payload, params) for name, payload, params in self.calls if name == service]


class FeedBuilder:
    """Builds feed items and response bodies in the shapes the service sends"""

    @staticmethod
    def body(items, next_page_token=None, kind="sj#trackList"):
        document = {'kind': kind, 'data': {'items': list(items)}}
        if next_page_token:
            document['nextPageToken'] = next_page_token
        return json.dumps(document)

    @staticmethod
    def track(track_id, title="", artist="", album="", deleted=False, **extra):
        item = {
            'kind': 'sj#track',
            'id': track_id,
            'title': title or f"Title {track_id}",
            'artist': artist,
            'album': album,
            'deleted': deleted,
            'durationMillis': "215000",
        }
        item.update(extra)
        return item

    @staticmethod
    def playlist(playlist_id, name="", type="USER_GENERATED", share_token=None, deleted=False):
        item = {
            'kind': 'sj#playlist',
            'id': playlist_id,
            'name': name or f"Playlist {playlist_id}",
            'type': type,
            'deleted': deleted,
        }
        if share_token:
            item['shareToken'] = share_token
        return item

    @staticmethod
    def entry(entry_id, playlist_id, track_id, position, deleted=False, track=None):
        item = {
            'kind': 'sj#playlistEntry',
            'id': entry_id,
            'playlistId': playlist_id,
            'trackId': track_id,
            'absolutePosition': str(position),
            'deleted': deleted,
        }
        if track is not None:
            item['track'] = track
        return item

    @staticmethod
    def shared(*results):
        """Batched shared-entry response; results are (token, entries, next_token, code)"""
        entries = []
        for token, items, next_token, code in results:
            element = {'shareToken': token, 'responseCode': code, 'playlistEntry': list(items)}
            if next_token:
                element['nextPageToken'] = next_token
            entries.append(element)
        return json.dumps({'entries': entries})


@pytest.fixture
def temp_dir():
    """Create temporary directory for tests"""
    with tempfile.TemporaryDirectory() as temp_dir:
        yield Path(temp_dir)


@pytest.fixture
def settings(temp_dir):
    """Settings with defaults, no request spacing and a temporary cache"""
    settings = Settings(config_path=str(temp_dir / "missing.yaml"))
    settings.service.wire_format = "json"
    settings.network.min_request_interval = 0
    settings.network.proxy = ""
    settings.cache.directory = str(temp_dir / "cache")
    settings.cache.enabled = True
    return settings


@pytest.fixture
def session():
    """Authenticated session handle"""
    return SessionHandle(auth_token="token-123", xt="xt-456", session_id="sessionABC12")


@pytest.fixture
def transport():
    return FakeServiceCall()


@pytest.fixture
def feed():
    return FeedBuilder()


@pytest.fixture
def clock():
    """Clock fixed at T1"""
    return Mock(return_value=T1)


@pytest.fixture
def error_sink():
    return Mock()
