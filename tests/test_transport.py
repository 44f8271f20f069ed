"""Test the HTTP service transport"""

import json

import pytest
import requests
from unittest.mock import Mock

from gmusic.config.session import SessionHandle
from gmusic.core.exceptions import AuthenticationError, ServiceError
from gmusic.service.transport import HttpServiceCall


def make_http(status_code=200, text='{}'):
    http = Mock()
    http.headers = {}
    http.proxies = {}
    http.request.return_value = Mock(status_code=status_code, text=text, content=text.encode())
    return http


class TestHttpServiceCall:
    """Test HttpServiceCall"""

    def test_feed_service(self, session, settings):
        http = make_http(text='{"data": {"items": []}}')
        transport = HttpServiceCall(session, settings, http=http)

        body = transport.call('trackfeed', {'max-results': 100}, {'updated-min': 5})

        assert body == '{"data": {"items": []}}'
        method, url = http.request.call_args[0]
        kwargs = http.request.call_args[1]
        assert method == 'POST'
        assert url == settings.service.feed_base_url + 'trackfeed'
        assert kwargs['params'] == {'updated-min': 5}
        assert json.loads(kwargs['data']) == {'max-results': 100}
        assert kwargs['headers']['Authorization'] == 'GoogleLogin auth=token-123'
        assert kwargs['headers']['Content-Type'] == 'application/json'

    def test_web_service(self, session, settings):
        http = make_http(text='{"id": "p1"}')
        transport = HttpServiceCall(session, settings, http=http)

        transport.call('createplaylist', {'name': 'Mine'})

        _, url = http.request.call_args[0]
        kwargs = http.request.call_args[1]
        assert url == settings.service.web_base_url + 'createplaylist'
        assert kwargs['params'] == {'u': 0, 'xt': 'xt-456'}
        assert json.loads(kwargs['data']['json']) == {'name': 'Mine'}

    def test_web_service_without_payload(self, session, settings):
        http = make_http()
        HttpServiceCall(session, settings, http=http).call('getstatus')

        assert http.request.call_args[1]['data'] is None

    def test_jsarray_body(self, session, settings):
        http = make_http(text='[[],[["T1"]]]')
        transport = HttpServiceCall(session, settings, http=http)

        transport.call('loadalltracks', '[["sessionABC12",1],[]]', {'format': 'jsarray'})

        kwargs = http.request.call_args[1]
        assert kwargs['params']['format'] == 'jsarray'
        assert kwargs['data'] == '[["sessionABC12",1],[]]'
        assert kwargs['headers']['Content-Type'] == 'application/x-www-form-urlencoded'

    @pytest.mark.parametrize("status_code", [401, 403])
    def test_rejected_session(self, session, settings, status_code):
        transport = HttpServiceCall(session, settings, http=make_http(status_code=status_code))

        with pytest.raises(AuthenticationError):
            transport.call('trackfeed')

    def test_server_error(self, session, settings):
        transport = HttpServiceCall(session, settings, http=make_http(status_code=503))

        with pytest.raises(ServiceError) as excinfo:
            transport.call('trackfeed')

        assert excinfo.value.status_code == 503
        assert excinfo.value.service == 'trackfeed'

    def test_connection_error(self, session, settings):
        http = make_http()
        http.request.side_effect = requests.exceptions.ConnectionError("refused")

        with pytest.raises(ServiceError) as excinfo:
            HttpServiceCall(session, settings, http=http).call('playlistfeed')

        assert excinfo.value.status_code is None

    def test_anonymous_session_never_sends(self, settings):
        http = make_http()

        with pytest.raises(AuthenticationError):
            HttpServiceCall(SessionHandle.anonymous(), settings, http=http).call('trackfeed')

        http.request.assert_not_called()

    def test_authenticated_get(self, session, settings):
        http = make_http(text='{"url": "https://s/a"}')

        body = HttpServiceCall(session, settings, http=http).get(settings.service.play_url, {'songid': 'x'})

        assert body == '{"url": "https://s/a"}'
        assert http.request.call_args[0][0] == 'GET'
        assert http.request.call_args[1]['params'] == {'songid': 'x'}
