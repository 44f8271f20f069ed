"""
Authenticated service calls

Everything above this module talks to the service through one narrow
interface: `call(service, payload, params) -> body`. The HTTP implementation
routes feed services (JSON documents with continuation tokens) and web
services (form-encoded JSON or bracketed arrays) to their endpoints, adds
credentials from the SessionHandle, spaces consecutive requests and maps
every failure onto the library's error taxonomy.
"""

import json
import time
from typing import Any, Dict, Optional, Protocol

import requests

from ..config.session import SessionHandle
from ..config.settings import Settings, get_settings
from ..core.exceptions import AuthenticationError, ServiceError
from ..utils.logger import get_logger


# Services served by the JSON feed endpoint; everything else is a web service
FEED_SERVICES = frozenset({'trackfeed', 'playlistfeed', 'plentryfeed', 'plentries/shared'})


class ServiceCall(Protocol):
    """
    Boundary every fetch and mutation goes through

    Implementations must raise AuthenticationError when the caller is not
    authenticated (before touching the network) and ServiceError for any
    transport failure or non-success response.
    """

    def call(self, service: str, payload: Any = None, params: Optional[Dict[str, Any]] = None) -> str:
        ...


class HttpServiceCall:
    """
    ServiceCall implementation on top of a requests.Session

    Attributes:
        session: Credentials used for every request
        settings: Endpoint, timeout, proxy and spacing configuration
    """

    def __init__(self, session: SessionHandle, settings: Optional[Settings] = None,
                 http: Optional[requests.Session] = None):
        """
        Initialize the transport

        Args:
            session: Already-validated credentials
            settings: Library settings, the global instance when omitted
            http: Pre-configured requests session (mainly for tests)
        """
        self.session = session
        self.settings = settings or get_settings()
        self.logger = get_logger(__name__)

        self.http = http or requests.Session()
        self.http.headers.update({'User-Agent': self.settings.network.user_agent})
        proxies = self.settings.get_proxies()
        if proxies:
            self.http.proxies.update(proxies)

        # Rate limiting
        self.last_request_time = 0.0
        self.min_request_interval = self.settings.network.min_request_interval

    def _rate_limit(self) -> None:
        """Keep at least `min_request_interval` seconds between two requests"""
        current_time = time.time()
        time_since_last = current_time - self.last_request_time

        if time_since_last < self.min_request_interval:
            time.sleep(self.min_request_interval - time_since_last)

        self.last_request_time = time.time()

    def _require_session(self, service: str) -> None:
        if not self.session.is_authenticated:
            raise AuthenticationError(
                f"Not logged in: Service '{service}' failed!",
                details={'service': service}
            )

    def call(self, service: str, payload: Any = None, params: Optional[Dict[str, Any]] = None) -> str:
        """
        Call a named service

        Args:
            service: Service name, e.g. "trackfeed" or "createplaylist"
            payload: dict/list payloads are JSON-encoded, strings are sent as-is
            params: Extra query parameters

        Returns:
            Raw response body

        Raises:
            AuthenticationError: Session missing, expired or rejected (401/403)
            ServiceError: Connection failure or other non-success status
        """
        self._require_session(service)

        if service in FEED_SERVICES:
            url = self.settings.service.feed_base_url + service
            query = dict(params or {})
            headers = {'Content-Type': 'application/json'}
            data = self._encode(payload)
        else:
            url = self.settings.service.web_base_url + service
            query = {'u': 0, 'xt': self.session.xt}
            query.update(params or {})
            headers = {}
            if query.get('format') == 'jsarray':
                # Bracketed-array calls post the array itself as the body
                headers['Content-Type'] = 'application/x-www-form-urlencoded'
                data = self._encode(payload)
            else:
                data = {'json': self._encode(payload)} if payload is not None else None

        return self._post(service, url, query, data, headers)

    def get(self, url: str, params: Optional[Dict[str, Any]] = None, service: str = "play") -> str:
        """
        Authenticated GET of an absolute URL, used for stream URL lookup

        Raises:
            AuthenticationError: Session missing, expired or rejected
            ServiceError: Connection failure or non-success status
        """
        self._require_session(service)
        response = self._send(service, 'GET', url, params=params)
        return response.text

    def download(self, url: str) -> bytes:
        """
        Unauthenticated GET of a signed URL returning raw bytes

        Signed stream URLs carry their own authorization, so no credentials
        are attached and no spacing is applied (parts are fetched in parallel).

        Raises:
            ServiceError: Connection failure or non-success status
        """
        try:
            response = requests.get(
                url,
                headers={'User-Agent': self.settings.network.user_agent},
                proxies=self.settings.get_proxies(),
                timeout=self.settings.stream.chunk_timeout
            )
            response.raise_for_status()
        except requests.exceptions.HTTPError as e:
            raise ServiceError(
                f"Download failed with status {e.response.status_code}",
                service='download',
                status_code=e.response.status_code
            ) from e
        except requests.exceptions.RequestException as e:
            raise ServiceError(f"Download failed: {e}", service='download') from e
        return response.content

    def _post(self, service: str, url: str, query: Dict[str, Any], data: Any,
              headers: Dict[str, str]) -> str:
        response = self._send(service, 'POST', url, params=query, data=data, headers=headers)
        return response.text

    def _send(self, service: str, method: str, url: str, **kwargs) -> requests.Response:
        """
        Rate-limited request with error mapping

        Raises:
            AuthenticationError: For 401 and 403 responses
            ServiceError: For connection errors and every other non-2xx status
        """
        self._rate_limit()

        headers = dict(kwargs.pop('headers', None) or {})
        headers.update(self.session.auth_headers())

        try:
            response = self.http.request(
                method,
                url,
                headers=headers,
                cookies=self.session.cookies,
                timeout=self.settings.network.request_timeout,
                **kwargs
            )
        except requests.exceptions.RequestException as e:
            raise ServiceError(f"Service '{service}' failed: {e}", service=service) from e

        self.logger.debug(f"{method} {service} -> {response.status_code} ({len(response.content)} bytes)")

        if response.status_code in (401, 403):
            raise AuthenticationError(
                f"Service '{service}' rejected the session (HTTP {response.status_code})",
                details={'service': service, 'status_code': response.status_code}
            )
        if not 200 <= response.status_code < 300:
            raise ServiceError(
                f"Service '{service}' failed with HTTP {response.status_code}",
                service=service,
                status_code=response.status_code
            )
        return response

    @staticmethod
    def _encode(payload: Any) -> Optional[str]:
        if payload is None or isinstance(payload, str):
            return payload
        return json.dumps(payload)
