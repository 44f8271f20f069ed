"""
Session handle for authenticated service access

The credential exchange itself happens outside this library. Whatever
performs it produces a SessionHandle, and any client that needs
authenticated access receives the handle as an ordinary constructor
argument. Two clients sharing credentials simply share the same handle.
"""

from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Dict, Optional

from ..utils.helpers import random_alnum, utcnow


@dataclass(frozen=True)
class SessionHandle:
    """
    Opaque, already-validated credentials for the music service

    Attributes:
        auth_token: Bearer/GoogleLogin token sent in the Authorization header
        xt: Cross-site token required as a query parameter by the web services
        cookies: Session cookies captured during login
        session_id: Random client session id embedded in bracketed-array payloads
        expires: Optional expiry after which the handle is no longer usable
    """
    auth_token: Optional[str] = None
    xt: Optional[str] = None
    cookies: Dict[str, str] = field(default_factory=dict)
    session_id: str = field(default_factory=random_alnum)
    expires: Optional[datetime] = None

    @property
    def is_authenticated(self) -> bool:
        """True while the handle carries a token and has not expired"""
        if not self.auth_token:
            return False
        if self.expires is not None and self.expires <= utcnow():
            return False
        return True

    def auth_headers(self) -> Dict[str, str]:
        """
        Headers that authenticate a request

        Returns:
            Header mapping, empty when the handle carries no token
        """
        if not self.auth_token:
            return {}
        return {'Authorization': f'GoogleLogin auth={self.auth_token}'}

    def with_cookies(self, cookies: Dict[str, str]) -> 'SessionHandle':
        """Return a copy whose cookie jar is extended with `cookies`"""
        merged = dict(self.cookies)
        merged.update(cookies)
        return replace(self, cookies=merged)

    def __repr__(self) -> str:
        # Never print the token itself
        state = "authenticated" if self.is_authenticated else "unauthenticated"
        return f"SessionHandle({state}, session_id={self.session_id!r})"

    @classmethod
    def anonymous(cls) -> 'SessionHandle':
        """Handle without credentials; every authenticated call short-circuits"""
        return cls()
