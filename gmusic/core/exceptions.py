"""
Exception classes for gmusic.

This module defines all custom exceptions used throughout the library.
Each exception is designed to distinguish between the failure modes a
caller can react to differently.

Exception Hierarchy:
    GMusicError (base)
        AuthenticationError - Session absent, expired or rejected
        ServiceError - Transport failure or non-success HTTP outcome
        ProtocolDecodeError - Response body does not have the expected shape
        ArgumentError - Caller passed a missing required argument
"""

from typing import Callable, Optional


class GMusicError(Exception):
    """
    Base exception for all gmusic errors.
    
    Public client operations never let these escape, except ArgumentError:
    they report them to the error sink and return a failure value. Code
    that talks to the fetcher, transport or decoders directly sees them
    raised and can catch the whole family at once.
    
    Attributes:
        message: Human-readable error description.
        details: Context for logs and error sinks (service, status, ids).
    
    Example:
        try:
            fetcher.fetch_all(CollectionKind.TRACKS, since)
        except GMusicError as e:
            log.warning(f"Track fetch stopped: {e} {e.details}")
    """
    
    def __init__(self, message: str, details: Optional[dict] = None) -> None:
        """
        Args:
            message: Description shown by str(error).
            details: Extra context, e.g. 'service', 'status_code',
                     'argument' or 'operation'. Empty dict when omitted.
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}
    
    def __str__(self) -> str:
        return self.message


class AuthenticationError(GMusicError):
    """
    Raised when no valid session is available.
    
    Fetch and mutation operations check the session before issuing any
    request, so this error never implies that network traffic happened.
    
    Common causes:
        - No session handle was supplied to the client
        - The session handle carries no auth token
        - The session cookie expired
        - The server answered 401/403
    """
    pass


class ServiceError(GMusicError):
    """
    Raised when a service call does not complete successfully.
    
    Wraps transport-level failures (connection refused, timeout) as well as
    non-success HTTP responses. Never retried internally: callers decide.
    
    Attributes:
        service: Name of the remote service that failed.
        status_code: HTTP status code, None for transport failures.
    
    Example:
        raise ServiceError(
            "Service 'trackfeed' failed!",
            service='trackfeed',
            status_code=503
        )
    """
    
    def __init__(
        self,
        message: str,
        service: Optional[str] = None,
        status_code: Optional[int] = None,
        details: Optional[dict] = None
    ) -> None:
        super().__init__(message, details)
        self.service = service
        self.status_code = status_code


class ProtocolDecodeError(GMusicError):
    """
    Raised when a response body cannot be mapped into the expected shape.
    
    Covers invalid JSON, malformed bracketed arrays and envelopes whose
    structure does not match the feed being read. Inside a multi-page fetch
    a decode failure on a continuation page only truncates the result.
    """
    pass


class ArgumentError(GMusicError, ValueError):
    """
    Raised when a caller passes a missing required argument.
    
    This is the only error that always propagates out of the client:
    it is raised before any network activity and is never routed to
    the error handler.
    
    Example:
        raise ArgumentError(
            "Argument 'track_ids' in add_to_playlist must not be None!",
            details={'argument': 'track_ids'}
        )
    """
    pass


# Error sink registered by callers: receives a message and the causing exception, if any
ErrorHandler = Callable[[str, Optional[Exception]], None]

# Errors recovered at the public operation boundary
RECOVERABLE_ERRORS = (AuthenticationError, ServiceError, ProtocolDecodeError)
