"""Core building blocks shared by every gmusic package."""

from .exceptions import (
    GMusicError,
    AuthenticationError,
    ServiceError,
    ProtocolDecodeError,
    ArgumentError,
    ErrorHandler,
    RECOVERABLE_ERRORS,
)

__all__ = [
    'GMusicError',
    'AuthenticationError',
    'ServiceError',
    'ProtocolDecodeError',
    'ArgumentError',
    'ErrorHandler',
    'RECOVERABLE_ERRORS',
]
