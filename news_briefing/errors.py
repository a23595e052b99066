"""
Error taxonomy for the ingestion pipeline.

Transport, configuration and workflow errors abort a refresh and propagate
to the caller. ParseError is raised by decode/normalize helpers and is always
contained to a single record or category by the stage that calls them.
"""

from __future__ import annotations

from enum import Enum


class BriefingError(Exception):
    """Base class for all pipeline errors."""


class ConfigurationError(BriefingError):
    """Endpoint or credential missing; raised before any network attempt."""


class TransportErrorKind(str, Enum):
    CLIENT_ERROR = "client_error"
    SERVER_ERROR = "server_error"
    TIMEOUT = "timeout"
    UNEXPECTED_CONTENT_TYPE = "unexpected_content_type"
    NETWORK_ERROR = "network_error"


_RETRYABLE = {TransportErrorKind.SERVER_ERROR, TransportErrorKind.NETWORK_ERROR}


class TransportError(BriefingError):
    """Failure talking to the workflow engine.

    Attributes:
        kind: Which transport failure occurred
        status: HTTP status code for client/server errors, None otherwise
    """

    def __init__(self, kind: TransportErrorKind, message: str = "", status: int | None = None):
        self.kind = kind
        self.status = status
        detail = message or kind.value
        if status is not None:
            detail = f"{detail} (HTTP {status})"
        super().__init__(detail)

    @property
    def retryable(self) -> bool:
        return self.kind in _RETRYABLE


class UpstreamWorkflowError(BriefingError):
    """The workflow reported failed/running, or answered with an unknown shape."""

    def __init__(self, status: str, message: str = ""):
        self.status = status
        super().__init__(message or f"Workflow status: {status}")


class ParseError(BriefingError):
    """A single string or record could not be decoded."""
