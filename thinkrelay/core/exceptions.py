"""Core exceptions for the relay."""

from typing import Optional


class ProxyError(Exception):
    """Base exception for relay errors.

    Every subclass knows how it is rendered to the client: the HTTP status
    used when no response has been started yet, and the ``type``/``code``
    pair of the structured error body.
    """

    status_code = 500
    error_type = "proxy_error"
    code = "proxy_error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_error_body(self) -> dict:
        return {
            "error": {
                "message": self.message,
                "type": self.error_type,
                "code": self.code,
            }
        }


class ConfigurationError(ProxyError):
    """Raised when there's an issue with the configuration."""

    code = "configuration_error"


class InvalidRequestError(ProxyError):
    """Raised when an incoming request is invalid."""

    status_code = 400
    error_type = "invalid_request_error"

    def __init__(self, message: str, code: str = "invalid_request") -> None:
        super().__init__(message)
        self.code = code


class UpstreamUnreachable(ProxyError):
    """The upstream could not be reached or dropped the connection."""

    error_type = "upstream_error"
    code = "upstream_unreachable"


class UpstreamTimeout(ProxyError):
    """The upstream did not answer within the configured deadline."""

    error_type = "upstream_error"
    code = "upstream_timeout"


class UpstreamError(ProxyError):
    """The upstream answered with an error status or an in-stream error event."""

    error_type = "upstream_error"
    code = "upstream_http_error"

    def __init__(self, message: str, status: Optional[int] = None) -> None:
        super().__init__(message)
        self.upstream_status = status
        if status is not None and 400 <= status <= 599:
            self.status_code = status


class MalformedUpstreamBody(ProxyError):
    """The upstream body could not be parsed into the expected structure."""

    error_type = "upstream_error"
    code = "malformed_upstream_body"
