"""Error types raised while evaluating a tunnel request.

Every error carries the HTTP status and the plain-text body that the client
receives. Errors raised after the tunnel is established never leave the relay.
"""

from __future__ import annotations


class ProxyError(Exception):
    """Base class for terminal per-request failures."""

    status_code: int = 500
    default_message: str = "Internal Server Error"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class MethodNotAllowedError(ProxyError):
    """Request used a method other than CONNECT."""

    status_code = 405
    default_message = "Method not allowed"


class AuthorityMismatchError(ProxyError):
    """Requested host:port differs from the configured target."""

    status_code = 400

    def __init__(self, requested: str, configured: str) -> None:
        self.requested = requested
        self.configured = configured
        super().__init__(f"Host and port don't match: {requested} != {configured}")


class AddressError(ProxyError, ValueError):
    """A host:port string could not be split."""

    status_code = 400

    def __init__(self, address: str, reason: str) -> None:
        self.address = address
        self.reason = reason
        super().__init__(f"address {address}: {reason}")


class MalformedRequestError(ProxyError):
    """Request head could not be parsed."""

    status_code = 400
    default_message = "Bad Request"


class HeaderTooLargeError(ProxyError):
    status_code = 431
    default_message = "Request Header Fields Too Large"


class DialError(ProxyError):
    """Upstream connection could not be opened."""

    status_code = 500

    def __init__(self, dial_target: str, error: Exception) -> None:
        self.dial_target = dial_target
        self.error = error
        super().__init__(f"dial tcp {dial_target}: {error}")


class HijackUnsupportedError(ProxyError):
    """The response object cannot hand over the raw connection."""

    status_code = 500
    default_message = "Hijacking not supported"
