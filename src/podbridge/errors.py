"""Error taxonomy shared by the back-ends, the feed assembler and the API.

Every failure that can leave the core is one of these exceptions. The
HTTP layer maps them to a status code through ``status_code``.
"""


class PodbridgeError(Exception):
    """Base class for all podbridge errors."""

    status_code: int = 500
    retryable: bool = False

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class UnknownService(PodbridgeError):
    """Raised when the requested service token has no registered back-end."""

    status_code = 404

    def __init__(self, service: str) -> None:
        super().__init__(f"Unsupported back-end: {service}")
        self.service = service


class NotFound(PodbridgeError):
    """Raised when the identifier does not exist on the upstream platform."""

    status_code = 404


class UpstreamUnavailable(PodbridgeError):
    """Raised on network failures or malformed upstream responses."""

    status_code = 502
    retryable = True


class RateLimited(PodbridgeError):
    """Raised when the upstream platform throttles us."""

    status_code = 429
    retryable = True

    def __init__(self, message: str, retry_after: int | None = None) -> None:
        super().__init__(message)
        self.retry_after = retry_after


class NoPlayableStream(PodbridgeError):
    """Raised when no stream of an item qualifies as an enclosure."""

    status_code = 404


class InvalidLimit(PodbridgeError):
    """Raised when the item limit is not a positive integer."""

    status_code = 422

    def __init__(self, limit: object) -> None:
        super().__init__(f"Invalid item limit: {limit!r} (must be a positive integer)")
        self.limit = limit
