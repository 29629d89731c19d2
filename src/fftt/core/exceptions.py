"""Domain exceptions for the fftt library."""


class FFTTError(Exception):
    """Base class for all fftt library exceptions."""


class TransportError(FFTTError):
    """Raised when the HTTP request to the federation backend fails.

    Only transport-level failures (DNS, refused connection, TLS, broken
    stream) end up here.  The original :mod:`requests` exception is chained
    as ``__cause__`` so callers can inspect it.  HTTP error statuses are
    not classified: the backend answers with an XML body either way and
    that body is returned to the caller unchanged.
    """

    def __init__(self, message: str, path: str | None = None):
        super().__init__(message)
        self.path = path
