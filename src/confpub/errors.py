"""Exception hierarchy for confpub.

Configuration and validation problems are raised before any network call.
Remote document store failures derive from ConfluenceError. Diagram rendering
failures are RenderError and are always recovered by the publisher.
"""


class ConfpubError(Exception):
    """Base class for all confpub errors."""


class ConfigurationError(ConfpubError):
    """Missing or invalid configuration (endpoint, credentials, file layout)."""


class ValidationError(ConfpubError):
    """A required field such as page ID or space key is missing."""


class ConfluenceError(ConfpubError):
    """Failure reported by the remote document store."""


class TransportError(ConfluenceError):
    """Network-level failure talking to Confluence."""


class RemoteRejectError(ConfluenceError):
    """Confluence answered with a non-2xx status."""

    def __init__(self, status_code: int, message: str):
        """Initialize the error.

        Args:
            status_code: HTTP status returned by Confluence
            message: Human-readable message
        """
        super().__init__(message)
        self.status_code = status_code
        self.message = message


class AuthError(RemoteRejectError):
    """Authentication failed (401)."""


class ForbiddenError(RemoteRejectError):
    """Operation not permitted (403)."""


class NotFoundError(RemoteRejectError):
    """Page or attachment does not exist (404)."""


class VersionConflictError(RemoteRejectError):
    """Page version changed concurrently (409)."""


class RenderError(ConfpubError):
    """Diagram source could not be rendered."""


STATUS_ERRORS: dict[int, type[RemoteRejectError]] = {
    401: AuthError,
    403: ForbiddenError,
    404: NotFoundError,
    409: VersionConflictError,
}


def remote_reject(status_code: int, message: str) -> RemoteRejectError:
    """Build the most specific RemoteRejectError for a status code.

    Args:
        status_code: HTTP status code
        message: Error message

    Returns:
        RemoteRejectError subclass instance
    """
    error_class = STATUS_ERRORS.get(status_code, RemoteRejectError)
    return error_class(status_code, message)
