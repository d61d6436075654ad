"""Object store error definitions for Stowaway."""


class StowawayError(Exception):
    """An object store error with code, message, and HTTP status.

    Attributes:
        code: Short error code string (e.g. "NotFound", "Conflict").
        message: Human-readable error description.
        http_status: The HTTP status that caused the error, if any.
    """

    def __init__(
        self,
        code: str,
        message: str,
        http_status: int | None = None,
    ) -> None:
        """Initialize the error.

        Args:
            code: Error code.
            message: Error description.
            http_status: HTTP status code, or None for non-HTTP failures.
        """
        super().__init__(message)
        self.code = code
        self.message = message
        self.http_status = http_status


# -- Common pre-defined errors ------------------------------------------------


class AuthenticationError(StowawayError):
    """The credentials were refused or the auth endpoint could not be reached."""

    def __init__(self, message: str = "Authentication failed", http_status: int | None = None) -> None:
        super().__init__(code="AuthenticationError", message=message, http_status=http_status)


class Unauthorized(StowawayError):
    """The token was rejected, also after re-authenticating."""

    def __init__(self, message: str = "The token was not accepted") -> None:
        super().__init__(code="Unauthorized", message=message, http_status=401)


class NotFound(StowawayError):
    """The account, container or object does not exist."""

    def __init__(self, message: str = "The entity does not exist") -> None:
        super().__init__(code="NotFound", message=message, http_status=404)


class Conflict(StowawayError):
    """The request conflicts with the current state, e.g. a non-empty container."""

    def __init__(self, message: str = "The request conflicts with the current state") -> None:
        super().__init__(code="Conflict", message=message, http_status=409)


class ServiceError(StowawayError):
    """The object store failed with a 5xx status or sent an unreadable reply."""

    def __init__(self, message: str = "Service error", http_status: int = 500) -> None:
        super().__init__(code="ServiceError", message=message, http_status=http_status)


class TransportError(StowawayError):
    """The request never produced an HTTP response (connect, read, timeout)."""

    def __init__(self, message: str = "Transport error") -> None:
        super().__init__(code="TransportError", message=message, http_status=None)


class CommandError(StowawayError):
    """Any other non-2xx status (400, 403, 412, 416...)."""

    def __init__(self, message: str = "Command failed", http_status: int = 400) -> None:
        super().__init__(code="CommandError", message=message, http_status=http_status)


class ConfigurationError(StowawayError):
    """The client was used in a way its configuration does not allow."""

    def __init__(self, message: str = "Invalid client configuration") -> None:
        super().__init__(code="ConfigurationError", message=message, http_status=None)


def error_for_status(status: int, message: str = "") -> StowawayError:
    """Map a non-2xx HTTP status to the matching error.

    Args:
        status: The HTTP status code.
        message: Optional description, defaults to one naming the status.

    Returns:
        An error instance (not raised).
    """
    message = message or f"Request failed with status {status}"
    if status == 401:
        return Unauthorized(message)
    if status == 404:
        return NotFound(message)
    if status == 409:
        return Conflict(message)
    if 500 <= status <= 599:
        return ServiceError(message, http_status=status)
    return CommandError(message, http_status=status)
