"""Error kinds raised by the storefront services.

Every service operation either returns a value or raises exactly one of the
exceptions below. ``storefront.main`` maps them onto HTTP responses.
"""


class StorefrontError(Exception):
    """Base exception for all storefront errors."""

    kind = "Error"
    status_code = 500

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ValidationError(StorefrontError):
    """Raised when a required field is missing or malformed."""

    kind = "Validation"
    status_code = 422


class UnauthenticatedError(StorefrontError):
    """Raised for a missing, invalid or expired bearer token, or bad credentials."""

    kind = "Unauthenticated"
    status_code = 401

    def __init__(self, message: str = "Could not validate credentials."):
        super().__init__(message)


class ForbiddenError(StorefrontError):
    """Raised when an authenticated user is not privileged."""

    kind = "Forbidden"
    status_code = 403

    def __init__(self, message: str = "Access denied. Requires admin privileges."):
        super().__init__(message)


class NotFoundError(StorefrontError):
    """Raised when a referenced id does not resolve."""

    kind = "NotFound"
    status_code = 404

    def __init__(self, resource: str, ref: str | None = None):
        self.resource = resource
        self.ref = ref
        msg = f"{resource} not found."
        if ref:
            msg = f"{resource} not found: {ref}"
        super().__init__(msg)


class InvalidStateError(StorefrontError):
    """Raised when an operation's preconditions are not met."""

    kind = "InvalidState"
    status_code = 400


class ConflictError(StorefrontError):
    """Raised on duplicates and on lost concurrent updates."""

    kind = "Conflict"
    status_code = 409


class UnavailableError(StorefrontError):
    """Raised when the database cannot be reached."""

    kind = "Unavailable"
    status_code = 503

    def __init__(self, message: str = "Database unavailable. Please try again later."):
        super().__init__(message)
