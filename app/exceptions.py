"""Error types raised by the identity services."""


class ConfigurationError(Exception):
    """Raised when the service is started with an unusable configuration."""


class IdentityError(Exception):
    """Base class for failures reported to API callers.

    Each subclass carries the HTTP status the router sends back with
    the ``{"message": ...}`` envelope.
    """

    status_code: int = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class InvalidInputError(IdentityError):
    status_code = 400


class InvalidCredentialsError(IdentityError):
    status_code = 401


class ForbiddenError(IdentityError):
    status_code = 403


class WrongProviderError(ForbiddenError):
    """The account is linked to an OAuth provider other than the one used."""

    def __init__(self, message: str, provider: str) -> None:
        super().__init__(message)
        self.provider = provider


class WrongMethodError(ForbiddenError):
    """The account signs in with a password, not an OAuth provider."""


class ConflictError(IdentityError):
    status_code = 409


class InternalError(IdentityError):
    status_code = 500


class StoreNotFound(Exception):
    """No user record exists with the given id."""


class StoreConflict(Exception):
    """A user record with the same email already exists."""
