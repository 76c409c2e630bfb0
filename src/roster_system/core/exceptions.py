class DomainError(Exception):
    """Base exception for business rule violations.

    Every subclass carries a stable machine-readable ``code`` and the HTTP
    status the controller layer answers with.
    """

    code = "INTERNAL_SERVER_ERROR"
    status_code = 500

    def __init__(self, message: str = ""):
        super().__init__(message or self.code)
        self.message = str(self)


class ValidationError(DomainError):
    """Raised when input data is invalid or violates domain rules."""

    code = "VALIDATION_ERROR"
    status_code = 400


class AuthenticationError(DomainError):
    """Raised when there is no verified caller or credentials are invalid."""

    code = "UNAUTHENTICATED"
    status_code = 401


class AuthorizationError(DomainError):
    """Raised when a user lacks permission for an action."""

    code = "FORBIDDEN"
    status_code = 403


class NotFoundError(DomainError):
    """Raised when the requested record does not exist."""

    code = "NOT_FOUND"
    status_code = 404


class DuplicateKeyError(DomainError):
    """Raised when a unique value (email, code) is already taken."""

    code = "DUPLICATE_KEY"
    status_code = 409


class StoreUnavailableError(DomainError):
    """Raised when the record store cannot be reached."""

    code = "STORE_UNAVAILABLE"
    status_code = 503


class StoreError(DomainError):
    """Raised for record store failures with no closer taxonomy kind."""

    code = "INTERNAL_SERVER_ERROR"
    status_code = 500


class CacheDegradedError(DomainError):
    """Cache is unreachable. Absorbed by the cache layer, never surfaced."""

    code = "CACHE_DEGRADED"
    status_code = 500
