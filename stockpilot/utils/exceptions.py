"""Custom exception classes for the application."""


class BaseAppException(Exception):
    """Base exception class for all application exceptions."""

    def __init__(self, message: str, details: dict = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class StockPilotAPIError(BaseAppException):
    """Raised when the StockPilot API answers with an error."""

    def __init__(self, message: str, details: dict = None, status_code: int = None):
        super().__init__(message, details)
        self.status_code = status_code


class NotFoundError(StockPilotAPIError):
    """Raised when the requested entity does not exist (HTTP 404)."""
    pass


class ConflictError(StockPilotAPIError):
    """Raised when the backend rejects a duplicate or colliding write (HTTP 409)."""
    pass


class AuthenticationError(StockPilotAPIError):
    """Raised when authentication fails."""
    pass


class RateLimitError(StockPilotAPIError):
    """Raised when API rate limit is exceeded."""
    pass


class NetworkError(BaseAppException):
    """Raised when a request fails before any response is obtained."""
    pass


class ConfigurationError(BaseAppException):
    """Raised when there's a configuration error."""
    pass


class NoActiveStoreError(ConfigurationError):
    """Raised when a store-scoped operation runs without an active store."""
    pass


class PolicyViolationError(BaseAppException):
    """Raised when a return line breaks the store's return policy."""
    pass


class FormValidationError(BaseAppException):
    """Raised when a form that is sent straight to the API fails validation."""

    def __init__(self, message: str, errors=None, details: dict = None):
        super().__init__(message, details)
        self.errors = errors

    def messages(self) -> list:
        return self.errors.messages() if self.errors is not None else [self.message]
