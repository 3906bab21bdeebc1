"""Errors raised at the catalog, store and CLI boundaries.

The recommendation core itself never raises for well-formed input.
"""


class ConnectInError(Exception):
    """Base class for application errors."""


class ConfigurationError(ConnectInError):
    """A required setting (e.g. the TMDb API key) is missing."""


class CatalogError(ConnectInError):
    """The movie catalog could not be queried."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class UserNotFoundError(ConnectInError):
    """No stored profile matches the requested user."""


class NotLoggedInError(UserNotFoundError):
    """An operation needed a current user but none was given."""
