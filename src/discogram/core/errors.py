class DiscogramError(Exception):
    """Base exception for the application."""


class StoreError(DiscogramError):
    """Raised when the subscription store cannot read or write its backing database."""


class TransportError(DiscogramError):
    """Raised when a platform connection cannot be established."""


class ConfigurationError(DiscogramError):
    """Raised when there are configuration validation issues."""
