"""Custom exceptions for the vetlabs engine."""


class ConfigurationError(Exception):
    """Raised when alias tables, reference data or environment settings are invalid."""

    pass
