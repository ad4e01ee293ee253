"""
Defines custom exceptions for the application to allow for more specific error handling.
"""


class PacksyncError(Exception):
    """Base exception for all application-specific errors."""


class ConfigError(PacksyncError):
    """Raised when a descriptor or setting is missing a required value or is unusable."""


class DecodeError(PacksyncError):
    """Raised when a fetched descriptor body cannot be decoded."""


class FetchError(PacksyncError):
    """Raised when a location could not be fetched after all attempts."""

    def __init__(self, message: str, location: str | None = None):
        super().__init__(message)
        self.location = location


class IntegrityError(PacksyncError):
    """Raised when a computed fingerprint does not match the declared one."""

    def __init__(self, subject: str, hash_format: str, expected: str, actual: str):
        super().__init__(
            f"Hash mismatch for '{subject}': expected {expected}, got {actual} "
            f"({hash_format})"
        )
        self.subject = subject
        self.hash_format = hash_format
        self.expected = expected
        self.actual = actual


class ExternalApiError(PacksyncError):
    """Raised when the external resolution API returns an unusable response."""

    def __init__(self, message: str, status: int | None = None, body: str = ""):
        super().__init__(message)
        self.status = status
        self.body = body
