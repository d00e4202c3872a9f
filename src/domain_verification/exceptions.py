"""
Exception classes for the domain verification system.

All exceptions inherit from DomainVerificationError and provide structured
error information with codes, messages, and optional details. Verification
components convert these into result objects at their boundary; persistence
and configuration errors propagate to the CLI and HTTP layers.
"""

from typing import Optional


class DomainVerificationError(Exception):
    """Base exception for all domain verification errors."""

    def __init__(
        self,
        code: str,
        message: str,
        details: Optional[dict] = None,
    ) -> None:
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(code={self.code!r}, message={self.message!r})"

    def to_dict(self) -> dict:
        """Convert exception to dictionary for serialization."""
        return {
            "error_type": self.__class__.__name__,
            "code": self.code,
            "message": self.message,
            "details": self.details,
        }


class InvalidDomainFormatError(DomainVerificationError):
    """Raised when a domain candidate cannot be normalized."""

    pass


class PersistenceError(DomainVerificationError):
    """Raised when persistence operations fail (file I/O, HMAC validation)."""

    pass


class TamperingError(PersistenceError):
    """Raised when HMAC validation fails, indicating data tampering."""

    pass


class ConfigurationError(DomainVerificationError):
    """Raised when configuration values are missing or malformed."""

    pass
