"""
Enumeration types for the domain verification system.

These enums provide type-safe constants for verification methods, record
states, error codes, and configuration options throughout the system.
"""

from enum import Enum


class VerificationMethod(Enum):
    """Ownership challenge method chosen by the submitter."""

    META = "meta"
    FILE = "file"
    DNS = "dns"
    SKIP = "skip"


class OwnershipState(Enum):
    """Persisted state of an ownership record."""

    PENDING = "pending"
    VERIFIED = "verified"
    FAILED = "failed"
    SKIPPED = "skipped"


class UserRole(Enum):
    """Role the submitter claims for a website."""

    OWNER = "owner"
    CONTRIBUTOR = "contributor"


class OwnershipStatus(Enum):
    """Display label derived from an ownership record."""

    NOT_ATTEMPTED = "not_attempted"
    CONTRIBUTOR_SKIPPED = "contributor_skipped"
    VERIFIED = "verified"
    VERIFICATION_FAILED = "verification_failed"
    PENDING_VERIFICATION = "pending_verification"
    NOT_VERIFIED = "not_verified"


class OwnershipFilter(Enum):
    """Filters accepted when listing websites by ownership status."""

    VERIFIED = "verified"
    PENDING = "pending"
    FAILED = "failed"
    CONTRIBUTOR = "contributor"
    NOT_VERIFIED = "not_verified"


class DnsRecordType(Enum):
    """DNS record types tried when checking that a domain exists."""

    A = "A"
    AAAA = "AAAA"
    CNAME = "CNAME"


class LogLevel(Enum):
    """Logging severity levels."""

    DEBUG = "debug"
    INFO = "info"
    WARN = "warn"
    ERROR = "error"


class DomainValidationErrorCode(Enum):
    """Error codes for domain normalization failures."""

    EMPTY_INPUT = "empty_input"
    FORBIDDEN_CHARS = "forbidden_chars"
    IDNA_ERROR = "idna_error"
    INVALID_LABEL = "invalid_label"
    INVALID_TLD = "invalid_tld"
    TOO_FEW_LABELS = "too_few_labels"
    TOO_LONG = "too_long"


class ErrorCode(Enum):
    """Error taxonomy carried by verification result objects."""

    INVALID_DOMAIN_FORMAT = "invalid_domain_format"
    DNS_NOT_FOUND = "dns_not_found"
    HTTP_UNREACHABLE = "http_unreachable"
    CONNECTION_TIMEOUT = "connection_timeout"
    OWNERSHIP_INPUT_MISSING = "ownership_input_missing"
    OWNERSHIP_CHECK_FAILED = "ownership_check_failed"
    INVALID_METHOD = "invalid_method"
    TRANSPORT_ERROR = "transport_error"
