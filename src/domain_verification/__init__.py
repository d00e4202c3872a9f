"""
Domain Verification - Domain existence, reachability and ownership checks.

This package decides whether a submitted website's domain is real and
reachable (DNS plus HTTP(S) probe, with a time-boxed cache), and whether the
submitter controls the website (meta tag, root file or DNS TXT challenge).
"""

__version__ = "0.1.0"
__author__ = "Domain Verification Team"

from domain_verification.exceptions import (
    DomainVerificationError,
    InvalidDomainFormatError,
    PersistenceError,
    TamperingError,
    ConfigurationError,
)
from domain_verification.enums import (
    VerificationMethod,
    OwnershipState,
    UserRole,
    OwnershipStatus,
    OwnershipFilter,
    DnsRecordType,
    LogLevel,
    DomainValidationErrorCode,
    ErrorCode,
)
from domain_verification.normalizer import (
    DomainNormalizer,
    DomainValidationResult,
    DomainValidationError,
    domain_from_url,
    ensure_scheme,
)
from domain_verification.models import (
    DnsOutcome,
    HttpOutcome,
    VerificationDetails,
    VerificationResult,
    CacheEntry,
    CacheStats,
    OwnershipChallenge,
    OwnershipPayload,
    OwnershipResult,
)
from domain_verification.config import (
    CacheConfig,
    ProbeConfig,
    DnsConfig,
    OwnershipConfig,
    PersistenceConfig,
    LoggingConfig,
    ServerConfig,
    VerifierConfig,
    create_default_config,
    load_config_from_file,
    load_config_from_env,
    save_config_to_file,
)
from domain_verification.audit_logger import (
    AuditLogger,
    LogEntry,
)
from domain_verification.verification_cache import (
    VerificationCache,
)
from domain_verification.dns_resolver import (
    DnsResolver,
    LookupAttempt,
)
from domain_verification.reachability_probe import (
    ReachabilityProbe,
)
from domain_verification.domain_verifier import (
    DomainVerifier,
)
from domain_verification.challenge import (
    ChallengeIssuer,
    challenge_instructions,
)
from domain_verification.ownership_verifier import (
    OwnershipVerifier,
)
from domain_verification.ownership_record import (
    OwnershipRecord,
    VerificationEvidence,
    ownership_status,
)
from domain_verification.ownership_store import (
    OwnershipStore,
    WebsiteEntry,
)
from domain_verification.ownership_service import (
    OwnershipService,
    RegistrationOutcome,
)
from domain_verification.api import (
    create_app,
)
from domain_verification.cli import (
    main as cli_main,
    create_parser,
)

__all__ = [
    # Exceptions
    "DomainVerificationError",
    "InvalidDomainFormatError",
    "PersistenceError",
    "TamperingError",
    "ConfigurationError",
    # Enums
    "VerificationMethod",
    "OwnershipState",
    "UserRole",
    "OwnershipStatus",
    "OwnershipFilter",
    "DnsRecordType",
    "LogLevel",
    "DomainValidationErrorCode",
    "ErrorCode",
    # Normalizer
    "DomainNormalizer",
    "DomainValidationResult",
    "DomainValidationError",
    "domain_from_url",
    "ensure_scheme",
    # Models
    "DnsOutcome",
    "HttpOutcome",
    "VerificationDetails",
    "VerificationResult",
    "CacheEntry",
    "CacheStats",
    "OwnershipChallenge",
    "OwnershipPayload",
    "OwnershipResult",
    # Configuration
    "CacheConfig",
    "ProbeConfig",
    "DnsConfig",
    "OwnershipConfig",
    "PersistenceConfig",
    "LoggingConfig",
    "ServerConfig",
    "VerifierConfig",
    "create_default_config",
    "load_config_from_file",
    "load_config_from_env",
    "save_config_to_file",
    # Audit Logger
    "AuditLogger",
    "LogEntry",
    # Domain verification
    "VerificationCache",
    "DnsResolver",
    "LookupAttempt",
    "ReachabilityProbe",
    "DomainVerifier",
    # Ownership
    "ChallengeIssuer",
    "challenge_instructions",
    "OwnershipVerifier",
    "OwnershipRecord",
    "VerificationEvidence",
    "ownership_status",
    "OwnershipStore",
    "WebsiteEntry",
    "OwnershipService",
    "RegistrationOutcome",
    # HTTP API
    "create_app",
    # CLI
    "cli_main",
    "create_parser",
]
