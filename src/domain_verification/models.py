"""
Data models for the domain verification system.

This module defines the result structures produced by the DNS resolver,
reachability probe and domain verifier, the cache entry wrapper, and the
ownership challenge/result types. Every model serializes to the camelCase
wire form used by the HTTP API via ``to_dict()``.
"""

from dataclasses import dataclass, field
from typing import Optional

from .enums import ErrorCode, VerificationMethod


def _drop_none(data: dict) -> dict:
    return {key: value for key, value in data.items() if value is not None}


@dataclass
class DnsOutcome:
    """Outcome of the DNS existence check."""

    is_valid: bool
    error: Optional[str] = None
    records: Optional[dict[str, list[str]]] = None  # Only the first successful type
    error_code: Optional[ErrorCode] = None

    def to_dict(self) -> dict:
        return _drop_none({
            "isValid": self.is_valid,
            "error": self.error,
            "records": self.records,
        })


@dataclass
class HttpOutcome:
    """Outcome of the HTTP(S) reachability probe."""

    is_valid: bool
    error: Optional[str] = None
    status_code: Optional[int] = None
    headers: Optional[dict[str, Optional[str]]] = None  # server, contentType
    protocol: Optional[str] = None  # 'https' or 'http'
    error_code: Optional[ErrorCode] = None

    def to_dict(self) -> dict:
        return _drop_none({
            "isValid": self.is_valid,
            "error": self.error,
            "statusCode": self.status_code,
            "headers": self.headers,
            "protocol": self.protocol,
        })


@dataclass
class VerificationDetails:
    """Evidence gathered while verifying a domain."""

    domain: str
    dns: DnsOutcome
    http: Optional[HttpOutcome]
    verified_at: str

    def to_dict(self) -> dict:
        return {
            "domain": self.domain,
            "dns": self.dns.to_dict(),
            "http": self.http.to_dict() if self.http else None,
            "verifiedAt": self.verified_at,
        }


@dataclass
class VerificationResult:
    """Single verdict on whether a domain exists and is reachable."""

    is_valid: bool
    error: Optional[str] = None
    details: Optional[VerificationDetails] = None
    error_code: Optional[ErrorCode] = None
    failure_context: Optional[dict] = None  # Set only by the verifier's outer guard

    def to_dict(self) -> dict:
        data = {
            "isValid": self.is_valid,
            "error": self.error,
        }
        if self.details is not None:
            data["details"] = self.details.to_dict()
        elif self.failure_context is not None:
            data["details"] = dict(self.failure_context)
        return data

    @property
    def wire_details(self) -> Optional[dict]:
        """Details in wire form, or None when the result carries none."""
        return self.to_dict().get("details")


@dataclass
class CacheEntry:
    """A cached verification result and the clock reading it was stored at."""

    result: VerificationResult
    timestamp: float


@dataclass
class CacheStats:
    """Snapshot of the verification cache."""

    total_entries: int
    valid_entries: int
    expired_entries: int
    ttl: float  # Seconds
    max_entries: Optional[int] = None

    def to_dict(self) -> dict:
        return _drop_none({
            "totalEntries": self.total_entries,
            "validEntries": self.valid_entries,
            "expiredEntries": self.expired_entries,
            "cacheTimeout": int(self.ttl * 1000),
            "maxEntries": self.max_entries,
        })


@dataclass
class OwnershipChallenge:
    """A single-use code the submitter must publish to prove control."""

    code: str
    method: VerificationMethod
    issued_at: str

    def to_dict(self) -> dict:
        return {
            "code": self.code,
            "method": self.method.value,
            "issuedAt": self.issued_at,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "OwnershipChallenge":
        return cls(
            code=data["code"],
            method=VerificationMethod(data["method"]),
            issued_at=data["issuedAt"],
        )


@dataclass
class OwnershipPayload:
    """User-supplied inputs accompanying an ownership verification request."""

    meta_tag: Optional[str] = None
    dns_record: Optional[str] = None
    file_name: Optional[str] = None
    verification_code: Optional[str] = None


@dataclass
class OwnershipResult:
    """Verdict of an ownership challenge."""

    verified: bool
    message: str
    method: Optional[VerificationMethod] = None
    details: dict = field(default_factory=dict)
    verification_code: Optional[str] = None
    error_code: Optional[ErrorCode] = None

    def to_dict(self) -> dict:
        data = {
            "verified": self.verified,
            "message": self.message,
            "verificationCode": self.verification_code,
            "details": self.details,
            "method": self.method.value if self.method else None,
        }
        if self.error_code is not None:
            data["errorCode"] = self.error_code.value
        return data
