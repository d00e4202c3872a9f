"""
Per-website ownership verification record.

The record is created ``pending`` when a website is registered and changes
only through four mutators:

    pending --mark_verified--> verified
    pending --mark_failed----> failed --mark_failed--> failed
    pending --skip-----------> skipped
    any     --reset----------> pending

``attempt_count`` grows only on failure and is zeroed only by ``reset``.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

from .enums import (
    OwnershipFilter,
    OwnershipState,
    OwnershipStatus,
    UserRole,
    VerificationMethod,
)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class VerificationEvidence:
    """What was checked when ownership was proven."""

    meta_tag_content: Optional[str] = None
    file_name: Optional[str] = None
    dns_record: Optional[str] = None

    @classmethod
    def from_details(cls, details: Optional[dict]) -> "VerificationEvidence":
        """Build from an ownership result's camelCase ``details`` mapping."""
        details = details or {}
        return cls(
            meta_tag_content=details.get("metaTagContent"),
            file_name=details.get("fileName"),
            dns_record=details.get("dnsRecord"),
        )

    def to_dict(self) -> dict:
        return {
            "metaTagContent": self.meta_tag_content,
            "fileName": self.file_name,
            "dnsRecord": self.dns_record,
        }


@dataclass
class OwnershipRecord:
    """Ownership verification state attached 1:1 to a website."""

    is_verified: bool = False
    verified_at: Optional[str] = None
    verification_method: Optional[VerificationMethod] = None
    user_role: UserRole = UserRole.OWNER
    verification_code: Optional[str] = None
    verification_details: VerificationEvidence = field(default_factory=VerificationEvidence)
    last_attempted: Optional[str] = None
    attempt_count: int = 0
    status: OwnershipState = OwnershipState.PENDING
    failure_reason: Optional[str] = None

    def mark_verified(
        self,
        method: VerificationMethod,
        details: Optional[VerificationEvidence] = None,
    ) -> None:
        """Record a satisfied challenge."""
        self.is_verified = True
        self.verified_at = _now()
        self.verification_method = method
        self.status = OwnershipState.VERIFIED
        self.verification_details = details or VerificationEvidence()
        self.failure_reason = None

    def mark_failed(self, reason: str) -> None:
        """Record a failed attempt; counts towards ``attempt_count``."""
        self.is_verified = False
        self.status = OwnershipState.FAILED
        self.failure_reason = reason
        self.attempt_count += 1
        self.last_attempted = _now()

    def skip(self) -> None:
        """Accept the submitter as a contributor without proof of control."""
        self.user_role = UserRole.CONTRIBUTOR
        self.is_verified = True
        self.verified_at = _now()
        self.verification_method = VerificationMethod.SKIP
        self.status = OwnershipState.SKIPPED

    def reset(self) -> None:
        """Return to ``pending`` and forget previous attempts."""
        self.is_verified = False
        self.verified_at = None
        self.verification_method = None
        self.status = OwnershipState.PENDING
        self.failure_reason = None
        self.attempt_count = 0
        self.last_attempted = None

    @property
    def ownership_status(self) -> OwnershipStatus:
        return ownership_status(self)

    def matches_filter(self, status_filter: OwnershipFilter) -> bool:
        """Whether this record belongs to a status listing."""
        if status_filter is OwnershipFilter.VERIFIED:
            return self.is_verified
        if status_filter is OwnershipFilter.PENDING:
            return self.status is OwnershipState.PENDING
        if status_filter is OwnershipFilter.FAILED:
            return self.status is OwnershipState.FAILED
        if status_filter is OwnershipFilter.CONTRIBUTOR:
            return self.user_role is UserRole.CONTRIBUTOR
        return not self.is_verified

    def to_dict(self) -> dict:
        return {
            "isVerified": self.is_verified,
            "verifiedAt": self.verified_at,
            "verificationMethod": (
                self.verification_method.value if self.verification_method else None
            ),
            "userRole": self.user_role.value,
            "verificationCode": self.verification_code,
            "verificationDetails": self.verification_details.to_dict(),
            "lastAttempted": self.last_attempted,
            "attemptCount": self.attempt_count,
            "status": self.status.value,
            "failureReason": self.failure_reason,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "OwnershipRecord":
        method = data.get("verificationMethod")
        return cls(
            is_verified=bool(data.get("isVerified", False)),
            verified_at=data.get("verifiedAt"),
            verification_method=VerificationMethod(method) if method else None,
            user_role=UserRole(data.get("userRole", UserRole.OWNER.value)),
            verification_code=data.get("verificationCode"),
            verification_details=VerificationEvidence.from_details(
                data.get("verificationDetails")
            ),
            last_attempted=data.get("lastAttempted"),
            attempt_count=int(data.get("attemptCount", 0)),
            status=OwnershipState(data.get("status", OwnershipState.PENDING.value)),
            failure_reason=data.get("failureReason"),
        )


def ownership_status(record: Optional[OwnershipRecord]) -> OwnershipStatus:
    """
    Display label for a record.

    Precedence: no record, contributor, verified, failed, pending.
    """
    if record is None:
        return OwnershipStatus.NOT_ATTEMPTED
    if record.user_role is UserRole.CONTRIBUTOR:
        return OwnershipStatus.CONTRIBUTOR_SKIPPED
    if record.is_verified:
        return OwnershipStatus.VERIFIED
    if record.status is OwnershipState.FAILED:
        return OwnershipStatus.VERIFICATION_FAILED
    if record.status is OwnershipState.PENDING:
        return OwnershipStatus.PENDING_VERIFICATION
    return OwnershipStatus.NOT_VERIFIED
