"""
Ownership Service for the domain verification system.

This module provides the orchestration layer for website registration and
ownership proof. It integrates:
- The domain gate (existence and reachability) run before registration
- Challenge issuance and persistence per (website, method)
- Ownership checks through the OwnershipVerifier
- Record state transitions and persistence through the OwnershipStore
"""

from dataclasses import dataclass
from typing import Optional, Union

from .audit_logger import AuditLogger
from .challenge import CHALLENGE_METHODS, ChallengeIssuer, challenge_instructions
from .config import VerifierConfig
from .dns_resolver import DnsResolver
from .domain_verifier import DomainVerifier
from .enums import ErrorCode, LogLevel, OwnershipFilter, VerificationMethod
from .exceptions import PersistenceError
from .models import OwnershipChallenge, OwnershipPayload, OwnershipResult, VerificationResult
from .normalizer import domain_from_url
from .ownership_record import OwnershipRecord, VerificationEvidence
from .ownership_store import OwnershipStore, WebsiteEntry
from .ownership_verifier import OwnershipVerifier, coerce_method
from .reachability_probe import ReachabilityProbe
from .verification_cache import VerificationCache


# Results that leave the record untouched
NO_STATE_CHANGE = frozenset({
    ErrorCode.INVALID_METHOD,
    ErrorCode.OWNERSHIP_INPUT_MISSING,
})


@dataclass
class RegistrationOutcome:
    """Result of registering a website behind the domain gate."""

    verification: VerificationResult
    entry: Optional[WebsiteEntry] = None

    @property
    def registered(self) -> bool:
        return self.entry is not None


def create_logger(config: VerifierConfig) -> AuditLogger:
    return AuditLogger(
        output_format=config.logging.output_format,
        min_level=LogLevel(config.logging.level),
    )


def create_domain_verifier(
    config: VerifierConfig,
    logger: Optional[AuditLogger] = None,
) -> DomainVerifier:
    """Build a DomainVerifier wired from configuration."""
    return DomainVerifier(
        cache=VerificationCache(
            ttl=config.cache.ttl_seconds,
            max_entries=config.cache.max_entries,
        ),
        resolver=DnsResolver(
            lifetime=config.dns.lifetime_seconds,
            nameservers=config.dns.nameservers,
            logger=logger,
        ),
        probe=ReachabilityProbe(
            timeout=config.probe.timeout_seconds,
            user_agent=config.probe.user_agent,
            logger=logger,
        ),
        logger=logger,
    )


def create_ownership_verifier(
    config: VerifierConfig,
    logger: Optional[AuditLogger] = None,
) -> OwnershipVerifier:
    """Build an OwnershipVerifier wired from configuration."""
    return OwnershipVerifier(
        doh_endpoint=config.ownership.doh_endpoint,
        timeout=config.ownership.timeout_seconds,
        meta_tag_name=config.ownership.meta_tag_name,
        file_name=config.ownership.file_name,
        txt_prefix=config.ownership.txt_prefix,
        logger=logger,
    )


class OwnershipService:
    """
    Coordinates registration, challenges and ownership checks for websites.

    Every state-changing operation saves the store before returning.
    """

    async def __aenter__(self) -> "OwnershipService":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    def __init__(
        self,
        store: OwnershipStore,
        verifier: Optional[OwnershipVerifier] = None,
        domain_verifier: Optional[DomainVerifier] = None,
        issuer: Optional[ChallengeIssuer] = None,
        logger: Optional[AuditLogger] = None,
    ) -> None:
        """
        Initialize the ownership service.

        Args:
            store: Loaded ownership store
            verifier: Ownership challenge verifier
            domain_verifier: Domain gate run before registration; None skips the gate
            issuer: Challenge code issuer
            logger: Optional audit logger
        """
        self._store = store
        self._verifier = verifier or OwnershipVerifier(logger=logger)
        self._domain_verifier = domain_verifier
        self._issuer = issuer or ChallengeIssuer()
        self._logger = logger

    @classmethod
    def from_config(
        cls,
        config: VerifierConfig,
        store: Optional[OwnershipStore] = None,
        domain_verifier: Optional[DomainVerifier] = None,
        logger: Optional[AuditLogger] = None,
    ) -> "OwnershipService":
        """
        Build a service from configuration, loading the state file.

        Raises:
            PersistenceError: If the state file cannot be read
            TamperingError: If the state file fails HMAC validation
        """
        if store is None:
            store = OwnershipStore(
                file_path=config.persistence.state_file_path,
                hmac_secret=config.persistence.hmac_secret,
            )
            store.load()

        return cls(
            store=store,
            verifier=create_ownership_verifier(config, logger),
            domain_verifier=domain_verifier or create_domain_verifier(config, logger),
            logger=logger,
        )

    @property
    def store(self) -> OwnershipStore:
        return self._store

    @property
    def verifier(self) -> OwnershipVerifier:
        return self._verifier

    @property
    def domain_verifier(self) -> Optional[DomainVerifier]:
        return self._domain_verifier

    async def register_website(self, website_id: str, url: str) -> RegistrationOutcome:
        """
        Register a website once its domain passes the existence gate.

        Args:
            website_id: Caller-chosen identifier
            url: Website URL as submitted

        Returns:
            RegistrationOutcome; ``entry`` is None when the gate rejected the domain

        Raises:
            PersistenceError: If the id is already registered or saving fails
        """
        if self._store.get_website(website_id) is not None:
            raise PersistenceError(
                code="duplicate_website",
                message=f"Website already registered: {website_id}",
                details={"website_id": website_id},
            )

        if self._domain_verifier is not None:
            verification = await self._domain_verifier.verify(url)
        else:
            verification = VerificationResult(is_valid=True)

        if not verification.is_valid:
            self._log_info(
                f"Registration of {website_id} rejected: {verification.error}",
                {"website_id": website_id, "url": url},
            )
            return RegistrationOutcome(verification=verification)

        entry = self._store.register_website(website_id, url)
        self._store.save()
        self._log_info(
            f"Registered website {website_id} ({entry.domain})",
            {"website_id": website_id, "domain": entry.domain},
        )
        return RegistrationOutcome(verification=verification, entry=entry)

    def issue_challenge(
        self,
        website_id: str,
        method: Union[str, VerificationMethod],
    ) -> OwnershipChallenge:
        """
        Issue and persist a challenge, replacing any earlier one for the method.

        Raises:
            ValueError: If the method is unknown or does not use a challenge
            PersistenceError: If the website is not registered
        """
        resolved = coerce_method(method)
        if resolved is None or resolved not in CHALLENGE_METHODS:
            raise ValueError(f"Method does not use a challenge: {method}")

        self._require(website_id)
        challenge = self._issuer.issue(resolved)
        self._store.put_challenge(website_id, challenge)
        self._store.save()
        self._log_info(
            f"Issued {resolved.value} challenge for {website_id}",
            {"website_id": website_id, "method": resolved.value},
        )
        return challenge

    def instructions_for(self, challenge: OwnershipChallenge) -> dict:
        return challenge_instructions(
            challenge,
            meta_tag_name=self._verifier.meta_tag_name,
            file_name=self._verifier.file_name,
            txt_prefix=self._verifier.txt_prefix,
        )

    async def verify_ownership(
        self,
        method: Union[str, VerificationMethod],
        url: Optional[str],
        payload: Optional[OwnershipPayload] = None,
        website_id: Optional[str] = None,
    ) -> OwnershipResult:
        """
        Run an ownership check and, for a registered website, apply its outcome.

        For a registered website the check always runs against its stored URL;
        a ``url`` given alongside ``website_id`` must belong to the same domain.
        The expected code is the persisted challenge for (website, method)
        when there is one; otherwise the payload value supplied for the method.

        Raises:
            PersistenceError: If ``website_id`` is given but not registered
            ValueError: If ``url`` names a different domain than the website
        """
        payload = payload or OwnershipPayload()
        entry = self._require(website_id) if website_id else None
        if entry is not None:
            if url and domain_from_url(url) != entry.domain:
                raise ValueError(
                    f"URL {url} does not belong to website {website_id} ({entry.domain})"
                )
            url = entry.url

        resolved = coerce_method(method)
        code = self._expected_code(resolved, payload, website_id)
        result = await self._verifier.verify(
            resolved if resolved is not None else method,
            url or "",
            code,
            payload,
        )

        if entry is not None and result.error_code not in NO_STATE_CHANGE:
            self._apply(entry, resolved, result)
            self._store.save()
        return result

    def _expected_code(
        self,
        method: Optional[VerificationMethod],
        payload: OwnershipPayload,
        website_id: Optional[str],
    ) -> Optional[str]:
        if method is None or method is VerificationMethod.SKIP:
            return None
        if website_id:
            challenge = self._store.get_challenge(website_id, method)
            if challenge is not None:
                return challenge.code
        if method is VerificationMethod.META:
            return payload.meta_tag
        if method is VerificationMethod.DNS:
            return payload.dns_record
        return payload.verification_code

    def _apply(
        self,
        entry: WebsiteEntry,
        method: VerificationMethod,
        result: OwnershipResult,
    ) -> None:
        record = entry.ownership
        if result.verified and method is VerificationMethod.SKIP:
            record.skip()
        elif result.verified:
            record.mark_verified(method, VerificationEvidence.from_details(result.details))
            self._store.pop_challenge(entry.website_id, method)
        else:
            record.mark_failed(result.message)

        self._log_info(
            f"Ownership of {entry.website_id} is now {record.status.value}",
            {
                "website_id": entry.website_id,
                "method": method.value,
                "status": record.status.value,
                "attempt_count": record.attempt_count,
            },
        )

    def get_status(self, website_id: str) -> dict:
        """
        Ownership summary for one website.

        Raises:
            PersistenceError: If the website is not registered
        """
        entry = self._require(website_id)
        return website_summary(entry)

    def reset(self, website_id: str) -> OwnershipRecord:
        """Return a website's record to ``pending``."""
        entry = self._require(website_id)
        entry.ownership.reset()
        self._store.save()
        self._log_info(f"Ownership of {website_id} reset", {"website_id": website_id})
        return entry.ownership

    def list_websites(self, status_filter: OwnershipFilter) -> list[WebsiteEntry]:
        return self._store.find_by_ownership_status(status_filter)

    def remove_website(self, website_id: str) -> bool:
        removed = self._store.remove_website(website_id)
        if removed:
            self._store.save()
        return removed

    def _require(self, website_id: str) -> WebsiteEntry:
        entry = self._store.get_website(website_id)
        if entry is None:
            raise PersistenceError(
                code="unknown_website",
                message=f"Website not registered: {website_id}",
                details={"website_id": website_id},
            )
        return entry

    def _log_info(self, message: str, data: dict) -> None:
        if self._logger:
            self._logger.log(LogLevel.INFO, "OwnershipService", message, data)

    async def close(self) -> None:
        """Release HTTP clients held by the verifiers."""
        await self._verifier.close()
        if self._domain_verifier is not None:
            await self._domain_verifier.close()


def website_summary(entry: WebsiteEntry) -> dict:
    return {
        "websiteId": entry.website_id,
        "url": entry.url,
        "domain": entry.domain,
        "ownershipStatus": entry.ownership.ownership_status.value,
        "ownershipVerification": entry.ownership.to_dict(),
    }
