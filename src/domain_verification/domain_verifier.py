"""
Domain Verifier for the domain verification system.

This module provides the facade that decides whether a submitted domain is
real and reachable. It coordinates:
- Domain normalization
- The time-boxed verification cache
- DNS existence check with record-type fallback
- HTTP(S) reachability probe

Concurrent callers asking about the same uncached domain share a single
in-flight lookup. There are no internal retries: a transient failure is
reported once and cached like any other result.
"""

import asyncio
from datetime import datetime, timezone
from typing import Optional

from .audit_logger import AuditLogger
from .dns_resolver import DnsResolver
from .enums import ErrorCode, LogLevel
from .models import CacheStats, VerificationDetails, VerificationResult
from .normalizer import DomainNormalizer
from .reachability_probe import ReachabilityProbe
from .verification_cache import VerificationCache


INVALID_FORMAT_MESSAGE = "Invalid domain format"
GENERIC_FAILURE_MESSAGE = "Domain verification failed"


class DomainVerifier:
    """
    Existence and reachability gate for website registration.

    Flow per call: normalize, serve a fresh cached result if there is one,
    otherwise resolve DNS, probe HTTP(S) only when DNS succeeded, and cache
    the combined verdict.
    """

    def __init__(
        self,
        cache: Optional[VerificationCache] = None,
        resolver: Optional[DnsResolver] = None,
        probe: Optional[ReachabilityProbe] = None,
        normalizer: Optional[DomainNormalizer] = None,
        logger: Optional[AuditLogger] = None,
    ) -> None:
        """
        Initialize the verifier.

        Args:
            cache: Verification cache shared by all calls on this verifier
            resolver: DNS resolver
            probe: HTTP(S) reachability probe
            normalizer: Domain normalizer
            logger: Optional audit logger
        """
        self._cache = cache or VerificationCache()
        self._resolver = resolver or DnsResolver(logger=logger)
        self._probe = probe or ReachabilityProbe(logger=logger)
        self._normalizer = normalizer or DomainNormalizer()
        self._logger = logger
        self._in_flight: dict[str, asyncio.Task] = {}

    async def __aenter__(self) -> "DomainVerifier":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def verify(self, candidate: str) -> VerificationResult:
        """
        Decide whether a domain exists and is reachable.

        Args:
            candidate: Raw domain or URL as submitted

        Returns:
            VerificationResult; never raises
        """
        try:
            domain = self._normalizer.try_normalize(candidate)
            if domain is None:
                self._log_info(
                    f"Rejected malformed domain: {candidate!r}",
                    {"candidate": candidate},
                )
                return VerificationResult(
                    is_valid=False,
                    error=INVALID_FORMAT_MESSAGE,
                    error_code=ErrorCode.INVALID_DOMAIN_FORMAT,
                )

            entry = self._cache.get(domain)
            if entry is not None:
                self._log_debug(f"Cache hit for {domain}", {"domain": domain})
                return entry.result

            task = self._in_flight.get(domain)
            if task is None:
                task = asyncio.ensure_future(self._verify_uncached(domain))
                self._in_flight[domain] = task
                task.add_done_callback(lambda done, key=domain: self._forget(key, done))
            else:
                self._log_debug(f"Joining in-flight verification for {domain}", {"domain": domain})

            # One caller being cancelled must not cancel the shared lookup
            return await asyncio.shield(task)

        except Exception as e:
            if self._logger:
                self._logger.log_error(
                    "DomainVerifier",
                    "Domain verification error",
                    error=e,
                    additional_data={"candidate": candidate},
                )
            return VerificationResult(
                is_valid=False,
                error=GENERIC_FAILURE_MESSAGE,
                error_code=ErrorCode.TRANSPORT_ERROR,
                failure_context={"error": str(e)},
            )

    async def _verify_uncached(self, domain: str) -> VerificationResult:
        self._log_info(f"Verifying domain: {domain}", {"domain": domain})

        dns_outcome = await self._resolver.resolve(domain)

        http_outcome = None
        if dns_outcome.is_valid:
            http_outcome = await self._probe.probe(domain)

        is_valid = dns_outcome.is_valid and (http_outcome.is_valid if http_outcome else True)
        error = dns_outcome.error or (http_outcome.error if http_outcome else None)
        error_code = dns_outcome.error_code or (http_outcome.error_code if http_outcome else None)

        result = VerificationResult(
            is_valid=is_valid,
            error=error,
            error_code=error_code,
            details=VerificationDetails(
                domain=domain,
                dns=dns_outcome,
                http=http_outcome,
                verified_at=datetime.now(timezone.utc).isoformat(),
            ),
        )

        self._cache.set(domain, result)

        self._log_info(
            f"Verification completed for {domain}: {'valid' if is_valid else 'invalid'}",
            {"domain": domain, "is_valid": is_valid, "error": error},
        )
        return result

    def _forget(self, domain: str, task: asyncio.Task) -> None:
        if self._in_flight.get(domain) is task:
            del self._in_flight[domain]

    def get_cache_stats(self) -> CacheStats:
        """Classify cached entries as valid or expired without evicting any."""
        return self._cache.stats()

    def clear_cache(self, domain: Optional[str] = None) -> None:
        """
        Clear one domain's cached result, or the whole cache.

        Args:
            domain: Raw or normalized domain; None clears everything
        """
        if domain:
            self._cache.delete(self._normalizer.try_normalize(domain) or domain)
        else:
            self._cache.clear()

    @property
    def cache(self) -> VerificationCache:
        return self._cache

    @property
    def normalizer(self) -> DomainNormalizer:
        return self._normalizer

    @property
    def in_flight_count(self) -> int:
        """Number of distinct domains currently being looked up."""
        return len(self._in_flight)

    def _log_info(self, message: str, data: dict) -> None:
        if self._logger:
            self._logger.log(LogLevel.INFO, "DomainVerifier", message, data)

    def _log_debug(self, message: str, data: dict) -> None:
        if self._logger:
            self._logger.log(LogLevel.DEBUG, "DomainVerifier", message, data)

    async def close(self) -> None:
        """Release the probe's HTTP client."""
        await self._probe.close()
