"""
DNS existence check for domain verification.

Resolves a normalized domain through an ordered chain of record types
(A, then AAAA, then CNAME). The first lookup that returns a non-empty answer
wins; a resolution failure or an empty answer moves on to the next type.
"""

from dataclasses import dataclass
from typing import Any, Iterable, Optional, Protocol

import dns.asyncresolver
import dns.exception

from .audit_logger import AuditLogger
from .enums import DnsRecordType, ErrorCode, LogLevel
from .models import DnsOutcome


DEFAULT_RECORD_CHAIN = (
    DnsRecordType.A,
    DnsRecordType.AAAA,
    DnsRecordType.CNAME,
)


class AsyncResolver(Protocol):
    """Anything with dnspython's ``Resolver.resolve`` coroutine signature."""

    async def resolve(self, qname: str, rdtype: str) -> Iterable[Any]:
        ...


@dataclass
class LookupAttempt:
    """Tagged result of a single record-type lookup."""

    record_type: DnsRecordType
    records: list[str]
    error: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return bool(self.records)


class DnsResolver:
    """
    Async DNS resolver with record-type fallback.

    Only the first successful record type's data is reported; this is a
    "first success wins" strategy, not an aggregation.
    """

    def __init__(
        self,
        resolver: Optional[AsyncResolver] = None,
        record_chain: Iterable[DnsRecordType] = DEFAULT_RECORD_CHAIN,
        lifetime: Optional[float] = None,
        nameservers: Optional[list[str]] = None,
        logger: Optional[AuditLogger] = None,
    ) -> None:
        """
        Initialize the resolver.

        Args:
            resolver: Resolver to query; a dnspython async resolver is created
                      lazily when omitted
            record_chain: Record types to try, in order
            lifetime: Total time budget per lookup in seconds (resolver default if None)
            nameservers: Explicit nameserver IPs instead of the system configuration
            logger: Optional audit logger
        """
        self._resolver = resolver
        self._record_chain = tuple(record_chain)
        self._lifetime = lifetime
        self._nameservers = list(nameservers or [])
        self._logger = logger

        if not self._record_chain:
            raise ValueError("record_chain must contain at least one record type")

    @property
    def record_chain(self) -> tuple[DnsRecordType, ...]:
        return self._record_chain

    async def resolve(self, domain: str) -> DnsOutcome:
        """
        Check that a domain has address or alias records.

        Args:
            domain: Normalized domain

        Returns:
            DnsOutcome with the first successful record type's data, or an error
        """
        for record_type in self._record_chain:
            attempt = await self.lookup(domain, record_type)
            if attempt.succeeded:
                return DnsOutcome(
                    is_valid=True,
                    records={record_type.value: attempt.records},
                )

            if self._logger:
                self._logger.log(
                    LogLevel.DEBUG,
                    "DnsResolver",
                    f"No {record_type.value} records for {domain}",
                    {"domain": domain, "error": attempt.error},
                )

        return DnsOutcome(
            is_valid=False,
            error=f"Domain {domain} does not exist (no DNS records found)",
            error_code=ErrorCode.DNS_NOT_FOUND,
        )

    async def lookup(self, domain: str, record_type: DnsRecordType) -> LookupAttempt:
        """
        Resolve one record type.

        Resolution errors (NXDOMAIN, no answer, no nameservers, timeout) are
        returned as an empty attempt rather than raised.
        """
        try:
            answer = await self._get_resolver().resolve(domain, record_type.value)
        except dns.exception.DNSException as e:
            return LookupAttempt(record_type=record_type, records=[], error=f"{type(e).__name__}: {e}")

        records = [self._format_rdata(record_type, rdata) for rdata in answer]
        return LookupAttempt(record_type=record_type, records=[r for r in records if r])

    def _get_resolver(self) -> AsyncResolver:
        if self._resolver is None:
            resolver = dns.asyncresolver.Resolver(configure=not self._nameservers)
            if self._nameservers:
                resolver.nameservers = self._nameservers
            if self._lifetime is not None:
                resolver.lifetime = self._lifetime
            self._resolver = resolver
        return self._resolver

    @staticmethod
    def _format_rdata(record_type: DnsRecordType, rdata: Any) -> str:
        text = rdata.to_text() if hasattr(rdata, "to_text") else str(rdata)
        if record_type is DnsRecordType.CNAME:
            # Alias targets are reported without the root dot
            text = text.rstrip(".")
        return text
