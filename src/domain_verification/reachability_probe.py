"""
HTTP(S) reachability probe for domain verification.

Issues a HEAD request over HTTPS and, if the connection fails, over plain
HTTP. Any received response counts as reachable, whatever its status code:
the probe answers "does the host accept connections and respond", not
"does it serve valid content".
"""

import asyncio
from typing import Optional

import httpx

from .audit_logger import AuditLogger
from .enums import ErrorCode, LogLevel
from .models import HttpOutcome


DEFAULT_TIMEOUT_SECONDS = 10.0
DEFAULT_USER_AGENT = "AlpusLinks-Domain-Verifier/1.0"


class ProbeTimeout(Exception):
    """A probe leg exceeded its time budget."""


class ReachabilityProbe:
    """
    Async HEAD prober with HTTPS to HTTP fallback.

    Each leg has its own timeout. A timeout on either leg ends the probe with
    a timeout result; only a connection error on HTTPS triggers the HTTP leg.
    """

    def __init__(
        self,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        user_agent: str = DEFAULT_USER_AGENT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        logger: Optional[AuditLogger] = None,
    ) -> None:
        """
        Initialize the probe.

        Args:
            timeout: Per-leg timeout in seconds
            user_agent: User-Agent header sent with each request
            transport: Optional httpx transport (used by tests to fake the network)
            logger: Optional audit logger
        """
        self._timeout = timeout
        self._user_agent = user_agent
        self._transport = transport
        self._logger = logger
        self._client: Optional[httpx.AsyncClient] = None

    async def __aenter__(self) -> "ReachabilityProbe":
        self._ensure_client()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    @property
    def timeout(self) -> float:
        return self._timeout

    async def probe(self, domain: str) -> HttpOutcome:
        """
        Check that a domain answers HTTP(S).

        Args:
            domain: Normalized domain

        Returns:
            HttpOutcome describing the first leg that produced a response
        """
        try:
            try:
                response = await self._head(f"https://{domain}/")
                return HttpOutcome(
                    is_valid=True,
                    status_code=response.status_code,
                    headers={
                        "server": response.headers.get("server"),
                        "contentType": response.headers.get("content-type"),
                    },
                    protocol="https",
                )
            except httpx.TransportError as e:
                self._log_debug(f"HTTPS probe failed for {domain}, trying HTTP", {
                    "domain": domain,
                    "error_type": type(e).__name__,
                    "error_message": str(e),
                })

            try:
                response = await self._head(f"http://{domain}/")
                return HttpOutcome(
                    is_valid=True,
                    status_code=response.status_code,
                    protocol="http",
                )
            except httpx.TransportError:
                return self.unreachable(domain)

        except ProbeTimeout:
            return self.timed_out(domain)
        except Exception as e:
            if self._logger:
                self._logger.log_error("ReachabilityProbe", "Unexpected probe failure", error=e)
            return HttpOutcome(
                is_valid=False,
                error=f"HTTP check failed: {e}",
                error_code=ErrorCode.TRANSPORT_ERROR,
            )

    @staticmethod
    def unreachable(domain: str) -> HttpOutcome:
        return HttpOutcome(
            is_valid=False,
            error=f"Domain {domain} is not reachable via HTTP/HTTPS",
            error_code=ErrorCode.HTTP_UNREACHABLE,
        )

    @staticmethod
    def timed_out(domain: str) -> HttpOutcome:
        return HttpOutcome(
            is_valid=False,
            error=f"Domain {domain} connection timeout",
            error_code=ErrorCode.CONNECTION_TIMEOUT,
        )

    async def _head(self, url: str) -> httpx.Response:
        """
        Send one HEAD request bounded by the leg timeout.

        Cancelling the request on expiry closes the underlying connection.

        Raises:
            ProbeTimeout: If the leg exceeded its timeout
            httpx.TransportError: On connection-level failures
        """
        client = self._ensure_client()
        try:
            return await asyncio.wait_for(
                client.head(url, headers={"User-Agent": self._user_agent}),
                timeout=self._timeout,
            )
        except (asyncio.TimeoutError, httpx.TimeoutException) as e:
            raise ProbeTimeout(url) from e

    def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                verify=True,
                timeout=httpx.Timeout(self._timeout),
                follow_redirects=False,
                transport=self._transport,
            )
        return self._client

    def _log_debug(self, message: str, data: dict) -> None:
        if self._logger:
            self._logger.log(LogLevel.DEBUG, "ReachabilityProbe", message, data)

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None
