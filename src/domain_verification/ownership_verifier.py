"""
Ownership challenge verification.

Checks that a submitter has published a challenge code where only the
website's controller could put it:

- meta: ``<meta name="alpus-verification" content="<code>">`` in the page HTML
- file: ``<url>/alpus-verification.txt`` whose trimmed body equals the code
- dns:  a TXT record containing ``alpus-verification=<code>``, looked up
        through a DNS-over-HTTPS JSON endpoint
- skip: no proof at all; accepted for users who declare themselves contributors

Every network branch converts transport failures into an unverified result.
"""

import re
from typing import Awaitable, Callable, Optional, Union
from urllib.parse import urlsplit

import httpx

from .audit_logger import AuditLogger
from .challenge import META_TAG_NAME, TXT_RECORD_PREFIX, VERIFICATION_FILE_NAME
from .enums import ErrorCode, LogLevel, VerificationMethod
from .models import OwnershipPayload, OwnershipResult
from .normalizer import ensure_scheme


DEFAULT_DOH_ENDPOINT = "https://dns.google/resolve"
DEFAULT_TIMEOUT_SECONDS = 10.0
DEFAULT_USER_AGENT = "AlpusLinks-Ownership-Verifier/1.0"

TXT_RECORD_TYPE = 16

SKIP_MESSAGE = "Ownership verification skipped for contributor"
INVALID_METHOD_MESSAGE = "Invalid verification method"
TRANSPORT_FAILURE_MESSAGE = (
    "Failed to verify ownership. Please check your website is accessible and try again."
)

# Payload field each method requires, with the message used when it is absent
REQUIRED_INPUTS: dict[VerificationMethod, tuple[Optional[str], str]] = {
    VerificationMethod.META: ("meta_tag", "Meta tag content is required"),
    VerificationMethod.FILE: ("file_name", "Verification file is required"),
    VerificationMethod.DNS: ("dns_record", "DNS record is required"),
    VerificationMethod.SKIP: (None, ""),
}

Strategy = Callable[[str, str, OwnershipPayload], Awaitable[OwnershipResult]]


def coerce_method(method: Union[str, VerificationMethod, None]) -> Optional[VerificationMethod]:
    """Map a method name onto the enum; None for unknown names."""
    if isinstance(method, VerificationMethod):
        return method
    if not isinstance(method, str):
        return None
    try:
        return VerificationMethod(method.strip().lower())
    except ValueError:
        return None


class OwnershipVerifier:
    """
    Dispatches an ownership check to the strategy for its method.

    The dispatch table covers every VerificationMethod member; constructing
    a verifier with a missing strategy fails immediately.
    """

    def __init__(
        self,
        doh_endpoint: str = DEFAULT_DOH_ENDPOINT,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        user_agent: str = DEFAULT_USER_AGENT,
        meta_tag_name: str = META_TAG_NAME,
        file_name: str = VERIFICATION_FILE_NAME,
        txt_prefix: str = TXT_RECORD_PREFIX,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        logger: Optional[AuditLogger] = None,
    ) -> None:
        """
        Initialize the verifier.

        Args:
            doh_endpoint: DNS-over-HTTPS JSON resolver URL
            timeout: Request timeout in seconds
            user_agent: User-Agent header for outbound requests
            meta_tag_name: ``name`` attribute of the verification meta tag
            file_name: Verification file name at the web root
            txt_prefix: Prefix of the expected TXT record value
            transport: Optional httpx transport (used by tests to fake the network)
            logger: Optional audit logger
        """
        self._doh_endpoint = doh_endpoint
        self._timeout = timeout
        self._user_agent = user_agent
        self._meta_tag_name = meta_tag_name
        self._file_name = file_name
        self._txt_prefix = txt_prefix
        self._transport = transport
        self._logger = logger
        self._client: Optional[httpx.AsyncClient] = None

        self._strategies: dict[VerificationMethod, Strategy] = {
            VerificationMethod.META: self._verify_meta,
            VerificationMethod.FILE: self._verify_file,
            VerificationMethod.DNS: self._verify_dns,
            VerificationMethod.SKIP: self._verify_skip,
        }
        unhandled = set(VerificationMethod) - set(self._strategies)
        if unhandled:
            raise TypeError(f"No ownership strategy for: {sorted(m.value for m in unhandled)}")

    async def __aenter__(self) -> "OwnershipVerifier":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    @property
    def meta_tag_name(self) -> str:
        return self._meta_tag_name

    @property
    def file_name(self) -> str:
        return self._file_name

    @property
    def txt_prefix(self) -> str:
        return self._txt_prefix

    async def verify(
        self,
        method: Union[str, VerificationMethod],
        url: str,
        code: Optional[str],
        payload: Optional[OwnershipPayload] = None,
    ) -> OwnershipResult:
        """
        Check one ownership challenge.

        Args:
            method: Challenge method (enum member or its string value)
            url: Website URL
            code: Expected challenge code (unused for skip)
            payload: User-supplied inputs for the method

        Returns:
            OwnershipResult; never raises
        """
        payload = payload or OwnershipPayload()
        resolved = coerce_method(method)
        if resolved is None:
            return OwnershipResult(
                verified=False,
                message=INVALID_METHOD_MESSAGE,
                error_code=ErrorCode.INVALID_METHOD,
            )

        missing = self.missing_input(resolved, payload, code)
        if missing:
            return OwnershipResult(
                verified=False,
                message=missing,
                method=resolved,
                error_code=ErrorCode.OWNERSHIP_INPUT_MISSING,
            )

        try:
            result = await self._strategies[resolved](url, code or "", payload)
        except Exception as e:
            if self._logger:
                self._logger.log_error(
                    "OwnershipVerifier",
                    f"Ownership check transport failure ({resolved.value})",
                    error=e,
                    request_url=url,
                )
            return OwnershipResult(
                verified=False,
                message=TRANSPORT_FAILURE_MESSAGE,
                method=resolved,
                details={"error": str(e)},
                error_code=ErrorCode.TRANSPORT_ERROR,
            )

        result.method = resolved
        result.verification_code = code
        if not result.verified and result.error_code is None:
            result.error_code = ErrorCode.OWNERSHIP_CHECK_FAILED

        if self._logger:
            self._logger.log(
                LogLevel.INFO,
                "OwnershipVerifier",
                f"Ownership check ({resolved.value}) for {url}: "
                f"{'verified' if result.verified else 'not verified'}",
                {"url": url, "method": resolved.value, "verified": result.verified},
            )
        return result

    @staticmethod
    def missing_input(
        method: VerificationMethod,
        payload: OwnershipPayload,
        code: Optional[str],
    ) -> Optional[str]:
        """Return the user-facing message for a missing required input, if any."""
        field_name, message = REQUIRED_INPUTS[method]
        if field_name is None:
            return None
        if not getattr(payload, field_name):
            return message
        if not code:
            return "Verification code is required"
        return None

    async def _verify_meta(self, url: str, code: str, payload: OwnershipPayload) -> OwnershipResult:
        response = await self._get(ensure_scheme(url))
        pattern = re.compile(
            rf"<meta\s+name=[\"']{re.escape(self._meta_tag_name)}[\"']\s+"
            rf"content=[\"']{re.escape(code)}[\"']",
            re.IGNORECASE,
        )

        if pattern.search(response.text):
            return OwnershipResult(
                verified=True,
                message="Meta tag verification successful",
                details={"metaTagContent": code},
            )
        return OwnershipResult(
            verified=False,
            message=(
                "Meta tag not found on website. "
                "Please ensure the tag is added to the <head> section."
            ),
        )

    async def _verify_file(self, url: str, code: str, payload: OwnershipPayload) -> OwnershipResult:
        file_url = f"{ensure_scheme(url).rstrip('/')}/{self._file_name}"
        response = await self._get(file_url)

        if not response.is_success:
            return OwnershipResult(
                verified=False,
                message=(
                    "Verification file not found on website. "
                    "Please upload the file to your website root directory."
                ),
                details={"fileUrl": file_url, "statusCode": response.status_code},
            )

        if response.text.strip() == code:
            return OwnershipResult(
                verified=True,
                message="File verification successful",
                details={"fileName": self._file_name},
            )
        return OwnershipResult(
            verified=False,
            message=(
                "File content does not match. "
                "Please ensure the file contains the correct verification code."
            ),
        )

    async def _verify_dns(self, url: str, code: str, payload: OwnershipPayload) -> OwnershipResult:
        hostname = urlsplit(ensure_scheme(url)).hostname
        if not hostname:
            raise ValueError(f"Cannot determine hostname from URL: {url}")

        response = await self._get(
            self._doh_endpoint,
            params={"name": hostname, "type": "TXT"},
            headers={"Accept": "application/dns-json"},
        )
        data = response.json()

        answers = data.get("Answer") if isinstance(data, dict) else None
        if not answers:
            return OwnershipResult(
                verified=False,
                message="No DNS records found. Please ensure the TXT record is properly configured.",
            )

        expected = f"{self._txt_prefix}{code}"
        txt_records = [
            str(answer.get("data", ""))
            for answer in answers
            if isinstance(answer, dict) and answer.get("type") == TXT_RECORD_TYPE
        ]

        if any(expected in record for record in txt_records):
            return OwnershipResult(
                verified=True,
                message="DNS verification successful",
                details={"dnsRecord": code},
            )
        return OwnershipResult(
            verified=False,
            message=(
                "DNS record not found or does not match. "
                "Please ensure the TXT record is correctly set."
            ),
        )

    async def _verify_skip(self, url: str, code: str, payload: OwnershipPayload) -> OwnershipResult:
        return OwnershipResult(verified=True, message=SKIP_MESSAGE)

    async def _get(self, url: str, **kwargs) -> httpx.Response:
        client = self._ensure_client()
        headers = {"User-Agent": self._user_agent}
        headers.update(kwargs.pop("headers", {}))
        return await client.get(url, headers=headers, **kwargs)

    def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                verify=True,
                timeout=httpx.Timeout(self._timeout),
                follow_redirects=True,
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None
