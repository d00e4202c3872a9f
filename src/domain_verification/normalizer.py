"""
Domain normalization module.

Turns a raw domain candidate (which may carry a scheme, ``www.`` prefix,
path, query or port) into a canonical lowercase ASCII domain and validates
its label and TLD syntax.
"""

import re
from dataclasses import dataclass
from typing import Optional

import idna

from .enums import DomainValidationErrorCode
from .exceptions import InvalidDomainFormatError


SCHEME_PATTERN = re.compile(r"^[a-z][a-z0-9+.-]*://", re.IGNORECASE)

# Characters that can never appear in a host name once scheme/path/port are gone
FORBIDDEN_CHARS_PATTERN = re.compile(
    r'[\x00-\x1f\x7f'
    r'\s'
    r'!@#$%^&*()+=\[\]{}|\\;"\'<>,`~]'
)

LABEL_PATTERN = re.compile(r"^[a-z0-9]([a-z0-9-]{0,61}[a-z0-9])?$")

MAX_DOMAIN_LENGTH = 253
MIN_TLD_LENGTH = 2


@dataclass
class DomainValidationError:
    """Structured error information for normalization failures."""

    code: DomainValidationErrorCode
    message: str
    details: dict


@dataclass
class DomainValidationResult:
    """Result of a normalization attempt."""

    valid: bool
    canonical_domain: Optional[str]
    error: Optional[DomainValidationError]


class DomainNormalizer:
    """
    Normalizes and validates domain candidates.

    Handles:
    - Removal of scheme, leading ``www.`` labels, path, query, fragment and port
    - Conversion to lowercase and IDNA (punycode) encoding of international labels
    - Label syntax (1-63 chars, alphanumeric and inner hyphens)
    - At least two labels with a TLD of two or more characters

    Normalization is idempotent: feeding a canonical domain back in returns it
    unchanged.
    """

    def validate(self, raw_domain: Optional[str]) -> DomainValidationResult:
        """
        Validate and normalize a domain candidate.

        Args:
            raw_domain: The raw domain or URL string

        Returns:
            DomainValidationResult with the canonical form or the error
        """
        try:
            canonical = self.normalize(raw_domain)
        except InvalidDomainFormatError as e:
            return DomainValidationResult(
                valid=False,
                canonical_domain=None,
                error=DomainValidationError(
                    code=DomainValidationErrorCode(e.code),
                    message=e.message,
                    details=e.details,
                ),
            )

        return DomainValidationResult(valid=True, canonical_domain=canonical, error=None)

    def try_normalize(self, raw_domain: Optional[str]) -> Optional[str]:
        """Return the canonical domain, or None if the candidate is invalid."""
        return self.validate(raw_domain).canonical_domain

    def normalize(self, raw_domain: Optional[str]) -> str:
        """
        Convert a domain candidate to canonical form.

        Args:
            raw_domain: The raw domain or URL string

        Returns:
            Canonical domain (lowercase, IDNA-encoded, no www/scheme/path/port)

        Raises:
            InvalidDomainFormatError: If the candidate is not a valid domain
        """
        if not isinstance(raw_domain, str) or not raw_domain.strip():
            raise InvalidDomainFormatError(
                code=DomainValidationErrorCode.EMPTY_INPUT.value,
                message="Domain input is empty",
                details={"raw_input": raw_domain},
            )

        host = self.strip_to_host(raw_domain)

        if FORBIDDEN_CHARS_PATTERN.search(host):
            raise InvalidDomainFormatError(
                code=DomainValidationErrorCode.FORBIDDEN_CHARS.value,
                message="Domain contains forbidden characters",
                details={
                    "raw_input": raw_domain,
                    "forbidden_chars": FORBIDDEN_CHARS_PATTERN.findall(host),
                },
            )

        canonical = strip_www(self._encode_idna(host, raw_domain))
        self._check_syntax(canonical, raw_domain)
        return canonical

    def strip_to_host(self, raw_domain: str) -> str:
        """
        Reduce a URL-ish string to its lowercase host part.

        Args:
            raw_domain: Raw domain or URL

        Returns:
            Host without scheme, path, query, fragment, port or leading ``www.``
        """
        host = raw_domain.strip()
        host = SCHEME_PATTERN.sub("", host, count=1)
        host = re.split(r"[/?#]", host, maxsplit=1)[0]
        host = host.split(":", 1)[0]
        return strip_www(host.lower())

    def _encode_idna(self, host: str, raw_domain: str) -> str:
        if host.isascii():
            return host

        try:
            return idna.encode(host, uts46=True).decode("ascii")
        except idna.IDNAError as e:
            raise InvalidDomainFormatError(
                code=DomainValidationErrorCode.IDNA_ERROR.value,
                message=f"IDNA encoding failed: {e}",
                details={"raw_input": raw_domain, "idna_error": str(e)},
            )

    def _check_syntax(self, domain: str, raw_domain: str) -> None:
        if len(domain) > MAX_DOMAIN_LENGTH:
            raise InvalidDomainFormatError(
                code=DomainValidationErrorCode.TOO_LONG.value,
                message=f"Domain exceeds {MAX_DOMAIN_LENGTH} characters",
                details={"raw_input": raw_domain, "length": len(domain)},
            )

        labels = domain.split(".")
        if len(labels) < 2:
            raise InvalidDomainFormatError(
                code=DomainValidationErrorCode.TOO_FEW_LABELS.value,
                message="Domain must contain at least two labels",
                details={"raw_input": raw_domain, "canonical": domain},
            )

        for label in labels:
            if not LABEL_PATTERN.match(label):
                raise InvalidDomainFormatError(
                    code=DomainValidationErrorCode.INVALID_LABEL.value,
                    message=f"Invalid domain label: '{label}'",
                    details={"raw_input": raw_domain, "label": label},
                )

        tld = labels[-1]
        if len(tld) < MIN_TLD_LENGTH:
            raise InvalidDomainFormatError(
                code=DomainValidationErrorCode.INVALID_TLD.value,
                message=f"TLD '{tld}' is shorter than {MIN_TLD_LENGTH} characters",
                details={"raw_input": raw_domain, "tld": tld},
            )


def strip_www(host: str) -> str:
    # Repeated so that the canonical form never starts with www.
    while host.startswith("www."):
        host = host[4:]
    return host


def domain_from_url(url: str) -> Optional[str]:
    """Derive a website's canonical domain from its URL, or None if invalid."""
    return DomainNormalizer().try_normalize(url)


def ensure_scheme(url: str) -> str:
    """Prefix ``https://`` to a website URL that has no scheme."""
    url = url.strip()
    if re.match(r"^https?://", url, re.IGNORECASE):
        return url
    return f"https://{url}"
