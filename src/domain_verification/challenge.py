"""
Ownership challenge issuance.

A challenge is a single-use code the submitter publishes in a place only the
site's controller can reach: a meta tag in the page head, a text file at the
web root, or a DNS TXT record.
"""

import secrets
import string
import time
from datetime import datetime, timezone
from typing import Callable

from .enums import VerificationMethod
from .models import OwnershipChallenge


CODE_PREFIX = "alpus"
CODE_RANDOM_LENGTH = 9
CODE_ALPHABET = string.digits + string.ascii_lowercase  # base36

META_TAG_NAME = "alpus-verification"
VERIFICATION_FILE_NAME = "alpus-verification.txt"
TXT_RECORD_PREFIX = "alpus-verification="

CHALLENGE_METHODS = frozenset({
    VerificationMethod.META,
    VerificationMethod.FILE,
    VerificationMethod.DNS,
})


class ChallengeIssuer:
    """Generates ownership challenge codes of the form ``alpus-<ms>-<base36>``."""

    def __init__(
        self,
        prefix: str = CODE_PREFIX,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._prefix = prefix
        self._clock = clock

    def generate_code(self) -> str:
        millis = int(self._clock() * 1000)
        suffix = "".join(secrets.choice(CODE_ALPHABET) for _ in range(CODE_RANDOM_LENGTH))
        return f"{self._prefix}-{millis}-{suffix}"

    def issue(self, method: VerificationMethod) -> OwnershipChallenge:
        """
        Issue a fresh challenge for a proof-of-control method.

        Raises:
            ValueError: For ``skip``, which has nothing to prove
        """
        if method not in CHALLENGE_METHODS:
            raise ValueError(f"Method '{method.value}' does not use a challenge")

        return OwnershipChallenge(
            code=self.generate_code(),
            method=method,
            issued_at=datetime.now(timezone.utc).isoformat(),
        )


def challenge_instructions(
    challenge: OwnershipChallenge,
    meta_tag_name: str = META_TAG_NAME,
    file_name: str = VERIFICATION_FILE_NAME,
    txt_prefix: str = TXT_RECORD_PREFIX,
) -> dict:
    """Describe where and how the submitter must publish a challenge code."""
    if challenge.method is VerificationMethod.META:
        return {
            "placement": "Add this tag to the <head> section of your homepage",
            "value": f'<meta name="{meta_tag_name}" content="{challenge.code}">',
        }
    if challenge.method is VerificationMethod.FILE:
        return {
            "placement": f"Upload a file named {file_name} to your website root directory",
            "fileName": file_name,
            "value": challenge.code,
        }
    return {
        "placement": "Add a TXT record to your domain's DNS zone",
        "value": f"{txt_prefix}{challenge.code}",
    }
