"""
Ownership Store module for persistent website ownership state.

Stores each registered website's ownership record and its outstanding
challenges in a JSON file protected by an HMAC, so that edits made outside
the service (for example flipping ``isVerified`` by hand) are detected on
load.
"""

import hashlib
import hmac
import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from .enums import OwnershipFilter, VerificationMethod
from .exceptions import PersistenceError, TamperingError
from .models import OwnershipChallenge
from .normalizer import domain_from_url, ensure_scheme
from .ownership_record import OwnershipRecord


@dataclass
class WebsiteEntry:
    """A registered website with its ownership state."""

    website_id: str
    url: str
    domain: str
    ownership: OwnershipRecord = field(default_factory=OwnershipRecord)
    challenges: dict[VerificationMethod, OwnershipChallenge] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "websiteId": self.website_id,
            "url": self.url,
            "domain": self.domain,
            "ownership": self.ownership.to_dict(),
            "challenges": {
                method.value: challenge.to_dict()
                for method, challenge in self.challenges.items()
            },
        }

    @classmethod
    def from_dict(cls, data: dict) -> "WebsiteEntry":
        return cls(
            website_id=data["websiteId"],
            url=data["url"],
            domain=data["domain"],
            ownership=OwnershipRecord.from_dict(data.get("ownership", {})),
            challenges={
                VerificationMethod(method): OwnershipChallenge.from_dict(challenge)
                for method, challenge in data.get("challenges", {}).items()
            },
        )


class OwnershipStore:
    """
    Persistent website ownership storage with HMAC protection.

    Mutations happen in memory; ``save()`` writes the whole state. A store
    created without a file path keeps everything in memory only.
    """

    VERSION = 1

    def __init__(self, file_path: Optional[Path], hmac_secret: str) -> None:
        """
        Initialize the ownership store.

        Args:
            file_path: Path to the state file (JSON format), or None for memory only
            hmac_secret: Secret key for HMAC computation
        """
        if not hmac_secret:
            raise ValueError("hmac_secret cannot be empty")

        self._file_path = file_path
        self._hmac_secret = hmac_secret.encode("utf-8")
        self._websites: dict[str, WebsiteEntry] = {}
        self._last_updated: str = ""

    def load(self) -> Optional[dict[str, WebsiteEntry]]:
        """
        Load state from file and validate HMAC.

        Returns:
            Loaded websites keyed by id, or None if there is no file

        Raises:
            TamperingError: If HMAC validation fails
            PersistenceError: If the file cannot be read or parsed
        """
        if self._file_path is None or not self._file_path.exists():
            return None

        try:
            with open(self._file_path, "r", encoding="utf-8") as f:
                raw_data = json.load(f)
        except json.JSONDecodeError as e:
            raise PersistenceError(
                code="parse_error",
                message=f"Failed to parse ownership state file: {e}",
                details={"file_path": str(self._file_path)},
            )
        except OSError as e:
            raise PersistenceError(
                code="io_error",
                message=f"Failed to read ownership state file: {e}",
                details={"file_path": str(self._file_path)},
            )

        stored_hmac = raw_data.get("hmac", "")
        computed_hmac = self.compute_hmac({
            "version": raw_data.get("version"),
            "websites": raw_data.get("websites", {}),
            "last_updated": raw_data.get("last_updated"),
        })

        if not self.validate_hmac(stored_hmac, computed_hmac):
            raise TamperingError(
                code="hmac_mismatch",
                message="HMAC validation failed - ownership data may have been tampered with",
                details={"file_path": str(self._file_path)},
            )

        try:
            self._websites = {
                website_id: WebsiteEntry.from_dict(entry)
                for website_id, entry in raw_data.get("websites", {}).items()
            }
        except (KeyError, ValueError, TypeError) as e:
            raise PersistenceError(
                code="schema_error",
                message=f"Malformed ownership state: {e}",
                details={"file_path": str(self._file_path)},
            )

        self._last_updated = raw_data.get("last_updated", "")
        return self._websites

    def save(self) -> None:
        """
        Write state to file with HMAC protection.

        Raises:
            PersistenceError: If the file cannot be written
        """
        now = datetime.now(timezone.utc).isoformat()
        self._last_updated = now

        if self._file_path is None:
            return

        websites = {
            website_id: entry.to_dict()
            for website_id, entry in self._websites.items()
        }
        computed_hmac = self.compute_hmac({
            "version": self.VERSION,
            "websites": websites,
            "last_updated": now,
        })

        output_data = {
            "version": self.VERSION,
            "websites": websites,
            "last_updated": now,
            "hmac": computed_hmac,
        }

        try:
            self._file_path.parent.mkdir(parents=True, exist_ok=True)
            with open(self._file_path, "w", encoding="utf-8") as f:
                json.dump(output_data, f, indent=2, sort_keys=True)
        except OSError as e:
            raise PersistenceError(
                code="io_error",
                message=f"Failed to write ownership state file: {e}",
                details={"file_path": str(self._file_path)},
            )

    def register_website(self, website_id: str, url: str) -> WebsiteEntry:
        """
        Add a website with a fresh ``pending`` ownership record.

        Raises:
            PersistenceError: If the id is taken or the URL has no valid domain
        """
        if website_id in self._websites:
            raise PersistenceError(
                code="duplicate_website",
                message=f"Website already registered: {website_id}",
                details={"website_id": website_id},
            )

        url = ensure_scheme(url)
        domain = domain_from_url(url)
        if domain is None:
            raise PersistenceError(
                code="invalid_url",
                message=f"Cannot derive a domain from URL: {url}",
                details={"website_id": website_id, "url": url},
            )

        entry = WebsiteEntry(website_id=website_id, url=url, domain=domain)
        self._websites[website_id] = entry
        return entry

    def get_website(self, website_id: str) -> Optional[WebsiteEntry]:
        return self._websites.get(website_id)

    def get_record(self, website_id: str) -> Optional[OwnershipRecord]:
        entry = self._websites.get(website_id)
        return entry.ownership if entry else None

    def update_record(self, website_id: str, record: OwnershipRecord) -> None:
        entry = self._require(website_id)
        entry.ownership = record

    def remove_website(self, website_id: str) -> bool:
        """Delete a website together with its record and challenges."""
        return self._websites.pop(website_id, None) is not None

    def put_challenge(self, website_id: str, challenge: OwnershipChallenge) -> None:
        """Store a challenge, replacing any earlier one for the same method."""
        entry = self._require(website_id)
        entry.challenges[challenge.method] = challenge
        entry.ownership.verification_code = challenge.code

    def get_challenge(
        self, website_id: str, method: VerificationMethod
    ) -> Optional[OwnershipChallenge]:
        entry = self._websites.get(website_id)
        return entry.challenges.get(method) if entry else None

    def pop_challenge(
        self, website_id: str, method: VerificationMethod
    ) -> Optional[OwnershipChallenge]:
        """Remove and return a challenge once it has been used."""
        entry = self._websites.get(website_id)
        return entry.challenges.pop(method, None) if entry else None

    def find_by_ownership_status(self, status_filter: OwnershipFilter) -> list[WebsiteEntry]:
        return [
            entry for entry in self._websites.values()
            if entry.ownership.matches_filter(status_filter)
        ]

    def compute_hmac(self, data: dict) -> str:
        """
        Compute HMAC-SHA256 over serialized data.

        Args:
            data: Dictionary to compute HMAC over

        Returns:
            Hexadecimal HMAC string
        """
        serialized = json.dumps(data, sort_keys=True, separators=(",", ":"))
        return hmac.new(
            self._hmac_secret,
            serialized.encode("utf-8"),
            hashlib.sha256,
        ).hexdigest()

    def validate_hmac(self, stored_hmac: str, computed_hmac: str) -> bool:
        """Compare HMACs in constant time."""
        return hmac.compare_digest(stored_hmac, computed_hmac)

    def _require(self, website_id: str) -> WebsiteEntry:
        entry = self._websites.get(website_id)
        if entry is None:
            raise PersistenceError(
                code="unknown_website",
                message=f"Website not registered: {website_id}",
                details={"website_id": website_id},
            )
        return entry

    @property
    def websites(self) -> dict[str, WebsiteEntry]:
        return dict(self._websites)

    @property
    def last_updated(self) -> str:
        return self._last_updated

    @property
    def file_path(self) -> Optional[Path]:
        return self._file_path
