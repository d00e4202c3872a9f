"""
Configuration dataclasses for the domain verification system.

This module defines all configuration structures used throughout the system,
including cache, DNS, probe, ownership check, persistence, logging and HTTP
server settings, plus loaders for JSON files and environment variables.
"""

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from .exceptions import ConfigurationError


DEFAULT_CONFIG_DIR = Path.home() / ".domain_verification"
DEFAULT_HMAC_SECRET = "default-secret-change-me"

VALID_LOG_LEVELS = ("debug", "info", "warn", "error")
VALID_OUTPUT_FORMATS = ("json", "text", "both")


@dataclass
class CacheConfig:
    """Verification cache settings."""

    ttl_seconds: float = 300.0
    max_entries: int = 10_000


@dataclass
class ProbeConfig:
    """HTTP(S) reachability probe settings."""

    timeout_seconds: float = 10.0
    user_agent: str = "AlpusLinks-Domain-Verifier/1.0"


@dataclass
class DnsConfig:
    """DNS resolver settings; empty nameservers means the system resolver."""

    lifetime_seconds: Optional[float] = None
    nameservers: list[str] = field(default_factory=list)


@dataclass
class OwnershipConfig:
    """Ownership challenge settings."""

    doh_endpoint: str = "https://dns.google/resolve"
    timeout_seconds: float = 10.0
    meta_tag_name: str = "alpus-verification"
    file_name: str = "alpus-verification.txt"
    txt_prefix: str = "alpus-verification="


@dataclass
class PersistenceConfig:
    """Persistence and state storage configuration."""

    state_file_path: Path
    hmac_secret: str


@dataclass
class LoggingConfig:
    """Logging configuration."""

    level: str = "info"
    output_format: str = "text"  # 'json', 'text', 'both'


@dataclass
class ServerConfig:
    """HTTP API server binding."""

    host: str = "127.0.0.1"
    port: int = 8000


@dataclass
class VerifierConfig:
    """Main system configuration combining all sub-configurations."""

    persistence: PersistenceConfig
    cache: CacheConfig = field(default_factory=CacheConfig)
    probe: ProbeConfig = field(default_factory=ProbeConfig)
    dns: DnsConfig = field(default_factory=DnsConfig)
    ownership: OwnershipConfig = field(default_factory=OwnershipConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    server: ServerConfig = field(default_factory=ServerConfig)


def create_default_config(
    state_file: Optional[Path] = None,
    hmac_secret: str = DEFAULT_HMAC_SECRET,
) -> VerifierConfig:
    """
    Create a default system configuration.

    Args:
        state_file: Path to the ownership state file
        hmac_secret: Secret for HMAC protection

    Returns:
        VerifierConfig with default settings
    """
    if state_file is None:
        state_file = DEFAULT_CONFIG_DIR / "state.json"

    return VerifierConfig(
        persistence=PersistenceConfig(
            state_file_path=state_file,
            hmac_secret=hmac_secret,
        ),
    )


def validate_config(config: VerifierConfig) -> None:
    """
    Check value ranges that the dataclasses cannot express.

    Raises:
        ConfigurationError: On the first invalid value
    """
    problems = []
    if config.cache.ttl_seconds <= 0:
        problems.append(("cache.ttl_seconds", config.cache.ttl_seconds))
    if config.cache.max_entries < 1:
        problems.append(("cache.max_entries", config.cache.max_entries))
    if config.probe.timeout_seconds <= 0:
        problems.append(("probe.timeout_seconds", config.probe.timeout_seconds))
    if config.dns.lifetime_seconds is not None and config.dns.lifetime_seconds <= 0:
        problems.append(("dns.lifetime_seconds", config.dns.lifetime_seconds))
    if config.ownership.timeout_seconds <= 0:
        problems.append(("ownership.timeout_seconds", config.ownership.timeout_seconds))
    if not config.ownership.doh_endpoint.startswith(("http://", "https://")):
        problems.append(("ownership.doh_endpoint", config.ownership.doh_endpoint))
    if not config.persistence.hmac_secret:
        problems.append(("persistence.hmac_secret", ""))
    if config.logging.level not in VALID_LOG_LEVELS:
        problems.append(("logging.level", config.logging.level))
    if config.logging.output_format not in VALID_OUTPUT_FORMATS:
        problems.append(("logging.output_format", config.logging.output_format))
    if not 0 < config.server.port < 65536:
        problems.append(("server.port", config.server.port))

    if problems:
        key, value = problems[0]
        raise ConfigurationError(
            code="invalid_value",
            message=f"Invalid configuration value for {key}: {value!r}",
            details={"invalid": [name for name, _ in problems]},
        )


def config_from_dict(data: dict) -> VerifierConfig:
    """
    Build a VerifierConfig from its JSON form.

    Raises:
        ConfigurationError: If a section is malformed or a value is out of range
    """
    try:
        cache_data = data.get("cache", {})
        cache = CacheConfig(
            ttl_seconds=float(cache_data.get("ttl_seconds", 300.0)),
            max_entries=int(cache_data.get("max_entries", 10_000)),
        )

        probe_data = data.get("probe", {})
        probe = ProbeConfig(
            timeout_seconds=float(probe_data.get("timeout_seconds", 10.0)),
            user_agent=probe_data.get("user_agent", ProbeConfig.user_agent),
        )

        dns_data = data.get("dns", {})
        lifetime = dns_data.get("lifetime_seconds")
        dns = DnsConfig(
            lifetime_seconds=float(lifetime) if lifetime is not None else None,
            nameservers=list(dns_data.get("nameservers", [])),
        )

        ownership_data = data.get("ownership", {})
        defaults = OwnershipConfig()
        ownership = OwnershipConfig(
            doh_endpoint=ownership_data.get("doh_endpoint", defaults.doh_endpoint),
            timeout_seconds=float(ownership_data.get("timeout_seconds", defaults.timeout_seconds)),
            meta_tag_name=ownership_data.get("meta_tag_name", defaults.meta_tag_name),
            file_name=ownership_data.get("file_name", defaults.file_name),
            txt_prefix=ownership_data.get("txt_prefix", defaults.txt_prefix),
        )

        # Parse persistence config
        persistence_data = data.get("persistence", {})
        state_file_path = persistence_data.get("state_file_path")
        if state_file_path:
            state_file_path = Path(state_file_path)
        else:
            state_file_path = DEFAULT_CONFIG_DIR / "state.json"

        persistence = PersistenceConfig(
            state_file_path=state_file_path,
            hmac_secret=persistence_data.get("hmac_secret", DEFAULT_HMAC_SECRET),
        )

        logging_data = data.get("logging", {})
        logging_config = LoggingConfig(
            level=logging_data.get("level", "info"),
            output_format=logging_data.get("output_format", "text"),
        )

        server_data = data.get("server", {})
        server = ServerConfig(
            host=server_data.get("host", "127.0.0.1"),
            port=int(server_data.get("port", 8000)),
        )
    except (AttributeError, TypeError, ValueError) as e:
        raise ConfigurationError(
            code="malformed_config",
            message=f"Malformed configuration: {e}",
        )

    config = VerifierConfig(
        persistence=persistence,
        cache=cache,
        probe=probe,
        dns=dns,
        ownership=ownership,
        logging=logging_config,
        server=server,
    )
    validate_config(config)
    return config


def config_to_dict(config: VerifierConfig) -> dict:
    return {
        "cache": {
            "ttl_seconds": config.cache.ttl_seconds,
            "max_entries": config.cache.max_entries,
        },
        "probe": {
            "timeout_seconds": config.probe.timeout_seconds,
            "user_agent": config.probe.user_agent,
        },
        "dns": {
            "lifetime_seconds": config.dns.lifetime_seconds,
            "nameservers": list(config.dns.nameservers),
        },
        "ownership": {
            "doh_endpoint": config.ownership.doh_endpoint,
            "timeout_seconds": config.ownership.timeout_seconds,
            "meta_tag_name": config.ownership.meta_tag_name,
            "file_name": config.ownership.file_name,
            "txt_prefix": config.ownership.txt_prefix,
        },
        "persistence": {
            "state_file_path": str(config.persistence.state_file_path),
            "hmac_secret": config.persistence.hmac_secret,
        },
        "logging": {
            "level": config.logging.level,
            "output_format": config.logging.output_format,
        },
        "server": {
            "host": config.server.host,
            "port": config.server.port,
        },
    }


def load_config_from_file(config_path: Path) -> Optional[VerifierConfig]:
    """
    Load configuration from a JSON file.

    Args:
        config_path: Path to the configuration file

    Returns:
        VerifierConfig, or None if the file does not exist

    Raises:
        ConfigurationError: If the file is not valid JSON or holds invalid values
    """
    try:
        with open(config_path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except FileNotFoundError:
        return None
    except json.JSONDecodeError as e:
        raise ConfigurationError(
            code="parse_error",
            message=f"Error loading config: {e}",
            details={"config_path": str(config_path)},
        )

    if not isinstance(data, dict):
        raise ConfigurationError(
            code="malformed_config",
            message="Configuration root must be a JSON object",
            details={"config_path": str(config_path)},
        )
    return config_from_dict(data)


def save_config_to_file(config: VerifierConfig, config_path: Path) -> bool:
    """
    Save configuration to a JSON file.

    Args:
        config: VerifierConfig to save
        config_path: Path to save the configuration

    Returns:
        True if successful, False otherwise
    """
    try:
        config_path.parent.mkdir(parents=True, exist_ok=True)
        with open(config_path, "w", encoding="utf-8") as f:
            json.dump(config_to_dict(config), f, indent=2, ensure_ascii=False)
        return True
    except OSError:
        return False


# Environment variable -> (section, key, converter)
ENV_VARS = {
    "DV_CACHE_TTL_SECONDS": ("cache", "ttl_seconds", float),
    "DV_CACHE_MAX_ENTRIES": ("cache", "max_entries", int),
    "DV_HTTP_TIMEOUT": ("probe", "timeout_seconds", float),
    "DV_USER_AGENT": ("probe", "user_agent", str),
    "DV_DNS_LIFETIME": ("dns", "lifetime_seconds", float),
    "DV_DNS_NAMESERVERS": ("dns", "nameservers", lambda v: [s.strip() for s in v.split(",") if s.strip()]),
    "DV_DOH_ENDPOINT": ("ownership", "doh_endpoint", str),
    "DV_OWNERSHIP_TIMEOUT": ("ownership", "timeout_seconds", float),
    "DV_STATE_FILE": ("persistence", "state_file_path", str),
    "DV_HMAC_SECRET": ("persistence", "hmac_secret", str),
    "DV_LOG_LEVEL": ("logging", "level", lambda v: v.strip().lower()),
    "DV_LOG_FORMAT": ("logging", "output_format", lambda v: v.strip().lower()),
    "DV_HOST": ("server", "host", str),
    "DV_PORT": ("server", "port", int),
}


def load_config_from_env(
    dotenv_path: Optional[Path] = None,
    environ: Optional[dict[str, str]] = None,
) -> VerifierConfig:
    """
    Build configuration from ``DV_*`` environment variables.

    A ``.env`` file is read first (without overriding variables that are
    already set). Unset variables keep their defaults.

    Args:
        dotenv_path: Explicit .env file; None searches from the working directory
        environ: Mapping to read instead of ``os.environ``

    Raises:
        ConfigurationError: If a variable cannot be converted or is out of range
    """
    if environ is None:
        load_dotenv(dotenv_path=dotenv_path, override=False)
        environ = dict(os.environ)

    data: dict[str, dict] = {}
    for name, (section, key, convert) in ENV_VARS.items():
        raw = environ.get(name)
        if raw is None or raw == "":
            continue
        try:
            data.setdefault(section, {})[key] = convert(raw)
        except ValueError:
            raise ConfigurationError(
                code="invalid_env",
                message=f"Invalid value for {name}: {raw!r}",
                details={"variable": name},
            )

    return config_from_dict(data)
