"""
Command-line interface for the domain verification system.

This module provides the main CLI entry point with commands for:
- verify: Check that domains exist and are reachable
- register / challenge / verify-ownership / status / reset: Website ownership
- config: Configuration management
- serve: Run the HTTP API
"""

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import Optional

import uvicorn

from . import __version__
from .api import create_app
from .config import (
    DEFAULT_CONFIG_DIR,
    VerifierConfig,
    create_default_config,
    load_config_from_env,
    load_config_from_file,
    save_config_to_file,
)
from .enums import OwnershipFilter
from .exceptions import ConfigurationError, PersistenceError
from .models import OwnershipPayload
from .ownership_service import (
    OwnershipService,
    create_domain_verifier,
    create_logger,
    website_summary,
)


DEFAULT_CONFIG_PATH = DEFAULT_CONFIG_DIR / "config.json"


def resolve_config(args: argparse.Namespace) -> Optional[VerifierConfig]:
    """
    Load configuration from ``--config`` or, failing that, the environment.

    Returns:
        VerifierConfig, or None after printing an error
    """
    try:
        if getattr(args, "config", None):
            config = load_config_from_file(Path(args.config))
            if config is None:
                print(f"Error: Could not load config from {args.config}", file=sys.stderr)
            return config
        return load_config_from_env()
    except ConfigurationError as e:
        print(f"Error: {e.message}", file=sys.stderr)
        return None


def print_json(data) -> None:
    print(json.dumps(data, indent=2, ensure_ascii=False))


async def verify_domains(
    domains: list[str],
    config: VerifierConfig,
    as_json: bool = False,
    verbose: bool = False,
) -> int:
    """
    Verify several domains concurrently.

    Returns:
        Exit code (0 if all valid, 1 otherwise)
    """
    logger = create_logger(config) if verbose else None

    async with create_domain_verifier(config, logger) as verifier:
        results = await asyncio.gather(*(verifier.verify(domain) for domain in domains))

    if as_json:
        print_json([
            {"domain": domain, **result.to_dict()}
            for domain, result in zip(domains, results)
        ])
    else:
        for domain, result in zip(domains, results):
            if result.is_valid:
                protocol = result.details.http.protocol if result.details and result.details.http else "?"
                print(f"✓ {domain}: valid ({protocol})")
            else:
                print(f"✗ {domain}: {result.error}")

    return 0 if all(result.is_valid for result in results) else 1


async def run_ownership(args: argparse.Namespace, config: VerifierConfig) -> int:
    """Run one ownership sub-command against the persisted state."""
    logger = create_logger(config) if args.verbose else None
    try:
        service = OwnershipService.from_config(config, logger=logger)
    except PersistenceError as e:
        print(f"Error: {e.message}", file=sys.stderr)
        return 1

    async with service:
        try:
            return await _dispatch_ownership(args, service)
        except PersistenceError as e:
            print(f"Error: {e.message}", file=sys.stderr)
            return 1


async def _dispatch_ownership(args: argparse.Namespace, service: OwnershipService) -> int:
    if args.command == "register":
        outcome = await service.register_website(args.website_id, args.url)
        if not outcome.registered:
            print(f"✗ Not registered: {outcome.verification.error}")
            return 1
        print_json(website_summary(outcome.entry))
        return 0

    if args.command == "challenge":
        try:
            challenge = service.issue_challenge(args.website_id, args.method)
        except ValueError as e:
            print(f"Error: {e}", file=sys.stderr)
            return 1
        print_json({
            "websiteId": args.website_id,
            "method": challenge.method.value,
            "verificationCode": challenge.code,
            "issuedAt": challenge.issued_at,
            "instructions": service.instructions_for(challenge),
        })
        return 0

    if args.command == "verify-ownership":
        payload = OwnershipPayload(
            meta_tag=args.meta_tag,
            dns_record=args.dns_record,
            file_name=args.file_name,
            verification_code=args.code,
        )
        try:
            result = await service.verify_ownership(
                args.method, args.url, payload, website_id=args.website_id
            )
        except ValueError as e:
            print(f"Error: {e}", file=sys.stderr)
            return 1
        print_json(result.to_dict())
        return 0 if result.verified else 1

    if args.command == "status":
        if args.filter:
            entries = service.list_websites(OwnershipFilter(args.filter))
            print_json([website_summary(entry) for entry in entries])
            return 0
        if not args.website_id:
            print("Error: website id or --filter is required", file=sys.stderr)
            return 1
        print_json(service.get_status(args.website_id))
        return 0

    if args.command == "reset":
        print_json(service.reset(args.website_id).to_dict())
        return 0

    return 1


def cmd_verify(args: argparse.Namespace) -> int:
    """Handle the 'verify' command."""
    config = resolve_config(args)
    if config is None:
        return 1
    return asyncio.run(verify_domains(
        domains=args.domains,
        config=config,
        as_json=args.json,
        verbose=args.verbose,
    ))


def cmd_ownership(args: argparse.Namespace) -> int:
    """Handle the ownership commands."""
    config = resolve_config(args)
    if config is None:
        return 1
    return asyncio.run(run_ownership(args, config))


def cmd_config(args: argparse.Namespace) -> int:
    """Handle the 'config' command."""
    config_path = Path(args.path) if args.path else DEFAULT_CONFIG_PATH

    if args.action == "show":
        try:
            config = load_config_from_file(config_path)
        except ConfigurationError as e:
            print(f"Error: {e.message}", file=sys.stderr)
            return 1
        if config is None:
            print(f"No configuration found at: {config_path}")
            print("Use 'config init' to create a default configuration.")
            return 1

        print(f"Configuration from: {config_path}")
        print(f"  Cache TTL: {config.cache.ttl_seconds}s (max {config.cache.max_entries} entries)")
        print(f"  HTTP timeout: {config.probe.timeout_seconds}s")
        print(f"  DoH endpoint: {config.ownership.doh_endpoint}")
        print(f"  State file: {config.persistence.state_file_path}")
        print(f"  Log level: {config.logging.level}")
        print(f"  Server: {config.server.host}:{config.server.port}")
        return 0

    elif args.action == "init":
        if config_path.exists() and not args.force:
            print(f"Configuration already exists at: {config_path}")
            print("Use --force to overwrite.")
            return 1

        config = create_default_config()
        if save_config_to_file(config, config_path):
            print(f"Configuration created at: {config_path}")
            return 0
        print(f"Error: Could not write {config_path}", file=sys.stderr)
        return 1

    elif args.action == "validate":
        try:
            config = load_config_from_file(config_path)
        except ConfigurationError as e:
            print(f"Error: {e.message}", file=sys.stderr)
            return 1
        if config is None:
            print(f"Error: Could not load config from {config_path}", file=sys.stderr)
            return 1

        print(f"Configuration at {config_path} is valid.")
        return 0

    return 1


def cmd_serve(args: argparse.Namespace) -> int:
    """Handle the 'serve' command."""
    config = resolve_config(args)
    if config is None:
        return 1

    logger = create_logger(config)
    try:
        app = create_app(config, logger=logger)
    except PersistenceError as e:
        print(f"Error: {e.message}", file=sys.stderr)
        return 1

    uvicorn.run(
        app,
        host=args.host or config.server.host,
        port=args.port or config.server.port,
    )
    return 0


def _add_common(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--config", "-c",
        help="Path to configuration file (environment variables are used otherwise)",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose output",
    )


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser for the CLI."""
    parser = argparse.ArgumentParser(
        prog="domain-verification",
        description="Domain existence, reachability and website ownership verification",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # 'verify' command
    verify_parser = subparsers.add_parser(
        "verify",
        help="Check that domains exist and are reachable",
    )
    verify_parser.add_argument(
        "domains",
        nargs="+",
        help="Domains or URLs to verify (e.g., example.com)",
    )
    verify_parser.add_argument(
        "--json",
        action="store_true",
        help="Print results as JSON",
    )
    _add_common(verify_parser)
    verify_parser.set_defaults(func=cmd_verify)

    # 'register' command
    register_parser = subparsers.add_parser(
        "register",
        help="Register a website after checking its domain",
    )
    register_parser.add_argument("website_id", help="Website identifier")
    register_parser.add_argument("url", help="Website URL")
    _add_common(register_parser)
    register_parser.set_defaults(func=cmd_ownership)

    # 'challenge' command
    challenge_parser = subparsers.add_parser(
        "challenge",
        help="Issue an ownership challenge code",
    )
    challenge_parser.add_argument("website_id", help="Website identifier")
    challenge_parser.add_argument(
        "method",
        choices=["meta", "file", "dns"],
        help="Where the code will be published",
    )
    _add_common(challenge_parser)
    challenge_parser.set_defaults(func=cmd_ownership)

    # 'verify-ownership' command
    ownership_parser = subparsers.add_parser(
        "verify-ownership",
        help="Check an ownership challenge",
    )
    ownership_parser.add_argument(
        "method",
        choices=["meta", "file", "dns", "skip"],
        help="Verification method",
    )
    ownership_parser.add_argument("url", help="Website URL")
    ownership_parser.add_argument("--website-id", help="Registered website to update")
    ownership_parser.add_argument("--meta-tag", help="Meta tag content")
    ownership_parser.add_argument("--dns-record", help="DNS record value")
    ownership_parser.add_argument("--file-name", help="Uploaded verification file name")
    ownership_parser.add_argument("--code", help="Expected code for the file method")
    _add_common(ownership_parser)
    ownership_parser.set_defaults(func=cmd_ownership)

    # 'status' command
    status_parser = subparsers.add_parser(
        "status",
        help="Show ownership status of a website",
    )
    status_parser.add_argument("website_id", nargs="?", help="Website identifier")
    status_parser.add_argument(
        "--filter",
        choices=[f.value for f in OwnershipFilter],
        help="List all websites matching an ownership filter",
    )
    _add_common(status_parser)
    status_parser.set_defaults(func=cmd_ownership)

    # 'reset' command
    reset_parser = subparsers.add_parser(
        "reset",
        help="Reset a website's ownership record to pending",
    )
    reset_parser.add_argument("website_id", help="Website identifier")
    _add_common(reset_parser)
    reset_parser.set_defaults(func=cmd_ownership)

    # 'config' command
    config_parser = subparsers.add_parser(
        "config",
        help="Configuration management",
    )
    config_parser.add_argument(
        "action",
        choices=["show", "init", "validate"],
        help="Configuration action",
    )
    config_parser.add_argument(
        "--path", "-p",
        help="Path to configuration file",
    )
    config_parser.add_argument(
        "--force", "-f",
        action="store_true",
        help="Force overwrite existing configuration",
    )
    config_parser.set_defaults(func=cmd_config)

    # 'serve' command
    serve_parser = subparsers.add_parser(
        "serve",
        help="Run the HTTP API",
    )
    serve_parser.add_argument("--host", help="Bind address")
    serve_parser.add_argument("--port", type=int, help="Bind port")
    serve_parser.add_argument(
        "--config", "-c",
        help="Path to configuration file (environment variables are used otherwise)",
    )
    serve_parser.set_defaults(func=cmd_serve)

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    """
    Main entry point for the CLI.

    Args:
        argv: Command line arguments (defaults to sys.argv[1:])

    Returns:
        Exit code
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
