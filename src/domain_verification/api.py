"""
HTTP API for the domain verification system.

Routes are grouped in two routers mounted under ``/api``:
- ``/api/domain-verification``: existence/reachability checks and cache admin
- ``/api/websites``: registration and ownership verification

Handlers read their collaborators from ``app.state`` so tests can build an
app around fakes with ``create_app(...)``.
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import APIRouter, Body, FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from . import __version__
from .audit_logger import AuditLogger
from .challenge import CHALLENGE_METHODS
from .config import VerifierConfig, create_default_config
from .domain_verifier import DomainVerifier
from .enums import ErrorCode, LogLevel
from .exceptions import PersistenceError
from .models import OwnershipPayload
from .ownership_service import OwnershipService, create_domain_verifier, website_summary
from .ownership_verifier import coerce_method


class CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class VerifyDomainRequest(CamelModel):
    domain: Optional[str] = None


class ClearCacheRequest(CamelModel):
    domain: Optional[str] = None


class VerifyOwnershipRequest(CamelModel):
    method: Optional[str] = None
    url: Optional[str] = None
    meta_tag: Optional[str] = Field(default=None, alias="metaTag")
    dns_record: Optional[str] = Field(default=None, alias="dnsRecord")
    file: Optional[str] = None  # Uploaded file's name
    verification_code: Optional[str] = Field(default=None, alias="verificationCode")
    website_id: Optional[str] = Field(default=None, alias="websiteId")


class RegisterWebsiteRequest(CamelModel):
    website_id: str = Field(alias="websiteId")
    url: str


class ChallengeRequest(CamelModel):
    method: str


domain_router = APIRouter(prefix="/domain-verification", tags=["domain-verification"])
websites_router = APIRouter(prefix="/websites", tags=["websites"])


def _domain_verifier(request: Request) -> DomainVerifier:
    return request.app.state.domain_verifier


def _service(request: Request) -> OwnershipService:
    return request.app.state.ownership_service


def _not_found(error: PersistenceError) -> JSONResponse:
    return JSONResponse(status_code=404, content={"message": error.message})


@domain_router.post("/verify")
async def verify_domain(
    request: Request,
    body: Optional[VerifyDomainRequest] = Body(default=None),
):
    if body is None or not body.domain or not body.domain.strip():
        return JSONResponse(
            status_code=400,
            content={"success": False, "error": "Domain is required"},
        )

    result = await _domain_verifier(request).verify(body.domain)
    return {
        "success": True,
        "domain": body.domain,
        "isValid": result.is_valid,
        "error": result.error,
        "details": result.wire_details,
    }


@domain_router.get("/cache-stats")
async def cache_stats(request: Request):
    stats = _domain_verifier(request).get_cache_stats()
    return {"success": True, "stats": stats.to_dict()}


@domain_router.delete("/cache")
async def clear_cache(
    request: Request,
    body: Optional[ClearCacheRequest] = Body(default=None),
):
    domain = body.domain if body else None
    _domain_verifier(request).clear_cache(domain)
    return {
        "success": True,
        "message": f"Cache cleared for {domain}" if domain else "All cache cleared",
    }


@websites_router.post("/verify-ownership")
async def verify_ownership(
    request: Request,
    body: Optional[VerifyOwnershipRequest] = Body(default=None),
):
    if body is None:
        return JSONResponse(status_code=400, content={"message": "Request body is required"})

    payload = OwnershipPayload(
        meta_tag=body.meta_tag,
        dns_record=body.dns_record,
        file_name=body.file,
        verification_code=body.verification_code,
    )

    try:
        result = await _service(request).verify_ownership(
            body.method or "",
            body.url,
            payload,
            website_id=body.website_id,
        )
    except PersistenceError as e:
        if e.code == "unknown_website":
            return _not_found(e)
        raise
    except ValueError as e:
        return JSONResponse(status_code=400, content={"message": str(e)})

    if result.error_code in (ErrorCode.INVALID_METHOD, ErrorCode.OWNERSHIP_INPUT_MISSING):
        return JSONResponse(status_code=400, content={"message": result.message})
    if result.error_code is ErrorCode.TRANSPORT_ERROR:
        return JSONResponse(
            status_code=500,
            content={"message": result.message, "error": result.details.get("error")},
        )

    data = result.to_dict()
    data.pop("errorCode", None)
    return data


@websites_router.post("", status_code=201)
async def register_website(request: Request, body: RegisterWebsiteRequest):
    try:
        outcome = await _service(request).register_website(body.website_id, body.url)
    except PersistenceError as e:
        return JSONResponse(status_code=400, content={"message": e.message})

    if not outcome.registered:
        return JSONResponse(
            status_code=400,
            content={
                "message": outcome.verification.error or "Domain verification failed",
                "verification": outcome.verification.to_dict(),
            },
        )
    return website_summary(outcome.entry)


@websites_router.get("/{website_id}/ownership")
async def get_ownership(request: Request, website_id: str):
    try:
        return _service(request).get_status(website_id)
    except PersistenceError as e:
        return _not_found(e)


@websites_router.post("/{website_id}/ownership-challenge")
async def issue_challenge(request: Request, website_id: str, body: ChallengeRequest):
    method = coerce_method(body.method)
    if method not in CHALLENGE_METHODS:
        return JSONResponse(status_code=400, content={"message": "Invalid verification method"})

    service = _service(request)
    try:
        challenge = service.issue_challenge(website_id, method)
    except PersistenceError as e:
        return _not_found(e)

    return {
        "websiteId": website_id,
        "method": challenge.method.value,
        "verificationCode": challenge.code,
        "issuedAt": challenge.issued_at,
        "instructions": service.instructions_for(challenge),
    }


@websites_router.post("/{website_id}/ownership/reset")
async def reset_ownership(request: Request, website_id: str):
    try:
        record = _service(request).reset(website_id)
    except PersistenceError as e:
        return _not_found(e)
    return record.to_dict()


api_router = APIRouter()
api_router.include_router(domain_router)
api_router.include_router(websites_router)


def create_app(
    config: Optional[VerifierConfig] = None,
    domain_verifier: Optional[DomainVerifier] = None,
    ownership_service: Optional[OwnershipService] = None,
    logger: Optional[AuditLogger] = None,
) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        config: System configuration (defaults are used when omitted)
        domain_verifier: Pre-built domain verifier, shared with the ownership service
        ownership_service: Pre-built ownership service (state file loaded from config otherwise)
        logger: Optional audit logger
    """
    config = config or create_default_config()
    domain_verifier = domain_verifier or (
        ownership_service.domain_verifier if ownership_service else None
    ) or create_domain_verifier(config, logger)
    ownership_service = ownership_service or OwnershipService.from_config(
        config, domain_verifier=domain_verifier, logger=logger
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        if logger:
            logger.log(LogLevel.INFO, "API", "Domain verification API starting")
        yield
        await ownership_service.close()
        if ownership_service.domain_verifier is not domain_verifier:
            await domain_verifier.close()

    app = FastAPI(
        title="Domain Verification",
        version=__version__,
        description="Domain existence, reachability and website ownership verification",
        lifespan=lifespan,
    )
    app.state.domain_verifier = domain_verifier
    app.state.ownership_service = ownership_service
    app.state.logger = logger

    app.include_router(api_router, prefix="/api")
    return app
