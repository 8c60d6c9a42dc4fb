"""
/verifyOwnership: x402 resource discovery (GET) and verification (POST).
"""
import json
import logging
from typing import Any

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse, PlainTextResponse, Response
from pydantic import ValidationError
from starlette.concurrency import run_in_threadpool

from app.api.deps import get_settings, get_verification_service
from app.core.config import Settings
from app.schemas.verification import VerificationRequest
from app.services.verification import (
    TransactionAlreadyUsedError,
    VerificationService,
    make_resource_description,
    make_success_response,
)
from app.utils.metrics import verification_requests_total


logger = logging.getLogger(__name__)

router = APIRouter(tags=["verification"])

MISSING_FIELDS_ERROR = "Missing wallet, tokenId or txHash"


class BadJsonBody(ValueError):
    pass


def base_url_for(request: Request, settings: Settings) -> str:
    if settings.public_url:
        return settings.public_url
    return f"https://{request.headers.get('host', 'localhost')}"


def parse_body(raw: bytes, content_type: str) -> dict[str, Any]:
    """
    Lenient body parser: empty body or non-JSON content type -> {}.
    Leading BOM and surrounding whitespace are ignored (curl on Windows).
    """
    text = raw.decode("utf-8-sig", errors="replace").strip()
    if not text or "application/json" not in content_type:
        return {}
    try:
        data = json.loads(text)
    except ValueError as e:
        raise BadJsonBody(str(e)) from e
    return data if isinstance(data, dict) else {}


def _is_missing(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


@router.get("/verifyOwnership")
def describe_resource(request: Request, settings: Settings = Depends(get_settings)) -> JSONResponse:
    """x402 scanners expect 402 with the resource description."""
    return JSONResponse(status_code=402, content=make_resource_description(base_url_for(request, settings), settings))


@router.post("/verifyOwnership")
async def verify_ownership(
    request: Request,
    settings: Settings = Depends(get_settings),
    service: VerificationService = Depends(get_verification_service),
) -> Response:
    try:
        body = parse_body(await request.body(), request.headers.get("content-type", ""))
    except BadJsonBody as e:
        logger.warning("bad_json_body", extra={"error": str(e)})
        verification_requests_total.labels(outcome="invalid").inc()
        return PlainTextResponse("Bad JSON Format", status_code=400)

    tx_hash = body.get("txHash", body.get("transactionId"))
    if _is_missing(body.get("wallet")) or _is_missing(body.get("tokenId")) or _is_missing(tx_hash):
        verification_requests_total.labels(outcome="invalid").inc()
        return JSONResponse(status_code=400, content={"error": MISSING_FIELDS_ERROR})

    try:
        verification_request = VerificationRequest.model_validate(body)
    except ValidationError as e:
        verification_requests_total.labels(outcome="invalid").inc()
        fields = {str(err["loc"][0]) for err in e.errors() if err.get("loc")}
        message = "Invalid tokenId" if "tokenId" in fields else "Invalid wallet or txHash"
        return JSONResponse(status_code=400, content={"error": message})

    missing = settings.missing_required()
    if missing:
        logger.error("server_misconfigured", extra={"missing": missing})
        verification_requests_total.labels(outcome="misconfigured").inc()
        return JSONResponse(status_code=500, content={"error": "Server misconfigured"})

    try:
        outcome = await run_in_threadpool(service.verify, verification_request)
    except TransactionAlreadyUsedError:
        logger.info("transaction_replay_rejected", extra={"tx_hash": verification_request.tx_hash})
        verification_requests_total.labels(outcome="replay").inc()
        return JSONResponse(status_code=400, content={"error": "Transaction already used"})

    if not outcome.verified:
        verification_requests_total.labels(outcome="rejected").inc()
        return JSONResponse(
            status_code=402,
            content={"error": "Verification failed", **outcome.diagnostics()},
        )

    verification_requests_total.labels(outcome="verified").inc()
    return JSONResponse(
        status_code=200,
        content=make_success_response(
            base_url_for(request, settings),
            settings,
            wallet=verification_request.wallet,
            token_id=verification_request.token_id_int,
        ),
    )
