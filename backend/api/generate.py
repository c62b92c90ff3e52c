import logging
from typing import Any, Dict, Optional

import httpx
from fastapi import APIRouter, Depends, Request, Response
from fastapi.responses import JSONResponse
from pydantic import ValidationError as PydanticValidationError

from config.settings import Settings, get_settings
from core.auth import get_cors_headers, is_origin_allowed, verify_internal_api_key
from models.generation import ErrorBody, ProxyGenerateBody
from services.gemini_service import GeminiService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["generate"])

MISSING_FIELDS_ERROR = "Missing required fields: imageBase64, prompt"


def get_upstream_transport() -> Optional[httpx.AsyncBaseTransport]:
    """Transport for upstream calls; None uses the network. Overridden in tests."""
    return None


def get_gemini_service(
    api_key: str,
    settings: Settings,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> GeminiService:
    return GeminiService(
        api_key=api_key,
        base_url=settings.GEMINI_BASE_URL,
        timeout=settings.UPSTREAM_TIMEOUT_SECONDS,
        transport=transport,
    )


def error_response(status_code: int, error: str, headers: Dict[str, str], details: Optional[str] = None) -> JSONResponse:
    body = ErrorBody(error=error, details=details).model_dump(exclude_none=True)
    return JSONResponse(status_code=status_code, content=body, headers=headers)


@router.options("/generate")
async def generate_preflight(request: Request, settings: Settings = Depends(get_settings)):
    """CORS preflight for POST /api/generate"""
    headers = get_cors_headers(request.headers.get("Origin"), settings.ALLOWED_ORIGINS)
    return Response(status_code=204, headers=headers)


@router.post("/generate")
async def handle_generate(
    request: Request,
    settings: Settings = Depends(get_settings),
    transport: Optional[httpx.AsyncBaseTransport] = Depends(get_upstream_transport),
):
    """Validate a generation request and forward it to the upstream model"""
    origin = request.headers.get("Origin")
    headers = get_cors_headers(origin, settings.ALLOWED_ORIGINS)

    # Step 1: Origin allow-list
    if settings.ENFORCE_ORIGIN and not is_origin_allowed(origin, settings.ALLOWED_ORIGINS):
        logger.warning("Rejected request from origin %r", origin)
        return error_response(403, "Forbidden: Invalid origin", headers)

    # Step 2: Internal shared secret
    if settings.INTERNAL_API_KEY:
        if not verify_internal_api_key(request.headers.get("X-API-Key"), settings.INTERNAL_API_KEY):
            return error_response(401, "Unauthorized", headers)
    else:
        logger.warning("INTERNAL_API_KEY is not set. The /api/generate endpoint is not protected.")

    # Step 3: Body and required fields
    try:
        data: Any = await request.json()
    except ValueError:
        return error_response(400, "Invalid JSON body", headers)

    if not isinstance(data, dict):
        return error_response(400, "Invalid JSON body", headers)
    if not data.get("imageBase64") or not data.get("prompt"):
        return error_response(400, MISSING_FIELDS_ERROR, headers)

    try:
        body = ProxyGenerateBody.model_validate(data)
    except PydanticValidationError as e:
        return error_response(400, "Invalid request body", headers, details=str(e.errors()[0].get("msg", "")))

    # Step 4: Payload ceiling
    if len(body.image_base64) > settings.MAX_IMAGE_BASE64_LENGTH:
        return error_response(413, "Image payload too large (max 5MB)", headers)

    # Step 5: Model and credential
    target_model = body.model or settings.GEMINI_MODEL
    api_key = settings.resolve_upstream_api_key()
    if not api_key:
        logger.error(
            "Missing upstream credential (GEMINI_API_KEY or API_KEY). Configured keys: %s",
            ", ".join(settings.present_config_keys()) or "none",
        )
        return error_response(500, "Server configuration error", headers)

    # Steps 6-8: Forward and relay
    try:
        gemini_service = get_gemini_service(api_key, settings, transport)
        ok, status_code, upstream_data = await gemini_service.generate_content(
            body.image_base64,
            body.prompt,
            model=target_model,
            mime_type=body.mime_type,
        )
    except (httpx.HTTPError, ValueError) as e:
        logger.error("Internal function error: %s", e)
        return error_response(500, "Internal Server Error", headers, details=str(e))

    if not ok:
        return JSONResponse(
            status_code=status_code,
            content=GeminiService.sanitize_error(status_code, upstream_data),
            headers=headers,
        )

    return JSONResponse(status_code=200, content=upstream_data, headers=headers)


@router.get("/generate/health")
async def check_generation_config(settings: Settings = Depends(get_settings)):
    """Check if the upstream model credential is configured"""
    has_key = bool(settings.resolve_upstream_api_key())
    return {
        "configured": has_key,
        "protected": bool(settings.INTERNAL_API_KEY),
        "model": settings.GEMINI_MODEL,
        "message": "Upstream API key configured" if has_key else "Upstream API key not set",
    }
