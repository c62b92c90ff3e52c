from fastapi import APIRouter, Depends, HTTPException, Request, Response

from config.settings import Settings, get_settings
from core.auth import get_cors_headers
from models.epoxy_style import EPOXY_STYLES, EpoxyStyle, EpoxyStyleListResponse, get_style

router = APIRouter(prefix="/styles", tags=["styles"])


def _apply_origin_headers(request: Request, response: Response, settings: Settings) -> None:
    cors = get_cors_headers(request.headers.get("Origin"), settings.ALLOWED_ORIGINS)
    response.headers["Access-Control-Allow-Origin"] = cors["Access-Control-Allow-Origin"]
    response.headers["Vary"] = "Origin"


@router.get("/", response_model=EpoxyStyleListResponse)
async def list_styles(request: Request, response: Response, settings: Settings = Depends(get_settings)):
    """List the epoxy floor styles offered in the style picker"""
    _apply_origin_headers(request, response, settings)
    return EpoxyStyleListResponse(success=True, styles=EPOXY_STYLES, total_count=len(EPOXY_STYLES))


@router.get("/{style_id}", response_model=EpoxyStyle)
async def get_style_by_id(style_id: str, request: Request, response: Response, settings: Settings = Depends(get_settings)):
    """Get a single style by id"""
    style = get_style(style_id)
    if style is None:
        raise HTTPException(status_code=404, detail=f"Style '{style_id}' not found")
    _apply_origin_headers(request, response, settings)
    return style
