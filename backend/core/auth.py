"""Access control for the generation proxy: origin allow-list, CORS headers and the internal API key."""
import hmac
from typing import Dict, List, Optional

ALLOWED_METHODS = "POST, OPTIONS"
ALLOWED_HEADERS = "Content-Type, X-API-Key"


def is_origin_allowed(origin: Optional[str], allowed_origins: List[str]) -> bool:
    return bool(origin) and origin in allowed_origins


def get_cors_headers(origin: Optional[str], allowed_origins: List[str]) -> Dict[str, str]:
    """
    CORS headers for a proxy response.

    Args:
        origin: Value of the request's Origin header
        allowed_origins: Configured allow-list

    Returns:
        Headers echoing the origin when it is allowed, otherwise scoped to
        the first allowed origin
    """
    headers = {
        "Access-Control-Allow-Methods": ALLOWED_METHODS,
        "Access-Control-Allow-Headers": ALLOWED_HEADERS,
        "Vary": "Origin",
    }
    if is_origin_allowed(origin, allowed_origins):
        headers["Access-Control-Allow-Origin"] = origin
    elif allowed_origins:
        headers["Access-Control-Allow-Origin"] = allowed_origins[0]
    else:
        headers["Access-Control-Allow-Origin"] = "null"
    return headers


def verify_internal_api_key(provided: Optional[str], expected: Optional[str]) -> bool:
    """
    Check the X-API-Key header against the configured shared secret.

    An unset secret accepts every request; callers are expected to log that.
    """
    if not expected:
        return True
    if not provided:
        return False
    return hmac.compare_digest(provided.encode("utf-8"), expected.encode("utf-8"))
