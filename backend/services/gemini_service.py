import logging
from typing import Any, Dict, Optional, Tuple

import httpx

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gemini-2.5-flash-image"
DEFAULT_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"


class GeminiService:
    def __init__(
        self,
        api_key: str,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 120.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    def build_payload(self, image_base64: str, prompt: str, mime_type: Optional[str] = None) -> Dict[str, Any]:
        """One content block: inline image part first, then the text prompt."""
        return {
            "contents": [{
                "parts": [
                    {
                        "inlineData": {
                            "mimeType": mime_type or "image/jpeg",
                            "data": image_base64,
                        }
                    },
                    {"text": prompt},
                ]
            }]
        }

    async def generate_content(
        self,
        image_base64: str,
        prompt: str,
        model: Optional[str] = None,
        mime_type: Optional[str] = None,
    ) -> Tuple[bool, int, Any]:
        """
        Send a single generateContent call.

        Returns:
            (ok, status_code, parsed JSON body)

        Raises:
            httpx.HTTPError: on transport failures
            ValueError: if the upstream body is not JSON
        """
        target_model = model or DEFAULT_MODEL
        url = f"{self.base_url}/models/{target_model}:generateContent"
        headers = {
            "x-goog-api-key": self.api_key,
            "Content-Type": "application/json",
        }
        payload = self.build_payload(image_base64, prompt, mime_type)

        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            response = await client.post(url, json=payload, headers=headers)

        if response.is_success:
            return True, response.status_code, response.json()

        try:
            data = response.json()
        except ValueError:
            data = {}
        logger.error("Upstream API error %s: %s", response.status_code, data)
        return False, response.status_code, data

    @staticmethod
    def sanitize_error(status_code: int, data: Any) -> Dict[str, Any]:
        """Client-facing error object for a failed upstream call."""
        error = data.get("error") if isinstance(data, dict) else None
        if not isinstance(error, dict):
            error = {}
        message = error.get("message") or "Unknown upstream error"
        code = error.get("code") or status_code
        body: Dict[str, Any] = {"error": f"Failed to generate content: {code} {message}"}
        if error.get("status"):
            body["details"] = str(error["status"])
        return body
