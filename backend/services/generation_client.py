"""
Generation request client.

Turns a captured photo and a floor description into an edited image by
calling the generation proxy (POST /api/generate). Handles image
normalization, per-attempt timeouts, exponential backoff on rate limits and
maps every failure to a short message that can be shown to the user.
"""
import asyncio
import logging
from typing import Any, Optional

import httpx

from config.settings import Settings, get_settings
from core.errors import (
    EmptyResponseError,
    ErrorKind,
    GenerationError,
    GenerationFailed,
    GenerationTimeoutError,
    RateLimitError,
    RefusalError,
    TransportError,
    UpstreamError,
    ValidationError,
    error_from_response,
)
from models.epoxy_style import get_style
from models.generation import (
    DEFAULT_MIME_TYPE,
    GenerationRequest,
    GenerationResult,
    ImagePart,
    ImagePayload,
    RetryState,
    TextPart,
    parse_candidate_parts,
)
from services.image_normalizer import normalize_image, split_data_url

logger = logging.getLogger(__name__)

GENERATE_PATH = "/api/generate"

SERVICE_BUSY_MESSAGE = "Service busy. Please try again in a moment."
HIGH_TRAFFIC_MESSAGE = "High traffic right now. Please try again in a minute."
TIMEOUT_MESSAGE = "The request timed out. Please try again."
EMPTY_RESPONSE_MESSAGE = "The model returned an empty response."
DEFAULT_FAILURE_MESSAGE = "Failed to process image."

PROMPT_TEMPLATE = (
    "Edit this image. Replace only the floor with {description}. "
    "Keep the original camera perspective so the new floor lines up exactly with the existing floor. "
    "Keep the walls, furniture and every other object unchanged, and maintain the lighting and shadows of the room. "
    "Change only the floor texture. High photorealism. "
    "Return only the edited image, with no explanatory text."
)


def build_floor_prompt(description: str) -> str:
    """Instructional edit prompt with the user's floor description embedded."""
    return PROMPT_TEMPLATE.format(description=description.strip())


def user_message_for(error: Optional[GenerationError]) -> str:
    """Translate a pipeline error to the message shown to the user."""
    if error is None:
        return DEFAULT_FAILURE_MESSAGE
    if isinstance(error, RateLimitError):
        return SERVICE_BUSY_MESSAGE
    if isinstance(error, GenerationTimeoutError):
        return TIMEOUT_MESSAGE
    if error.mentions_quota or (isinstance(error, UpstreamError) and error.is_quota_exhausted):
        return HIGH_TRAFFIC_MESSAGE
    return error.combined_message() or DEFAULT_FAILURE_MESSAGE


def extract_image(envelope: Any) -> str:
    """
    Pick the edited image out of a generateContent envelope.

    The first inline image part wins. Without one, the first text part is
    treated as the model explaining why it did not edit the image.

    Raises:
        RefusalError: only text came back
        EmptyResponseError: neither image nor text came back
    """
    parts = parse_candidate_parts(envelope)
    for part in parts:
        if isinstance(part, ImagePart):
            return f"data:image/png;base64,{part.data}"
    for part in parts:
        if isinstance(part, TextPart):
            raise RefusalError(part.text)
    raise EmptyResponseError(EMPTY_RESPONSE_MESSAGE)


class GenerationClient:
    def __init__(
        self,
        settings: Optional[Settings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.settings = settings or get_settings()
        self.base_url = self.settings.PROXY_URL.rstrip("/")
        self.max_attempts = self.settings.MAX_ATTEMPTS
        self.timeout = self.settings.REQUEST_TIMEOUT_SECONDS
        self.base_delay = self.settings.RETRY_BASE_DELAY_SECONDS
        self.transport_retry_delay = self.settings.TRANSPORT_RETRY_DELAY_SECONDS
        self._transport = transport

    async def _sleep(self, seconds: float) -> None:
        await asyncio.sleep(seconds)

    def _headers(self) -> dict:
        headers = {"Content-Type": "application/json"}
        if self.settings.INTERNAL_API_KEY:
            headers["X-API-Key"] = self.settings.INTERNAL_API_KEY
        origin = self.settings.resolve_client_origin()
        if origin:
            headers["Origin"] = origin
        return headers

    async def prepare_request(self, image_data_url: str, prompt_text: str) -> GenerationRequest:
        """Normalize the image and build the request sent to the proxy."""
        if not prompt_text or not prompt_text.strip():
            raise ValidationError("Please describe the floor you want to see.")

        normalized = await normalize_image(
            image_data_url,
            max_dimension=self.settings.MAX_IMAGE_DIMENSION,
            quality=self.settings.JPEG_QUALITY,
            timeout=self.settings.IMAGE_DECODE_TIMEOUT_SECONDS,
        )
        if normalized != image_data_url:
            mime_type = DEFAULT_MIME_TYPE
        else:
            mime_type = split_data_url(image_data_url)[0] or DEFAULT_MIME_TYPE
        raw_base64 = split_data_url(normalized)[1]

        image = ImagePayload(data=raw_base64, mime_type=mime_type)
        if not image.fits_within(self.settings.MAX_IMAGE_BASE64_LENGTH):
            raise ValidationError("Image is too large. Please use a smaller photo.")

        return GenerationRequest(
            image=image,
            prompt_text=build_floor_prompt(prompt_text),
            model_name=self.settings.GEMINI_MODEL,
        )

    async def _post_once(self, client: httpx.AsyncClient, body: dict) -> Any:
        """
        One attempt against the proxy, bounded by the per-attempt timeout.

        Returns the parsed success envelope, or raises a typed GenerationError.
        """
        try:
            response = await asyncio.wait_for(
                client.post(GENERATE_PATH, json=body, headers=self._headers()),
                timeout=self.timeout,
            )
        except (asyncio.TimeoutError, httpx.TimeoutException) as e:
            raise GenerationTimeoutError(TIMEOUT_MESSAGE) from e
        except httpx.HTTPError as e:
            raise TransportError(f"Network error: {e}") from e

        if response.is_success:
            try:
                return response.json()
            except ValueError as e:
                raise EmptyResponseError(EMPTY_RESPONSE_MESSAGE) from e

        try:
            error_body = response.json()
        except ValueError:
            error_body = None
        raise error_from_response(response.status_code, error_body)

    async def _send_with_retry(self, request: GenerationRequest, state: RetryState) -> Any:
        body = request.to_proxy_body()
        async with httpx.AsyncClient(base_url=self.base_url, transport=self._transport, timeout=None) as client:
            while True:
                try:
                    return await self._post_once(client, body)
                except RateLimitError:
                    if state.is_final_attempt:
                        raise
                    delay = state.backoff_delay(self.base_delay)
                    logger.info(
                        "Rate limited (attempt %d/%d), retrying in %.1fs",
                        state.attempt_index + 1, self.max_attempts, delay,
                    )
                except (TransportError, GenerationTimeoutError) as e:
                    if state.is_final_attempt:
                        raise
                    delay = self.transport_retry_delay
                    logger.info(
                        "%s (attempt %d/%d), retrying in %.1fs",
                        e.message, state.attempt_index + 1, self.max_attempts, delay,
                    )
                await self._sleep(delay)
                state.advance(delay)

    async def generate(self, image_data_url: str, prompt_text: str) -> GenerationResult:
        """
        Produce a floor visualization for a captured image.

        Args:
            image_data_url: Captured photo as a data URL
            prompt_text: Description of the floor to render

        Returns:
            GenerationResult with a data:image/png URL on success, or a
            user-facing reason and error kind on failure
        """
        state = RetryState(max_attempts=self.max_attempts)
        request = None
        try:
            request = await self.prepare_request(image_data_url, prompt_text)
            envelope = await self._send_with_retry(request, state)
            image = extract_image(envelope)
        except GenerationError as e:
            attempts = state.attempt_index + 1 if request is not None else 0
            logger.warning("Generation failed after %d attempt(s): %s", attempts, e.kind.value)
            return GenerationResult.failed(user_message_for(e), e.kind, attempts=attempts)

        return GenerationResult.ok(image, attempts=state.attempt_index + 1)

    async def generate_for_style(self, image_data_url: str, style_id: str) -> GenerationResult:
        """Generate using a catalog style's floor description."""
        style = get_style(style_id)
        if style is None:
            return GenerationResult.failed(f"Unknown style: {style_id}", ErrorKind.VALIDATION)
        return await self.generate(image_data_url, style.prompt_description)


async def generate_visualization(
    image_data_url: str,
    prompt_text: str,
    settings: Optional[Settings] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> str:
    """
    Entry point for the UI layer.

    Returns the edited image as a data URL, or raises GenerationFailed with a
    message that can be displayed as-is.
    """
    result = await GenerationClient(settings, transport=transport).generate(image_data_url, prompt_text)
    if not result.success or not result.image_data_url:
        raise GenerationFailed(result.error or DEFAULT_FAILURE_MESSAGE, result.error_kind)
    return result.image_data_url
