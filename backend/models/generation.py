import re
from dataclasses import dataclass
from typing import Any, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from core.errors import ErrorKind

DEFAULT_MIME_TYPE = "image/jpeg"

_DATA_URL_RE = re.compile(r"^data:(?P<mime>[\w.+-]+/[\w.+-]+);base64,", re.IGNORECASE)


class ImagePayload(BaseModel):
    """Raw base64 image plus its MIME type tag."""
    data: str = Field(..., description="Base64 image bytes, no data-URL prefix")
    mime_type: str = Field(DEFAULT_MIME_TYPE, description="image/jpeg, image/png, ...")

    @classmethod
    def from_data_url(cls, data_url: str) -> "ImagePayload":
        match = _DATA_URL_RE.match(data_url)
        if not match:
            return cls(data=data_url, mime_type=DEFAULT_MIME_TYPE)
        return cls(data=data_url[match.end():], mime_type=match.group("mime").lower())

    def to_data_url(self) -> str:
        return f"data:{self.mime_type};base64,{self.data}"

    def fits_within(self, max_length: int) -> bool:
        return len(self.data) <= max_length


class GenerationRequest(BaseModel):
    model_config = ConfigDict(protected_namespaces=())

    image: ImagePayload
    prompt_text: str = Field(..., min_length=1)
    model_name: str

    def to_proxy_body(self) -> dict:
        """Wire body for POST /api/generate."""
        return {
            "imageBase64": self.image.data,
            "prompt": self.prompt_text,
            "model": self.model_name,
            "mimeType": self.image.mime_type,
        }


class GenerationResult(BaseModel):
    """Outcome of one generate() call: an edited image or a readable reason."""
    success: bool
    image_data_url: Optional[str] = None
    error: Optional[str] = None
    error_kind: Optional[ErrorKind] = None
    attempts: int = 0

    @classmethod
    def ok(cls, image_data_url: str, attempts: int = 1) -> "GenerationResult":
        return cls(success=True, image_data_url=image_data_url, attempts=attempts)

    @classmethod
    def failed(cls, error: str, error_kind: ErrorKind, attempts: int = 0) -> "GenerationResult":
        return cls(success=False, error=error, error_kind=error_kind, attempts=attempts)


@dataclass
class RetryState:
    """Per-call retry bookkeeping; thrown away once the call finishes."""
    max_attempts: int
    attempt_index: int = 0
    last_delay_ms: int = 0

    @property
    def is_final_attempt(self) -> bool:
        return self.attempt_index >= self.max_attempts - 1

    def backoff_delay(self, base_delay: float) -> float:
        """Exponential delay for the current attempt: base, 2*base, 4*base..."""
        return base_delay * (2 ** self.attempt_index)

    def advance(self, delay_seconds: float) -> None:
        self.last_delay_ms = int(delay_seconds * 1000)
        self.attempt_index += 1


# Response envelope parts

class ImagePart(BaseModel):
    data: str
    mime_type: str = "image/png"


class TextPart(BaseModel):
    text: str


Part = Union[ImagePart, TextPart]


def parse_candidate_parts(envelope: Any) -> List[Part]:
    """
    Ordered parts of candidates[0].content.parts.

    Parts that carry neither inline image data nor text are skipped, as are
    parts whose data or text is not a string and anything that does not have
    the expected envelope shape.
    """
    if not isinstance(envelope, dict):
        return []
    candidates = envelope.get("candidates") or []
    if not isinstance(candidates, list) or not candidates:
        return []
    content = candidates[0].get("content") if isinstance(candidates[0], dict) else None
    raw_parts = content.get("parts") if isinstance(content, dict) else None
    if not isinstance(raw_parts, list):
        return []

    parts: List[Part] = []
    for raw in raw_parts:
        if not isinstance(raw, dict):
            continue
        inline = raw.get("inlineData") or raw.get("inline_data")
        text = raw.get("text")
        if isinstance(inline, dict) and inline.get("data") and isinstance(inline["data"], str):
            mime_type = inline.get("mimeType") or inline.get("mime_type")
            parts.append(ImagePart(
                data=inline["data"],
                mime_type=mime_type if isinstance(mime_type, str) else "image/png",
            ))
        elif text and isinstance(text, str):
            parts.append(TextPart(text=text))
    return parts


# Proxy wire models

class ProxyGenerateBody(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    image_base64: str = Field(..., alias="imageBase64")
    prompt: str
    model: Optional[str] = None
    mime_type: Optional[str] = Field(None, alias="mimeType")


class ErrorBody(BaseModel):
    error: str
    details: Optional[str] = None
