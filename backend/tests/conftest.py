"""
Shared pytest fixtures and configuration for all tests
"""
import base64
import io
import sys
from pathlib import Path

import httpx
import pytest
from PIL import Image

# Add backend to Python path for imports
backend_dir = Path(__file__).parent.parent
sys.path.insert(0, str(backend_dir))

from config.settings import Settings, get_settings  # noqa: E402

ALLOWED_ORIGIN = "http://localhost:5173"


class UpstreamStub:
    """Deterministic stand-in for an HTTP endpoint, served through httpx.MockTransport.

    Responses are handed out in order; the last one repeats once the queue
    runs dry. Entries may be httpx.Response objects or exceptions to raise.
    """

    def __init__(self, *responses):
        self.responses = list(responses)
        self.requests = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        response = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(response, Exception):
            raise response
        # fresh copy so a repeated response is never reused across requests
        return httpx.Response(response.status_code, headers=response.headers, content=response.content)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    @property
    def call_count(self) -> int:
        return len(self.requests)


def image_envelope(data: str = "ZWRpdGVk", mime_type: str = "image/png") -> dict:
    return {"candidates": [{"content": {"parts": [{"inlineData": {"mimeType": mime_type, "data": data}}]}}]}


def text_envelope(text: str) -> dict:
    return {"candidates": [{"content": {"parts": [{"text": text}]}}]}


@pytest.fixture
def settings():
    """Provide settings isolated from the developer's .env"""
    return Settings(
        _env_file=None,
        GEMINI_API_KEY="test-gemini-key",
        API_KEY=None,
        INTERNAL_API_KEY=None,
        ENFORCE_ORIGIN=True,
        ALLOWED_ORIGINS=[ALLOWED_ORIGIN, "https://epoxycam.com"],
        PROXY_URL="http://testserver",
        CLIENT_ORIGIN=ALLOWED_ORIGIN,
    )


@pytest.fixture
def make_data_url():
    """Factory for image data URLs of a given size, mode and format"""
    def _make(width: int = 64, height: int = 48, mode: str = "RGB", fmt: str = "PNG") -> str:
        color = (200, 120, 40, 255)[: len(mode)] if mode in ("RGB", "RGBA") else 128
        image = Image.new(mode, (width, height), color)
        buffer = io.BytesIO()
        image.save(buffer, format=fmt)
        encoded = base64.b64encode(buffer.getvalue()).decode("ascii")
        return f"data:image/{fmt.lower()};base64,{encoded}"
    return _make


@pytest.fixture
def app(settings):
    """FastAPI app with settings injected; overrides are cleared afterwards"""
    from main import app as fastapi_app

    fastapi_app.dependency_overrides[get_settings] = lambda: settings
    yield fastapi_app
    fastapi_app.dependency_overrides.clear()


@pytest.fixture
def use_upstream(app):
    """Route the proxy's upstream calls to an UpstreamStub"""
    from api.generate import get_upstream_transport

    def _use(stub: UpstreamStub) -> UpstreamStub:
        app.dependency_overrides[get_upstream_transport] = lambda: stub.transport
        return stub
    return _use
